"""
CoreCheck - Release manifest providers.

A manifest maps relative path -> expected checksum for one release version.
Providers return None when the manifest cannot be obtained; the engine turns
that into ManifestUnavailable.
"""

import json
import logging
import time
from pathlib import Path
from typing import Any, Optional, Protocol

import httpx

logger = logging.getLogger(__name__)

DEFAULT_CHECKSUMS_URL = "https://api.wordpress.org/core/checksums/1.0/"
DEFAULT_CONTENT_URL = "https://core.svn.wordpress.org/tags"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_LOCALE = "en_US"


class ManifestProvider(Protocol):
    """Read-only source of release checksums and original file content."""

    def get_manifest(self, version: str, locale: str = DEFAULT_LOCALE) -> Optional[dict[str, str]]:
        ...

    def get_original_content(self, relative_path: str, version: str) -> Optional[bytes]:
        ...


def _extract_checksums(data: Any, version: str) -> Optional[dict[str, str]]:
    """Accept {"checksums": {path: sum}} or {"checksums": {version: {path: sum}}}."""
    if not isinstance(data, dict):
        return None
    checksums = data.get("checksums")
    if not isinstance(checksums, dict) or not checksums:
        return None
    nested = checksums.get(version)
    if isinstance(nested, dict):
        checksums = nested
    result = {str(k): str(v) for k, v in checksums.items() if isinstance(v, str)}
    return result or None


class HttpManifestProvider:
    """
    Fetches checksums from the remote release API and original files from the
    release content mirror. Every request, body included, is bounded by
    timeout_seconds.
    """

    def __init__(
        self,
        checksums_url: str = DEFAULT_CHECKSUMS_URL,
        content_url: str = DEFAULT_CONTENT_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.checksums_url = checksums_url
        self.content_url = content_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client = client or httpx.Client(timeout=timeout_seconds, follow_redirects=True)
        self._cache: dict[tuple[str, str], dict[str, str]] = {}

    def close(self) -> None:
        self._client.close()

    def remote_checksums_url(self, version: str, locale: str = DEFAULT_LOCALE) -> str:
        return str(httpx.URL(self.checksums_url, params={"version": version, "locale": locale}))

    def _fetch(self, url: str, params: Optional[dict[str, str]] = None) -> tuple[int, bytes]:
        """
        GET url and return (status, body). httpx applies timeout_seconds to each
        connect/read/write; the body is additionally read under an overall
        deadline of the same length.

        Raises:
            httpx.TimeoutException: a phase timed out or the deadline passed.
            httpx.HTTPError: any other transport failure.
        """
        deadline = time.monotonic() + self.timeout_seconds
        with self._client.stream("GET", url, params=params, timeout=self.timeout_seconds) as resp:
            chunks = []
            for chunk in resp.iter_bytes():
                chunks.append(chunk)
                if time.monotonic() > deadline:
                    raise httpx.ReadTimeout("overall deadline exceeded", request=resp.request)
            return resp.status_code, b"".join(chunks)

    def get_manifest(self, version: str, locale: str = DEFAULT_LOCALE) -> Optional[dict[str, str]]:
        key = (version, locale)
        if key in self._cache:
            return self._cache[key]
        try:
            status, body = self._fetch(self.checksums_url, {"version": version, "locale": locale})
        except httpx.TimeoutException:
            logger.error("Manifest request timed out after %.0fs (version %s)", self.timeout_seconds, version)
            return None
        except httpx.HTTPError as e:
            logger.error("Manifest request failed (version %s): %s", version, e)
            return None
        if status != 200:
            logger.error("Manifest request returned HTTP %d (version %s)", status, version)
            return None
        try:
            data = json.loads(body)
        except ValueError as e:
            logger.error("Manifest response is not JSON: %s", e)
            return None
        checksums = _extract_checksums(data, version)
        if checksums is None:
            logger.error("Version %s is not supported by the manifest service", version)
            return None
        self._cache[key] = checksums
        logger.info("Loaded manifest for %s/%s (%d files)", version, locale, len(checksums))
        return checksums

    def get_original_content(self, relative_path: str, version: str) -> Optional[bytes]:
        url = f"{self.content_url}/{version}/{relative_path.lstrip('/')}"
        try:
            status, body = self._fetch(url)
        except httpx.HTTPError as e:
            logger.warning("Cannot fetch original %s: %s", relative_path, e)
            return None
        if status != 200:
            logger.warning("Cannot fetch original %s: HTTP %d", relative_path, status)
            return None
        return body


class LocalManifestProvider:
    """
    Reads checksums from a JSON file (same shape as the remote API) and
    original content from a pristine release directory.
    """

    def __init__(self, manifest_path: Path, release_dir: Optional[Path] = None) -> None:
        self.manifest_path = Path(manifest_path)
        self.release_dir = Path(release_dir) if release_dir is not None else None

    def close(self) -> None:
        pass

    def get_manifest(self, version: str, locale: str = DEFAULT_LOCALE) -> Optional[dict[str, str]]:
        try:
            with open(self.manifest_path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to load manifest %s: %s", self.manifest_path, e)
            return None
        return _extract_checksums(data, version)

    def get_original_content(self, relative_path: str, version: str) -> Optional[bytes]:
        if self.release_dir is None:
            return None
        path = (self.release_dir / relative_path).resolve()
        try:
            path.relative_to(self.release_dir.resolve())
        except ValueError:
            logger.warning("Refusing original outside release dir: %s", relative_path)
            return None
        try:
            return path.read_bytes()
        except OSError as e:
            logger.warning("Cannot read original %s: %s", relative_path, e)
            return None
