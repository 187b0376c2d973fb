"""
CoreCheck - Hashing module.

Computes file checksums compatible with the release manifest (MD5 by default).
"""

import hashlib
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class HashEngine:
    """Computes and verifies file hashes."""

    ALGORITHM = "md5"
    CHUNK_SIZE = 65536

    def __init__(self, algorithm: str = ALGORITHM, chunk_size: int = CHUNK_SIZE) -> None:
        hashlib.new(algorithm)  # fail early on an unknown algorithm
        self.algorithm = algorithm
        self.chunk_size = chunk_size

    def compute_file_hash(self, file_path: Path) -> Optional[str]:
        """
        Compute the hash of a file.

        Args:
            file_path: Path to the file.

        Returns:
            Hex-encoded digest, or None when the file is missing or unreadable.
        """
        if not file_path.is_file():
            logger.debug("Not a file or does not exist: %s", file_path)
            return None

        try:
            hasher = hashlib.new(self.algorithm)
            with open(file_path, "rb") as f:
                while chunk := f.read(self.chunk_size):
                    hasher.update(chunk)
            return hasher.hexdigest()
        except OSError as e:
            logger.warning("Failed to hash %s: %s", file_path, e)
            return None
