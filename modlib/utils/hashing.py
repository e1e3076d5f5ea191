"""Content hashing for change detection and duplicate grouping."""

import base64
import hashlib
from pathlib import Path

DIGEST_SIZE = 64
"""SHA-512 digest length in bytes."""


def hash_bytes(data: bytes) -> str:
    """Return the base64-rendered SHA-512 digest of *data*.

    The digest is only ever compared for equality; it is never inspected.
    """
    return base64.b64encode(hashlib.sha512(data).digest()).decode("ascii")


def hash_file(filepath: Path) -> str:
    """Hash a file's full contents.

    Raises:
        OSError: If the file cannot be read
    """
    return hash_bytes(filepath.read_bytes())
