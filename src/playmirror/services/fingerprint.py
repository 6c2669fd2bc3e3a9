"""Content fingerprints stored as extended attributes on destination files."""

from __future__ import annotations

import errno
import hashlib
import logging
import os
from pathlib import Path
from typing import Protocol

from playmirror.config import DEFAULT_XATTR_NAME
from playmirror.exceptions import FingerprintError, InspectionError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

# Errors meaning "no fingerprint here" rather than a fault
_ABSENT_ERRNOS = frozenset(
    code
    for code in (
        errno.ENOENT,
        getattr(errno, "ENODATA", None),
        getattr(errno, "ENOATTR", None),
        errno.ENOTSUP,
        getattr(errno, "EOPNOTSUPP", None),
    )
    if code is not None
)


def compute_fingerprint(path: Path) -> str:
    """Compute the MD5 hex digest of a file's bytes.

    Args:
        path: File to hash.

    Returns:
        Lowercase hex digest.

    Raises:
        InspectionError: If the file cannot be read.
    """
    digest = hashlib.md5(usedforsecurity=False)
    try:
        with path.open("rb") as f:
            while chunk := f.read(CHUNK_SIZE):
                digest.update(chunk)
    except OSError as e:
        raise InspectionError(f"Cannot fingerprint {path}: {e}") from e
    return digest.hexdigest()


class FingerprintStoreProtocol(Protocol):
    """Protocol for fingerprint stores.

    Enables dependency injection and testing of the change detector.
    """

    def read(self, path: Path) -> str | None:
        """Read the stored fingerprint, or None if there is none."""
        ...

    def write(self, path: Path, value: str) -> None:
        """Store a fingerprint on a file."""
        ...


class FingerprintStore:
    """Reads and writes fingerprints as one named extended attribute.

    The fingerprint lives outside the file content, so copying a new file
    over the destination (a new inode) drops it automatically.

    Example:
        >>> store = FingerprintStore()
        >>> store.write(Path("/dest/a.mp3"), "d41d8cd98f00b204e9800998ecf8427e")
        >>> store.read(Path("/dest/a.mp3"))
        'd41d8cd98f00b204e9800998ecf8427e'
    """

    def __init__(self, attribute: str = DEFAULT_XATTR_NAME) -> None:
        self._attribute = attribute

    @property
    def attribute(self) -> str:
        """Name of the extended attribute."""
        return self._attribute

    def read(self, path: Path) -> str | None:
        """Read the stored fingerprint.

        A missing file, a missing attribute, or a filesystem without
        extended attributes all mean "no fingerprint" and return None.

        Raises:
            FingerprintError: On permission or I/O faults.
        """
        try:
            value = os.getxattr(path, self._attribute)
        except OSError as e:
            if e.errno in _ABSENT_ERRNOS:
                return None
            raise FingerprintError(f"Cannot read fingerprint of {path}: {e}") from e
        return value.decode("ascii", errors="replace")

    def write(self, path: Path, value: str) -> None:
        """Store a fingerprint on a file.

        Raises:
            FingerprintError: If the attribute cannot be set.
        """
        try:
            os.setxattr(path, self._attribute, value.encode("ascii"))
        except OSError as e:
            raise FingerprintError(f"Cannot write fingerprint of {path}: {e}") from e
        logger.debug("Stored fingerprint %s on %s", value, path)
