"""Decides whether a destination file must be (re)copied."""

from pathlib import Path

from playmirror.services.fingerprint import FingerprintStoreProtocol


def needs_sync(
    dest_path: Path, source_fingerprint: str, store: FingerprintStoreProtocol
) -> bool:
    """Check whether ``dest_path`` is out of date.

    True when the destination does not exist, carries no fingerprint, or
    carries a fingerprint different from ``source_fingerprint``. Has no side
    effects, so it can run concurrently for distinct paths.

    Raises:
        FingerprintError: If the stored fingerprint cannot be read because
            of a permission or I/O fault.
    """
    if not dest_path.exists():
        return True
    return store.read(dest_path) != source_fingerprint
