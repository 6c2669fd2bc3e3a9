"""Per-item sync workflow: detect, copy, normalize, fingerprint."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from playmirror.exceptions import CopyError, SyncItemError
from playmirror.models.enums import ItemStatus
from playmirror.models.results import ItemResult
from playmirror.models.track import SourceItem
from playmirror.services.detector import needs_sync
from playmirror.services.fingerprint import FingerprintStore, FingerprintStoreProtocol
from playmirror.services.normalizer import LoudnessNormalizer, NormalizerProtocol

logger = logging.getLogger(__name__)

TEMP_MARKER = ".playmirror-tmp"


def temp_path_for(dest: Path) -> Path:
    """Hidden sibling used while a copy is in progress.

    Keeps the original suffix so the normalizer recognizes the format.

    Example:
        >>> temp_path_for(Path("/dest/Artist/01 Song.mp3"))
        PosixPath('/dest/Artist/.01 Song.playmirror-tmp.mp3')
    """
    return dest.with_name(f".{dest.stem}{TEMP_MARKER}{dest.suffix}")


def _fsync(path: Path) -> None:
    """Flush a file's data to disk."""
    fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


class SyncExecutor:
    """Brings one destination file up to date with its Source Item.

    Pipeline Overview:
    ==================
    1. needs_sync() - Compare the destination fingerprint with the item's;
                      an up-to-date item returns without side effects
    2. _ensure_parent() - Create the destination directory chain
    3. _copy_to_temp() - Copy source bytes to a hidden temp file and fsync
    4. normalize - Run loudness normalization on the temp file when the
                   format requires it
    5. os.replace() - Move the finished file to its final name
    6. store.write() - Record the fingerprint, only after 2-5 succeeded

    A failure at any step raises a SyncItemError and leaves no fingerprint,
    so the item is retried on the next run. The final name never holds a
    partially written file.

    Example:
        >>> executor = SyncExecutor(Path("/dest"))
        >>> result = executor.sync_item(item)
        >>> result.status
        <ItemStatus.COPIED: 'copied'>
    """

    def __init__(
        self,
        dest_root: Path,
        *,
        store: FingerprintStoreProtocol | None = None,
        normalizer: NormalizerProtocol | None = None,
        normalize: bool = True,
    ) -> None:
        """Initialize the executor.

        Args:
            dest_root: Destination root directory.
            store: Fingerprint store. Uses FingerprintStore if not provided.
            normalizer: Loudness normalizer. Uses LoudnessNormalizer if not
                provided and normalization is enabled.
            normalize: Whether to normalize copies that require it.
        """
        self._dest_root = dest_root
        self._store = store or FingerprintStore()
        self._normalize = normalize
        self._normalizer: NormalizerProtocol | None = (
            normalizer
            if normalizer is not None
            else (LoudnessNormalizer() if normalize else None)
        )

    def dest_path_for(self, item: SourceItem) -> Path:
        """Absolute destination path of an item."""
        return self._dest_root / item.relative_path

    def needs_sync(self, item: SourceItem) -> bool:
        """Check whether an item's destination is missing or stale."""
        return needs_sync(self.dest_path_for(item), item.fingerprint, self._store)

    def sync_item(self, item: SourceItem) -> ItemResult:
        """Sync a single item.

        Args:
            item: Source Item to mirror.

        Returns:
            ItemResult with status COPIED or UP_TO_DATE.

        Raises:
            CopyError: If the directory or the copy cannot be created.
            NormalizationError: If loudness normalization fails.
            FingerprintError: If the fingerprint cannot be read or written.
        """
        try:
            return self._sync(item)
        except SyncItemError as e:
            if e.source_path is None:
                e.source_path = item.source_path
            raise

    def _sync(self, item: SourceItem) -> ItemResult:
        dest = self.dest_path_for(item)

        if not self.needs_sync(item):
            logger.debug("Up to date: %s", item.relative_path)
            return ItemResult(item=item, status=ItemStatus.UP_TO_DATE)

        self._ensure_parent(dest)
        tmp = self._copy_to_temp(item, dest)

        normalized = False
        try:
            if self._normalize and item.format.requires_normalization:
                assert self._normalizer is not None
                self._normalizer.normalize(tmp)
                _fsync(tmp)
                normalized = True
            os.replace(tmp, dest)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise CopyError(f"Cannot move {tmp.name} to {dest}: {e}") from e
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise

        self._store.write(dest, item.fingerprint)

        logger.debug(
            "Copied %s%s", item.relative_path, " (normalized)" if normalized else ""
        )
        return ItemResult(item=item, status=ItemStatus.COPIED, normalized=normalized)

    def _ensure_parent(self, dest: Path) -> None:
        """Create the destination directory chain if missing."""
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CopyError(f"Cannot create directory {dest.parent}: {e}") from e

    def _copy_to_temp(self, item: SourceItem, dest: Path) -> Path:
        """Copy source bytes to the hidden temp file next to ``dest``.

        Returns:
            Path of the fully written and fsync'd temp file.
        """
        tmp = temp_path_for(dest)
        try:
            with item.source_path.open("rb") as src, tmp.open("wb") as out:
                shutil.copyfileobj(src, out)
                out.flush()
                os.fsync(out.fileno())
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise CopyError(f"Cannot copy {item.source_path} to {dest}: {e}") from e
        return tmp
