"""Removes destination entries no current item or playlist accounts for."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path, PurePosixPath

from playmirror.config import DEFAULT_HOUSEKEEPING
from playmirror.exceptions import ReconcileError
from playmirror.models.results import ReconcilePlan, ReconcileResult
from playmirror.models.track import SourceItem

logger = logging.getLogger(__name__)


class Reconciler:
    """Computes and removes leftovers in the destination tree.

    Pipeline Overview:
    ==================
    1. collect_actual() - Walk the destination; every entry except
                          housekeeping files, as root-relative paths
    2. collect_expected() - Every item path plus all of its ancestor
                            directories, plus every playlist file name
    3. plan() - ``actual - expected``, sorted in reverse so children come
                before their parent directories
    4. reconcile() - Remove leftovers in that order; a failed removal stops
                     reconciliation and leaves the rest in place

    Paths are compared case-folded unless ``case_sensitive`` is set, for
    destinations on case-insensitive filesystems where "Song.mp3" and
    "song.mp3" are the same entry.

    Must only run once all sync work has finished: the expected set is
    what the destination should contain, not what it contains yet.

    Example:
        >>> reconciler = Reconciler(case_sensitive=False)
        >>> result = reconciler.reconcile(Path("/dest"), items, ["BEST.m3u"])
        >>> result.removed
        ['Old Artist/Old Song.mp3', 'Old Artist']
    """

    def __init__(
        self,
        *,
        case_sensitive: bool = False,
        housekeeping: Iterable[str] = DEFAULT_HOUSEKEEPING,
    ) -> None:
        """Initialize the reconciler.

        Args:
            case_sensitive: Compare paths case-sensitively.
            housekeeping: File names (e.g. ".DS_Store") that are never
                leftovers themselves and are removed with their directory.
        """
        self._case_sensitive = case_sensitive
        self._housekeeping = tuple(housekeeping)

    def _key(self, relative_path: str) -> str:
        """Normalize a relative path for comparison."""
        return relative_path if self._case_sensitive else relative_path.lower()

    def collect_actual(self, dest_root: Path) -> dict[str, list[str]]:
        """Collect every entry under the destination root.

        Returns:
            Mapping of comparison key to the on-disk relative paths with
            that key (several only when case-folding on a case-sensitive
            filesystem).

        Raises:
            ReconcileError: If the destination cannot be walked.
        """
        actual: dict[str, list[str]] = {}

        def on_error(error: OSError) -> None:
            raise ReconcileError(
                f"Cannot read destination {error.filename}: {error}",
                path=Path(error.filename) if error.filename else None,
            )

        for dirpath, dirnames, filenames in os.walk(dest_root, onerror=on_error):
            base = PurePosixPath(Path(dirpath).relative_to(dest_root).as_posix())
            for name in [*dirnames, *filenames]:
                if name in self._housekeeping:
                    continue
                relative = str(base / name)
                actual.setdefault(self._key(relative), []).append(relative)

        return actual

    def collect_expected(
        self, items: Iterable[SourceItem], playlist_names: Iterable[str]
    ) -> set[str]:
        """Collect every path the current run accounts for.

        Returns:
            Comparison keys of item paths, their ancestor directories and
            playlist file names.
        """
        expected: set[str] = set()

        for item in items:
            path = PurePosixPath(item.relative_path)
            expected.add(self._key(str(path)))
            for parent in path.parents:
                if parent == PurePosixPath("."):
                    break
                expected.add(self._key(str(parent)))

        for name in playlist_names:
            expected.add(self._key(name))

        return expected

    def plan(
        self,
        dest_root: Path,
        items: Iterable[SourceItem],
        playlist_names: Iterable[str],
    ) -> ReconcilePlan:
        """Compute the leftovers without removing anything.

        Returns:
            Plan with leftovers ordered children-first.
        """
        actual = self.collect_actual(dest_root)
        expected = self.collect_expected(items, playlist_names)

        # Reverse order puts "a/b" before its prefix "a"
        leftover_keys = sorted(actual.keys() - expected, reverse=True)
        leftovers = [
            path for key in leftover_keys for path in sorted(actual[key], reverse=True)
        ]
        return ReconcilePlan(leftovers=leftovers)

    def reconcile(
        self,
        dest_root: Path,
        items: Iterable[SourceItem],
        playlist_names: Iterable[str],
        *,
        dry_run: bool = False,
    ) -> ReconcileResult:
        """Remove every leftover, deepest first.

        Args:
            dest_root: Destination root directory.
            items: All current Source Items.
            playlist_names: File names of all current destination playlists.
            dry_run: Only report what would be removed.

        Returns:
            The removed (or, for a dry run, removable) paths in order.

        Raises:
            ReconcileError: If a leftover cannot be removed. Leftovers not
                yet processed stay in place.
        """
        plan = self.plan(dest_root, items, playlist_names)
        removed: list[str] = []

        for relative in plan.leftovers:
            if dry_run:
                logger.info("Would remove: %s", relative)
                removed.append(relative)
                continue

            target = dest_root / relative
            self._remove_housekeeping(target)
            try:
                if target.is_dir() and not target.is_symlink():
                    target.rmdir()
                else:
                    target.unlink()
            except OSError as e:
                raise ReconcileError(f"Cannot remove {target}: {e}", path=target) from e

            logger.info("Removed: %s", relative)
            removed.append(relative)

        return ReconcileResult(removed=removed, dry_run=dry_run)

    def _remove_housekeeping(self, target: Path) -> None:
        """Remove housekeeping files inside a leftover directory."""
        for name in self._housekeeping:
            try:
                (target / name).unlink()
            except OSError:
                pass  # Absent, or target is not a directory
