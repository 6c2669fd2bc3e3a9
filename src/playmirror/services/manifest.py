"""Builds the per-run manifest of unique Source Items."""

from __future__ import annotations

import logging
from collections.abc import Generator
from pathlib import Path

from playmirror.exceptions import CancellationError, InspectionError, SetupError
from playmirror.models.cancel import CancelToken
from playmirror.models.track import Manifest, Playlist, SourceItem, unique_source_paths
from playmirror.services.fingerprint import compute_fingerprint
from playmirror.services.inspector import InspectorProtocol, TrackInspector
from playmirror.services.scheduler import BoundedScheduler, Completion
from playmirror.utils.filename import sanitize_relative_path

logger = logging.getLogger(__name__)


class ManifestBuilder:
    """Turns playlists into one deduplicated manifest.

    Each unique source path becomes exactly one SourceItem: its destination
    path is the sanitized path relative to the source library, its
    fingerprint the MD5 of its bytes, and its format and tags come from the
    inspector. Files are inspected in parallel.

    Example:
        >>> builder = ManifestBuilder(Path("/music"))
        >>> manifest = builder.build(playlists)
        >>> len(manifest.items)
        42
    """

    def __init__(
        self,
        source_root: Path,
        *,
        inspector: InspectorProtocol | None = None,
        transliterate: bool = False,
        case_sensitive: bool = False,
    ) -> None:
        """Initialize the builder.

        Args:
            source_root: Root of the source library.
            inspector: File inspector. Uses TrackInspector if not provided.
            transliterate: Transliterate non-ASCII letters in destination paths.
            case_sensitive: Whether destination paths differing only in case
                are distinct.
        """
        self._source_root = source_root
        self._inspector = inspector or TrackInspector()
        self._transliterate = transliterate
        self._case_sensitive = case_sensitive

    def relative_path_for(self, source_path: Path) -> str:
        """Sanitized destination path of a source file.

        Raises:
            InspectionError: If the file is outside the source root.
        """
        try:
            relative = source_path.relative_to(self._source_root)
        except ValueError as e:
            raise InspectionError(
                f"{source_path} is outside the library {self._source_root}"
            ) from e
        return sanitize_relative_path(relative, transliterate=self._transliterate)

    def build_item(self, source_path: Path) -> SourceItem:
        """Inspect and fingerprint a single source file.

        Raises:
            InspectionError: If the file cannot be read or is unsupported.
        """
        relative_path = self.relative_path_for(source_path)
        info = self._inspector.inspect(source_path)
        fingerprint = compute_fingerprint(source_path)

        return SourceItem(
            source_path=source_path,
            relative_path=relative_path,
            fingerprint=fingerprint,
            format=info.format,
            artist=info.artist,
            title=info.title,
            duration_seconds=info.duration_seconds,
        )

    def assemble(self, playlists: list[Playlist], items: list[SourceItem]) -> Manifest:
        """Combine playlists and inspected items into a manifest.

        Raises:
            SetupError: If a playlist entry has no item, or two source files
                map to the same destination path.
        """
        by_source = {item.source_path: item for item in items}

        for playlist in playlists:
            for entry in playlist.entries:
                if entry.source_path not in by_source:
                    raise SetupError(
                        f"{entry.source_path} from {playlist.name} was not inspected"
                    )

        owners: dict[str, Path] = {}
        for item in items:
            key = (
                item.relative_path
                if self._case_sensitive
                else item.relative_path.lower()
            )
            owner = owners.setdefault(key, item.source_path)
            if owner != item.source_path:
                raise SetupError(
                    f"{owner} and {item.source_path} both map to "
                    f"{item.relative_path}"
                )

        ordered = {path: by_source[path] for path in unique_source_paths(playlists)}
        return Manifest(playlists=playlists, items=ordered)

    def iter_build(
        self,
        playlists: list[Playlist],
        *,
        scheduler: BoundedScheduler | None = None,
        cancel_token: CancelToken | None = None,
    ) -> Generator[Completion[Path], None, Manifest]:
        """Inspect every unique source file, yielding each completion.

        Returns (via StopIteration) the assembled Manifest once every file
        has been inspected.

        Args:
            playlists: Source playlists.
            scheduler: Scheduler used for parallel inspection.
            cancel_token: Optional cancellation token.

        Raises:
            InspectionError: If any file cannot be inspected.
            CancellationError: If cancelled before every file was inspected.
            SetupError: If the manifest is inconsistent.
        """
        scheduler = scheduler or BoundedScheduler(name="playmirror-inspect")
        paths = unique_source_paths(playlists)
        logger.info(
            "Inspecting %d unique track(s) from %d playlist(s)",
            len(paths),
            len(playlists),
        )

        yield from scheduler.iter_run(paths, self.build_item, cancel_token=cancel_token)

        report = scheduler.last_report
        assert report is not None
        report.raise_for_error()
        if report.cancelled:
            raise CancellationError("Inspection cancelled")

        return self.assemble(playlists, report.results)

    def build(
        self,
        playlists: list[Playlist],
        *,
        scheduler: BoundedScheduler | None = None,
        cancel_token: CancelToken | None = None,
    ) -> Manifest:
        """Inspect every unique source file and build the manifest.

        Same as iter_build() without progress.
        """
        completions = self.iter_build(
            playlists, scheduler=scheduler, cancel_token=cancel_token
        )
        while True:
            try:
                next(completions)
            except StopIteration as stop:
                return stop.value
