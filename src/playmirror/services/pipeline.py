"""High-level mirror service."""

from __future__ import annotations

import logging
from collections.abc import Iterator

from playmirror.config import SyncConfig
from playmirror.exceptions import CancellationError, SetupError
from playmirror.models.cancel import CancelToken
from playmirror.models.enums import Phase
from playmirror.models.progress import SyncProgress
from playmirror.models.results import ItemResult, MirrorPlan, MirrorResult
from playmirror.models.track import Manifest, Playlist
from playmirror.services.executor import SyncExecutor
from playmirror.services.fingerprint import FingerprintStore
from playmirror.services.manifest import ManifestBuilder
from playmirror.services.normalizer import LoudnessNormalizer
from playmirror.services.playlists import PlaylistSourceProtocol, PlaylistWriter
from playmirror.services.reconciler import Reconciler
from playmirror.services.scheduler import BoundedScheduler

logger = logging.getLogger(__name__)


class MirrorService:
    """High-level orchestration of a complete mirror run.

    Pipeline Overview:
    ==================
    1. "exporting" - Load playlists from the playlist source
    2. "inspecting" - Inspect and fingerprint every unique source file in
                      parallel, producing the run's Manifest
    3. "syncing" - Copy, normalize and fingerprint every stale item with
                   bounded concurrency; up-to-date items are skipped
    4. "writing" - Write the rewritten playlists into the destination root
    5. "reconciling" - Remove destination entries no current item or
                       playlist accounts for

    The first error in any phase ends the run once running items have
    finished. A cancelled sync phase also ends the run after draining:
    playlists are not rewritten and nothing is reconciled, so the next run
    picks up where this one stopped.

    Example:
        >>> service = MirrorService(config, M3UDirectorySource(Path("lists")))
        >>> for progress in service.mirror(cancel_token):
        ...     print(f"[{progress.phase}] {progress.current}/{progress.total}")
        >>> result = service.get_result()
        >>> print(f"Copied: {result.copied_count}")
    """

    def __init__(
        self,
        config: SyncConfig,
        source: PlaylistSourceProtocol,
        *,
        builder: ManifestBuilder | None = None,
        executor: SyncExecutor | None = None,
        writer: PlaylistWriter | None = None,
        reconciler: Reconciler | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            config: Sync configuration.
            source: Where playlists come from.
            builder: Optional manifest builder (created from config if omitted).
            executor: Optional sync executor (created from config if omitted).
            writer: Optional playlist writer.
            reconciler: Optional reconciler (created from config if omitted).
        """
        self._config = config
        self._source = source
        self._builder = builder or ManifestBuilder(
            config.source_root,
            transliterate=config.transliterate,
            case_sensitive=config.case_sensitive,
        )
        self._executor = executor or SyncExecutor(
            config.dest_root,
            store=FingerprintStore(config.xattr_name),
            normalizer=(
                LoudnessNormalizer(config.normalizer) if config.normalize else None
            ),
            normalize=config.normalize,
        )
        self._writer = writer or PlaylistWriter()
        self._reconciler = reconciler or Reconciler(
            case_sensitive=config.case_sensitive,
            housekeeping=config.housekeeping,
        )

        self._last_result: MirrorResult | None = None

    # ============================================================================
    # PUBLIC API
    # ============================================================================

    def mirror(self, cancel_token: CancelToken | None = None) -> Iterator[SyncProgress]:
        """Run the complete mirror pipeline, yielding progress updates.

        Args:
            cancel_token: Optional token. Inspection and syncing stop starting
                new items once it is set.

        Yields:
            SyncProgress for each phase milestone and finished item.

        Raises:
            SetupError: If playlists cannot be loaded, a source file cannot be
                inspected, or the destination root cannot be created.
            CancellationError: If cancelled during inspection.
            SyncItemError: The first item failure of the sync phase.
            PlaylistWriteError: If a destination playlist cannot be written.
            ReconcileError: If a leftover cannot be removed.
        """
        self._last_result = None
        self._check_cancellation(cancel_token)

        playlists = yield from self._export_phase()
        manifest = yield from self._inspect_phase(playlists, cancel_token)
        self._ensure_dest_root()

        item_results: list[ItemResult] = []
        cancelled = yield from self._sync_phase(manifest, item_results, cancel_token)
        if cancelled:
            logger.warning(
                "Sync cancelled after %d of %d item(s); "
                "playlists and leftovers left untouched",
                len(item_results),
                len(manifest.items),
            )
            self._last_result = MirrorResult(
                manifest=manifest, item_results=item_results, cancelled=True
            )
            return

        playlist_paths = yield from self._write_phase(manifest)
        removed = yield from self._reconcile_phase(manifest)

        self._last_result = MirrorResult(
            manifest=manifest,
            item_results=item_results,
            playlist_paths=playlist_paths,
            removed=removed,
        )
        logger.info(
            "Mirror complete: %d copied, %d up to date, %d removed",
            self._last_result.copied_count,
            self._last_result.up_to_date_count,
            len(removed),
        )

    def mirror_all(self, cancel_token: CancelToken | None = None) -> MirrorResult:
        """Run the complete pipeline and return the final result.

        Convenience wrapper around mirror() for callers that don't need
        progress updates.
        """
        for _ in self.mirror(cancel_token):
            pass

        assert self._last_result is not None
        return self._last_result

    def get_result(self) -> MirrorResult | None:
        """Result of the most recent completed (or cancelled) run."""
        return self._last_result

    def plan(self, cancel_token: CancelToken | None = None) -> MirrorPlan:
        """Compute what a run would do without modifying the destination.

        Playlists are loaded and source files inspected as in a real run;
        then every item is checked against its destination fingerprint and
        leftovers are computed, but nothing is copied or removed.

        Raises:
            SetupError: If playlists or source files cannot be read.
            CancellationError: If cancelled during inspection.
        """
        playlists = self._source.load()
        manifest = self._builder.build(
            playlists,
            scheduler=self._inspect_scheduler(),
            cancel_token=cancel_token,
        )

        to_sync = [i for i in manifest.source_items if self._executor.needs_sync(i)]
        leftovers: list[str] = []
        if self._config.dest_root.is_dir():
            leftovers = self._reconciler.plan(
                self._config.dest_root,
                manifest.source_items,
                manifest.playlist_names,
            ).leftovers

        return MirrorPlan(manifest=manifest, to_sync=to_sync, leftovers=leftovers)

    # ============================================================================
    # CANCELLATION & SETUP
    # ============================================================================

    def _check_cancellation(self, cancel_token: CancelToken | None) -> None:
        """Raise CancellationError if the token is set."""
        if cancel_token and cancel_token.is_cancelled:
            raise CancellationError("Operation cancelled")

    def _inspect_scheduler(self) -> BoundedScheduler:
        return BoundedScheduler(
            self._config.inspect_concurrency, name="playmirror-inspect"
        )

    def _ensure_dest_root(self) -> None:
        """Create the destination root before any work starts."""
        try:
            self._config.dest_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SetupError(
                f"Cannot create destination {self._config.dest_root}: {e}"
            ) from e

    # ============================================================================
    # PHASES
    # ============================================================================

    def _export_phase(self) -> Iterator[SyncProgress]:
        """Phase 1: load playlists from the source.

        Returns (via StopIteration) the loaded playlists.
        """
        yield SyncProgress(phase=Phase.EXPORTING, current=0, total=1)
        playlists = self._source.load()
        yield SyncProgress(
            phase=Phase.EXPORTING,
            current=1,
            total=1,
            message=f"{len(playlists)} playlist(s)",
        )
        return playlists

    def _inspect_phase(
        self, playlists: list[Playlist], cancel_token: CancelToken | None
    ) -> Iterator[SyncProgress]:
        """Phase 2: inspect and fingerprint every unique source file.

        Returns (via StopIteration) the run's Manifest.
        """
        completions = self._builder.iter_build(
            playlists,
            scheduler=self._inspect_scheduler(),
            cancel_token=cancel_token,
        )
        while True:
            try:
                completion = next(completions)
            except StopIteration as stop:
                return stop.value
            yield SyncProgress(
                phase=Phase.INSPECTING,
                current=completion.completed,
                total=completion.total,
            )

    def _sync_phase(
        self,
        manifest: Manifest,
        item_results: list[ItemResult],
        cancel_token: CancelToken | None,
    ) -> Iterator[SyncProgress]:
        """Phase 3: sync every item with bounded concurrency.

        Appends each successful ItemResult to ``item_results``.
        Returns (via StopIteration) True if the phase was cancelled.

        Raises:
            SyncItemError: The first item failure, after running items finish.
        """
        items = manifest.source_items
        logger.info(
            "Syncing %d track(s) to %s with %d worker(s)",
            len(items),
            self._config.dest_root,
            self._config.concurrency,
        )

        scheduler = BoundedScheduler(self._config.concurrency, name="playmirror-sync")
        for completion in scheduler.iter_run(
            items, self._executor.sync_item, cancel_token=cancel_token
        ):
            if completion.error is not None:
                logger.error("Failed: %s", completion.error)
                continue
            item_results.append(completion.result)
            yield SyncProgress(
                phase=Phase.SYNCING,
                current=completion.completed,
                total=completion.total,
                item_result=completion.result,
            )

        report = scheduler.last_report
        assert report is not None
        report.raise_for_error()
        return report.cancelled

    def _write_phase(self, manifest: Manifest) -> Iterator[SyncProgress]:
        """Phase 4: write destination playlists.

        Returns (via StopIteration) the playlist paths.
        """
        total = len(manifest.playlists)
        yield SyncProgress(phase=Phase.WRITING, current=0, total=total)
        paths = self._writer.write(self._config.dest_root, manifest)
        yield SyncProgress(phase=Phase.WRITING, current=total, total=total)
        return paths

    def _reconcile_phase(self, manifest: Manifest) -> Iterator[SyncProgress]:
        """Phase 5: remove leftovers from the destination.

        Returns (via StopIteration) the removed relative paths.
        """
        yield SyncProgress(phase=Phase.RECONCILING, current=0, total=1)
        result = self._reconciler.reconcile(
            self._config.dest_root,
            manifest.source_items,
            manifest.playlist_names,
        )
        yield SyncProgress(
            phase=Phase.RECONCILING,
            current=1,
            total=1,
            message=f"{len(result.removed)} leftover(s) removed",
        )
        return result.removed
