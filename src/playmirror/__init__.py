"""playmirror - Incrementally mirror playlist tracks into a destination folder.

This library copies every track referenced by a set of playlists into a
destination tree, normalizes the loudness of lossy copies, rewrites the
playlists to point at the copies and removes whatever no playlist needs
anymore. Unchanged tracks are recognized by a fingerprint stored on the
destination file and are never copied twice.

Examples:
    Mirror a directory of playlists:
    ```python
    from pathlib import Path
    from playmirror import M3UDirectorySource, SyncConfig, create_mirror_service

    config = SyncConfig(source_root=Path("~/Music"), dest_root=Path("/mnt/car"))
    service = create_mirror_service(config, M3UDirectorySource(Path("lists")))
    result = service.mirror_all()
    ```

    Export playlists from iTunes first:
    ```python
    from playmirror import ExportConfig, ExporterPlaylistSource

    export = ExportConfig(
        command=("java", "-jar", "itunesexport.jar", "-fileTypes=ALL"),
        playlists=("BEST", "RECENT"),
    )
    service = create_mirror_service(config, ExporterPlaylistSource(export))
    ```
"""

from playmirror.config import ExportConfig, NormalizerConfig, SyncConfig
from playmirror.exceptions import (
    CancellationError,
    CopyError,
    ExportError,
    FingerprintError,
    InspectionError,
    NormalizationError,
    PlaylistReadError,
    PlaylistWriteError,
    PlayMirrorError,
    ReconcileError,
    SetupError,
    SyncItemError,
    UnsupportedFormatError,
)
from playmirror.models.cancel import CancelToken
from playmirror.models.enums import AudioFormat, ItemStatus, Phase
from playmirror.models.progress import SyncProgress
from playmirror.models.results import ItemResult, MirrorPlan, MirrorResult
from playmirror.models.track import Manifest, Playlist, PlaylistEntry, SourceItem
from playmirror.services import (
    BoundedScheduler,
    ExporterPlaylistSource,
    M3UDirectorySource,
    MirrorService,
    PlaylistSourceProtocol,
    PlaylistWriter,
    Reconciler,
    SyncExecutor,
)


def create_mirror_service(
    config: SyncConfig, source: PlaylistSourceProtocol
) -> MirrorService:
    """Create a configured mirror service.

    This is the recommended way to create a service for library usage. It
    wires the fingerprint store, normalizer and reconciler from the config.

    Args:
        config: Sync configuration.
        source: Where the playlists come from.

    Returns:
        A configured MirrorService instance.

    Examples:
        With progress updates:
        ```python
        service = create_mirror_service(config, source)
        for progress in service.mirror(cancel_token):
            print(f"[{progress.phase}] {progress.current}/{progress.total}")
        result = service.get_result()
        ```

        Preview without touching the destination:
        ```python
        plan = create_mirror_service(config, source).plan()
        print(f"{len(plan.to_sync)} to sync, {len(plan.leftovers)} to remove")
        ```
    """
    return MirrorService(config, source)


__all__ = [
    "AudioFormat",
    "BoundedScheduler",
    "CancelToken",
    "CancellationError",
    "CopyError",
    "ExportConfig",
    "ExportError",
    "ExporterPlaylistSource",
    "FingerprintError",
    "InspectionError",
    "ItemResult",
    "ItemStatus",
    "M3UDirectorySource",
    "Manifest",
    "MirrorPlan",
    "MirrorResult",
    "MirrorService",
    "NormalizationError",
    "NormalizerConfig",
    "Phase",
    "PlayMirrorError",
    "Playlist",
    "PlaylistEntry",
    "PlaylistReadError",
    "PlaylistSourceProtocol",
    "PlaylistWriteError",
    "PlaylistWriter",
    "ReconcileError",
    "Reconciler",
    "SetupError",
    "SourceItem",
    "SyncConfig",
    "SyncExecutor",
    "SyncItemError",
    "SyncProgress",
    "UnsupportedFormatError",
    "create_mirror_service",
]
