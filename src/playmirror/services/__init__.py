"""Business logic services for playmirror.

Public API:
    MirrorService - Full pipeline: export + inspect + sync + write + reconcile
    ManifestBuilder - Inspect playlists into a deduplicated manifest
    SyncExecutor - Sync a single item (copy, normalize, fingerprint)
    Reconciler - Remove leftovers from the destination
    BoundedScheduler - Bounded-concurrency, fail-fast work scheduler

Protocols (for dependency injection):
    PlaylistSourceProtocol - Playlist source abstraction
    InspectorProtocol - Audio file inspection abstraction
    NormalizerProtocol - Loudness normalization abstraction
    FingerprintStoreProtocol - Fingerprint storage abstraction

Internal (not exported):
    TrackInspector - mediafile-based inspection
    LoudnessNormalizer - aacgain-based normalization
    FingerprintStore - Extended-attribute fingerprint storage
"""

from playmirror.services.executor import SyncExecutor
from playmirror.services.fingerprint import FingerprintStoreProtocol
from playmirror.services.inspector import InspectorProtocol
from playmirror.services.manifest import ManifestBuilder
from playmirror.services.normalizer import NormalizerProtocol
from playmirror.services.pipeline import MirrorService
from playmirror.services.playlists import (
    ExporterPlaylistSource,
    M3UDirectorySource,
    PlaylistSourceProtocol,
    PlaylistWriter,
)
from playmirror.services.reconciler import Reconciler
from playmirror.services.scheduler import BoundedScheduler

__all__ = [
    "BoundedScheduler",
    "ExporterPlaylistSource",
    "FingerprintStoreProtocol",
    "InspectorProtocol",
    "M3UDirectorySource",
    "ManifestBuilder",
    "MirrorService",
    "NormalizerProtocol",
    "PlaylistSourceProtocol",
    "PlaylistWriter",
    "Reconciler",
    "SyncExecutor",
]
