"""Data models for playmirror.

Public API:
    SourceItem - One unique source file to mirror
    Playlist, PlaylistEntry - Source playlists
    Manifest - Everything a run mirrors
    AudioFormat, ItemStatus, Phase - Enumerations
    CancelToken - Cooperative cancellation
"""

from playmirror.models.cancel import CancelToken
from playmirror.models.enums import AudioFormat, ItemStatus, Phase
from playmirror.models.progress import SyncProgress
from playmirror.models.results import (
    ItemResult,
    MirrorPlan,
    MirrorResult,
    ReconcilePlan,
    ReconcileResult,
    ScheduleReport,
)
from playmirror.models.track import Manifest, Playlist, PlaylistEntry, SourceItem

__all__ = [
    "AudioFormat",
    "CancelToken",
    "ItemResult",
    "ItemStatus",
    "Manifest",
    "MirrorPlan",
    "MirrorResult",
    "Phase",
    "Playlist",
    "PlaylistEntry",
    "ReconcilePlan",
    "ReconcileResult",
    "ScheduleReport",
    "SourceItem",
    "SyncProgress",
]
