"""Custom exceptions for playmirror.

Exceptions fall into three families that decide how far a failure
propagates:

- ``SetupError``: the run cannot start (no playlists, unreadable sources).
- ``SyncItemError``: one Source Item failed; reported through the scheduler.
- ``ReconcileError``: a leftover could not be removed; reconciliation stops.
"""

from pathlib import Path


class PlayMirrorError(Exception):
    """Base exception for playmirror.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class SetupError(PlayMirrorError):
    """The run cannot start.

    Raised before any sync work is scheduled.
    """


class ExportError(SetupError):
    """The external playlist exporter failed."""


class PlaylistReadError(SetupError):
    """A playlist file could not be read or parsed."""


class InspectionError(SetupError):
    """A source file could not be inspected or fingerprinted."""


class UnsupportedFormatError(InspectionError):
    """A source file has an audio container playmirror cannot process."""


class SyncItemError(PlayMirrorError):
    """Syncing a single Source Item failed.

    Attributes:
        source_path: Source file of the failed item.
    """

    def __init__(self, message: str, source_path: Path | None = None) -> None:
        self.source_path = source_path
        super().__init__(message)


class CopyError(SyncItemError):
    """Copying source bytes to the destination failed."""


class NormalizationError(SyncItemError):
    """The loudness normalizer failed on a freshly copied file."""


class FingerprintError(SyncItemError):
    """Reading or writing the fingerprint attribute failed."""


class ReconcileError(PlayMirrorError):
    """A leftover destination entry could not be removed.

    Attributes:
        path: Destination path that could not be removed.
    """

    def __init__(self, message: str, path: Path | None = None) -> None:
        self.path = path
        super().__init__(message)


class CancellationError(PlayMirrorError):
    """Operation was cancelled.

    Raised by phases that cannot finish partially when a CancelToken is set.
    """


class PlaylistWriteError(PlayMirrorError):
    """A destination playlist could not be written."""
