"""Enumerations for playmirror domain models."""

from enum import StrEnum


class AudioFormat(StrEnum):
    """Audio encodings recognized in source files."""

    MP3 = "mp3"
    AAC = "aac"
    ALAC = "alac"  # Apple Lossless, exempt from normalization
    UNKNOWN = "unknown"

    @property
    def requires_normalization(self) -> bool:
        """Whether copies of this format get loudness normalization.

        Apple Lossless is left untouched; every other format, including
        unrecognized MPEG-4 audio, is normalized.
        """
        return self is not AudioFormat.ALAC


class ItemStatus(StrEnum):
    """Outcome of syncing a single Source Item."""

    COPIED = "copied"
    UP_TO_DATE = "up_to_date"

    @property
    def label(self) -> str:
        """Human-readable label for display."""
        match self:
            case ItemStatus.COPIED:
                return "copied"
            case ItemStatus.UP_TO_DATE:
                return "up to date"


class Phase(StrEnum):
    """Phases of a mirror run, in execution order."""

    EXPORTING = "exporting"
    INSPECTING = "inspecting"
    SYNCING = "syncing"
    WRITING = "writing"
    RECONCILING = "reconciling"
