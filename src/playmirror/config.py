"""Configuration for playmirror."""

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_XATTR_NAME = "user.playmirror.fingerprint"
DEFAULT_HOUSEKEEPING = (".DS_Store",)
DEFAULT_NORMALIZER_COMMAND = ("aacgain", "-r", "-k", "-s", "r", "-d", "9")


def default_concurrency() -> int:
    """Number of execution units on the host (at least 1)."""
    return os.cpu_count() or 1


@dataclass(frozen=True)
class NormalizerConfig:
    """Loudness normalizer configuration.

    Attributes:
        command: Normalizer command prefix; the file path is appended.
        nice: Run the normalizer with lowered scheduling priority.
        timeout: Seconds before the normalizer is killed (None = no limit).
    """

    command: tuple[str, ...] = DEFAULT_NORMALIZER_COMMAND
    nice: bool = True
    timeout: float | None = None


@dataclass(frozen=True)
class SyncConfig:
    """Sync engine configuration.

    Attributes:
        source_root: Root of the source music library. Destination paths are
            computed relative to it.
        dest_root: Destination folder that mirrors the selected tracks.
        concurrency: Maximum number of items synced in parallel.
        inspect_concurrency: Maximum number of files inspected in parallel.
        normalize: Whether to run loudness normalization after copying.
        normalizer: Loudness normalizer settings.
        case_sensitive: Compare destination paths case-sensitively during
            reconciliation. Disable for case-insensitive filesystems.
        housekeeping: File names ignored (and removed along with their
            directory) during reconciliation.
        xattr_name: Extended attribute holding the fingerprint.
        transliterate: Transliterate non-ASCII letters before sanitizing.
    """

    source_root: Path
    dest_root: Path
    concurrency: int = field(default_factory=default_concurrency)
    inspect_concurrency: int = field(default_factory=default_concurrency)
    normalize: bool = True
    normalizer: NormalizerConfig = field(default_factory=NormalizerConfig)
    case_sensitive: bool = False
    housekeeping: tuple[str, ...] = DEFAULT_HOUSEKEEPING
    xattr_name: str = DEFAULT_XATTR_NAME
    transliterate: bool = False


@dataclass(frozen=True)
class ExportConfig:
    """External playlist exporter configuration.

    Attributes:
        command: Exporter command prefix. The playlist selection and output
            directory arguments are appended to it.
        playlists: Names of the playlists to export.
    """

    command: tuple[str, ...]
    playlists: tuple[str, ...] = ()
