"""Source file inspection using mediafile."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import NamedTuple, Protocol

from mediafile import MediaFile, UnreadableFileError

from playmirror.exceptions import InspectionError, UnsupportedFormatError
from playmirror.models.enums import AudioFormat

logger = logging.getLogger(__name__)

MP3_EXTENSIONS = frozenset({".mp3"})
MP4_EXTENSIONS = frozenset({".m4a", ".mp4"})
SUPPORTED_EXTENSIONS = MP3_EXTENSIONS | MP4_EXTENSIONS

# mediafile format labels for MPEG-4 audio
_MP4_FORMATS = {
    "AAC": AudioFormat.AAC,
    "ALAC": AudioFormat.ALAC,
}


class TrackInfo(NamedTuple):
    """Technical and descriptive information about a source file."""

    format: AudioFormat
    artist: str = ""
    title: str = ""
    duration_seconds: float | None = None


class InspectorProtocol(Protocol):
    """Protocol for source file inspectors.

    Enables dependency injection and testing of manifest building.
    """

    def inspect(self, path: Path) -> TrackInfo:
        """Read format and tags of a source file."""
        ...


class TrackInspector:
    """Reads the codec, artist, title and length of source files.

    Only MP3 and MPEG-4 audio (``.m4a``/``.mp4``) are supported, since those
    are the formats the loudness normalizer handles. MPEG-4 files are
    classified by codec: Apple Lossless is told apart from AAC because it is
    copied without normalization.

    Example:
        >>> info = TrackInspector().inspect(Path("/music/Artist/Album/01 Song.m4a"))
        >>> info.format
        <AudioFormat.ALAC: 'alac'>
    """

    def inspect(self, path: Path) -> TrackInfo:
        """Inspect a source file.

        Args:
            path: Source audio file.

        Returns:
            TrackInfo with format, tags and duration.

        Raises:
            UnsupportedFormatError: If the extension is not supported.
            InspectionError: If the file cannot be read.
        """
        suffix = path.suffix.lower()
        if suffix not in SUPPORTED_EXTENSIONS:
            raise UnsupportedFormatError(f"Unsupported file format: {path}")

        try:
            audio = MediaFile(path)
        except (UnreadableFileError, OSError) as e:
            raise InspectionError(f"Cannot read {path}: {e}") from e

        if suffix in MP3_EXTENSIONS:
            audio_format = AudioFormat.MP3
        else:
            audio_format = _MP4_FORMATS.get(audio.format or "", AudioFormat.UNKNOWN)
            if audio_format is AudioFormat.UNKNOWN:
                logger.warning("Unknown codec %r in %s", audio.format, path)

        return TrackInfo(
            format=audio_format,
            artist=audio.artist or "",
            title=audio.title or "",
            duration_seconds=audio.length,
        )
