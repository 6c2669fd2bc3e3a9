"""Playlist, Source Item and manifest models."""

from __future__ import annotations

from pathlib import Path, PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, field_validator

from playmirror.models.enums import AudioFormat


class PlaylistEntry(BaseModel):
    """A single reference read from a source playlist.

    Attributes:
        source_path: Absolute path of the referenced source file.
        title: Display title from the playlist (may be empty).
        duration: Duration in seconds from the playlist (-1 if unknown).
    """

    model_config = ConfigDict(frozen=True)

    source_path: Path
    title: str = ""
    duration: int = -1


class Playlist(BaseModel):
    """A source playlist.

    Attributes:
        name: File name the playlist is exported under (e.g. "BEST.m3u").
        entries: Ordered entries; the same file may appear several times.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    entries: list[PlaylistEntry] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def non_empty_name(cls, v: str) -> str:
        """Validate that the playlist has a file name."""
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v


class SourceItem(BaseModel):
    """One unique source file to mirror.

    Attributes:
        source_path: Absolute path of the source file.
        relative_path: Sanitized destination path, relative to the
            destination root, in POSIX form.
        fingerprint: Hex MD5 digest of the source bytes.
        format: Audio encoding of the source file.
        artist: Artist tag (may be empty).
        title: Title tag (may be empty).
        duration_seconds: Track length in seconds (None if unknown).
    """

    model_config = ConfigDict(frozen=True)

    source_path: Path
    relative_path: str
    fingerprint: str
    format: AudioFormat = AudioFormat.UNKNOWN
    artist: str = ""
    title: str = ""
    duration_seconds: float | None = None

    @field_validator("relative_path")
    @classmethod
    def relative_posix_path(cls, v: str) -> str:
        """Validate that the destination path stays below the root."""
        path = PurePosixPath(v)
        if not v or path.is_absolute() or ".." in path.parts:
            raise ValueError(f"invalid destination path: {v!r}")
        return str(path)

    @property
    def display_title(self) -> str:
        """Display title written to destination playlists: "Artist - Title"."""
        return f"{self.artist} - {self.title}"


class Manifest(BaseModel):
    """Everything a single run mirrors.

    Built once per run from the union of all playlists and passed to every
    phase. Holds exactly one SourceItem per unique source path.

    Attributes:
        playlists: Source playlists in the order they were read.
        items: Source Items keyed by source path.
    """

    model_config = ConfigDict(frozen=True)

    playlists: list[Playlist] = Field(default_factory=list)
    items: dict[Path, SourceItem] = Field(default_factory=dict)

    @property
    def playlist_names(self) -> list[str]:
        """File names of all playlists."""
        return [p.name for p in self.playlists]

    @property
    def source_items(self) -> list[SourceItem]:
        """All Source Items in first-seen order."""
        return list(self.items.values())

    def item_for(self, source_path: Path) -> SourceItem:
        """Look up the Source Item for a playlist entry's source path.

        Raises:
            KeyError: If the path is not part of the manifest.
        """
        return self.items[source_path]


def unique_source_paths(playlists: list[Playlist]) -> list[Path]:
    """Deduplicate source paths across playlists, keeping first-seen order.

    Example:
        >>> a = PlaylistEntry(source_path=Path("/m/a.mp3"))
        >>> unique_source_paths([Playlist(name="x.m3u", entries=[a, a])])
        [PosixPath('/m/a.mp3')]
    """
    seen: dict[Path, None] = {}
    for playlist in playlists:
        for entry in playlist.entries:
            seen.setdefault(entry.source_path, None)
    return list(seen)
