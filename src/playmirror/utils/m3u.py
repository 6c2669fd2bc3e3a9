"""M3U playlist reading and writing utilities.

M3U files are read and written with UTF-8 encoding. Source playlists may
reference tracks with ``file://`` URLs or plain paths; destination
playlists always use paths relative to the destination root.
"""

import logging
import os
from pathlib import Path

from playmirror.exceptions import PlaylistReadError
from playmirror.models.track import Playlist, PlaylistEntry, SourceItem

logger = logging.getLogger(__name__)

EXTM3U = "#EXTM3U"
EXTINF = "#EXTINF:"


def _parse_extinf(line: str) -> tuple[int, str]:
    """Parse an ``#EXTINF:duration,title`` line.

    Returns:
        Tuple of (duration, title). Duration is -1 when missing or invalid.
    """
    info = line[len(EXTINF) :]
    duration_str, _, title = info.partition(",")
    try:
        # Some exporters write fractional seconds
        duration = int(float(duration_str.strip()))
    except ValueError:
        duration = -1
    return duration, title.strip()


def parse_m3u(content: str, base_dir: Path | None = None) -> list[PlaylistEntry]:
    """Parse M3U content into playlist entries.

    Both plain and extended M3U are accepted. ``file://`` prefixes are
    stripped; relative paths are resolved against ``base_dir``.

    Args:
        content: Text content of the playlist.
        base_dir: Directory relative track paths are resolved against.

    Returns:
        Entries in playlist order (duplicates preserved).

    Example:
        >>> parse_m3u("#EXTM3U\\n#EXTINF:215,Daft Punk - Aerodynamic\\n/m/a.mp3\\n")
        [PlaylistEntry(source_path=PosixPath('/m/a.mp3'), title='Daft Punk - Aerodynamic', duration=215)]
    """
    entries: list[PlaylistEntry] = []
    duration, title = -1, ""

    for raw in content.splitlines():
        line = raw.strip()
        if not line:
            continue
        if line.startswith(EXTINF):
            duration, title = _parse_extinf(line)
            continue
        if line.startswith("#"):
            continue

        location = line.removeprefix("file://")
        path = Path(location)
        if not path.is_absolute() and base_dir is not None:
            path = base_dir / path

        entries.append(PlaylistEntry(source_path=path, title=title, duration=duration))
        duration, title = -1, ""

    return entries


def read_m3u(path: Path, name: str | None = None) -> Playlist:
    """Read a playlist file.

    Args:
        path: Path of the ``.m3u`` file.
        name: Playlist name to use (defaults to the file name).

    Returns:
        The parsed playlist.

    Raises:
        PlaylistReadError: If the file cannot be read or decoded.
    """
    try:
        content = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise PlaylistReadError(f"Cannot read playlist {path}: {e}") from e

    entries = parse_m3u(content, base_dir=path.parent)
    logger.debug("Read %d entries from %s", len(entries), path)
    return Playlist(name=name or path.name, entries=entries)


def generate_m3u(tracks: list[SourceItem]) -> str:
    """Generate destination M3U content.

    Track paths are the items' sanitized relative paths, which are relative
    to the destination root where the playlist is written.

    Args:
        tracks: Source Items in playlist order.

    Returns:
        M3U file content as a string.

    Example:
        >>> content = generate_m3u([item])
        >>> print(content)
        #EXTM3U
        #EXTINF:215,Daft Punk - Aerodynamic
        Daft Punk/Discovery/03 Aerodynamic.mp3
    """
    lines = [EXTM3U]

    for item in tracks:
        duration = (
            int(item.duration_seconds) if item.duration_seconds is not None else -1
        )
        lines.append(f"{EXTINF}{duration},{item.display_title}")
        lines.append(item.relative_path)

    # Ensure trailing newline
    return "\n".join(lines) + "\n"


def write_m3u(path: Path, content: str) -> Path:
    """Write playlist content and flush it to disk.

    Args:
        path: Destination file path.
        content: M3U content from generate_m3u().

    Returns:
        The written path.
    """
    with path.open("w", encoding="utf-8") as f:
        f.write(content)
        f.flush()
        os.fsync(f.fileno())
    return path
