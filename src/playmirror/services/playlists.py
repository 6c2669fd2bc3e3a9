"""Playlist sources and destination playlist writing."""

from __future__ import annotations

import logging
import subprocess
import tempfile
from pathlib import Path
from typing import Protocol

from playmirror.config import ExportConfig
from playmirror.exceptions import (
    ExportError,
    PlaylistReadError,
    PlaylistWriteError,
    SetupError,
)
from playmirror.models.track import Manifest, Playlist
from playmirror.utils.filename import clean_filename
from playmirror.utils.m3u import generate_m3u, read_m3u, write_m3u

logger = logging.getLogger(__name__)


class PlaylistSourceProtocol(Protocol):
    """Protocol for playlist sources.

    A source supplies the playlists that decide what gets mirrored.
    """

    def load(self) -> list[Playlist]:
        """Load all playlists, raising SetupError on failure."""
        ...


class M3UDirectorySource:
    """Reads every ``.m3u`` file below a directory.

    Playlists are named after their (filesystem-safe) file names, which is
    also the name they are written under in the destination.

    Example:
        >>> playlists = M3UDirectorySource(Path("~/Playlists")).load()
        >>> [p.name for p in playlists]
        ['BEST.m3u', 'RECENT.m3u']
    """

    def __init__(self, directory: Path) -> None:
        self._directory = directory

    def load(self) -> list[Playlist]:
        """Load all playlists.

        Raises:
            PlaylistReadError: If the directory or a playlist is unreadable.
            SetupError: If no playlists are found or two share a name.
        """
        if not self._directory.is_dir():
            raise PlaylistReadError(f"Playlist directory not found: {self._directory}")

        playlists: list[Playlist] = []
        seen: dict[str, Path] = {}

        for path in sorted(self._directory.rglob("*.m3u")):
            if not path.is_file():
                continue
            name = clean_filename(path.name)
            if name in seen:
                raise SetupError(
                    f"Playlists {seen[name]} and {path} share the name {name}"
                )
            seen[name] = path
            playlists.append(read_m3u(path, name=name))

        if not playlists:
            # Mirroring nothing would reconcile the whole destination away
            raise SetupError(f"No playlists found in {self._directory}")

        logger.info("Read %d playlist(s) from %s", len(playlists), self._directory)
        return playlists


class ExporterPlaylistSource:
    """Runs an external playlist exporter and reads its output.

    The exporter (by default iTunesExport, a Java tool) writes one ``.m3u``
    file per selected playlist into a temporary directory, which is read
    like an M3UDirectorySource and removed afterwards.

    Example:
        >>> config = ExportConfig(
        ...     command=("java", "-jar", "itunesexport.jar", "-fileTypes=ALL"),
        ...     playlists=("BEST", "RECENT"),
        ... )
        >>> playlists = ExporterPlaylistSource(config).load()
    """

    def __init__(self, config: ExportConfig) -> None:
        self._config = config

    def _build_command(self, output_dir: Path) -> list[str]:
        """Build the exporter command line.

        Returns:
            Command list suitable for subprocess.run().
        """
        cmd = list(self._config.command)
        if self._config.playlists:
            cmd.append(f"-includePlaylist={','.join(self._config.playlists)}")
        cmd.append(f"-outputDir={output_dir}")
        return cmd

    def load(self) -> list[Playlist]:
        """Export and load the selected playlists.

        Raises:
            ExportError: If the exporter cannot run or fails.
            PlaylistReadError: If an exported playlist is unreadable.
            SetupError: If the exporter produced no playlists.
        """
        with tempfile.TemporaryDirectory(prefix="playmirror-") as tmp:
            output_dir = Path(tmp)
            cmd = self._build_command(output_dir)
            logger.info("Exporting playlists: %s", ", ".join(self._config.playlists))
            logger.debug("Running %s", cmd)

            try:
                result = subprocess.run(
                    cmd, capture_output=True, text=True, check=False
                )
            except OSError as e:
                raise ExportError(f"Failed to run playlist exporter: {e}") from e

            if result.returncode != 0:
                raise ExportError(
                    f"Playlist exporter failed with exit code {result.returncode}: "
                    f"{result.stderr.strip() or result.stdout.strip()}"
                )

            return M3UDirectorySource(output_dir).load()


class PlaylistWriter:
    """Writes the manifest's playlists into the destination root.

    Each entry points at its item's sanitized path relative to the
    destination root, with the item's duration and "Artist - Title".
    Unchanged playlists are not rewritten.
    """

    def write(self, dest_root: Path, manifest: Manifest) -> list[Path]:
        """Write every playlist of the manifest.

        Args:
            dest_root: Destination root directory.
            manifest: Manifest of the current run.

        Returns:
            Paths of all destination playlists, written or unchanged.
        """
        paths: list[Path] = []

        for playlist in manifest.playlists:
            items = [manifest.item_for(e.source_path) for e in playlist.entries]
            content = generate_m3u(items)
            path = dest_root / playlist.name

            if _is_unchanged(path, content):
                logger.debug("Playlist unchanged: %s", path.name)
            else:
                try:
                    write_m3u(path, content)
                except OSError as e:
                    raise PlaylistWriteError(
                        f"Cannot write playlist {path}: {e}"
                    ) from e
                logger.info("Wrote playlist %s (%d tracks)", path.name, len(items))

            paths.append(path)

        return paths


def _is_unchanged(path: Path, content: str) -> bool:
    """Check whether ``path`` already holds exactly ``content``."""
    try:
        return path.read_text(encoding="utf-8") == content
    except (OSError, UnicodeDecodeError):
        return False
