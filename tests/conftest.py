"""Test fixtures and configuration."""

import errno
import hashlib
import os
from pathlib import Path
from unittest.mock import patch

import pytest
from playmirror.exceptions import NormalizationError
from playmirror.models.enums import AudioFormat
from playmirror.models.track import SourceItem
from playmirror.services.inspector import TrackInfo


def md5_of(data: bytes) -> str:
    """Hex MD5 of some bytes."""
    return hashlib.md5(data).hexdigest()


def write_m3u_file(path: Path, tracks: list[Path]) -> Path:
    """Write a minimal extended M3U file referencing ``tracks``."""
    lines = ["#EXTM3U"]
    for track in tracks:
        lines.append(f"#EXTINF:-1,{track.stem}")
        lines.append(str(track))
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


class FakeInspector:
    """Inspector deriving format and tags from the file name.

    ``.mp3`` files are MP3 and ``.m4a`` files AAC unless listed in
    ``formats``. The artist is the parent directory, the title the stem.
    """

    def __init__(self, formats: dict[str, AudioFormat] | None = None) -> None:
        self.formats = formats or {}
        self.calls: list[Path] = []

    def inspect(self, path: Path) -> TrackInfo:
        self.calls.append(path)
        default = AudioFormat.MP3 if path.suffix == ".mp3" else AudioFormat.AAC
        return TrackInfo(
            format=self.formats.get(path.name, default),
            artist=path.parent.name,
            title=path.stem,
            duration_seconds=180.5,
        )


class FakeNormalizer:
    """Normalizer that records calls and optionally fails."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[Path] = []

    def normalize(self, path: Path) -> None:
        self.calls.append(path)
        if self.fail:
            raise NormalizationError(f"aacgain failed on {path}")

    @property
    def normalized_names(self) -> list[str]:
        """Final file names of normalized temp files."""
        return [
            p.name.removeprefix(".").replace(".playmirror-tmp", "") for p in self.calls
        ]


@pytest.fixture(autouse=True)
def fake_xattrs(request: pytest.FixtureRequest):
    """Replace extended attribute access with an in-memory store.

    Tests must not depend on the filesystem supporting user xattrs. Mirrors
    the kernel's errors: ENOENT for a missing file, ENODATA for a missing
    attribute. Attributes belong to the file, not the name: os.replace()
    moves them with the renamed file and drops those of the file it
    replaces. Tests marked ``real_xattrs`` use the real filesystem.
    """
    if request.node.get_closest_marker("real_xattrs"):
        yield None
        return

    attrs: dict[tuple[str, str], bytes] = {}
    real_replace = os.replace

    def getxattr(path: os.PathLike, attribute: str) -> bytes:
        if not Path(path).exists():
            raise OSError(errno.ENOENT, "No such file or directory", str(path))
        try:
            return attrs[(str(path), attribute)]
        except KeyError:
            raise OSError(errno.ENODATA, "No data available", str(path)) from None

    def setxattr(path: os.PathLike, attribute: str, value: bytes) -> None:
        if not Path(path).exists():
            raise OSError(errno.ENOENT, "No such file or directory", str(path))
        attrs[(str(path), attribute)] = value

    def replace(src: os.PathLike, dst: os.PathLike) -> None:
        real_replace(src, dst)
        for key in [k for k in attrs if k[0] in (str(src), str(dst))]:
            value = attrs.pop(key)
            if key[0] == str(src):
                attrs[(str(dst), key[1])] = value

    with (
        patch("playmirror.services.fingerprint.os.getxattr", getxattr, create=True),
        patch("playmirror.services.fingerprint.os.setxattr", setxattr, create=True),
        patch("playmirror.services.executor.os.replace", replace),
    ):
        yield attrs


@pytest.fixture
def library(tmp_path: Path) -> Path:
    """Create a small source library."""
    root = tmp_path / "library"
    files = {
        "Daft Punk/Discovery/01 One More Time.mp3": b"one more time",
        "Daft Punk/Discovery/03 Aerodynamic.mp3": b"aerodynamic",
        "Miles Davis/Kind of Blue/01 So What.m4a": b"so what",
    }
    for relative, data in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    return root


@pytest.fixture
def dest(tmp_path: Path) -> Path:
    """Create an empty destination root."""
    root = tmp_path / "dest"
    root.mkdir()
    return root


@pytest.fixture
def make_item(tmp_path: Path):
    """Factory creating a source file and its SourceItem."""

    def _make(
        relative_path: str,
        data: bytes = b"audio",
        audio_format: AudioFormat = AudioFormat.MP3,
    ) -> SourceItem:
        source = tmp_path / "src" / relative_path
        source.parent.mkdir(parents=True, exist_ok=True)
        source.write_bytes(data)
        return SourceItem(
            source_path=source,
            relative_path=relative_path,
            fingerprint=md5_of(data),
            format=audio_format,
            artist="Artist",
            title=source.stem,
            duration_seconds=200.0,
        )

    return _make
