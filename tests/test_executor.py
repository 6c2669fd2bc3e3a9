"""Tests for the per-item sync executor."""

from pathlib import Path
from unittest.mock import patch

import pytest
from playmirror.exceptions import CopyError, FingerprintError, NormalizationError
from playmirror.models.enums import AudioFormat, ItemStatus
from playmirror.services.executor import SyncExecutor, temp_path_for
from playmirror.services.fingerprint import FingerprintStore

from conftest import FakeNormalizer


@pytest.fixture
def normalizer() -> FakeNormalizer:
    """Create a recording normalizer."""
    return FakeNormalizer()


@pytest.fixture
def executor(dest: Path, normalizer: FakeNormalizer) -> SyncExecutor:
    """Create an executor writing into the destination fixture."""
    return SyncExecutor(dest, normalizer=normalizer)


class TestTempPath:
    """Tests for temp_path_for."""

    def test_hidden_sibling_keeps_suffix(self) -> None:
        """The temp file is hidden and keeps the audio suffix."""
        tmp = temp_path_for(Path("/dest/Artist/01 Song.mp3"))
        assert tmp == Path("/dest/Artist/.01 Song.playmirror-tmp.mp3")


class TestSyncExecutorCopy:
    """Tests for copying new and stale items."""

    def test_copies_new_item(
        self, executor: SyncExecutor, dest: Path, make_item
    ) -> None:
        """A new item is copied, normalized and fingerprinted."""
        item = make_item("Artist/Album/01 Song.mp3", b"mp3 data")

        result = executor.sync_item(item)

        target = dest / "Artist/Album/01 Song.mp3"
        assert result.status == ItemStatus.COPIED
        assert result.normalized is True
        assert target.read_bytes() == b"mp3 data"
        assert FingerprintStore().read(target) == item.fingerprint

    def test_creates_directory_chain(
        self, executor: SyncExecutor, dest: Path, make_item
    ) -> None:
        """Missing destination directories are created."""
        item = make_item("A/B/C/D/song.mp3")
        executor.sync_item(item)
        assert (dest / "A/B/C/D").is_dir()

    def test_no_temp_file_left(
        self, executor: SyncExecutor, dest: Path, make_item
    ) -> None:
        """Only the final file remains after a copy."""
        executor.sync_item(make_item("Artist/song.mp3"))
        assert sorted(p.name for p in (dest / "Artist").iterdir()) == ["song.mp3"]

    def test_normalizes_temp_file(
        self, executor: SyncExecutor, normalizer: FakeNormalizer, make_item
    ) -> None:
        """Normalization runs on the temp file, before the final rename."""
        executor.sync_item(make_item("Artist/song.mp3"))

        (path,) = normalizer.calls
        assert path.name == ".song.playmirror-tmp.mp3"

    @pytest.mark.parametrize(
        ("audio_format", "normalized"),
        [
            (AudioFormat.MP3, True),
            (AudioFormat.AAC, True),
            (AudioFormat.UNKNOWN, True),
            (AudioFormat.ALAC, False),
        ],
    )
    def test_normalization_by_format(
        self,
        executor: SyncExecutor,
        normalizer: FakeNormalizer,
        make_item,
        audio_format: AudioFormat,
        normalized: bool,
    ) -> None:
        """Every format except Apple Lossless is normalized."""
        item = make_item("Artist/song.m4a", audio_format=audio_format)

        result = executor.sync_item(item)

        assert result.normalized is normalized
        assert len(normalizer.calls) == (1 if normalized else 0)

    def test_normalize_disabled(self, dest: Path, make_item) -> None:
        """No normalization happens when disabled."""
        normalizer = FakeNormalizer()
        executor = SyncExecutor(dest, normalizer=normalizer, normalize=False)

        result = executor.sync_item(make_item("Artist/song.mp3"))

        assert result.status == ItemStatus.COPIED
        assert result.normalized is False
        assert normalizer.calls == []

    def test_recopies_changed_source(
        self, executor: SyncExecutor, dest: Path, make_item
    ) -> None:
        """A changed source fingerprint triggers a new copy."""
        executor.sync_item(make_item("Artist/song.mp3", b"version 1"))
        item = make_item("Artist/song.mp3", b"version 2")

        result = executor.sync_item(item)

        assert result.status == ItemStatus.COPIED
        assert (dest / "Artist/song.mp3").read_bytes() == b"version 2"
        assert FingerprintStore().read(dest / "Artist/song.mp3") == item.fingerprint

    def test_recopies_file_without_fingerprint(
        self, executor: SyncExecutor, dest: Path, make_item
    ) -> None:
        """A destination file without fingerprint is overwritten."""
        (dest / "Artist").mkdir()
        (dest / "Artist/song.mp3").write_bytes(b"unknown origin")

        result = executor.sync_item(make_item("Artist/song.mp3", b"source"))

        assert result.status == ItemStatus.COPIED
        assert (dest / "Artist/song.mp3").read_bytes() == b"source"


class TestSyncExecutorUpToDate:
    """Tests for skipping up-to-date items."""

    def test_second_sync_is_up_to_date(
        self, executor: SyncExecutor, normalizer: FakeNormalizer, make_item
    ) -> None:
        """Syncing twice copies once."""
        item = make_item("Artist/song.mp3")

        executor.sync_item(item)
        result = executor.sync_item(item)

        assert result.status == ItemStatus.UP_TO_DATE
        assert result.normalized is False
        assert len(normalizer.calls) == 1

    def test_up_to_date_leaves_file_untouched(
        self, executor: SyncExecutor, dest: Path, make_item
    ) -> None:
        """An up-to-date destination is not rewritten."""
        item = make_item("Artist/song.mp3")
        executor.sync_item(item)
        target = dest / "Artist/song.mp3"
        mtime = target.stat().st_mtime_ns

        executor.sync_item(item)

        assert target.stat().st_mtime_ns == mtime

    def test_needs_sync(self, executor: SyncExecutor, make_item) -> None:
        """needs_sync reflects the destination state."""
        item = make_item("Artist/song.mp3")
        assert executor.needs_sync(item) is True
        executor.sync_item(item)
        assert executor.needs_sync(item) is False


class TestSyncExecutorFailures:
    """Tests for failure handling."""

    def test_normalization_failure(self, dest: Path, make_item) -> None:
        """A failed normalization leaves no file and no fingerprint."""
        executor = SyncExecutor(dest, normalizer=FakeNormalizer(fail=True))
        item = make_item("Artist/song.mp3")

        with pytest.raises(NormalizationError) as exc_info:
            executor.sync_item(item)

        assert exc_info.value.source_path == item.source_path
        assert not (dest / "Artist/song.mp3").exists()
        assert list((dest / "Artist").iterdir()) == []
        assert executor.needs_sync(item) is True

    def test_normalization_failure_keeps_old_copy(
        self, dest: Path, make_item
    ) -> None:
        """A failed update leaves the previous copy and fingerprint in place."""
        old = make_item("Artist/song.mp3", b"old")
        SyncExecutor(dest, normalizer=FakeNormalizer()).sync_item(old)
        new = make_item("Artist/song.mp3", b"new")

        with pytest.raises(NormalizationError):
            SyncExecutor(dest, normalizer=FakeNormalizer(fail=True)).sync_item(new)

        target = dest / "Artist/song.mp3"
        assert target.read_bytes() == b"old"
        assert FingerprintStore().read(target) == old.fingerprint

    def test_missing_source(self, executor: SyncExecutor, make_item) -> None:
        """An unreadable source raises CopyError with the source path."""
        item = make_item("Artist/song.mp3")
        item.source_path.unlink()

        with pytest.raises(CopyError) as exc_info:
            executor.sync_item(item)

        assert exc_info.value.source_path == item.source_path

    def test_directory_creation_failure(
        self, executor: SyncExecutor, dest: Path, make_item
    ) -> None:
        """A file in place of a directory raises CopyError."""
        (dest / "Artist").write_bytes(b"not a directory")

        with pytest.raises(CopyError, match="Cannot create directory"):
            executor.sync_item(make_item("Artist/song.mp3"))

    def test_fingerprint_write_failure(
        self, executor: SyncExecutor, make_item
    ) -> None:
        """A failed fingerprint write is reported and the item stays stale."""
        item = make_item("Artist/song.mp3")

        with (
            patch.object(
                FingerprintStore,
                "write",
                side_effect=FingerprintError("Cannot write fingerprint"),
            ),
            pytest.raises(FingerprintError) as exc_info,
        ):
            executor.sync_item(item)

        assert exc_info.value.source_path == item.source_path
        assert executor.needs_sync(item) is True

    def test_failed_recopy_drops_previous_fingerprint(
        self, executor: SyncExecutor, dest: Path, make_item
    ) -> None:
        """The replaced copy does not keep the fingerprint of the old one."""
        version_1 = make_item("Artist/song.mp3", b"version 1")
        executor.sync_item(version_1)

        with (
            patch.object(
                FingerprintStore,
                "write",
                side_effect=FingerprintError("Cannot write fingerprint"),
            ),
            pytest.raises(FingerprintError),
        ):
            executor.sync_item(make_item("Artist/song.mp3", b"version 2"))

        assert (dest / "Artist/song.mp3").read_bytes() == b"version 2"
        assert FingerprintStore().read(dest / "Artist/song.mp3") is None
        assert executor.needs_sync(version_1) is True
