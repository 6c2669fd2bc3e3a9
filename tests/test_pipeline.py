"""Tests for the mirror service."""

import logging
from pathlib import Path

import pytest
from conftest import FakeInspector, FakeNormalizer, md5_of, write_m3u_file
from playmirror.config import SyncConfig
from playmirror.exceptions import (
    CancellationError,
    NormalizationError,
    PlaylistReadError,
)
from playmirror.models.cancel import CancelToken
from playmirror.models.enums import AudioFormat, ItemStatus, Phase
from playmirror.services.executor import SyncExecutor
from playmirror.services.fingerprint import FingerprintStore
from playmirror.services.manifest import ManifestBuilder
from playmirror.services.pipeline import MirrorService
from playmirror.services.playlists import M3UDirectorySource

ONE = "Daft Punk/Discovery/01 One More Time.mp3"
AERO = "Daft Punk/Discovery/03 Aerodynamic.mp3"
SO_WHAT = "Miles Davis/Kind of Blue/01 So What.m4a"


class CancellingNormalizer(FakeNormalizer):
    """Normalizer that requests cancellation while the first item runs."""

    def __init__(self, token: CancelToken) -> None:
        super().__init__()
        self.token = token

    def normalize(self, path: Path) -> None:
        super().normalize(path)
        self.token.cancel()


@pytest.fixture
def lists(tmp_path: Path, library: Path) -> Path:
    """Two playlists sharing a track."""
    root = tmp_path / "lists"
    write_m3u_file(root / "BEST.m3u", [library / AERO, library / SO_WHAT])
    write_m3u_file(root / "RECENT.m3u", [library / ONE, library / AERO])
    return root


@pytest.fixture
def config(library: Path, dest: Path) -> SyncConfig:
    return SyncConfig(
        source_root=library,
        dest_root=dest,
        concurrency=2,
        inspect_concurrency=2,
    )


@pytest.fixture
def normalizer() -> FakeNormalizer:
    return FakeNormalizer()


def make_service(
    config: SyncConfig, lists: Path, normalizer: FakeNormalizer
) -> MirrorService:
    """Create a service with fake inspection and normalization."""
    return MirrorService(
        config,
        M3UDirectorySource(lists),
        builder=ManifestBuilder(
            config.source_root,
            inspector=FakeInspector(formats={"01 So What.m4a": AudioFormat.ALAC}),
        ),
        executor=SyncExecutor(config.dest_root, normalizer=normalizer),
    )


@pytest.fixture
def service(
    config: SyncConfig, lists: Path, normalizer: FakeNormalizer
) -> MirrorService:
    return make_service(config, lists, normalizer)


class TestMirror:
    """Tests for a complete mirror run."""

    def test_first_run_copies_everything(
        self,
        service: MirrorService,
        library: Path,
        dest: Path,
        normalizer: FakeNormalizer,
    ) -> None:
        """Every unique track is copied once, fingerprinted and normalized."""
        result = service.mirror_all()

        assert result.copied_count == 3
        assert result.up_to_date_count == 0
        assert not result.cancelled
        for relative in (ONE, AERO, SO_WHAT):
            copy = dest / relative
            assert copy.read_bytes() == (library / relative).read_bytes()
            assert FingerprintStore().read(copy) == md5_of(copy.read_bytes())
        assert sorted(normalizer.normalized_names) == [
            "01 One More Time.mp3",
            "03 Aerodynamic.mp3",
        ]
        assert result.normalized_count == 2

    def test_playlists_reference_destination_paths(
        self, service: MirrorService, dest: Path
    ) -> None:
        """Destination playlists list the mirrored paths in playlist order."""
        result = service.mirror_all()

        assert result.playlist_paths == [dest / "BEST.m3u", dest / "RECENT.m3u"]
        best = (dest / "BEST.m3u").read_text(encoding="utf-8").splitlines()
        assert [line for line in best if not line.startswith("#")] == [AERO, SO_WHAT]
        assert "#EXTINF:180,Discovery - 03 Aerodynamic" in best

    def test_second_run_is_up_to_date(
        self, config: SyncConfig, lists: Path, dest: Path
    ) -> None:
        """An unchanged library copies nothing and removes nothing."""
        make_service(config, lists, FakeNormalizer()).mirror_all()
        mtime = (dest / AERO).stat().st_mtime_ns

        normalizer = FakeNormalizer()
        result = make_service(config, lists, normalizer).mirror_all()

        assert result.copied_count == 0
        assert result.up_to_date_count == 3
        assert result.removed == []
        assert normalizer.calls == []
        assert (dest / AERO).stat().st_mtime_ns == mtime

    def test_changed_source_is_recopied(
        self, service: MirrorService, library: Path, dest: Path
    ) -> None:
        """Only the changed track is copied again."""
        service.mirror_all()
        (library / ONE).write_bytes(b"one more time (remastered)")

        result = service.mirror_all()

        copied = [
            r.item.relative_path
            for r in result.item_results
            if r.status == ItemStatus.COPIED
        ]
        assert copied == [ONE]
        assert (dest / ONE).read_bytes() == b"one more time (remastered)"

    def test_leftovers_removed(
        self,
        service: MirrorService,
        dest: Path,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Files no playlist references are removed and logged."""
        (dest / "stale.mp3").write_bytes(b"old")
        (dest / "Old Artist").mkdir()
        (dest / "Old Artist" / "gone.mp3").write_bytes(b"old")
        (dest / "OLD.m3u").write_text("#EXTM3U\n", encoding="utf-8")

        with caplog.at_level(logging.INFO):
            result = service.mirror_all()

        assert sorted(result.removed) == sorted(
            ["stale.mp3", "Old Artist/gone.mp3", "Old Artist", "OLD.m3u"]
        )
        assert not (dest / "stale.mp3").exists()
        assert not (dest / "Old Artist").exists()
        assert not (dest / "OLD.m3u").exists()
        assert "Removed: stale.mp3" in caplog.text

    def test_dropped_track_removed(
        self, service: MirrorService, lists: Path, library: Path, dest: Path
    ) -> None:
        """A track removed from every playlist disappears from the mirror."""
        service.mirror_all()
        write_m3u_file(lists / "BEST.m3u", [library / AERO])

        result = service.mirror_all()

        assert result.removed == [SO_WHAT, "Miles Davis/Kind of Blue", "Miles Davis"]
        assert not (dest / "Miles Davis").exists()
        assert (dest / AERO).exists()

    def test_unicode_paths(self, tmp_path: Path, library: Path, dest: Path) -> None:
        """Non-ASCII source paths are mirrored under sanitized names."""
        source = library / "Björk" / "Homogenic" / "Jóga.m4a"
        source.parent.mkdir(parents=True)
        source.write_bytes(b"joga")
        lists = tmp_path / "unicode-lists"
        write_m3u_file(lists / "Música.m3u", [source])
        config = SyncConfig(source_root=library, dest_root=dest, concurrency=1)

        make_service(config, lists, FakeNormalizer()).mirror_all()

        assert (dest / "Bjork/Homogenic/Joga.m4a").read_bytes() == b"joga"
        playlist = (dest / "Música.m3u").read_text(encoding="utf-8")
        assert "Bjork/Homogenic/Joga.m4a\n" in playlist

    def test_creates_destination_root(
        self, library: Path, lists: Path, tmp_path: Path
    ) -> None:
        """A missing destination root is created."""
        config = SyncConfig(source_root=library, dest_root=tmp_path / "new" / "dest")

        make_service(config, lists, FakeNormalizer()).mirror_all()

        assert (tmp_path / "new" / "dest" / AERO).exists()

    def test_progress_phases_in_order(self, service: MirrorService) -> None:
        """Progress moves through every phase once, in order."""
        phases: list[Phase] = []
        for progress in service.mirror():
            if not phases or phases[-1] != progress.phase:
                phases.append(progress.phase)

        assert phases == [
            Phase.EXPORTING,
            Phase.INSPECTING,
            Phase.SYNCING,
            Phase.WRITING,
            Phase.RECONCILING,
        ]
        assert service.get_result() is not None

    def test_sync_progress_carries_item_results(self, service: MirrorService) -> None:
        """Every syncing update reports the item that finished."""
        updates = [p for p in service.mirror() if p.phase == Phase.SYNCING]

        assert [p.current for p in updates] == [1, 2, 3]
        assert all(p.total == 3 for p in updates)
        assert {p.item_result.item.relative_path for p in updates} == {
            ONE,
            AERO,
            SO_WHAT,
        }


class TestMirrorFailures:
    """Tests for failed and cancelled runs."""

    def test_item_failure_propagates(
        self, config: SyncConfig, lists: Path, dest: Path
    ) -> None:
        """A failing item ends the run before playlists are written."""
        (dest / "stale.mp3").write_bytes(b"old")
        service = make_service(config, lists, FakeNormalizer(fail=True))

        with pytest.raises(NormalizationError):
            service.mirror_all()

        assert not (dest / "BEST.m3u").exists()
        assert (dest / "stale.mp3").exists()
        assert not (dest / AERO).exists()

    def test_setup_failure(self, config: SyncConfig, tmp_path: Path) -> None:
        """A missing playlist directory stops the run before any work."""
        service = make_service(config, tmp_path / "missing", FakeNormalizer())

        with pytest.raises(PlaylistReadError):
            service.mirror_all()

        assert list(config.dest_root.iterdir()) == []

    def test_cancelled_before_start(self, service: MirrorService) -> None:
        """A token cancelled up front stops the run immediately."""
        token = CancelToken()
        token.cancel()

        with pytest.raises(CancellationError):
            service.mirror_all(token)

    def test_cancelled_during_sync(
        self, library: Path, lists: Path, dest: Path
    ) -> None:
        """Cancelling mid-sync drains running items and skips later phases."""
        (dest / "stale.mp3").write_bytes(b"old")
        token = CancelToken()
        config = SyncConfig(source_root=library, dest_root=dest, concurrency=1)
        service = make_service(config, lists, CancellingNormalizer(token))

        result = service.mirror_all(token)

        assert result.cancelled is True
        assert result.copied_count == 1
        assert result.playlist_paths == []
        assert result.removed == []
        assert not (dest / "BEST.m3u").exists()
        assert (dest / "stale.mp3").exists()
        copied = result.item_results[0].item
        assert FingerprintStore().read(dest / copied.relative_path) == (
            copied.fingerprint
        )

    def test_resume_after_cancel(self, library: Path, lists: Path, dest: Path) -> None:
        """The next run copies only what the cancelled run did not."""
        token = CancelToken()
        config = SyncConfig(source_root=library, dest_root=dest, concurrency=1)
        make_service(config, lists, CancellingNormalizer(token)).mirror_all(token)

        result = make_service(config, lists, FakeNormalizer()).mirror_all()

        assert result.copied_count == 2
        assert result.up_to_date_count == 1


class TestPlan:
    """Tests for computing a plan without side effects."""

    def test_plan_on_empty_destination(
        self, service: MirrorService, dest: Path, normalizer: FakeNormalizer
    ) -> None:
        """Every item needs syncing and nothing is written."""
        plan = service.plan()

        assert [i.relative_path for i in plan.to_sync] == [AERO, SO_WHAT, ONE]
        assert plan.leftovers == []
        assert plan.up_to_date_count == 0
        assert list(dest.iterdir()) == []
        assert normalizer.calls == []

    def test_plan_after_mirror(self, service: MirrorService, dest: Path) -> None:
        """Only leftovers are reported after a complete run."""
        service.mirror_all()
        (dest / "stale.mp3").write_bytes(b"old")

        plan = service.plan()

        assert plan.to_sync == []
        assert plan.up_to_date_count == 3
        assert plan.leftovers == ["stale.mp3"]
        assert (dest / "stale.mp3").exists()

    def test_plan_missing_destination(
        self, library: Path, lists: Path, tmp_path: Path
    ) -> None:
        """A missing destination is planned without being created."""
        config = SyncConfig(source_root=library, dest_root=tmp_path / "nowhere")

        plan = make_service(config, lists, FakeNormalizer()).plan()

        assert len(plan.to_sync) == 3
        assert not (tmp_path / "nowhere").exists()
