"""Tests for scoped temporary resources."""

import threading

import pytest

from component_harvester._fetch.temp import CleanupHandle, TempResources


class TestTempResources:
    def test_paths_created_under_root(self, tmp_path):
        with TempResources(tmp_path) as temps:
            archive = temps.create_file()
            target = temps.create_dir()
            assert archive.is_file()
            assert target.is_dir()
            assert archive.parent == tmp_path
            assert target.parent == tmp_path
            assert archive != target

    def test_released_on_exit(self, tmp_path):
        with TempResources(tmp_path) as temps:
            archive = temps.create_file()
            target = temps.create_dir()
            (target / "nested").mkdir()
            (target / "nested" / "file.txt").write_text("data")
        assert not archive.exists()
        assert not target.exists()
        assert list(tmp_path.iterdir()) == []

    def test_released_on_exception(self, tmp_path):
        with pytest.raises(RuntimeError):
            with TempResources(tmp_path) as temps:
                temps.create_file()
                temps.create_dir()
                raise RuntimeError("boom")
        assert list(tmp_path.iterdir()) == []

    def test_adopted_path_survives_scope(self, tmp_path):
        with TempResources(tmp_path) as temps:
            archive = temps.create_file()
            target = temps.create_dir()
            handle = temps.adopt(target)
            assert temps.owned == [archive]
        assert not archive.exists()
        assert target.is_dir()

        handle.cleanup()
        assert not target.exists()
        assert handle.released

    def test_adopt_foreign_path(self, tmp_path):
        with TempResources(tmp_path) as temps:
            with pytest.raises(ValueError):
                temps.adopt(tmp_path / "not-mine")

    def test_release_tolerates_removed_paths(self, tmp_path):
        temps = TempResources(tmp_path)
        archive = temps.create_file()
        archive.unlink()
        temps.release()
        assert temps.owned == []

    def test_prefix(self, tmp_path):
        with TempResources(tmp_path, prefix="conda-") as temps:
            assert temps.create_file(suffix=".conda").name.startswith("conda-")


class TestCleanupHandle:
    def test_idempotent(self, tmp_path):
        target = tmp_path / "dir"
        target.mkdir()
        handle = CleanupHandle([target])
        handle.cleanup()
        handle.cleanup()
        assert not target.exists()

    def test_concurrent_cleanup(self, tmp_path):
        target = tmp_path / "dir"
        target.mkdir()
        handle = CleanupHandle([target])

        threads = [threading.Thread(target=handle.cleanup) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert handle.released
        assert not target.exists()
