"""
Tests for workspace storage.

Tests cover:
- BuildListStore load/save, including malformed lists
- ArtifactStore deletion and path safety
- stable/nightly symlink refresh
"""

import json
import os
from datetime import datetime, timezone

import pytest

from buildmirror.builds.models import BuildRecord
from buildmirror.errors import ArtifactDeletionError, BuildListError
from buildmirror.storage.workspace import (
    ArtifactStore,
    BuildListStore,
    newest_targets,
    update_symlinks,
)
from helpers import make_build

NOW = datetime(2026, 1, 7, 12, 0, tzinfo=timezone.utc)


class TestBuildListStore:
    """Tests for reading and writing builds.json."""

    def test_load_missing_file_is_empty(self, tmp_path):
        assert BuildListStore(tmp_path).load() == []

    def test_load_preserves_order(self, workspace, corpus):
        builds = BuildListStore(workspace).load()

        assert [b.key for b in builds] == [b.key for b in corpus]

    def test_save_then_load(self, tmp_path):
        store = BuildListStore(tmp_path)
        builds = [make_build(NOW, 0, langs=["en"]), make_build(NOW, 3, prerelease=False)]

        store.save(builds)

        assert store.load() == builds
        assert [b.extra for b in store.load()] == [{"langs": ["en"]}, {}]

    def test_save_writes_entries_verbatim(self, tmp_path):
        """Unknown fields and odd values survive a save untouched."""
        entries = [
            {"build_number": "2026-01-07", "prerelease": True, "langs": ["en"], "sha": "abc"},
            {"prerelease": 1, "build_number": "experimental-foo", "created_at": "soon"},
        ]
        (tmp_path / "builds.json").write_text(json.dumps(entries))
        store = BuildListStore(tmp_path)

        store.save(store.load())

        assert json.loads((tmp_path / "builds.json").read_text()) == entries

    def test_save_leaves_no_temp_files(self, tmp_path):
        BuildListStore(tmp_path).save([make_build(NOW, 0)])

        assert [p.name for p in tmp_path.iterdir()] == ["builds.json"]

    def test_save_replaces_existing_list(self, workspace):
        store = BuildListStore(workspace)

        store.save([])

        assert json.loads((workspace / "builds.json").read_text()) == []

    def test_save_creates_workspace(self, tmp_path):
        target = tmp_path / "new_workspace"

        BuildListStore(target).save([make_build(NOW, 0)])

        assert (target / "builds.json").exists()

    @pytest.mark.parametrize(
        "content",
        [
            "{not json",
            "",
            '{"build_number": "2026-01-07"}',
            '"builds"',
            '[{"build_number": "2026-01-07"}, 3]',
            '[["2026-01-07"]]',
        ],
    )
    def test_malformed_list_raises(self, tmp_path, content):
        """Anything but an array of objects is rejected."""
        (tmp_path / "builds.json").write_text(content)

        with pytest.raises(BuildListError):
            BuildListStore(tmp_path).load()

    def test_unreadable_list_raises(self, tmp_path):
        """A builds.json that cannot be read is a BuildListError."""
        (tmp_path / "builds.json").mkdir()

        with pytest.raises(BuildListError):
            BuildListStore(tmp_path, max_retries=0, retry_delay=0).load()

    def test_write_failure_raises(self, tmp_path, monkeypatch):
        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("buildmirror.storage.workspace.os.replace", broken_replace)

        with pytest.raises(BuildListError, match="disk full"):
            BuildListStore(tmp_path, max_retries=0, retry_delay=0).save([make_build(NOW, 0)])

        assert list(tmp_path.iterdir()) == []


class TestArtifactStore:
    """Tests for deleting build data."""

    def test_delete_directory(self, workspace):
        store = ArtifactStore(workspace)

        assert store.delete("2026-01-06") is True
        assert not (workspace / "data" / "2026-01-06").exists()
        assert (workspace / "data" / "2026-01-05").exists()

    def test_delete_missing_returns_false(self, tmp_path):
        assert ArtifactStore(tmp_path).delete("2026-01-06") is False

    def test_delete_plain_file(self, tmp_path):
        (tmp_path / "data").mkdir()
        (tmp_path / "data" / "2026-01-06").write_text("{}")

        assert ArtifactStore(tmp_path).delete("2026-01-06") is True
        assert not (tmp_path / "data" / "2026-01-06").exists()

    def test_delete_failure_raises(self, workspace, monkeypatch):
        def broken_rmtree(path):
            raise OSError("Permission denied")

        monkeypatch.setattr("buildmirror.storage.workspace.shutil.rmtree", broken_rmtree)
        store = ArtifactStore(workspace, max_retries=0, retry_delay=0)

        with pytest.raises(ArtifactDeletionError) as exc_info:
            store.delete("2026-01-06")

        assert exc_info.value.build_number == "2026-01-06"
        assert "Permission denied" in str(exc_info.value)

    def test_delete_retries_transient_failure(self, workspace, monkeypatch):
        """A failure that clears up on retry still removes the build."""
        import shutil

        real_rmtree = shutil.rmtree
        calls = []

        def flaky_rmtree(path):
            calls.append(path)
            if len(calls) == 1:
                raise OSError("Device busy")
            real_rmtree(path)

        monkeypatch.setattr("buildmirror.storage.workspace.shutil.rmtree", flaky_rmtree)
        store = ArtifactStore(workspace, max_retries=2, retry_delay=0)

        assert store.delete("2026-01-06") is True
        assert len(calls) == 2
        assert not (workspace / "data" / "2026-01-06").exists()

    @pytest.mark.parametrize("build_number", ["", ".", "..", "../builds.json", "a/b", "a\\b"])
    def test_unsafe_build_numbers_rejected(self, tmp_path, build_number):
        with pytest.raises(ArtifactDeletionError):
            ArtifactStore(tmp_path).path_for(build_number)

    @pytest.mark.parametrize("build_number", ["stable", "nightly"])
    def test_symlink_names_rejected(self, workspace, build_number):
        with pytest.raises(ArtifactDeletionError):
            ArtifactStore(workspace).delete(build_number)

        assert (workspace / "data" / build_number).is_symlink()

    def test_path_for(self, tmp_path):
        assert ArtifactStore(tmp_path).path_for("2026-01-06") == tmp_path / "data" / "2026-01-06"


class TestSymlinks:
    """Tests for the stable/nightly symlinks."""

    def test_newest_targets(self, corpus):
        assert newest_targets(corpus) == {"stable": "0.0.0", "nightly": "2026-01-07"}

    def test_newest_targets_without_stable(self):
        builds = [make_build(NOW, 0), make_build(NOW, 1)]

        assert newest_targets(builds) == {"stable": None, "nightly": "2026-01-07"}

    def test_links_created(self, tmp_path):
        builds = [make_build(NOW, 0), make_build(NOW, 2, prerelease=False)]

        applied = update_symlinks(tmp_path, builds)

        assert applied == {"stable": "2026-01-05", "nightly": "2026-01-07"}
        assert os.readlink(tmp_path / "data" / "stable") == "2026-01-05"
        assert os.readlink(tmp_path / "data" / "nightly") == "2026-01-07"

    def test_links_replaced(self, workspace):
        builds = [make_build(NOW, 1), BuildRecord.from_dict({"build_number": "0.2.0"})]

        update_symlinks(workspace, builds)

        assert os.readlink(workspace / "data" / "nightly") == "2026-01-06"
        assert os.readlink(workspace / "data" / "stable") == "0.2.0"

    def test_real_directory_not_replaced(self, tmp_path):
        (tmp_path / "data" / "nightly").mkdir(parents=True)
        builds = [make_build(NOW, 0), make_build(NOW, 2, prerelease=False)]

        applied = update_symlinks(tmp_path, builds)

        assert applied["nightly"] is None
        assert applied["stable"] == "2026-01-05"
        assert (tmp_path / "data" / "nightly").is_dir()
        assert not (tmp_path / "data" / "nightly").is_symlink()

    def test_dry_run_touches_nothing(self, workspace):
        applied = update_symlinks(workspace, [make_build(NOW, 3)], dry_run=True)

        assert applied == {"stable": None, "nightly": None}
        assert os.readlink(workspace / "data" / "nightly") == "2026-01-07"

    def test_dangling_link_removed_when_kind_is_gone(self, workspace):
        """A stable link to deleted data goes away when no stable build is left."""
        (workspace / "data" / "0.0.0" / "all.json").unlink()
        (workspace / "data" / "0.0.0").rmdir()

        applied = update_symlinks(workspace, [make_build(NOW, 1)])

        assert applied["stable"] is None
        assert not (workspace / "data" / "stable").is_symlink()
        assert os.readlink(workspace / "data" / "nightly") == "2026-01-06"

    def test_dangling_link_kept_in_dry_run(self, workspace):
        (workspace / "data" / "0.0.0" / "all.json").unlink()
        (workspace / "data" / "0.0.0").rmdir()

        update_symlinks(workspace, [make_build(NOW, 1)], dry_run=True)

        assert (workspace / "data" / "stable").is_symlink()

    def test_missing_kind_keeps_old_link(self, workspace):
        """Without any stable build the stable link is left as it was."""
        update_symlinks(workspace, [make_build(NOW, 1)])

        assert os.readlink(workspace / "data" / "stable") == "0.0.0"
        assert os.readlink(workspace / "data" / "nightly") == "2026-01-06"
