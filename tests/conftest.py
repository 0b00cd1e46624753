"""Shared fixtures for build mirror tests."""

import json
from pathlib import Path

import pytest

from buildmirror.builds.models import BuildRecord
from buildmirror.utils.config import reset_config
from helpers import corpus_entries


@pytest.fixture(autouse=True)
def _fresh_config(monkeypatch):
    """Isolate tests from the caller's environment and cached config."""
    for name in (
        "WORKSPACE_DIR",
        "DATA_BRANCH",
        "BUILDMIRROR_ENVIRONMENT",
        "BUILDMIRROR_DELETE_WORKERS",
        "BUILDMIRROR_MAX_RETRIES",
        "BUILDMIRROR_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def corpus() -> list[BuildRecord]:
    """Simulated build history."""
    return [BuildRecord.from_dict(e) for e in corpus_entries()]


@pytest.fixture
def workspace(tmp_path) -> Path:
    """
    Workspace with the simulated corpus on disk.

    Every build gets a data directory with an all.json file, and the
    stable/nightly symlinks point at the newest builds.
    """
    root = tmp_path / "data_workspace"
    data_dir = root / "data"
    data_dir.mkdir(parents=True)

    entries = corpus_entries()
    (root / "builds.json").write_text(json.dumps(entries))

    for entry in entries:
        build_dir = data_dir / entry["build_number"]
        build_dir.mkdir()
        (build_dir / "all.json").write_text(json.dumps({"build_number": entry["build_number"]}))

    (data_dir / "nightly").symlink_to(entries[0]["build_number"], target_is_directory=True)
    (data_dir / "stable").symlink_to("0.0.0", target_is_directory=True)
    return root
