"""
Workspace storage for the build mirror.

The workspace is a checkout of the data branch:

    <workspace>/builds.json        canonical build list (JSON array)
    <workspace>/data/<build>/      extracted data for one build
    <workspace>/data/stable        symlink to the newest stable build
    <workspace>/data/nightly       symlink to the newest nightly build

Committing and pushing the workspace is left to the surrounding workflow.
"""

from __future__ import annotations

import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Iterable

from loguru import logger

from buildmirror.builds.models import BuildRecord
from buildmirror.errors import ArtifactDeletionError, BuildListError
from buildmirror.utils.retry import retry_with_backoff

BUILDS_FILE = "builds.json"
DATA_DIR = "data"
SYMLINK_NAMES = ("stable", "nightly")


class BuildListStore:
    """
    Reads and writes the canonical ``builds.json``.

    A missing file is an empty list. Anything else that prevents reading
    or writing the list raises BuildListError.
    """

    def __init__(self, workspace_dir: str | Path, max_retries: int = 3, retry_delay: float = 1.0):
        self.workspace_dir = Path(workspace_dir)
        self.path = self.workspace_dir / BUILDS_FILE
        self._max_retries = max_retries
        self._retry_delay = retry_delay

    def load(self) -> list[BuildRecord]:
        """
        Load the build list.

        Returns:
            Builds in file order

        Raises:
            BuildListError: If the file is unreadable or malformed
        """
        if not self.path.exists():
            logger.info(f"No {BUILDS_FILE} at {self.path}, assuming empty")
            return []

        read = retry_with_backoff(
            max_retries=self._max_retries, base_delay=self._retry_delay
        )(self.path.read_text)

        try:
            content = read(encoding="utf-8")
        except OSError as e:
            raise BuildListError(f"Could not read {self.path}: {e}") from e

        try:
            entries = json.loads(content)
        except json.JSONDecodeError as e:
            raise BuildListError(f"{self.path} is not valid JSON: {e}") from e

        if not isinstance(entries, list):
            raise BuildListError(f"{self.path} must contain a JSON array")

        builds = []
        for position, entry in enumerate(entries):
            if not isinstance(entry, dict):
                raise BuildListError(
                    f"{self.path} entry {position} is {type(entry).__name__}, expected an object"
                )
            builds.append(BuildRecord.from_dict(entry))

        logger.info(f"Read {len(builds)} builds from {BUILDS_FILE}")
        return builds

    def save(self, builds: Iterable[BuildRecord]) -> None:
        """
        Replace the build list atomically.

        Writes to a temporary file in the workspace and renames it over
        ``builds.json`` so a failure never leaves a partial list behind.

        Raises:
            BuildListError: If the list cannot be written
        """
        payload = json.dumps([b.to_dict() for b in builds], separators=(",", ":"))

        write = retry_with_backoff(
            max_retries=self._max_retries, base_delay=self._retry_delay
        )(self._write_atomic)

        try:
            write(payload)
        except OSError as e:
            raise BuildListError(f"Could not write {self.path}: {e}") from e

    def _write_atomic(self, payload: str) -> None:
        self.workspace_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".builds-", suffix=".json", dir=self.workspace_dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class ArtifactStore:
    """Deletes per-build data directories under ``<workspace>/data``."""

    def __init__(self, workspace_dir: str | Path, max_retries: int = 3, retry_delay: float = 1.0):
        self.data_dir = Path(workspace_dir) / DATA_DIR
        self._max_retries = max_retries
        self._retry_delay = retry_delay

    def path_for(self, build_number: str) -> Path:
        """
        Directory holding a build's data.

        Raises:
            ArtifactDeletionError: If the build number would escape data/
        """
        name = str(build_number)
        if not name or name in (".", "..") or "/" in name or "\\" in name:
            raise ArtifactDeletionError(name, "unsafe build number for a directory name")
        if name in SYMLINK_NAMES:
            raise ArtifactDeletionError(name, "build number collides with a symlink name")
        return self.data_dir / name

    def delete(self, build_number: str) -> bool:
        """
        Remove a build's data directory.

        Args:
            build_number: Build whose data to remove

        Returns:
            True if something was removed, False if it did not exist

        Raises:
            ArtifactDeletionError: If removal fails after retries
        """
        path = self.path_for(build_number)
        if not path.exists() and not path.is_symlink():
            logger.debug(f"Nothing to remove for data/{build_number}")
            return False

        remove = retry_with_backoff(
            max_retries=self._max_retries, base_delay=self._retry_delay
        )(self._remove)

        try:
            remove(path)
        except OSError as e:
            raise ArtifactDeletionError(str(build_number), str(e)) from e

        logger.info(f"Removed: data/{build_number}")
        return True

    @staticmethod
    def _remove(path: Path) -> None:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()


def newest_targets(builds: Iterable[BuildRecord]) -> dict[str, str | None]:
    """
    Pick symlink targets for a build list sorted newest first.

    Returns:
        {"stable": build_number | None, "nightly": build_number | None}
    """
    targets: dict[str, str | None] = {"stable": None, "nightly": None}
    for build in builds:
        name = "nightly" if build.prerelease else "stable"
        if targets[name] is None:
            targets[name] = build.key
    return targets


def update_symlinks(workspace_dir: str | Path, builds: Iterable[BuildRecord], dry_run: bool = False) -> dict[str, str | None]:
    """
    Point ``data/stable`` and ``data/nightly`` at the newest builds.

    ``builds`` must be ordered newest first, as builds.json is. A real
    directory sitting where a link belongs is left alone. When no build of
    a kind remains, a link whose target is gone is removed.

    Args:
        workspace_dir: Workspace root
        builds: Build list, newest first
        dry_run: Report without touching the filesystem

    Returns:
        Mapping of link name to the target it now points at (None if skipped)
    """
    data_dir = Path(workspace_dir) / DATA_DIR
    targets = newest_targets(builds)
    applied: dict[str, str | None] = {}

    for name in SYMLINK_NAMES:
        target = targets[name]
        applied[name] = None
        link_path = data_dir / name

        if target is None:
            logger.warning(f"No {name} build found, skipping symlink")
            if link_path.is_symlink() and not link_path.exists():
                if dry_run:
                    logger.info(f"(DRY RUN) Would remove dangling link: {name}")
                else:
                    link_path.unlink()
                    logger.info(f"Removed dangling link: {name}")
            continue

        if dry_run:
            logger.info(f"(DRY RUN) Would link: {name} -> {target}")
            continue

        if link_path.is_symlink() or link_path.is_file():
            link_path.unlink()
        elif link_path.is_dir():
            logger.warning(
                f"{name} is a real directory at {link_path}, not replacing it with a symlink"
            )
            continue

        data_dir.mkdir(parents=True, exist_ok=True)
        link_path.symlink_to(target, target_is_directory=True)
        applied[name] = target
        logger.info(f"Linked: {name} -> {target}")

    return applied
