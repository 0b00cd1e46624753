"""
Prune job for the build mirror.

Loads the canonical build list, applies the retention policy, deletes the
data of removed builds and writes the kept builds back. Dry-run mode
computes and reports the same classification without touching the
workspace.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from loguru import logger

from buildmirror.builds.dates import as_utc, resolve_build_date
from buildmirror.builds.models import BuildRecord
from buildmirror.errors import ArtifactDeletionError
from buildmirror.retention.policy import RetentionEngine, RetentionResult
from buildmirror.storage.workspace import ArtifactStore, BuildListStore, update_symlinks
from buildmirror.utils.config import get_config
from buildmirror.utils.timing import timed_section


@dataclass
class PruneResult:
    """
    Result of a prune run.

    Attributes:
        dry_run: Whether this was a dry run
        as_of: Reference time used for the classification
        total_count: Builds in the list before pruning
        kept_count: Builds kept
        removed_count: Builds removed (or that would be, in a dry run)
        undated_count: Nightly builds kept for lack of a date
        rule_counts: Builds decided by each retention rule
        removed_build_numbers: Build numbers classified for removal
        deleted_build_numbers: Build numbers whose data was deleted
        symlinks: Symlink targets set after pruning
        duration_seconds: Time taken
        errors: Per-build deletion failures
    """

    dry_run: bool
    as_of: datetime
    total_count: int = 0
    kept_count: int = 0
    removed_count: int = 0
    undated_count: int = 0
    rule_counts: dict[str, int] = field(default_factory=dict)
    removed_build_numbers: list[str] = field(default_factory=list)
    deleted_build_numbers: list[str] = field(default_factory=list)
    symlinks: dict[str, str | None] = field(default_factory=dict)
    duration_seconds: float = 0.0
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Check if every removal went through."""
        return len(self.errors) == 0

    @property
    def would_remove(self) -> list[str]:
        """Build numbers a dry run would remove."""
        return list(self.removed_build_numbers) if self.dry_run else []

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "dry_run": self.dry_run,
            "as_of": self.as_of.isoformat(),
            "total_count": self.total_count,
            "kept_count": self.kept_count,
            "removed_count": self.removed_count,
            "undated_count": self.undated_count,
            "rule_counts": dict(self.rule_counts),
            "removed_build_numbers": list(self.removed_build_numbers),
            "deleted_build_numbers": list(self.deleted_build_numbers),
            "symlinks": dict(self.symlinks),
            "duration_seconds": self.duration_seconds,
            "errors": list(self.errors),
        }


def newest_first(builds: list[BuildRecord]) -> list[BuildRecord]:
    """Order builds by resolved date, newest first; undated builds go last."""
    dated = []
    undated = []
    for build in builds:
        built_at = resolve_build_date(build)
        if built_at is None:
            undated.append(build)
        else:
            dated.append((built_at, build))
    dated.sort(key=lambda entry: entry[0], reverse=True)
    return [build for _, build in dated] + undated


class PruneJob:
    """
    Applies the retention policy to a workspace.

    The full keep/remove partition is computed before anything is deleted.
    Deletion failures for individual builds are logged and reported but do
    not stop the run; failing to read or write builds.json does.
    """

    def __init__(
        self,
        workspace_dir: str | Path | None = None,
        dry_run: bool = False,
        engine: RetentionEngine | None = None,
        build_store: BuildListStore | None = None,
        artifact_store: ArtifactStore | None = None,
        max_workers: int | None = None,
        update_links: bool = True,
    ):
        """
        Initialize the prune job.

        Args:
            workspace_dir: Workspace root (defaults to WORKSPACE_DIR)
            dry_run: If True, only report what would be removed
            engine: Retention engine (defaults to the standard policy)
            build_store: Canonical list storage (defaults to builds.json)
            artifact_store: Build data storage (defaults to data/)
            max_workers: Parallel deletions (defaults to config)
            update_links: Refresh stable/nightly symlinks after pruning
        """
        config = get_config()
        self._workspace_dir = Path(workspace_dir) if workspace_dir else config.workspace_dir
        self._dry_run = dry_run
        self._engine = engine or RetentionEngine()
        self._build_store = build_store or BuildListStore(
            self._workspace_dir, max_retries=config.max_retries
        )
        self._artifact_store = artifact_store or ArtifactStore(
            self._workspace_dir, max_retries=config.max_retries
        )
        self._max_workers = max(1, max_workers or config.delete_workers)
        self._update_links = update_links
        self._data_branch = config.data_branch
        self._environment = config.environment

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    def plan(self, now: datetime | None = None) -> RetentionResult:
        """
        Classify the current build list without side effects.

        Args:
            now: Reference time (defaults to the current UTC time)

        Returns:
            RetentionResult for the workspace's builds
        """
        now = as_utc(now) if now else datetime.now(timezone.utc)
        builds = self._build_store.load()
        return self._engine.apply(builds, now)

    def run(self, now: datetime | None = None) -> PruneResult:
        """
        Run the prune job.

        Args:
            now: Reference time (defaults to the current UTC time)

        Returns:
            PruneResult with counts and per-build outcomes

        Raises:
            BuildListError: If builds.json cannot be read or written
        """
        now = as_utc(now) if now else datetime.now(timezone.utc)
        result = PruneResult(dry_run=self._dry_run, as_of=now)

        if self._dry_run:
            logger.info("(DRY RUN) No changes will be made to the workspace.")
        logger.info(f"Working directory: {self._workspace_dir}")
        logger.info(f"Data branch: {self._data_branch} ({self._environment.value})")

        with timed_section("prune") as metrics:
            with metrics.phase("load"):
                builds = self._build_store.load()

            with metrics.phase("classify"):
                retention = self._engine.apply(builds, now)

            self._fill_counts(result, builds, retention)

            if not retention.removed:
                logger.info("Retention policy: no builds to remove")
            else:
                logger.info(
                    f"Retention policy: keeping {result.kept_count} builds, "
                    f"removing {result.removed_count} builds"
                )

                if self._dry_run:
                    logger.info("(DRY RUN) Would remove the following builds:")
                    for build_number in result.removed_build_numbers:
                        logger.info(f"  - {build_number}")
                    logger.info("(DRY RUN) skipping filesystem changes")
                else:
                    with metrics.phase("delete"):
                        self._delete_artifacts(result, retention.kept)
                    with metrics.phase("save"):
                        logger.info(f"Writing {result.kept_count} builds to builds.json...")
                        self._build_store.save(retention.kept)

                    if self._update_links:
                        with metrics.phase("symlinks"):
                            result.symlinks = update_symlinks(
                                self._workspace_dir, newest_first(retention.kept)
                            )

        result.duration_seconds = metrics.elapsed_seconds
        metrics.log()

        logger.info(
            f"Prune complete: kept={result.kept_count}, removed={result.removed_count}, "
            f"deleted={len(result.deleted_build_numbers)}, errors={len(result.errors)}"
        )
        return result

    def _fill_counts(
        self, result: PruneResult, builds: list[BuildRecord], retention: RetentionResult
    ) -> None:
        summary = retention.summary()
        result.total_count = len(builds)
        result.kept_count = summary["kept"]
        result.removed_count = summary["removed"]
        result.undated_count = summary["undated"]
        result.rule_counts = summary["rules"]
        result.removed_build_numbers = [b.key for b in retention.removed]

        for rule, count in result.rule_counts.items():
            if count:
                logger.info(f"  {rule}: {count}")

    def _delete_artifacts(self, result: PruneResult, kept: list[BuildRecord]) -> None:
        """Delete data for every removed build, collecting failures."""
        # Same build number twice in the list should only be deleted once
        build_numbers = list(dict.fromkeys(result.removed_build_numbers))

        # data/<build_number> is shared by every entry with that number
        kept_keys = {b.key for b in kept}
        for build_number in build_numbers:
            if build_number in kept_keys:
                logger.info(f"Keeping data/{build_number}: still used by a kept build")
        build_numbers = [b for b in build_numbers if b not in kept_keys]

        logger.info(f"Removing {len(build_numbers)} old build directories...")

        def delete_one(build_number: str) -> tuple[str, bool, str | None]:
            try:
                return build_number, self._artifact_store.delete(build_number), None
            except ArtifactDeletionError as e:
                return build_number, False, str(e)

        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            outcomes = list(pool.map(delete_one, build_numbers))

        for build_number, removed, error in outcomes:
            if error is not None:
                logger.warning(f"Warning: {error}")
                result.errors.append(error)
            elif removed:
                result.deleted_build_numbers.append(build_number)
