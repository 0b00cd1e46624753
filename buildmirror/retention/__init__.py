"""
Build retention for the mirror.

Decides which nightly builds to keep as they age and prunes the rest from
the workspace.

Usage:
    from buildmirror.retention import PruneJob, apply_retention_policy

    # Classify a build list
    result = apply_retention_policy(builds, now)

    # Prune a workspace (dry run first)
    job = PruneJob("data_workspace", dry_run=True)
    report = job.run()
"""

from buildmirror.retention.policy import (
    DEFAULT_BANDS,
    RetentionBand,
    RetentionEngine,
    RetentionResult,
    RetentionRule,
    apply_retention_policy,
)
from buildmirror.retention.prune import PruneJob, PruneResult

__all__ = [
    "DEFAULT_BANDS",
    "RetentionBand",
    "RetentionEngine",
    "RetentionResult",
    "RetentionRule",
    "apply_retention_policy",
    "PruneJob",
    "PruneResult",
]
