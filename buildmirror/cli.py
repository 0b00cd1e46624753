"""
Command line interface for the build mirror.

Usage:
    buildmirror prune --dry-run
    buildmirror prune --workspace data_workspace
    buildmirror plan --now 2026-01-07T00:00:00Z
    buildmirror summary
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path

from loguru import logger

from buildmirror.builds.dates import parse_timestamp
from buildmirror.errors import BuildMirrorError
from buildmirror.retention.prune import PruneJob
from buildmirror.utils.config import get_config
from buildmirror.utils.startup import fail_fast_startup


def _parse_now(value: str) -> datetime:
    parsed = parse_timestamp(value)
    if parsed is None:
        raise argparse.ArgumentTypeError(f"not an ISO-8601 timestamp: {value!r}")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="buildmirror",
        description="Prune old builds from the data mirror",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  See what would be removed:
    buildmirror prune --dry-run

  Prune for real:
    buildmirror prune --workspace data_workspace

  Show how every build is classified on a given day:
    buildmirror plan --now 2026-01-07T00:00:00Z
""",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--workspace",
        type=str,
        help="Workspace directory (default: $WORKSPACE_DIR or data_workspace)",
    )
    common.add_argument(
        "--now",
        type=_parse_now,
        help="Reference time as ISO-8601 (default: current time)",
    )
    common.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Suppress output except errors",
    )

    subparsers = parser.add_subparsers(dest="command")

    prune = subparsers.add_parser("prune", parents=[common], help="Apply the retention policy")
    prune.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would be removed without changing anything",
    )
    prune.add_argument(
        "--workers",
        type=int,
        help="Parallel artifact deletions (default: $BUILDMIRROR_DELETE_WORKERS or 4)",
    )
    prune.add_argument(
        "--no-symlinks",
        action="store_true",
        help="Do not refresh the stable/nightly symlinks",
    )
    prune.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON",
    )

    subparsers.add_parser("plan", parents=[common], help="Show the decision for every build")
    subparsers.add_parser("summary", parents=[common], help="Print per-rule counts as JSON")

    return parser


def _configure_logging(quiet: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="ERROR" if quiet else get_config().log_level)


def main(argv: list[str] | None = None) -> int:
    """
    CLI entry point.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    _configure_logging(args.quiet)

    config = get_config()
    if args.workspace:
        config.workspace_dir = Path(args.workspace).expanduser()

    try:
        fail_fast_startup(config)

        if args.command == "prune":
            job = PruneJob(
                workspace_dir=config.workspace_dir,
                dry_run=args.dry_run,
                max_workers=args.workers,
                update_links=not args.no_symlinks,
            )
            result = job.run(now=args.now)
            if args.json:
                print(json.dumps(result.to_dict(), indent=2))
            else:
                verb = "Would remove" if result.dry_run else "Removed"
                print(f"Kept {result.kept_count} builds")
                print(f"{verb} {result.removed_count} builds")
                for build_number in result.removed_build_numbers:
                    print(f"  - {build_number}")
                for error in result.errors:
                    print(f"Warning: {error}", file=sys.stderr)
            return 0 if result.success else 1

        job = PruneJob(workspace_dir=config.workspace_dir, dry_run=True)
        retention = job.plan(now=args.now)

        if args.command == "plan":
            for decision in retention.decisions:
                verdict = "keep" if decision.keep else "remove"
                age = "-" if decision.age_days is None else f"{decision.age_days}d"
                print(f"{verdict:<7} {decision.rule.value:<13} {age:>6}  {decision.build.key}")
            return 0

        print(json.dumps(retention.summary(), indent=2))
        return 0

    except BuildMirrorError as e:
        logger.error(f"Prune failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
