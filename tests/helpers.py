"""Builders for build records and simulated build histories."""

from datetime import datetime, timedelta, timezone

from buildmirror.builds.models import BuildRecord

ONE_DAY = timedelta(days=1)

# Reference "today" for the simulated corpus
CORPUS_BASE = datetime(2026, 1, 7, 12, 0, tzinfo=timezone.utc)
CORPUS_NIGHTLY_DAYS = 500
CORPUS_STABLE_EVERY = 60


def iso(moment: datetime) -> str:
    return moment.isoformat().replace("+00:00", "Z")


def make_build(base: datetime, days: int, suffix: str = "", prerelease: bool = True, **extra) -> BuildRecord:
    """Build created ``days`` days before ``base``, named after its date."""
    created = base - days * ONE_DAY
    data = {
        "build_number": f"{created.date().isoformat()}{suffix}",
        "prerelease": prerelease,
        "created_at": iso(created),
        **extra,
    }
    return BuildRecord.from_dict(data)


def build_numbers(builds) -> list[str]:
    return sorted(b.key for b in builds)


def corpus_entries() -> list[dict]:
    """
    A year and a half of history, newest first.

    One nightly per day for 500 days, a second earlier nightly on every
    tenth day, and a stable release every 60 days.
    """
    entries = []
    for days in range(CORPUS_NIGHTLY_DAYS):
        created = CORPUS_BASE - days * ONE_DAY
        stamp = created.date().isoformat()
        entries.append(
            {
                "build_number": stamp,
                "prerelease": True,
                "created_at": iso(created),
                "langs": ["en", "de", "zh_CN"],
            }
        )
        if days % 10 == 0:
            entries.append(
                {
                    "build_number": f"{stamp}-0600",
                    "prerelease": True,
                    "created_at": iso(created - timedelta(hours=6)),
                    "langs": ["en"],
                }
            )
        if days % CORPUS_STABLE_EVERY == 0:
            entries.append(
                {
                    "build_number": f"0.{days // CORPUS_STABLE_EVERY}.0",
                    "prerelease": False,
                    "created_at": iso(created - timedelta(hours=1)),
                    "langs": ["en"],
                }
            )
    return entries
