"""
Build records and date handling.

Usage:
    from buildmirror.builds import BuildRecord, resolve_build_date, day_key

    build = BuildRecord.from_dict({"build_number": "2024-08-01", "prerelease": True})
    key = day_key(resolve_build_date(build))
"""

from buildmirror.builds.dates import age_days, day_key, resolve_build_date
from buildmirror.builds.models import BuildRecord

__all__ = [
    "BuildRecord",
    "resolve_build_date",
    "day_key",
    "age_days",
]
