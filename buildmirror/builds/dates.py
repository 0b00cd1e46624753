"""
Date resolution and UTC day bucketing for build records.

Day keys are whole days since the Unix epoch, taken from the UTC calendar
date of a timestamp. They are a property of the build alone and are what
the retention policy uses for its thinning decisions.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any

from buildmirror.builds.models import BuildRecord

EPOCH = date(1970, 1, 1)

_BUILD_NUMBER_DATE = re.compile(r"^(\d{4}-\d{2}-\d{2})")


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string into an aware UTC datetime, or None."""
    if not isinstance(value, str) or not value.strip():
        return None

    try:
        parsed = datetime.fromisoformat(value.strip())
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        # Offsets at the edges of the datetime range overflow in UTC
        return parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None


def resolve_build_date(build: BuildRecord) -> datetime | None:
    """
    Determine when a build was created.

    Prefers ``created_at``; falls back to a leading ``YYYY-MM-DD`` in the
    build number, read as UTC midnight.

    Args:
        build: Build record

    Returns:
        Aware UTC datetime, or None if no usable date exists
    """
    created = parse_timestamp(build.created_at)
    if created is not None:
        return created

    match = _BUILD_NUMBER_DATE.match(build.key)
    if match:
        try:
            day = date.fromisoformat(match.group(1))
        except ValueError:
            return None
        return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)

    return None


def as_utc(moment: datetime) -> datetime:
    """Normalize a datetime to aware UTC; naive values are taken as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def day_key(moment: datetime) -> int:
    """
    Map a timestamp to its UTC calendar day.

    Args:
        moment: Timestamp (naive values are taken as UTC)

    Returns:
        Days since 1970-01-01 of the UTC date of ``moment``
    """
    return (as_utc(moment).date() - EPOCH).days


def age_days(now_key: int, build_key: int) -> int:
    """Age of a build day relative to ``now_key``; future days count as 0."""
    return max(0, now_key - build_key)
