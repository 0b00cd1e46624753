"""
Retention policy engine for the build mirror.

Decides which builds to keep given the full build list and a reference
time. Stable releases are always kept. Nightly builds are kept in full for
a recent window, then thinned to one build per N days as they age, then
dropped entirely.

Thinning keys off the build's absolute UTC day number rather than its age.
Age shifts by one every day the job runs; the day number does not, so a
given calendar day is classified the same way on every run until it moves
into the next band.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable

from loguru import logger

from buildmirror.builds.dates import age_days, as_utc, day_key, resolve_build_date
from buildmirror.builds.models import BuildRecord


class RetentionRule(Enum):
    """Rule that decided a build's fate."""

    STABLE = "stable"  # Stable release, never aged out
    UNDATED = "undated"  # No usable date, kept conservatively
    RECENT = "recent"  # Inside the recent window, kept
    THINNED_KEEP = "thinned_keep"  # Day's primary build on a kept day
    THINNED_DROP = "thinned_drop"  # Day's primary build on a thinned-out day
    EXTRA = "extra"  # Not the day's primary build, past the recent window
    EXPIRED = "expired"  # Past the hard cutoff


@dataclass(frozen=True)
class RetentionBand:
    """
    Thinning band for nightly builds of a given age.

    A day's primary build in this band survives when its day key is a
    multiple of ``modulus``. A band with ``modulus=None`` removes everything.

    Attributes:
        min_age: First age in days covered by the band (inclusive)
        max_age: End of the band (exclusive), None for unbounded
        modulus: Day-key divisor for kept days, None to drop all
    """

    min_age: int
    max_age: int | None
    modulus: int | None

    def contains(self, age: int) -> bool:
        """Check whether an age in days falls in this band."""
        return age >= self.min_age and (self.max_age is None or age < self.max_age)

    def keeps_day(self, key: int) -> bool:
        """
        Check whether a day's primary build survives in this band.

        Args:
            key: Absolute UTC day key of the build (never its age)

        Returns:
            True if the build is kept
        """
        if self.modulus is None:
            return False
        return key % self.modulus == 0


RECENT_DAYS = 30

# Thinning schedule past the recent window: every 2nd day up to 90 days,
# every 4th up to 210, every 8th up to 450, nothing after that.
DEFAULT_BANDS: tuple[RetentionBand, ...] = (
    RetentionBand(min_age=30, max_age=90, modulus=2),
    RetentionBand(min_age=90, max_age=210, modulus=4),
    RetentionBand(min_age=210, max_age=450, modulus=8),
    RetentionBand(min_age=450, max_age=None, modulus=None),
)


@dataclass(frozen=True)
class RetentionDecision:
    """Outcome for a single build."""

    build: BuildRecord
    rule: RetentionRule
    keep: bool
    day_key: int | None = None
    age_days: int | None = None


@dataclass
class DayGroup:
    """Nightly builds sharing one UTC day."""

    day_key: int
    age_days: int
    band: RetentionBand | None = None
    # (timestamp, input index, build)
    builds: list[tuple[float, int, BuildRecord]] = field(default_factory=list)

    def ordered(self) -> list[tuple[float, int, BuildRecord]]:
        """Builds latest first; equal timestamps fall back to input order."""
        return sorted(self.builds, key=lambda entry: (-entry[0], entry[1]))


@dataclass
class RetentionResult:
    """
    Partition of a build list into kept and removed builds.

    ``kept`` and ``removed`` preserve input order. ``decisions`` holds one
    entry per input build, also in input order.
    """

    kept: list[BuildRecord] = field(default_factory=list)
    removed: list[BuildRecord] = field(default_factory=list)
    decisions: list[RetentionDecision] = field(default_factory=list)

    @property
    def undated(self) -> list[BuildRecord]:
        """Nightly builds kept only because no date could be resolved."""
        return [d.build for d in self.decisions if d.rule is RetentionRule.UNDATED]

    def rule_counts(self) -> dict[str, int]:
        """Number of builds decided by each rule."""
        counts = {rule.value: 0 for rule in RetentionRule}
        for decision in self.decisions:
            counts[decision.rule.value] += 1
        return counts

    def summary(self) -> dict[str, Any]:
        """Counts for reporting."""
        return {
            "total": len(self.decisions),
            "kept": len(self.kept),
            "removed": len(self.removed),
            "undated": len(self.undated),
            "rules": self.rule_counts(),
        }


def validate_bands(bands: Iterable[RetentionBand], recent_days: int) -> tuple[RetentionBand, ...]:
    """
    Check that a band table covers every age past the recent window.

    Bands must be contiguous and ascending, start at ``recent_days``, have
    positive moduli and end with an unbounded band.

    Raises:
        ValueError: If the table has a gap, overlap or bad modulus
    """
    table = tuple(bands)
    if not table:
        raise ValueError("Retention band table is empty")

    expected_start = recent_days
    for band in table:
        if band.min_age != expected_start:
            raise ValueError(
                f"Retention band starting at {band.min_age} days should start at {expected_start}"
            )
        if band.modulus is not None and band.modulus < 1:
            raise ValueError(f"Retention band modulus must be positive, got {band.modulus}")
        if band.max_age is None:
            break
        if band.max_age <= band.min_age:
            raise ValueError(f"Retention band {band.min_age}-{band.max_age} is empty")
        expected_start = band.max_age

    if table[-1].max_age is not None:
        raise ValueError("Last retention band must be unbounded (max_age=None)")
    if any(band.max_age is None for band in table[:-1]):
        raise ValueError("Only the last retention band may be unbounded")

    return table


class RetentionEngine:
    """
    Applies the retention policy to a build list.

    Pure: the result depends only on the builds and ``now`` passed in.
    """

    def __init__(
        self,
        bands: Iterable[RetentionBand] = DEFAULT_BANDS,
        recent_days: int = RECENT_DAYS,
    ):
        """
        Initialize the engine.

        Args:
            bands: Thinning bands past the recent window
            recent_days: Age in days below which every nightly is kept

        Raises:
            ValueError: If the band table is malformed
        """
        if recent_days < 0:
            raise ValueError("recent_days must not be negative")
        self._recent_days = recent_days
        self._bands = validate_bands(bands, recent_days)

    @property
    def bands(self) -> tuple[RetentionBand, ...]:
        return self._bands

    @property
    def recent_days(self) -> int:
        return self._recent_days

    def band_for_age(self, age: int) -> RetentionBand | None:
        """
        Look up the thinning band for a day's age.

        Returns:
            The band, or None inside the recent window
        """
        if age < self._recent_days:
            return None
        for band in self._bands:
            if band.contains(age):
                return band
        return self._bands[-1]

    def apply(self, builds: Iterable[BuildRecord], now: datetime) -> RetentionResult:
        """
        Partition builds into kept and removed.

        Args:
            builds: Full build list
            now: Reference time (naive values are taken as UTC)

        Returns:
            RetentionResult with every input build in exactly one of
            ``kept`` / ``removed``
        """
        builds = list(builds)
        now_key = day_key(as_utc(now))

        decisions: list[RetentionDecision | None] = [None] * len(builds)
        groups: dict[int, DayGroup] = {}

        for index, build in enumerate(builds):
            if not build.prerelease:
                decisions[index] = RetentionDecision(build, RetentionRule.STABLE, keep=True)
                continue

            built_at = resolve_build_date(build)
            if built_at is None:
                decisions[index] = RetentionDecision(build, RetentionRule.UNDATED, keep=True)
                continue

            key = day_key(built_at)
            group = groups.get(key)
            if group is None:
                age = age_days(now_key, key)
                group = DayGroup(day_key=key, age_days=age, band=self.band_for_age(age))
                groups[key] = group
            group.builds.append((built_at.timestamp(), index, build))

        for key in sorted(groups):
            group = groups[key]
            for position, (_, index, build) in enumerate(group.ordered()):
                rule, keep = self._classify(group, primary=position == 0)
                decisions[index] = RetentionDecision(
                    build, rule, keep=keep, day_key=key, age_days=group.age_days
                )

        result = RetentionResult()
        for decision in decisions:
            result.decisions.append(decision)
            if decision.keep:
                result.kept.append(decision.build)
            else:
                result.removed.append(decision.build)
            logger.debug(
                f"{decision.build.key}: {decision.rule.value} "
                f"({'keep' if decision.keep else 'remove'}, age={decision.age_days})"
            )

        undated = len(result.undated)
        if undated:
            logger.warning(f"Retention policy: keeping {undated} builds without a valid date")

        return result

    def _classify(self, group: DayGroup, primary: bool) -> tuple[RetentionRule, bool]:
        """Rule and verdict for one build of a day group."""
        if group.band is None:
            return RetentionRule.RECENT, True
        if not primary:
            return RetentionRule.EXTRA, False
        if group.band.modulus is None:
            return RetentionRule.EXPIRED, False
        if group.band.keeps_day(group.day_key):
            return RetentionRule.THINNED_KEEP, True
        return RetentionRule.THINNED_DROP, False


_default_engine: RetentionEngine | None = None


def apply_retention_policy(builds: Iterable[BuildRecord], now: datetime) -> RetentionResult:
    """
    Apply the default retention policy.

    Args:
        builds: Full build list
        now: Reference time

    Returns:
        RetentionResult
    """
    global _default_engine
    if _default_engine is None:
        _default_engine = RetentionEngine()
    return _default_engine.apply(builds, now)
