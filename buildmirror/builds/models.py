"""
Build record model.

A build record is one published snapshot of upstream game data as it
appears in the canonical ``builds.json`` list.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Keys the retention policy reads; everything else is passed through.
KNOWN_FIELDS = ("build_number", "prerelease", "created_at")


@dataclass(frozen=True)
class BuildRecord:
    """
    One published build.

    Attributes:
        build_number: Release tag, usually ``YYYY-MM-DD`` optionally suffixed
        prerelease: True for nightly/experimental builds, False for stable
        created_at: ISO-8601 creation timestamp, may be missing or garbage
        extra: Opaque fields (e.g. ``langs``) preserved verbatim
        raw: The JSON object this record was decoded from, if any
    """

    build_number: Any
    prerelease: bool = False
    created_at: Any = None
    extra: dict[str, Any] = field(default_factory=dict, compare=False)
    raw: dict[str, Any] | None = field(default=None, repr=False, compare=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BuildRecord:
        """
        Build a record from a decoded ``builds.json`` entry.

        Args:
            data: JSON object for a single build

        Returns:
            BuildRecord carrying unknown keys in ``extra``
        """
        return cls(
            build_number=data.get("build_number"),
            prerelease=bool(data.get("prerelease", False)),
            created_at=data.get("created_at"),
            extra={k: v for k, v in data.items() if k not in KNOWN_FIELDS},
            raw=dict(data),
        )

    def to_dict(self) -> dict[str, Any]:
        """
        Convert back to the JSON shape.

        Records decoded from JSON round-trip exactly, key order included.
        """
        if self.raw is not None:
            return dict(self.raw)

        out: dict[str, Any] = {
            "build_number": self.build_number,
            "prerelease": self.prerelease,
        }
        if self.created_at is not None:
            out["created_at"] = self.created_at
        out.update(self.extra)
        return out

    @property
    def key(self) -> str:
        """Build number as used for artifact directory names."""
        return str(self.build_number)
