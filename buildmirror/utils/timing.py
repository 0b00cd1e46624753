"""
Timing helpers for prune runs.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Generator

from loguru import logger


@dataclass
class TimingMetrics:
    """Elapsed time of a named section, with optional named phases."""

    name: str
    elapsed_seconds: float = 0.0
    phases: dict[str, float] = field(default_factory=dict)

    @contextmanager
    def phase(self, name: str) -> Generator[None, None, None]:
        """Time a phase inside the section."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.phases[name] = self.phases.get(name, 0.0) + time.perf_counter() - start

    def log(self, level: str = "debug") -> None:
        log_fn = getattr(logger, level)
        log_fn(f"Timing [{self.name}]: {self.elapsed_seconds:.3f}s")
        for phase_name, seconds in self.phases.items():
            log_fn(f"  - {phase_name}: {seconds:.3f}s")

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "total_seconds": self.elapsed_seconds,
            **{f"phase_{k}": v for k, v in self.phases.items()},
        }


@contextmanager
def timed_section(name: str) -> Generator[TimingMetrics, None, None]:
    """
    Context manager for timing a block.

    Usage:
        with timed_section("prune") as metrics:
            with metrics.phase("classify"):
                ...
        metrics.log()
    """
    metrics = TimingMetrics(name=name)
    start = time.perf_counter()
    try:
        yield metrics
    finally:
        metrics.elapsed_seconds = time.perf_counter() - start
