"""
Core timing primitives for network benchmarks.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable


@dataclass(frozen=True)
class TimingRecord:
    """A single monotonic-clock measurement."""

    name: str
    start_ns: int
    end_ns: int
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def duration_ns(self) -> int:
        """Duration in nanoseconds."""
        return self.end_ns - self.start_ns

    @property
    def duration_ms(self) -> float:
        """Duration in milliseconds."""
        return self.duration_ns / 1_000_000

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "start_ns": self.start_ns,
            "end_ns": self.end_ns,
            "duration_ms": self.duration_ms,
            "metadata": self.metadata,
        }


class TimingContext:
    """Context manager for timing code blocks.

    Only blocks that exit normally produce a record; a block that raises
    leaves ``record`` as None.

    Usage:
        with TimingContext("upload", format="webp") as timer:
            url = transport.upload(...)
        timer.record.duration_ms
    """

    def __init__(
        self,
        name: str,
        on_record: Callable[[TimingRecord], None] | None = None,
        clock: Callable[[], int] = time.perf_counter_ns,
        **metadata: Any,
    ):
        self.name = name
        self.metadata = metadata
        self._on_record = on_record
        self._clock = clock
        self._start_ns: int = 0
        self._record: TimingRecord | None = None

    def __enter__(self) -> TimingContext:
        self._start_ns = self._clock()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if exc_type is not None:
            return
        self._record = TimingRecord(
            name=self.name,
            start_ns=self._start_ns,
            end_ns=self._clock(),
            metadata=self.metadata,
        )
        if self._on_record:
            self._on_record(self._record)

    @property
    def record(self) -> TimingRecord | None:
        """Get the timing record after context exit."""
        return self._record
