"""
Network metrics and the per-submission metrics store.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from formatbench.timing import TimingRecord

logger = logging.getLogger(__name__)


class TestingState(str, Enum):
    """Progress of one format within a benchmark run."""

    __test__ = False  # not a pytest test class

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


@dataclass(frozen=True)
class NetworkMetric:
    """Outcome of one upload + download cycle.

    Timing fields and ``url`` are only set when ``success`` is True;
    ``error`` only when it is False.
    """

    format_id: str
    size_bytes: int
    success: bool
    upload_ms: float | None = None
    download_ms: float | None = None
    total_ms: float | None = None
    url: str | None = None
    error: str | None = None

    @classmethod
    def succeeded(
        cls,
        format_id: str,
        size_bytes: int,
        upload: TimingRecord,
        download: TimingRecord,
        url: str,
        excluded_ns: int = 0,
    ) -> NetworkMetric:
        """Build a successful metric. ``excluded_ns`` is non-network time spent
        between the two calls, left out of ``total_ms``."""
        return cls(
            format_id=format_id,
            size_bytes=size_bytes,
            success=True,
            upload_ms=upload.duration_ms,
            download_ms=download.duration_ms,
            total_ms=(download.end_ns - upload.start_ns - excluded_ns) / 1_000_000,
            url=url,
        )

    @classmethod
    def failed(cls, format_id: str, size_bytes: int, error: str) -> NetworkMetric:
        return cls(format_id=format_id, size_bytes=size_bytes, success=False, error=error)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


class MetricsStore:
    """Latest metric and testing state per format, for one submission.

    Every submission calls ``reset()``, which bumps the epoch. Writers pass the
    epoch they started under; writes carrying an older epoch are discarded so
    an abandoned run can never overwrite the newest submission's results.

    Cycles claim a key with ``begin()`` and release it with ``finish()``. At
    most one cycle per key is in flight at a time, across epochs: ``reset()``
    does not release keys still held by an abandoned run.
    """

    def __init__(self) -> None:
        self._metrics: dict[str, NetworkMetric] = {}
        self._states: dict[str, TestingState] = {}
        self._records: list[TimingRecord] = []
        self._in_flight: set[str] = set()
        self._epoch = 0
        self._lock = threading.Lock()
        self._released = threading.Condition(self._lock)

    @property
    def epoch(self) -> int:
        with self._lock:
            return self._epoch

    def is_current(self, epoch: int) -> bool:
        with self._lock:
            return epoch == self._epoch

    def reset(self) -> int:
        """Clear all keys and start a new epoch. Returns the new epoch."""
        with self._lock:
            self._metrics.clear()
            self._states.clear()
            self._records.clear()
            self._epoch += 1
            logger.debug(f"Metrics store reset, epoch={self._epoch}")
            return self._epoch

    def get(self, format_id: str) -> NetworkMetric | None:
        """Return the metric for ``format_id``, or None if not attempted yet."""
        with self._lock:
            return self._metrics.get(format_id)

    def set(self, format_id: str, metric: NetworkMetric, epoch: int | None = None) -> bool:
        """Store ``metric``. Returns False if the write was stale and dropped."""
        with self._lock:
            if epoch is not None and epoch != self._epoch:
                logger.debug(f"Discarding stale metric for {format_id} (epoch {epoch} != {self._epoch})")
                return False
            self._metrics[format_id] = metric
            return True

    def state(self, format_id: str) -> TestingState:
        with self._lock:
            return self._states.get(format_id, TestingState.NOT_STARTED)

    def set_state(self, format_id: str, state: TestingState, epoch: int | None = None) -> bool:
        with self._lock:
            if epoch is not None and epoch != self._epoch:
                return False
            self._states[format_id] = state
            return True

    def begin(self, format_id: str, epoch: int | None = None, timeout: float | None = None) -> bool:
        """Claim ``format_id`` for one cycle and mark it IN_PROGRESS.

        Blocks while another cycle holds the key. Returns False, without
        claiming, if ``epoch`` went stale or ``timeout`` expired while waiting.
        """
        with self._released:
            if not self._released.wait_for(lambda: format_id not in self._in_flight, timeout):
                logger.debug(f"Timed out waiting for in-flight cycle of {format_id}")
                return False
            if epoch is not None and epoch != self._epoch:
                return False
            self._in_flight.add(format_id)
            self._states[format_id] = TestingState.IN_PROGRESS
            return True

    def finish(self, format_id: str, epoch: int | None = None) -> None:
        """Release a key claimed by ``begin()`` and mark it FINISHED if still current."""
        with self._released:
            self._in_flight.discard(format_id)
            if epoch is None or epoch == self._epoch:
                self._states[format_id] = TestingState.FINISHED
            self._released.notify_all()

    def in_flight(self) -> set[str]:
        with self._lock:
            return set(self._in_flight)

    def record(self, record: TimingRecord, epoch: int | None = None) -> bool:
        """Keep a raw timing record for trace export."""
        with self._lock:
            if epoch is not None and epoch != self._epoch:
                return False
            self._records.append(record)
            return True

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._metrics)

    def metrics(self) -> dict[str, NetworkMetric]:
        """Snapshot of all metrics in the order they were first written."""
        with self._lock:
            return dict(self._metrics)

    def states(self) -> dict[str, TestingState]:
        with self._lock:
            return dict(self._states)

    def get_all_records(self) -> list[TimingRecord]:
        with self._lock:
            return list(self._records)

    def export_json(self, path: Path) -> None:
        """Export metrics and raw timing records to JSON."""
        with self._lock:
            data = {
                "epoch": self._epoch,
                "metrics": {k: m.to_dict() for k, m in self._metrics.items()},
                "records": [r.to_dict() for r in self._records],
            }
        with open(path, "w") as f:
            json.dump(data, f, indent=2)

    def export_chrome_trace(self, path: Path) -> None:
        """Export the upload/download timeline in Chrome Trace format.

        Open the file in Perfetto UI or chrome://tracing.
        """
        with self._lock:
            records = list(self._records)

        origin_ns = min((r.start_ns for r in records), default=0)
        events = []
        for r in records:
            events.append({
                "name": r.name,
                "cat": "network",
                "ph": "X",
                "ts": (r.start_ns - origin_ns) / 1000,
                "dur": r.duration_ns / 1000,
                "pid": 1,
                "tid": 1,
                "args": dict(r.metadata),
            })

        trace_data = {
            "traceEvents": events,
            "displayTimeUnit": "ms",
            "metadata": {"benchmark": "format-bench"},
        }
        with open(path, "w") as f:
            json.dump(trace_data, f, indent=2)
