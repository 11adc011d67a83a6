"""
Network benchmark orchestrator.

Runs one upload-then-download cycle per item, strictly in order: the original
image first, then each encoded variant in catalog order. Cycles are never run
concurrently, since parallel uploads would share bandwidth and make the
per-format timings incomparable. Runs that share a store never overlap on
the same format either: every cycle claims its key in the store first.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from pathlib import PurePath
from typing import Callable, Mapping

from formatbench.conversion import EncodedVariant, SourceImage
from formatbench.formats import ORIGINAL_ID
from formatbench.metrics import MetricsStore, NetworkMetric
from formatbench.timing import TimingContext
from formatbench.transport import Transport

logger = logging.getLogger(__name__)

SYNTHETIC_STEM = "converted_image"


class CycleState(str, Enum):
    """State machine for one item: IDLE -> UPLOADING -> DOWNLOADING -> SUCCEEDED | FAILED."""

    IDLE = "idle"
    UPLOADING = "uploading"
    DOWNLOADING = "downloading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


TransitionCallback = Callable[[str, CycleState], None]


def synthetic_filename(format_id: str, source_name: str | None = None) -> str:
    """Upload filename for an item, e.g. ``converted_image.webp``."""
    if format_id == ORIGINAL_ID:
        suffix = PurePath(source_name or "").suffix.lstrip(".").lower()
        return f"{SYNTHETIC_STEM}.{suffix or 'bin'}"
    return f"{SYNTHETIC_STEM}.{format_id}"


class BenchmarkCycle:
    """One timed upload + download of a single payload."""

    def __init__(
        self,
        format_id: str,
        payload: bytes,
        media_type: str,
        filename: str,
        on_transition: TransitionCallback | None = None,
    ):
        self.format_id = format_id
        self.payload = payload
        self.media_type = media_type
        self.filename = filename
        self.state = CycleState.IDLE
        self.upload_timer: TimingContext | None = None
        self.download_timer: TimingContext | None = None
        self._on_transition = on_transition

    def _advance(self, state: CycleState) -> int:
        """Move to ``state`` and notify. Returns the time spent in the callback."""
        self.state = state
        if not self._on_transition:
            return 0
        start_ns = time.perf_counter_ns()
        self._on_transition(self.format_id, state)
        return time.perf_counter_ns() - start_ns

    def run(self, transport: Transport) -> NetworkMetric:
        """Drive the cycle to a terminal state. Never raises on network failure.

        The DOWNLOADING callback fires between the two timed calls; its
        duration is subtracted from ``total_ms`` so it only covers network time.
        """
        size = len(self.payload)
        try:
            self._advance(CycleState.UPLOADING)
            with TimingContext("upload", format=self.format_id, bytes=size) as self.upload_timer:
                uploaded = transport.upload(self.payload, self.filename, self.media_type)

            callback_ns = self._advance(CycleState.DOWNLOADING)
            with TimingContext("download", format=self.format_id, bytes=size) as self.download_timer:
                transport.download(uploaded.url)
        except Exception as e:
            logger.error(f"Network test failed for {self.format_id}: {e}")
            self._advance(CycleState.FAILED)
            return NetworkMetric.failed(self.format_id, size, str(e) or type(e).__name__)

        self._advance(CycleState.SUCCEEDED)
        return NetworkMetric.succeeded(
            self.format_id,
            size,
            upload=self.upload_timer.record,
            download=self.download_timer.record,
            url=uploaded.url,
            excluded_ns=callback_ns,
        )


class NetworkBenchmark:
    """Benchmarks the original and every variant against a transport.

    Results are written to ``store`` as they complete, so collaborators can
    poll it for progress while ``run_all`` is running.
    """

    def __init__(
        self,
        transport: Transport,
        store: MetricsStore,
        on_transition: TransitionCallback | None = None,
        progress_callback: Callable[[int, int, str], None] | None = None,
    ):
        self.transport = transport
        self.store = store
        self._on_transition = on_transition
        self._progress_callback = progress_callback

    def _report_progress(self, current: int, total: int, message: str) -> None:
        """Report progress if callback is set."""
        if self._progress_callback:
            self._progress_callback(current, total, message)

    def run_all(
        self,
        original: SourceImage,
        variants: Mapping[str, EncodedVariant],
        epoch: int | None = None,
    ) -> list[NetworkMetric]:
        """Benchmark ``original`` then each variant, one cycle at a time.

        Args:
            original: The untouched source image.
            variants: Encoded variants in catalog order.
            epoch: Store epoch this run belongs to. Defaults to the current one.

        Returns:
            Metrics produced by this run, in order. A run superseded by a newer
            submission stops early and its writes are discarded by the store.
        """
        if epoch is None:
            epoch = self.store.epoch

        cycles = [
            BenchmarkCycle(
                ORIGINAL_ID,
                original.payload,
                original.media_type,
                synthetic_filename(ORIGINAL_ID, original.name),
                self._on_transition,
            )
        ]
        cycles.extend(
            BenchmarkCycle(
                format_id,
                variant.payload,
                variant.media_type,
                synthetic_filename(format_id),
                self._on_transition,
            )
            for format_id, variant in variants.items()
        )

        total = len(cycles)
        results: list[NetworkMetric] = []
        logger.info(f"Benchmarking {total} items for {original.name}")

        for i, cycle in enumerate(cycles):
            if not self.store.is_current(epoch):
                logger.info(f"Run for {original.name} superseded, abandoning after {i}/{total} items")
                break

            self._report_progress(i, total, f"Testing: {cycle.format_id}")
            if not self.store.begin(cycle.format_id, epoch):
                logger.info(f"Run for {original.name} superseded while waiting on {cycle.format_id}")
                break

            try:
                metric = cycle.run(self.transport)
                results.append(metric)

                for timer in (cycle.upload_timer, cycle.download_timer):
                    if timer is not None and timer.record is not None:
                        self.store.record(timer.record, epoch)
                self.store.set(cycle.format_id, metric, epoch)
            finally:
                self.store.finish(cycle.format_id, epoch)

            if metric.success:
                logger.info(
                    f"Tested {cycle.format_id}: "
                    f"size={metric.size_bytes}B, "
                    f"upload={metric.upload_ms:.0f}ms, "
                    f"download={metric.download_ms:.0f}ms, "
                    f"total={metric.total_ms:.0f}ms"
                )
        else:
            self._report_progress(total, total, "Network test complete")

        return results
