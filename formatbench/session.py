"""
Benchmark session: one submission at a time, convert then benchmark.
"""

from __future__ import annotations

import logging
import subprocess
import sys
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable

from formatbench.codec import Codec
from formatbench.conversion import ConversionEngine, EncodedVariant, SourceImage
from formatbench.formats import DEFAULT_CATALOG, FormatDescriptor
from formatbench.metrics import MetricsStore, NetworkMetric
from formatbench.orchestrator import NetworkBenchmark, TransitionCallback
from formatbench.transport import Transport, wait_for_server

logger = logging.getLogger(__name__)


@dataclass
class BenchmarkConfig:
    """Configuration for a CLI benchmark run."""

    image_path: Path
    output_dir: Path
    server_url: str = "http://localhost:8000"
    timeout: float = 60.0

    # Server configuration
    start_server: bool = False  # If True, start the reference server subprocess
    server_startup_timeout: float = 30.0

    def __post_init__(self) -> None:
        """Convert paths to Path objects if needed."""
        if isinstance(self.image_path, str):
            self.image_path = Path(self.image_path)
        if isinstance(self.output_dir, str):
            self.output_dir = Path(self.output_dir)


@dataclass
class BenchmarkResult:
    """Result of one submission's benchmark run."""

    source: SourceImage
    variants: dict[str, EncodedVariant]
    metrics: dict[str, NetworkMetric]
    start_time: datetime
    end_time: datetime
    superseded: bool = False
    failed_formats: list[str] = field(default_factory=list)

    @property
    def wall_time_s(self) -> float:
        """Total wall clock time in seconds."""
        return (self.end_time - self.start_time).total_seconds()


class BenchmarkSession:
    """Owns the metrics store and runs submissions against it.

    Each submission resets the store, so a newer submission always wins over
    a run that is still in flight.
    """

    def __init__(
        self,
        transport: Transport,
        codec: Codec | None = None,
        catalog: Iterable[FormatDescriptor] = DEFAULT_CATALOG,
        store: MetricsStore | None = None,
        progress_callback: Callable[[int, int, str], None] | None = None,
        on_transition: TransitionCallback | None = None,
    ):
        self.engine = ConversionEngine(codec, catalog)
        self.store = store or MetricsStore()
        self.benchmark = NetworkBenchmark(
            transport,
            self.store,
            on_transition=on_transition,
            progress_callback=progress_callback,
        )
        self.source: SourceImage | None = None
        self.variants: dict[str, EncodedVariant] = {}
        self._lock = threading.Lock()

    def _begin(self, source: SourceImage) -> int:
        with self._lock:
            epoch = self.store.reset()
            self.source = source
            self.variants = {}
        logger.info(f"New submission {source.name} ({source.size_bytes} bytes), epoch={epoch}")
        return epoch

    def _convert(self, source: SourceImage, epoch: int) -> dict[str, EncodedVariant]:
        variants = self.engine.convert(source)
        with self._lock:
            if self.store.is_current(epoch):
                self.variants = variants
        return variants

    def submit(self, source: SourceImage) -> dict[str, EncodedVariant]:
        """Reset all derived state and convert ``source``.

        Raises:
            ImageDecodeError: If the source cannot be decoded.
        """
        epoch = self._begin(source)
        return self._convert(source, epoch)

    def run(self, source: SourceImage) -> BenchmarkResult:
        """Submit ``source``, then benchmark it and all its variants."""
        start_time = datetime.now()
        epoch = self._begin(source)
        variants = self._convert(source, epoch)
        self.benchmark.run_all(source, variants, epoch)

        superseded = not self.store.is_current(epoch)
        if superseded:
            logger.warning(f"Submission {source.name} was superseded before it finished")

        metrics = {} if superseded else self.store.metrics()
        return BenchmarkResult(
            source=source,
            variants=variants,
            metrics=metrics,
            start_time=start_time,
            end_time=datetime.now(),
            superseded=superseded,
            failed_formats=[k for k, m in metrics.items() if not m.success],
        )

    def start(self, source: SourceImage) -> threading.Thread:
        """Run ``source`` on a background thread and return the thread.

        Decode failures are logged; the store is left empty for that submission.
        """

        def target() -> None:
            try:
                self.run(source)
            except Exception:
                logger.exception(f"Benchmark failed for {source.name}")

        thread = threading.Thread(target=target, name=f"benchmark-{source.name}", daemon=True)
        thread.start()
        return thread


class ServerProcess:
    """Reference upload server (``main:app``) run as a uvicorn subprocess."""

    def __init__(self, server_url: str, startup_timeout: float = 30.0):
        self.server_url = server_url
        self.startup_timeout = startup_timeout
        self._process: subprocess.Popen | None = None

    def start(self) -> None:
        from urllib.parse import urlparse

        parsed = urlparse(self.server_url)
        host = parsed.hostname or "127.0.0.1"
        port = parsed.port or 8000

        logger.info("Starting server subprocess...")
        self._process = subprocess.Popen(
            [sys.executable, "-m", "uvicorn", "main:app", "--host", host, "--port", str(port)],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )

        logger.info(f"Waiting for server at {self.server_url}...")
        if not wait_for_server(self.server_url, timeout=self.startup_timeout):
            self.stop()
            raise RuntimeError(
                f"Server failed to start within {self.startup_timeout}s. "
                "Check that the server can start without errors."
            )
        logger.info("Server is ready")

    def stop(self) -> None:
        if self._process:
            logger.info("Stopping server...")
            self._process.terminate()
            try:
                self._process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self._process.kill()
                self._process.wait()
            self._process = None

    def __enter__(self) -> ServerProcess:
        self.start()
        return self

    def __exit__(self, *args) -> None:
        self.stop()
