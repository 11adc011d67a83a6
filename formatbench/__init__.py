"""
Image format conversion and network transfer benchmark.

Converts one source image into several encodings and measures the upload +
download round trip of the original and of every variant against a remote
storage endpoint.

Usage:
    python -m formatbench photo.png
    python -m formatbench photo.png --output ./results --server http://localhost:8000
"""

from formatbench.codec import Codec, PillowCodec, RasterImage
from formatbench.conversion import ConversionEngine, EncodedVariant, SourceImage
from formatbench.errors import (
    CodecError,
    DownloadError,
    FormatBenchError,
    ImageDecodeError,
    TransportError,
    UnexpectedResponseError,
    UnsupportedFormatError,
    UploadError,
)
from formatbench.formats import DEFAULT_CATALOG, ORIGINAL_ID, FormatDescriptor
from formatbench.metrics import MetricsStore, NetworkMetric, TestingState
from formatbench.orchestrator import BenchmarkCycle, CycleState, NetworkBenchmark
from formatbench.session import BenchmarkConfig, BenchmarkResult, BenchmarkSession
from formatbench.timing import TimingContext, TimingRecord
from formatbench.transport import HttpTransport, Transport, UploadResult

__all__ = [
    # Formats and codec
    "FormatDescriptor",
    "DEFAULT_CATALOG",
    "ORIGINAL_ID",
    "Codec",
    "PillowCodec",
    "RasterImage",
    # Conversion
    "SourceImage",
    "EncodedVariant",
    "ConversionEngine",
    # Timing primitives
    "TimingRecord",
    "TimingContext",
    # Metrics
    "NetworkMetric",
    "TestingState",
    "MetricsStore",
    # Orchestration
    "CycleState",
    "BenchmarkCycle",
    "NetworkBenchmark",
    "BenchmarkConfig",
    "BenchmarkSession",
    "BenchmarkResult",
    # HTTP transport
    "Transport",
    "HttpTransport",
    "UploadResult",
    # Errors
    "FormatBenchError",
    "CodecError",
    "ImageDecodeError",
    "UnsupportedFormatError",
    "TransportError",
    "UploadError",
    "UnexpectedResponseError",
    "DownloadError",
]
