"""
Report generation for benchmark results.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping

import matplotlib

matplotlib.use("Agg")  # Non-interactive backend
import matplotlib.pyplot as plt  # noqa: E402

from formatbench.formats import ORIGINAL_ID

if TYPE_CHECKING:
    from formatbench.conversion import EncodedVariant, SourceImage
    from formatbench.metrics import MetricsStore

logger = logging.getLogger(__name__)


def format_time(ms: float) -> str:
    """Human-readable duration: ``"850.25ms"`` below a second, ``"1.2s"`` above."""
    if ms < 1000:
        return f"{ms:.2f}ms"
    return f"{ms / 1000:.1f}s"


def format_size(size_bytes: int) -> str:
    """Size in kilobytes with one decimal, e.g. ``"10.0 KB"``."""
    return f"{size_bytes / 1024:.1f} KB"


class ReportGenerator:
    """Writes summary JSON, trace files and charts for one submission."""

    def __init__(
        self,
        output_dir: Path,
        store: MetricsStore,
        source: SourceImage,
        variants: Mapping[str, EncodedVariant],
    ):
        self.output_dir = Path(output_dir)
        self.store = store
        self.source = source
        self.variants = variants

    def generate_all(self) -> None:
        """Generate all report artifacts."""
        logger.info("Generating benchmark reports...")
        (self.output_dir / "charts").mkdir(parents=True, exist_ok=True)
        (self.output_dir / "traces").mkdir(parents=True, exist_ok=True)

        self.generate_summary_json()
        self.generate_timing_chart()
        self.store.export_json(self.output_dir / "raw_metrics.json")
        self.store.export_chrome_trace(self.output_dir / "traces" / "benchmark_timeline.json")

        logger.info("Report generation complete")

    def summary(self) -> dict[str, Any]:
        """Per-format rows in benchmark order, plus the source description."""
        original_size = self.source.size_bytes
        rows = []
        for format_id, metric in self.store.metrics().items():
            variant = self.variants.get(format_id)
            size = metric.size_bytes
            rows.append({
                "format": format_id,
                "media_type": self.source.media_type if format_id == ORIGINAL_ID else (
                    variant.media_type if variant else None
                ),
                "size_bytes": size,
                "size": format_size(size),
                "size_ratio": size / original_size if original_size else None,
                "success": metric.success,
                "upload_ms": metric.upload_ms,
                "download_ms": metric.download_ms,
                "total_ms": metric.total_ms,
                "error": metric.error,
            })

        return {
            "source": {
                "name": self.source.name,
                "media_type": self.source.media_type,
                "size_bytes": original_size,
            },
            "formats": rows,
        }

    def generate_summary_json(self) -> Path:
        """Write per-format results to summary.json."""
        path = self.output_dir / "summary.json"
        with open(path, "w") as f:
            json.dump(self.summary(), f, indent=2)
        logger.info(f"Wrote summary to {path}")
        return path

    def generate_timing_chart(self) -> Path | None:
        """Create stacked bar chart of upload and download time per format."""
        succeeded = [m for m in self.store.metrics().values() if m.success]
        if not succeeded:
            logger.warning("No successful metrics available for timing chart")
            return None

        labels = [m.format_id.upper() for m in succeeded]
        upload = [m.upload_ms for m in succeeded]
        download = [m.download_ms for m in succeeded]

        fig, ax = plt.subplots(figsize=(10, 6))
        x = range(len(labels))
        width = 0.6

        ax.bar(x, upload, width, label="Upload", color="#3498db")
        ax.bar(x, download, width, bottom=upload, label="Download", color="#2ecc71")

        ax.set_xlabel("Format")
        ax.set_ylabel("Time (ms)")
        ax.set_title(f"Transfer Time by Format - {self.source.name}")
        ax.set_xticks(list(x))
        ax.set_xticklabels(labels)
        ax.legend()

        plt.tight_layout()
        chart_path = self.output_dir / "charts" / "timing_breakdown.png"
        chart_path.parent.mkdir(parents=True, exist_ok=True)
        plt.savefig(chart_path, dpi=150)
        plt.close(fig)
        logger.info(f"Saved timing chart to {chart_path}")
        return chart_path
