#!/usr/bin/env python3
"""
CLI entry point for the format benchmark.

Usage:
    python -m formatbench photo.png
    python -m formatbench photo.png --output ./results --server http://localhost:8000
"""

from __future__ import annotations

import argparse
import contextlib
import logging
import sys
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

import config
from formatbench.conversion import SourceImage
from formatbench.errors import ImageDecodeError
from formatbench.report import ReportGenerator, format_size, format_time
from formatbench.session import BenchmarkConfig, BenchmarkResult, BenchmarkSession, ServerProcess
from formatbench.transport import HttpTransport

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the benchmark run."""
    level = logging.DEBUG if verbose else getattr(logging, config.LOG_LEVEL, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )


def add_file_logging(output_dir: Path) -> None:
    """Mirror all log output to <output>/logs/benchmark.log."""
    log_dir = output_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_dir / "benchmark.log")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    logging.getLogger().addHandler(file_handler)


def create_progress_callback():
    """Create a rich progress bar callback and its cleanup function."""
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    )

    task_id = None
    started = False

    def callback(current: int, total: int, message: str) -> None:
        nonlocal task_id, started

        if not started:
            progress.start()
            task_id = progress.add_task(message, total=total)
            started = True
        progress.update(task_id, completed=current, description=message)

        if current >= total:
            progress.stop()

    return callback, lambda: progress.stop() if started else None


def print_results(result: BenchmarkResult) -> None:
    """Print the per-format summary table."""
    table = Table(title=f"Network Performance Results - {result.source.name}")
    table.add_column("Format", style="bold")
    table.add_column("File Size", justify="right")
    table.add_column("Upload Time", justify="right")
    table.add_column("Download Time", justify="right")
    table.add_column("Total Time", justify="right")
    table.add_column("Status")

    for format_id, metric in result.metrics.items():
        if metric.success:
            table.add_row(
                format_id.upper(),
                format_size(metric.size_bytes),
                format_time(metric.upload_ms),
                format_time(metric.download_ms),
                format_time(metric.total_ms),
                "[green]Success[/green]",
            )
        else:
            table.add_row(
                format_id.upper(),
                format_size(metric.size_bytes),
                "Failed",
                "Failed",
                "Failed",
                "[red]Error[/red]",
            )

    console.print(table)
    for format_id, metric in result.metrics.items():
        if not metric.success:
            console.print(f"  {format_id.upper()}: {metric.error}", markup=False)


def main() -> int:
    """Main entry point for the benchmark CLI."""
    parser = argparse.ArgumentParser(
        description="Convert an image into several formats and benchmark their network transfer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Benchmark against a running upload server
    python -m formatbench photo.png --server http://localhost:8000

    # Start the bundled reference server for the duration of the run
    python -m formatbench photo.png --start-server

    # Specify output directory
    python -m formatbench photo.png -o ./benchmark_results
        """,
    )

    parser.add_argument("image", type=Path, help="Source image to convert and benchmark")
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output directory for results (default: benchmark_YYYYMMDD_HHMMSS)",
    )
    parser.add_argument(
        "--server",
        default=config.get_server_url(),
        help=f"Upload server base URL (default: {config.get_server_url()})",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=config.REQUEST_TIMEOUT,
        help=f"Per-request timeout in seconds (default: {config.REQUEST_TIMEOUT})",
    )
    parser.add_argument(
        "--start-server",
        action="store_true",
        help="Start the reference upload server (main:app) as a subprocess",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")

    args = parser.parse_args()

    setup_logging(args.verbose)

    if not args.image.is_file():
        print(f"Error: Image does not exist: {args.image}", file=sys.stderr)
        return 1

    output_dir = args.output or Path(f"benchmark_{datetime.now():%Y%m%d_%H%M%S}")
    bench_config = BenchmarkConfig(
        image_path=args.image,
        output_dir=output_dir,
        server_url=args.server,
        timeout=args.timeout,
        start_server=args.start_server,
    )

    print("=" * 60)
    print("Image Format Network Benchmark")
    print("=" * 60)
    print(f"  Image:            {bench_config.image_path}")
    print(f"  Output directory: {bench_config.output_dir}")
    print(f"  Server:           {bench_config.server_url}")
    print(f"  Start server:     {bench_config.start_server}")
    print("=" * 60)
    print()

    bench_config.output_dir.mkdir(parents=True, exist_ok=True)
    add_file_logging(bench_config.output_dir)

    progress_callback, cleanup = create_progress_callback()

    try:
        source = SourceImage.from_path(bench_config.image_path)

        with contextlib.ExitStack() as stack:
            if bench_config.start_server:
                stack.enter_context(
                    ServerProcess(bench_config.server_url, bench_config.server_startup_timeout)
                )
            transport = stack.enter_context(
                HttpTransport(bench_config.server_url, timeout=bench_config.timeout)
            )
            if not transport.health_check():
                raise RuntimeError(f"Cannot reach server at {bench_config.server_url}")

            session = BenchmarkSession(transport, progress_callback=progress_callback)
            result = session.run(source)

        cleanup()

        ReportGenerator(bench_config.output_dir, session.store, source, session.variants).generate_all()

        print()
        print_results(result)
        print(f"  Variants produced: {len(result.variants)}")
        print(f"  Failed transfers:  {len(result.failed_formats)}")
        print(f"  Wall clock time:   {result.wall_time_s:.2f}s")
        print()
        print(f"Results saved to: {bench_config.output_dir}")
        print(f"  - Summary JSON: {bench_config.output_dir / 'summary.json'}")
        print(f"  - Timeline:     {bench_config.output_dir / 'traces' / 'benchmark_timeline.json'}")
        print("=" * 60)

        return 0

    except KeyboardInterrupt:
        cleanup()
        print("\nBenchmark interrupted by user")
        return 130

    except ImageDecodeError as e:
        cleanup()
        print(f"\nError: {e}", file=sys.stderr)
        return 1

    except Exception as e:
        cleanup()
        logging.exception("Benchmark failed with error")
        print(f"\nError: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
