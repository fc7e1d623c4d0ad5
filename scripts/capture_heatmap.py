#!/usr/bin/env python3
"""Capture a liquidation heatmap and export it as CSV or an HTML heatmap.

Usage:
    python scripts/capture_heatmap.py --mode csv                              # direct API -> CSV
    python scripts/capture_heatmap.py --source browser --symbol SUIUSDT --interval 1d --headless
    python scripts/capture_heatmap.py --source file --json-file response.json --mode plot
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path

from rich.console import Console

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.heatmapcapture.config import HeatmapConfig, load_config  # noqa: E402
from src.heatmapcapture.exceptions import HeatmapCaptureError  # noqa: E402
from src.heatmapcapture.logging_config import setup_logging  # noqa: E402
from src.heatmapcapture.pipeline import OutputMode, Source, run_pipeline  # noqa: E402

logger = logging.getLogger(__name__)

console = Console()


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Capture and export a liquidation heatmap")
    parser.add_argument(
        "--source",
        "-s",
        choices=[s.value for s in Source],
        default=Source.API.value,
        help="Where to get the heatmap from (default: api)",
    )
    parser.add_argument(
        "--mode",
        "-m",
        choices=[m.value for m in OutputMode],
        default=OutputMode.PLOT.value,
        help="Output format (default: plot)",
    )
    parser.add_argument("--csv-file", "-c", default="liq_heatmap.csv", help="CSV output path")
    parser.add_argument("--html-file", "-o", default="heatmap.html", help="HTML output path")
    parser.add_argument(
        "--json-file", "-j", default="response.json", help="Saved response for --source file"
    )
    parser.add_argument("--save-json", default=None, help="Also save the raw response here")
    parser.add_argument("--symbol", default=None, help="Trading pair (e.g. BTCUSDT)")
    parser.add_argument("--exchange", default=None, help="Exchange name (e.g. Binance)")
    parser.add_argument("--interval", default=None, help="Heatmap range (e.g. 3d)")
    parser.add_argument("--headless", action="store_true", help="Run Chromium headless")
    parser.add_argument("--settle", type=float, default=None, help="Settle delay in seconds")
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Capture deadline in seconds (also caps the settle delay unless --settle is given)",
    )
    parser.add_argument(
        "--lenient", action="store_true", help="Skip out-of-range cells instead of failing"
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML configuration file")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )
    return parser.parse_args(argv)


def build_config(args) -> HeatmapConfig:
    """Merge CLI flags over file/environment configuration."""
    config = load_config(args.config) if args.config else HeatmapConfig()

    api_overrides = {
        key: value
        for key, value in (
            ("symbol", args.symbol),
            ("exchange", args.exchange),
            ("interval", args.interval),
        )
        if value is not None
    }
    capture_overrides = {}
    if args.headless:
        capture_overrides["headless"] = True
    if args.lenient:
        capture_overrides["lenient"] = True
    if args.timeout is not None:
        capture_overrides["capture_timeout"] = args.timeout
        # a shorter deadline alone pulls the configured settle delay down with it
        if args.settle is None:
            capture_overrides["settle_delay"] = min(config.capture.settle_delay, args.timeout)
    if args.settle is not None:
        capture_overrides["settle_delay"] = args.settle

    return HeatmapConfig(
        capture=replace(config.capture, **capture_overrides),
        api=replace(config.api, **api_overrides),
    )


def main(argv=None) -> int:
    """Main capture workflow."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    source = Source(args.source)
    mode = OutputMode(args.mode)
    output_file = Path(args.csv_file if mode is OutputMode.CSV else args.html_file)

    try:
        config = build_config(args)
    except (ValueError, OSError) as e:
        console.print(f"[bold red]❌ Invalid configuration:[/bold red] {e}")
        return 1

    console.print(
        f"Source: [cyan]{source.value}[/cyan]  Symbol: [cyan]{config.api.symbol}[/cyan]  "
        f"Interval: [cyan]{config.api.interval}[/cyan]  Output: [cyan]{output_file}[/cyan]"
    )

    try:
        result = asyncio.run(
            run_pipeline(
                source,
                mode,
                output_file,
                config=config,
                json_file=Path(args.json_file),
                save_json=Path(args.save_json) if args.save_json else None,
            )
        )
    except HeatmapCaptureError as e:
        logger.error(f"Heatmap capture failed: {e}")
        console.print(f"[bold red]❌ {type(e).__name__}:[/bold red] {e}")
        return 1

    rows, cols = result.payload.shape
    console.print(
        f"[bold green]✅ Wrote {result.output_file}[/bold green] "
        f"({rows} times x {cols} prices, {len(result.payload.cells)} cells)"
    )
    if result.matrix is not None and result.matrix.skipped:
        console.print(f"[yellow]Skipped {result.matrix.skipped} out-of-range cells[/yellow]")
    return 0


if __name__ == "__main__":
    sys.exit(main())
