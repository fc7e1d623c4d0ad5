"""Capture-to-export pipeline.

source (API / browser / saved file) -> raw envelope -> SparseHeatmapPayload
-> CSV (sparse cells) or dense matrix -> HTML heatmap.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from src.heatmapcapture.browser import capture_from_browser
from src.heatmapcapture.client import HeatmapClient
from src.heatmapcapture.config import HeatmapConfig, get_config
from src.heatmapcapture.exceptions import (
    CaptureTimeoutError,
    MalformedPayloadError,
    SourceFetchError,
)
from src.heatmapcapture.exporters import write_csv, write_html
from src.heatmapcapture.payload import SparseHeatmapPayload, extract_heatmap
from src.heatmapcapture.transformer import DenseMatrix, densify
from src.heatmapcapture.waiter import CaptureResult

logger = logging.getLogger(__name__)


class Source(str, Enum):
    API = "api"
    BROWSER = "browser"
    FILE = "file"


class OutputMode(str, Enum):
    CSV = "csv"
    PLOT = "plot"


@dataclass
class PipelineResult:
    """What a pipeline run produced."""

    payload: SparseHeatmapPayload
    output_file: Path
    mode: OutputMode
    matrix: Optional[DenseMatrix] = None


def load_response(json_file: Path) -> Any:
    """Load a saved response envelope.

    Raises:
        SourceFetchError: If the file cannot be read
        MalformedPayloadError: If it is not valid JSON
    """
    try:
        raw = Path(json_file).read_text(encoding="utf-8")
    except OSError as e:
        raise SourceFetchError(f"Failed to read '{json_file}': {e}") from e

    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedPayloadError(f"'{json_file}' is not valid JSON: {e}") from e


def save_response(raw: Any, json_file: Path) -> Path:
    """Save a raw response envelope for later offline runs."""
    json_file = Path(json_file)
    json_file.parent.mkdir(parents=True, exist_ok=True)
    json_file.write_text(json.dumps(raw), encoding="utf-8")
    logger.info(f"Saved raw response to {json_file}")
    return json_file


def require_capture(result: CaptureResult) -> Any:
    """Return the captured payload or raise.

    Raises:
        CaptureTimeoutError: If the capture timed out or was cancelled
    """
    if not result.captured:
        raise CaptureTimeoutError(
            f"Heatmap response not captured ({result.status.value} after "
            f"{result.elapsed:.1f}s, {result.polls} polls)"
        )
    return result.payload


async def fetch_response(
    source: Source,
    config: Optional[HeatmapConfig] = None,
    json_file: Optional[Path] = None,
) -> Any:
    """Obtain a raw response envelope from ``source``."""
    config = config or get_config()

    if source is Source.FILE:
        if json_file is None:
            raise SourceFetchError("A JSON file is required for the file source")
        return load_response(json_file)

    if source is Source.API:
        async with HeatmapClient(config.api) as client:
            return await client.fetch_raw()

    result = await capture_from_browser(config.api.symbol, config.api.interval, config.capture)
    return require_capture(result)


def export(
    payload: SparseHeatmapPayload,
    mode: OutputMode,
    output_file: Path,
    lenient: bool = False,
) -> PipelineResult:
    """Write ``payload`` in the requested form.

    Raises:
        IndexOutOfBoundsError: If a cell is out of range and lenient is False
    """
    if mode is OutputMode.CSV:
        path = write_csv(payload, output_file, lenient=lenient)
        return PipelineResult(payload=payload, output_file=path, mode=mode)

    matrix = densify(payload, lenient=lenient)
    path = write_html(matrix, output_file)
    return PipelineResult(payload=payload, output_file=path, mode=mode, matrix=matrix)


async def run_pipeline(
    source: Source,
    mode: OutputMode,
    output_file: Path,
    config: Optional[HeatmapConfig] = None,
    json_file: Optional[Path] = None,
    save_json: Optional[Path] = None,
) -> PipelineResult:
    """Fetch, validate and export one heatmap.

    Raises:
        HeatmapCaptureError: Any typed capture, fetch or transformation failure
    """
    config = config or get_config()

    raw = await fetch_response(source, config=config, json_file=json_file)
    if save_json is not None:
        save_response(raw, save_json)

    payload = extract_heatmap(raw)
    logger.info(
        f"Heatmap has {payload.shape[0]} times x {payload.shape[1]} prices, "
        f"{len(payload.cells)} non-zero cells"
    )
    return export(payload, mode, output_file, lenient=config.capture.lenient)
