"""CSV export of sparse heatmap cells.

One line per sparse cell, in the order the payload lists them::

    time,price,value
    1970-01-01T00:00:01.000Z,20,5

Axes are resolved with the same code as the dense transformer, so a CSV row
and the grid cell it describes always agree.
"""

import logging
from pathlib import Path
from typing import Optional

from src.heatmapcapture.axes import Axes, format_instant, format_number, resolve_axes
from src.heatmapcapture.payload import SparseHeatmapPayload
from src.heatmapcapture.transformer import select_cells

logger = logging.getLogger(__name__)

CSV_HEADER = "time,price,value"


def render_csv(
    payload: SparseHeatmapPayload,
    lenient: bool = False,
    axes: Optional[Axes] = None,
) -> str:
    """Render sparse cells as CSV text (no trailing newline).

    Raises:
        IndexOutOfBoundsError: If a cell is out of range and lenient is False
    """
    if axes is None:
        axes = resolve_axes(payload)

    selected, _ = select_cells(payload.cells, axes.shape, lenient=lenient)
    lines = [CSV_HEADER]
    for _, cell in selected:
        time = format_instant(axes.times[cell.time_index])
        price = format_number(axes.prices[cell.price_index])
        lines.append(f"{time},{price},{format_number(cell.value)}")
    return "\n".join(lines)


def write_csv(
    payload: SparseHeatmapPayload,
    output_file: Path,
    lenient: bool = False,
) -> Path:
    """Write the CSV export to ``output_file`` (UTF-8)."""
    output_file = Path(output_file)
    text = render_csv(payload, lenient=lenient)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    output_file.write_text(text, encoding="utf-8")
    logger.info(f"Exported {len(payload.cells)} cells to {output_file}")
    return output_file
