"""Heatmap exporters.

- csv_exporter: sparse cells as ``time,price,value`` lines
- grid_exporter: dense matrix as a render payload / plotly HTML page
"""

from src.heatmapcapture.exporters.csv_exporter import CSV_HEADER, render_csv, write_csv
from src.heatmapcapture.exporters.grid_exporter import (
    GridPayload,
    build_grid_payload,
    render_html,
    write_html,
)

__all__ = [
    "CSV_HEADER",
    "render_csv",
    "write_csv",
    "GridPayload",
    "build_grid_payload",
    "render_html",
    "write_html",
]
