"""Grid export for rendering.

Builds the render payload from a DenseMatrix (``x`` = ISO times, ``y`` =
prices, ``z[price_index][time_index]``) and writes it as a standalone plotly
heatmap page.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import plotly.graph_objects as go

from src.heatmapcapture.axes import format_instant
from src.heatmapcapture.transformer import DenseMatrix

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Liquidation Heatmap"


@dataclass(frozen=True)
class GridPayload:
    """Render-ready heatmap.

    Attributes:
        x: Time axis as ISO-8601 instants
        y: Price axis
        z: Price-major matrix, z[pi][ti] is the value at price pi and time ti
        zmin: Colour-scale floor
        zmax: Colour-scale ceiling hint (None lets the renderer decide)
    """

    x: list[str]
    y: list[float]
    z: list[list[float]]
    zmin: float = 0.0
    zmax: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {"x": self.x, "y": self.y, "z": self.z, "zmin": self.zmin, "zmax": self.zmax}


def build_grid_payload(matrix: DenseMatrix) -> GridPayload:
    """Orient a dense matrix for rendering.

    ``max_liq_value`` is used as the colour ceiling when present; otherwise the
    largest cell value is used, and an all-zero grid leaves it unset.
    """
    zmax = matrix.max_liq_value
    if zmax is None or zmax <= 0:
        observed = float(matrix.volume.max()) if matrix.volume.size else 0.0
        zmax = observed if observed > 0 else None

    return GridPayload(
        x=[format_instant(t) for t in matrix.times],
        y=list(matrix.prices),
        z=matrix.volume.T.tolist(),
        zmin=0.0,
        zmax=zmax,
    )


def render_html(grid: GridPayload, title: str = DEFAULT_TITLE) -> str:
    """Render a standalone HTML page with a plotly heatmap (plotly.js from CDN)."""
    fig = go.Figure(
        data=go.Heatmap(
            z=grid.z,
            x=grid.x,
            y=grid.y,
            zmin=grid.zmin,
            zmax=grid.zmax,
            colorscale="Inferno",
        )
    )
    fig.update_layout(
        title=title,
        xaxis_title="Time",
        yaxis_title="Price",
        width=1200,
        height=600,
    )
    return fig.to_html(include_plotlyjs="cdn", full_html=True)


def write_html(matrix: DenseMatrix, output_file: Path, title: str = DEFAULT_TITLE) -> Path:
    """Write the heatmap page for ``matrix`` to ``output_file``."""
    output_file = Path(output_file)
    grid = build_grid_payload(matrix)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    output_file.write_text(render_html(grid, title=title), encoding="utf-8")
    logger.info(f"Generated HTML heatmap at {output_file}")
    return output_file
