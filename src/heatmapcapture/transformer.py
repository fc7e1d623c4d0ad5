"""Sparse-to-dense heatmap transformation.

Turns a SparseHeatmapPayload into a DenseMatrix: a zero-initialised
``(T, P)`` grid scattered from the sparse cells in sequence order, so a
duplicate ``(timeIndex, priceIndex)`` pair ends up holding the later value.

The transformation is a pure function of its input. Each call allocates and
owns its output grid, so independent payloads can be densified concurrently.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

import numpy as np

from src.heatmapcapture.axes import Axes, resolve_axes
from src.heatmapcapture.exceptions import IndexOutOfBoundsError
from src.heatmapcapture.payload import SparseCell, SparseHeatmapPayload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DenseMatrix:
    """Dense liquidation grid.

    Attributes:
        times: T parsed timestamps (UTC), the row axis
        prices: P parsed price levels, the column axis
        volume: Read-only float64 array of shape (T, P); volume[ti, pi] is the
            liquidation magnitude at time ti and price pi
        max_liq_value: Colour-scale ceiling hint passed through from the payload
        skipped: Out-of-range cells dropped in lenient mode (always 0 otherwise)
    """

    times: tuple[datetime, ...]
    prices: tuple[float, ...]
    volume: np.ndarray
    max_liq_value: Optional[float] = None
    skipped: int = 0

    @property
    def shape(self) -> tuple[int, int]:
        return self.volume.shape

    def cell(self, time_index: int, price_index: int) -> float:
        """Value at a single (time, price) cell."""
        return float(self.volume[time_index, price_index])


def select_cells(
    cells: Iterable[SparseCell],
    shape: tuple[int, int],
    lenient: bool = False,
) -> tuple[list[tuple[int, SparseCell]], int]:
    """Bounds-check sparse cells against a (T, P) shape.

    Args:
        cells: Sparse cells in sequence order
        shape: Declared (T, P) grid shape
        lenient: Skip and count out-of-range cells instead of failing

    Returns:
        (in-range cells paired with their position, number skipped)

    Raises:
        IndexOutOfBoundsError: On the first out-of-range cell when not lenient
    """
    n_times, n_prices = shape
    selected = []
    skipped = 0

    for position, cell in enumerate(cells):
        if 0 <= cell.time_index < n_times and 0 <= cell.price_index < n_prices:
            selected.append((position, cell))
            continue

        if not lenient:
            raise IndexOutOfBoundsError(cell.time_index, cell.price_index, position, shape)
        skipped += 1

    if skipped:
        logger.warning(f"Skipped {skipped} out-of-range cells (lenient mode, grid {shape})")

    return selected, skipped


def densify(
    payload: SparseHeatmapPayload,
    lenient: bool = False,
    axes: Optional[Axes] = None,
) -> DenseMatrix:
    """Convert a sparse heatmap payload into a dense matrix.

    Args:
        payload: Validated sparse payload
        lenient: Skip (and count) out-of-range cells instead of failing.
            Off by default: an out-of-range index means the axes and the data
            disagree structurally.
        axes: Pre-resolved axes for this payload (resolved here if omitted)

    Returns:
        DenseMatrix with a grid of exactly len(chartTimeArray) x len(priceArray)

    Raises:
        IndexOutOfBoundsError: If a cell is out of range and lenient is False
    """
    if axes is None:
        axes = resolve_axes(payload)

    selected, skipped = select_cells(payload.cells, axes.shape, lenient=lenient)

    volume = np.zeros(axes.shape, dtype=np.float64)
    for _, cell in selected:
        volume[cell.time_index, cell.price_index] = cell.value
    volume.setflags(write=False)

    return DenseMatrix(
        times=axes.times,
        prices=axes.prices,
        volume=volume,
        max_liq_value=payload.max_liq_value,
        skipped=skipped,
    )
