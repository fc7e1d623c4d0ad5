"""
Sparse liquidation heatmap payload contract.

The upstream endpoint answers with an envelope of the form::

    {"data": {"liqHeatMap": {"chartTimeArray": [...], "priceArray": [...],
                             "data": [[timeIndex, priceIndex, value], ...],
                             "maxLiqValue": 123.4}}}

Only non-zero cells are listed in ``data``; every other cell of the
``len(chartTimeArray) x len(priceArray)`` grid is implicitly zero.
"""

import json
import logging
import math
from typing import Any, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from src.heatmapcapture.axes import parse_price, parse_time
from src.heatmapcapture.exceptions import MalformedPayloadError

logger = logging.getLogger(__name__)

ENVELOPE_DATA_KEY = "data"
ENVELOPE_HEATMAP_KEY = "liqHeatMap"


class SparseCell(NamedTuple):
    """One non-zero grid cell."""

    time_index: int
    price_index: int
    value: float


def _coerce_index(raw: Any, name: str, position: int) -> int:
    """Accept ints, integral floats and integral numeric strings."""
    if isinstance(raw, bool):
        raise ValueError(f"cell #{position}: {name} must be an integer, got {raw!r}")
    if isinstance(raw, int):
        return raw

    try:
        number = float(raw)
    except (TypeError, ValueError):
        raise ValueError(f"cell #{position}: {name} must be an integer, got {raw!r}") from None

    if not math.isfinite(number) or number != int(number):
        raise ValueError(f"cell #{position}: {name} must be an integer, got {raw!r}")
    return int(number)


def _coerce_value(raw: Any, position: int) -> float:
    if isinstance(raw, bool):
        raise ValueError(f"cell #{position}: value must be a number, got {raw!r}")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ValueError(f"cell #{position}: value must be a number, got {raw!r}") from None

    if not math.isfinite(value):
        raise ValueError(f"cell #{position}: value {raw!r} is not finite")
    if value < 0:
        raise ValueError(f"cell #{position}: value {raw!r} is negative")
    return value


class SparseHeatmapPayload(BaseModel):
    """Validated ``liqHeatMap`` object.

    Field names follow Python conventions; the wire names are kept as aliases
    so the model can be built straight from the decoded JSON. The model is
    frozen: axes define the grid shape and must not change after capture.

    Index range is deliberately not checked here. Whether an out-of-range
    cell is fatal or skipped is decided by the consumer (see
    ``src.heatmapcapture.transformer.select_cells``).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    chart_time_array: tuple[Any, ...] = Field(
        ..., alias="chartTimeArray", description="Time axis (epoch millis or ISO-8601)"
    )
    price_array: tuple[Any, ...] = Field(
        ..., alias="priceArray", description="Price axis (numeric strings)"
    )
    cells: tuple[SparseCell, ...] = Field(
        ..., alias="data", description="Sparse [timeIndex, priceIndex, value] triples"
    )
    max_liq_value: Optional[float] = Field(
        default=None, alias="maxLiqValue", description="Colour-scale ceiling hint"
    )

    @field_validator("chart_time_array")
    @classmethod
    def validate_times(cls, v: tuple[Any, ...]) -> tuple[Any, ...]:
        """Every timestamp must be parseable."""
        for position, ts in enumerate(v):
            try:
                parse_time(ts)
            except ValueError as e:
                raise ValueError(f"chartTimeArray[{position}]: {e}") from None
        return v

    @field_validator("price_array")
    @classmethod
    def validate_prices(cls, v: tuple[Any, ...]) -> tuple[Any, ...]:
        """Every price level must be a finite number."""
        for position, price in enumerate(v):
            try:
                parse_price(price)
            except (TypeError, ValueError):
                raise ValueError(f"priceArray[{position}]: {price!r} is not a number") from None
        return v

    @field_validator("cells", mode="before")
    @classmethod
    def coerce_cells(cls, v: Any) -> tuple[SparseCell, ...]:
        """Turn raw triples into SparseCell tuples."""
        if isinstance(v, (str, bytes, dict)) or not hasattr(v, "__iter__"):
            raise ValueError("data must be a sequence of [timeIndex, priceIndex, value]")

        cells = []
        for position, raw in enumerate(v):
            if isinstance(raw, (str, bytes, dict)) or not hasattr(raw, "__len__"):
                raise ValueError(f"cell #{position} must be a 3-element sequence, got {raw!r}")
            if len(raw) != 3:
                raise ValueError(f"cell #{position} must have 3 elements, got {len(raw)}")

            t_i, p_i, value = raw
            cells.append(
                SparseCell(
                    time_index=_coerce_index(t_i, "timeIndex", position),
                    price_index=_coerce_index(p_i, "priceIndex", position),
                    value=_coerce_value(value, position),
                )
            )
        return tuple(cells)

    @property
    def shape(self) -> tuple[int, int]:
        """Declared (T, P) grid shape."""
        return len(self.chart_time_array), len(self.price_array)

    @classmethod
    def from_wire(cls, heatmap: Any) -> "SparseHeatmapPayload":
        """Build from the decoded ``liqHeatMap`` object.

        Raises:
            MalformedPayloadError: If required fields are missing or invalid
        """
        if not isinstance(heatmap, dict):
            raise MalformedPayloadError(
                f"liqHeatMap must be an object, got {type(heatmap).__name__}"
            )
        try:
            return cls.model_validate(heatmap)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise MalformedPayloadError(f"Invalid heatmap payload: {problems}") from e


def extract_heatmap(raw: Any) -> SparseHeatmapPayload:
    """Extract and validate ``data.liqHeatMap`` from an API/page response.

    Args:
        raw: Decoded JSON response, or its text

    Returns:
        Validated SparseHeatmapPayload

    Raises:
        MalformedPayloadError: If the envelope or the heatmap object is malformed
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedPayloadError(f"Response is not valid JSON: {e}") from e

    data = raw.get(ENVELOPE_DATA_KEY) if isinstance(raw, dict) else None
    heatmap = data.get(ENVELOPE_HEATMAP_KEY) if isinstance(data, dict) else None
    if heatmap is None:
        raise MalformedPayloadError(
            f"Response has no {ENVELOPE_DATA_KEY}.{ENVELOPE_HEATMAP_KEY} object"
        )

    payload = SparseHeatmapPayload.from_wire(heatmap)
    logger.debug(
        f"Extracted heatmap: {payload.shape[0]} times x {payload.shape[1]} prices, "
        f"{len(payload.cells)} cells"
    )
    return payload
