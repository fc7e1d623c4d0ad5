"""Axis resolution shared by the dense transformer and the CSV exporter.

Both consumers must agree on how ``chartTimeArray`` and ``priceArray`` are
parsed, otherwise a CSV row and the grid cell it came from could disagree.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, NamedTuple, Union

if TYPE_CHECKING:
    from src.heatmapcapture.payload import SparseHeatmapPayload

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Largest magnitude that still prints as a plain integer (same cut-off as JS Number#toString)
_PLAIN_INTEGER_LIMIT = 1e21

TimeValue = Union[int, float, str]
PriceValue = Union[int, float, str]


class Axes(NamedTuple):
    """Resolved grid axes."""

    times: tuple[datetime, ...]
    prices: tuple[float, ...]

    @property
    def shape(self) -> tuple[int, int]:
        return len(self.times), len(self.prices)


def _millis_to_datetime(millis: float) -> datetime:
    if not math.isfinite(millis):
        raise ValueError(f"timestamp {millis!r} is not finite")
    try:
        return EPOCH + timedelta(milliseconds=millis)
    except OverflowError:
        raise ValueError(f"timestamp {millis!r} is out of range") from None


def parse_time(value: TimeValue) -> datetime:
    """Parse an upstream timestamp into a UTC-aware datetime.

    Accepts epoch milliseconds (number or numeric string) and ISO-8601 strings.
    Naive ISO strings are taken to be UTC.

    Raises:
        ValueError: If the value cannot be interpreted as a timestamp
    """
    if isinstance(value, bool):
        raise ValueError(f"timestamp {value!r} is a boolean")

    if isinstance(value, (int, float)):
        return _millis_to_datetime(value)

    if isinstance(value, str):
        text = value.strip()
        try:
            return _millis_to_datetime(float(text))
        except ValueError:
            pass

        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            raise ValueError(f"timestamp {value!r} is neither epoch millis nor ISO-8601") from None

        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    raise ValueError(f"unsupported timestamp type {type(value).__name__}")


def parse_price(value: PriceValue) -> float:
    """Parse a numeric-string price level.

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise ValueError(f"price {value!r} is a boolean")

    price = float(value)
    if not math.isfinite(price):
        raise ValueError(f"price {value!r} is not finite")
    return price


def format_instant(moment: datetime) -> str:
    """Render a datetime as an ISO-8601 UTC instant with millisecond precision.

    Example:
        >>> format_instant(EPOCH + timedelta(seconds=1))
        '1970-01-01T00:00:01.000Z'
    """
    utc = moment.astimezone(timezone.utc)
    return f"{utc.strftime('%Y-%m-%dT%H:%M:%S')}.{utc.microsecond // 1000:03d}Z"


def format_number(value: float) -> str:
    """Render a number the way the upstream tooling prints it.

    Integral values drop the trailing ``.0`` (``20.0`` -> ``20``); everything
    else uses the shortest round-trip representation.
    """
    if math.isfinite(value) and value == int(value) and abs(value) < _PLAIN_INTEGER_LIMIT:
        return str(int(value))
    return repr(value)


def resolve_axes(payload: "SparseHeatmapPayload") -> Axes:
    """Parse both axes of a payload, preserving their order."""
    return Axes(
        times=tuple(parse_time(ts) for ts in payload.chart_time_array),
        prices=tuple(parse_price(p) for p in payload.price_array),
    )
