"""Unit tests for shared axis resolution and number formatting."""

from datetime import datetime, timedelta, timezone

import pytest

from src.heatmapcapture.axes import (
    EPOCH,
    format_instant,
    format_number,
    parse_price,
    parse_time,
    resolve_axes,
)
from src.heatmapcapture.payload import SparseHeatmapPayload


class TestParseTime:
    """Tests for timestamp parsing."""

    def test_epoch_millis_int(self):
        assert parse_time(1000) == EPOCH + timedelta(seconds=1)

    def test_epoch_millis_float_keeps_millis(self):
        assert parse_time(1500.0) == EPOCH + timedelta(milliseconds=1500)

    def test_epoch_millis_numeric_string(self):
        assert parse_time("1717200000000") == datetime(2024, 6, 1, tzinfo=timezone.utc)

    def test_iso_with_z(self):
        assert parse_time("2024-06-01T00:05:00Z") == datetime(
            2024, 6, 1, 0, 5, tzinfo=timezone.utc
        )

    def test_iso_with_offset_converted_to_utc(self):
        parsed = parse_time("2024-06-01T02:00:00+02:00")
        assert parsed == datetime(2024, 6, 1, 0, 0, tzinfo=timezone.utc)
        assert parsed.tzinfo == timezone.utc

    def test_naive_iso_assumed_utc(self):
        assert parse_time("2024-06-01T00:00:00").tzinfo == timezone.utc

    @pytest.mark.parametrize("value", ["not a date", True, None, float("nan"), 10**20])
    def test_invalid_timestamps(self, value):
        with pytest.raises(ValueError):
            parse_time(value)


class TestParsePrice:
    def test_numeric_string(self):
        assert parse_price("67025.5") == 67025.5

    def test_number_passthrough(self):
        assert parse_price(10) == 10.0

    @pytest.mark.parametrize("value", ["inf", "nan", True])
    def test_rejects_non_finite_and_bool(self, value):
        with pytest.raises(ValueError):
            parse_price(value)


class TestFormatting:
    """Output formatting shared by exporters."""

    def test_format_instant_millisecond_precision(self):
        moment = EPOCH + timedelta(seconds=1, microseconds=123456)
        assert format_instant(moment) == "1970-01-01T00:00:01.123Z"

    def test_format_instant_converts_to_utc(self):
        tz = timezone(timedelta(hours=3))
        assert format_instant(datetime(2024, 6, 1, 3, 0, tzinfo=tz)) == "2024-06-01T00:00:00.000Z"

    @pytest.mark.parametrize(
        "value,expected",
        [
            (20.0, "20"),
            (5, "5"),
            (0.0, "0"),
            (1.5, "1.5"),
            (67025.25, "67025.25"),
            (0.1, "0.1"),
        ],
    )
    def test_format_number(self, value, expected):
        assert format_number(value) == expected


class TestResolveAxes:
    def test_order_and_shape_preserved(self, realistic_heatmap):
        payload = SparseHeatmapPayload.from_wire(realistic_heatmap)

        axes = resolve_axes(payload)

        assert axes.shape == (4, 5)
        assert axes.prices == (67000.0, 67025.0, 67050.0, 67075.0, 67100.0)
        assert list(axes.times) == sorted(axes.times)
        assert axes.times[1] - axes.times[0] == timedelta(minutes=5)
