"""Pytest configuration and shared fixtures."""

import tempfile
from pathlib import Path

import pytest

from src.heatmapcapture.config import reset_config


@pytest.fixture(autouse=True)
def reset_config_singleton():
    """Reset the configuration singleton before and after each test.

    Tests that tweak HEATMAP_* environment variables must not leak a cached
    config into other tests.
    """
    reset_config()
    yield
    reset_config()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_heatmap():
    """Small liqHeatMap object (2 times x 2 prices)."""
    return {
        "chartTimeArray": [1000, 2000],
        "priceArray": ["10.0", "20.0"],
        "data": [[0, 1, 5], [1, 0, 3]],
        "maxLiqValue": 5,
    }


@pytest.fixture
def sample_response(sample_heatmap):
    """Response envelope as returned by the heatmap endpoint."""
    return {"success": True, "code": "1", "data": {"liqHeatMap": sample_heatmap}}


@pytest.fixture
def realistic_heatmap():
    """Heatmap shaped like a real 5-minute/25-unit response (4 times x 5 prices)."""
    return {
        "chartTimeArray": [1717200000000, 1717200300000, 1717200600000, 1717200900000],
        "priceArray": ["67000", "67025", "67050", "67075", "67100"],
        "data": [
            [0, 0, 125000.5],
            [0, 4, 98000],
            [1, 2, 456000.25],
            [2, 1, 1200],
            [3, 3, 310000],
        ],
        "maxLiqValue": 500000,
    }
