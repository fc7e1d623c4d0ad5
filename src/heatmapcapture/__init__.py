"""Liquidation heatmap capture and densification.

This package provides:
- SparseHeatmapPayload: validated ``data.liqHeatMap`` contract
- densify / DenseMatrix: sparse-to-dense grid transformation
- CaptureStore / InterceptionLayer: response interception into a capture slot
- CaptureWaiter: bounded wait for a captured response
"""

from src.heatmapcapture.exceptions import (
    CaptureTimeoutError,
    HeatmapCaptureError,
    IndexOutOfBoundsError,
    InterceptorInstallError,
    MalformedPayloadError,
    SourceFetchError,
)
from src.heatmapcapture.interceptor import (
    HEATMAP_ENDPOINT_MARKER,
    InterceptionLayer,
    capture_json,
    url_contains,
)
from src.heatmapcapture.payload import SparseCell, SparseHeatmapPayload, extract_heatmap
from src.heatmapcapture.store import CaptureStore
from src.heatmapcapture.transformer import DenseMatrix, densify
from src.heatmapcapture.waiter import CaptureResult, CaptureStatus, CaptureWaiter

__all__ = [
    "HeatmapCaptureError",
    "MalformedPayloadError",
    "IndexOutOfBoundsError",
    "CaptureTimeoutError",
    "InterceptorInstallError",
    "SourceFetchError",
    "HEATMAP_ENDPOINT_MARKER",
    "InterceptionLayer",
    "capture_json",
    "url_contains",
    "SparseCell",
    "SparseHeatmapPayload",
    "extract_heatmap",
    "CaptureStore",
    "DenseMatrix",
    "densify",
    "CaptureResult",
    "CaptureStatus",
    "CaptureWaiter",
]
