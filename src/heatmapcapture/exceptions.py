"""
Custom exceptions for the heatmap capture pipeline.

Capture-layer problems (timeouts, unparseable bodies) are normally reported
as results rather than raised; the types below cover the cases where a caller
needs a typed failure it can catch and report.
"""


class HeatmapCaptureError(Exception):
    """Base exception for capture pipeline errors."""

    pass


class MalformedPayloadError(HeatmapCaptureError):
    """Raised when a heatmap payload is missing required fields or has the wrong shape."""

    pass


class IndexOutOfBoundsError(HeatmapCaptureError):
    """Raised when a sparse cell references an index outside the declared axes."""

    def __init__(
        self,
        time_index: int,
        price_index: int,
        position: int,
        shape: tuple[int, int],
    ):
        self.time_index = time_index
        self.price_index = price_index
        self.position = position
        self.shape = shape
        super().__init__(
            f"cell #{position} ({time_index}, {price_index}) is outside grid "
            f"of shape {shape[0]}x{shape[1]}"
        )


class CaptureTimeoutError(HeatmapCaptureError):
    """Raised when no matching response was captured before the deadline."""

    pass


class InterceptorInstallError(HeatmapCaptureError):
    """Raised when the network interceptor was installed too late or not at all."""

    pass


class SourceFetchError(HeatmapCaptureError):
    """Raised when the heatmap endpoint cannot be fetched directly."""

    pass
