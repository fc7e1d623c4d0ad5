"""Single-writer capture store.

Holds the latest matching network response. Only the interception layer
writes to it; the capture waiter only reads. Captures overwrite each other,
nothing is queued.
"""

import asyncio
import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)


class CaptureStore:
    """Latest-value slot with a push signal and observable counters.

    Attributes:
        captures: Number of successful writes since creation
        parse_failures: Matching responses whose body was not valid JSON
    """

    def __init__(self, name: str = "liqHeatMap"):
        self.name = name
        self._latest: Optional[Any] = None
        self._signal = asyncio.Event()
        self.captures = 0
        self.parse_failures = 0

    @property
    def signal(self) -> asyncio.Event:
        """Event set whenever a payload is stored, cleared on reset."""
        return self._signal

    @property
    def is_empty(self) -> bool:
        return self._latest is None

    def put(self, payload: Any) -> None:
        """Store a payload, replacing any previous capture."""
        if payload is None:
            raise ValueError(f"[{self.name}] cannot store None; use reset() to empty the slot")
        replaced = self._latest is not None
        self._latest = payload
        self.captures += 1
        self._signal.set()
        logger.debug(
            f"[{self.name}] captured payload #{self.captures}"
            + (" (replaced previous)" if replaced else "")
        )

    def get(self) -> Optional[Any]:
        """Return the latest payload, or None when nothing was captured."""
        return self._latest

    async def probe(self) -> Optional[Any]:
        """Awaitable read, usable as a CaptureWaiter probe."""
        return self._latest

    def reset(self) -> None:
        """Empty the slot before reuse. Counters are kept."""
        self._latest = None
        self._signal.clear()

    def record_parse_failure(self, url: str, error: Exception) -> None:
        self.parse_failures += 1
        logger.warning(
            f"[{self.name}] matching response from {url} is not valid JSON "
            f"({error}); keeping previous capture. parse_failures={self.parse_failures}"
        )
