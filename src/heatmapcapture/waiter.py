"""Capture waiter.

Bridges the page's asynchronous capture to the orchestrating coroutine: waits
for a settle delay, then polls a read-only probe until it yields a payload or
the deadline passes. When a push signal (an ``asyncio.Event`` set on capture)
is available the waiter wakes on it instead of waiting for the next tick;
polling remains the fallback across the page/driver boundary.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

Probe = Callable[[], Awaitable[Optional[Any]]]


class CaptureStatus(str, Enum):
    CAPTURED = "captured"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class CaptureResult:
    """Outcome of a wait. ``payload`` is None unless captured."""

    status: CaptureStatus
    payload: Optional[Any] = None
    elapsed: float = 0.0
    polls: int = 0

    @property
    def captured(self) -> bool:
        return self.status is CaptureStatus.CAPTURED


class CaptureWaiter:
    """Bounded wait for a captured payload.

    Args:
        probe: Coroutine function returning the current slot value (None if empty).
            Called repeatedly; must not modify the slot.
        settle_delay: Seconds to let the page start its requests before the first
            probe. Capped at ``deadline``.
        deadline: Total seconds before giving up, measured from ``wait()``
        poll_interval: Seconds between probes
        signal: Optional event set when a capture lands
    """

    def __init__(
        self,
        probe: Probe,
        settle_delay: float = 5.0,
        deadline: float = 10.0,
        poll_interval: float = 0.5,
        signal: Optional[asyncio.Event] = None,
    ):
        if deadline < 0:
            raise ValueError(f"deadline must be >= 0, got {deadline}")
        if settle_delay < 0:
            raise ValueError(f"settle_delay must be >= 0, got {settle_delay}")
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be > 0, got {poll_interval}")

        self.probe = probe
        self.settle_delay = min(settle_delay, deadline)
        self.deadline = deadline
        self.poll_interval = poll_interval
        self.signal = signal
        self._cancelled = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Abandon the wait. In-flight page requests are left alone."""
        self._cancelled.set()

    async def _sleep(self, seconds: float) -> None:
        """Sleep up to ``seconds``, waking early on cancellation or a fresh capture signal."""
        if seconds <= 0 or self._cancelled.is_set():
            return

        waits = [asyncio.ensure_future(self._cancelled.wait())]
        if self.signal is not None and not self.signal.is_set():
            waits.append(asyncio.ensure_future(self.signal.wait()))
        try:
            await asyncio.wait(waits, timeout=seconds, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in waits:
                task.cancel()

    async def _probe_once(self) -> Optional[Any]:
        try:
            return await self.probe()
        except Exception as e:
            logger.warning(f"Capture probe failed, treating slot as empty: {e}")
            return None

    async def wait(self) -> CaptureResult:
        """Wait for a capture.

        Returns:
            CaptureResult: ``captured`` with the payload, ``timeout`` once the
            deadline has passed (at most one poll interval late), or
            ``cancelled`` promptly after ``cancel()``
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline_at = started + self.deadline
        polls = 0

        def finish(status: CaptureStatus, payload: Optional[Any] = None) -> CaptureResult:
            return CaptureResult(
                status=status, payload=payload, elapsed=loop.time() - started, polls=polls
            )

        if self.signal is None or not self.signal.is_set():
            await self._sleep(self.settle_delay)

        while True:
            if self._cancelled.is_set():
                logger.info(f"Capture wait cancelled after {loop.time() - started:.2f}s")
                return finish(CaptureStatus.CANCELLED)

            payload = await self._probe_once()
            polls += 1
            if payload is not None:
                return finish(CaptureStatus.CAPTURED, payload)

            remaining = deadline_at - loop.time()
            if remaining <= 0:
                logger.warning(
                    f"No matching response captured within {self.deadline:.1f}s ({polls} polls)"
                )
                return finish(CaptureStatus.TIMEOUT)

            await self._sleep(min(self.poll_interval, remaining))
