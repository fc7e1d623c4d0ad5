"""Browser capture session.

Opens the heatmap chart page in Playwright and captures the heatmap response
the page requests for itself. Capture is wired up before navigation through
two independent channels:

- the interception layer, attached to the page's ``response`` events, which
  writes into a CaptureStore and signals the waiter (push)
- the page-side init script, whose slot the waiter polls (fallback)
"""

import asyncio
import logging
from typing import Any, Optional

from src.heatmapcapture.config import CaptureConfig
from src.heatmapcapture.exceptions import InterceptorInstallError
from src.heatmapcapture.init_script import PageSlot
from src.heatmapcapture.interceptor import InterceptionLayer, capture_json, url_contains
from src.heatmapcapture.store import CaptureStore
from src.heatmapcapture.waiter import CaptureResult, CaptureWaiter

logger = logging.getLogger(__name__)


class BrowserCaptureSession:
    """Capture state for one page.

    Each session owns its store, so several pages can capture independently.
    """

    def __init__(self, page: Any, config: Optional[CaptureConfig] = None):
        self.page = page
        self.config = config or CaptureConfig()
        self.store = CaptureStore()
        self.layer = InterceptionLayer()
        self.layer.register(url_contains(self.config.endpoint_marker), capture_json(self.store))
        self.slot = PageSlot(page, self.config.slot_name)
        self._installed = False
        self._waiter: Optional[CaptureWaiter] = None

    @property
    def installed(self) -> bool:
        return self._installed

    async def install(self) -> None:
        """Attach both capture channels. Must run before ``navigate``."""
        self.layer.attach(self.page)
        await self.slot.install(self.config.endpoint_marker)
        self._installed = True
        logger.info(f"Capture installed for marker {self.config.endpoint_marker}")

    async def navigate(self, url: str) -> None:
        """Open ``url`` and verify the page-side script ran at document creation.

        Raises:
            InterceptorInstallError: If called before ``install`` or the script ran late
        """
        if not self._installed:
            raise InterceptorInstallError("install() must be called before navigate()")

        logger.info(f"Navigating to {url}")
        await self.page.goto(url, timeout=self.config.navigation_timeout_ms)
        title = await self.page.title()
        logger.info(f'Page title: "{title}"')

        state = await self.slot.verify_installed()
        logger.debug(f"Capture script verified (captures so far: {state.captures})")

    async def probe(self) -> Optional[Any]:
        """Read-only check of both channels."""
        payload = self.store.get()
        if payload is not None:
            return payload
        return await self.slot.read()

    async def wait_for_capture(self) -> CaptureResult:
        """Wait for the heatmap response within the configured budget."""
        self._waiter = CaptureWaiter(
            self.probe,
            settle_delay=self.config.settle_delay,
            deadline=self.config.capture_timeout,
            poll_interval=self.config.poll_interval,
            signal=self.store.signal,
        )
        logger.info(
            f"Waiting up to {self.config.capture_timeout:.1f}s for heatmap response "
            f"(settle {self.config.settle_delay:.1f}s)"
        )
        try:
            result = await self._waiter.wait()
        finally:
            self._waiter = None

        await self._report_parse_failures()
        return result

    def cancel(self) -> None:
        """Abandon a pending wait (e.g. the session is being torn down)."""
        if self._waiter is not None:
            self._waiter.cancel()

    async def reset(self) -> None:
        """Empty both slots before reusing the page for another capture."""
        self.store.reset()
        await self.slot.reset()

    async def _report_parse_failures(self) -> None:
        try:
            state = await self.slot.state()
        except Exception as e:
            logger.debug(f"Could not read page-side capture counters: {e}")
            return
        if state.parse_failures:
            logger.warning(
                f"Page-side capture saw {state.parse_failures} matching responses "
                f"that were not valid JSON"
            )

    def close(self) -> None:
        self.layer.detach()


async def capture_from_browser(
    symbol: str,
    interval: str,
    config: Optional[CaptureConfig] = None,
) -> CaptureResult:
    """Launch Chromium, open the chart page and capture its heatmap response.

    Args:
        symbol: Trading pair, e.g. "SUIUSDT"
        interval: Heatmap range, e.g. "1d"
        config: Capture configuration (environment defaults if omitted)

    Returns:
        CaptureResult; ``result.payload`` is the raw response envelope when captured
    """
    from playwright.async_api import Error as PlaywrightError
    from playwright.async_api import async_playwright

    config = config or CaptureConfig()
    url = config.page_url(symbol, interval)

    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=config.headless)
        session: Optional[BrowserCaptureSession] = None
        try:
            page = await browser.new_page()
            session = BrowserCaptureSession(page, config)
            await session.install()

            try:
                await session.navigate(url)
            except PlaywrightError as e:
                # The heatmap request may already be in flight; keep waiting for it
                logger.warning(f"Navigation did not complete cleanly: {e}")

            result = await session.wait_for_capture()

            if config.stay_duration > 0:
                logger.info(f"Staying on page for {config.stay_duration:.1f}s...")
                await asyncio.sleep(config.stay_duration)

            return result
        finally:
            if session is not None:
                session.cancel()
                session.close()
            try:
                await browser.close()
            except PlaywrightError as e:
                logger.error(f"Error closing browser: {e}")
