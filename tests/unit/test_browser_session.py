"""
Unit tests for BrowserCaptureSession.

A mocked Playwright page records the order of calls so install-before-navigate
can be checked without launching a browser.
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.heatmapcapture.browser import BrowserCaptureSession
from src.heatmapcapture.config import CaptureConfig
from src.heatmapcapture.exceptions import InterceptorInstallError
from src.heatmapcapture.waiter import CaptureStatus

HEATMAP_URL = "https://api.coinank.com/api/liqMap/getLiqHeatMap?symbol=SUIUSDT"
PAGE_URL = "https://coinank.com/liqHeatMapChart/suiusdt/1d"


class FakePage:
    """Mocked Playwright page with a scriptable page-side slot."""

    def __init__(self, slot_state=None, slot_latest=None):
        self.url = "about:blank"
        self.calls = []
        self.slot_state = slot_state or {
            "installed": True,
            "readyStateAtInstall": "loading",
            "captures": 0,
            "parseFailures": 0,
        }
        self.slot_latest = slot_latest

        self.on = MagicMock(side_effect=lambda *a: self.calls.append("on"))
        self.remove_listener = MagicMock()
        self.add_init_script = AsyncMock(side_effect=lambda *a: self.calls.append("init_script"))
        self.goto = AsyncMock(side_effect=self._goto)
        self.title = AsyncMock(return_value="Liquidation Heatmap")
        self.evaluate = AsyncMock(side_effect=self._evaluate)

    async def _goto(self, url, **kwargs):
        self.calls.append("goto")
        self.url = url

    async def _evaluate(self, script, slot):
        if ".latest = null" in script:
            self.slot_latest = None
            return None
        if ".latest" in script:
            return self.slot_latest
        return self.slot_state

    @property
    def response_handler(self):
        return self.on.call_args.args[1]


def make_response(url, text, resource_type="xhr"):
    response = MagicMock()
    response.url = url
    response.request.resource_type = resource_type
    response.text = AsyncMock(return_value=text)
    return response


@pytest.fixture
def config():
    return CaptureConfig(settle_delay=0.0, capture_timeout=1.0, poll_interval=0.05)


class TestInstall:
    @pytest.mark.asyncio
    async def test_install_precedes_navigation(self, config):
        page = FakePage()
        session = BrowserCaptureSession(page, config)

        await session.install()
        await session.navigate(PAGE_URL)

        assert page.calls == ["on", "init_script", "goto"]
        assert session.installed

    @pytest.mark.asyncio
    async def test_navigate_without_install_rejected(self, config):
        page = FakePage()
        session = BrowserCaptureSession(page, config)

        with pytest.raises(InterceptorInstallError, match="install"):
            await session.navigate(PAGE_URL)

        page.goto.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_late_script_detected(self, config):
        page = FakePage(slot_state={"installed": True, "readyStateAtInstall": "interactive"})
        session = BrowserCaptureSession(page, config)
        await session.install()

        with pytest.raises(InterceptorInstallError, match="late"):
            await session.navigate(PAGE_URL)

    @pytest.mark.asyncio
    async def test_install_on_navigated_page_rejected(self, config):
        page = FakePage()
        page.url = PAGE_URL

        with pytest.raises(InterceptorInstallError):
            await BrowserCaptureSession(page, config).install()


class TestCapture:
    @pytest.mark.asyncio
    async def test_pushed_response_wakes_waiter(self, sample_response):
        config = CaptureConfig(settle_delay=0.0, capture_timeout=5.0, poll_interval=2.0)
        page = FakePage()
        session = BrowserCaptureSession(page, config)
        await session.install()
        await session.navigate(PAGE_URL)

        async def page_requests_heatmap():
            await asyncio.sleep(0.05)
            await page.response_handler(make_response(HEATMAP_URL, json.dumps(sample_response)))

        result, _ = await asyncio.gather(session.wait_for_capture(), page_requests_heatmap())

        assert result.status is CaptureStatus.CAPTURED
        assert result.payload == sample_response
        assert result.elapsed < 1.0

    @pytest.mark.asyncio
    async def test_page_slot_fallback(self, config, sample_response):
        page = FakePage(slot_latest=sample_response)
        session = BrowserCaptureSession(page, config)
        await session.install()
        await session.navigate(PAGE_URL)

        result = await session.wait_for_capture()

        assert result.captured
        assert result.payload == sample_response

    @pytest.mark.asyncio
    async def test_store_takes_precedence_over_page_slot(self, config):
        page = FakePage(slot_latest={"from": "page"})
        session = BrowserCaptureSession(page, config)
        session.store.put({"from": "store"})

        assert await session.probe() == {"from": "store"}

    @pytest.mark.asyncio
    async def test_timeout_when_nothing_captured(self):
        config = CaptureConfig(settle_delay=0.0, capture_timeout=0.2, poll_interval=0.05)
        page = FakePage()
        session = BrowserCaptureSession(page, config)
        await session.install()
        await session.navigate(PAGE_URL)

        result = await session.wait_for_capture()

        assert result.status is CaptureStatus.TIMEOUT
        assert result.payload is None

    @pytest.mark.asyncio
    async def test_page_parse_failures_reported(self, config, caplog):
        page = FakePage(
            slot_state={"installed": True, "readyStateAtInstall": "loading", "parseFailures": 2},
            slot_latest={"ok": 1},
        )
        session = BrowserCaptureSession(page, config)
        await session.install()
        await session.navigate(PAGE_URL)

        await session.wait_for_capture()

        assert "2 matching responses" in caplog.text

    @pytest.mark.asyncio
    async def test_reset_clears_both_slots(self, config):
        page = FakePage(slot_latest={"ok": 1})
        session = BrowserCaptureSession(page, config)
        session.store.put({"ok": 1})

        await session.reset()

        assert session.store.is_empty
        assert await session.probe() is None

    @pytest.mark.asyncio
    async def test_sessions_do_not_share_captures(self, config, sample_response):
        page_a, page_b = FakePage(), FakePage()
        session_a = BrowserCaptureSession(page_a, config)
        session_b = BrowserCaptureSession(page_b, config)
        await session_a.install()
        await session_b.install()

        await page_a.response_handler(make_response(HEATMAP_URL, json.dumps(sample_response)))

        assert session_a.store.get() == sample_response
        assert session_b.store.is_empty

    def test_close_detaches_listener(self, config):
        page = FakePage()
        session = BrowserCaptureSession(page, config)
        session.layer.attach(page)

        session.close()

        page.remove_listener.assert_called_once()
