"""Unit tests for the page-side capture script and its driver-side handle."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.heatmapcapture.exceptions import InterceptorInstallError
from src.heatmapcapture.init_script import (
    DEFAULT_SLOT_NAME,
    PageSlot,
    PageSlotState,
    build_init_script,
)
from src.heatmapcapture.interceptor import HEATMAP_ENDPOINT_MARKER


def make_page(url="about:blank", evaluate_result=None):
    page = MagicMock()
    page.url = url
    page.add_init_script = AsyncMock()
    page.evaluate = AsyncMock(return_value=evaluate_result)
    return page


class TestBuildInitScript:
    def test_marker_and_slot_embedded_as_json(self):
        script = build_init_script("/api/x'y", "__slot")

        assert json.dumps("/api/x'y") in script
        assert '"__slot"' in script

    def test_wraps_both_request_primitives(self):
        script = build_init_script()

        assert "window.fetch = function" in script
        assert "proto.open = function" in script
        assert "proto.send = function" in script
        assert "addEventListener('load'" in script

    def test_records_install_time_ready_state(self):
        script = build_init_script()
        assert "readyStateAtInstall: document.readyState" in script

    def test_fetch_wrapper_reads_a_clone(self):
        """The page's own response object is never consumed."""
        assert "response.clone().text()" in build_init_script()

    def test_parse_failures_counted(self):
        assert "state.parseFailures += 1" in build_init_script()

    def test_defaults(self):
        script = build_init_script()
        assert json.dumps(HEATMAP_ENDPOINT_MARKER) in script
        assert json.dumps(DEFAULT_SLOT_NAME) in script


class TestPageSlotState:
    def test_missing_slot(self):
        state = PageSlotState.from_page(None)
        assert state.installed is False
        assert state.captures == 0

    def test_from_page(self):
        state = PageSlotState.from_page(
            {"installed": True, "readyStateAtInstall": "loading", "captures": 2, "parseFailures": 1}
        )
        assert state == PageSlotState(
            installed=True, ready_state_at_install="loading", captures=2, parse_failures=1
        )


class TestPageSlot:
    @pytest.mark.asyncio
    async def test_install_registers_script(self):
        page = make_page()
        slot = PageSlot(page)

        await slot.install()

        page.add_init_script.assert_awaited_once()
        (script,) = page.add_init_script.await_args.args
        assert json.dumps(HEATMAP_ENDPOINT_MARKER) in script

    @pytest.mark.asyncio
    async def test_install_after_navigation_rejected(self):
        page = make_page(url="https://coinank.com/liqHeatMapChart/suiusdt/1d")

        with pytest.raises(InterceptorInstallError, match="before navigation"):
            await PageSlot(page).install()

        page.add_init_script.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_verify_installed_at_document_creation(self):
        page = make_page(
            evaluate_result={"installed": True, "readyStateAtInstall": "loading", "captures": 0}
        )

        state = await PageSlot(page).verify_installed()

        assert state.installed

    @pytest.mark.asyncio
    async def test_verify_fails_when_missing(self):
        page = make_page(evaluate_result=None)

        with pytest.raises(InterceptorInstallError, match="not found"):
            await PageSlot(page).verify_installed()

    @pytest.mark.asyncio
    async def test_verify_fails_when_installed_late(self):
        page = make_page(evaluate_result={"installed": True, "readyStateAtInstall": "complete"})

        with pytest.raises(InterceptorInstallError, match="ran late"):
            await PageSlot(page).verify_installed()

    @pytest.mark.asyncio
    async def test_read_passes_slot_name(self):
        page = make_page(evaluate_result={"data": {}})
        slot = PageSlot(page, slot_name="__custom")

        assert await slot.read() == {"data": {}}
        assert page.evaluate.await_args.args[1] == "__custom"
