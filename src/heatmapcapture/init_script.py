"""Page-side capture script.

Installed with Playwright ``add_init_script`` so it runs at document creation,
before any page script. It wraps ``window.fetch`` and
``XMLHttpRequest.prototype.open/send``; every response whose request URL
contains the endpoint marker is parsed and stored in a page-scoped slot::

    window[slot] = {installed, readyStateAtInstall, installedAt,
                    latest, captures, parseFailures}

The page always receives the original response. The fetch wrapper reads a
clone in the background, so the page's own promise resolves without waiting
for the body. Bodies that are not a JSON object (invalid JSON, a bare
``null``, a list) leave ``latest`` unchanged and bump ``parseFailures``.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

from src.heatmapcapture.exceptions import InterceptorInstallError
from src.heatmapcapture.interceptor import HEATMAP_ENDPOINT_MARKER

logger = logging.getLogger(__name__)

DEFAULT_SLOT_NAME = "__liqHeatMapCapture"

_SCRIPT_TEMPLATE = """
(() => {
  const MARKER = %(marker)s;
  const SLOT = %(slot)s;
  if (window[SLOT] && window[SLOT].installed) {
    return;
  }

  const state = {
    installed: true,
    readyStateAtInstall: document.readyState,
    installedAt: Date.now(),
    latest: null,
    captures: 0,
    parseFailures: 0,
  };
  window[SLOT] = state;

  const urlOf = (input) => {
    if (typeof input === 'string') return input;
    if (input instanceof URL) return input.href;
    if (input && typeof input.url === 'string') return input.url;
    return String(input);
  };
  const matches = (url) => typeof url === 'string' && url.includes(MARKER);
  const isPayload = (value) =>
    value !== null && typeof value === 'object' && !Array.isArray(value);
  const store = (parsed) => {
    if (!isPayload(parsed)) {
      state.parseFailures += 1;
      return;
    }
    state.latest = parsed;
    state.captures += 1;
  };
  const record = (text) => {
    let parsed;
    try {
      parsed = JSON.parse(text);
    } catch (e) {
      state.parseFailures += 1;
      return;
    }
    store(parsed);
  };

  const originalFetch = window.fetch;
  if (typeof originalFetch === 'function') {
    window.fetch = function (...args) {
      const url = urlOf(args[0]);
      return originalFetch.apply(this, args).then((response) => {
        if (matches(url)) {
          response.clone().text().then(record, () => { state.parseFailures += 1; });
        }
        return response;
      });
    };
  }

  const proto = XMLHttpRequest.prototype;
  const originalOpen = proto.open;
  const originalSend = proto.send;
  proto.open = function (method, url, ...rest) {
    this.__liqCaptureUrl = urlOf(url);
    return originalOpen.call(this, method, url, ...rest);
  };
  proto.send = function (...args) {
    if (matches(this.__liqCaptureUrl)) {
      this.addEventListener('load', () => {
        if (this.responseType === 'json') {
          // the browser yields null when the body is not valid JSON
          store(this.response);
          return;
        }
        let text;
        try {
          text = this.responseText;
        } catch (e) {
          state.parseFailures += 1;
          return;
        }
        record(text);
      });
    }
    return originalSend.apply(this, args);
  };
})();
"""


def build_init_script(
    marker: str = HEATMAP_ENDPOINT_MARKER, slot_name: str = DEFAULT_SLOT_NAME
) -> str:
    """Render the capture script for an endpoint marker and slot name."""
    return _SCRIPT_TEMPLATE % {"marker": json.dumps(marker), "slot": json.dumps(slot_name)}


@dataclass(frozen=True)
class PageSlotState:
    """Snapshot of the page-side slot."""

    installed: bool
    ready_state_at_install: Optional[str]
    captures: int
    parse_failures: int

    @classmethod
    def from_page(cls, raw: Optional[dict]) -> "PageSlotState":
        if not raw:
            return cls(installed=False, ready_state_at_install=None, captures=0, parse_failures=0)
        return cls(
            installed=bool(raw.get("installed")),
            ready_state_at_install=raw.get("readyStateAtInstall"),
            captures=int(raw.get("captures") or 0),
            parse_failures=int(raw.get("parseFailures") or 0),
        )


class PageSlot:
    """Driver-side handle on the page-scoped slot. Reads never modify page state."""

    def __init__(self, page: Any, slot_name: str = DEFAULT_SLOT_NAME):
        self.page = page
        self.slot_name = slot_name

    async def install(self, marker: str = HEATMAP_ENDPOINT_MARKER) -> None:
        """Register the capture script for every new document of the page.

        Raises:
            InterceptorInstallError: If the page already navigated
        """
        current_url = getattr(self.page, "url", "about:blank") or "about:blank"
        if current_url != "about:blank":
            raise InterceptorInstallError(
                f"Capture script must be installed before navigation (page is at {current_url})"
            )
        await self.page.add_init_script(build_init_script(marker, self.slot_name))
        logger.debug(f"Capture script registered (slot={self.slot_name}, marker={marker})")

    async def state(self) -> PageSlotState:
        raw = await self.page.evaluate(
            """(slot) => {
                const s = window[slot];
                return s ? {installed: s.installed, readyStateAtInstall: s.readyStateAtInstall,
                            captures: s.captures, parseFailures: s.parseFailures} : null;
            }""",
            self.slot_name,
        )
        return PageSlotState.from_page(raw)

    async def verify_installed(self) -> PageSlotState:
        """Check the script ran at document creation.

        Raises:
            InterceptorInstallError: If the slot is missing or was created after
                the document started executing scripts
        """
        state = await self.state()
        if not state.installed:
            raise InterceptorInstallError(f"Capture slot {self.slot_name} not found in page")
        if state.ready_state_at_install != "loading":
            raise InterceptorInstallError(
                f"Capture script ran late (document.readyState was "
                f"{state.ready_state_at_install!r}); early responses may be missed"
            )
        return state

    async def read(self) -> Optional[Any]:
        """Latest captured payload, or None."""
        return await self.page.evaluate(
            "(slot) => (window[slot] ? window[slot].latest : null)", self.slot_name
        )

    async def reset(self) -> None:
        """Empty the page-side slot before reuse."""
        await self.page.evaluate(
            "(slot) => { if (window[slot]) { window[slot].latest = null; } }", self.slot_name
        )
