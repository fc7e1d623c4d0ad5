"""Network interception layer.

A registrable list of ``(predicate, callback)`` entries wrapped around a
request mechanism. Every response whose request URL satisfies a predicate is
handed to the matching callbacks as ``(url, body_text)``; the response itself
is returned to the caller untouched.

Three request mechanisms feed the same ``dispatch``:

- ``wrap_fetch``: promise-style ``await fetch(url) -> response``
- ``wrap_xhr``: event-style request objects that fire a ``load`` event
- ``attach``: a Playwright page, observed through its ``response`` event
  (covers the page's own ``fetch`` and ``XMLHttpRequest`` traffic without
  touching page globals)

Usage:
    store = CaptureStore()
    layer = InterceptionLayer()
    layer.register(url_contains(HEATMAP_ENDPOINT_MARKER), capture_json(store))
    layer.attach(page)
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol

from src.heatmapcapture.exceptions import InterceptorInstallError
from src.heatmapcapture.store import CaptureStore

logger = logging.getLogger(__name__)

HEATMAP_ENDPOINT_MARKER = "/api/liqMap/getLiqHeatMap"

# Playwright resource types for the page's two request primitives
PAGE_RESOURCE_TYPES = ("fetch", "xhr")

UrlPredicate = Callable[[str], bool]
ResponseCallback = Callable[[str, str], None]


class FetchResponse(Protocol):
    """Response returned by a fetch-style call. ``text()`` must be re-readable."""

    async def text(self) -> str: ...


class XHRRequest(Protocol):
    """Minimal event-based request object."""

    response_text: str

    def open(self, method: str, url: str) -> None: ...

    def send(self, body: Any = None) -> None: ...

    def add_event_listener(self, event: str, listener: Callable[[], None]) -> None: ...


def url_contains(marker: str) -> UrlPredicate:
    """Case-sensitive substring match against the request URL."""

    def predicate(url: str) -> bool:
        return isinstance(url, str) and marker in url

    predicate.__name__ = f"url_contains({marker!r})"
    return predicate


def capture_json(store: CaptureStore) -> ResponseCallback:
    """Callback that parses the body as JSON and writes it into ``store``.

    A body that is not a JSON object (invalid JSON, or a bare ``null``, list
    or scalar) leaves the slot unchanged and is counted on
    ``store.parse_failures``.
    """

    def callback(url: str, body: str) -> None:
        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, TypeError) as e:
            store.record_parse_failure(url, e)
            return
        if not isinstance(payload, dict):
            store.record_parse_failure(
                url, ValueError(f"expected a JSON object, got {type(payload).__name__}")
            )
            return
        store.put(payload)
        logger.info(f"Captured heatmap response from {url} ({len(body)} bytes)")

    return callback


@dataclass(frozen=True)
class InterceptionEntry:
    predicate: UrlPredicate
    callback: ResponseCallback


class InterceptionLayer:
    """Dispatches matching responses to registered callbacks.

    Callbacks run synchronously inside ``dispatch`` and never raise into the
    request path; failures are logged and counted on ``callback_errors``.
    """

    def __init__(self):
        self._entries: list[InterceptionEntry] = []
        self._attached: list[Any] = []
        self.dispatched = 0
        self.callback_errors = 0

    @property
    def entries(self) -> tuple[InterceptionEntry, ...]:
        return tuple(self._entries)

    def register(self, predicate: UrlPredicate, callback: ResponseCallback) -> InterceptionEntry:
        """Add an entry. Entries are consulted in registration order."""
        entry = InterceptionEntry(predicate=predicate, callback=callback)
        self._entries.append(entry)
        return entry

    def unregister(self, entry: InterceptionEntry) -> None:
        self._entries.remove(entry)

    def matches(self, url: str) -> bool:
        return any(self._safe_predicate(entry, url) for entry in self._entries)

    def _safe_predicate(self, entry: InterceptionEntry, url: str) -> bool:
        try:
            return bool(entry.predicate(url))
        except Exception:
            logger.exception(f"URL predicate failed for {url}")
            return False

    def dispatch(self, url: str, body: str) -> int:
        """Hand a response body to every matching callback.

        Returns:
            Number of callbacks invoked
        """
        invoked = 0
        for entry in self._entries:
            if not self._safe_predicate(entry, url):
                continue
            invoked += 1
            try:
                entry.callback(url, body)
            except Exception:
                self.callback_errors += 1
                logger.exception(f"Interception callback failed for {url}")
        self.dispatched += invoked
        return invoked

    def wrap_fetch(
        self, fetch: Callable[..., Awaitable[FetchResponse]]
    ) -> Callable[..., Awaitable[FetchResponse]]:
        """Wrap a promise-style fetch. The caller receives the original response."""

        async def intercepted_fetch(url: str, *args: Any, **kwargs: Any) -> FetchResponse:
            response = await fetch(url, *args, **kwargs)
            if self.matches(url):
                try:
                    body = await response.text()
                except Exception as e:
                    logger.warning(f"Could not read intercepted body from {url}: {e}")
                else:
                    self.dispatch(url, body)
            return response

        return intercepted_fetch

    def wrap_xhr(self, factory: Callable[[], XHRRequest]) -> Callable[[], XHRRequest]:
        """Wrap an event-based request factory."""
        layer = self

        class InterceptedXHR:
            def __init__(self):
                self._inner = factory()
                self._url: Optional[str] = None

            def __getattr__(self, name: str) -> Any:
                return getattr(self._inner, name)

            def open(self, method: str, url: str, *args: Any) -> None:
                self._url = url
                return self._inner.open(method, url, *args)

            def send(self, body: Any = None) -> None:
                url = self._url
                if url is not None and layer.matches(url):
                    inner = self._inner
                    inner.add_event_listener("load", lambda: layer.dispatch(url, inner.response_text))
                return self._inner.send(body)

        return InterceptedXHR

    def attach(self, page: Any, resource_types: tuple[str, ...] = PAGE_RESOURCE_TYPES) -> None:
        """Observe a Playwright page's fetch/XHR responses.

        Must be called before the page navigates: responses that complete
        before attachment are never seen.

        Raises:
            InterceptorInstallError: If the page already left about:blank
        """
        current_url = getattr(page, "url", "about:blank") or "about:blank"
        if current_url != "about:blank":
            raise InterceptorInstallError(
                f"Interceptor must be attached before navigation (page is at {current_url})"
            )

        async def on_response(response: Any) -> None:
            url = response.url
            if response.request.resource_type not in resource_types or not self.matches(url):
                return
            try:
                body = await response.text()
            except Exception as e:
                logger.warning(f"Could not read intercepted body from {url}: {e}")
                return
            self.dispatch(url, body)

        page.on("response", on_response)
        self._attached.append((page, on_response))
        logger.debug(f"Interception layer attached ({len(self._entries)} entries)")

    def detach(self) -> None:
        """Stop observing every attached page."""
        for page, handler in self._attached:
            page.remove_listener("response", handler)
        self._attached.clear()
