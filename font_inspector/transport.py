"""
Network access for the detection pipeline.

Every request goes through one ``fetch(url, want_base64)`` call. The page
transport first tries a same-context ``fetch()`` inside the page and, when
CORS or the network refuses, relays the request through a cross-context
proxy (Playwright's request context, which is not subject to CORS).
Proxied requests are correlated by a request id and settle exactly once:
with data, with an error, or on timeout.
"""

import asyncio
import base64
import logging
import secrets
import time
from typing import Any, Dict, Optional, Protocol, Tuple

from .errors import FetchError

logger = logging.getLogger(__name__)


PROXY_TIMEOUT_SECONDS = 15.0

DIRECT_FETCH_JS = """async ({url, base64}) => {
    try {
        const response = await fetch(url, { mode: 'cors' });
        if (!response.ok) return null;
        if (!base64) return await response.text();
        const bytes = new Uint8Array(await response.arrayBuffer());
        let binary = '';
        const chunk = 0x8000;
        for (let i = 0; i < bytes.length; i += chunk) {
            binary += String.fromCharCode.apply(null, bytes.subarray(i, i + chunk));
        }
        return btoa(binary);
    } catch (e) {
        return null;
    }
}"""


class FetchTransport(Protocol):
    async def fetch(self, url: str, want_base64: bool = False) -> str:
        ...


def decode_body(content: bytes) -> str:
    try:
        return content.decode("utf-8")
    except UnicodeDecodeError:
        return content.decode("latin-1", errors="ignore")


def new_request_id() -> str:
    return f"{int(time.time() * 1000)}-{secrets.token_hex(5)}"


class ProxyRelay:
    """Cross-context fetch proxy with request-id correlation and a fixed timeout."""

    def __init__(self, request_context: Any, timeout: float = PROXY_TIMEOUT_SECONDS):
        self.request_context = request_context
        self.timeout = timeout
        self._pending: Dict[str, asyncio.Future] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def fetch(self, url: str, want_base64: bool = False) -> str:
        request_id = new_request_id()
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        worker = asyncio.ensure_future(self._perform(request_id, url, want_base64))
        try:
            data, error = await asyncio.wait_for(asyncio.shield(future), self.timeout)
        except asyncio.TimeoutError:
            self._settle(request_id, error="timeout")
            raise FetchError(url, "timeout") from None
        finally:
            # no-op once settled; clears the entry when the caller is cancelled
            self._settle(request_id, error="cancelled")
            worker.cancel()
        if error is not None:
            raise FetchError(url, error)
        return data

    async def _perform(self, request_id: str, url: str, want_base64: bool) -> None:
        try:
            response = await self.request_context.get(url)
            if not response.ok:
                self._settle(request_id, error=f"HTTP {response.status}")
                return
            content = await response.body()
            if want_base64:
                data = base64.b64encode(content).decode("ascii")
            else:
                data = decode_body(content)
            self._settle(request_id, data=data)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._settle(request_id, error=str(exc) or exc.__class__.__name__)

    def _settle(self, request_id: str, data: Optional[str] = None, error: Optional[str] = None) -> None:
        future = self._pending.pop(request_id, None)
        if future is None or future.done():
            return
        result: Tuple[Optional[str], Optional[str]] = (data, error)
        future.set_result(result)


class PageFetchTransport:
    def __init__(self, page: Any, timeout: float = PROXY_TIMEOUT_SECONDS):
        self.page = page
        self.relay = ProxyRelay(page.context.request, timeout=timeout)

    async def fetch(self, url: str, want_base64: bool = False) -> str:
        try:
            result = await self.page.evaluate(DIRECT_FETCH_JS, {"url": url, "base64": want_base64})
            if result is not None:
                return result
        except Exception as exc:
            logger.debug("In-page fetch failed for %s: %s", url, exc)
        logger.debug("Relaying %s through the request context", url)
        return await self.relay.fetch(url, want_base64)
