"""Page controller used by recipe steps.

The interpreter only depends on the :class:`PageController` protocol. The
default implementation, :class:`BrowserManager`, drives a browser-use
``BrowserSession`` through session-scoped CDP commands (``session_id`` on
every call), the same way direct recipe execution talks to the browser.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import TYPE_CHECKING, Any, Literal, Protocol

import structlog

from .config import BrowserSettings
from .exceptions import BrowserError
from .observability import get_logger

if TYPE_CHECKING:
    from browser_use.browser.session import BrowserSession, CDPSession

WaitUntil = Literal["domcontentloaded", "networkidle"]

# Extra settle time after readyState=complete, approximating network idle
NETWORK_IDLE_SETTLE_SECONDS = 0.5
READY_STATE_POLL_SECONDS = 0.1


class ElementHandle(Protocol):
    async def get_attribute(self, name: str) -> str | None: ...

    async def text_content(self) -> str: ...


class PageController(Protocol):
    """Navigation and DOM querying capability consumed by the step executor."""

    async def initialize(self) -> None: ...

    async def close(self) -> None: ...

    async def load_page(self, url: str, wait_until: WaitUntil, timeout: int) -> None: ...

    async def query_selector(self, selector: str) -> ElementHandle | None: ...

    async def count_elements(self, selector: str) -> int: ...

    async def set_extra_http_headers(self, headers: dict[str, str]) -> None: ...

    async def set_cookies(self, cookies: list[dict[str, str]]) -> None: ...

    async def set_user_agent(self, user_agent: str) -> None: ...

    async def url(self) -> str: ...


class CdpElement:
    """First element matching a selector, read through Runtime.evaluate."""

    def __init__(self, manager: BrowserManager, selector: str):
        self._manager = manager
        self.selector = selector

    async def get_attribute(self, name: str) -> str | None:
        return await self._manager.evaluate(
            f"(() => {{ const el = document.querySelector({json.dumps(self.selector)});"
            f" return el ? el.getAttribute({json.dumps(name)}) : null; }})()"
        )

    async def text_content(self) -> str:
        value = await self._manager.evaluate(
            f"(() => {{ const el = document.querySelector({json.dumps(self.selector)});"
            " return el ? (el.textContent || '').trim() : ''; })()"
        )
        return value or ""


class BrowserManager:
    """PageController backed by a browser-use BrowserSession.

    Usage:
        manager = BrowserManager(settings.browser)
        await manager.initialize()
        try:
            await manager.load_page("https://example.com", "domcontentloaded", 30_000)
        finally:
            await manager.close()
    """

    def __init__(
        self,
        browser_settings: BrowserSettings | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ):
        self.settings = browser_settings or BrowserSettings()
        self.log = logger or get_logger(__name__)
        self._session: BrowserSession | None = None
        self._cdp_session: CDPSession | None = None

    async def initialize(self) -> None:
        from browser_use import BrowserProfile
        from browser_use.browser.session import BrowserSession

        profile = BrowserProfile(
            headless=self.settings.headless,
            cdp_url=self.settings.cdp_url,
            user_agent=self.settings.user_agent,
        )
        self._session = BrowserSession(browser_profile=profile)
        try:
            await self._session.start()
            self._cdp_session = await self._session.get_or_create_cdp_session()
            for domain in ("Page", "Runtime", "Network"):
                # May already be enabled by the session manager
                try:
                    await getattr(self._session.cdp_client.send, domain).enable(session_id=self._cdp_session.session_id)
                except Exception as e:
                    self.log.debug("cdp_domain_enable_failed", domain=domain, error=str(e))
        except Exception as e:
            raise BrowserError(f"Failed to start browser session: {e}") from e
        self.log.debug("browser_initialized", headless=self.settings.headless, cdp_url=self.settings.cdp_url)

    async def close(self) -> None:
        if self._session is None:
            return
        try:
            await self._session.stop()
        finally:
            self._session = None
            self._cdp_session = None

    def _require_session(self) -> tuple[BrowserSession, CDPSession]:
        if self._session is None or self._cdp_session is None:
            raise BrowserError("Browser not initialized; call initialize() first")
        return self._session, self._cdp_session

    async def _send(self, domain: str, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        session, cdp_session = self._require_session()
        sender = getattr(getattr(session.cdp_client.send, domain), method)
        if params is None:
            return await sender(session_id=cdp_session.session_id)
        return await sender(params=params, session_id=cdp_session.session_id)

    async def evaluate(self, expression: str) -> Any:
        result = await self._send(
            "Runtime",
            "evaluate",
            {"expression": expression, "returnByValue": True, "awaitPromise": False},
        )
        if result.get("exceptionDetails"):
            error = result["exceptionDetails"].get("text", "Unknown error")
            raise BrowserError(f"Script evaluation failed: {error}")
        return result.get("result", {}).get("value")

    async def load_page(self, url: str, wait_until: WaitUntil, timeout: int) -> None:
        nav_result = await self._send("Page", "navigate", {"url": url, "transitionType": "address_bar"})
        if nav_result.get("errorText"):
            raise BrowserError(f"Navigation failed: {nav_result['errorText']}")

        ready_states = {"complete"} if wait_until == "networkidle" else {"interactive", "complete"}
        try:
            await asyncio.wait_for(self._wait_for_ready_state(ready_states), timeout=timeout / 1000)
        except asyncio.TimeoutError as e:
            raise BrowserError(f"Timed out after {timeout}ms waiting for {wait_until}: {url}") from e

        if wait_until == "networkidle":
            await asyncio.sleep(NETWORK_IDLE_SETTLE_SECONDS)

    async def _wait_for_ready_state(self, ready_states: set[str]) -> None:
        started = time.monotonic()
        while True:
            try:
                state = await self.evaluate("document.readyState")
            except BrowserError:
                # The execution context is swapped while the new document commits
                state = None
            if state in ready_states:
                self.log.debug("page_ready", ready_state=state, elapsed=round(time.monotonic() - started, 3))
                return
            await asyncio.sleep(READY_STATE_POLL_SECONDS)

    async def query_selector(self, selector: str) -> ElementHandle | None:
        found = await self.evaluate(f"document.querySelector({json.dumps(selector)}) !== null")
        return CdpElement(self, selector) if found else None

    async def count_elements(self, selector: str) -> int:
        count = await self.evaluate(f"document.querySelectorAll({json.dumps(selector)}).length")
        return int(count or 0)

    async def set_extra_http_headers(self, headers: dict[str, str]) -> None:
        await self._send("Network", "setExtraHTTPHeaders", {"headers": dict(headers)})

    async def set_cookies(self, cookies: list[dict[str, str]]) -> None:
        await self._send("Network", "setCookies", {"cookies": cookies})

    async def set_user_agent(self, user_agent: str) -> None:
        await self._send("Network", "setUserAgentOverride", {"userAgent": user_agent})

    async def url(self) -> str:
        result = await self._send("Page", "getFrameTree")
        return result.get("frameTree", {}).get("frame", {}).get("url", "")
