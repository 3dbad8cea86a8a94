"""Browser driver seam.

Everything the audit does to a page goes through a ``PageDriver``. The
Playwright implementation translates browser errors into the audit's error
taxonomy so no component above this module depends on Playwright
exceptions. Tests substitute an in-memory driver with the same surface.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from playwright.async_api import BrowserContext, Error as PlaywrightError, Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..errors import ClickTimeout, NavigationTimeout, PageUnavailable, SelectorNotFound
from ..models.capture import CookieRecord
from .network_observer import NetworkObserver
from .request_sink import RequestSink

logger = logging.getLogger(__name__)


LOCAL_STORAGE_SCRIPT = """
() => {
    const items = {};
    for (let i = 0; i < localStorage.length; i++) {
        const key = localStorage.key(i);
        items[key] = localStorage.getItem(key);
    }
    return items;
}
"""

SCROLL_SCRIPT = "(dy) => window.scrollBy(0, dy)"

SERVICE_WORKERS_SCRIPT = """
() => {
    if (!navigator.serviceWorker) return [];
    return navigator.serviceWorker.getRegistrations().then(regs => regs.map(r => r.scope));
}
"""

UNREGISTER_SERVICE_WORKERS_SCRIPT = """
() => {
    if (!navigator.serviceWorker) return 0;
    return navigator.serviceWorker.getRegistrations().then(regs =>
        Promise.all(regs.map(r => r.unregister())).then(results => results.filter(Boolean).length)
    );
}
"""


@runtime_checkable
class PageDriver(Protocol):
    """Browser primitives the audit consumes."""

    @property
    def url(self) -> str: ...

    async def navigate(self, url: str, timeout_ms: int) -> None: ...

    async def is_visible(self, selector: str) -> bool: ...

    async def wait_for_visible(self, selector: str, timeout_ms: int) -> bool: ...

    async def count(self, selector: str) -> int: ...

    async def click(self, selector: str, timeout_ms: int) -> None: ...

    async def evaluate(self, script: str, arg: Any = None) -> Any: ...

    async def scroll_by(self, pixels: int) -> None: ...

    async def wait(self, ms: int) -> None: ...

    async def read_cookies(self) -> List[CookieRecord]: ...

    async def read_local_storage(self) -> Dict[str, str]: ...

    def attach_sink(self, sink: Optional[RequestSink]) -> Optional[RequestSink]: ...

    async def service_workers(self) -> List[str]: ...

    async def unregister_service_workers(self) -> int: ...


class PlaywrightPageDriver:
    """PageDriver over a Playwright page and its browser context."""

    def __init__(
        self,
        context: BrowserContext,
        page: Page,
        site_origin: Optional[str] = None,
        wait_until: str = "networkidle"
    ):
        """Initialize driver.

        Args:
            context: Browser context owning the page (cookie source)
            page: Page to drive
            site_origin: Audited URL, used to keep first-party script bodies
            wait_until: Load state awaited by navigate()
        """
        self.context = context
        self.page = page
        self.wait_until = wait_until
        self.observer = NetworkObserver(page, site_origin=site_origin)

    @property
    def url(self) -> str:
        return self.page.url

    async def navigate(self, url: str, timeout_ms: int) -> None:
        try:
            await self.page.goto(url, wait_until=self.wait_until, timeout=timeout_ms)
        except PlaywrightTimeoutError:
            raise NavigationTimeout(url, timeout_ms)
        except PlaywrightError as e:
            raise NavigationTimeout(url, timeout_ms, reason=str(e))

    async def is_visible(self, selector: str) -> bool:
        try:
            return await self.page.locator(selector).first.is_visible()
        except PlaywrightError as e:
            logger.debug(f"Visibility probe failed for {selector}: {e}")
            return False

    async def wait_for_visible(self, selector: str, timeout_ms: int) -> bool:
        try:
            await self.page.locator(selector).first.wait_for(state="visible", timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            return False
        except PlaywrightError as e:
            logger.debug(f"Visibility wait failed for {selector}: {e}")
            return False

    async def count(self, selector: str) -> int:
        try:
            return await self.page.locator(selector).count()
        except PlaywrightError as e:
            logger.debug(f"Count failed for {selector}: {e}")
            return 0

    async def click(self, selector: str, timeout_ms: int) -> None:
        try:
            await self.page.locator(selector).first.click(timeout=timeout_ms)
        except PlaywrightTimeoutError:
            raise ClickTimeout(selector, timeout_ms)
        except PlaywrightError as e:
            raise SelectorNotFound(selector, f"Cannot click {selector}: {e}")

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if arg is None:
            return await self.page.evaluate(script)
        return await self.page.evaluate(script, arg)

    async def scroll_by(self, pixels: int) -> None:
        try:
            await self.page.evaluate(SCROLL_SCRIPT, pixels)
        except PlaywrightError as e:
            logger.debug(f"Scroll failed: {e}")

    async def wait(self, ms: int) -> None:
        """Suspend for ``ms`` then let pending response-body reads finish.

        Raises:
            PageUnavailable: If the page or browser closed while waiting
        """
        if ms > 0:
            try:
                await self.page.wait_for_timeout(ms)
            except PlaywrightError as e:
                raise PageUnavailable(str(e))
        await self.observer.drain()

    async def read_cookies(self) -> List[CookieRecord]:
        try:
            cookies = await self.context.cookies()
        except PlaywrightError as e:
            logger.warning(f"Failed to read cookies: {e}")
            return []
        return [CookieRecord.from_playwright_cookie(cookie) for cookie in cookies]

    async def read_local_storage(self) -> Dict[str, str]:
        try:
            items = await self.page.evaluate(LOCAL_STORAGE_SCRIPT)
        except PlaywrightError as e:
            logger.debug(f"Failed to read localStorage: {e}")
            return {}
        return items or {}

    def attach_sink(self, sink: Optional[RequestSink]) -> Optional[RequestSink]:
        return self.observer.attach_sink(sink)

    async def service_workers(self) -> List[str]:
        try:
            return await self.page.evaluate(SERVICE_WORKERS_SCRIPT) or []
        except PlaywrightError as e:
            logger.debug(f"Service worker check failed: {e}")
            return []

    async def unregister_service_workers(self) -> int:
        try:
            return await self.page.evaluate(UNREGISTER_SERVICE_WORKERS_SCRIPT) or 0
        except PlaywrightError as e:
            logger.warning(f"Service worker unregistration failed: {e}")
            return 0

    async def close(self) -> None:
        """Drain pending body reads and stop observing."""
        await self.observer.drain()
        self.observer.detach()
