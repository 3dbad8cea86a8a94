"""Browser factory for launching Playwright and handing out isolated contexts.

Each ``isolated_context()`` call creates a brand-new browser context (no
shared cookies, storage, cache or service workers) with one page wrapped in
a ``PlaywrightPageDriver``. The audit uses one context for the accept path
and a second, fresh one for the reject path; they never overlap.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from playwright.async_api import Browser, Playwright, async_playwright

from ..config.settings import BrowserSettings
from .driver import PlaywrightPageDriver

logger = logging.getLogger(__name__)


class BrowserFactory:
    """Factory for creating and managing Playwright browser instances."""

    def __init__(self, settings: Optional[BrowserSettings] = None, wait_until: str = "networkidle"):
        """Initialize browser factory.

        Args:
            settings: Browser launch and context options
            wait_until: Load state drivers wait for on navigation
        """
        self.settings = settings or BrowserSettings()
        self.wait_until = wait_until
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self._context_count = 0

    async def start(self) -> None:
        """Start Playwright and launch browser."""
        if self.playwright is not None:
            logger.warning("Browser factory already started")
            return

        logger.info(f"Starting browser factory with engine: {self.settings.engine}")

        try:
            self.playwright = await async_playwright().start()
            browser_type = getattr(self.playwright, self.settings.engine)
            self.browser = await browser_type.launch(headless=self.settings.headless)
            logger.info(f"Browser launched successfully (headless={self.settings.headless})")
        except Exception as e:
            logger.error(f"Failed to start browser: {e}")
            await self.stop()
            raise

    async def stop(self) -> None:
        """Stop browser and cleanup resources."""
        logger.info("Stopping browser factory")

        if self.browser:
            await self.browser.close()
            self.browser = None

        if self.playwright:
            await self.playwright.stop()
            self.playwright = None

        self._context_count = 0

    async def __aenter__(self) -> "BrowserFactory":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    def context_options(self) -> Dict[str, Any]:
        """Convert settings to Playwright browser context options."""
        options: Dict[str, Any] = {
            'viewport': self.settings.viewport,
            'ignore_https_errors': self.settings.ignore_https_errors,
            'accept_downloads': False,
        }
        if self.settings.user_agent:
            options['user_agent'] = self.settings.user_agent
        if self.settings.locale:
            options['locale'] = self.settings.locale
        return options

    @asynccontextmanager
    async def isolated_context(self, site_origin: Optional[str] = None) -> AsyncGenerator[PlaywrightPageDriver, None]:
        """Create a fresh browser context with one page.

        Args:
            site_origin: Audited URL, forwarded to the driver

        Yields:
            Driver for the new page; context and page are closed on exit

        Raises:
            RuntimeError: If browser factory not started
        """
        if not self.browser:
            raise RuntimeError("Browser factory not started. Call start() first.")

        context = None
        driver = None

        try:
            context = await self.browser.new_context(**self.context_options())
            self._context_count += 1
            logger.debug(f"Created isolated context #{self._context_count}")

            page = await context.new_page()
            driver = PlaywrightPageDriver(context, page, site_origin=site_origin, wait_until=self.wait_until)
            yield driver

        finally:
            if driver:
                try:
                    await driver.close()
                except Exception as e:
                    logger.warning(f"Error detaching driver: {e}")
            if context:
                try:
                    await context.close()
                except Exception as e:
                    logger.warning(f"Error closing context: {e}")
                self._context_count -= 1

    def __repr__(self) -> str:
        status = "running" if self.browser else "stopped"
        return f"BrowserFactory(engine={self.settings.engine}, status={status}, contexts={self._context_count})"
