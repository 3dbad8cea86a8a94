"""Shared test fixtures and configuration for Consent Sentinel tests."""

import asyncio
import copy
from contextlib import asynccontextmanager
from pathlib import Path
import sys
from typing import Any, Callable, Dict, List, Optional

import pytest

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from consent_sentinel.audit.capture.request_sink import RequestSink
from consent_sentinel.audit.config.settings import AuditSettings, TimingConfig
from consent_sentinel.audit.errors import ClickTimeout, NavigationTimeout
from consent_sentinel.audit.interactive import ElementDescriptor, Selection
from consent_sentinel.audit.models.capture import CapturedRequest, CookieRecord
from consent_sentinel.audit.models.cmp import CMPDescriptor
from consent_sentinel.audit.snapshots.collector import DATA_LAYER_SCRIPT


SITE_URL = "https://shop.example.com/"


class FakePageDriver:
    """In-memory PageDriver with scripted page behaviour.

    ``on_navigate`` and ``on_click`` callbacks receive the driver and can
    emit requests into the attached sink, set cookies or push dataLayer
    entries, which is all the audit ever observes of a page.
    """

    def __init__(self, url: str = "about:blank"):
        self._url = url
        self.visible = set()
        self.visible_after_scroll = set()
        self.counts: Dict[str, int] = {}
        self.data_layer: List[Any] = []
        self.cookies: List[CookieRecord] = []
        self.local_storage: Dict[str, str] = {}
        self.workers: List[str] = []
        self.on_navigate: Dict[str, Callable[["FakePageDriver"], None]] = {}
        self.on_click: Dict[str, Callable[["FakePageDriver"], None]] = {}
        self.failing_clicks = set()
        self.failing_navigations = set()
        self.blocking_waits = False
        self.clicks: List[str] = []
        self.navigations: List[str] = []
        self.scrolls = 0
        self.sink: Optional[RequestSink] = None

    @property
    def url(self) -> str:
        return self._url

    async def navigate(self, url: str, timeout_ms: int) -> None:
        if url in self.failing_navigations:
            raise NavigationTimeout(url, timeout_ms)
        self._url = url
        self.navigations.append(url)
        self.data_layer = []
        callback = self.on_navigate.get(url)
        if callback is not None:
            callback(self)

    async def is_visible(self, selector: str) -> bool:
        return selector in self.visible

    async def wait_for_visible(self, selector: str, timeout_ms: int) -> bool:
        if self.blocking_waits:
            await asyncio.Event().wait()
        return selector in self.visible

    async def count(self, selector: str) -> int:
        return self.counts.get(selector, 0)

    async def click(self, selector: str, timeout_ms: int) -> None:
        if selector in self.failing_clicks:
            raise ClickTimeout(selector, timeout_ms)
        self.clicks.append(selector)
        callback = self.on_click.get(selector)
        if callback is not None:
            callback(self)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if script == DATA_LAYER_SCRIPT:
            return copy.deepcopy(self.data_layer)
        return None

    async def scroll_by(self, pixels: int) -> None:
        self.scrolls += 1
        self.visible |= self.visible_after_scroll

    async def wait(self, ms: int) -> None:
        await asyncio.sleep(0)

    async def read_cookies(self) -> List[CookieRecord]:
        return list(self.cookies)

    async def read_local_storage(self) -> Dict[str, str]:
        return dict(self.local_storage)

    def attach_sink(self, sink: Optional[RequestSink]) -> Optional[RequestSink]:
        previous = self.sink
        self.sink = sink
        return previous

    async def service_workers(self) -> List[str]:
        return list(self.workers)

    async def unregister_service_workers(self) -> int:
        removed = len(self.workers)
        self.workers = []
        return removed

    # Page-side helpers for callbacks

    def emit(self, url: str, **fields) -> None:
        if self.sink is not None:
            self.sink.record(CapturedRequest(url=url, **fields))

    def set_cookie(self, name: str, domain: str, value: str = "1") -> None:
        self.cookies = [c for c in self.cookies if c.key != (name, domain)]
        self.cookies.append(CookieRecord(name=name, domain=domain, value=value))


class ScriptedSurface:
    """Attended InteractiveSurface answering from scripted values."""

    def __init__(
        self,
        clicks: Optional[List[Optional[ElementDescriptor]]] = None,
        text: str = "",
        confirm: bool = True,
        selection: Optional[Selection] = None,
        on_confirm: Optional[Callable[[], None]] = None,
        on_click: Optional[Callable[[], None]] = None
    ):
        self.clicks = list(clicks or [])
        self.text = text
        self.confirm = confirm
        self.selection = selection
        self.on_confirm = on_confirm
        self.on_click = on_click
        self.prompts: List[str] = []
        self.torn_down = 0

    @property
    def attended(self) -> bool:
        return True

    async def prompt_click(self, label: str) -> Optional[ElementDescriptor]:
        self.prompts.append(label)
        if self.on_click is not None:
            self.on_click()
        return self.clicks.pop(0) if self.clicks else None

    async def prompt_text_input(self, label: str) -> str:
        self.prompts.append(label)
        return self.text

    async def prompt_confirm(self, message: str) -> bool:
        self.prompts.append(message)
        if self.on_confirm is not None:
            self.on_confirm()
        return self.confirm

    async def prompt_select(self, options) -> Selection:
        if self.selection is None:
            # Operator never answers; the resolver cancels this prompt
            await asyncio.Event().wait()
        await asyncio.sleep(0)
        return self.selection

    async def teardown(self) -> None:
        self.torn_down += 1


@pytest.fixture
def site_url():
    return SITE_URL


@pytest.fixture
def make_driver():
    """Factory for FakePageDriver instances."""
    def _make(url: str = "about:blank") -> FakePageDriver:
        return FakePageDriver(url)
    return _make


@pytest.fixture
def make_surface():
    """Factory for attended ScriptedSurface instances."""
    return ScriptedSurface


@pytest.fixture
def fast_settings():
    """Audit settings with every wait set to zero."""
    return AuditSettings(timing=TimingConfig(
        settle_ms=0,
        probe_timeout_ms=0,
        scroll_wait_ms=0,
        click_timeout_ms=0,
        reject_click_timeout_ms=0,
        two_step_wait_ms=0,
        navigation_timeout_ms=0,
    ))


@pytest.fixture
def context_factory():
    """Build a context factory that hands out the given drivers in order."""
    def _build(*drivers: FakePageDriver):
        queue = list(drivers)
        opened: List[str] = []

        @asynccontextmanager
        async def factory(site_origin: str):
            opened.append(site_origin)
            driver = queue.pop(0)
            try:
                yield driver
            finally:
                driver.attach_sink(None)

        factory.opened = opened
        return factory
    return _build


@pytest.fixture
def acme_cmp():
    return CMPDescriptor(
        key="acme",
        name="Acme Consent",
        accept_selector="#acme-accept",
        reject_selector="#acme-reject",
        detect_selectors=["#acme-banner"],
        priority=1,
    )


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests that drive the full audit state machine"
    )
