"""Browser capture layer.

Main Components:
- PageDriver: browser primitives the audit consumes (driver.py)
- PlaywrightPageDriver: Playwright implementation of PageDriver
- NetworkObserver: Playwright network events -> CapturedRequest records
- RequestSink: per-phase request buffer swapped between phases
- BrowserFactory: browser lifecycle and isolated contexts
"""

from .browser_factory import BrowserFactory
from .driver import PageDriver, PlaywrightPageDriver
from .network_observer import NetworkObserver
from .request_sink import RequestSink

__all__ = [
    "BrowserFactory",
    "NetworkObserver",
    "PageDriver",
    "PlaywrightPageDriver",
    "RequestSink",
]
