"""Error taxonomy for the consent audit.

Most of these are recoverable: they are raised close to the browser and
caught by the component that knows how to degrade (retry tier, manual
fallback, skipped funnel step). Only ``PhaseFailed`` and ``PageUnavailable``
end a phase, and the orchestrator records them instead of letting them
unwind the run.
"""

from typing import Iterable, Optional


class AuditError(Exception):
    """Base class for consent audit errors."""
    pass


class SelectorNotFound(AuditError):
    """A selector matched nothing visible within the allotted wait."""

    def __init__(self, selector: str, message: Optional[str] = None):
        self.selector = selector
        super().__init__(message or f"Selector not found: {selector}")


class NavigationTimeout(AuditError):
    """Page navigation did not complete in time."""

    def __init__(self, url: str, timeout_ms: int, reason: Optional[str] = None):
        self.url = url
        self.timeout_ms = timeout_ms
        self.reason = reason
        if reason:
            message = f"Navigation to {url} failed: {reason}"
        else:
            message = f"Navigation to {url} timed out after {timeout_ms}ms"
        super().__init__(message)


class ClickTimeout(AuditError):
    """An element could not be clicked before the timeout fired."""

    def __init__(self, selector: str, timeout_ms: int):
        self.selector = selector
        self.timeout_ms = timeout_ms
        super().__init__(f"Click on {selector} timed out after {timeout_ms}ms")


class PageUnavailable(AuditError):
    """The page, its context or the browser went away mid-phase."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Page unavailable: {reason}")


class DecodeFailure(AuditError):
    """A query parameter was not a decodable transport payload."""
    pass


class ResolutionCancelled(AuditError):
    """An in-flight CMP resolution was preempted by an operator override."""

    def __init__(self, reason: Optional[str] = None):
        self.reason = reason
        super().__init__(f"Resolution cancelled: {reason or 'override'}")


class PhaseFailed(AuditError):
    """Both automatic and manual resolution were exhausted for a phase."""

    def __init__(self, phase: str, message: str):
        self.phase = phase
        super().__init__(f"{phase}: {message}")


class ConfigLoadError(AuditError):
    """Exception raised when configuration loading fails."""
    pass


class LibraryError(AuditError):
    """CMP or vendor library could not be read, written or queried."""

    @classmethod
    def unknown_key(cls, key: str, available: Iterable[str]) -> "LibraryError":
        return cls(f"CMP '{key}' not found in library. Available: {', '.join(sorted(available)) or '-'}")
