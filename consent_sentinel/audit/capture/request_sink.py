"""Per-phase request buffer.

Exactly one sink is attached to a page at a time. The orchestrator opens a
new sink when a phase starts and closes it once the phase is captured, so
every request is attributed to the phase during which it started.
"""

import logging
from typing import List

from ..models.capture import CapturedRequest

logger = logging.getLogger(__name__)


class RequestSink:
    """Collects the requests of one phase."""

    def __init__(self, phase: str):
        self.phase = phase
        self._requests: List[CapturedRequest] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def record(self, request: CapturedRequest) -> bool:
        """Add a request; returns False if the sink is already closed."""
        if self._closed:
            logger.debug(f"Dropping request after close of '{self.phase}': {request.url}")
            return False
        request.phase = self.phase
        self._requests.append(request)
        return True

    def close(self) -> List[CapturedRequest]:
        """Freeze the sink and hand over its requests."""
        if not self._closed:
            self._closed = True
            logger.debug(f"Sink '{self.phase}' closed with {len(self._requests)} requests")
        return list(self._requests)

    @property
    def requests(self) -> List[CapturedRequest]:
        return list(self._requests)

    def urls(self) -> List[str]:
        return [request.url for request in self._requests]

    def __len__(self) -> int:
        return len(self._requests)

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"RequestSink(phase={self.phase!r}, requests={len(self._requests)}, {state})"
