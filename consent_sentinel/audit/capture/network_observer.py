"""Network request observer feeding the attached request sink.

This module provides the NetworkObserver class that hooks into Playwright
network events, builds ``CapturedRequest`` records with timing and response
headers, and forwards each new request to whichever ``RequestSink`` is
attached at the moment the request starts.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, Optional, Set

from playwright.async_api import Page, Request, Response

from ..models.capture import CapturedRequest, RequestStatus
from ..utils.url_normalizer import is_first_party
from .request_sink import RequestSink

logger = logging.getLogger(__name__)

MAX_BODY_BYTES = 500_000


class NetworkObserver:
    """Observes network requests and routes them into the current sink."""

    def __init__(self, page: Page, site_origin: Optional[str] = None):
        """Initialize network observer for a page.

        Args:
            page: Playwright page to observe
            site_origin: Audited URL; first-party script bodies are kept for fingerprinting
        """
        self.page = page
        self.site_origin = site_origin
        self._sink: Optional[RequestSink] = None
        self._requests_by_id: Dict[str, CapturedRequest] = {}
        self._pending_bodies: Set[asyncio.Task] = set()
        self._listening = False

        self._setup_listeners()

    def _setup_listeners(self) -> None:
        """Setup Playwright event listeners for network events."""
        self.page.on("request", self._on_request)
        self.page.on("response", self._on_response)
        self.page.on("requestfinished", self._on_request_finished)
        self.page.on("requestfailed", self._on_request_failed)
        self._listening = True

        logger.debug("Network observer listeners setup complete")

    def detach(self) -> None:
        """Remove all listeners and the attached sink."""
        if self._listening:
            self.page.remove_listener("request", self._on_request)
            self.page.remove_listener("response", self._on_response)
            self.page.remove_listener("requestfinished", self._on_request_finished)
            self.page.remove_listener("requestfailed", self._on_request_failed)
            self._listening = False
        for task in self._pending_bodies:
            task.cancel()
        self._pending_bodies.clear()
        self._sink = None
        self._requests_by_id.clear()

    def attach_sink(self, sink: Optional[RequestSink]) -> Optional[RequestSink]:
        """Swap the sink new requests go to.

        Args:
            sink: Sink owned by the phase that starts now (None to stop routing)

        Returns:
            The previously attached sink
        """
        previous = self._sink
        self._sink = sink
        logger.debug(f"Request sink swapped: {previous!r} -> {sink!r}")
        return previous

    @property
    def sink(self) -> Optional[RequestSink]:
        return self._sink

    def _create_captured_request(self, request: Request) -> CapturedRequest:
        """Create initial CapturedRequest from Playwright Request."""
        headers = {}
        try:
            headers = request.headers
        except Exception as e:
            logger.warning(f"Failed to extract request headers: {e}")

        post_data = None
        try:
            if request.method.upper() in ('POST', 'PUT', 'PATCH'):
                post_data = request.post_data
        except Exception as e:
            logger.debug(f"Failed to extract request body: {e}")

        return CapturedRequest(
            url=request.url,
            method=request.method,
            resource_type=request.resource_type,
            post_data=post_data,
            headers=headers,
            start_time=datetime.utcnow(),
        )

    def _on_request(self, request: Request) -> None:
        """Handle request start event."""
        if self._sink is None:
            logger.debug(f"No sink attached, ignoring {request.url}")
            return

        try:
            captured = self._create_captured_request(request)
        except Exception as e:
            logger.error(f"Error processing request start: {e}")
            return

        if self._sink.record(captured):
            self._requests_by_id[str(id(request))] = captured
            logger.debug(f"Request started: {request.method} {request.url}")

    def _on_response(self, response: Response) -> None:
        """Handle response received event."""
        captured = self._requests_by_id.get(str(id(response.request)))
        if captured is None:
            return

        captured.status_code = response.status
        try:
            captured.response_headers = response.headers
        except Exception as e:
            logger.warning(f"Failed to extract response headers: {e}")

        if self._wants_body(captured):
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                return
            task = loop.create_task(self._read_body(response, captured))
            self._pending_bodies.add(task)
            task.add_done_callback(self._pending_bodies.discard)

    def _wants_body(self, captured: CapturedRequest) -> bool:
        if not self.site_origin or not is_first_party(captured.url, self.site_origin):
            return False
        content_type = captured.response_headers.get("content-type", "")
        return (
            "javascript" in content_type
            or "ecmascript" in content_type
            or captured.path.endswith(".js")
        )

    async def _read_body(self, response: Response, captured: CapturedRequest) -> None:
        try:
            body = await response.text()
        except Exception as e:
            logger.debug(f"Failed to extract response body: {e}")
            return
        if len(body) <= MAX_BODY_BYTES:
            captured.response_body = body

    def _on_request_finished(self, request: Request) -> None:
        """Handle request finished event."""
        captured = self._requests_by_id.pop(str(id(request)), None)
        if captured is None:
            return
        captured.status = RequestStatus.SUCCESS
        captured.end_time = datetime.utcnow()
        logger.debug(f"Request finished: {request.method} {request.url}")

    def _on_request_failed(self, request: Request) -> None:
        """Handle request failed event."""
        captured = self._requests_by_id.pop(str(id(request)), None)
        if captured is None:
            return
        captured.status = RequestStatus.FAILED
        captured.error_text = request.failure or "Unknown error"
        captured.end_time = datetime.utcnow()
        logger.debug(f"Request failed: {request.method} {request.url} - {captured.error_text}")

    async def drain(self) -> None:
        """Wait for in-flight body reads so fingerprints see complete bodies."""
        if self._pending_bodies:
            await asyncio.gather(*list(self._pending_bodies), return_exceptions=True)

    def __repr__(self) -> str:
        return f"NetworkObserver(sink={self._sink!r}, in_flight={len(self._requests_by_id)})"
