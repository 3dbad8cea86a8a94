"""Cooperative cancellation for in-flight CMP probes."""

import asyncio
import logging
from typing import Any, Awaitable, Optional, TypeVar

from ..errors import ResolutionCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """One-shot token shared by every probe of a resolution run.

    Once cancelled, :meth:`guard` stops the awaited probe and raises
    :class:`ResolutionCancelled`; probes that have not started yet raise
    before touching the page.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.payload: Any = None
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, payload: Any = None, reason: Optional[str] = None) -> None:
        """Cancel the token. Only the first call sets the payload."""
        if self._event.is_set():
            return
        self.payload = payload
        self.reason = reason
        self._event.set()
        logger.debug(f"Resolution cancelled: {reason}")

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ResolutionCancelled(self.reason)

    async def wait(self) -> Any:
        await self._event.wait()
        return self.payload

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token is cancelled first.

        Raises:
            ResolutionCancelled: If the token fired before the awaitable finished
        """
        self.raise_if_cancelled()
        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()
        if not work.done():
            work.cancel()
            try:
                await work
            except asyncio.CancelledError:
                pass
            raise ResolutionCancelled(self.reason)
        return work.result()
