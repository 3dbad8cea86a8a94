"""Consent banner resolution.

Finds which known CMP descriptor operates the banner on the current page:

1. fast pass: probe every candidate's accept selector concurrently
2. slow pass: wait for each candidate in priority order, stop at the first
3. scroll once and repeat both passes
4. disambiguate several matches through their detect selectors

An attended operator may override the resolution at any time; the override
cancels every in-flight probe through a shared CancellationToken.
"""

import asyncio
import logging
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

from ..capture.driver import PageDriver
from ..config.settings import TimingConfig
from ..errors import ResolutionCancelled
from ..interactive import InteractiveSurface, Selection, SelectionKind
from ..models.audit import CMPSummary
from ..models.cmp import CMPDescriptor
from .cancellation import CancellationToken
from .library import ordered_candidates

logger = logging.getLogger(__name__)


class ResolutionSource(str, Enum):
    """How a resolution was reached."""
    PINNED = "pinned"
    FAST_PASS = "fast_pass"
    SLOW_PASS = "slow_pass"
    OVERRIDE = "override"
    MANUAL = "manual"
    SKIPPED = "skipped"


class CMPResolution:
    """Outcome of resolving the page's consent banner.

    A resolution without descriptor is MANUAL: the consent phases must be
    driven through the interactive fallback.
    """

    def __init__(
        self,
        descriptor: Optional[CMPDescriptor],
        source: ResolutionSource,
        ambiguous: bool = False,
        warnings: Optional[List[str]] = None,
        matched: Optional[List[str]] = None,
        scrolled: bool = False
    ):
        self.descriptor = descriptor
        self.source = source
        self.ambiguous = ambiguous
        self.warnings = warnings or []
        self.matched = matched or []
        self.scrolled = scrolled

    @classmethod
    def manual(cls, source: ResolutionSource = ResolutionSource.MANUAL, warning: Optional[str] = None) -> "CMPResolution":
        return cls(None, source, warnings=[warning] if warning else [])

    @property
    def is_manual(self) -> bool:
        return self.descriptor is None

    def to_summary(self) -> CMPSummary:
        return CMPSummary(
            key=self.descriptor.key if self.descriptor else None,
            name=self.descriptor.name if self.descriptor else None,
            source=self.source.value,
            ambiguous=self.ambiguous,
            manual=self.is_manual,
            warnings=list(self.warnings),
        )

    def __repr__(self) -> str:
        key = self.descriptor.key if self.descriptor else "MANUAL"
        return f"CMPResolution({key}, source={self.source.value}, ambiguous={self.ambiguous})"


class SelectorResolver:
    """Resolves the CMP descriptor for the page a driver is showing."""

    def __init__(self, timing: Optional[TimingConfig] = None, surface: Optional[InteractiveSurface] = None):
        self.timing = timing or TimingConfig()
        self.surface = surface

    async def resolve(
        self,
        descriptors: Iterable[CMPDescriptor],
        driver: PageDriver,
        token: Optional[CancellationToken] = None
    ) -> CMPResolution:
        """Resolve the banner on the current page.

        Args:
            descriptors: Known CMP descriptors
            driver: Page to probe
            token: Cancellation token; a fresh one is used when omitted

        Returns:
            CMPResolution; MANUAL when no candidate resolves
        """
        candidates = ordered_candidates(descriptors)
        token = token or CancellationToken()
        if not candidates:
            logger.warning("CMP library is empty, falling back to manual consent")
            return CMPResolution.manual(warning="CMP library is empty")

        override_task = None
        if self.surface is not None and self.surface.attended:
            override_task = asyncio.ensure_future(self._await_override(candidates, token))

        try:
            matched, source, scrolled = await self._probe(candidates, driver, token)
            if self._answered(override_task):
                return self._from_override(token.payload, candidates)
            if not matched:
                logger.warning("No known CMP banner visible, falling back to manual consent")
                return CMPResolution(None, ResolutionSource.MANUAL, scrolled=scrolled,
                                     warnings=["No known CMP banner visible"])

            descriptor, ambiguous, warnings = await self._disambiguate(matched, driver, token)
            if self._answered(override_task):
                return self._from_override(token.payload, candidates)
            logger.info(f"CMP resolved: {descriptor.name} ({descriptor.key}) via {source.value}")
            return CMPResolution(
                descriptor,
                source,
                ambiguous=ambiguous,
                warnings=warnings,
                matched=[candidate.key for candidate in matched],
                scrolled=scrolled,
            )
        except ResolutionCancelled:
            return self._from_override(token.payload, candidates)
        finally:
            if override_task is not None:
                await self._stop_override(override_task)

    async def _probe(
        self,
        candidates: Sequence[CMPDescriptor],
        driver: PageDriver,
        token: CancellationToken
    ) -> Tuple[List[CMPDescriptor], Optional[ResolutionSource], bool]:
        scrolled = False
        for attempt in range(2):
            if attempt:
                logger.info("No CMP banner found, retrying after scroll")
                await token.guard(driver.scroll_by(self.timing.scroll_offset_px))
                await token.guard(driver.wait(self.timing.scroll_wait_ms))
                scrolled = True

            matched = await self._fast_pass(candidates, driver, token)
            if matched:
                return matched, ResolutionSource.FAST_PASS, scrolled

            matched = await self._slow_pass(candidates, driver, token)
            if matched:
                return matched, ResolutionSource.SLOW_PASS, scrolled

        return [], None, scrolled

    async def _fast_pass(
        self,
        candidates: Sequence[CMPDescriptor],
        driver: PageDriver,
        token: CancellationToken
    ) -> List[CMPDescriptor]:
        visible = await token.guard(asyncio.gather(
            *(self._is_visible(driver, candidate.accept_selector) for candidate in candidates)
        ))
        matched = [candidate for candidate, hit in zip(candidates, visible) if hit]
        logger.debug(f"Fast pass matched {[candidate.key for candidate in matched]}")
        return matched

    async def _slow_pass(
        self,
        candidates: Sequence[CMPDescriptor],
        driver: PageDriver,
        token: CancellationToken
    ) -> List[CMPDescriptor]:
        for index, candidate in enumerate(candidates):
            token.raise_if_cancelled()
            if await token.guard(self._wait_visible(driver, candidate.accept_selector)):
                # Lookalike banners that became visible meanwhile still get disambiguated
                rest = await self._fast_pass(candidates[index + 1:], driver, token)
                return [candidate] + rest
        return []

    async def _disambiguate(
        self,
        matched: List[CMPDescriptor],
        driver: PageDriver,
        token: CancellationToken
    ) -> Tuple[CMPDescriptor, bool, List[str]]:
        if len(matched) == 1:
            return matched[0], False, []

        logger.info(f"{len(matched)} CMPs match, checking detect selectors: {[m.key for m in matched]}")
        for candidate in matched:
            for selector in candidate.detect_selectors:
                if await token.guard(self._count(driver, selector)) > 0:
                    logger.info(f"CMP disambiguated: {candidate.key} via detect '{selector}'")
                    return candidate, False, []

        message = (
            f"Accept selectors of {[m.key for m in matched]} all match and no detect "
            f"selector decides; using {matched[0].key}"
        )
        logger.warning(message)
        return matched[0], True, [message]

    async def _is_visible(self, driver: PageDriver, selector: str) -> bool:
        try:
            return await driver.is_visible(selector)
        except Exception as e:
            logger.debug(f"Visibility probe failed for '{selector}': {e}")
            return False

    async def _wait_visible(self, driver: PageDriver, selector: str) -> bool:
        try:
            return await driver.wait_for_visible(selector, self.timing.probe_timeout_ms)
        except Exception as e:
            logger.debug(f"Visibility wait failed for '{selector}': {e}")
            return False

    async def _count(self, driver: PageDriver, selector: str) -> int:
        try:
            return await driver.count(selector)
        except Exception as e:
            logger.debug(f"Detect probe failed for '{selector}': {e}")
            return 0

    async def _await_override(self, candidates: Sequence[CMPDescriptor], token: CancellationToken) -> None:
        selection = await self.surface.prompt_select([candidate.key for candidate in candidates])
        token.cancel(payload=selection, reason=f"operator chose {selection.kind.value}")

    def _answered(self, task: Optional[asyncio.Future]) -> bool:
        # The prompt can finish in the same tick as the last visibility check
        return task is not None and task.done() and not task.cancelled() and task.exception() is None

    async def _stop_override(self, task: asyncio.Future) -> None:
        if not task.done():
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.warning(f"CMP override prompt failed: {e}")
        await self.surface.teardown()

    def _from_override(self, selection: Optional[Selection], candidates: Sequence[CMPDescriptor]) -> CMPResolution:
        if selection is None:
            return CMPResolution.manual(warning="Resolution cancelled")

        if selection.kind == SelectionKind.SELECT:
            for candidate in candidates:
                if candidate.key == selection.key:
                    logger.info(f"CMP selected by operator: {candidate.key}")
                    return CMPResolution(candidate, ResolutionSource.OVERRIDE)
            logger.warning(f"Operator selected unknown CMP '{selection.key}'")
            return CMPResolution.manual(warning=f"Unknown CMP selected: {selection.key}")

        if selection.kind == SelectionKind.SKIP:
            logger.info("CMP resolution skipped by operator")
            return CMPResolution.manual(source=ResolutionSource.SKIPPED)

        logger.info("Operator chose manual consent capture")
        return CMPResolution.manual(source=ResolutionSource.OVERRIDE)
