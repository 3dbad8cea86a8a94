"""Consent audit orchestrator.

Drives the audit state machine:

    INIT -> DETECT_CMP -> PRE_CONSENT -> POST_ACCEPT -> FUNNEL_STEP* -> POST_REJECT -> DONE

PRE_CONSENT, POST_ACCEPT and the funnel share one browsing context. The
reject path runs in a second, freshly created context so the reject
decision is evaluated from a clean baseline. The two contexts never
overlap.
"""

import logging
from typing import AsyncContextManager, Callable, Dict, Optional, Sequence

from ..capture.browser_factory import BrowserFactory
from ..capture.driver import PageDriver
from ..capture.request_sink import RequestSink
from ..cmp.automator import ConsentAction, ConsentClicker, ConsentInteractionResult
from ..cmp.library import CMPLibraryStore, InMemoryCMPLibrary, learned_descriptor, lookup_descriptor
from ..cmp.resolver import CMPResolution, ResolutionSource, SelectorResolver
from ..config.loader import get_audit_settings
from ..config.settings import AuditSettings
from ..errors import LibraryError, NavigationTimeout, PhaseFailed
from ..findings import build_findings
from ..funnel.analyzer import FunnelConsistencyAnalyzer
from ..interactive import HeadlessSurface, InteractiveSurface
from ..models.audit import AuditPhase, AuditResult, FunnelStep, PhaseFailure, PhaseSnapshot
from ..models.cmp import CMPDescriptor
from ..snapshots.collector import SnapshotCollector
from ..utils.url_normalizer import site_domain
from ..vendors.analysis import TrafficAnalyzer
from ..vendors.consent_mode import consent_mode_type
from ..vendors.library import SignatureLibrary
from ..vendors.sst import SSTDetector
from ..vendors.transport import dedupe_findings
from .funnel_runner import FunnelRunner
from .phases import PhaseStateMachine
from .recorder import PhaseCapture, PhaseRecorder

logger = logging.getLogger(__name__)

ContextFactory = Callable[[str], AsyncContextManager[PageDriver]]


class ConsentAudit:
    """One-shot consent audit of a single site."""

    def __init__(
        self,
        settings: Optional[AuditSettings] = None,
        cmp_store: Optional[CMPLibraryStore] = None,
        signatures: Optional[SignatureLibrary] = None,
        surface: Optional[InteractiveSurface] = None,
        context_factory: Optional[ContextFactory] = None
    ):
        """Initialize the audit.

        Args:
            settings: Audit settings; loaded from config when omitted
            cmp_store: CMP descriptor store
            signatures: Vendor signature library; built-in when omitted
            surface: Operator surface; unattended when omitted
            context_factory: Callable returning an async context manager that
                yields a fresh PageDriver; Playwright contexts when omitted
        """
        self.settings = settings or get_audit_settings()
        self.cmp_store = cmp_store if cmp_store is not None else InMemoryCMPLibrary()
        self.surface = surface or HeadlessSurface()
        self.context_factory = context_factory

        self.collector = SnapshotCollector()
        self.analyzer = TrafficAnalyzer(signatures, self.settings)
        self.resolver = SelectorResolver(self.settings.timing, self.surface)
        self.clicker = ConsentClicker(self.settings.timing)
        self.funnel_analyzer = FunnelConsistencyAnalyzer(self.settings.funnel)

        self._manual_fallback_available = True
        self._manual_selectors: Dict[ConsentAction, str] = {}
        self._resolution: Optional[CMPResolution] = None

    async def run(
        self,
        url: str,
        funnel: Sequence[FunnelStep] = (),
        cmp_key: Optional[str] = None
    ) -> AuditResult:
        """Audit a site.

        Args:
            url: Page to audit
            funnel: Funnel steps to run after accepting
            cmp_key: Pin a CMP from the library instead of resolving it

        Returns:
            AuditResult; ``partial`` when a phase failed

        Raises:
            LibraryError: If ``cmp_key`` is not in the CMP library
        """
        descriptors = self.cmp_store.load()
        pinned = lookup_descriptor(descriptors, cmp_key) if cmp_key else None

        self._manual_fallback_available = True
        self._manual_selectors = {}
        result = AuditResult(url=url, site_domain=site_domain(url))
        logger.info(f"Starting consent audit for {url}")

        recorder = PhaseRecorder(self.settings, self.collector, self.analyzer, url)
        if self.context_factory is not None:
            await self._run(self.context_factory, recorder, list(funnel), descriptors, pinned, result)
        else:
            async with BrowserFactory(self.settings.browser, self.settings.timing.wait_until) as factory:
                await self._run(factory.isolated_context, recorder, list(funnel), descriptors, pinned, result)

        result.sst = SSTDetector.merge(*recorder.sst_reports)
        self._finish(result)
        logger.info(
            f"Consent audit finished: status={result.status.value}, "
            f"reject_clean={result.reject_clean}, findings={len(result.findings)}"
        )
        return result

    async def _run(
        self,
        context_factory: ContextFactory,
        recorder: PhaseRecorder,
        funnel: Sequence[FunnelStep],
        descriptors: Dict[str, CMPDescriptor],
        pinned: Optional[CMPDescriptor],
        result: AuditResult
    ) -> None:
        machine = PhaseStateMachine()
        self._resolution = None

        try:
            proceed = await self._run_accept_context(
                context_factory, machine, recorder, funnel, descriptors, pinned, result
            )
        except Exception as e:
            self._abort(result, machine.state, e)
            proceed = self._resolution is not None

        if not proceed or not machine.can_advance(AuditPhase.POST_REJECT):
            machine.advance(AuditPhase.DONE)
            return

        machine.advance(AuditPhase.POST_REJECT)
        try:
            await self._run_reject_context(context_factory, recorder, result)
        except Exception as e:
            self._abort(result, AuditPhase.POST_REJECT, e)

        machine.advance(AuditPhase.DONE)
        await self._learn_descriptor(self._resolution, result)

    async def _run_accept_context(
        self,
        context_factory: ContextFactory,
        machine: PhaseStateMachine,
        recorder: PhaseRecorder,
        funnel: Sequence[FunnelStep],
        descriptors: Dict[str, CMPDescriptor],
        pinned: Optional[CMPDescriptor],
        result: AuditResult
    ) -> bool:
        """INIT through the funnel in the first context.

        Returns:
            False if the run cannot continue to the reject context
        """
        url = recorder.site_origin
        runner = FunnelRunner(self.settings, recorder, self.collector, self.surface)
        timing = self.settings.timing

        async with context_factory(url) as driver:
            pre_sink = RequestSink(AuditPhase.PRE_CONSENT.value)
            driver.attach_sink(pre_sink)
            try:
                await driver.navigate(url, timing.navigation_timeout_ms)
            except NavigationTimeout as e:
                self._fail(result, AuditPhase.INIT, "Initial navigation", str(e))
                return False
            await driver.wait(timing.settle_ms)

            machine.advance(AuditPhase.DETECT_CMP)
            if pinned is not None:
                resolution = CMPResolution(pinned, ResolutionSource.PINNED)
                logger.info(f"Using pinned CMP {pinned.key}")
            else:
                resolution = await self.resolver.resolve(descriptors.values(), driver)
            self._resolution = resolution
            result.cmp = resolution.to_summary()

            machine.advance(AuditPhase.PRE_CONSENT)
            pre = await recorder.capture(
                driver, pre_sink, "Pre-consent", AuditPhase.PRE_CONSENT,
                baseline=PhaseSnapshot(), settle=False,
            )
            result.records.append(pre.record)
            await self._check_service_workers(driver, result)

            machine.advance(AuditPhase.POST_ACCEPT)
            accept = await self._consent_phase(
                driver, recorder, resolution, ConsentAction.ACCEPT, pre.snapshot, result
            )
            previous = accept.snapshot if accept is not None else pre.snapshot

            for step in funnel:
                machine.advance(AuditPhase.FUNNEL_STEP)
                previous = await runner.run_step(driver, step, previous, result.failures)
                result.funnel.append(step)
                if step.record is not None:
                    result.records.append(step.record)

        return True

    async def _run_reject_context(
        self,
        context_factory: ContextFactory,
        recorder: PhaseRecorder,
        result: AuditResult
    ) -> None:
        url = recorder.site_origin
        timing = self.settings.timing

        async with context_factory(url) as driver:
            baseline_sink = RequestSink("reject_baseline")
            driver.attach_sink(baseline_sink)
            try:
                await driver.navigate(url, timing.navigation_timeout_ms)
            except NavigationTimeout as e:
                self._fail(result, AuditPhase.POST_REJECT, "Reject navigation", str(e))
                return
            await driver.wait(timing.settle_ms)
            baseline = await self.collector.capture(driver)
            discarded = baseline_sink.close()
            logger.debug(f"Discarded {len(discarded)} reject-baseline requests")

            await self._consent_phase(
                driver, recorder, self._resolution, ConsentAction.REJECT, baseline, result
            )

    async def _consent_phase(
        self,
        driver: PageDriver,
        recorder: PhaseRecorder,
        resolution: CMPResolution,
        action: ConsentAction,
        baseline: PhaseSnapshot,
        result: AuditResult
    ) -> Optional[PhaseCapture]:
        phase = AuditPhase.POST_ACCEPT if action == ConsentAction.ACCEPT else AuditPhase.POST_REJECT
        name = "Post-accept" if action == ConsentAction.ACCEPT else "Post-reject"

        sink = RequestSink(phase.value)
        driver.attach_sink(sink)
        try:
            interaction = await self._interact(driver, resolution, action)
        except PhaseFailed as e:
            sink.close()
            driver.attach_sink(None)
            self._fail(result, phase, name, str(e), fatal=True)
            return None

        capture = await recorder.capture(
            driver, sink, name, phase, baseline=baseline, interaction=interaction.to_dict()
        )
        result.records.append(capture.record)
        return capture

    async def _interact(
        self,
        driver: PageDriver,
        resolution: CMPResolution,
        action: ConsentAction
    ) -> ConsentInteractionResult:
        """Perform the consent click, degrading to manual capture once per run.

        Raises:
            PhaseFailed: If both automatic and manual paths failed
        """
        if resolution.is_manual:
            manual = await self.clicker.manual(self.surface, action)
            if not manual.success:
                raise PhaseFailed(action.value, "; ".join(manual.errors))
            self._manual_selectors[action] = manual.element_selector
            return manual

        descriptor = resolution.descriptor
        if action == ConsentAction.ACCEPT:
            automatic = await self.clicker.accept(driver, descriptor)
        else:
            automatic = await self.clicker.reject(driver, descriptor)
        if automatic.success:
            return automatic

        if not (self._manual_fallback_available and self.surface.attended):
            raise PhaseFailed(action.value, "; ".join(automatic.errors) or "click failed")

        self._manual_fallback_available = False
        logger.warning(f"Automatic {action.value} failed for {descriptor.key}, asking operator")
        manual = await self.clicker.manual(self.surface, action)
        if not manual.success:
            raise PhaseFailed(action.value, "; ".join(automatic.errors + manual.errors))
        manual.descriptor_key = descriptor.key
        return manual

    async def _check_service_workers(self, driver: PageDriver, result: AuditResult) -> None:
        result.service_workers = await driver.service_workers()
        if not result.service_workers:
            return
        logger.info(f"Service workers registered: {', '.join(result.service_workers)}")
        if self.settings.disable_service_workers:
            removed = await driver.unregister_service_workers()
            result.service_workers_disabled = True
            logger.info(f"Unregistered {removed} service workers")

    async def _learn_descriptor(self, resolution: CMPResolution, result: AuditResult) -> None:
        """Write back a descriptor captured from the operator's clicks."""
        if not (resolution.is_manual and self.settings.learn_manual_cmp and self.surface.attended):
            return
        accept = self._manual_selectors.get(ConsentAction.ACCEPT)
        reject = self._manual_selectors.get(ConsentAction.REJECT)
        if not accept or not reject:
            return

        name = (await self.surface.prompt_text_input("Name of this CMP")).strip()
        if not name:
            logger.info("No CMP name given, learned selectors not saved")
            return
        descriptor = learned_descriptor(name, accept, reject)
        try:
            self.cmp_store.save(descriptor)
        except LibraryError as e:
            logger.warning(f"Could not save learned CMP '{descriptor.key}': {e}")
            if result.cmp is not None:
                result.cmp.warnings.append(f"Learned CMP not saved: {e}")

    def _abort(self, result: AuditResult, phase: AuditPhase, error: Exception) -> None:
        """Record an unexpected error that ended a browsing context."""
        logger.error(f"Audit aborted during {phase.value}: {error}")
        result.failures.append(PhaseFailure(
            phase=phase, name=f"{phase.value} aborted", error=f"{type(error).__name__}: {error}", fatal=True
        ))

    def _fail(self, result: AuditResult, phase: AuditPhase, name: str, error: str, fatal: bool = True) -> None:
        log = logger.error if fatal else logger.warning
        log(f"{name} failed: {error}")
        result.failures.append(PhaseFailure(phase=phase, name=name, error=error, fatal=fatal))

    def _finish(self, result: AuditResult) -> None:
        pre = result.record_for(AuditPhase.PRE_CONSENT)
        if pre is not None:
            result.consent_mode_type = consent_mode_type(pre.consent_mode)

        transports = []
        for record in result.records:
            transports.extend(record.transport_findings)
        result.transport_findings = dedupe_findings(transports)

        if result.funnel:
            result.consistency = self.funnel_analyzer.analyze(result.funnel)

        result.findings = build_findings(result)
        result.mark_complete()
