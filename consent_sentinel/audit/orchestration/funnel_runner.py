"""Execution of e-commerce funnel steps."""

import logging
from typing import Any, Dict, List, Optional

from ..capture.driver import PageDriver
from ..capture.request_sink import RequestSink
from ..config.settings import AuditSettings
from ..errors import AuditError, ClickTimeout, NavigationTimeout, SelectorNotFound
from ..interactive import InteractiveSurface
from ..models.audit import AuditPhase, FunnelStep, PhaseFailure, PhaseSnapshot, StepType
from ..snapshots.collector import SnapshotCollector
from ..utils.url_normalizer import resolve_same_origin
from .recorder import PhaseRecorder

logger = logging.getLogger(__name__)


class StepSkipped(AuditError):
    """Funnel step could not be performed."""


class FunnelRunner:
    """Runs funnel steps in the accept-path context.

    Step failures never abort the funnel: the step is marked skipped, a
    non-fatal PhaseFailure is recorded and the baseline stays where it was.
    """

    def __init__(
        self,
        settings: AuditSettings,
        recorder: PhaseRecorder,
        collector: SnapshotCollector,
        surface: InteractiveSurface
    ):
        self.settings = settings
        self.recorder = recorder
        self.collector = collector
        self.surface = surface

    async def run_step(
        self,
        driver: PageDriver,
        step: FunnelStep,
        previous: PhaseSnapshot,
        failures: List[PhaseFailure]
    ) -> PhaseSnapshot:
        """Perform one step and attach its record to ``step``.

        Args:
            driver: Accept-path page
            step: Step to perform; ``record``/``skipped``/``error`` are set here
            previous: Snapshot of the previous step (or of post-accept)
            failures: Run failure list, appended to on skip

        Returns:
            Snapshot to use as the next step's baseline
        """
        logger.info(f"Funnel step '{step.name}' ({step.type.value})")
        sink = RequestSink(f"funnel:{step.name}")
        interaction: Optional[Dict[str, Any]] = None

        try:
            if step.type == StepType.NAVIGATE:
                data_layer_baseline = []
                await self._navigate(driver, step, sink)
            elif step.is_add_to_cart and self.surface.attended:
                data_layer_baseline = None
                previous, interaction = await self._operator_click(driver, step, sink, previous)
            else:
                data_layer_baseline = None
                driver.attach_sink(sink)
                await driver.click(step.target, self.settings.timing.click_timeout_ms)
        except (NavigationTimeout, ClickTimeout, SelectorNotFound, StepSkipped) as e:
            sink.close()
            driver.attach_sink(None)
            logger.warning(f"Skipping funnel step '{step.name}': {e}")
            step.skipped = True
            step.error = str(e)
            failures.append(PhaseFailure(phase=AuditPhase.FUNNEL_STEP, name=step.name, error=str(e)))
            return previous

        capture = await self.recorder.capture(
            driver,
            sink,
            step.name,
            AuditPhase.FUNNEL_STEP,
            baseline=previous,
            data_layer_baseline=data_layer_baseline,
            interaction=interaction,
        )
        step.record = capture.record
        return capture.snapshot

    async def _navigate(self, driver: PageDriver, step: FunnelStep, sink: RequestSink) -> None:
        target = resolve_same_origin(self.recorder.site_origin, step.target)
        if not target:
            raise StepSkipped(f"Could not resolve URL '{step.target}'")
        driver.attach_sink(sink)
        await driver.navigate(target, self.settings.timing.navigation_timeout_ms)

    async def _operator_click(
        self,
        driver: PageDriver,
        step: FunnelStep,
        sink: RequestSink,
        previous: PhaseSnapshot
    ):
        """Two-phase add-to-cart: operator readies the page, then clicks.

        The baseline is re-taken after the ready signal so that whatever the
        operator did to prepare (variant choice, quantity) is not attributed
        to the add-to-cart click.
        """
        ready = await self.surface.prompt_confirm(
            f"Prepare '{step.name}' (choose variant, size, ...) and confirm when ready"
        )
        if not ready:
            raise StepSkipped("Operator did not confirm readiness")

        baseline = await self.collector.capture(driver)
        baseline.consent_mode = list(previous.consent_mode)
        driver.attach_sink(sink)

        element = await self.surface.prompt_click(f"Click '{step.name}' on the page")
        if element is None:
            raise StepSkipped("No click captured")
        logger.info(f"Captured operator click for '{step.name}': {element.selector}")
        return baseline, {"manual": True, "element_selector": element.selector}
