"""Consent banner interaction.

Clicks accept or reject for a resolved CMP descriptor, or hands the click
over to the operator when no descriptor is available.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from ..capture.driver import PageDriver
from ..config.settings import TimingConfig
from ..errors import ClickTimeout, SelectorNotFound
from ..interactive import InteractiveSurface
from ..models.cmp import CMPDescriptor

logger = logging.getLogger(__name__)


class ConsentAction(str, Enum):
    """Consent decision to perform."""
    ACCEPT = "accept"
    REJECT = "reject"


class ConsentInteractionResult:
    """Result of one consent click attempt."""

    def __init__(self, action: ConsentAction):
        self.success = False
        self.action = action
        self.descriptor_key: Optional[str] = None
        self.steps = []
        self.errors = []
        self.manual = False
        self.scrolled = False
        self.element_selector: Optional[str] = None
        self.interaction_time = datetime.utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary."""
        return {
            'success': self.success,
            'action': self.action.value,
            'descriptor_key': self.descriptor_key,
            'steps': self.steps,
            'errors': self.errors,
            'manual': self.manual,
            'scrolled': self.scrolled,
            'element_selector': self.element_selector,
            'interaction_time': self.interaction_time.isoformat()
        }

    def __repr__(self) -> str:
        return f"ConsentInteractionResult({self.action.value}, success={self.success}, manual={self.manual})"


class ConsentClicker:
    """Performs accept/reject clicks on a consent banner."""

    def __init__(self, timing: Optional[TimingConfig] = None):
        """Initialize consent clicker.

        Args:
            timing: Waits and timeouts for banner interaction
        """
        self.timing = timing or TimingConfig()

    async def accept(self, driver: PageDriver, descriptor: CMPDescriptor) -> ConsentInteractionResult:
        """Click the accept control of a known banner.

        Args:
            driver: Page showing the banner
            descriptor: Resolved CMP descriptor

        Returns:
            Result; ``success`` is False when the control could not be clicked
        """
        result = ConsentInteractionResult(ConsentAction.ACCEPT)
        result.descriptor_key = descriptor.key

        await self._ensure_visible(driver, descriptor.accept_selector, result)

        try:
            await driver.click(descriptor.accept_selector, self.timing.click_timeout_ms)
        except (ClickTimeout, SelectorNotFound) as e:
            logger.warning(f"Accept control not clickable: {e}")
            result.errors.append(str(e))
            return result

        result.success = True
        result.element_selector = descriptor.accept_selector
        result.steps.append(f"Clicked accept: {descriptor.accept_selector}")
        logger.info(f"Clicked accept for {descriptor.key}")
        return result

    async def reject(self, driver: PageDriver, descriptor: CMPDescriptor) -> ConsentInteractionResult:
        """Click the reject control, falling back to the two-step path.

        The direct reject control is tried first. When that fails and the
        descriptor declares ``reject_steps``, the settings opener is clicked,
        then after a short wait the reject control inside the dialog.

        Args:
            driver: Page showing the banner
            descriptor: Resolved CMP descriptor

        Returns:
            Result; ``success`` is False when no path worked
        """
        result = ConsentInteractionResult(ConsentAction.REJECT)
        result.descriptor_key = descriptor.key
        timeout = self.timing.reject_click_timeout_ms

        await self._ensure_visible(driver, descriptor.first_reject_selector, result)

        try:
            await driver.click(descriptor.reject_selector, timeout)
            result.success = True
            result.element_selector = descriptor.reject_selector
            result.steps.append(f"Clicked reject: {descriptor.reject_selector}")
            logger.info(f"Clicked reject for {descriptor.key}")
            return result
        except (ClickTimeout, SelectorNotFound) as e:
            result.errors.append(str(e))
            if not descriptor.reject_steps:
                logger.warning(f"Reject control not clickable: {e}")
                return result
            logger.info(f"Direct reject failed, trying two-step reject for {descriptor.key}")

        opener, control = descriptor.reject_steps
        try:
            await driver.click(opener, timeout)
            result.steps.append(f"Clicked reject step 1: {opener}")
            await driver.wait(self.timing.two_step_wait_ms)
            await driver.click(control, timeout)
        except (ClickTimeout, SelectorNotFound) as e:
            logger.warning(f"Two-step reject failed: {e}")
            result.errors.append(str(e))
            return result

        result.success = True
        result.element_selector = control
        result.steps.append(f"Clicked reject step 2: {control}")
        logger.info(f"Two-step reject done for {descriptor.key}")
        return result

    async def manual(self, surface: InteractiveSurface, action: ConsentAction) -> ConsentInteractionResult:
        """Let the operator click the control and capture what was clicked.

        Args:
            surface: Operator surface
            action: Decision the operator is asked to make

        Returns:
            Result; ``success`` is False when the operator gave no element
        """
        result = ConsentInteractionResult(action)
        result.manual = True

        if not surface.attended:
            result.errors.append("No operator available for manual consent")
            return result

        element = await surface.prompt_click(f"Click the {action.value.upper()} button of the consent banner")
        if element is None:
            result.errors.append(f"Operator did not capture a {action.value} element")
            return result

        result.success = True
        result.element_selector = element.selector
        result.steps.append(f"Operator clicked {action.value}: {element.selector}")
        logger.info(f"Manual {action.value} captured: {element.selector}")
        return result

    async def _ensure_visible(self, driver: PageDriver, selector: str, result: ConsentInteractionResult) -> None:
        if await driver.wait_for_visible(selector, self.timing.probe_timeout_ms):
            return
        logger.info("Consent banner not visible, retrying after scroll")
        await driver.scroll_by(self.timing.scroll_offset_px)
        await driver.wait(self.timing.scroll_wait_ms)
        result.scrolled = True
        result.steps.append("Scrolled to reveal banner")
