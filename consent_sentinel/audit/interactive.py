"""Operator interaction surface.

The audit only blocks on an operator during fallback paths: manual CMP
capture, the add-to-cart ready/click protocol, naming a learned CMP and
overriding CMP resolution. How prompts are rendered (in-page overlay,
terminal, test double) is up to the implementation.
"""

import logging
from enum import Enum
from typing import List, Optional, Protocol, Sequence, runtime_checkable

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ElementDescriptor(BaseModel):
    """Element the operator clicked."""

    selector: str = Field(description="CSS selector that re-locates the element")
    tag: Optional[str] = None
    text: Optional[str] = None
    id: Optional[str] = None
    classes: List[str] = Field(default_factory=list)


class SelectionKind(str, Enum):
    SELECT = "select"
    MANUAL = "manual"
    SKIP = "skip"


class Selection(BaseModel):
    """Operator answer to a CMP choice prompt."""

    kind: SelectionKind
    key: Optional[str] = Field(default=None, description="Chosen descriptor key for SELECT")

    @classmethod
    def select(cls, key: str) -> "Selection":
        return cls(kind=SelectionKind.SELECT, key=key)

    @classmethod
    def manual(cls) -> "Selection":
        return cls(kind=SelectionKind.MANUAL)

    @classmethod
    def skip(cls) -> "Selection":
        return cls(kind=SelectionKind.SKIP)


@runtime_checkable
class InteractiveSurface(Protocol):
    """Prompts the audit may block on."""

    @property
    def attended(self) -> bool:
        """True when an operator can answer prompts."""
        ...

    async def prompt_click(self, label: str) -> Optional[ElementDescriptor]: ...

    async def prompt_text_input(self, label: str) -> str: ...

    async def prompt_confirm(self, message: str) -> bool: ...

    async def prompt_select(self, options: Sequence[str]) -> Selection: ...

    async def teardown(self) -> None:
        """Remove any standing hooks (overlays, listeners) from the page."""
        ...


class HeadlessSurface:
    """Surface for unattended runs: every prompt gets the negative answer."""

    @property
    def attended(self) -> bool:
        return False

    async def prompt_click(self, label: str) -> Optional[ElementDescriptor]:
        logger.debug(f"Unattended run, no click for '{label}'")
        return None

    async def prompt_text_input(self, label: str) -> str:
        return ""

    async def prompt_confirm(self, message: str) -> bool:
        return False

    async def prompt_select(self, options: Sequence[str]) -> Selection:
        return Selection.skip()

    async def teardown(self) -> None:
        return None
