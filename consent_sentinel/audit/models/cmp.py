"""Consent banner descriptors.

A ``CMPDescriptor`` tells the audit how to operate one consent banner: which
element accepts, which rejects (directly or via a two-step settings
dialog), and which wrapper elements identify the banner when several
libraries' accept buttons look alike.
"""

import re
from datetime import datetime
from typing import List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class CMPDescriptor(BaseModel):
    """Known consent banner and the selectors that operate it."""

    model_config = ConfigDict(populate_by_name=True)

    key: str = Field(description="Library key, lowercase with dashes")
    name: str = Field(description="Human-readable CMP name")
    accept_selector: str = Field(
        validation_alias=AliasChoices("accept_selector", "accept"),
        description="Selector of the accept-all control"
    )
    reject_selector: str = Field(
        validation_alias=AliasChoices("reject_selector", "reject"),
        description="Selector of the reject-all control"
    )
    reject_steps: Optional[List[str]] = Field(
        default=None,
        validation_alias=AliasChoices("reject_steps", "rejectSteps"),
        description="Two-step reject: settings opener, then the reject control"
    )
    detect_selectors: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("detect_selectors", "detect"),
        description="Banner container selectors used for disambiguation"
    )
    shadow_dom: bool = Field(
        default=False,
        validation_alias=AliasChoices("shadow_dom", "shadowDom"),
        description="Banner renders inside an open shadow root"
    )
    priority: Optional[int] = Field(
        default=None,
        ge=0,
        description="Lower is tried first; unset sorts last"
    )
    learned_at: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("learned_at", "learnedAt"),
        description="When the descriptor was captured"
    )

    @field_validator('detect_selectors', mode='before')
    @classmethod
    def coerce_detect(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v

    @model_validator(mode='after')
    def validate_reject_steps(self) -> "CMPDescriptor":
        if self.reject_steps is not None:
            if len(self.reject_steps) != 2:
                raise ValueError("reject_steps must contain exactly 2 selectors")
            if self.reject_steps[1] != self.reject_selector:
                raise ValueError("reject_steps[1] must equal reject_selector")
        return self

    @property
    def sort_key(self) -> Tuple[bool, int]:
        """Ascending priority with unset last; ties keep library order."""
        return (self.priority is None, self.priority or 0)

    @property
    def first_reject_selector(self) -> str:
        """Selector that must be visible before rejecting."""
        if self.reject_steps:
            return self.reject_steps[0]
        return self.reject_selector

    def to_library_entry(self) -> dict:
        """Serialize for a library store, without the key."""
        return self.model_dump(mode="json", exclude={"key"}, exclude_none=True)


def normalize_cmp_key(name: str) -> str:
    """``"Usercentrics V2"`` -> ``"usercentrics-v2"``."""
    return re.sub(r'\s+', '-', name.strip().lower())
