"""Audit settings models.

All timings are milliseconds. Defaults reproduce the behaviour the audit
was tuned for: a 3 s settle interval after each transition, 3 s visibility
waits per CMP candidate, and a single 400 px scroll retry.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


DEFAULT_EXPECTED_EVENTS: Dict[str, List[str]] = {
    "category": ["view_item_list", "view_product_list", "productList", "impressions"],
    "product": ["view_item", "view_product", "detail", "productDetail"],
    "add_to_cart": ["add_to_cart", "addToCart", "added_to_cart", "add"],
    "cart": ["view_cart", "cart", "basket"],
    "checkout": ["begin_checkout", "checkout", "checkoutStep"],
}


class TimingConfig(BaseModel):
    """Waits and timeouts used while driving the page."""

    settle_ms: int = Field(default=3000, ge=0, description="Grace interval after every transition")
    probe_timeout_ms: int = Field(default=3000, ge=0, description="Slow-pass visibility wait per CMP candidate")
    scroll_offset_px: int = Field(default=400, description="Viewport scroll for the single retry")
    scroll_wait_ms: int = Field(default=2000, ge=0, description="Wait after the retry scroll")
    click_timeout_ms: int = Field(default=10000, ge=0, description="Accept and funnel click timeout")
    reject_click_timeout_ms: int = Field(default=5000, ge=0, description="Reject click timeout per attempt")
    two_step_wait_ms: int = Field(default=2000, ge=0, description="Wait between two-step reject clicks")
    navigation_timeout_ms: int = Field(default=30000, ge=0, description="Page navigation timeout")
    wait_until: str = Field(default="networkidle", description="Playwright load state for navigation")

    @field_validator('wait_until')
    @classmethod
    def validate_wait_until(cls, v):
        allowed = {"load", "domcontentloaded", "networkidle", "commit"}
        if v not in allowed:
            raise ValueError(f"wait_until must be one of {sorted(allowed)}")
        return v


class TransportConfig(BaseModel):
    """Opaque first-party transport decoding."""

    min_param_length: int = Field(default=10, ge=1)
    allowed_prefixes: List[str] = Field(
        default_factory=lambda: ["/gtag/js", "/g/collect", "/collect", "/gtm.js"],
        description="Decoded values must start with one of these paths"
    )


class ConsentModeConfig(BaseModel):
    """Consent-mode parameter extraction."""

    params: List[str] = Field(default_factory=lambda: ["gcs", "gcd"])
    vendors: List[str] = Field(default_factory=lambda: ["Google"], description="Vendors whose requests carry consent mode")


class FunnelConfig(BaseModel):
    """Funnel analysis settings."""

    expected_events: Dict[str, List[str]] = Field(default_factory=lambda: dict(DEFAULT_EXPECTED_EVENTS))
    single_product_events: List[str] = Field(
        default_factory=lambda: ["view_product", "view_item", "detail", "productDetail"]
    )
    search_depth: int = Field(default=4, ge=1, description="Recursion limit for freeform product search")


class BrowserSettings(BaseModel):
    """Browser launch and context options."""

    engine: str = Field(default="chromium")
    headless: bool = Field(default=False, description="Operator fallbacks need a visible window")
    viewport: Dict[str, int] = Field(default_factory=lambda: {"width": 1920, "height": 1080})
    user_agent: Optional[str] = None
    locale: Optional[str] = None
    ignore_https_errors: bool = True

    @field_validator('engine')
    @classmethod
    def validate_engine(cls, v):
        if v not in ("chromium", "firefox", "webkit"):
            raise ValueError(f"Unsupported browser engine: {v}")
        return v


class AuditSettings(BaseModel):
    """Top-level audit configuration."""

    timing: TimingConfig = Field(default_factory=TimingConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)
    consent_mode: ConsentModeConfig = Field(default_factory=ConsentModeConfig)
    funnel: FunnelConfig = Field(default_factory=FunnelConfig)
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    disable_service_workers: bool = Field(default=False, description="Unregister service workers after pre-consent")
    learn_manual_cmp: bool = Field(default=True, description="Write back descriptors captured interactively")
