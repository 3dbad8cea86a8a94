"""Configuration management for the consent audit."""

from .loader import get_audit_settings, load_audit_settings
from .settings import (
    DEFAULT_EXPECTED_EVENTS,
    AuditSettings,
    BrowserSettings,
    ConsentModeConfig,
    FunnelConfig,
    TimingConfig,
    TransportConfig,
)

__all__ = [
    "DEFAULT_EXPECTED_EVENTS",
    "AuditSettings",
    "BrowserSettings",
    "ConsentModeConfig",
    "FunnelConfig",
    "TimingConfig",
    "TransportConfig",
    "get_audit_settings",
    "load_audit_settings",
]
