"""Consent audit engine.

Drives a browser through the consent states of a site (no decision,
accept, reject) and an optional e-commerce funnel, classifies the captured
traffic against known tracking vendors and reports discrepancies.
"""

from .cmp import CMPResolution, InMemoryCMPLibrary, SelectorResolver
from .comparison import SetupComparator, SetupComparison
from .config import AuditSettings, get_audit_settings, load_audit_settings
from .errors import (
    AuditError,
    ClickTimeout,
    ConfigLoadError,
    DecodeFailure,
    LibraryError,
    NavigationTimeout,
    PageUnavailable,
    PhaseFailed,
    ResolutionCancelled,
    SelectorNotFound,
)
from .findings import build_findings
from .funnel import FunnelConsistencyAnalyzer
from .interactive import ElementDescriptor, HeadlessSurface, InteractiveSurface, Selection
from .models import (
    AuditPhase,
    AuditResult,
    CMPDescriptor,
    FunnelStage,
    FunnelStep,
    PhaseRecord,
    StepType,
    VendorSignature,
)
from .orchestration import ConsentAudit
from .vendors import SignatureLibrary, TrafficAnalyzer, TransportDecoder, VendorClassifier, default_library

__all__ = [
    # Main audit
    'ConsentAudit',
    'AuditResult',
    'AuditPhase',
    'PhaseRecord',
    'FunnelStep',
    'FunnelStage',
    'StepType',
    'build_findings',
    'SetupComparator',
    'SetupComparison',

    # CMP
    'CMPDescriptor',
    'CMPResolution',
    'InMemoryCMPLibrary',
    'SelectorResolver',

    # Vendors
    'VendorSignature',
    'SignatureLibrary',
    'VendorClassifier',
    'TransportDecoder',
    'TrafficAnalyzer',
    'default_library',

    # Funnel
    'FunnelConsistencyAnalyzer',

    # Operator surface
    'InteractiveSurface',
    'HeadlessSurface',
    'ElementDescriptor',
    'Selection',

    # Configuration
    'AuditSettings',
    'get_audit_settings',
    'load_audit_settings',

    # Errors
    'AuditError',
    'SelectorNotFound',
    'NavigationTimeout',
    'PageUnavailable',
    'ClickTimeout',
    'DecodeFailure',
    'ResolutionCancelled',
    'PhaseFailed',
    'ConfigLoadError',
    'LibraryError',
]
