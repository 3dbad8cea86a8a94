"""Data models for the consent audit."""

from .audit import (
    UNKNOWN_VENDOR,
    AuditFinding,
    AuditPhase,
    AuditResult,
    AuditStatus,
    BodyFingerprint,
    ClassifiedRequest,
    CMPSummary,
    ConsentModeDiff,
    ConsentModeSignal,
    Direction,
    FindingSeverity,
    FunnelStage,
    FunnelStep,
    PhaseFailure,
    PhaseRecord,
    PhaseSnapshot,
    SSTCollectEndpoint,
    SSTLoader,
    SSTReport,
    StepType,
    TrackerGroup,
    TransportFinding,
)
from .capture import CapturedRequest, CookieRecord, RequestStatus
from .cmp import CMPDescriptor, normalize_cmp_key
from .funnel import (
    ConsistencyReport,
    DiscoveredProducts,
    InconsistentProperty,
    MissingEvents,
    ObservedProduct,
    ProductFormat,
    ProductRecord,
    StepProduct,
    StepProducts,
    StepValue,
)
from .vendor import (
    EndpointClassifier,
    EndpointPattern,
    IdentifyConstraint,
    ScriptPattern,
    VendorSignature,
)

__all__ = [
    "UNKNOWN_VENDOR",
    "AuditFinding",
    "AuditPhase",
    "AuditResult",
    "AuditStatus",
    "BodyFingerprint",
    "CapturedRequest",
    "ClassifiedRequest",
    "CMPDescriptor",
    "CMPSummary",
    "ConsentModeDiff",
    "ConsentModeSignal",
    "ConsistencyReport",
    "CookieRecord",
    "Direction",
    "DiscoveredProducts",
    "EndpointClassifier",
    "EndpointPattern",
    "FindingSeverity",
    "FunnelStage",
    "FunnelStep",
    "IdentifyConstraint",
    "InconsistentProperty",
    "MissingEvents",
    "ObservedProduct",
    "PhaseFailure",
    "PhaseRecord",
    "PhaseSnapshot",
    "ProductFormat",
    "ProductRecord",
    "RequestStatus",
    "ScriptPattern",
    "SSTCollectEndpoint",
    "SSTLoader",
    "SSTReport",
    "StepProduct",
    "StepProducts",
    "StepType",
    "StepValue",
    "TrackerGroup",
    "TransportFinding",
    "VendorSignature",
    "normalize_cmp_key",
]
