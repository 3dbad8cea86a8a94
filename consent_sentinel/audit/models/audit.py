"""Pydantic models for phase records and the audit result.

The audit produces one ``PhaseRecord`` per consent state or funnel step and
hands the whole run over as an ``AuditResult``. Records are frozen once
produced; the result object is the only thing a report renderer consumes.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .capture import CookieRecord
from .funnel import ConsistencyReport


UNKNOWN_VENDOR = "Other third-party"


class AuditPhase(str, Enum):
    """States of the audit state machine."""
    INIT = "init"
    DETECT_CMP = "detect_cmp"
    PRE_CONSENT = "pre_consent"
    POST_ACCEPT = "post_accept"
    FUNNEL_STEP = "funnel_step"
    POST_REJECT = "post_reject"
    DONE = "done"


class Direction(str, Enum):
    """Classification tier family a request matched."""
    SCRIPT = "script"
    REQUEST = "request"
    DOMAIN = "domain"
    UNKNOWN = "unknown"


class ClassifiedRequest(BaseModel):
    """Third-party request mapped to a vendor (or to the unknown bucket)."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(description="Signature key, or hostname for unknown third parties")
    vendor: str
    product: Optional[str] = None
    category: Optional[str] = None
    direction: Direction
    sub_type: Optional[str] = None
    hostname: str
    url: Optional[str] = Field(default=None, exclude=True)

    @property
    def is_known(self) -> bool:
        return self.direction != Direction.UNKNOWN


class TrackerGroup(BaseModel):
    """Deduplicated view of all requests that hit one signature or host."""

    model_config = ConfigDict(frozen=True)

    key: str
    vendor: str
    product: Optional[str] = None
    category: Optional[str] = None
    hostnames: List[str] = Field(default_factory=list)
    directions: List[Direction] = Field(default_factory=list)
    sub_types: List[str] = Field(default_factory=list)

    @property
    def is_known(self) -> bool:
        return Direction.UNKNOWN not in self.directions


class ConsentModeSignal(BaseModel):
    """Consent-mode parameters carried by one vendor request."""

    model_config = ConfigDict(frozen=True)

    url: str
    gcs: str = "-"
    gcd: str = "-"

    @property
    def state(self) -> str:
        return f"{self.gcs}|{self.gcd}"


class ConsentModeDiff(BaseModel):
    """How the consent-mode state moved between two snapshots."""

    model_config = ConfigDict(frozen=True)

    previous: List[str] = Field(default_factory=list, description="gcs|gcd states before")
    current: List[str] = Field(default_factory=list, description="gcs|gcd states in this phase")
    new_states: List[str] = Field(default_factory=list)
    updated: bool = False


class TransportFinding(BaseModel):
    """First-party request that decodes to a vendor path."""

    model_config = ConfigDict(frozen=True)

    host: str
    param_name: str
    decoded_path: str
    original_url: str = Field(exclude=True)

    @property
    def virtual_url(self) -> str:
        return f"https://{self.host}{self.decoded_path}"


class PhaseSnapshot(BaseModel):
    """Point-in-time capture of page state at a phase boundary."""

    data_layer: List[Any] = Field(default_factory=list)
    cookies: List[CookieRecord] = Field(default_factory=list)
    local_storage: Dict[str, str] = Field(default_factory=dict)
    consent_mode: List[ConsentModeSignal] = Field(default_factory=list)
    captured_at: datetime = Field(default_factory=datetime.utcnow)


class PhaseRecord(BaseModel):
    """Everything one phase changed, immutable once produced."""

    model_config = ConfigDict(frozen=True)

    name: str
    phase: AuditPhase
    data_layer_diff: List[Any] = Field(default_factory=list)
    trackers: List[TrackerGroup] = Field(default_factory=list)
    consent_mode: List[ConsentModeSignal] = Field(default_factory=list)
    consent_mode_diff: ConsentModeDiff = Field(default_factory=ConsentModeDiff)
    cookies_diff: List[CookieRecord] = Field(default_factory=list)
    local_storage_diff: Dict[str, str] = Field(default_factory=dict)
    transport_findings: List[TransportFinding] = Field(default_factory=list)
    request_count: int = 0
    third_party_count: int = 0
    interaction: Optional[Dict[str, Any]] = None
    captured_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def known_trackers(self) -> List[TrackerGroup]:
        return [group for group in self.trackers if group.is_known]

    @property
    def unknown_trackers(self) -> List[TrackerGroup]:
        return [group for group in self.trackers if not group.is_known]


class StepType(str, Enum):
    NAVIGATE = "navigate"
    CLICK = "click"


class FunnelStage(str, Enum):
    """Standard e-commerce funnel stages."""
    CATEGORY = "category"
    PRODUCT = "product"
    ADD_TO_CART = "add_to_cart"
    CART = "cart"
    CHECKOUT = "checkout"


class FunnelStep(BaseModel):
    """One step of the simulated e-commerce journey."""

    name: str
    type: StepType
    target: str = Field(description="URL (navigate) or selector (click)")
    stage: Optional[FunnelStage] = None
    record: Optional[PhaseRecord] = None
    skipped: bool = False
    error: Optional[str] = None

    @property
    def is_add_to_cart(self) -> bool:
        return self.stage == FunnelStage.ADD_TO_CART


class PhaseFailure(BaseModel):
    """Phase or step that produced no record."""

    phase: AuditPhase
    name: str
    error: str
    fatal: bool = Field(default=False, description="True when automatic and manual paths were exhausted")
    occurred_at: datetime = Field(default_factory=datetime.utcnow)


class CMPSummary(BaseModel):
    key: Optional[str] = None
    name: Optional[str] = None
    source: str
    ambiguous: bool = False
    manual: bool = False
    warnings: List[str] = Field(default_factory=list)


class SSTLoader(BaseModel):
    type: str = Field(description="GTM or gtag")
    host: str
    path: str
    id: str
    is_standard: bool
    is_first_party: bool


class SSTCollectEndpoint(BaseModel):
    host: str
    path: str
    tid: str


class BodyFingerprint(BaseModel):
    url: str
    type: str
    ids: List[str]


class SSTReport(BaseModel):
    """Server-side tagging indicators merged across phases."""

    containers: List[str] = Field(default_factory=list)
    measurement_ids: List[str] = Field(default_factory=list)
    loaders: List[SSTLoader] = Field(default_factory=list)
    collect_endpoints: List[SSTCollectEndpoint] = Field(default_factory=list)
    body_fingerprints: List[BodyFingerprint] = Field(default_factory=list)

    @property
    def detected(self) -> bool:
        return (
            any(not loader.is_standard for loader in self.loaders)
            or bool(self.collect_endpoints)
            or bool(self.body_fingerprints)
        )


class FindingSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditFinding(BaseModel):
    """Discrepancy worth a reviewer's attention."""

    code: str
    severity: FindingSeverity
    message: str
    phase: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class AuditStatus(str, Enum):
    RUNNING = "running"
    COMPLETE = "complete"
    PARTIAL = "partial"


class AuditResult(BaseModel):
    """Complete (or partial) outcome of one audit run."""

    url: str
    site_domain: Optional[str] = None
    status: AuditStatus = AuditStatus.RUNNING
    cmp: Optional[CMPSummary] = None
    records: List[PhaseRecord] = Field(default_factory=list)
    funnel: List[FunnelStep] = Field(default_factory=list)
    failures: List[PhaseFailure] = Field(default_factory=list)
    transport_findings: List[TransportFinding] = Field(default_factory=list)
    sst: SSTReport = Field(default_factory=SSTReport)
    consent_mode_type: Optional[str] = None
    service_workers: List[str] = Field(default_factory=list)
    service_workers_disabled: bool = False
    consistency: Optional[ConsistencyReport] = None
    findings: List[AuditFinding] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None
    duration_ms: float = 0

    def record_for(self, phase: AuditPhase) -> Optional[PhaseRecord]:
        """First record produced for a phase, if any."""
        for record in self.records:
            if record.phase == phase:
                return record
        return None

    @property
    def reject_clean(self) -> bool:
        """True when the reject phase ran and fired no known trackers."""
        record = self.record_for(AuditPhase.POST_REJECT)
        return record is not None and not record.known_trackers

    def mark_complete(self) -> None:
        """Close the run; any recorded failure makes it partial."""
        self.finished_at = datetime.utcnow()
        self.duration_ms = (self.finished_at - self.started_at).total_seconds() * 1000
        self.status = AuditStatus.PARTIAL if self.failures else AuditStatus.COMPLETE

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serialisable representation for report renderers."""
        data = self.model_dump(mode="json")
        data["reject_clean"] = self.reject_clean
        return data
