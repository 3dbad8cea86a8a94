"""Audit findings derived from a finished AuditResult."""

import logging
from typing import List

from .models.audit import AuditFinding, AuditPhase, AuditResult, FindingSeverity, PhaseRecord

logger = logging.getLogger(__name__)

TRACKERS_PRE_CONSENT = "trackers_pre_consent"
TRACKERS_AFTER_REJECT = "trackers_after_reject"
CONSENT_MODE_NOT_UPDATED = "consent_mode_not_updated"
INCONSISTENT_PRODUCT_DATA = "inconsistent_product_data"
MISSING_FUNNEL_EVENTS = "missing_funnel_events"


def _vendor_list(record: PhaseRecord) -> List[str]:
    return sorted({f"{group.vendor} / {group.product}" if group.product else group.vendor
                   for group in record.known_trackers})


def build_findings(result: AuditResult) -> List[AuditFinding]:
    """Collect discrepancies worth a reviewer's attention.

    Args:
        result: Audit result with records and consistency report filled in

    Returns:
        Findings in report order
    """
    findings: List[AuditFinding] = []

    pre = result.record_for(AuditPhase.PRE_CONSENT)
    accept = result.record_for(AuditPhase.POST_ACCEPT)
    reject = result.record_for(AuditPhase.POST_REJECT)

    if pre is not None and pre.known_trackers:
        vendors = _vendor_list(pre)
        findings.append(AuditFinding(
            code=TRACKERS_PRE_CONSENT,
            severity=FindingSeverity.WARNING,
            message=f"{len(vendors)} known trackers fire before any consent decision",
            phase=AuditPhase.PRE_CONSENT.value,
            details={"vendors": vendors, "consent_mode_type": result.consent_mode_type},
        ))

    if reject is not None and reject.known_trackers:
        vendors = _vendor_list(reject)
        findings.append(AuditFinding(
            code=TRACKERS_AFTER_REJECT,
            severity=FindingSeverity.ERROR,
            message=f"{len(vendors)} known trackers fire after consent was rejected",
            phase=AuditPhase.POST_REJECT.value,
            details={"vendors": vendors},
        ))

    if accept is not None:
        seen_signals = bool(accept.consent_mode) or bool(pre is not None and pre.consent_mode)
        if seen_signals and not accept.consent_mode_diff.updated:
            findings.append(AuditFinding(
                code=CONSENT_MODE_NOT_UPDATED,
                severity=FindingSeverity.WARNING,
                message="Consent mode state did not change after accepting",
                phase=AuditPhase.POST_ACCEPT.value,
                details={"states": accept.consent_mode_diff.current},
            ))

    consistency = result.consistency
    if consistency is not None:
        for prop in consistency.inconsistent_props:
            findings.append(AuditFinding(
                code=INCONSISTENT_PRODUCT_DATA,
                severity=FindingSeverity.WARNING,
                message=f"Focus product '{prop.prop}' differs across funnel steps",
                phase=AuditPhase.FUNNEL_STEP.value,
                details={
                    "product_id": consistency.focus_product.id if consistency.focus_product else None,
                    "values": [value.model_dump() for value in prop.values],
                },
            ))
        for missing in consistency.missing_events:
            findings.append(AuditFinding(
                code=MISSING_FUNNEL_EVENTS,
                severity=FindingSeverity.INFO,
                message=f"No expected e-commerce event in step '{missing.step}'",
                phase=AuditPhase.FUNNEL_STEP.value,
                details={"step": missing.step, "expected": missing.expected},
            ))

    logger.debug(f"Built {len(findings)} findings")
    return findings
