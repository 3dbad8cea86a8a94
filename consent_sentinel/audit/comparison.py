"""Side-by-side comparison of two audited setups.

Typical use is comparing a site before and after a tagging migration (for
example client-side vs. server-side tagging): which trackers appear on only
one side, whether shared trackers talk to the same hosts and send the same
event types, and whether SST IDs and consent-mode behaviour agree.
"""

import logging
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .models.audit import AuditPhase, AuditResult, ConsentModeSignal, TrackerGroup
from .vendors.grouping import group_requests

logger = logging.getLogger(__name__)


class SharedTracker(BaseModel):
    """Tracker present in both setups."""

    key: str
    vendor: str
    product: Optional[str] = None
    hostnames_a: List[str] = Field(default_factory=list)
    hostnames_b: List[str] = Field(default_factory=list)
    sub_types_a: List[str] = Field(default_factory=list)
    sub_types_b: List[str] = Field(default_factory=list)

    @property
    def hosts_identical(self) -> bool:
        return self.hostnames_a == self.hostnames_b

    @property
    def sub_types_identical(self) -> bool:
        return self.sub_types_a == self.sub_types_b


class ConsentModeComparison(BaseModel):
    type_a: Optional[str] = None
    type_b: Optional[str] = None
    pre_a: str = "-|-"
    pre_b: str = "-|-"
    post_a: str = "-|-"
    post_b: str = "-|-"

    @property
    def types_match(self) -> bool:
        return self.type_a == self.type_b

    @property
    def pre_match(self) -> bool:
        return self.pre_a == self.pre_b

    @property
    def post_match(self) -> bool:
        return self.post_a == self.post_b


class SetupComparison(BaseModel):
    """Differences between setup A and setup B."""

    url_a: str
    url_b: str
    only_a: List[TrackerGroup] = Field(default_factory=list)
    only_b: List[TrackerGroup] = Field(default_factory=list)
    shared: List[SharedTracker] = Field(default_factory=list)
    containers_match: bool = True
    measurement_ids_match: bool = True
    consent_mode: ConsentModeComparison = Field(default_factory=ConsentModeComparison)

    @property
    def identical(self) -> bool:
        return (
            not self.only_a
            and not self.only_b
            and all(t.hosts_identical and t.sub_types_identical for t in self.shared)
            and self.containers_match
            and self.measurement_ids_match
            and self.consent_mode.types_match
        )


class SetupComparator:
    """Compares the tracker footprint of two audit results."""

    def compare(self, result_a: AuditResult, result_b: AuditResult) -> SetupComparison:
        """Compare two audit results.

        Args:
            result_a: Audit of setup A
            result_b: Audit of setup B

        Returns:
            SetupComparison
        """
        trackers_a = self._all_trackers(result_a)
        trackers_b = self._all_trackers(result_b)

        comparison = SetupComparison(url_a=result_a.url, url_b=result_b.url)
        comparison.only_a = [group for key, group in trackers_a.items() if key not in trackers_b]
        comparison.only_b = [group for key, group in trackers_b.items() if key not in trackers_a]

        for key, group_a in trackers_a.items():
            group_b = trackers_b.get(key)
            if group_b is None:
                continue
            comparison.shared.append(SharedTracker(
                key=key,
                vendor=group_a.vendor,
                product=group_a.product,
                hostnames_a=group_a.hostnames,
                hostnames_b=group_b.hostnames,
                sub_types_a=group_a.sub_types,
                sub_types_b=group_b.sub_types,
            ))

        comparison.containers_match = sorted(result_a.sst.containers) == sorted(result_b.sst.containers)
        comparison.measurement_ids_match = (
            sorted(result_a.sst.measurement_ids) == sorted(result_b.sst.measurement_ids)
        )
        comparison.consent_mode = ConsentModeComparison(
            type_a=result_a.consent_mode_type,
            type_b=result_b.consent_mode_type,
            pre_a=self._first_state(result_a, AuditPhase.PRE_CONSENT),
            pre_b=self._first_state(result_b, AuditPhase.PRE_CONSENT),
            post_a=self._first_state(result_a, AuditPhase.POST_ACCEPT),
            post_b=self._first_state(result_b, AuditPhase.POST_ACCEPT),
        )

        logger.info(
            f"Compared setups: {len(comparison.only_a)} only in A, "
            f"{len(comparison.only_b)} only in B, {len(comparison.shared)} shared"
        )
        return comparison

    def _all_trackers(self, result: AuditResult) -> Dict[str, TrackerGroup]:
        merged = group_requests([], existing=[group for record in result.records for group in record.trackers])
        return {group.key: group for group in merged}

    def _first_state(self, result: AuditResult, phase: AuditPhase) -> str:
        record = result.record_for(phase)
        signals: List[ConsentModeSignal] = record.consent_mode if record is not None else []
        return signals[0].state if signals else "-|-"
