"""Turns one phase's page state and traffic into a PhaseRecord."""

import logging
from typing import Any, Dict, List, Optional

from ..capture.driver import PageDriver
from ..capture.request_sink import RequestSink
from ..config.settings import AuditSettings
from ..models.audit import AuditPhase, PhaseRecord, PhaseSnapshot, SSTReport
from ..snapshots.collector import SnapshotCollector
from ..snapshots.differ import diff_cookies, diff_data_layer, diff_local_storage
from ..vendors.analysis import TrafficAnalysis, TrafficAnalyzer
from ..vendors.consent_mode import diff_consent_mode

logger = logging.getLogger(__name__)


class PhaseCapture:
    """Record, boundary snapshot and traffic analysis of one phase."""

    def __init__(self, record: PhaseRecord, snapshot: PhaseSnapshot, analysis: TrafficAnalysis):
        self.record = record
        self.snapshot = snapshot
        self.analysis = analysis


class PhaseRecorder:
    """Settles the page, snapshots it and diffs against the phase baseline."""

    def __init__(
        self,
        settings: AuditSettings,
        collector: SnapshotCollector,
        analyzer: TrafficAnalyzer,
        site_origin: str
    ):
        self.settings = settings
        self.collector = collector
        self.analyzer = analyzer
        self.site_origin = site_origin
        self.sst_reports: List[SSTReport] = []

    async def capture(
        self,
        driver: PageDriver,
        sink: RequestSink,
        name: str,
        phase: AuditPhase,
        baseline: PhaseSnapshot,
        data_layer_baseline: Optional[List[Any]] = None,
        interaction: Optional[Dict[str, Any]] = None,
        settle: bool = True
    ) -> PhaseCapture:
        """Produce the record for a phase whose target state was reached.

        Args:
            driver: Page in the phase's context lineage
            sink: Sink that collected the phase's requests; closed here
            name: Record name
            phase: Audit phase
            baseline: Prior snapshot in the same context lineage
            data_layer_baseline: dataLayer to diff against instead of the
                baseline's (empty after a full navigation)
            interaction: Serialized interaction result to attach
            settle: Wait the grace interval before snapshotting

        Returns:
            PhaseCapture with the immutable record
        """
        if settle:
            await driver.wait(self.settings.timing.settle_ms)

        snapshot = await self.collector.capture(driver)
        requests = sink.close()
        analysis = self.analyzer.analyze(requests, self.site_origin)
        snapshot.consent_mode = list(analysis.consent_mode)
        self.sst_reports.append(analysis.sst)

        before_data_layer = baseline.data_layer if data_layer_baseline is None else data_layer_baseline
        record = PhaseRecord(
            name=name,
            phase=phase,
            data_layer_diff=diff_data_layer(before_data_layer, snapshot.data_layer),
            trackers=analysis.trackers,
            consent_mode=analysis.consent_mode,
            consent_mode_diff=diff_consent_mode(baseline.consent_mode, analysis.consent_mode),
            cookies_diff=diff_cookies(baseline.cookies, snapshot.cookies),
            local_storage_diff=diff_local_storage(baseline.local_storage, snapshot.local_storage),
            transport_findings=analysis.transport_findings,
            request_count=analysis.request_count,
            third_party_count=analysis.third_party_count,
            interaction=interaction,
        )

        logger.info(
            f"{name}: {analysis.request_count} requests ({analysis.third_party_count} third-party), "
            f"{len(record.known_trackers)} known trackers, +{len(record.cookies_diff)} cookies, "
            f"+{len(record.data_layer_diff)} dataLayer entries"
        )
        return PhaseCapture(record, snapshot, analysis)
