"""Per-phase traffic analysis.

Runs one phase's captured requests through classification, transport
decoding, consent-mode extraction and SST detection, and returns everything
a PhaseRecord needs about the network.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from ..config.settings import AuditSettings
from ..models.audit import (
    ClassifiedRequest,
    ConsentModeSignal,
    SSTReport,
    TrackerGroup,
    TransportFinding,
)
from ..models.capture import CapturedRequest
from .classifier import VendorClassifier
from .consent_mode import ConsentModeExtractor
from .grouping import group_requests
from .library import SignatureLibrary
from .sst import SSTDetector
from .transport import TransportDecoder

logger = logging.getLogger(__name__)


class TrafficAnalysis:
    """Network-derived facts about one phase."""

    def __init__(self):
        self.classified: List[ClassifiedRequest] = []
        self.trackers: List[TrackerGroup] = []
        self.transport_findings: List[TransportFinding] = []
        self.consent_mode: List[ConsentModeSignal] = []
        self.sst: SSTReport = SSTReport()
        self.request_count = 0
        self.third_party_count = 0

    def __repr__(self) -> str:
        return (
            f"TrafficAnalysis(requests={self.request_count}, "
            f"third_party={self.third_party_count}, trackers={len(self.trackers)})"
        )


class TrafficAnalyzer:
    """Analyzes the requests captured during one phase."""

    def __init__(
        self,
        library: Optional[SignatureLibrary] = None,
        settings: Optional[AuditSettings] = None
    ):
        settings = settings or AuditSettings()
        self.classifier = VendorClassifier(library)
        self.decoder = TransportDecoder(
            min_length=settings.transport.min_param_length,
            prefixes=settings.transport.allowed_prefixes,
        )
        self.extractor = ConsentModeExtractor(
            params=settings.consent_mode.params,
            vendors=settings.consent_mode.vendors,
        )
        self.sst_detector = SSTDetector()

    def analyze(self, requests: Sequence[CapturedRequest], site_origin: str) -> TrafficAnalysis:
        """Analyze one phase's requests.

        Decoded transports are turned into virtual URLs on the first-party
        host and classified like direct traffic.

        Args:
            requests: Requests captured while the phase's sink was attached
            site_origin: Audited page URL

        Returns:
            TrafficAnalysis for the phase
        """
        analysis = TrafficAnalysis()
        analysis.request_count = len(requests)
        pairs: List[Tuple[str, Optional[ClassifiedRequest]]] = []
        virtual_urls: List[str] = []

        for request in requests:
            classification = self.classifier.classify(request.url, site_origin)
            pairs.append((request.url, classification))
            if classification is not None:
                analysis.classified.append(classification)
                analysis.third_party_count += 1
                continue

            finding = self.decoder.scan(request.url, site_origin)
            if finding is None:
                continue
            analysis.transport_findings.append(finding)
            virtual_urls.append(finding.virtual_url)
            virtual = self.classifier.classify(finding.virtual_url, site_origin, allow_first_party=True)
            pairs.append((finding.virtual_url, virtual))
            if virtual is not None:
                analysis.classified.append(virtual)

        analysis.trackers = group_requests(analysis.classified)
        analysis.consent_mode = self.extractor.extract(pairs)

        url_report = self.sst_detector.detect_from_urls(
            [request.url for request in requests] + virtual_urls,
            site_origin,
        )
        url_report.body_fingerprints = self.sst_detector.detect_from_bodies(
            (request.url, request.response_body) for request in requests if request.response_body
        )
        analysis.sst = url_report

        logger.debug(f"Analyzed phase traffic: {analysis}")
        return analysis
