"""Unit tests for per-phase traffic analysis."""

from consent_sentinel.audit.config.settings import AuditSettings
from consent_sentinel.audit.models.capture import CapturedRequest
from consent_sentinel.audit.vendors.analysis import TrafficAnalyzer


SITE = "https://shop.example.com/"
COLLECT_PAYLOAD = "L2cvY29sbGVjdD92PTImdGlkPUctWFlaNzg5JmVuPXBhZ2VfdmlldyZnY3M9RzExMQ=="


class TestTrafficAnalyzer:
    """Test TrafficAnalyzer.analyze."""

    def setup_method(self):
        self.analyzer = TrafficAnalyzer(settings=AuditSettings())

    def test_direct_and_unknown_traffic(self):
        requests = [
            CapturedRequest(url="https://shop.example.com/"),
            CapturedRequest(url="https://www.googletagmanager.com/gtag/js?id=G-ABC123"),
            CapturedRequest(url="https://region1.google-analytics.com/g/collect?v=2&tid=G-ABC123&gcs=G100"),
            CapturedRequest(url="https://cdn.widgets.io/embed.js"),
        ]

        analysis = self.analyzer.analyze(requests, SITE)

        assert analysis.request_count == 4
        assert analysis.third_party_count == 3
        assert [group.key for group in analysis.trackers] == ["cdn.widgets.io", "google-analytics-4"]
        assert [signal.state for signal in analysis.consent_mode] == ["G100|-"]
        assert analysis.transport_findings == []
        assert analysis.sst.measurement_ids == ["G-ABC123"]

    def test_proxied_transport_is_classified(self):
        requests = [CapturedRequest(url=f"https://shop.example.com/px?d={COLLECT_PAYLOAD}")]

        analysis = self.analyzer.analyze(requests, SITE)

        assert analysis.third_party_count == 0
        assert len(analysis.transport_findings) == 1
        assert [group.key for group in analysis.trackers] == ["google-analytics-4"]
        assert analysis.consent_mode[0].gcs == "G111"
        assert analysis.sst.collect_endpoints[0].tid == "G-XYZ789"
        assert analysis.sst.detected

    def test_first_party_bodies_fingerprinted(self):
        requests = [CapturedRequest(
            url="https://shop.example.com/static/tags.js",
            response_body="gtag('config', 'G-XYZ789')",
        )]

        analysis = self.analyzer.analyze(requests, SITE)

        assert analysis.trackers == []
        assert analysis.sst.body_fingerprints[0].ids == ["G-XYZ789"]

    def test_empty_phase(self):
        analysis = self.analyzer.analyze([], SITE)

        assert analysis.request_count == 0
        assert analysis.trackers == []
        assert analysis.sst.detected is False
