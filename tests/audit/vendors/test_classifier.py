"""Unit tests for vendor classification tiers."""

import pytest

from consent_sentinel.audit.models.audit import UNKNOWN_VENDOR, Direction
from consent_sentinel.audit.models.vendor import VendorSignature
from consent_sentinel.audit.vendors.classifier import VendorClassifier
from consent_sentinel.audit.vendors.library import SignatureLibrary, default_library


SITE = "https://shop.example.com/"


@pytest.fixture(scope="module")
def classifier():
    return VendorClassifier(default_library())


class TestScriptTiers:
    """Test constrained and unconstrained loader scripts."""

    def test_identify_constraint_selects_sibling_product(self, classifier):
        ga4 = classifier.classify("https://www.googletagmanager.com/gtag/js?id=G-ABC123", SITE)
        ads = classifier.classify("https://www.googletagmanager.com/gtag/js?id=AW-99887766", SITE)
        floodlight = classifier.classify("https://www.googletagmanager.com/gtag/js?id=DC-1234567", SITE)

        assert (ga4.key, ga4.direction) == ("google-analytics-4", Direction.SCRIPT)
        assert ads.key == "google-ads"
        assert floodlight.key == "google-floodlight"

    def test_failed_constraint_falls_through_to_unconstrained_rule(self, classifier):
        result = classifier.classify("https://www.googletagmanager.com/gtag/js?id=XYZ-1", SITE)

        assert result.key == "google-tag"
        assert result.direction == Direction.SCRIPT

    def test_gtm_container(self, classifier):
        result = classifier.classify("https://www.googletagmanager.com/gtm.js?id=GTM-ABC123", SITE)

        assert result.key == "google-tag-manager"
        assert result.vendor == "Google"
        assert result.category == "tag_management"


class TestEndpointTier:
    """Test collection endpoints and event sub-types."""

    def test_mapped_sub_type(self, classifier):
        result = classifier.classify("https://www.facebook.com/tr?id=123&ev=AddToCart", SITE)

        assert result.key == "meta-pixel"
        assert result.direction == Direction.REQUEST
        assert result.sub_type == "add_to_cart"

    def test_unmapped_value_uses_default(self, classifier):
        result = classifier.classify("https://www.facebook.com/tr?id=123&ev=Subscribe", SITE)

        assert result.sub_type == "custom_event"

    def test_ga4_collect(self, classifier):
        result = classifier.classify(
            "https://region1.google-analytics.com/g/collect?v=2&tid=G-ABC123&en=page_view", SITE
        )

        assert result.key == "google-analytics-4"
        assert result.sub_type == "page_view"

    def test_declared_sub_type(self, classifier):
        result = classifier.classify("https://www.googleadservices.com/pagead/conversion/123/", SITE)

        assert result.key == "google-ads"
        assert result.sub_type == "conversion"


class TestDomainTier:
    """Test bare domain and host+path fragments."""

    def test_bare_domain(self, classifier):
        result = classifier.classify("https://connect.facebook.net/en_US/sdk.js", SITE)

        assert result.key == "meta-pixel"
        assert result.direction == Direction.DOMAIN
        assert result.sub_type is None

    def test_host_path_fragment(self):
        library = SignatureLibrary([
            VendorSignature(key="pixel", vendor="Pixel Co", product="Pixel", domains=["cdn.io/pixel"]),
        ])
        classifier = VendorClassifier(library)

        assert classifier.classify("https://cdn.io/pixel/1.gif", SITE).key == "pixel"
        assert classifier.classify("https://cdn.io/fonts/a.woff", SITE).direction == Direction.UNKNOWN


class TestUnknownAndFirstParty:
    """Test the unknown bucket and first-party handling."""

    def test_unknown_third_party(self, classifier):
        result = classifier.classify("https://cdn.widgets.io/embed.js", SITE)

        assert result.key == "cdn.widgets.io"
        assert result.vendor == UNKNOWN_VENDOR
        assert result.direction == Direction.UNKNOWN
        assert result.is_known is False

    def test_first_party_is_not_classified(self, classifier):
        assert classifier.classify("https://static.example.com/app.js", SITE) is None

    def test_first_party_allowed(self, classifier):
        result = classifier.classify(
            "https://shop.example.com/gtm.js?id=GTM-ABC123", SITE, allow_first_party=True
        )

        assert result.key == "google-tag-manager"

    def test_unmatched_first_party_stays_unclassified(self, classifier):
        assert classifier.classify("https://shop.example.com/cart", SITE, allow_first_party=True) is None

    def test_url_without_host(self, classifier):
        assert classifier.classify("data:image/png;base64,AAAA", SITE) is None


class TestTierPrecedence:
    """Test that tiers are evaluated across the whole library."""

    def test_constrained_rule_beats_earlier_unconstrained_rule(self):
        library = SignatureLibrary([
            VendorSignature(
                key="generic-loader", vendor="Generic", product="Loader",
                scripts=[{"hosts": ["tags.io"], "path": "/load.js"}],
            ),
            VendorSignature(
                key="specific-loader", vendor="Specific", product="Loader",
                scripts=[{"path": "/load.js", "identify": {"param": "id", "match": "^SP-"}}],
            ),
        ])
        classifier = VendorClassifier(library)

        assert classifier.classify("https://tags.io/load.js?id=SP-1", SITE).key == "specific-loader"
        assert classifier.classify("https://tags.io/load.js?id=OT-1", SITE).key == "generic-loader"

    def test_endpoint_beats_domain_of_earlier_signature(self):
        library = SignatureLibrary([
            VendorSignature(key="broad", vendor="Broad", product="Broad", domains=["collect.io"]),
            VendorSignature(
                key="narrow", vendor="Narrow", product="Narrow",
                endpoints=[{"hosts": ["collect.io"], "path": "/hit"}],
            ),
        ])
        classifier = VendorClassifier(library)

        assert classifier.classify("https://collect.io/hit", SITE).key == "narrow"
        assert classifier.classify("https://collect.io/other", SITE).key == "broad"

    def test_insertion_order_breaks_ties_within_tier(self):
        library = SignatureLibrary([
            VendorSignature(key="first", vendor="First", product="A", domains=["shared.io"]),
            VendorSignature(key="second", vendor="Second", product="B", domains=["shared.io"]),
        ])

        assert VendorClassifier(library).classify("https://shared.io/x", SITE).key == "first"
