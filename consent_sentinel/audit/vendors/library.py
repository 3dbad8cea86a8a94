"""Vendor signature library.

The library is a read-only, ordered ``key -> VendorSignature`` map loaded
once per run. Insertion order is the tie-breaker inside a classification
tier, so more specific signatures are registered first.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

import yaml
from pydantic import ValidationError

from ..errors import LibraryError
from ..models.vendor import VendorSignature

logger = logging.getLogger(__name__)


class SignatureLibrary:
    """Ordered collection of vendor signatures."""

    def __init__(self, signatures: Optional[List[VendorSignature]] = None):
        self._signatures: Dict[str, VendorSignature] = {}
        for signature in signatures or []:
            self.add(signature)

    def add(self, signature: VendorSignature) -> None:
        if signature.key in self._signatures:
            logger.warning(f"Replacing vendor signature '{signature.key}'")
        self._signatures[signature.key] = signature

    def get(self, key: str) -> Optional[VendorSignature]:
        return self._signatures.get(key)

    def keys(self) -> List[str]:
        return list(self._signatures)

    def vendors(self) -> List[str]:
        return sorted({signature.vendor for signature in self._signatures.values()})

    def __iter__(self) -> Iterator[VendorSignature]:
        return iter(self._signatures.values())

    def __len__(self) -> int:
        return len(self._signatures)

    def __contains__(self, key: str) -> bool:
        return key in self._signatures

    @classmethod
    def from_mapping(cls, data: Mapping[str, Mapping[str, Any]]) -> "SignatureLibrary":
        """Build a library from ``{key: {vendor, product, ...}}``.

        Raises:
            LibraryError: If an entry fails validation
        """
        library = cls()
        for key, entry in data.items():
            try:
                library.add(VendorSignature(key=key, **entry))
            except (TypeError, ValidationError) as e:
                raise LibraryError(f"Invalid vendor signature '{key}': {e}")
        return library


def load_vendor_signatures(path: Union[str, Path]) -> SignatureLibrary:
    """Load a signature library from a YAML file.

    The file holds a ``signatures`` mapping (or the mapping at top level).

    Raises:
        LibraryError: If the file is missing, unreadable or invalid
    """
    path = Path(path)
    if not path.exists():
        raise LibraryError(f"Vendor signature file not found: {path}")

    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise LibraryError(f"Failed to parse vendor signatures: {e}")
    except IOError as e:
        raise LibraryError(f"Failed to read vendor signatures: {e}")

    if not isinstance(data, dict):
        raise LibraryError("Vendor signature file must contain a YAML dictionary")

    library = SignatureLibrary.from_mapping(data.get("signatures", data))
    logger.info(f"Loaded {len(library)} vendor signatures from {path}")
    return library


def _gtag(prefix: str) -> Dict[str, Any]:
    return {"path": "/gtag/js", "identify": {"param": "id", "match": f"^{prefix}-"}}


def default_library() -> SignatureLibrary:
    """Built-in signatures for the common tracking vendors."""
    library = SignatureLibrary()

    # Google: sibling products share /gtag/js and differ by ID prefix
    library.add(VendorSignature(
        key="google-analytics-4",
        vendor="Google",
        product="Google Analytics 4",
        category="analytics",
        scripts=[_gtag("G")],
        endpoints=[
            {
                "hosts": ["google-analytics.com", "analytics.google.com"],
                "path": "/g/collect",
                "classify": {
                    "param": "en",
                    "values": {
                        "page_view": "page_view",
                        "user_engagement": "engagement",
                        "scroll": "engagement",
                        "purchase": "purchase",
                    },
                    "default": "event",
                },
            },
            {"path": "/g/collect", "sub_type": "event"},
        ],
        domains=["google-analytics.com", "analytics.google.com"],
    ))
    library.add(VendorSignature(
        key="google-ads",
        vendor="Google",
        product="Google Ads",
        category="advertising",
        scripts=[_gtag("AW")],
        endpoints=[
            {"hosts": ["googleadservices.com"], "path": "/pagead/conversion", "sub_type": "conversion"},
            {"hosts": ["googleads.g.doubleclick.net"], "path": "/pagead/", "sub_type": "remarketing"},
            {"hosts": ["google.com"], "path": "/pagead/1p-user-list", "sub_type": "remarketing"},
            {"hosts": ["google.com"], "path": "/pagead/1p-conversion", "sub_type": "conversion"},
        ],
        domains=["googleadservices.com", "googleads.g.doubleclick.net", "googlesyndication.com"],
    ))
    library.add(VendorSignature(
        key="google-floodlight",
        vendor="Google",
        product="Floodlight",
        category="advertising",
        scripts=[_gtag("DC")],
        endpoints=[
            {"hosts": ["ad.doubleclick.net", "fls.doubleclick.net"], "path": "/activity", "sub_type": "floodlight"},
        ],
        domains=["doubleclick.net"],
    ))
    library.add(VendorSignature(
        key="google-tag",
        vendor="Google",
        product="Google Tag",
        category="tag_management",
        scripts=[_gtag("GT"), {"hosts": ["googletagmanager.com"], "path": "/gtag/js"}],
    ))
    library.add(VendorSignature(
        key="google-tag-manager",
        vendor="Google",
        product="Google Tag Manager",
        category="tag_management",
        scripts=[
            {"path": "/gtm.js", "identify": {"param": "id", "match": "^GTM-"}},
            {"hosts": ["googletagmanager.com"], "path": "/gtm.js"},
        ],
        domains=["googletagmanager.com"],
    ))

    library.add(VendorSignature(
        key="meta-pixel",
        vendor="Meta",
        product="Meta Pixel",
        category="advertising",
        scripts=[
            {"hosts": ["connect.facebook.net"], "path": "/fbevents.js"},
            {"hosts": ["connect.facebook.net"], "path": "/signals/config/"},
        ],
        endpoints=[{
            "hosts": ["facebook.com"],
            "path": "/tr",
            "classify": {
                "param": "ev",
                "values": {
                    "PageView": "page_view",
                    "ViewContent": "view_content",
                    "AddToCart": "add_to_cart",
                    "InitiateCheckout": "begin_checkout",
                    "Purchase": "purchase",
                    "Lead": "lead",
                },
                "default": "custom_event",
            },
        }],
        domains=["connect.facebook.net", "facebook.com/tr", "fbcdn.net"],
    ))
    library.add(VendorSignature(
        key="tiktok-pixel",
        vendor="TikTok",
        product="TikTok Pixel",
        category="advertising",
        scripts=[{"hosts": ["analytics.tiktok.com"], "path": "/i18n/pixel/"}],
        endpoints=[{"hosts": ["analytics.tiktok.com"], "path": "/api/v2/pixel", "sub_type": "event"}],
        domains=["analytics.tiktok.com"],
    ))
    library.add(VendorSignature(
        key="pinterest-tag",
        vendor="Pinterest",
        product="Pinterest Tag",
        category="advertising",
        scripts=[{"hosts": ["s.pinimg.com"], "path": "/ct/core.js"}],
        endpoints=[{
            "hosts": ["ct.pinterest.com"],
            "path": "/v3/",
            "classify": {
                "param": "event",
                "values": {"pagevisit": "page_view", "addtocart": "add_to_cart", "checkout": "purchase"},
                "default": "event",
            },
        }],
        domains=["ct.pinterest.com"],
    ))
    library.add(VendorSignature(
        key="linkedin-insight",
        vendor="LinkedIn",
        product="LinkedIn Insight Tag",
        category="advertising",
        scripts=[{"hosts": ["snap.licdn.com"], "path": "/li.lms-analytics/"}],
        endpoints=[
            {"hosts": ["px.ads.linkedin.com"], "path": "/collect", "sub_type": "event"},
            {"hosts": ["linkedin.com"], "path": "/px", "sub_type": "conversion"},
        ],
        domains=["snap.licdn.com", "linkedin.com/px"],
    ))
    library.add(VendorSignature(
        key="microsoft-uet",
        vendor="Microsoft",
        product="Microsoft Advertising UET",
        category="advertising",
        scripts=[{"hosts": ["bat.bing.com"], "path": "/bat.js"}],
        endpoints=[{
            "hosts": ["bat.bing.com"],
            "path": "/action/",
            "classify": {"param": "evt", "values": {"pageLoad": "page_view", "custom": "custom_event"}, "default": "event"},
        }],
        domains=["bat.bing.com"],
    ))
    library.add(VendorSignature(
        key="microsoft-clarity",
        vendor="Microsoft",
        product="Microsoft Clarity",
        category="analytics",
        scripts=[{"hosts": ["clarity.ms"], "path": "/tag/"}],
        endpoints=[{"hosts": ["clarity.ms"], "path": "/collect", "sub_type": "session_recording"}],
        domains=["clarity.ms"],
    ))
    library.add(VendorSignature(
        key="criteo",
        vendor="Criteo",
        product="Criteo OneTag",
        category="advertising",
        scripts=[{"hosts": ["static.criteo.net"], "path": "/js/ld/"}],
        endpoints=[{"hosts": ["sslwidget.criteo.com"], "path": "/event", "sub_type": "event"}],
        domains=["dis.criteo.com", "criteo.com", "criteo.net"],
    ))
    library.add(VendorSignature(
        key="taboola",
        vendor="Taboola",
        product="Taboola Pixel",
        category="advertising",
        scripts=[{"hosts": ["cdn.taboola.com"], "path": "/libtrc/"}],
        endpoints=[{"hosts": ["trc.taboola.com"], "path": "/actions-handler/", "sub_type": "event"}],
        domains=["trc.taboola.com", "taboola.com"],
    ))
    library.add(VendorSignature(
        key="outbrain",
        vendor="Outbrain",
        product="Outbrain Pixel",
        category="advertising",
        scripts=[{"hosts": ["amplify.outbrain.com"], "path": "/cp/obtp.js"}],
        endpoints=[{"hosts": ["tr.outbrain.com"], "path": "/unifiedPixel", "sub_type": "event"}],
        domains=["outbrain.com"],
    ))
    library.add(VendorSignature(
        key="hotjar",
        vendor="Hotjar",
        product="Hotjar",
        category="analytics",
        scripts=[{"hosts": ["static.hotjar.com"], "path": "/c/hotjar-"}],
        domains=["hotjar.com", "hotjar.io"],
    ))

    return library
