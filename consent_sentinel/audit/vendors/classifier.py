"""Vendor classification of captured request URLs.

Classification walks five tiers in a fixed order. Each tier is evaluated
across the whole signature library before the next tier is tried, so a
constrained loader rule of one product always beats an unconstrained rule
of another:

1. script patterns with an identify constraint
2. script patterns without constraint
3. endpoint patterns (with optional event sub-type)
4. bare domain / host+path fragments
5. unknown third party, keyed by hostname

First-party requests are not classified unless the caller asks for it
(decoded proxy transports are first-party by construction).
"""

import logging
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

from ..models.audit import UNKNOWN_VENDOR, ClassifiedRequest, Direction
from ..models.vendor import VendorSignature
from ..utils.url_normalizer import get_hostname, is_first_party, query_params
from .library import SignatureLibrary, default_library

logger = logging.getLogger(__name__)


class VendorClassifier:
    """Maps request URLs to vendor signatures."""

    def __init__(self, library: Optional[SignatureLibrary] = None):
        self.library = library if library is not None else default_library()

    def classify(
        self,
        url: str,
        site_origin: str,
        allow_first_party: bool = False
    ) -> Optional[ClassifiedRequest]:
        """Classify one request URL.

        Args:
            url: Request URL
            site_origin: Audited page URL
            allow_first_party: Classify first-party URLs against signatures
                instead of returning None; unmatched ones still return None

        Returns:
            ClassifiedRequest, or None for first-party traffic
        """
        hostname = get_hostname(url)
        if not hostname:
            return None

        first_party = is_first_party(url, site_origin)
        if first_party and not allow_first_party:
            return None

        try:
            path = urlparse(url).path
        except ValueError:
            path = ""
        query = query_params(url)

        match = (
            self._match_scripts(hostname, path, query, constrained=True)
            or self._match_scripts(hostname, path, query, constrained=False)
            or self._match_endpoints(hostname, path, query)
            or self._match_domains(hostname, url)
        )

        if match is not None:
            signature, direction, sub_type = match
            return ClassifiedRequest(
                key=signature.key,
                vendor=signature.vendor,
                product=signature.product,
                category=signature.category,
                direction=direction,
                sub_type=sub_type,
                hostname=hostname,
                url=url,
            )

        if first_party:
            return None

        logger.debug(f"No signature for {hostname}, grouping as unknown third party")
        return ClassifiedRequest(
            key=hostname,
            vendor=UNKNOWN_VENDOR,
            direction=Direction.UNKNOWN,
            hostname=hostname,
            url=url,
        )

    def _match_scripts(
        self,
        hostname: str,
        path: str,
        query: Dict[str, List[str]],
        constrained: bool
    ) -> Optional[Tuple[VendorSignature, Direction, Optional[str]]]:
        for signature in self.library:
            for rule in signature.scripts:
                if (rule.identify is not None) != constrained:
                    continue
                if not rule.matches_location(hostname, path):
                    continue
                if rule.identify is not None and not rule.identify.matches(query):
                    continue
                return signature, Direction.SCRIPT, None
        return None

    def _match_endpoints(
        self,
        hostname: str,
        path: str,
        query: Dict[str, List[str]]
    ) -> Optional[Tuple[VendorSignature, Direction, Optional[str]]]:
        for signature in self.library:
            for rule in signature.endpoints:
                if rule.matches_location(hostname, path):
                    return signature, Direction.REQUEST, rule.resolve_sub_type(query)
        return None

    def _match_domains(
        self,
        hostname: str,
        url: str
    ) -> Optional[Tuple[VendorSignature, Direction, Optional[str]]]:
        for signature in self.library:
            if signature.matches_domain(hostname, url):
                return signature, Direction.DOMAIN, None
        return None
