"""Decoding of opaque first-party proxy transports.

Some server-side tagging setups load vendor scripts and send hits through a
first-party endpoint that carries the real vendor path base64-encoded in a
query parameter, e.g. ``/abc?x=L2d0YWcvanM_aWQ9Ry1BQkM=``. The decoder
recovers that path and synthesises ``https://<host><path>`` so the proxied
traffic can be classified like direct traffic.

A decoded value only counts when it starts with an allow-listed vendor
path. This is a heuristic: an unrelated parameter that happens to decode to
such a prefix would be reported as well.
"""

import base64
import binascii
import logging
import re
from typing import Iterable, List, Optional, Tuple
from urllib.parse import unquote, urlparse

from ..errors import DecodeFailure
from ..models.audit import TransportFinding
from ..utils.url_normalizer import get_hostname, is_first_party

logger = logging.getLogger(__name__)

DEFAULT_PREFIXES = ("/gtag/js", "/g/collect", "/collect", "/gtm.js")

_NON_BASE64 = re.compile(r'[^A-Za-z0-9+/]')


def decode_base64_text(value: str) -> str:
    """Leniently decode standard or URL-safe base64 into UTF-8 text.

    Characters outside the base64 alphabet are dropped and missing padding
    is restored.

    Raises:
        DecodeFailure: If the value is not base64 or not UTF-8 once decoded
    """
    cleaned = _NON_BASE64.sub('', value.replace('-', '+').replace('_', '/'))
    if not cleaned:
        raise DecodeFailure("empty base64 payload")
    cleaned += '=' * (-len(cleaned) % 4)
    try:
        raw = base64.b64decode(cleaned)
    except (binascii.Error, ValueError) as e:
        raise DecodeFailure(str(e))
    try:
        return raw.decode('utf-8')
    except UnicodeDecodeError as e:
        raise DecodeFailure(str(e))


def _raw_query(url: str) -> List[Tuple[str, str]]:
    """Query pairs, percent-decoded once, with ``+`` left intact."""
    try:
        query = urlparse(url).query
    except ValueError:
        return []
    pairs = []
    for part in query.split('&'):
        if not part:
            continue
        name, _, value = part.partition('=')
        pairs.append((unquote(name), unquote(value)))
    return pairs


class TransportDecoder:
    """Finds base64-wrapped vendor paths in first-party request parameters."""

    def __init__(self, min_length: int = 10, prefixes: Iterable[str] = DEFAULT_PREFIXES):
        self.min_length = min_length
        self.prefixes = tuple(prefixes)

    def decode_parameter(self, value: str) -> Optional[str]:
        """Decoded vendor path, or None when the value is not a known transport."""
        try:
            decoded = decode_base64_text(unquote(value))
        except DecodeFailure:
            return None
        if decoded.startswith(self.prefixes):
            return decoded
        return None

    def scan(self, url: str, site_origin: str) -> Optional[TransportFinding]:
        """Check one request for a proxied vendor path.

        Args:
            url: Request URL
            site_origin: Audited page URL; only first-party requests are scanned

        Returns:
            First matching parameter as a TransportFinding, or None
        """
        if not is_first_party(url, site_origin):
            return None
        host = get_hostname(url)
        if not host:
            return None

        for name, value in _raw_query(url):
            if len(value) < self.min_length:
                continue
            decoded_path = self.decode_parameter(value)
            if decoded_path is None:
                continue
            logger.debug(f"Transport on {host} via '{name}': {decoded_path}")
            return TransportFinding(
                host=host,
                param_name=name,
                decoded_path=decoded_path,
                original_url=url,
            )
        return None


def dedupe_findings(findings: Iterable[TransportFinding]) -> List[TransportFinding]:
    """Unique findings by (host, parameter, decoded path), first seen wins."""
    seen = set()
    unique = []
    for finding in findings:
        key = (finding.host, finding.param_name, finding.decoded_path)
        if key not in seen:
            seen.add(key)
            unique.append(finding)
    return unique
