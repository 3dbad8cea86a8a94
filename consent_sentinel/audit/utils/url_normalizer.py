"""URL helpers for first-party detection and host matching.

The audit needs a stable notion of "the site" so it can tell first-party
traffic apart from vendor traffic. A site is identified by its registrable
domain (eTLD+1); every request whose registrable domain equals the audited
site's is first-party.
"""

from typing import Dict, List, Optional
from urllib.parse import parse_qs, urljoin, urlparse, urlunparse
import logging


logger = logging.getLogger(__name__)


# Common multi-part TLDs that need special handling
MULTI_PART_TLDS = {
    'co.uk', 'co.jp', 'co.kr', 'co.za', 'co.nz', 'co.in', 'co.il', 'co.at',
    'com.au', 'com.br', 'com.cn', 'com.mx', 'com.tr', 'com.tw',
    'net.au', 'net.br', 'net.in', 'net.mx', 'net.nz', 'net.za',
    'org.au', 'org.br', 'org.in', 'org.mx', 'org.nz', 'org.za',
    'edu.au', 'edu.br', 'edu.in', 'edu.mx', 'gov.au', 'gov.br',
    'ac.uk', 'org.uk', 'me.uk', 'ltd.uk', 'plc.uk', 'net.uk', 'or.at',
}


def registrable_domain(hostname: str) -> str:
    """Extract the eTLD+1 (effective top-level domain + 1) from a hostname.

    This is a simplified implementation that handles common multi-part TLDs.

    Args:
        hostname: The hostname to extract eTLD+1 from

    Returns:
        The eTLD+1 portion of the hostname

    Examples:
        >>> registrable_domain("shop.example.com")
        "example.com"
        >>> registrable_domain("bar.example.co.uk")
        "example.co.uk"
    """
    hostname = hostname.lower().rstrip('.')
    parts = hostname.split('.')
    if len(parts) < 2:
        return hostname

    for tld_parts in [3, 2]:  # Check 3-part first, then 2-part
        if len(parts) >= tld_parts + 1:
            potential_tld = '.'.join(parts[-tld_parts:])
            if potential_tld in MULTI_PART_TLDS:
                return '.'.join(parts[-(tld_parts + 1):])

    return '.'.join(parts[-2:])


def get_hostname(url: str) -> Optional[str]:
    """Return the lowercased hostname of a URL, or None if it has none."""
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return None
    return hostname or None


def site_domain(url: str) -> Optional[str]:
    """Registrable domain of a URL's host."""
    hostname = get_hostname(url)
    if not hostname:
        return None
    return registrable_domain(hostname)


def is_first_party(url: str, site_origin: str) -> bool:
    """Check whether a request URL belongs to the audited site.

    Args:
        url: Request URL
        site_origin: URL (or origin) of the audited site

    Returns:
        True if both share the same registrable domain
    """
    request_domain = site_domain(url)
    return request_domain is not None and request_domain == site_domain(site_origin)


def host_matches(hostname: str, pattern: str) -> bool:
    """Exact host match or subdomain match (``a.b.com`` matches ``b.com``)."""
    hostname = hostname.lower()
    pattern = pattern.lower()
    return hostname == pattern or hostname.endswith('.' + pattern)


def query_params(url: str) -> Dict[str, List[str]]:
    """Parse query parameters, keeping blank values."""
    try:
        return parse_qs(urlparse(url).query, keep_blank_values=True)
    except ValueError:
        return {}


def first_param(url: str, name: str) -> Optional[str]:
    """First value of a query parameter, or None."""
    values = query_params(url).get(name)
    return values[0] if values else None


def resolve_same_origin(base: str, target: Optional[str]) -> Optional[str]:
    """Resolve ``target`` against ``base``, forcing the result onto base's origin.

    Funnel URLs are usually given as paths. A target that resolves to a
    foreign host keeps its path, query and fragment but is re-attached to the
    audited origin.

    Args:
        base: Audited page URL
        target: Absolute URL or path

    Returns:
        Absolute URL on the base origin, or None if nothing can be resolved
    """
    if not target:
        return None

    base_parts = urlparse(base)
    if not base_parts.scheme or not base_parts.netloc:
        return None

    resolved = urlparse(urljoin(base, target))
    if (resolved.scheme, resolved.netloc) != (base_parts.scheme, base_parts.netloc):
        logger.warning(
            f"'{target}' resolves to foreign origin {resolved.scheme}://{resolved.netloc}, "
            f"forcing {base_parts.scheme}://{base_parts.netloc}"
        )
        resolved = resolved._replace(scheme=base_parts.scheme, netloc=base_parts.netloc)

    return urlunparse(resolved._replace(path=resolved.path or '/'))
