"""Audit utilities package."""

from .url_normalizer import (
    get_hostname,
    host_matches,
    is_first_party,
    registrable_domain,
    resolve_same_origin,
    site_domain,
)

__all__ = [
    'get_hostname',
    'host_matches',
    'is_first_party',
    'registrable_domain',
    'resolve_same_origin',
    'site_domain'
]
