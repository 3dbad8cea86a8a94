"""Server-side tagging (SST) detection.

Looks for Google tag loaders served from non-standard hosts, GA4 hits sent
to first-party collect endpoints, and container or measurement IDs embedded
in first-party JavaScript.
"""

import logging
import re
from typing import Iterable, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

from ..models.audit import BodyFingerprint, SSTCollectEndpoint, SSTLoader, SSTReport
from ..utils.url_normalizer import is_first_party

logger = logging.getLogger(__name__)

STANDARD_HOSTS = {"www.googletagmanager.com", "googletagmanager.com"}

GTM_ID = re.compile(r'^GTM-[A-Z0-9]+$', re.IGNORECASE)
GA4_ID = re.compile(r'^G-[A-Z0-9]+$', re.IGNORECASE)
GTM_BODY_ID = re.compile(r'GTM-[A-Z0-9]{5,}', re.IGNORECASE)
GA4_BODY_ID = re.compile(r'G-[A-Z0-9]{5,}', re.IGNORECASE)


def _first(query: dict, name: str) -> Optional[str]:
    values = query.get(name)
    return values[0] if values else None


def _unique_upper(matches: Iterable[str]) -> List[str]:
    ids = []
    for match in matches:
        value = match.upper()
        if value not in ids:
            ids.append(value)
    return ids


class SSTDetector:
    """Builds SSTReports from request URLs and response bodies."""

    def detect_from_urls(self, urls: Iterable[str], site_origin: str) -> SSTReport:
        """Scan request URLs for loaders and first-party collect endpoints."""
        report = SSTReport()
        seen_loaders = set()
        seen_collects = set()

        for url in urls:
            try:
                parsed = urlparse(url)
            except ValueError:
                continue
            host = parsed.hostname
            if not host:
                continue
            path = parsed.path
            query = parse_qs(parsed.query, keep_blank_values=True)
            first_party = is_first_party(url, site_origin)
            is_standard = host in STANDARD_HOSTS
            full_path = f"{path}?{parsed.query}" if parsed.query else path

            if '/gtm.js' in path:
                container = _first(query, 'id')
                if container and GTM_ID.match(container) and ('gtm', host, container) not in seen_loaders:
                    seen_loaders.add(('gtm', host, container))
                    if container.upper() not in report.containers:
                        report.containers.append(container.upper())
                    report.loaders.append(SSTLoader(
                        type="GTM", host=host, path=full_path, id=container,
                        is_standard=is_standard, is_first_party=first_party,
                    ))

            if '/gtag/js' in path:
                measurement_id = _first(query, 'id')
                if measurement_id and GA4_ID.match(measurement_id) and ('gtag', host, measurement_id) not in seen_loaders:
                    seen_loaders.add(('gtag', host, measurement_id))
                    if measurement_id.upper() not in report.measurement_ids:
                        report.measurement_ids.append(measurement_id.upper())
                    report.loaders.append(SSTLoader(
                        type="gtag", host=host, path=full_path, id=measurement_id,
                        is_standard=is_standard, is_first_party=first_party,
                    ))

            if first_party and '/collect' in path:
                tid = _first(query, 'tid')
                if tid and GA4_ID.match(tid) and _first(query, 'v') == '2' and (host, tid) not in seen_collects:
                    seen_collects.add((host, tid))
                    if tid.upper() not in report.measurement_ids:
                        report.measurement_ids.append(tid.upper())
                    report.collect_endpoints.append(SSTCollectEndpoint(host=host, path=path, tid=tid))

        return report

    def detect_from_bodies(self, bodies: Iterable[Tuple[str, Optional[str]]]) -> List[BodyFingerprint]:
        """Scan JavaScript bodies for container and measurement IDs.

        Loader URLs are skipped since :meth:`detect_from_urls` already covers
        them.

        Args:
            bodies: ``(url, body)`` pairs of first-party JavaScript responses
        """
        fingerprints = []
        for url, body in bodies:
            if not body:
                continue
            try:
                path = urlparse(url).path
            except ValueError:
                continue
            if '/gtm.js' in path or '/gtag/js' in path:
                continue

            if 'googletagmanager' in body:
                ids = _unique_upper(GTM_BODY_ID.findall(body))
                if ids:
                    fingerprints.append(BodyFingerprint(url=url, type="GTM Container Code", ids=ids))
            if 'gtag(' in body:
                ids = _unique_upper(GA4_BODY_ID.findall(body))
                if ids:
                    fingerprints.append(BodyFingerprint(url=url, type="gtag Code", ids=ids))

        return fingerprints

    @staticmethod
    def merge(*reports: Optional[SSTReport]) -> SSTReport:
        """Merge per-phase reports, deduplicating loaders and endpoints."""
        merged = SSTReport()
        loader_keys = set()
        collect_keys = set()
        fingerprint_keys = set()

        for report in reports:
            if report is None:
                continue
            for container in report.containers:
                if container not in merged.containers:
                    merged.containers.append(container)
            for measurement_id in report.measurement_ids:
                if measurement_id not in merged.measurement_ids:
                    merged.measurement_ids.append(measurement_id)
            for loader in report.loaders:
                key = (loader.type, loader.host, loader.id)
                if key not in loader_keys:
                    loader_keys.add(key)
                    merged.loaders.append(loader)
            for endpoint in report.collect_endpoints:
                key = (endpoint.host, endpoint.tid)
                if key not in collect_keys:
                    collect_keys.add(key)
                    merged.collect_endpoints.append(endpoint)
            for fingerprint in report.body_fingerprints:
                key = (fingerprint.url, fingerprint.type)
                if key not in fingerprint_keys:
                    fingerprint_keys.add(key)
                    merged.body_fingerprints.append(fingerprint)

        return merged
