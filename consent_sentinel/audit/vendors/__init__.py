"""Vendor classification and traffic analysis.

Main Components:
- SignatureLibrary: ordered vendor signatures (library.py)
- VendorClassifier: five-tier URL classification (classifier.py)
- group_requests: deduplication into tracker groups (grouping.py)
- TransportDecoder: base64 first-party transport decoding (transport.py)
- ConsentModeExtractor: gcs/gcd extraction and diffing (consent_mode.py)
- SSTDetector: server-side tagging indicators (sst.py)
- TrafficAnalyzer: all of the above over one phase (analysis.py)
"""

from .analysis import TrafficAnalysis, TrafficAnalyzer
from .classifier import VendorClassifier
from .consent_mode import ConsentModeExtractor, consent_mode_type, diff_consent_mode
from .grouping import group_requests
from .library import SignatureLibrary, default_library, load_vendor_signatures
from .sst import SSTDetector
from .transport import TransportDecoder, decode_base64_text, dedupe_findings

__all__ = [
    "ConsentModeExtractor",
    "SSTDetector",
    "SignatureLibrary",
    "TrafficAnalysis",
    "TrafficAnalyzer",
    "TransportDecoder",
    "VendorClassifier",
    "consent_mode_type",
    "decode_base64_text",
    "dedupe_findings",
    "default_library",
    "diff_consent_mode",
    "group_requests",
    "load_vendor_signatures",
]
