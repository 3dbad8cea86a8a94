"""Consent banner resolution and interaction.

Main Components:
- SelectorResolver: picks the CMP descriptor for the current page (resolver.py)
- CancellationToken: cooperative cancellation of in-flight probes
- ConsentClicker: accept/reject clicks and manual capture (automator.py)
- CMPLibraryStore / InMemoryCMPLibrary: descriptor store (library.py)
"""

from .automator import ConsentAction, ConsentClicker, ConsentInteractionResult
from .cancellation import CancellationToken
from .library import (
    CMPLibraryStore,
    InMemoryCMPLibrary,
    descriptors_from_mapping,
    learned_descriptor,
    lookup_descriptor,
    ordered_candidates,
)
from .resolver import CMPResolution, ResolutionSource, SelectorResolver

__all__ = [
    "CMPLibraryStore",
    "CMPResolution",
    "CancellationToken",
    "ConsentAction",
    "ConsentClicker",
    "ConsentInteractionResult",
    "InMemoryCMPLibrary",
    "ResolutionSource",
    "SelectorResolver",
    "descriptors_from_mapping",
    "learned_descriptor",
    "lookup_descriptor",
    "ordered_candidates",
]
