"""CMP descriptor library store.

The audit reads the full ``key -> CMPDescriptor`` map once per run and
writes back descriptors learned from a manual capture. How the map is
persisted is the store implementation's business.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, runtime_checkable

from pydantic import ValidationError

from ..errors import LibraryError
from ..models.cmp import CMPDescriptor, normalize_cmp_key

logger = logging.getLogger(__name__)


@runtime_checkable
class CMPLibraryStore(Protocol):
    """Read/write access to known CMP descriptors."""

    def load(self) -> Dict[str, CMPDescriptor]: ...

    def save(self, descriptor: CMPDescriptor) -> None: ...


def descriptors_from_mapping(data: Mapping[str, Mapping[str, Any]]) -> Dict[str, CMPDescriptor]:
    """Build descriptors from ``{key: {name, accept, reject, ...}}``.

    Both snake_case field names and the camelCase keys of older library
    files are accepted.

    Raises:
        LibraryError: If an entry is invalid
    """
    descriptors = {}
    for key, entry in data.items():
        normalized = normalize_cmp_key(key)
        payload = dict(entry)
        payload.setdefault("name", key)
        payload["key"] = normalized
        try:
            descriptors[normalized] = CMPDescriptor(**payload)
        except (TypeError, ValidationError) as e:
            raise LibraryError(f"Invalid CMP descriptor '{key}': {e}")
    return descriptors


class InMemoryCMPLibrary:
    """Dictionary-backed CMP store."""

    def __init__(self, descriptors: Optional[Iterable[CMPDescriptor]] = None):
        self._descriptors: Dict[str, CMPDescriptor] = {}
        for descriptor in descriptors or []:
            self._descriptors[descriptor.key] = descriptor
        self.saved: List[CMPDescriptor] = []

    @classmethod
    def from_mapping(cls, data: Mapping[str, Mapping[str, Any]]) -> "InMemoryCMPLibrary":
        return cls(descriptors_from_mapping(data).values())

    def load(self) -> Dict[str, CMPDescriptor]:
        return dict(self._descriptors)

    def save(self, descriptor: CMPDescriptor) -> None:
        action = "Updated" if descriptor.key in self._descriptors else "Learned"
        self._descriptors[descriptor.key] = descriptor
        self.saved.append(descriptor)
        logger.info(f"{action} CMP descriptor '{descriptor.key}'")


def lookup_descriptor(descriptors: Mapping[str, CMPDescriptor], key: str) -> CMPDescriptor:
    """Find a pinned CMP by key (normalised the same way as library keys).

    Raises:
        LibraryError: If no descriptor has that key
    """
    normalized = normalize_cmp_key(key)
    descriptor = descriptors.get(normalized)
    if descriptor is None:
        raise LibraryError.unknown_key(normalized, descriptors.keys())
    return descriptor


def learned_descriptor(name: str, accept_selector: str, reject_selector: str) -> CMPDescriptor:
    """Descriptor captured from an operator's accept and reject clicks."""
    return CMPDescriptor(
        key=normalize_cmp_key(name),
        name=name.strip(),
        accept_selector=accept_selector,
        reject_selector=reject_selector,
        learned_at=datetime.utcnow(),
    )


def ordered_candidates(descriptors: Iterable[CMPDescriptor]) -> List[CMPDescriptor]:
    """Descriptors in probing order: ascending priority, unset last, then library order."""
    return sorted(descriptors, key=lambda descriptor: descriptor.sort_key)
