"""Vendor signature models.

A signature describes one tracking product through three ordered rule
sets: loader scripts, collection endpoints and bare domain fragments. The
classifier walks these rule sets tier by tier across the whole library.
"""

import re
from functools import lru_cache
from typing import Dict, List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

from ..utils.url_normalizer import host_matches


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> re.Pattern:
    """Compile and cache a signature regex."""
    return re.compile(pattern)


def _validate_regex(value: str) -> str:
    try:
        compile_pattern(value)
    except re.error as e:
        raise ValueError(f"Invalid regex '{value}': {e}")
    return value


class IdentifyConstraint(BaseModel):
    """Query parameter that must match a regex for a script rule to apply."""

    param: str = Field(description="Query parameter name")
    match: str = Field(description="Regex searched in the parameter value")

    @field_validator('match')
    @classmethod
    def validate_match(cls, v):
        """Reject regexes that do not compile."""
        return _validate_regex(v)

    def matches(self, query: Dict[str, List[str]]) -> bool:
        pattern = compile_pattern(self.match)
        return any(pattern.search(value) for value in query.get(self.param, []))


class EndpointClassifier(BaseModel):
    """Maps a query parameter's value to an event sub-type."""

    param: str = Field(description="Query parameter carrying the event name")
    values: Dict[str, str] = Field(default_factory=dict, description="Parameter value -> sub-type")
    default: Optional[str] = Field(default=None, description="Sub-type when the value is not mapped")

    def sub_type(self, query: Dict[str, List[str]]) -> Optional[str]:
        for value in query.get(self.param, []):
            if value in self.values:
                return self.values[value]
        return self.default


class _PathRule(BaseModel):
    hosts: List[str] = Field(default_factory=list, description="Host suffixes; empty matches any host")
    path: str = Field(description="Path fragment the URL path must contain")

    def matches_location(self, hostname: str, path: str) -> bool:
        if self.hosts and not any(host_matches(hostname, host) for host in self.hosts):
            return False
        return self.path in path


class ScriptPattern(_PathRule):
    """Loader script rule, optionally narrowed by an identify constraint."""

    identify: Optional[IdentifyConstraint] = Field(default=None, description="Sibling-product constraint")


class EndpointPattern(_PathRule):
    """Collection endpoint rule."""

    classify: Optional[EndpointClassifier] = Field(default=None, description="Event sub-type mapping")
    sub_type: Optional[str] = Field(default=None, description="Declared sub-type when not classified")

    def resolve_sub_type(self, query: Dict[str, List[str]]) -> Optional[str]:
        if self.classify is not None:
            classified = self.classify.sub_type(query)
            if classified is not None:
                return classified
        return self.sub_type


class VendorSignature(BaseModel):
    """Read-only description of one tracking product."""

    key: str = Field(description="Signature key, also the deduplication group key")
    vendor: str = Field(description="Vendor name")
    product: str = Field(description="Product name")
    category: str = Field(default="analytics", description="Tracking category")
    scripts: List[ScriptPattern] = Field(default_factory=list)
    endpoints: List[EndpointPattern] = Field(default_factory=list)
    domains: List[str] = Field(
        default_factory=list,
        description="Bare domains, or host+path fragments when containing '/'"
    )

    def matches_domain(self, hostname: str, url: str) -> bool:
        """Tier-4 match: host suffix, or host+path substring for path fragments."""
        for fragment in self.domains:
            if '/' in fragment:
                try:
                    parsed = urlparse(url)
                except ValueError:
                    continue
                if fragment in f"{hostname}{parsed.path}":
                    return True
            elif host_matches(hostname, fragment):
                return True
        return False
