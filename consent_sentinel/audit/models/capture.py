"""Pydantic models for raw browser capture data.

These records are produced by the network observer and the snapshot
collector. A ``CapturedRequest`` lives exactly as long as the phase that
captured it; cookies are kept in full so later phases can diff against them.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

from pydantic import BaseModel, Field


class RequestStatus(str, Enum):
    """Status of network request lifecycle."""
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class CapturedRequest(BaseModel):
    """One network request observed during a phase."""

    url: str = Field(description="Request URL")
    method: str = Field(default="GET", description="HTTP method")
    resource_type: str = Field(default="other", description="Playwright resource type")
    post_data: Optional[str] = Field(default=None, description="Request body (if applicable)")
    headers: Dict[str, str] = Field(default_factory=dict, description="Request headers")

    status_code: Optional[int] = Field(default=None, description="HTTP status code")
    response_headers: Dict[str, str] = Field(default_factory=dict, description="Response headers")
    response_body: Optional[str] = Field(
        default=None,
        description="Response body, only captured for small first-party scripts"
    )

    phase: Optional[str] = Field(default=None, description="Phase tag assigned by the owning sink")
    start_time: datetime = Field(default_factory=datetime.utcnow, description="Request start timestamp")
    end_time: Optional[datetime] = Field(default=None, description="Request end timestamp")
    status: RequestStatus = Field(default=RequestStatus.PENDING, description="Request lifecycle status")
    error_text: Optional[str] = Field(default=None, description="Error message if request failed")

    @property
    def hostname(self) -> str:
        """Lowercased hostname of the request URL."""
        try:
            return (urlparse(self.url).hostname or "").lower()
        except ValueError:
            return ""

    @property
    def path(self) -> str:
        try:
            return urlparse(self.url).path
        except ValueError:
            return ""

    @property
    def query(self) -> Dict[str, List[str]]:
        try:
            return parse_qs(urlparse(self.url).query, keep_blank_values=True)
        except ValueError:
            return {}

    @property
    def duration_ms(self) -> Optional[float]:
        """Calculate request duration in milliseconds."""
        if self.start_time and self.end_time:
            return (self.end_time - self.start_time).total_seconds() * 1000
        return None


class CookieRecord(BaseModel):
    """Cookie as read from the browser context."""

    name: str = Field(description="Cookie name")
    value: Optional[str] = Field(default=None, description="Cookie value")
    domain: str = Field(description="Cookie domain")
    path: str = Field(default="/", description="Cookie path")
    expires: Optional[datetime] = Field(default=None, description="Cookie expiration time")
    secure: bool = Field(default=False, description="Secure flag")
    http_only: bool = Field(default=False, description="HttpOnly flag")
    same_site: Optional[str] = Field(default=None, description="SameSite attribute (Strict, Lax, None)")

    @property
    def key(self) -> Tuple[str, str]:
        """Identity used for diffing: the value is never compared."""
        return (self.name, self.domain)

    @property
    def is_session(self) -> bool:
        return self.expires is None

    @classmethod
    def from_playwright_cookie(cls, cookie: dict) -> "CookieRecord":
        """Create CookieRecord from Playwright cookie object."""
        expires = cookie.get('expires', -1)
        return cls(
            name=cookie.get('name', ''),
            value=cookie.get('value'),
            domain=cookie.get('domain', ''),
            path=cookie.get('path', '/'),
            expires=datetime.fromtimestamp(expires) if expires not in (None, -1) else None,
            secure=cookie.get('secure', False),
            http_only=cookie.get('httpOnly', False),
            same_site=cookie.get('sameSite'),
        )
