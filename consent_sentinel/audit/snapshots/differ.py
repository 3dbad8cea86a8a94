"""Deltas between two point-in-time captures.

``window.dataLayer`` is treated as an append-only log, so its diff is the
tail past the previous length and entries are never compared by content.
Cookies and localStorage are diffed as key sets: a cookie whose value
changed is not new.
"""

from typing import Any, Dict, List, Optional, Sequence

from ..models.capture import CookieRecord


def diff_data_layer(before: Optional[Sequence[Any]], after: Optional[Sequence[Any]]) -> List[Any]:
    """Entries appended to ``after`` since ``before`` was taken."""
    before = before or []
    after = after or []
    return list(after[len(before):])


def diff_cookies(
    before: Optional[Sequence[CookieRecord]],
    after: Optional[Sequence[CookieRecord]]
) -> List[CookieRecord]:
    """Cookies in ``after`` whose (name, domain) is absent from ``before``."""
    before_keys = {cookie.key for cookie in before or []}
    return [cookie for cookie in after or [] if cookie.key not in before_keys]


def diff_local_storage(
    before: Optional[Dict[str, Any]],
    after: Optional[Dict[str, Any]]
) -> Dict[str, Any]:
    """Keys new in ``after``, with their ``after`` values."""
    before = before or {}
    return {key: value for key, value in (after or {}).items() if key not in before}
