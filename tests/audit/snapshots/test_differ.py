"""Unit tests for snapshot diffs."""

from consent_sentinel.audit.models.capture import CookieRecord
from consent_sentinel.audit.snapshots.differ import diff_cookies, diff_data_layer, diff_local_storage


class TestDiffDataLayer:
    """Test append-only dataLayer diffs."""

    def test_returns_appended_tail(self):
        before = [{"event": "gtm.js"}]
        after = [{"event": "gtm.js"}, {"event": "consent_update"}, {"event": "page_view"}]

        assert diff_data_layer(before, after) == [{"event": "consent_update"}, {"event": "page_view"}]

    def test_entries_not_compared_by_content(self):
        before = [{"event": "a"}, {"event": "b"}]
        after = [{"event": "changed"}, {"event": "b"}, {"event": "a"}]

        assert diff_data_layer(before, after) == [{"event": "a"}]

    def test_append_property(self):
        base = [{"event": "gtm.js"}, {"event": "gtm.dom"}]
        for appended in ([], [{"event": "x"}], [{"event": "x"}, ["consent", "update"], 3]):
            assert diff_data_layer(base, base + appended) == appended

    def test_missing_sides(self):
        assert diff_data_layer(None, [{"event": "a"}]) == [{"event": "a"}]
        assert diff_data_layer([{"event": "a"}], None) == []

    def test_shrunk_data_layer(self):
        assert diff_data_layer([1, 2, 3], [1]) == []


class TestDiffCookies:
    """Test cookie key-set diffs."""

    def test_new_cookie_by_name_and_domain(self):
        before = [CookieRecord(name="session", domain="shop.example.com", value="a")]
        after = [
            CookieRecord(name="session", domain="shop.example.com", value="b"),
            CookieRecord(name="_ga", domain=".example.com", value="GA1.1"),
            CookieRecord(name="session", domain=".example.com", value="a"),
        ]

        new = diff_cookies(before, after)

        assert [(c.name, c.domain) for c in new] == [("_ga", ".example.com"), ("session", ".example.com")]

    def test_no_change(self):
        cookies = [CookieRecord(name="a", domain="example.com")]

        assert diff_cookies(cookies, cookies) == []


class TestDiffLocalStorage:
    """Test localStorage key-set diffs."""

    def test_new_keys_only(self):
        before = {"cart": "[]"}
        after = {"cart": "[1]", "consent": "granted"}

        assert diff_local_storage(before, after) == {"consent": "granted"}

    def test_empty(self):
        assert diff_local_storage(None, None) == {}
