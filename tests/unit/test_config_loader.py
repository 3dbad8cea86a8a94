"""Unit tests for audit settings loading."""

import pytest
import yaml

from consent_sentinel.audit.config.loader import ENV_VAR, get_audit_settings, load_audit_settings
from consent_sentinel.audit.config.settings import AuditSettings, TimingConfig
from consent_sentinel.audit.errors import ConfigLoadError


@pytest.fixture
def config_file(tmp_path):
    """Write a config file and return its path."""
    def _write(data):
        path = tmp_path / "audit.yaml"
        path.write_text(yaml.safe_dump(data) if not isinstance(data, str) else data)
        return str(path)
    return _write


class TestSettings:
    """Tests for settings defaults and validation."""

    def test_defaults(self):
        settings = AuditSettings()

        assert settings.timing.settle_ms == 3000
        assert settings.timing.probe_timeout_ms == 3000
        assert settings.timing.scroll_offset_px == 400
        assert settings.transport.min_param_length == 10
        assert "/gtag/js" in settings.transport.allowed_prefixes
        assert settings.consent_mode.params == ["gcs", "gcd"]
        assert "view_item" in settings.funnel.expected_events["product"]

    def test_invalid_wait_until(self):
        with pytest.raises(ValueError):
            TimingConfig(wait_until="whenever")


class TestLoadAuditSettings:
    """Tests for load_audit_settings."""

    def test_load_file(self, config_file):
        path = config_file({"timing": {"settle_ms": 500}, "learn_manual_cmp": False})

        settings = load_audit_settings(path, environment="production")

        assert settings.timing.settle_ms == 500
        assert settings.timing.probe_timeout_ms == 3000
        assert settings.learn_manual_cmp is False

    def test_environment_overrides_deep_merge(self, config_file):
        path = config_file({
            "timing": {"settle_ms": 3000, "probe_timeout_ms": 2000},
            "environments": {"ci": {"timing": {"settle_ms": 100}, "browser": {"headless": True}}},
        })

        settings = load_audit_settings(path, environment="ci")

        assert settings.timing.settle_ms == 100
        assert settings.timing.probe_timeout_ms == 2000
        assert settings.browser.headless is True

    def test_environment_from_variable(self, config_file, monkeypatch):
        path = config_file({"environments": {"development": {"timing": {"settle_ms": 1}}}})
        monkeypatch.setenv(ENV_VAR, "development")

        assert load_audit_settings(path).timing.settle_ms == 1

    def test_explicit_overrides(self, config_file):
        path = config_file({"timing": {"settle_ms": 10}})

        settings = load_audit_settings(path, overrides={"timing": {"click_timeout_ms": 5}})

        assert settings.timing.settle_ms == 10
        assert settings.timing.click_timeout_ms == 5

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigLoadError, match="not found"):
            load_audit_settings(str(tmp_path / "missing.yaml"))

    def test_invalid_yaml(self, config_file):
        with pytest.raises(ConfigLoadError, match="parse"):
            load_audit_settings(config_file("timing: [unclosed"))

    def test_not_a_mapping(self, config_file):
        with pytest.raises(ConfigLoadError, match="dictionary"):
            load_audit_settings(config_file("- a\n- b\n"))

    def test_validation_error(self, config_file):
        with pytest.raises(ConfigLoadError, match="Invalid audit configuration"):
            load_audit_settings(config_file({"browser": {"engine": "netscape"}}))

    def test_empty_file(self, config_file):
        assert load_audit_settings(config_file("")).timing.settle_ms == 3000

    def test_bundled_config_loads(self):
        settings = get_audit_settings(reload=True)

        assert isinstance(settings, AuditSettings)
        assert "/gtm.js" in settings.transport.allowed_prefixes
