"""Configuration loader for audit settings with YAML support and environment overrides.

This module loads ``AuditSettings`` from a YAML file. An ``environments``
section may override any key per environment; the environment is chosen by
argument or the ``CONSENT_SENTINEL_ENV`` variable.
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from pydantic import ValidationError

from ..errors import ConfigLoadError
from .settings import AuditSettings


logger = logging.getLogger(__name__)

ENV_VAR = "CONSENT_SENTINEL_ENV"
DEFAULT_CONFIG_PATH = Path(__file__).parents[3] / "config" / "audit.yaml"

_settings: Optional[AuditSettings] = None


def load_audit_settings(
    config_path: Optional[str] = None,
    environment: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None
) -> AuditSettings:
    """Load AuditSettings from YAML file with environment overrides.

    Args:
        config_path: Path to YAML config file. If None, uses config/audit.yaml
            and falls back to built-in defaults when that file is absent.
        environment: Environment name for override selection. If None, uses ENV var.
        overrides: Additional configuration overrides to apply.

    Returns:
        Validated AuditSettings instance.

    Raises:
        ConfigLoadError: If configuration loading or validation fails.
    """
    if config_path is None:
        path = DEFAULT_CONFIG_PATH
        if not path.exists():
            logger.debug(f"No config at {path}, using defaults")
            config_data: Dict[str, Any] = {}
        else:
            config_data = _read_yaml(path)
    else:
        path = Path(config_path)
        if not path.exists():
            raise ConfigLoadError(f"Config file not found: {path}")
        config_data = _read_yaml(path)

    if environment is None:
        environment = os.getenv(ENV_VAR, "production")

    environments = config_data.pop("environments", None) or {}
    if environment in environments:
        config_data = _deep_merge(config_data, environments[environment] or {})
        logger.info(f"Applied environment overrides for: {environment}")

    if overrides:
        config_data = _deep_merge(config_data, overrides)
        logger.debug("Applied additional configuration overrides")

    try:
        return AuditSettings(**config_data)
    except ValidationError as e:
        raise ConfigLoadError(f"Invalid audit configuration: {e}")


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Failed to parse YAML config: {e}")
    except IOError as e:
        raise ConfigLoadError(f"Failed to read config file: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigLoadError("Config file must contain a YAML dictionary")
    return data


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence.

    Args:
        base: Base configuration dictionary.
        override: Override values to merge in.

    Returns:
        Merged configuration dictionary.
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def get_audit_settings(reload: bool = False) -> AuditSettings:
    """Get global audit settings instance, loading it on first use."""
    global _settings
    if _settings is None or reload:
        _settings = load_audit_settings()
    return _settings
