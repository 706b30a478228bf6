"""Configuration loading and validation for the OpenRouter bridge.

Resolution order (first wins):
    1. explicit keyword overrides passed to ``load_config``
    2. the process environment
    3. ``$OPENROUTER_BRIDGE_HOME/.env`` (never overrides existing variables)
    4. top-level scalar keys of ``$OPENROUTER_BRIDGE_HOME/config.yaml``
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import yaml
from dotenv import dotenv_values

from openrouter_constants import (
    BRIDGE_HOME_ENV,
    CATALOG_TTL_SECONDS,
    DEFAULT_APP_TITLE,
    DEFAULT_BRIDGE_HOME,
    DEFAULT_HTTP_REFERER,
    DEFAULT_MAX_CONTEXT_TOKENS,
    DEFAULT_REQUEST_TIMEOUT,
    OPENROUTER_BASE_URL,
)

logger = logging.getLogger(__name__)

EnvGetter = Callable[[str], Optional[str]]


class ConfigValidationError(Exception):
    """Raised when configuration is invalid."""
    pass


@dataclass(frozen=True)
class BridgeConfig:
    api_key: str = ""
    base_url: str = OPENROUTER_BASE_URL
    default_model: Optional[str] = None
    max_context_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS
    catalog_ttl: int = CATALOG_TTL_SECONDS
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    http_referer: str = DEFAULT_HTTP_REFERER
    app_title: str = DEFAULT_APP_TITLE

    def validate(self) -> "BridgeConfig":
        if not self.api_key:
            raise ConfigValidationError("OPENROUTER_API_KEY environment variable is required")
        if not self.base_url.startswith(("http://", "https://")):
            raise ConfigValidationError(f"Invalid OPENROUTER_BASE_URL: {self.base_url}")
        if self.max_context_tokens <= 0:
            raise ConfigValidationError("OPENROUTER_MAX_CONTEXT_TOKENS must be positive")
        return self


def bridge_home(env_get: EnvGetter = os.getenv) -> Path:
    return Path(os.path.expanduser(env_get(BRIDGE_HOME_ENV) or DEFAULT_BRIDGE_HOME))


def _read_dotenv(path: Path) -> Dict[str, str]:
    if not path.exists():
        return {}
    try:
        values = dotenv_values(path, encoding="utf-8")
    except UnicodeDecodeError:
        values = dotenv_values(path, encoding="latin-1")
    return {k: v for k, v in values.items() if v is not None}


def _read_yaml(path: Path) -> Dict[str, str]:
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Ignoring unreadable config file %s: %s", path, e)
        return {}
    if not isinstance(cfg, dict):
        logger.warning("Ignoring config file %s: expected a mapping", path)
        return {}
    return {
        str(k): str(v)
        for k, v in cfg.items()
        if isinstance(v, (str, int, float, bool))
    }


def _as_int(name: str, raw: Optional[str], default: int) -> int:
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s value: %s, using default %s", name, raw, default)
        return default


def _as_float(name: str, raw: Optional[str], default: float) -> float:
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid %s value: %s, using default %s", name, raw, default)
        return default


def load_config(env_get: EnvGetter = os.getenv, **overrides: Any) -> BridgeConfig:
    """Build a BridgeConfig from overrides, environment, .env and config.yaml.

    Does not validate; call ``.validate()`` before using the config to talk
    to OpenRouter.
    """
    home = bridge_home(env_get)
    file_values = _read_yaml(home / "config.yaml")
    file_values.update(_read_dotenv(home / ".env"))

    def get(key: str) -> Optional[str]:
        value = env_get(key)
        if value is None or value == "":
            value = file_values.get(key)
        return value.strip() if isinstance(value, str) else value

    values: Dict[str, Any] = {
        "api_key": get("OPENROUTER_API_KEY") or "",
        "base_url": (get("OPENROUTER_BASE_URL") or OPENROUTER_BASE_URL).rstrip("/"),
        "default_model": get("OPENROUTER_DEFAULT_MODEL") or None,
        "max_context_tokens": _as_int(
            "OPENROUTER_MAX_CONTEXT_TOKENS", get("OPENROUTER_MAX_CONTEXT_TOKENS"), DEFAULT_MAX_CONTEXT_TOKENS
        ),
        "catalog_ttl": _as_int("OPENROUTER_CATALOG_TTL", get("OPENROUTER_CATALOG_TTL"), CATALOG_TTL_SECONDS),
        "request_timeout": _as_float(
            "OPENROUTER_REQUEST_TIMEOUT", get("OPENROUTER_REQUEST_TIMEOUT"), DEFAULT_REQUEST_TIMEOUT
        ),
        "http_referer": get("OPENROUTER_HTTP_REFERER") or DEFAULT_HTTP_REFERER,
        "app_title": get("OPENROUTER_APP_TITLE") or DEFAULT_APP_TITLE,
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return BridgeConfig(**values)
