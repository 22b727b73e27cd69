"""
load the settings from defaults, an optional config.yaml and the environment
"""

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

MIN_TIMEOUT = 8.0
MAX_TIMEOUT = 30.0


@dataclass(frozen=True)
class Settings:
    search_url: str = "https://www.duksan.co.kr/product/coa_result.php"
    page_url_template: str = "https://www.duksan.com/coa/{lot_no}"
    timeout: float = 15.0
    retries: int = 1
    retry_backoff: float = 0.5
    user_agent: str = DEFAULT_USER_AGENT
    proxy_enabled: bool = False
    proxy_url: str = "https://api.allorigins.win/raw"
    allow_canned_fallback: bool = False
    lot_pattern: str = r"^[A-Za-z0-9]+$"
    lot_max_length: int = 32
    cache_max_age: int = 300
    environment: str = "production"
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


# Environment variable mapping
ENV_MAPPINGS = {
    "COA_SEARCH_URL": "search_url",
    "COA_PAGE_URL_TEMPLATE": "page_url_template",
    "COA_TIMEOUT": "timeout",
    "COA_RETRIES": "retries",
    "COA_RETRY_BACKOFF": "retry_backoff",
    "COA_USER_AGENT": "user_agent",
    "COA_PROXY_ENABLED": "proxy_enabled",
    "COA_PROXY_URL": "proxy_url",
    "COA_ALLOW_CANNED_FALLBACK": "allow_canned_fallback",
    "COA_LOT_PATTERN": "lot_pattern",
    "COA_LOT_MAX_LENGTH": "lot_max_length",
    "COA_CACHE_MAX_AGE": "cache_max_age",
    "COA_ENV": "environment",
    "LOG_LEVEL": "log_level",
}


def _convert_env_value(value: str):
    """Convert environment variable string to appropriate Python type."""
    if value.lower() in ("true", "false"):
        return value.lower() == "true"

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    return value


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ValueError(f"Configuration file not found: {path}")
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in configuration file: {e}")

    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must hold a mapping: {path}")
    return data


def _coerce(name: str, value):
    """Fit a raw override to the type of the matching Settings field."""
    default = getattr(Settings, name)
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.lower() in ("1", "true", "yes", "on")
        return bool(value)
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    return str(value)


def load_settings(path: Optional[str] = None, env: Optional[Dict[str, str]] = None) -> Settings:
    """Build Settings from code defaults, a YAML file and the environment.

    Args:
        path: YAML file to read. Falls back to $COA_CONFIG_FILE; no file is
            read when neither is set.
        env: Mapping to read overrides from. Defaults to os.environ after
            loading a .env file.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    known = {f.name for f in fields(Settings)}
    overrides: Dict[str, Any] = {}

    config_path = path or env.get("COA_CONFIG_FILE")
    if config_path:
        for key, value in _load_yaml(Path(config_path)).items():
            if key in known:
                overrides[key] = value

    for env_var, name in ENV_MAPPINGS.items():
        env_value = env.get(env_var)
        if env_value is not None:
            overrides[name] = _convert_env_value(env_value)

    settings = replace(Settings(), **{k: _coerce(k, v) for k, v in overrides.items()})

    timeout = min(max(settings.timeout, MIN_TIMEOUT), MAX_TIMEOUT)
    if timeout != settings.timeout:
        settings = replace(settings, timeout=timeout)
    return settings
