"""Frozen dataclasses for configuration and YAML loader with env-var interpolation."""

from __future__ import annotations

import os
import re
import types
import typing
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigError
from .prometheus.targets import parse_role_rules

DEFAULT_CONFIG_PATH = "/etc/gke-discoverer.yml"

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _interpolate_env(value: str) -> str:
    """Replace ${ENV_VAR} placeholders with environment variable values."""

    def _replace(match: re.Match) -> str:
        env_key = match.group(1)
        env_val = os.environ.get(env_key)
        if env_val is None:
            raise ConfigError(f"Environment variable '{env_key}' is not set")
        return env_val

    return _ENV_PATTERN.sub(_replace, value)


def _walk_and_interpolate(obj: Any) -> Any:
    """Recursively interpolate env vars in strings throughout a nested structure."""
    if isinstance(obj, str):
        return _interpolate_env(obj)
    if isinstance(obj, dict):
        return {k: _walk_and_interpolate(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_walk_and_interpolate(v) for v in obj]
    return obj


@dataclass(frozen=True)
class GCPConfig:
    project: str = ""


@dataclass(frozen=True)
class PrometheusConfig:
    config_file: str = "/etc/prometheus/prometheus.yml"
    certificate_store: str = "/etc/prometheus/kube_sd_certs"
    base_url: str = "http://localhost:9090"
    reload_path: str = "/-/reload"
    timeout: int = 10
    verify_ssl: bool = True
    roles: dict[str, list] | None = None  # None = built-in relabel table


@dataclass(frozen=True)
class PollingConfig:
    interval_seconds: int = 30
    jitter_seconds: int = 0
    max_backoff_seconds: int = 300
    backoff_base_seconds: int = 5


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    format: str = "json"  # "json" or "text"


@dataclass(frozen=True)
class AppConfig:
    gcp: GCPConfig = field(default_factory=GCPConfig)
    prometheus: PrometheusConfig = field(default_factory=PrometheusConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _get_dataclass_type(ft: Any) -> type | None:
    """Return the underlying dataclass type from a type annotation (handles Optional/X|None)."""
    if isinstance(ft, type) and hasattr(ft, "__dataclass_fields__"):
        return ft
    if isinstance(ft, types.UnionType):
        args = [a for a in ft.__args__ if a is not type(None)]
        if len(args) == 1 and isinstance(args[0], type) and hasattr(args[0], "__dataclass_fields__"):
            return args[0]
    origin = getattr(ft, "__origin__", None)
    if origin is typing.Union:
        args = [a for a in ft.__args__ if a is not type(None)]
        if len(args) == 1 and isinstance(args[0], type) and hasattr(args[0], "__dataclass_fields__"):
            return args[0]
    return None


def _build_nested(cls: type, data: dict[str, Any]) -> Any:
    """Construct a frozen dataclass, recursively building nested dataclass fields."""
    if not isinstance(data, dict):
        return data
    hints = typing.get_type_hints(cls)
    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        if key not in hints:
            continue
        dc_type = _get_dataclass_type(hints[key])
        if dc_type is not None and isinstance(value, dict):
            kwargs[key] = _build_nested(dc_type, value)
        elif dc_type is not None and value is None:
            # An empty YAML section ("gcp:") keeps the section defaults
            continue
        else:
            kwargs[key] = value
    return cls(**kwargs)


def load_config(path: str | Path) -> AppConfig:
    """Load and validate configuration from a YAML file."""
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Configuration file is not valid YAML: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError("Configuration file must be a YAML mapping")

    raw = _walk_and_interpolate(raw)
    try:
        config = _build_nested(AppConfig, raw)
    except TypeError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
    _validate(config)
    return config


def _validate(config: AppConfig) -> None:
    """Validate configuration values."""
    if not config.gcp.project:
        raise ConfigError("gcp.project is required")

    if config.polling.interval_seconds < 5:
        raise ConfigError("polling.interval_seconds must be >= 5")

    if config.polling.jitter_seconds < 0:
        raise ConfigError("polling.jitter_seconds must be >= 0")

    if not config.prometheus.config_file:
        raise ConfigError("prometheus.config_file must not be empty")

    if not config.prometheus.certificate_store:
        raise ConfigError("prometheus.certificate_store must not be empty")

    if not config.prometheus.base_url.startswith(("http://", "https://")):
        raise ConfigError("prometheus.base_url must be an http:// or https:// URL")

    if config.logging.format not in ("json", "text"):
        raise ConfigError("logging.format must be 'json' or 'text'")

    if config.prometheus.roles is not None:
        # Raises ConfigError for unknown roles or malformed rule lists
        parse_role_rules(config.prometheus.roles)
