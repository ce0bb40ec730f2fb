"""Frozen dataclasses for configuration and YAML loader with env-var interpolation."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigError

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
    if isinstance(obj, str):
        return _interpolate_env(obj)
    if isinstance(obj, dict):
        return {k: _walk_and_interpolate(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_walk_and_interpolate(v) for v in obj]
    return obj


@dataclass(frozen=True)
class LinodeConfig:
    token: str = ""
    api_url: str = "https://api.linode.com/v4"
    region: str = ""
    timeout: int = 30
    verify_ssl: bool = True
    user_agent: str = "nodebalancer-reconciler"


@dataclass(frozen=True)
class KubernetesConfig:
    kubeconfig: str | None = None  # None falls back to ~/.kube/config
    context: str | None = None
    in_cluster: bool = False
    request_timeout: int = 10


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    format: str = "json"  # "json" or "text"


@dataclass(frozen=True)
class AppConfig:
    cluster_name: str = "kubernetes"
    linode: LinodeConfig = field(default_factory=LinodeConfig)
    kubernetes: KubernetesConfig = field(default_factory=KubernetesConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


_SECTIONS: dict[str, type] = {
    "linode": LinodeConfig,
    "kubernetes": KubernetesConfig,
    "logging": LoggingConfig,
}


def _build(cls: type, data: dict[str, Any]) -> Any:
    """Construct a frozen dataclass, dropping keys it does not declare."""
    known = cls.__dataclass_fields__
    return cls(**{k: v for k, v in data.items() if k in known})


def load_config(path: str | Path) -> AppConfig:
    """Load and validate configuration from a YAML file."""
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Configuration file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ConfigError("Configuration file must be a YAML mapping")

    raw = _walk_and_interpolate(raw)
    kwargs: dict[str, Any] = {}
    for key, value in raw.items():
        if key in _SECTIONS:
            if not isinstance(value, dict):
                raise ConfigError(f"{key} must be a mapping")
            kwargs[key] = _build(_SECTIONS[key], value)
        elif key == "cluster_name":
            kwargs[key] = str(value)

    config = AppConfig(**kwargs)
    _validate(config)
    return config


def _validate(config: AppConfig) -> None:
    if not config.linode.token:
        raise ConfigError("linode.token is required")

    if not config.linode.region:
        raise ConfigError("linode.region is required")

    if config.linode.timeout <= 0:
        raise ConfigError("linode.timeout must be > 0")

    if config.kubernetes.request_timeout <= 0:
        raise ConfigError("kubernetes.request_timeout must be > 0")

    if config.logging.format not in ("json", "text"):
        raise ConfigError("logging.format must be 'json' or 'text'")
