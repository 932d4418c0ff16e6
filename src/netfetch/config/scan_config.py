"""
Scan configuration for Netfetch.

Provides configuration for cluster access, the system namespace
denylist, concurrency, the protection cache and logging.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from netfetch.errors import ConfigurationError
from netfetch.models import SYSTEM_NAMESPACES

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass
class CacheConfig:
    """Configuration for the protection cache."""

    ttl_seconds: float | None = None  # None = never expire
    max_entries: int | None = None  # None = unbounded

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "ttl_seconds": self.ttl_seconds,
            "max_entries": self.max_entries,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CacheConfig:
        """Create from dictionary."""
        return cls(
            ttl_seconds=data.get("ttl_seconds"),
            max_entries=data.get("max_entries"),
        )


@dataclass
class LoggingConfig:
    """Configuration for log output."""

    level: str = "WARNING"
    format: str = "human"  # human or json

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"level": self.level, "format": self.format}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LoggingConfig:
        """Create from dictionary."""
        return cls(
            level=data.get("level", "WARNING"),
            format=data.get("format", "human"),
        )


@dataclass
class ScanConfiguration:
    """
    Complete scan configuration.

    Attributes:
        kubeconfig: Path to a kubeconfig file (None = client default)
        context: Kubernetes context to use
        in_cluster: Force in-cluster credentials (None = detect)
        system_namespaces: Namespaces that are never scanned
        max_workers: Namespaces evaluated concurrently
        request_timeout: Per-request API timeout in seconds
        cache: Protection cache settings
        logging: Log output settings
    """

    kubeconfig: str | None = None
    context: str | None = None
    in_cluster: bool | None = None
    system_namespaces: list[str] = field(default_factory=lambda: sorted(SYSTEM_NAMESPACES))
    max_workers: int = 1
    request_timeout: float | None = None
    cache: CacheConfig = field(default_factory=CacheConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            ConfigurationError: A value is out of range
        """
        if self.max_workers < 1:
            raise ConfigurationError(f"max_workers must be at least 1, got {self.max_workers}")
        if self.request_timeout is not None and self.request_timeout <= 0:
            raise ConfigurationError("request_timeout must be positive")
        if self.cache.ttl_seconds is not None and self.cache.ttl_seconds <= 0:
            raise ConfigurationError("cache.ttl_seconds must be positive")
        if self.cache.max_entries is not None and self.cache.max_entries <= 0:
            raise ConfigurationError("cache.max_entries must be positive")
        if self.logging.format not in ("human", "json"):
            raise ConfigurationError(f"unknown log format {self.logging.format!r}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "kubeconfig": self.kubeconfig,
            "context": self.context,
            "in_cluster": self.in_cluster,
            "system_namespaces": list(self.system_namespaces),
            "max_workers": self.max_workers,
            "request_timeout": self.request_timeout,
            "cache": self.cache.to_dict(),
            "logging": self.logging.to_dict(),
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScanConfiguration:
        """
        Create from dictionary.

        Raises:
            ConfigurationError: The data has the wrong shape or invalid values
        """
        if not isinstance(data, dict):
            raise ConfigurationError("configuration must be a mapping")

        try:
            system_namespaces = data.get("system_namespaces")
            config = cls(
                kubeconfig=data.get("kubeconfig"),
                context=data.get("context"),
                in_cluster=data.get("in_cluster"),
                system_namespaces=(
                    list(system_namespaces)
                    if system_namespaces is not None
                    else sorted(SYSTEM_NAMESPACES)
                ),
                max_workers=int(data.get("max_workers", 1)),
                request_timeout=(
                    float(data["request_timeout"])
                    if data.get("request_timeout") is not None
                    else None
                ),
                cache=CacheConfig.from_dict(data.get("cache") or {}),
                logging=LoggingConfig.from_dict(data.get("logging") or {}),
            )
        except (TypeError, ValueError, AttributeError) as e:
            raise ConfigurationError(f"invalid configuration: {e}") from e

        config.validate()
        return config

    @classmethod
    def from_json(cls, json_str: str) -> ScanConfiguration:
        """Create from JSON string."""
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def from_file(cls, path: str) -> ScanConfiguration:
        """
        Load configuration from a JSON or YAML file.

        Raises:
            ConfigurationError: The file cannot be read or parsed
        """
        path = os.path.expanduser(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                if path.endswith(".json"):
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigurationError(f"cannot read configuration file {path}: {e}") from e
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(f"cannot parse configuration file {path}: {e}") from e

        return cls.from_dict(data or {})

    def save(self, path: str) -> None:
        """Save configuration to a JSON or YAML file."""
        path = os.path.expanduser(path)
        Path(path).parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            if path.endswith(".json"):
                json.dump(self.to_dict(), f, indent=2)
            else:
                yaml.safe_dump(self.to_dict(), f, default_flow_style=False)


def _env_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


def _env_number(name: str, value: str, kind: type) -> Any:
    try:
        return kind(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from e


def load_config_from_env() -> ScanConfiguration:
    """
    Load configuration from environment variables.

    Environment variables:
        NETFETCH_CONFIG_FILE: Path to configuration file (other variables
            override values read from it)
        NETFETCH_KUBECONFIG: Path to kubeconfig (falls back to KUBECONFIG)
        NETFETCH_CONTEXT: Kubernetes context
        NETFETCH_IN_CLUSTER: Use in-cluster credentials (true/false)
        NETFETCH_MAX_WORKERS: Namespaces evaluated concurrently
        NETFETCH_SYSTEM_NAMESPACES: Comma-separated namespace denylist
        NETFETCH_CACHE_TTL: Protection cache TTL in seconds

    Returns:
        ScanConfiguration instance

    Raises:
        ConfigurationError: A variable holds an invalid value
    """
    config_file = os.getenv("NETFETCH_CONFIG_FILE")
    if config_file and os.path.exists(os.path.expanduser(config_file)):
        config = ScanConfiguration.from_file(config_file)
    else:
        config = ScanConfiguration()

    kubeconfig = os.getenv("NETFETCH_KUBECONFIG") or os.getenv("KUBECONFIG")
    if kubeconfig:
        config.kubeconfig = kubeconfig

    context = os.getenv("NETFETCH_CONTEXT")
    if context:
        config.context = context

    in_cluster = os.getenv("NETFETCH_IN_CLUSTER")
    if in_cluster:
        config.in_cluster = _env_bool("NETFETCH_IN_CLUSTER", in_cluster)

    max_workers = os.getenv("NETFETCH_MAX_WORKERS")
    if max_workers:
        config.max_workers = _env_number("NETFETCH_MAX_WORKERS", max_workers, int)

    system_namespaces = os.getenv("NETFETCH_SYSTEM_NAMESPACES")
    if system_namespaces:
        config.system_namespaces = [
            ns.strip() for ns in system_namespaces.split(",") if ns.strip()
        ]

    cache_ttl = os.getenv("NETFETCH_CACHE_TTL")
    if cache_ttl:
        config.cache.ttl_seconds = _env_number("NETFETCH_CACHE_TTL", cache_ttl, float)

    config.validate()
    return config


def create_default_config() -> ScanConfiguration:
    """
    Create a default scan configuration.

    Returns:
        ScanConfiguration with sequential scanning and an unbounded cache
    """
    return ScanConfiguration()
