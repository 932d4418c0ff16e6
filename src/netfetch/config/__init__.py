"""
Configuration management for Netfetch.

Provides configuration classes for cluster access, scanning, the
protection cache and logging.
"""

from netfetch.config.scan_config import (
    CacheConfig,
    LoggingConfig,
    ScanConfiguration,
    create_default_config,
    load_config_from_env,
)

__all__ = [
    "CacheConfig",
    "LoggingConfig",
    "ScanConfiguration",
    "create_default_config",
    "load_config_from_env",
]
