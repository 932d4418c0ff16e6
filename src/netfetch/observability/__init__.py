"""
Observability for Netfetch.

Logging setup and the NetfetchLogger wrapper used for scan events.
"""

from netfetch.observability.logging import (
    HumanReadableFormatter,
    NetfetchLogger,
    StructuredFormatter,
    configure_logging,
    get_logger,
)

__all__ = [
    "HumanReadableFormatter",
    "NetfetchLogger",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
]
