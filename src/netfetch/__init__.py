"""
Netfetch - Kubernetes network policy coverage scanner

Answers one question for a cluster: which running pods are not covered by
any network policy?

Key Features:
- Native NetworkPolicy and Cilium (namespaced and cluster-wide) dialects
- A 1-100 security score per scan
- Optional interactive remediation with default deny-all policies
- Target lookup: which pods does a given policy select?

Quick Start:
    >>> from netfetch.collectors import KubernetesClusterClient
    >>> from netfetch.scanner import ScanMode, ScanOrchestrator
    >>>
    >>> cluster = KubernetesClusterClient.connect()
    >>> result = ScanOrchestrator(cluster).scan(mode=ScanMode.REPORT)
    >>> print(f"{result.unprotected_count} unprotected pods, score {result.score}/100")
"""

from __future__ import annotations

__version__ = "0.1.0"

from netfetch.errors import (
    ConfigurationError,
    FetchError,
    NamespaceNotFoundError,
    NetfetchError,
    PolicyDecodeError,
    PolicyNotFoundError,
    RemediationError,
    SelectorParseError,
)
from netfetch.models import (
    Dialect,
    Namespace,
    Pod,
    PodRef,
    Policy,
    PolicyScope,
    ScanResult,
)
from netfetch.coverage import ProtectionCache, calculate_score
from netfetch.scanner import (
    RemediationAction,
    ScanMode,
    ScanOrchestrator,
    TargetPolicyLookup,
)

__all__ = [
    "__version__",
    # Errors
    "ConfigurationError",
    "FetchError",
    "NamespaceNotFoundError",
    "NetfetchError",
    "PolicyDecodeError",
    "PolicyNotFoundError",
    "RemediationError",
    "SelectorParseError",
    # Models
    "Dialect",
    "Namespace",
    "Pod",
    "PodRef",
    "Policy",
    "PolicyScope",
    "ScanResult",
    # Engine
    "ProtectionCache",
    "calculate_score",
    "RemediationAction",
    "ScanMode",
    "ScanOrchestrator",
    "TargetPolicyLookup",
]
