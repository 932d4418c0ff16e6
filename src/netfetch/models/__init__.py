"""
Data models for Netfetch.

- Namespace, Pod: the workloads being evaluated
- Policy: a network policy normalized from either dialect
- ScanResult: the outcome of a scan, handed to the CLI or a dashboard
"""

from netfetch.models.policy import (
    CILIUM_NAMESPACE_LABEL,
    Dialect,
    MatchExpression,
    Policy,
    PolicyScope,
)
from netfetch.models.result import (
    CLUSTER_WIDE,
    PodRef,
    ScanResult,
    UnprotectedPod,
)
from netfetch.models.workload import (
    SYSTEM_NAMESPACES,
    Namespace,
    Pod,
    PodPhase,
    is_system_namespace,
)

__all__ = [
    # Policy module
    "CILIUM_NAMESPACE_LABEL",
    "Dialect",
    "MatchExpression",
    "Policy",
    "PolicyScope",
    # Result module
    "CLUSTER_WIDE",
    "PodRef",
    "ScanResult",
    "UnprotectedPod",
    # Workload module
    "SYSTEM_NAMESPACES",
    "Namespace",
    "Pod",
    "PodPhase",
    "is_system_namespace",
]
