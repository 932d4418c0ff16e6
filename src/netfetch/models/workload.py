"""
Workload data models for Netfetch.

This module defines the Namespace and Pod records the coverage engine
works on, and the fixed set of system namespaces that are never scanned.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Namespaces owned by the control plane or by cluster add-ons
SYSTEM_NAMESPACES = frozenset(
    {
        "kube-system",
        "kube-public",
        "kube-node-lease",
        "tigera-operator",
        "gatekeeper-system",
        "calico-system",
    }
)


def is_system_namespace(name: str, system_namespaces: frozenset[str] | set[str] | None = None) -> bool:
    """Return True if the namespace is system-owned and must not be scanned."""
    denylist = SYSTEM_NAMESPACES if system_namespaces is None else system_namespaces
    return name in denylist


class PodPhase(Enum):
    """Pod lifecycle phase as reported by the API server."""

    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"

    @classmethod
    def from_str(cls, value: str | None) -> PodPhase:
        """Parse a phase string, mapping anything unrecognised to UNKNOWN."""
        for phase in cls:
            if phase.value == value:
                return phase
        return cls.UNKNOWN


@dataclass(frozen=True)
class Namespace:
    """A cluster namespace."""

    name: str

    @property
    def is_system(self) -> bool:
        """Return True if this namespace is on the system denylist."""
        return is_system_namespace(self.name)


@dataclass(frozen=True)
class Pod:
    """
    A scheduled workload.

    Attributes:
        namespace: Namespace the pod lives in
        name: Pod name, unique within the namespace
        labels: Pod labels
        phase: Lifecycle phase; only running pods are evaluated
        ip: Pod IP, if one has been assigned
    """

    namespace: str
    name: str
    labels: dict[str, str] = field(default_factory=dict)
    phase: PodPhase = PodPhase.RUNNING
    ip: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        """Return the (namespace, name) identity of the pod."""
        return (self.namespace, self.name)

    @property
    def is_running(self) -> bool:
        """Return True if the pod is in the Running phase."""
        return self.phase == PodPhase.RUNNING

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "namespace": self.namespace,
            "name": self.name,
            "labels": dict(self.labels),
            "phase": self.phase.value,
            "ip": self.ip,
        }
