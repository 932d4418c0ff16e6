"""
Scan result model for Netfetch.

ScanResult is the record handed to the CLI and to any dashboard layer.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from netfetch.models.policy import Dialect

# Marker used in namespaces_scanned for the cluster-wide pass
CLUSTER_WIDE = "cluster-wide"


@dataclass(frozen=True)
class PodRef:
    """A (namespace, name, ip) row describing one pod."""

    namespace: str
    name: str
    ip: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        """Return the (namespace, name) identity of the pod."""
        return (self.namespace, self.name)

    def as_row(self) -> list[str]:
        """Return the pod as a table row, with N/A for a missing IP."""
        return [self.namespace, self.name, self.ip or "N/A"]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"namespace": self.namespace, "name": self.name, "ip": self.ip}


# Unprotected pods are reported with the same shape
UnprotectedPod = PodRef


@dataclass
class ScanResult:
    """
    Outcome of one scan of one dialect.

    Attributes:
        dialect: Policy dialect that was scanned
        namespaces_scanned: Namespaces evaluated, in discovery order
        denied_namespaces: Namespaces where the user declined remediation
        unprotected_pods: Running pods not covered by any policy
        policy_changes_made: True if a deny-all policy was applied
        user_denied_policies: True if the user declined any remediation
        all_pods_protected: True if the cluster-wide pass covered every pod
        score: Security score in [1, 100]
        skipped_namespaces: Namespaces dropped after a fetch error
        remediation_errors: Messages of failed remediation attempts
        cancelled: True if the scan stopped early on request
    """

    dialect: Dialect = Dialect.NATIVE
    namespaces_scanned: list[str] = field(default_factory=list)
    denied_namespaces: list[str] = field(default_factory=list)
    unprotected_pods: list[PodRef] = field(default_factory=list)
    policy_changes_made: bool = False
    user_denied_policies: bool = False
    all_pods_protected: bool = False
    score: int = 1
    skipped_namespaces: list[str] = field(default_factory=list)
    remediation_errors: list[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def unprotected_count(self) -> int:
        """Return the number of distinct unprotected pods."""
        return len({pod.key for pod in self.unprotected_pods})

    def add_unprotected(self, pod: PodRef) -> bool:
        """Record an unprotected pod once. Returns False for a duplicate."""
        if any(existing.key == pod.key for existing in self.unprotected_pods):
            return False
        self.unprotected_pods.append(pod)
        return True

    def unprotected_in(self, namespace: str) -> list[PodRef]:
        """Return the unprotected pods of one namespace."""
        return [pod for pod in self.unprotected_pods if pod.namespace == namespace]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "dialect": self.dialect.value,
            "namespaces_scanned": list(self.namespaces_scanned),
            "denied_namespaces": list(self.denied_namespaces),
            "unprotected_pods": [pod.to_dict() for pod in self.unprotected_pods],
            "policy_changes_made": self.policy_changes_made,
            "user_denied_policies": self.user_denied_policies,
            "all_pods_protected": self.all_pods_protected,
            "score": self.score,
            "skipped_namespaces": list(self.skipped_namespaces),
            "remediation_errors": list(self.remediation_errors),
            "cancelled": self.cancelled,
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)
