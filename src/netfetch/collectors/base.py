"""
Cluster client interface for Netfetch.

The coverage engine talks to the cluster only through ClusterClient. The
production implementation is KubernetesClusterClient; tests use an
in-memory implementation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from netfetch.models import Dialect, Namespace, Pod


@dataclass(frozen=True)
class CustomResource:
    """Group/version/plural of a custom policy resource."""

    group: str
    version: str
    plural: str
    kind: str

    @property
    def api_version(self) -> str:
        """Return the apiVersion string for manifests."""
        return f"{self.group}/{self.version}"


CILIUM_NETWORK_POLICY = CustomResource(
    group="cilium.io",
    version="v2",
    plural="ciliumnetworkpolicies",
    kind="CiliumNetworkPolicy",
)

CILIUM_CLUSTERWIDE_NETWORK_POLICY = CustomResource(
    group="cilium.io",
    version="v2",
    plural="ciliumclusterwidenetworkpolicies",
    kind="CiliumClusterwideNetworkPolicy",
)


class ClusterClient(ABC):
    """
    Abstract read/create access to the cluster.

    Read failures raise FetchError; a missing namespace raises
    NamespaceNotFoundError; a failed create raises RemediationError.
    """

    @abstractmethod
    def list_namespaces(self) -> list[Namespace]:
        """List every namespace in the cluster."""

    @abstractmethod
    def get_namespace(self, name: str) -> Namespace:
        """Fetch one namespace, raising NamespaceNotFoundError if absent."""

    @abstractmethod
    def list_pods(self, namespace: str = "") -> list[Pod]:
        """List pods in a namespace, or in all namespaces for ""."""

    @abstractmethod
    def list_policies(self, dialect: Dialect, namespace: str) -> list[dict[str, Any]]:
        """List raw namespaced policy manifests of a dialect."""

    @abstractmethod
    def list_cluster_wide_policies(self, dialect: Dialect) -> list[dict[str, Any]]:
        """List raw cluster-scoped policy manifests of a dialect."""

    @abstractmethod
    def create_policy(
        self,
        dialect: Dialect,
        manifest: dict[str, Any],
        namespace: str | None = None,
    ) -> dict[str, Any]:
        """Create a policy; namespace None creates a cluster-scoped one."""
