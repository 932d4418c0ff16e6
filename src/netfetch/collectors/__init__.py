"""
Cluster access for Netfetch.

ClusterClient is the interface the coverage engine consumes;
KubernetesClusterClient implements it on the official kubernetes client.
"""

from netfetch.collectors.base import (
    CILIUM_CLUSTERWIDE_NETWORK_POLICY,
    CILIUM_NETWORK_POLICY,
    ClusterClient,
    CustomResource,
)
from netfetch.collectors.k8s_network import KubernetesClusterClient

__all__ = [
    "CILIUM_CLUSTERWIDE_NETWORK_POLICY",
    "CILIUM_NETWORK_POLICY",
    "ClusterClient",
    "CustomResource",
    "KubernetesClusterClient",
]
