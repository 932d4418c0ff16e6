"""
Remediation: default deny-all policies.

Builds a policy with an empty selector and no ingress/egress rules for a
namespace or for the whole cluster, and submits it through the cluster
client. There is no retry and no rollback.
"""

from __future__ import annotations

import logging
from typing import Any

from netfetch.collectors.base import (
    CILIUM_CLUSTERWIDE_NETWORK_POLICY,
    CILIUM_NETWORK_POLICY,
    ClusterClient,
)
from netfetch.errors import RemediationError
from netfetch.models import Dialect

logger = logging.getLogger(__name__)

CLUSTERWIDE_DENY_ALL_NAME = "clusterwide-default-deny-all"


def deny_all_policy_name(dialect: Dialect, namespace: str | None) -> str:
    """Return the name given to a generated deny-all policy."""
    if namespace is None:
        return CLUSTERWIDE_DENY_ALL_NAME
    if dialect == Dialect.NATIVE:
        return f"{namespace}-default-deny-all"
    return f"{namespace}-cilium-default-deny-all"


def build_deny_all_policy(dialect: Dialect, namespace: str | None = None) -> dict[str, Any]:
    """
    Build a deny-all manifest.

    Args:
        dialect: Policy dialect
        namespace: Target namespace, None for a cluster-wide policy

    Returns:
        Policy manifest

    Raises:
        RemediationError: Cluster scope was requested for the native dialect
    """
    name = deny_all_policy_name(dialect, namespace)

    if dialect == Dialect.NATIVE:
        if namespace is None:
            raise RemediationError("the cluster", "native network policies are namespaced")
        return {
            "apiVersion": "networking.k8s.io/v1",
            "kind": "NetworkPolicy",
            "metadata": {"name": name, "namespace": namespace},
            "spec": {
                "podSelector": {},
                "policyTypes": ["Ingress", "Egress"],
            },
        }

    resource = CILIUM_NETWORK_POLICY if namespace else CILIUM_CLUSTERWIDE_NETWORK_POLICY
    metadata: dict[str, Any] = {"name": name}
    if namespace:
        metadata["namespace"] = namespace
    return {
        "apiVersion": resource.api_version,
        "kind": resource.kind,
        "metadata": metadata,
        "spec": {
            "endpointSelector": {"matchLabels": {}},
            "ingress": [],
            "egress": [],
        },
    }


class RemediationAction:
    """
    Applies deny-all policies.

    Example:
        action = RemediationAction(cluster)
        action.apply(Dialect.NATIVE, "shop")
    """

    def __init__(self, client: ClusterClient):
        """
        Initialize RemediationAction.

        Args:
            client: Cluster client used to create the policy
        """
        self.client = client

    def apply(self, dialect: Dialect, namespace: str | None = None) -> dict[str, Any]:
        """
        Build and submit a deny-all policy.

        Args:
            dialect: Policy dialect
            namespace: Target namespace, None for the whole cluster

        Returns:
            The submitted manifest

        Raises:
            RemediationError: The policy could not be created
        """
        manifest = build_deny_all_policy(dialect, namespace)
        target = f"namespace {namespace}" if namespace else "the cluster"
        try:
            self.client.create_policy(dialect, manifest, namespace)
        except RemediationError:
            raise
        except Exception as e:
            # Client implementations other than ours may raise their own errors
            raise RemediationError(target, e) from e

        logger.info(
            "Applied default deny all %s network policy %s to %s",
            dialect.display_name, manifest["metadata"]["name"], target,
        )
        return manifest
