"""
Target policy lookup.

Finds a policy by name and lists the pods its selector selects, so a
user can check what one policy actually covers.
"""

from __future__ import annotations

import logging
from typing import Iterable

from netfetch.collectors.base import ClusterClient
from netfetch.coverage import classify_policies, select_namespaces, selector_matches
from netfetch.errors import PolicyNotFoundError
from netfetch.models import SYSTEM_NAMESPACES, Dialect, Policy, PolicyScope, PodRef

logger = logging.getLogger(__name__)


class TargetPolicyLookup:
    """
    Looks up one policy and the pods it targets.

    Example:
        lookup = TargetPolicyLookup(cluster)
        policy = lookup.find_policy(Dialect.NATIVE, "web-ingress")
        for pod in lookup.targeted_pods(policy):
            print(pod.as_row())
    """

    def __init__(self, client: ClusterClient, system_namespaces: Iterable[str] | None = None):
        """
        Initialize TargetPolicyLookup.

        Args:
            client: Cluster client
            system_namespaces: Namespaces never searched
        """
        self.client = client
        self.system_namespaces = (
            frozenset(system_namespaces) if system_namespaces is not None else SYSTEM_NAMESPACES
        )

    def find_policy(self, dialect: Dialect, name: str) -> Policy:
        """
        Find a policy by name.

        Namespaced policies in every non-system namespace are searched in
        discovery order; for Cilium the cluster-wide policies are searched
        last.

        Raises:
            PolicyNotFoundError: No policy of that name exists
            FetchError: A list call failed
        """
        for namespace in select_namespaces(self.client, None, self.system_namespaces):
            for policy in classify_policies(self.client.list_policies(dialect, namespace), dialect):
                if policy.name == name:
                    logger.info("Found policy %s in namespace %s", name, namespace)
                    return policy

        if dialect == Dialect.CILIUM:
            raws = self.client.list_cluster_wide_policies(dialect)
            for policy in classify_policies(raws, dialect, PolicyScope.CLUSTER_WIDE):
                if policy.name == name:
                    logger.info("Found cluster wide policy %s", name)
                    return policy
            raise PolicyNotFoundError(name, "any non-system namespace or cluster wide")

        raise PolicyNotFoundError(name)

    def targeted_pods(self, policy: Policy) -> list[PodRef]:
        """
        List the pods a policy's selector selects.

        A namespaced policy is matched against the pods of its namespace; a
        cluster-wide policy against the pods of every non-system namespace.
        """
        if policy.is_cluster_wide or policy.namespace is None:
            namespaces = set(select_namespaces(self.client, None, self.system_namespaces))
            pods = [pod for pod in self.client.list_pods("") if pod.namespace in namespaces]
        else:
            pods = self.client.list_pods(policy.namespace)

        return [
            PodRef(pod.namespace, pod.name, pod.ip)
            for pod in pods
            if selector_matches(policy, pod)
        ]

    def describe(self, dialect: Dialect, name: str) -> tuple[Policy, list[PodRef]]:
        """Find a policy and the pods it targets."""
        policy = self.find_policy(dialect, name)
        return policy, self.targeted_pods(policy)
