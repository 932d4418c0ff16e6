"""
Pytest configuration and fixtures for Netfetch tests.

This module provides an in-memory cluster client and manifest builders
used across the unit tests.
"""

from __future__ import annotations

import copy
from typing import Any, Optional

import pytest

from netfetch.collectors.base import ClusterClient
from netfetch.errors import FetchError, NamespaceNotFoundError, RemediationError
from netfetch.models import Dialect, Namespace, Pod, PodPhase


class FakeClusterClient(ClusterClient):
    """
    In-memory ClusterClient.

    Failures are injected by operation name: "list_namespaces",
    "list_cluster_wide_policies", "list_all_pods", "create_policy", or
    ("list_policies", namespace) / ("list_pods", namespace).
    """

    def __init__(self):
        self.namespaces: list[str] = []
        self.pods: list[Pod] = []
        self.policies: dict[Dialect, dict[str, list[dict[str, Any]]]] = {
            Dialect.NATIVE: {},
            Dialect.CILIUM: {},
        }
        self.cluster_policies: list[dict[str, Any]] = []
        self.created: list[tuple[Dialect, dict[str, Any], Optional[str]]] = []
        self.failures: set[Any] = set()
        self.calls: list[tuple[str, Any]] = []

    # Builders

    def add_namespace(self, name: str) -> FakeClusterClient:
        if name not in self.namespaces:
            self.namespaces.append(name)
        return self

    def add_pod(
        self,
        namespace: str,
        name: str,
        labels: dict[str, str] | None = None,
        phase: PodPhase = PodPhase.RUNNING,
        ip: str | None = "10.0.0.1",
    ) -> FakeClusterClient:
        self.add_namespace(namespace)
        self.pods.append(Pod(namespace=namespace, name=name, labels=labels or {}, phase=phase, ip=ip))
        return self

    def add_policy(self, dialect: Dialect, manifest: dict[str, Any]) -> FakeClusterClient:
        namespace = manifest["metadata"]["namespace"]
        self.add_namespace(namespace)
        self.policies[dialect].setdefault(namespace, []).append(manifest)
        return self

    def add_cluster_policy(self, manifest: dict[str, Any]) -> FakeClusterClient:
        self.cluster_policies.append(manifest)
        return self

    # ClusterClient

    def _check(self, key: Any) -> None:
        self.calls.append((key if isinstance(key, str) else key[0], key))
        if key in self.failures:
            namespace = key[1] if isinstance(key, tuple) else None
            raise FetchError(str(key), "injected failure", namespace=namespace)

    def list_namespaces(self) -> list[Namespace]:
        self._check("list_namespaces")
        return [Namespace(name=ns) for ns in self.namespaces]

    def get_namespace(self, name: str) -> Namespace:
        self._check(("get_namespace", name))
        if name not in self.namespaces:
            raise NamespaceNotFoundError(name)
        return Namespace(name=name)

    def list_pods(self, namespace: str = "") -> list[Pod]:
        if namespace:
            self._check(("list_pods", namespace))
            return [p for p in self.pods if p.namespace == namespace]
        self._check("list_all_pods")
        return list(self.pods)

    def list_policies(self, dialect: Dialect, namespace: str) -> list[dict[str, Any]]:
        self._check(("list_policies", namespace))
        return copy.deepcopy(self.policies[dialect].get(namespace, []))

    def list_cluster_wide_policies(self, dialect: Dialect) -> list[dict[str, Any]]:
        self._check("list_cluster_wide_policies")
        if dialect == Dialect.NATIVE:
            return []
        return copy.deepcopy(self.cluster_policies)

    def create_policy(
        self,
        dialect: Dialect,
        manifest: dict[str, Any],
        namespace: str | None = None,
    ) -> dict[str, Any]:
        if "create_policy" in self.failures:
            raise RemediationError(f"namespace {namespace}" if namespace else "the cluster", "forbidden")
        self.created.append((dialect, manifest, namespace))
        return manifest


# Manifest builders


def native_policy(
    name: str,
    namespace: str,
    match_labels: dict[str, Any] | None = None,
    ingress: list[dict[str, Any]] | None = None,
    egress: list[dict[str, Any]] | None = None,
    match_expressions: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Build a networking.k8s.io/v1 NetworkPolicy manifest."""
    pod_selector: dict[str, Any] = {}
    if match_labels:
        pod_selector["matchLabels"] = match_labels
    if match_expressions:
        pod_selector["matchExpressions"] = match_expressions
    spec: dict[str, Any] = {"podSelector": pod_selector}
    if ingress is not None:
        spec["ingress"] = ingress
    if egress is not None:
        spec["egress"] = egress
    return {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "NetworkPolicy",
        "metadata": {"name": name, "namespace": namespace},
        "spec": spec,
    }


def cilium_policy(
    name: str,
    namespace: str | None = None,
    match_labels: dict[str, Any] | None = None,
    ingress: list[dict[str, Any]] | None = None,
    egress: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Build a CiliumNetworkPolicy, or a cluster-wide one when namespace is None."""
    metadata: dict[str, Any] = {"name": name}
    if namespace is not None:
        metadata["namespace"] = namespace
    spec: dict[str, Any] = {"endpointSelector": {"matchLabels": match_labels or {}}}
    if ingress is not None:
        spec["ingress"] = ingress
    if egress is not None:
        spec["egress"] = egress
    return {
        "apiVersion": "cilium.io/v2",
        "kind": "CiliumNetworkPolicy" if namespace else "CiliumClusterwideNetworkPolicy",
        "metadata": metadata,
        "spec": spec,
    }


ALLOW_FRONTEND = {"from": [{"podSelector": {"matchLabels": {"role": "frontend"}}}]}


@pytest.fixture
def cluster() -> FakeClusterClient:
    """Return an empty in-memory cluster."""
    return FakeClusterClient()


@pytest.fixture
def shop_cluster(cluster: FakeClusterClient) -> FakeClusterClient:
    """Return a cluster with namespace shop holding three running pods and no policies."""
    for i in range(3):
        cluster.add_pod("shop", f"web-{i}", {"app": "web"}, ip=f"10.0.1.{i}")
    cluster.add_namespace("kube-system")
    cluster.add_pod("kube-system", "coredns-0", {"k8s-app": "kube-dns"})
    return cluster
