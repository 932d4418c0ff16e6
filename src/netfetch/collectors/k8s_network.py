"""
Kubernetes cluster client for Netfetch.

Reads namespaces, pods, native NetworkPolicies and Cilium policies from a
live cluster through the official kubernetes client, and creates
deny-all policies for remediation:
- CoreV1Api: namespaces and pods
- NetworkingV1Api: NetworkPolicies
- CustomObjectsApi: CiliumNetworkPolicies and CiliumClusterwideNetworkPolicies

Policies are returned as plain manifests (camelCase dicts as served by the
API server) so both dialects reach the classifier in the same shape.
"""

from __future__ import annotations

import logging
from typing import Any

import urllib3
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from netfetch.collectors.base import (
    CILIUM_CLUSTERWIDE_NETWORK_POLICY,
    CILIUM_NETWORK_POLICY,
    ClusterClient,
)
from netfetch.errors import (
    ConfigurationError,
    FetchError,
    NamespaceNotFoundError,
    RemediationError,
)
from netfetch.models import Dialect, Namespace, Pod, PodPhase

logger = logging.getLogger(__name__)

# Errors raised by the client for API and transport failures
CLIENT_ERRORS = (ApiException, urllib3.exceptions.HTTPError)


class KubernetesClusterClient(ClusterClient):
    """
    ClusterClient backed by the kubernetes Python client.

    Build one at process start with connect() and pass it to the
    orchestrator, the remediation action and the target lookup.

    Example:
        cluster = KubernetesClusterClient.connect(kubeconfig="~/.kube/config")
        namespaces = cluster.list_namespaces()
    """

    def __init__(
        self,
        core_api: Any,
        networking_api: Any,
        custom_api: Any,
        api_client: Any | None = None,
        cluster_name: str = "kubernetes",
        request_timeout: float | None = None,
    ) -> None:
        """
        Initialize KubernetesClusterClient.

        Args:
            core_api: CoreV1Api instance
            networking_api: NetworkingV1Api instance
            custom_api: CustomObjectsApi instance
            api_client: ApiClient used to serialize typed objects to manifests
            cluster_name: Name of the cluster, for display
            request_timeout: Per-request timeout in seconds (None = client default)
        """
        self._core_api = core_api
        self._networking_api = networking_api
        self._custom_api = custom_api
        self._api_client = api_client or client.ApiClient()
        self._cluster_name = cluster_name
        self._request_timeout = request_timeout

    @classmethod
    def connect(
        cls,
        kubeconfig: str | None = None,
        context: str | None = None,
        in_cluster: bool | None = None,
        request_timeout: float | None = None,
    ) -> KubernetesClusterClient:
        """
        Load credentials and build a client.

        Args:
            kubeconfig: Path to kubeconfig file (None = KUBECONFIG or ~/.kube/config)
            context: Kubernetes context to use
            in_cluster: True forces in-cluster config, False forces kubeconfig,
                None tries in-cluster first and falls back to kubeconfig
            request_timeout: Per-request timeout in seconds

        Raises:
            ConfigurationError: No usable credentials were found
        """
        try:
            if in_cluster:
                config.load_incluster_config()
                logger.info("Using in-cluster Kubernetes configuration")
            elif in_cluster is None and not kubeconfig:
                try:
                    config.load_incluster_config()
                    logger.info("Using in-cluster Kubernetes configuration")
                except ConfigException:
                    logger.debug("No in-cluster configuration, falling back to kubeconfig")
                    config.load_kube_config(config_file=kubeconfig, context=context)
            else:
                config.load_kube_config(config_file=kubeconfig, context=context)
        except (ConfigException, OSError) as e:
            raise ConfigurationError(f"Failed to initialize Kubernetes client: {e}") from e

        cluster_name = "kubernetes"
        if not in_cluster:
            # Cluster name is cosmetic; keep the default when contexts cannot be read
            try:
                _, active_context = config.list_kube_config_contexts(config_file=kubeconfig)
                if active_context:
                    cluster_name = active_context.get("name", cluster_name)
            except (ConfigException, OSError) as e:
                logger.debug("Could not read kubeconfig contexts: %s", e)

        return cls(
            core_api=client.CoreV1Api(),
            networking_api=client.NetworkingV1Api(),
            custom_api=client.CustomObjectsApi(),
            cluster_name=cluster_name,
            request_timeout=request_timeout,
        )

    @property
    def cluster_name(self) -> str:
        """Return cluster name."""
        return self._cluster_name

    def _kwargs(self) -> dict[str, Any]:
        if self._request_timeout is None:
            return {}
        return {"_request_timeout": self._request_timeout}

    def list_namespaces(self) -> list[Namespace]:
        """List every namespace in the cluster."""
        try:
            ns_list = self._core_api.list_namespace(**self._kwargs())
        except CLIENT_ERRORS as e:
            raise FetchError("listing namespaces", e) from e
        return [Namespace(name=ns.metadata.name) for ns in ns_list.items]

    def get_namespace(self, name: str) -> Namespace:
        """Fetch one namespace."""
        try:
            ns = self._core_api.read_namespace(name=name, **self._kwargs())
        except ApiException as e:
            if e.status == 404:
                raise NamespaceNotFoundError(name) from e
            raise FetchError(f"checking namespace {name}", e) from e
        except urllib3.exceptions.HTTPError as e:
            raise FetchError(f"checking namespace {name}", e) from e
        return Namespace(name=ns.metadata.name)

    def list_pods(self, namespace: str = "") -> list[Pod]:
        """List pods in one namespace, or in all namespaces for ""."""
        try:
            if namespace:
                pod_list = self._core_api.list_namespaced_pod(namespace=namespace, **self._kwargs())
            else:
                pod_list = self._core_api.list_pod_for_all_namespaces(**self._kwargs())
        except CLIENT_ERRORS as e:
            raise FetchError("listing pods", e, namespace=namespace or None) from e
        return [self._pod_from_object(pod) for pod in pod_list.items]

    def list_policies(self, dialect: Dialect, namespace: str) -> list[dict[str, Any]]:
        """List namespaced policy manifests."""
        try:
            if dialect == Dialect.NATIVE:
                policies = self._networking_api.list_namespaced_network_policy(
                    namespace=namespace, **self._kwargs()
                )
                return [self._api_client.sanitize_for_serialization(np) for np in policies.items]

            response = self._custom_api.list_namespaced_custom_object(
                group=CILIUM_NETWORK_POLICY.group,
                version=CILIUM_NETWORK_POLICY.version,
                namespace=namespace,
                plural=CILIUM_NETWORK_POLICY.plural,
                **self._kwargs(),
            )
        except CLIENT_ERRORS as e:
            raise FetchError(
                f"listing {dialect.display_name} network policies", e, namespace=namespace
            ) from e
        return list(response.get("items", []))

    def list_cluster_wide_policies(self, dialect: Dialect) -> list[dict[str, Any]]:
        """List cluster-scoped policy manifests. The native dialect has none."""
        if dialect == Dialect.NATIVE:
            return []
        try:
            response = self._custom_api.list_cluster_custom_object(
                group=CILIUM_CLUSTERWIDE_NETWORK_POLICY.group,
                version=CILIUM_CLUSTERWIDE_NETWORK_POLICY.version,
                plural=CILIUM_CLUSTERWIDE_NETWORK_POLICY.plural,
                **self._kwargs(),
            )
        except CLIENT_ERRORS as e:
            raise FetchError("listing CiliumClusterwideNetworkPolicies", e) from e
        return list(response.get("items", []))

    def create_policy(
        self,
        dialect: Dialect,
        manifest: dict[str, Any],
        namespace: str | None = None,
    ) -> dict[str, Any]:
        """Create a policy from a manifest."""
        target = f"namespace {namespace}" if namespace else "the cluster"
        try:
            if dialect == Dialect.NATIVE:
                if not namespace:
                    raise RemediationError(target, "native network policies are namespaced")
                created = self._networking_api.create_namespaced_network_policy(
                    namespace=namespace, body=manifest, **self._kwargs()
                )
                return self._api_client.sanitize_for_serialization(created)

            if namespace:
                return self._custom_api.create_namespaced_custom_object(
                    group=CILIUM_NETWORK_POLICY.group,
                    version=CILIUM_NETWORK_POLICY.version,
                    namespace=namespace,
                    plural=CILIUM_NETWORK_POLICY.plural,
                    body=manifest,
                    **self._kwargs(),
                )
            return self._custom_api.create_cluster_custom_object(
                group=CILIUM_CLUSTERWIDE_NETWORK_POLICY.group,
                version=CILIUM_CLUSTERWIDE_NETWORK_POLICY.version,
                plural=CILIUM_CLUSTERWIDE_NETWORK_POLICY.plural,
                body=manifest,
                **self._kwargs(),
            )
        except CLIENT_ERRORS as e:
            raise RemediationError(target, e) from e

    def _pod_from_object(self, pod: Any) -> Pod:
        """Convert a V1Pod to Pod."""
        metadata = pod.metadata
        status = pod.status
        return Pod(
            namespace=metadata.namespace,
            name=metadata.name,
            labels=dict(metadata.labels or {}),
            phase=PodPhase.from_str(status.phase if status else None),
            ip=(status.pod_ip or None) if status else None,
        )
