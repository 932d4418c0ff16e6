"""
Unit tests for the scan orchestrator.

Tests cover:
- Native and Cilium scans end to end against an in-memory cluster
- The Cilium cluster-wide pass and its short-circuit
- Namespace-local and fatal fetch errors
- Interactive, dry-run and report modes
- Cache sharing between scans
- Parallel evaluation and cancellation
"""

from __future__ import annotations

import logging
import threading
from unittest.mock import MagicMock

import pytest

from conftest import ALLOW_FRONTEND, FakeClusterClient, cilium_policy, native_policy
from netfetch.config import CacheConfig, ScanConfiguration
from netfetch.coverage import ProtectionCache
from netfetch.errors import FetchError, NamespaceNotFoundError
from netfetch.models import CLUSTER_WIDE, Dialect, PodPhase, PodRef
from netfetch.scanner import ScanMode, ScanOrchestrator


def _names(result):
    return [(pod.namespace, pod.name) for pod in result.unprotected_pods]


class TestNativeScan:
    """Tests for native NetworkPolicy scans."""

    def test_namespace_without_policies(self, shop_cluster):
        """Test three unprotected pods and no policies score 27."""
        result = ScanOrchestrator(shop_cluster).scan(Dialect.NATIVE)

        assert result.namespaces_scanned == ["shop"]
        assert _names(result) == [("shop", "web-0"), ("shop", "web-1"), ("shop", "web-2")]
        assert result.unprotected_count == 3
        assert result.score == 27
        assert result.policy_changes_made is False
        assert result.all_pods_protected is False

    def test_namespace_with_deny_all(self, cluster):
        """Test an empty deny-all policy protects every pod and scores 70."""
        for i in range(5):
            cluster.add_pod("pay", f"api-{i}", {"app": "api"})
        cluster.add_policy(Dialect.NATIVE, native_policy("default-deny", "pay"))

        result = ScanOrchestrator(cluster).scan(Dialect.NATIVE)

        assert result.unprotected_pods == []
        assert result.score == 70

    def test_selector_with_rule(self, cluster):
        """Test a rule-bearing selector protects only the pods it selects."""
        cluster.add_pod("shop", "web-0", {"app": "web"})
        cluster.add_pod("shop", "db-0", {"app": "db"})
        cluster.add_policy(
            Dialect.NATIVE, native_policy("web", "shop", {"app": "web"}, ingress=[ALLOW_FRONTEND])
        )

        result = ScanOrchestrator(cluster).scan(Dialect.NATIVE)

        assert _names(result) == [("shop", "db-0")]
        assert result.score == 49

    def test_selector_with_lone_empty_rules(self, cluster):
        """Test a selector whose rule lists hold one empty rule each protects its pods."""
        cluster.add_pod("shop", "web-0", {"app": "web"})
        cluster.add_pod("shop", "db-0", {"app": "db"})
        cluster.add_policy(
            Dialect.NATIVE,
            native_policy("deny-web", "shop", {"app": "web"}, ingress=[{}], egress=[{}]),
        )

        result = ScanOrchestrator(cluster).scan(Dialect.NATIVE)

        assert _names(result) == [("shop", "db-0")]
        assert result.score == 49

    def test_unknown_namespace(self, shop_cluster):
        """Test an explicit unknown namespace raises and returns nothing."""
        with pytest.raises(NamespaceNotFoundError) as exc_info:
            ScanOrchestrator(shop_cluster).scan(Dialect.NATIVE, namespace="ghost")

        assert exc_info.value.http_status == 404
        assert exc_info.value.namespace == "ghost"

    def test_explicit_namespace(self, shop_cluster):
        """Test an explicit namespace limits the scan to it."""
        shop_cluster.add_pod("pay", "api-0")

        result = ScanOrchestrator(shop_cluster).scan(Dialect.NATIVE, namespace="pay")

        assert result.namespaces_scanned == ["pay"]
        assert _names(result) == [("pay", "api-0")]

    def test_system_namespaces_are_skipped(self, shop_cluster):
        """Test pods in system namespaces are never reported."""
        result = ScanOrchestrator(shop_cluster).scan(Dialect.NATIVE)

        assert "kube-system" not in result.namespaces_scanned
        assert all(pod.namespace != "kube-system" for pod in result.unprotected_pods)

    def test_custom_system_namespaces(self, shop_cluster):
        """Test the denylist can be overridden."""
        result = ScanOrchestrator(shop_cluster, system_namespaces=["shop"]).scan(Dialect.NATIVE)

        assert result.namespaces_scanned == ["kube-system"]
        assert _names(result) == [("kube-system", "coredns-0")]

    def test_non_running_pods_are_ignored(self, cluster):
        """Test pending and finished pods are not evaluated."""
        cluster.add_pod("shop", "web-0")
        cluster.add_pod("shop", "job-0", phase=PodPhase.SUCCEEDED)
        cluster.add_pod("shop", "web-1", phase=PodPhase.PENDING)

        result = ScanOrchestrator(cluster).scan(Dialect.NATIVE)

        assert _names(result) == [("shop", "web-0")]

    def test_deny_all_must_cover_every_namespace(self, cluster):
        """Test the deny-all bonus needs a deny-all in every scanned namespace."""
        cluster.add_pod("shop", "web-0", {"app": "web"})
        cluster.add_pod("pay", "api-0", {"app": "api"})
        cluster.add_policy(Dialect.NATIVE, native_policy("deny", "shop"))
        cluster.add_policy(
            Dialect.NATIVE, native_policy("api", "pay", {"app": "api"}, ingress=[ALLOW_FRONTEND])
        )

        result = ScanOrchestrator(cluster).scan(Dialect.NATIVE)

        assert result.unprotected_pods == []
        assert result.score == 50

    def test_missing_ip_reported_as_none(self, cluster):
        """Test a pod without an IP is reported with ip None."""
        cluster.add_pod("shop", "web-0", ip=None)

        result = ScanOrchestrator(cluster).scan(Dialect.NATIVE)

        assert result.unprotected_pods == [PodRef("shop", "web-0", None)]
        assert result.unprotected_pods[0].as_row() == ["shop", "web-0", "N/A"]


class TestCiliumScan:
    """Tests for Cilium scans."""

    def test_cluster_wide_deny_all_short_circuits(self, shop_cluster):
        """Test a cluster-wide deny-all skips the namespaced pass and scores 100."""
        shop_cluster.add_cluster_policy(cilium_policy("cw-deny"))

        result = ScanOrchestrator(shop_cluster).scan(Dialect.CILIUM)

        assert result.all_pods_protected is True
        assert result.score == 100
        assert result.unprotected_pods == []
        assert result.namespaces_scanned == [CLUSTER_WIDE]
        assert not any(call[0] == "list_policies" for call in shop_cluster.calls)

    def test_cluster_policies_covering_every_pod(self, shop_cluster):
        """Test rule-bearing cluster-wide policies that select every pod short-circuit."""
        shop_cluster.add_cluster_policy(
            cilium_policy("web", match_labels={"app": "web"}, ingress=[{"fromEntities": ["cluster"]}])
        )

        result = ScanOrchestrator(shop_cluster).scan(Dialect.CILIUM)

        assert result.all_pods_protected is True
        assert result.score == 100

    def test_partial_cluster_coverage_runs_namespaced_pass(self, shop_cluster):
        """Test pods left by the cluster-wide pass are evaluated per namespace."""
        shop_cluster.add_pod("shop", "db-0", {"app": "db"})
        shop_cluster.add_cluster_policy(
            cilium_policy("web", match_labels={"app": "web"}, ingress=[{"fromEntities": ["cluster"]}])
        )

        result = ScanOrchestrator(shop_cluster).scan(Dialect.CILIUM)

        assert result.all_pods_protected is False
        assert result.namespaces_scanned == [CLUSTER_WIDE, "shop"]
        assert _names(result) == [("shop", "db-0")]
        assert result.score == 49

    def test_namespaced_deny_all(self, shop_cluster):
        """Test a namespaced Cilium deny-all protects its namespace."""
        shop_cluster.add_policy(Dialect.CILIUM, cilium_policy("deny", "shop", ingress=[{}]))

        result = ScanOrchestrator(shop_cluster).scan(Dialect.CILIUM)

        assert result.all_pods_protected is False
        assert result.unprotected_pods == []
        assert result.score == 70

    def test_explicit_namespace_skips_cluster_pass(self, shop_cluster):
        """Test an explicit namespace still honours cluster-wide policies."""
        shop_cluster.add_cluster_policy(cilium_policy("cw-deny"))

        result = ScanOrchestrator(shop_cluster).scan(Dialect.CILIUM, namespace="shop")

        assert result.namespaces_scanned == ["shop"]
        assert result.unprotected_pods == []
        assert result.all_pods_protected is False
        assert result.score == 70
        assert not any(call[0] == "list_all_pods" for call in shop_cluster.calls)

    def test_cluster_policy_fetch_error_is_fatal(self, shop_cluster):
        """Test failing to list cluster-wide policies aborts the scan."""
        shop_cluster.failures.add("list_cluster_wide_policies")

        with pytest.raises(FetchError) as exc_info:
            ScanOrchestrator(shop_cluster).scan(Dialect.CILIUM)

        assert exc_info.value.is_cluster_scope is True

    def test_all_pods_fetch_error_is_fatal(self, shop_cluster):
        """Test failing to list all pods aborts the cluster-wide pass."""
        shop_cluster.failures.add("list_all_pods")

        with pytest.raises(FetchError):
            ScanOrchestrator(shop_cluster).scan(Dialect.CILIUM)


class TestFailureHandling:
    """Tests for fetch failures."""

    def test_namespace_error_skips_namespace(self, cluster):
        """Test a namespace-local error drops only that namespace."""
        cluster.add_pod("a", "pod-a")
        cluster.add_pod("b", "pod-b")
        cluster.failures.add(("list_policies", "a"))

        result = ScanOrchestrator(cluster).scan(Dialect.NATIVE)

        assert result.skipped_namespaces == ["a"]
        assert result.namespaces_scanned == ["b"]
        assert _names(result) == [("b", "pod-b")]

    def test_skip_log_carries_dialect(self, cluster, caplog):
        """Test events logged during a scan carry the scanned dialect."""
        cluster.add_pod("a", "pod-a")
        cluster.failures.add(("list_policies", "a"))
        orchestrator = ScanOrchestrator(cluster)

        with caplog.at_level(logging.WARNING, logger="netfetch"):
            orchestrator.scan(Dialect.CILIUM, namespace="a")

        skipped = [r for r in caplog.records if getattr(r, "event_type", None) == "namespace.skipped"]
        assert skipped[0].dialect == "cilium"
        assert skipped[0].namespace == "a"
        assert orchestrator.log._context == {}

    def test_pod_list_error_skips_namespace(self, cluster):
        """Test failing to list a namespace's pods skips it."""
        cluster.add_pod("a", "pod-a")
        cluster.add_pod("b", "pod-b")
        cluster.failures.add(("list_pods", "b"))

        result = ScanOrchestrator(cluster).scan(Dialect.NATIVE)

        assert result.skipped_namespaces == ["b"]
        assert _names(result) == [("a", "pod-a")]

    def test_namespace_list_error_is_fatal(self, shop_cluster):
        """Test failing to list namespaces aborts the scan."""
        shop_cluster.failures.add("list_namespaces")

        with pytest.raises(FetchError):
            ScanOrchestrator(shop_cluster).scan(Dialect.NATIVE)

    def test_undecodable_policy_is_skipped(self, cluster):
        """Test a malformed policy does not stop the scan."""
        cluster.add_pod("shop", "web-0")
        cluster.add_policy(Dialect.NATIVE, native_policy("bad", "shop", {"replicas": 3}))

        result = ScanOrchestrator(cluster).scan(Dialect.NATIVE)

        assert _names(result) == [("shop", "web-0")]
        assert result.skipped_namespaces == []


class TestModes:
    """Tests for interactive, dry-run and report modes."""

    def test_interactive_accept(self, shop_cluster):
        """Test accepting a prompt applies a deny-all and leaves the score unchanged."""
        prompt = MagicMock(return_value=True)
        orchestrator = ScanOrchestrator(shop_cluster, prompt_yes_no=prompt)

        result = orchestrator.scan(Dialect.NATIVE, mode=ScanMode.INTERACTIVE)

        prompt.assert_called_once_with(
            "Do you want to add a default deny all kubernetes network policy to the namespace shop?"
        )
        assert result.policy_changes_made is True
        assert result.score == 27
        assert len(shop_cluster.created) == 1
        dialect, manifest, namespace = shop_cluster.created[0]
        assert dialect == Dialect.NATIVE
        assert namespace == "shop"
        assert manifest["metadata"]["name"] == "shop-default-deny-all"

    def test_interactive_decline(self, shop_cluster):
        """Test declining a prompt records the namespace."""
        orchestrator = ScanOrchestrator(shop_cluster, prompt_yes_no=MagicMock(return_value=False))

        result = orchestrator.scan(Dialect.NATIVE, mode=ScanMode.INTERACTIVE)

        assert result.user_denied_policies is True
        assert result.denied_namespaces == ["shop"]
        assert result.policy_changes_made is False
        assert shop_cluster.created == []

    def test_remediation_failure_is_recorded(self, shop_cluster):
        """Test a failed create is reported without changing the score."""
        shop_cluster.failures.add("create_policy")
        orchestrator = ScanOrchestrator(shop_cluster, prompt_yes_no=MagicMock(return_value=True))

        result = orchestrator.scan(Dialect.NATIVE, mode=ScanMode.INTERACTIVE)

        assert len(result.remediation_errors) == 1
        assert "namespace shop" in result.remediation_errors[0]
        assert result.policy_changes_made is False
        assert result.score == 27

    def test_no_prompt_when_namespace_is_protected(self, cluster):
        """Test protected namespaces are not offered remediation."""
        cluster.add_pod("pay", "api-0")
        cluster.add_policy(Dialect.NATIVE, native_policy("deny", "pay"))
        prompt = MagicMock(return_value=True)

        ScanOrchestrator(cluster, prompt_yes_no=prompt).scan(Dialect.NATIVE, mode=ScanMode.INTERACTIVE)

        prompt.assert_not_called()

    def test_cilium_cluster_prompt(self, shop_cluster):
        """Test Cilium offers a cluster-wide deny-all before the namespaced pass."""
        prompt = MagicMock(side_effect=[True, False])
        orchestrator = ScanOrchestrator(shop_cluster, prompt_yes_no=prompt)

        result = orchestrator.scan(Dialect.CILIUM, mode=ScanMode.INTERACTIVE)

        messages = [call.args[0] for call in prompt.call_args_list]
        assert messages == [
            "Do you want to create a cluster wide default deny all cilium network policy?",
            "Do you want to add a default deny all cilium network policy to the namespace shop?",
        ]
        assert shop_cluster.created[0][2] is None
        assert shop_cluster.created[0][1]["metadata"]["name"] == "clusterwide-default-deny-all"
        assert result.policy_changes_made is True
        assert result.denied_namespaces == ["shop"]

    def test_cluster_decline_records_no_namespace(self, cluster):
        """Test declining the cluster-wide prompt only sets the flag."""
        prompt = MagicMock(return_value=False)

        result = ScanOrchestrator(cluster, prompt_yes_no=prompt).scan(
            Dialect.CILIUM, mode=ScanMode.INTERACTIVE
        )

        assert result.user_denied_policies is True
        assert result.denied_namespaces == []

    def test_dry_run_never_prompts(self, shop_cluster):
        """Test dry-run mode reports without prompting."""
        prompt = MagicMock(return_value=True)

        result = ScanOrchestrator(shop_cluster, prompt_yes_no=prompt).scan(
            Dialect.NATIVE, mode=ScanMode.DRY_RUN
        )

        prompt.assert_not_called()
        assert result.unprotected_count == 3
        assert shop_cluster.created == []

    def test_interactive_requires_prompt(self, shop_cluster):
        """Test interactive mode without a prompt callable is a programming error."""
        with pytest.raises(ValueError):
            ScanOrchestrator(shop_cluster).scan(Dialect.NATIVE, mode=ScanMode.INTERACTIVE)

    def test_on_unprotected_hook(self, shop_cluster):
        """Test the reporter hook receives each namespace's unprotected pods."""
        hook = MagicMock()

        ScanOrchestrator(shop_cluster, on_unprotected=hook).scan(Dialect.NATIVE, mode=ScanMode.DRY_RUN)

        hook.assert_called_once()
        namespace, pods = hook.call_args.args
        assert namespace == "shop"
        assert [pod.name for pod in pods] == ["web-0", "web-1", "web-2"]


class TestCacheSharing:
    """Tests for the protection cache across scans."""

    def test_same_snapshot_same_result(self, shop_cluster):
        """Test two cold-cache scans of one snapshot agree."""
        shop_cluster.add_pod("shop", "db-0", {"app": "db"})
        shop_cluster.add_policy(
            Dialect.NATIVE, native_policy("web", "shop", {"app": "web"}, ingress=[ALLOW_FRONTEND])
        )

        first = ScanOrchestrator(shop_cluster).scan(Dialect.NATIVE)
        second = ScanOrchestrator(shop_cluster).scan(Dialect.NATIVE)

        assert first.to_dict() == second.to_dict()

    def test_cached_pods_are_not_reported_again(self, shop_cluster):
        """Test pods proven protected by a Cilium scan are not reported by a native scan."""
        shop_cluster.add_pod("shop", "db-0", {"app": "db"})
        shop_cluster.add_cluster_policy(
            cilium_policy("web", match_labels={"app": "web"}, ingress=[{"fromEntities": ["cluster"]}])
        )
        orchestrator = ScanOrchestrator(shop_cluster)

        orchestrator.scan(Dialect.CILIUM)
        native = orchestrator.scan(Dialect.NATIVE)

        assert _names(native) == [("shop", "db-0")]
        assert native.score == 29

    def test_injected_cache(self, shop_cluster):
        """Test an injected cache is used and filled."""
        cache = ProtectionCache()
        shop_cluster.add_policy(Dialect.NATIVE, native_policy("deny", "shop"))

        ScanOrchestrator(shop_cluster, cache=cache).scan(Dialect.NATIVE)

        assert set(cache.keys()) == {("shop", "web-0"), ("shop", "web-1"), ("shop", "web-2")}


def _busy_cluster() -> FakeClusterClient:
    cluster = FakeClusterClient()
    for ns in ["a", "b", "c", "d", "e"]:
        cluster.add_pod(ns, f"{ns}-web", {"app": "web"})
        cluster.add_pod(ns, f"{ns}-db", {"app": "db"})
    cluster.add_policy(Dialect.NATIVE, native_policy("deny", "b"))
    cluster.add_policy(
        Dialect.NATIVE, native_policy("web", "d", {"app": "web"}, ingress=[ALLOW_FRONTEND])
    )
    return cluster


class TestConcurrency:
    """Tests for parallel evaluation and cancellation."""

    def test_parallel_matches_sequential(self):
        """Test parallel evaluation returns the sequential result."""
        sequential = ScanOrchestrator(_busy_cluster()).scan(Dialect.NATIVE)
        parallel = ScanOrchestrator(_busy_cluster(), max_workers=4).scan(Dialect.NATIVE)

        assert parallel.to_dict() == sequential.to_dict()

    def test_parallel_prompts_in_discovery_order(self):
        """Test prompts run in namespace order when evaluating in parallel."""
        prompt = MagicMock(return_value=False)

        result = ScanOrchestrator(_busy_cluster(), prompt_yes_no=prompt, max_workers=4).scan(
            Dialect.NATIVE, mode=ScanMode.INTERACTIVE
        )

        assert result.denied_namespaces == ["a", "c", "d", "e"]
        assert [call.args[0].rsplit(" ", 1)[1] for call in prompt.call_args_list] == [
            "a?", "c?", "d?", "e?",
        ]

    def test_invalid_worker_count(self, shop_cluster):
        """Test max_workers must be positive."""
        with pytest.raises(ValueError):
            ScanOrchestrator(shop_cluster, max_workers=0)

    def test_cancel_before_start(self, shop_cluster):
        """Test a pre-set cancel event returns an empty partial result."""
        event = threading.Event()
        event.set()

        result = ScanOrchestrator(shop_cluster).scan(Dialect.NATIVE, cancel_event=event)

        assert result.cancelled is True
        assert result.namespaces_scanned == []

    def test_cancel_between_namespaces(self):
        """Test cancelling stops before the next namespace."""
        event = threading.Event()
        orchestrator = ScanOrchestrator(
            _busy_cluster(), on_unprotected=lambda namespace, pods: event.set()
        )

        result = orchestrator.scan(Dialect.NATIVE, mode=ScanMode.DRY_RUN, cancel_event=event)

        assert result.cancelled is True
        assert result.namespaces_scanned == ["a"]
        assert _names(result) == [("a", "a-web"), ("a", "a-db")]

    def test_cancel_parallel(self):
        """Test cancelling a parallel scan keeps only the namespaces already merged."""
        event = threading.Event()
        orchestrator = ScanOrchestrator(
            _busy_cluster(), on_unprotected=lambda namespace, pods: event.set(), max_workers=3
        )

        result = orchestrator.scan(Dialect.NATIVE, mode=ScanMode.DRY_RUN, cancel_event=event)

        assert result.cancelled is True
        assert result.namespaces_scanned == ["a"]


class TestFromConfig:
    """Tests for building an orchestrator from configuration."""

    def test_from_config(self, shop_cluster):
        """Test configuration values reach the orchestrator and its cache."""
        config = ScanConfiguration(
            system_namespaces=["kube-system", "monitoring"],
            max_workers=3,
            cache=CacheConfig(ttl_seconds=60, max_entries=100),
        )

        orchestrator = ScanOrchestrator.from_config(shop_cluster, config)

        assert orchestrator.max_workers == 3
        assert orchestrator.system_namespaces == frozenset({"kube-system", "monitoring"})
        assert orchestrator.cache.ttl_seconds == 60
        assert orchestrator.cache.max_entries == 100

    def test_requires_client(self):
        """Test a client is required."""
        with pytest.raises(ValueError):
            ScanOrchestrator(None)
