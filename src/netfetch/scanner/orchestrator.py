"""
Scan orchestrator.

Runs a coverage scan for one policy dialect:

1. Select namespaces (fatal on error).
2. Cilium only, when no namespace was requested: evaluate every pod
   against the cluster-wide policies. If that proves every pod protected
   the namespaced pass is skipped and the scan scores 100.
3. For each namespace: fetch policies, classify them, fetch pods and
   evaluate the running ones. A fetch error inside one namespace skips
   that namespace only.
4. In interactive mode, offer a deny-all policy wherever pods are left
   unprotected (or, for Cilium, where no cluster-wide deny-all exists).
5. Aggregate and score.

The orchestrator never talks to a terminal. Prompting goes through the
injected prompt_yes_no callable.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from netfetch.collectors.base import ClusterClient
from netfetch.coverage import (
    MAX_SCORE,
    CoverageEvaluator,
    ProtectionCache,
    calculate_score,
    classify_policies,
    select_namespaces,
)
from netfetch.errors import FetchError, NetfetchError, RemediationError
from netfetch.models import (
    CLUSTER_WIDE,
    Dialect,
    Policy,
    PolicyScope,
    PodRef,
    ScanResult,
    SYSTEM_NAMESPACES,
)
from netfetch.observability import get_logger
from netfetch.scanner.remediation import RemediationAction

if TYPE_CHECKING:
    from netfetch.config import ScanConfiguration

logger = logging.getLogger(__name__)

PromptFn = Callable[[str], bool]
UnprotectedHook = Callable[[str, list[PodRef]], None]


class ScanMode(Enum):
    """How findings are acted upon."""

    DRY_RUN = "dry_run"  # Evaluate and report, never remediate
    INTERACTIVE = "interactive"  # Ask before remediating each finding
    REPORT = "report"  # Evaluate and return results, never prompt


@dataclass
class NamespaceFindings:
    """Evaluation outcome of one namespace."""

    namespace: str
    policies: list[Policy] = field(default_factory=list)
    unprotected: list[PodRef] = field(default_factory=list)
    error: Optional[FetchError] = None

    @property
    def has_deny_all(self) -> bool:
        """Return True if a namespace-wide deny-all policy exists."""
        return any(p.scope_applies_all and p.is_default_deny_all for p in self.policies)


@dataclass
class ClusterFindings:
    """Evaluation outcome of the cluster-wide pass."""

    policies: list[Policy] = field(default_factory=list)
    unprotected: list[PodRef] = field(default_factory=list)

    @property
    def has_deny_all(self) -> bool:
        """Return True if a deny-all policy selects every pod in the cluster."""
        return any(p.scope_applies_all and p.is_default_deny_all for p in self.policies)

    @property
    def all_pods_protected(self) -> bool:
        """Return True if the cluster-wide policies alone protect every pod."""
        if self.has_deny_all:
            return True
        return bool(self.policies) and not self.unprotected


class ScanOrchestrator:
    """
    Drives coverage scans against a cluster.

    One orchestrator owns one protection cache; scans run through the same
    orchestrator share it, so a pod proven protected by the cluster-wide
    pass or by an earlier scan is not reported again.

    Example:
        orchestrator = ScanOrchestrator(cluster)
        result = orchestrator.scan(Dialect.NATIVE, mode=ScanMode.REPORT)
        print(f"Score: {result.score}/100")
    """

    def __init__(
        self,
        client: ClusterClient,
        cache: ProtectionCache | None = None,
        remediation: RemediationAction | None = None,
        prompt_yes_no: PromptFn | None = None,
        on_unprotected: UnprotectedHook | None = None,
        system_namespaces: Iterable[str] | None = None,
        max_workers: int = 1,
    ):
        """
        Initialize ScanOrchestrator.

        Args:
            client: Cluster client
            cache: Protection cache (a fresh one is created if omitted)
            remediation: Remediation action (built on client if omitted)
            prompt_yes_no: Callable asking the user a yes/no question
            on_unprotected: Called with (namespace, pods) before prompting
            system_namespaces: Namespaces never scanned
            max_workers: Namespaces evaluated concurrently (1 = sequential)
        """
        if client is None:
            raise ValueError("a cluster client is required")
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")

        self.client = client
        self.cache = cache if cache is not None else ProtectionCache()
        self.evaluator = CoverageEvaluator(self.cache)
        self.remediation = remediation or RemediationAction(client)
        self.prompt_yes_no = prompt_yes_no
        self.on_unprotected = on_unprotected
        self.system_namespaces = (
            frozenset(system_namespaces) if system_namespaces is not None else SYSTEM_NAMESPACES
        )
        self.max_workers = max_workers
        self.log = get_logger(__name__)

    @classmethod
    def from_config(
        cls,
        client: ClusterClient,
        config: ScanConfiguration,
        **kwargs,
    ) -> ScanOrchestrator:
        """Build an orchestrator from a ScanConfiguration."""
        cache = ProtectionCache(
            ttl_seconds=config.cache.ttl_seconds,
            max_entries=config.cache.max_entries,
        )
        return cls(
            client,
            cache=cache,
            system_namespaces=config.system_namespaces,
            max_workers=config.max_workers,
            **kwargs,
        )

    def scan(
        self,
        dialect: Dialect = Dialect.NATIVE,
        namespace: str | None = None,
        mode: ScanMode = ScanMode.REPORT,
        cancel_event: threading.Event | None = None,
    ) -> ScanResult:
        """
        Scan one dialect.

        Args:
            dialect: Policy dialect to scan
            namespace: Scan only this namespace (must exist)
            mode: Dry-run, interactive or report-only
            cancel_event: When set, the scan stops before the next namespace

        Returns:
            ScanResult

        Raises:
            NamespaceNotFoundError: The requested namespace does not exist
            FetchError: A cluster-scope read failed
            ValueError: Interactive mode without a prompt callable
        """
        if mode == ScanMode.INTERACTIVE and self.prompt_yes_no is None:
            raise ValueError("interactive mode requires a prompt_yes_no callable")

        self.log.set_context(dialect=dialect.value)
        try:
            return self._scan(dialect, namespace, mode, cancel_event)
        finally:
            self.log.clear_context()

    def _scan(
        self,
        dialect: Dialect,
        namespace: str | None,
        mode: ScanMode,
        cancel_event: threading.Event | None,
    ) -> ScanResult:
        start_time = time.time()
        result = ScanResult(dialect=dialect)

        try:
            namespaces = select_namespaces(self.client, namespace, self.system_namespaces)
            self.log.scan_started(dialect.display_name, namespaces)

            cluster = ClusterFindings()
            if dialect == Dialect.CILIUM:
                if namespace:
                    cluster.policies = self._cluster_wide_policies(dialect)
                else:
                    cluster = self._cluster_pass(dialect, namespaces, mode, result)
                    if cluster.all_pods_protected:
                        result.all_pods_protected = True
                        result.score = MAX_SCORE
                        logger.info("All pods are protected by cluster wide policies")
                        self.log.scan_completed(
                            dialect.display_name, 0, result.score, time.time() - start_time
                        )
                        return result

            namespace_findings = self._namespaced_pass(
                dialect, namespaces, cluster.policies, mode, result, cancel_event
            )
        except NetfetchError as e:
            self.log.scan_failed(dialect.display_name, str(e))
            raise

        has_any_policies = bool(cluster.policies) or any(f.policies for f in namespace_findings)
        has_deny_all_coverage = cluster.has_deny_all or (
            bool(namespace_findings) and all(f.has_deny_all for f in namespace_findings)
        )
        result.score = calculate_score(
            has_any_policies, has_deny_all_coverage, result.unprotected_count
        )

        self.log.scan_completed(
            dialect.display_name, result.unprotected_count, result.score, time.time() - start_time
        )
        return result

    def _cluster_wide_policies(self, dialect: Dialect) -> list[Policy]:
        raws = self.client.list_cluster_wide_policies(dialect)
        return classify_policies(raws, dialect, PolicyScope.CLUSTER_WIDE)

    def _cluster_pass(
        self,
        dialect: Dialect,
        namespaces: list[str],
        mode: ScanMode,
        result: ScanResult,
    ) -> ClusterFindings:
        """Evaluate every pod in the selected namespaces against cluster-wide policies."""
        findings = ClusterFindings(policies=self._cluster_wide_policies(dialect))
        result.namespaces_scanned.append(CLUSTER_WIDE)

        if findings.policies:
            logger.info(
                "Found cluster wide policies: %s", ", ".join(p.name for p in findings.policies)
            )
        else:
            logger.info("No cluster wide policies found")

        if not findings.has_deny_all and mode == ScanMode.INTERACTIVE:
            self._offer_remediation(
                dialect,
                None,
                f"Do you want to create a cluster wide default deny all "
                f"{dialect.display_name.lower()} network policy?",
                result,
            )

        selected = set(namespaces)
        for pod in self.client.list_pods(""):
            if pod.namespace not in selected or not pod.is_running:
                continue
            if not self.evaluator.is_protected(pod, findings.policies):
                findings.unprotected.append(PodRef(pod.namespace, pod.name, pod.ip))

        if findings.unprotected:
            logger.info(
                "Found %d pods not targeted by a cluster wide policy, scanning namespaces",
                len(findings.unprotected),
            )
        return findings

    def _namespaced_pass(
        self,
        dialect: Dialect,
        namespaces: list[str],
        cluster_policies: list[Policy],
        mode: ScanMode,
        result: ScanResult,
        cancel_event: threading.Event | None,
    ) -> list[NamespaceFindings]:
        """Evaluate each namespace and act on its findings in discovery order."""
        evaluated: list[NamespaceFindings] = []

        if self.max_workers > 1 and len(namespaces) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures: list[Future[NamespaceFindings]] = [
                    executor.submit(self._evaluate_namespace, dialect, ns, cluster_policies)
                    for ns in namespaces
                ]
                for future in futures:
                    if cancel_event is not None and cancel_event.is_set():
                        result.cancelled = True
                        for pending in futures:
                            pending.cancel()
                        break
                    findings = future.result()
                    if self._record(dialect, findings, mode, result):
                        evaluated.append(findings)
            return evaluated

        for ns in namespaces:
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                break
            findings = self._evaluate_namespace(dialect, ns, cluster_policies)
            if self._record(dialect, findings, mode, result):
                evaluated.append(findings)
        return evaluated

    def _evaluate_namespace(
        self,
        dialect: Dialect,
        namespace: str,
        cluster_policies: list[Policy],
    ) -> NamespaceFindings:
        """Fetch and evaluate one namespace. Fetch errors are returned, not raised."""
        findings = NamespaceFindings(namespace=namespace)
        try:
            raws = self.client.list_policies(dialect, namespace)
            findings.policies = classify_policies(raws, dialect)
            pods = self.client.list_pods(namespace)
        except FetchError as e:
            findings.error = e
            return findings

        visible = cluster_policies + findings.policies
        for pod in pods:
            if not pod.is_running:
                continue
            if not self.evaluator.is_protected(pod, visible):
                findings.unprotected.append(PodRef(pod.namespace, pod.name, pod.ip))
        return findings

    def _record(
        self,
        dialect: Dialect,
        findings: NamespaceFindings,
        mode: ScanMode,
        result: ScanResult,
    ) -> bool:
        """Merge one namespace into the result. Returns False if it was skipped."""
        ns = findings.namespace
        if findings.error is not None:
            self.log.namespace_skipped(ns, str(findings.error))
            result.skipped_namespaces.append(ns)
            return False

        result.namespaces_scanned.append(ns)
        unprotected = [pod for pod in findings.unprotected if result.add_unprotected(pod)]
        if not unprotected:
            return True

        if self.on_unprotected is not None:
            self.on_unprotected(ns, unprotected)

        if mode == ScanMode.INTERACTIVE:
            self._offer_remediation(
                dialect,
                ns,
                f"Do you want to add a default deny all {dialect.display_name.lower()} "
                f"network policy to the namespace {ns}?",
                result,
            )
        return True

    def _offer_remediation(
        self,
        dialect: Dialect,
        namespace: str | None,
        message: str,
        result: ScanResult,
    ) -> None:
        """Prompt once and apply or record the refusal."""
        if not self.prompt_yes_no(message):
            result.user_denied_policies = True
            if namespace is not None:
                result.denied_namespaces.append(namespace)
            return

        target = f"namespace {namespace}" if namespace else "the cluster"
        try:
            self.remediation.apply(dialect, namespace)
        except RemediationError as e:
            self.log.remediation_failed(target, str(e))
            result.remediation_errors.append(str(e))
            return

        self.log.remediation_applied(target, dialect.display_name)
        result.policy_changes_made = True
