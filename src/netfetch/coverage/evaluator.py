"""
Coverage evaluator.

Decides, for one running pod and the policies visible to it, whether the
pod is protected. The decision is a monotonic OR over the policies, so
policy order never changes the outcome:

1. The pod is already in the protection cache.
2. A cluster-wide deny-all policy selects every pod.
3. A policy of the pod's namespace selects every pod in the namespace.
4. A policy whose selector matches the pod is a deny-all, or carries at
   least one populated ingress/egress rule. What the rule allows is not
   checked; a populated rule counts as coverage.

Protected pods are recorded in the cache.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from netfetch.coverage.cache import ProtectionCache
from netfetch.models import CILIUM_NAMESPACE_LABEL, Dialect, Pod, Policy
from netfetch.observability import get_logger


class CoverageReason(Enum):
    """Why a pod was judged protected or not."""

    CACHED = "cached"
    CLUSTER_DENY_ALL = "cluster_deny_all"
    NAMESPACE_WIDE = "namespace_wide"
    SELECTOR_DENY_ALL = "selector_deny_all"
    SELECTOR_RULES = "selector_rules"
    NO_MATCHING_POLICY = "no_matching_policy"


@dataclass(frozen=True)
class CoverageVerdict:
    """Result of evaluating one pod."""

    protected: bool
    reason: CoverageReason
    policy: Optional[str] = None


def visible_policies(pod: Pod, policies: Iterable[Policy]) -> list[Policy]:
    """Return the policies that can apply to the pod: cluster-wide ones and those of its namespace."""
    return [
        p for p in policies
        if p.is_cluster_wide or p.namespace is None or p.namespace == pod.namespace
    ]


def selector_matches(policy: Policy, pod: Pod) -> bool:
    """
    Check whether a policy's selector selects a pod.

    Every selector key must be present on the pod with an equal value and
    every match expression must hold. Cilium selectors also see the
    namespace label Cilium attaches to each endpoint.
    """
    if policy.ignored_keys and not policy.selector and not policy.match_expressions:
        # Only reserved keys were given; no workload pod carries them
        return False

    labels = pod.labels
    if policy.dialect == Dialect.CILIUM:
        labels = {CILIUM_NAMESPACE_LABEL: pod.namespace, **pod.labels}

    for key, value in policy.selector.items():
        if labels.get(key) != value:
            return False
    return all(expr.matches(labels) for expr in policy.match_expressions)


def decide(pod: Pod, policies: Iterable[Policy]) -> CoverageVerdict:
    """
    Decide coverage for a pod without consulting any cache.

    Args:
        pod: Pod to evaluate
        policies: Normalized policies; ones from other namespaces are ignored

    Returns:
        CoverageVerdict
    """
    candidates = visible_policies(pod, policies)

    for policy in candidates:
        if policy.is_cluster_wide and policy.scope_applies_all and policy.is_default_deny_all:
            return CoverageVerdict(True, CoverageReason.CLUSTER_DENY_ALL, policy.name)

    for policy in candidates:
        if not policy.is_cluster_wide and policy.scope_applies_all:
            return CoverageVerdict(True, CoverageReason.NAMESPACE_WIDE, policy.name)

    for policy in candidates:
        if not selector_matches(policy, pod):
            continue
        if policy.is_default_deny_all:
            return CoverageVerdict(True, CoverageReason.SELECTOR_DENY_ALL, policy.name)
        if policy.has_rules:
            return CoverageVerdict(True, CoverageReason.SELECTOR_RULES, policy.name)

    return CoverageVerdict(False, CoverageReason.NO_MATCHING_POLICY)


class CoverageEvaluator:
    """
    Cache-aware protection oracle.

    Example:
        evaluator = CoverageEvaluator(ProtectionCache())
        if not evaluator.is_protected(pod, policies):
            print(f"{pod.namespace}/{pod.name} is unprotected")
    """

    def __init__(self, cache: ProtectionCache | None = None):
        """
        Initialize CoverageEvaluator.

        Args:
            cache: Shared protection cache (a private one is created if omitted)
        """
        self.cache = cache if cache is not None else ProtectionCache()
        self.log = get_logger(__name__)

    def evaluate(self, pod: Pod, policies: Iterable[Policy]) -> CoverageVerdict:
        """Evaluate a pod, consulting and updating the cache."""
        policies = list(policies)
        verdicts: list[CoverageVerdict] = []

        def _decide() -> bool:
            verdict = decide(pod, policies)
            verdicts.append(verdict)
            return verdict.protected

        protected = self.cache.resolve(pod.key, _decide)
        if not verdicts:
            return CoverageVerdict(True, CoverageReason.CACHED)

        verdict = verdicts[0]
        if protected:
            self.log.pod_protected(pod.namespace, pod.name, verdict.reason.value, verdict.policy)
        return verdict

    def is_protected(self, pod: Pod, policies: Iterable[Policy]) -> bool:
        """Return True if the pod is protected."""
        return self.evaluate(pod, policies).protected
