"""
Normalized network policy record.

Both supported dialects, the native NetworkPolicy and the Cilium
CiliumNetworkPolicy/CiliumClusterwideNetworkPolicy, are decoded into the
same Policy record before any coverage decision is made.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Implicit label Cilium attaches to every endpoint
CILIUM_NAMESPACE_LABEL = "io.kubernetes.pod.namespace"


class Dialect(Enum):
    """Policy dialect."""

    NATIVE = "native"
    CILIUM = "cilium"

    @property
    def display_name(self) -> str:
        """Return the name used in user-facing messages."""
        return "Kubernetes" if self is Dialect.NATIVE else "Cilium"


class PolicyScope(Enum):
    """Where a policy applies."""

    NAMESPACED = "namespaced"
    CLUSTER_WIDE = "cluster_wide"


@dataclass(frozen=True)
class MatchExpression:
    """A set-based label requirement (native podSelector.matchExpressions)."""

    key: str
    operator: str
    values: tuple[str, ...] = ()

    def matches(self, labels: dict[str, str]) -> bool:
        """Evaluate the requirement against a label set."""
        if self.operator == "In":
            return self.key in labels and labels[self.key] in self.values
        if self.operator == "NotIn":
            return self.key not in labels or labels[self.key] not in self.values
        if self.operator == "Exists":
            return self.key in labels
        if self.operator == "DoesNotExist":
            return self.key not in labels
        return False


@dataclass(frozen=True)
class Policy:
    """
    A network policy normalized from either dialect.

    Attributes:
        name: Policy name
        dialect: Dialect the policy was written in
        scope: Namespaced or cluster-wide
        namespace: Owning namespace, None for cluster-wide policies
        selector: Equality label selector; empty matches everything in scope
        match_expressions: Set-based requirements (native only)
        ignored_keys: Selector keys skipped during classification
        ingress_rules: Normalized ingress rules
        egress_rules: Normalized egress rules
    """

    name: str
    dialect: Dialect
    scope: PolicyScope = PolicyScope.NAMESPACED
    namespace: str | None = None
    selector: dict[str, str] = field(default_factory=dict)
    match_expressions: tuple[MatchExpression, ...] = ()
    ignored_keys: tuple[str, ...] = ()
    ingress_rules: tuple[dict[str, Any], ...] = ()
    egress_rules: tuple[dict[str, Any], ...] = ()

    @property
    def is_cluster_wide(self) -> bool:
        """Return True for cluster-scoped policies."""
        return self.scope == PolicyScope.CLUSTER_WIDE

    @property
    def is_default_deny_all(self) -> bool:
        """Return True if the policy allows no traffic at all."""
        return not self.ingress_rules and not self.egress_rules

    @property
    def scope_applies_all(self) -> bool:
        """Return True if the selector selects every pod in scope."""
        return not self.selector and not self.match_expressions and not self.ignored_keys

    @property
    def has_rules(self) -> bool:
        """Return True if at least one ingress or egress rule is populated."""
        return any(self.ingress_rules) or any(self.egress_rules)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "dialect": self.dialect.value,
            "scope": self.scope.value,
            "namespace": self.namespace,
            "selector": dict(self.selector),
            "match_expressions": [
                {"key": e.key, "operator": e.operator, "values": list(e.values)}
                for e in self.match_expressions
            ],
            "ignored_keys": list(self.ignored_keys),
            "ingress_rules": list(self.ingress_rules),
            "egress_rules": list(self.egress_rules),
            "is_default_deny_all": self.is_default_deny_all,
            "scope_applies_all": self.scope_applies_all,
        }
