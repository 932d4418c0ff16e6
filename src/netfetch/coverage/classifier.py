"""
Policy classifier.

Decodes raw policy manifests (the JSON shape returned by the API server)
into typed Policy records. This is the only place that navigates raw
manifests; everything downstream works on Policy.

Rule lists:
- A missing ingress/egress list is the same as an empty one.
- A list holding exactly one rule with no fields is vacuous and is
  normalized to an empty list, in both dialects.

Cilium selectors: endpointSelector keys that are not plain label keys
(reserved or source-prefixed keys such as "reserved:host") are ignored
with a warning instead of failing the policy.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable

from netfetch.errors import PolicyDecodeError, SelectorParseError
from netfetch.models import Dialect, MatchExpression, Policy, PolicyScope

logger = logging.getLogger(__name__)

# Conservative label key syntax; anything else is treated as reserved
VALID_LABEL_KEY = re.compile(r"^[A-Za-z0-9][-A-Za-z0-9_.]*[A-Za-z0-9]$")

VALID_OPERATORS = {"In", "NotIn", "Exists", "DoesNotExist"}


def classify_policy(
    raw: dict[str, Any],
    dialect: Dialect,
    scope: PolicyScope = PolicyScope.NAMESPACED,
) -> Policy:
    """
    Decode one raw policy manifest.

    Args:
        raw: Policy manifest as a plain dict
        dialect: Dialect the manifest is written in
        scope: Scope of the resource the manifest was listed from

    Returns:
        Normalized Policy

    Raises:
        PolicyDecodeError: The manifest has no usable spec
        SelectorParseError: The selector holds a non-string value
    """
    metadata = raw.get("metadata") or {}
    name = metadata.get("name") or "<unnamed>"
    spec = raw.get("spec")
    if not isinstance(spec, dict):
        raise PolicyDecodeError(name, "spec not found")

    if dialect == Dialect.NATIVE:
        return _classify_native(name, metadata, spec)
    return _classify_cilium(name, metadata, spec, scope)


def classify_policies(
    raws: Iterable[dict[str, Any]],
    dialect: Dialect,
    scope: PolicyScope = PolicyScope.NAMESPACED,
) -> list[Policy]:
    """
    Decode a batch of manifests, skipping the ones that fail.

    Duplicate names within the batch are kept once.
    """
    policies: list[Policy] = []
    seen: set[tuple[str | None, str]] = set()
    for raw in raws:
        try:
            policy = classify_policy(raw, dialect, scope)
        except PolicyDecodeError as e:
            logger.warning("Skipping policy: %s", e)
            continue
        key = (policy.namespace, policy.name)
        if key in seen:
            continue
        seen.add(key)
        policies.append(policy)
    return policies


def _classify_native(name: str, metadata: dict[str, Any], spec: dict[str, Any]) -> Policy:
    """Decode a networking.k8s.io/v1 NetworkPolicy."""
    pod_selector = spec.get("podSelector") or {}
    if not isinstance(pod_selector, dict):
        raise SelectorParseError(name, "podSelector is not a mapping")

    selector = _string_labels(name, pod_selector.get("matchLabels"))
    expressions = _match_expressions(name, pod_selector.get("matchExpressions"))

    return Policy(
        name=name,
        dialect=Dialect.NATIVE,
        scope=PolicyScope.NAMESPACED,
        namespace=metadata.get("namespace"),
        selector=selector,
        match_expressions=expressions,
        ingress_rules=_rule_list(name, spec.get("ingress")),
        egress_rules=_rule_list(name, spec.get("egress")),
    )


def _classify_cilium(
    name: str,
    metadata: dict[str, Any],
    spec: dict[str, Any],
    scope: PolicyScope,
) -> Policy:
    """Decode a CiliumNetworkPolicy or CiliumClusterwideNetworkPolicy."""
    endpoint_selector = spec.get("endpointSelector")
    if endpoint_selector is None and spec.get("nodeSelector") is not None:
        raise PolicyDecodeError(name, "nodeSelector policies select hosts, not pods")
    endpoint_selector = endpoint_selector or {}
    if not isinstance(endpoint_selector, dict):
        raise SelectorParseError(name, "endpointSelector is not a mapping")

    labels = _string_labels(name, endpoint_selector.get("matchLabels"))
    selector: dict[str, str] = {}
    ignored: list[str] = []
    for key, value in labels.items():
        if not VALID_LABEL_KEY.match(key):
            logger.warning("Skipping reserved label key %s in policy %s", key, name)
            ignored.append(key)
            continue
        selector[key] = value

    return Policy(
        name=name,
        dialect=Dialect.CILIUM,
        scope=scope,
        namespace=None if scope == PolicyScope.CLUSTER_WIDE else metadata.get("namespace"),
        selector=selector,
        ignored_keys=tuple(ignored),
        ingress_rules=_rule_list(name, spec.get("ingress")),
        egress_rules=_rule_list(name, spec.get("egress")),
    )


def _string_labels(name: str, match_labels: Any) -> dict[str, str]:
    """Validate a matchLabels mapping."""
    if not match_labels:
        return {}
    if not isinstance(match_labels, dict):
        raise SelectorParseError(name, "matchLabels is not a mapping")

    labels: dict[str, str] = {}
    for key, value in match_labels.items():
        if not isinstance(value, str):
            raise SelectorParseError(
                name, f"value for {key} in matchLabels is not a string: {value!r}"
            )
        labels[str(key)] = value
    return labels


def _match_expressions(name: str, expressions: Any) -> tuple[MatchExpression, ...]:
    """Validate native matchExpressions."""
    if not expressions:
        return ()
    if not isinstance(expressions, list):
        raise SelectorParseError(name, "matchExpressions is not a list")

    result = []
    for expr in expressions:
        if not isinstance(expr, dict) or "key" not in expr:
            raise SelectorParseError(name, f"malformed match expression {expr!r}")
        operator = expr.get("operator")
        if operator not in VALID_OPERATORS:
            raise SelectorParseError(name, f"unsupported selector operator {operator!r}")
        values = expr.get("values") or []
        if any(not isinstance(v, str) for v in values):
            raise SelectorParseError(name, f"non-string value in expression on {expr['key']}")
        result.append(MatchExpression(key=expr["key"], operator=operator, values=tuple(values)))
    return tuple(result)


def _rule_list(name: str, rules: Any) -> tuple[dict[str, Any], ...]:
    """Normalize a rule list; None and a lone empty rule both mean empty."""
    if rules is None:
        return ()
    if not isinstance(rules, list):
        raise PolicyDecodeError(name, "rule list is not a list")
    for rule in rules:
        if not isinstance(rule, dict):
            raise PolicyDecodeError(name, f"rule {rule!r} is not a mapping")
    if len(rules) == 1 and not rules[0]:
        return ()
    return tuple(rules)
