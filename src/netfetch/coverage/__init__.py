"""
Policy coverage engine.

Provides the pieces a scan is built from:
- Namespace selection
- Policy classification for the native and Cilium dialects
- The cache-aware coverage evaluator
- The security score
"""

from netfetch.coverage.cache import ProtectionCache
from netfetch.coverage.classifier import (
    VALID_LABEL_KEY,
    classify_policies,
    classify_policy,
)
from netfetch.coverage.evaluator import (
    CoverageEvaluator,
    CoverageReason,
    CoverageVerdict,
    decide,
    selector_matches,
    visible_policies,
)
from netfetch.coverage.namespaces import select_namespaces
from netfetch.coverage.scoring import MAX_SCORE, MIN_SCORE, calculate_score

__all__ = [
    "ProtectionCache",
    "VALID_LABEL_KEY",
    "classify_policies",
    "classify_policy",
    "CoverageEvaluator",
    "CoverageReason",
    "CoverageVerdict",
    "decide",
    "selector_matches",
    "visible_policies",
    "select_namespaces",
    "MAX_SCORE",
    "MIN_SCORE",
    "calculate_score",
]
