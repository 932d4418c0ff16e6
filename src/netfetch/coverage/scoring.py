"""
Security score.

A heuristic on a fixed 1-100 scale, shared by both dialects.
"""

from __future__ import annotations

BASE_SCORE = 50
DENY_ALL_BONUS = 20
NO_POLICY_PENALTY = 20
MIN_SCORE = 1
MAX_SCORE = 100


def calculate_score(has_any_policies: bool, has_deny_all_coverage: bool, unprotected_count: int) -> int:
    """
    Calculate the security score.

    Args:
        has_any_policies: At least one policy exists in scope
        has_deny_all_coverage: Deny-all coverage is established in scope
        unprotected_count: Number of distinct unprotected pods

    Returns:
        Score clamped to [1, 100]
    """
    score = BASE_SCORE

    if has_deny_all_coverage:
        score += DENY_ALL_BONUS
    elif not has_any_policies:
        score -= NO_POLICY_PENALTY

    score -= max(unprotected_count, 0)

    return max(MIN_SCORE, min(MAX_SCORE, score))
