"""
Duplicate / uniqueness evaluation for collected words and expressions.

A submission identical (after normalisation) to another student's entry earns
nothing; one that is merely very similar earns half; anything else earns the
full base points. Similarity is the better of normalised edit similarity and
token Jaccard similarity.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable

from flask import current_app

from db_stores import EntryStoreDB
from errors import DependencyUnavailable

logger = logging.getLogger(__name__)

NEAR_DUPLICATE_THRESHOLD = 0.86
NEAR_DUPLICATE_MULTIPLIER = 0.5
DEFAULT_SCAN_LIMIT = 1500

TIER_UNIQUE = "unique"
TIER_NEAR_DUPLICATE = "near_duplicate"
TIER_DUPLICATE = "duplicate"


@dataclass
class UniquenessResult:
    tier: str
    base_points_to_award: int
    max_similarity: float = 0.0


# ── String similarity ────────────────────────────────────────────────


def normalize_for_match(value: str) -> str:
    """Lowercase, replace anything but [a-z0-9] with spaces, collapse whitespace."""
    lowered = (value or "").lower()
    lowered = re.sub(r"[^a-z0-9\s]", " ", lowered)
    return re.sub(r"\s+", " ", lowered).strip()


def levenshtein_distance(left: str, right: str) -> int:
    if left == right:
        return 0
    if not left:
        return len(right)
    if not right:
        return len(left)

    previous = list(range(len(right) + 1))
    for i, lc in enumerate(left, 1):
        current = [i] + [0] * len(right)
        for j, rc in enumerate(right, 1):
            cost = 0 if lc == rc else 1
            current[j] = min(current[j - 1] + 1, previous[j] + 1, previous[j - 1] + cost)
        previous = current
    return previous[-1]


def token_jaccard_similarity(left: str, right: str) -> float:
    left_tokens = set(left.split())
    right_tokens = set(right.split())
    if not left_tokens and not right_tokens:
        return 1.0
    if not left_tokens or not right_tokens:
        return 0.0
    return len(left_tokens & right_tokens) / len(left_tokens | right_tokens)


def string_similarity(left: str, right: str) -> float:
    max_length = max(len(left), len(right))
    if max_length == 0:
        return 1.0
    edit_similarity = 1 - levenshtein_distance(left, right) / max_length
    return max(edit_similarity, token_jaccard_similarity(left, right))


def tier_for(max_similarity: float, base_points: int) -> UniquenessResult:
    if max_similarity >= NEAR_DUPLICATE_THRESHOLD:
        return UniquenessResult(
            tier=TIER_NEAR_DUPLICATE,
            base_points_to_award=max(1, round(base_points * NEAR_DUPLICATE_MULTIPLIER)),
            max_similarity=max_similarity,
        )
    return UniquenessResult(TIER_UNIQUE, base_points, max_similarity)


def score_against_candidates(candidate: str, existing: Iterable[str], base_points: int,
                             already_normalized: bool = True) -> UniquenessResult:
    """Tier a normalised candidate against other students' terms.

    With already_normalized=False the existing values are raw stored terms and
    are normalised here (the slow path used when the normalised column is
    missing).
    """
    max_similarity = 0.0
    for value in existing:
        if not isinstance(value, str):
            continue
        other = value.strip() if already_normalized else normalize_for_match(value)
        if not other:
            continue
        if other == candidate:
            return UniquenessResult(TIER_DUPLICATE, 0, 1.0)
        similarity = string_similarity(candidate, other)
        if similarity > max_similarity:
            max_similarity = similarity
    return tier_for(max_similarity, base_points)


# ── Store-backed evaluation ──────────────────────────────────────────


def evaluate_entry_uniqueness(kind: str, student_id: int, raw_value: str, base_points: int,
                              scan_limit: int | None = None) -> UniquenessResult:
    """Tier a new vocabulary/expression submission against other students' entries."""
    candidate = normalize_for_match(raw_value)
    if not candidate:
        return UniquenessResult(TIER_UNIQUE, base_points)

    if scan_limit is None:
        scan_limit = current_app.config.get("UNIQUENESS_SCAN_LIMIT", DEFAULT_SCAN_LIMIT)

    store = EntryStoreDB(kind)
    use_raw_fallback = False
    try:
        if store.other_student_has_normalized(candidate, student_id):
            return UniquenessResult(TIER_DUPLICATE, 0, 1.0)
    except DependencyUnavailable:
        logger.info("Normalized %s column missing; scanning raw values", kind)
        use_raw_fallback = True

    try:
        if use_raw_fallback:
            existing = store.recent_raw_terms(student_id, scan_limit)
        else:
            existing = store.recent_normalized_terms(student_id, scan_limit)
    except DependencyUnavailable:
        logger.warning("Uniqueness scan for %s unavailable; treating as unique", kind)
        return UniquenessResult(TIER_UNIQUE, base_points)

    return score_against_candidates(candidate, existing, base_points,
                                    already_normalized=not use_raw_fallback)
