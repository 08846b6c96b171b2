"""
Daily-hook bonus — extra points for collecting the word named by today's challenge.

A claim row unique on (challenge, student) makes the bonus at-most-once. The
claim and its award succeed or fail together: if the award raises, the
claim is deleted before the error propagates.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from db_stores import ChallengeStoreDB
from errors import DependencyUnavailable
from models import to_iso, utc_now
from points import award_points
from uniqueness import normalize_for_match

logger = logging.getLogger(__name__)

_QUOTED = re.compile(r'"([^"]+)"')


@dataclass
class DailyHookResult:
    matched: bool = False
    bonus_points: int = 0


def build_daily_hook_candidates(title: str, description: Optional[str] = None) -> set[str]:
    """Normalised strings a collected word may equal to hit the hook."""
    title = title or ""
    raw = [title, description]
    if ":" in title:
        raw.append(title.split(":", 1)[1])
    raw.extend(_QUOTED.findall(title))
    if description:
        raw.extend(_QUOTED.findall(description))

    candidates = set()
    for value in raw:
        normalized = normalize_for_match(value or "")
        if normalized:
            candidates.add(normalized)
    return candidates


def claim_daily_hook_bonus(student_id: int, vocabulary_id: Optional[int], word: str,
                           today: Optional[date] = None,
                           now: Optional[datetime] = None) -> DailyHookResult:
    now = now or utc_now()
    today = today or now.date()
    try:
        challenge = ChallengeStoreDB.active_on(today.isoformat())
    except DependencyUnavailable:
        return DailyHookResult()
    if challenge is None or challenge.metric != "words":
        return DailyHookResult()

    normalized = normalize_for_match(word)
    if not normalized or normalized not in build_daily_hook_candidates(
        challenge.title, challenge.description
    ):
        return DailyHookResult()

    try:
        claim_id = ChallengeStoreDB.claim(challenge.id, student_id, vocabulary_id, to_iso(now))
    except DependencyUnavailable:
        logger.info("daily_challenge_claims unavailable; hook matched without bonus")
        return DailyHookResult(matched=True)
    if claim_id is None:
        return DailyHookResult(matched=True)

    try:
        award = award_points(student_id, challenge.reward_points or 0, now)
    except Exception:
        ChallengeStoreDB.delete_claim(claim_id)
        raise

    ChallengeStoreDB.set_claim_points(claim_id, award.awarded_points)
    logger.info("Daily hook %s claimed by %s (+%s)", challenge.id, student_id, award.awarded_points)
    return DailyHookResult(matched=True, bonus_points=award.awarded_points)
