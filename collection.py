"""
Collecting words and expressions — the primary student action.

The entry insert is the correctness boundary: if it fails nothing else runs.
After it the review item, uniqueness-tiered award, daily hook and context
bonus follow in order; badge sync runs last and never fails the request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

from badges import sync_badges_best_effort
from context_score import ContextScore, score_context_usage
from daily_hook import DailyHookResult, claim_daily_hook_bonus
from db_stores import ExpressionStoreDB, VocabularyStoreDB
from errors import DependencyUnavailable, ValidationError
from models import ExpressionEntry, StudentBadge, VocabularyEntry, to_iso, utc_now
from points import EXPRESSION_POINTS, WORD_POINTS, award_points
from spaced_repetition import ensure_review_item
from uniqueness import evaluate_entry_uniqueness, normalize_for_match

logger = logging.getLogger(__name__)

MAX_TERM_LENGTH = 120
MAX_TEXT_LENGTH = 1000


@dataclass
class CollectResult:
    entry: Union[VocabularyEntry, ExpressionEntry]
    uniqueness_tier: str
    base_awarded_points: int
    daily_hook: DailyHookResult = field(default_factory=DailyHookResult)
    context: Optional[ContextScore] = None
    context_bonus_points: int = 0
    unlocked_badges: list[StudentBadge] = field(default_factory=list)

    @property
    def total_awarded_points(self) -> int:
        return self.base_awarded_points + self.daily_hook.bonus_points + self.context_bonus_points

    def to_dict(self) -> dict:
        return {
            "entry": entry_to_dict(self.entry),
            "uniqueness_tier": self.uniqueness_tier,
            "base_awarded_points": self.base_awarded_points,
            "daily_hook_matched": self.daily_hook.matched,
            "daily_hook_bonus_points": self.daily_hook.bonus_points,
            "context_score": self.context.to_dict() if self.context else None,
            "context_bonus_points": self.context_bonus_points,
            "total_awarded_points": self.total_awarded_points,
            "unlocked_badges": [b.to_dict() for b in self.unlocked_badges],
        }


def _required(value: Optional[str], name: str, limit: int) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{name} is required")
    if len(text) > limit:
        raise ValidationError(f"{name} must be at most {limit} characters")
    return text


def _optional(value: Optional[str], name: str) -> Optional[str]:
    text = (value or "").strip()
    if len(text) > MAX_TEXT_LENGTH:
        raise ValidationError(f"{name} must be at most {MAX_TEXT_LENGTH} characters")
    return text or None


def _ensure_review(student_id: int, source_type: str, source_id: int, prompt: str,
                   answer: str, hint: Optional[str], now: datetime) -> None:
    try:
        ensure_review_item(student_id, source_type, source_id, prompt, answer, hint, now)
    except DependencyUnavailable:
        logger.warning("review_items unavailable; %s %s not queued", source_type, source_id)


def _context_bonus(student_id: int, term: str, sentence: Optional[str],
                   now: datetime) -> tuple[Optional[ContextScore], int]:
    if not sentence:
        return None, 0
    score = score_context_usage(term, sentence)
    if score.bonus_points <= 0:
        return score, 0
    return score, award_points(student_id, score.bonus_points, now).awarded_points


def _base_award(student_id: int, base_points: int, now: datetime) -> int:
    """Duplicates carry no base, so no boost is applied to them either."""
    if base_points <= 0:
        return 0
    return award_points(student_id, base_points, now).awarded_points


def create_vocabulary(student_id: int, word: str, definition: str,
                      example_sentence: Optional[str] = None, category: Optional[str] = None,
                      material_id: Optional[int] = None, image_url: Optional[str] = None,
                      now: Optional[datetime] = None) -> CollectResult:
    if not student_id:
        raise ValidationError("student_id is required")
    word = _required(word, "word", MAX_TERM_LENGTH)
    definition = _required(definition, "definition", MAX_TEXT_LENGTH)
    example_sentence = _optional(example_sentence, "example_sentence")
    now = now or utc_now()

    entry = VocabularyStoreDB(student_id).add(
        word, definition, example_sentence, normalize_for_match(word), to_iso(now),
        category=(category or "").strip() or None, material_id=material_id, image_url=image_url,
    )
    _ensure_review(student_id, "vocabulary", entry.id, word, definition, example_sentence, now)

    uniqueness = evaluate_entry_uniqueness("vocabulary", student_id, word, WORD_POINTS)
    base_awarded = _base_award(student_id, uniqueness.base_points_to_award, now)
    hook = claim_daily_hook_bonus(student_id, entry.id, word, now=now)
    context, context_points = _context_bonus(student_id, word, example_sentence, now)

    return CollectResult(
        entry=entry,
        uniqueness_tier=uniqueness.tier,
        base_awarded_points=base_awarded,
        daily_hook=hook,
        context=context,
        context_bonus_points=context_points,
        unlocked_badges=sync_badges_best_effort(student_id, now),
    )


def create_expression(student_id: int, expression: str, meaning: str,
                      usage_example: Optional[str] = None, context: Optional[str] = None,
                      material_id: Optional[int] = None,
                      now: Optional[datetime] = None) -> CollectResult:
    if not student_id:
        raise ValidationError("student_id is required")
    expression = _required(expression, "expression", MAX_TERM_LENGTH)
    meaning = _required(meaning, "meaning", MAX_TEXT_LENGTH)
    usage_example = _optional(usage_example, "usage_example")
    now = now or utc_now()

    entry = ExpressionStoreDB(student_id).add(
        expression, meaning, usage_example, normalize_for_match(expression), to_iso(now),
        context=_optional(context, "context"), material_id=material_id,
    )
    _ensure_review(student_id, "expression", entry.id, expression, meaning, usage_example, now)

    uniqueness = evaluate_entry_uniqueness("expression", student_id, expression, EXPRESSION_POINTS)
    base_awarded = _base_award(student_id, uniqueness.base_points_to_award, now)
    context_score, context_points = _context_bonus(student_id, expression, usage_example, now)

    return CollectResult(
        entry=entry,
        uniqueness_tier=uniqueness.tier,
        base_awarded_points=base_awarded,
        context=context_score,
        context_bonus_points=context_points,
        unlocked_badges=sync_badges_best_effort(student_id, now),
    )


def list_vocabulary(student_id: int, limit: int = 50) -> list[VocabularyEntry]:
    return VocabularyStoreDB(student_id).recent(max(1, min(int(limit), 200)))


def entry_to_dict(entry: Union[VocabularyEntry, ExpressionEntry]) -> dict:
    if isinstance(entry, VocabularyEntry):
        return {
            "id": entry.id,
            "type": "vocabulary",
            "word": entry.word,
            "definition": entry.definition,
            "example_sentence": entry.example_sentence,
            "category": entry.category,
            "image_url": entry.image_url,
            "material_id": entry.material_id,
            "status": entry.status,
            "created_at": entry.created_at,
        }
    return {
        "id": entry.id,
        "type": "expression",
        "expression": entry.expression,
        "meaning": entry.meaning,
        "usage_example": entry.usage_example,
        "context": entry.context,
        "material_id": entry.material_id,
        "created_at": entry.created_at,
    }
