"""
Badge / achievement evaluator.

Progress is recomputed from StudentMetrics on every sync. Unlocks are
monotonic: once a student_badges row is unlocked it stays unlocked and its
reward is paid exactly once, batched into a single award_points() call.
When the badge tables are missing the built-in catalogue is evaluated purely
from metrics, with nothing persisted and nothing awarded.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from activity_feed import notify
from db_stores import BadgeStoreDB
from errors import DependencyUnavailable, StateConflictError, ValidationError
from models import (
    METRICS,
    BadgeDefinition,
    StudentBadge,
    StudentBadgeRow,
    StudentMetrics,
    to_iso,
    utc_now,
)
from points import award_points, get_student_metrics

logger = logging.getLogger(__name__)

FALLBACK_BADGES: list[BadgeDefinition] = [
    BadgeDefinition("first-steps", "first-steps", "First Steps", "Collect 5 vocabulary words.",
                    "words", 5, 20, "book", "blue"),
    BadgeDefinition("phrase-finder", "phrase-finder", "Phrase Finder", "Add 5 expressions.",
                    "expressions", 5, 20, "chat", "cyan"),
    BadgeDefinition("streak-starter", "streak-starter", "Streak Starter", "Reach a 3-day streak.",
                    "streak", 3, 30, "flame", "amber"),
    BadgeDefinition("point-racer", "point-racer", "Point Racer", "Earn 150 points.",
                    "points", 150, 40, "target", "emerald"),
    BadgeDefinition("vocab-sprinter", "vocab-sprinter", "Vocab Sprinter",
                    "Collect 20 vocabulary words.", "words", 20, 60, "spark", "violet"),
    BadgeDefinition("league-contender", "league-contender", "League Contender", "Earn 400 points.",
                    "points", 400, 80, "trophy", "rose"),
]


@dataclass
class BadgeEvaluation:
    badges: list[StudentBadge] = field(default_factory=list)
    rows: list[StudentBadgeRow] = field(default_factory=list)
    newly_unlocked: list[StudentBadge] = field(default_factory=list)
    reward_points: int = 0


@dataclass
class BadgeSyncResult:
    badges: list[StudentBadge]
    unlocked_badges: list[StudentBadge]
    fallback_mode: bool = False

    def to_dict(self) -> dict:
        return {
            "badges": [b.to_dict() for b in self.badges],
            "unlocked_badges": [b.to_dict() for b in self.unlocked_badges],
            "fallback_mode": self.fallback_mode,
        }


def _badge(definition: BadgeDefinition, progress: int, unlocked: bool) -> StudentBadge:
    return StudentBadge(
        id=definition.id,
        slug=definition.slug,
        name=definition.name,
        description=definition.description,
        icon=definition.icon,
        color=definition.color,
        target=definition.target,
        progress=progress,
        unlocked=unlocked,
        reward_points=definition.reward_points,
    )


def evaluate_badges(definitions: list[BadgeDefinition], existing: dict,
                    metrics: StudentMetrics, now: datetime) -> BadgeEvaluation:
    """Pure: compute the rows to persist and the unlocks this sync produces."""
    result = BadgeEvaluation()
    now_iso = to_iso(now)
    for definition in definitions:
        previous: Optional[StudentBadgeRow] = existing.get(definition.id)
        value = metrics.value_for(definition.metric)
        already_unlocked = bool(previous and previous.is_unlocked)
        unlocked = already_unlocked or value >= definition.target
        is_new = unlocked and not already_unlocked

        awarded = previous.awarded_points if previous else 0
        if is_new:
            awarded = max(awarded, definition.reward_points)
            result.reward_points += definition.reward_points

        unlocked_at = None
        if unlocked:
            unlocked_at = (previous.unlocked_at if previous else None) or now_iso

        result.rows.append(StudentBadgeRow(
            badge_id=definition.id,
            progress_value=value,
            is_unlocked=unlocked,
            unlocked_at=unlocked_at,
            awarded_points=awarded,
        ))
        badge = _badge(definition, value, unlocked)
        result.badges.append(badge)
        if is_new:
            result.newly_unlocked.append(badge)
    return result


def fallback_badges(metrics: StudentMetrics) -> list[StudentBadge]:
    """Built-in catalogue evaluated from metrics only (presentation, no rewards)."""
    badges = []
    for definition in FALLBACK_BADGES:
        value = metrics.value_for(definition.metric)
        badges.append(_badge(definition, value, value >= definition.target))
    return badges


def sync_student_badges(student_id: int, metrics: Optional[StudentMetrics] = None,
                        now: Optional[datetime] = None) -> BadgeSyncResult:
    now = now or utc_now()
    metrics = metrics or get_student_metrics(student_id)
    store = BadgeStoreDB(student_id)

    try:
        definitions = store.active_definitions()
        if not definitions:
            return BadgeSyncResult(badges=[], unlocked_badges=[], fallback_mode=False)
        existing = store.rows()
    except DependencyUnavailable as exc:
        logger.info("Badge tables unavailable (%s); using built-in badges", exc.relation)
        return BadgeSyncResult(badges=fallback_badges(metrics), unlocked_badges=[],
                               fallback_mode=True)

    evaluation = evaluate_badges(definitions, existing, metrics, now)
    store.upsert(evaluation.rows, to_iso(now))

    if evaluation.reward_points > 0:
        award_points(student_id, evaluation.reward_points, now)
    for badge in evaluation.newly_unlocked:
        notify(student_id, f"Unlocked the {badge.name} badge!")

    return BadgeSyncResult(
        badges=evaluation.badges,
        unlocked_badges=evaluation.newly_unlocked,
        fallback_mode=False,
    )


def sync_badges_best_effort(student_id: int, now: Optional[datetime] = None) -> list[StudentBadge]:
    """Badge sync as a side effect of a primary action; never raises."""
    try:
        return sync_student_badges(student_id, now=now).unlocked_badges
    except Exception:
        logger.exception("Badge sync for %s failed", student_id)
        return []


# ── Teacher operations ───────────────────────────────────────────────


def _slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


def create_badge_definition(teacher_id: Optional[int], name: str, metric: str, target,
                            reward_points=0, description: str = "", icon: str = "spark",
                            color: str = "blue", slug: Optional[str] = None,
                            now: Optional[datetime] = None) -> BadgeDefinition:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Badge name is required")
    if metric not in METRICS:
        raise ValidationError(f"metric must be one of {', '.join(METRICS)}")
    try:
        target = int(target)
        reward_points = int(reward_points)
    except (TypeError, ValueError):
        raise ValidationError("target and reward_points must be integers")
    if target <= 0:
        raise ValidationError("target must be positive")
    if reward_points < 0:
        raise ValidationError("reward_points cannot be negative")
    slug = _slugify(slug or name)
    if not slug:
        raise ValidationError("Badge slug is empty")

    definition = BadgeStoreDB.create_definition(
        slug=slug,
        name=name,
        description=description or "",
        metric=metric,
        target=target,
        reward_points=reward_points,
        icon=icon or "spark",
        color=color or "blue",
        created_by=teacher_id,
        now_iso=to_iso(now or utc_now()),
    )
    if definition is None:
        raise StateConflictError(f"A badge with slug '{slug}' already exists")
    return definition
