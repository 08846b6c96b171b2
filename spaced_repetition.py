"""
SM-2 style spaced-repetition scheduler with two ratings (easy / hard).

Each collected word or expression gets one review item. A rating moves the
item's due date forward, pays review points, and resyncs the student's
streak and badges.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from typing import Optional

from badges import sync_badges_best_effort
from db_stores import ReviewItemStoreDB
from errors import DependencyUnavailable, NotFoundError, PersistenceError, ValidationError
from models import ReviewItem, StudentBadge, to_iso, utc_now
from points import REVIEW_EASY_POINTS, REVIEW_HARD_POINTS, PointsAward, award_points
from streaks import sync_student_review_streak

logger = logging.getLogger(__name__)

RATINGS = ("easy", "hard")
MIN_EASE = 1.3
MAX_EASE = 3.5
EASE_STEP_UP = 0.1
EASE_STEP_DOWN = 0.2
MASTERED_AFTER = 5


@dataclass
class Schedule:
    status: str
    interval_days: int
    ease_factor: float
    repetitions: int


@dataclass
class ReviewResult:
    item: ReviewItem
    award: PointsAward
    streak: int
    unlocked_badges: list[StudentBadge] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "item": review_item_to_dict(self.item),
            "points": self.award.to_dict(),
            "streak": self.streak,
            "unlocked_badges": [b.to_dict() for b in self.unlocked_badges],
        }


def next_schedule(item: ReviewItem, rating: str) -> Schedule:
    if rating not in RATINGS:
        raise ValidationError("rating must be 'easy' or 'hard'")
    ease = float(item.ease_factor or 2.5)

    if rating == "hard":
        return Schedule(
            status="learning",
            interval_days=1,
            ease_factor=round(max(MIN_EASE, ease - EASE_STEP_DOWN), 2),
            repetitions=0,
        )

    repetitions = (item.repetitions or 0) + 1
    ease = round(min(MAX_EASE, ease + EASE_STEP_UP), 2)
    if repetitions == 1:
        interval = 1
    elif repetitions == 2:
        interval = 3
    else:
        interval = max(1, round((item.interval_days or 1) * ease))
    return Schedule(
        status="mastered" if repetitions >= MASTERED_AFTER else "learning",
        interval_days=interval,
        ease_factor=ease,
        repetitions=repetitions,
    )


def submit_review_rating(student_id: int, item_id: int, rating: str,
                         now: Optional[datetime] = None) -> ReviewResult:
    if rating not in RATINGS:
        raise ValidationError("rating must be 'easy' or 'hard'")
    now = now or utc_now()
    store = ReviewItemStoreDB(student_id)
    item = store.get(item_id)
    if item is None:
        raise NotFoundError("Review item not found")

    schedule = next_schedule(item, rating)
    updated = store.update_schedule(
        item_id,
        status=schedule.status,
        interval_days=schedule.interval_days,
        ease_factor=schedule.ease_factor,
        repetitions=schedule.repetitions,
        due_at=to_iso(now + timedelta(days=schedule.interval_days)),
        reviewed_at=to_iso(now),
    )
    if not updated:
        raise PersistenceError("Could not save the review")

    award = award_points(
        student_id, REVIEW_EASY_POINTS if rating == "easy" else REVIEW_HARD_POINTS, now
    )
    streak = sync_student_review_streak(student_id, now.date())
    unlocked = sync_badges_best_effort(student_id, now)
    return ReviewResult(item=store.get(item_id), award=award, streak=streak,
                        unlocked_badges=unlocked)


# ── Queue reads ──────────────────────────────────────────────────────


def ensure_review_item(student_id: int, source_type: str, source_id: int, prompt: str,
                       answer: str, context_hint: Optional[str] = None,
                       now: Optional[datetime] = None) -> bool:
    """Create the item if absent; True when a row was inserted."""
    return ReviewItemStoreDB(student_id).ensure(
        source_type, source_id, prompt, answer, context_hint, to_iso(now or utc_now())
    )


def get_due_review_items(student_id: int, limit: int = 20,
                         now: Optional[datetime] = None) -> list[ReviewItem]:
    try:
        return ReviewItemStoreDB(student_id).due(to_iso(now or utc_now()), limit)
    except DependencyUnavailable:
        return []


def get_due_review_count(student_id: int, now: Optional[datetime] = None) -> int:
    try:
        return ReviewItemStoreDB(student_id).due_count(to_iso(now or utc_now()))
    except DependencyUnavailable:
        return 0


def _day_start(now: datetime) -> datetime:
    return datetime.combine(now.astimezone(timezone.utc).date(), time.min, tzinfo=timezone.utc)


def get_reviews_completed_today(student_id: int, now: Optional[datetime] = None) -> int:
    now = now or utc_now()
    try:
        return ReviewItemStoreDB(student_id).reviewed_since(to_iso(_day_start(now)))
    except DependencyUnavailable:
        return 0


def get_review_analytics(now: Optional[datetime] = None) -> dict:
    """Class-wide review counters for the teacher dashboard."""
    now = now or utc_now()
    try:
        return ReviewItemStoreDB.class_analytics(to_iso(now), to_iso(_day_start(now)))
    except DependencyUnavailable:
        logger.info("review_items unavailable; analytics are zero")
        return {
            "due_now": 0,
            "completed_today": 0,
            "mastered_count": 0,
            "total_review_items": 0,
            "active_students_today": 0,
        }


def review_item_to_dict(item: ReviewItem) -> dict:
    return {
        "id": item.id,
        "source_type": item.source_type,
        "source_id": item.source_id,
        "prompt": item.prompt,
        "answer": item.answer,
        "context_hint": item.context_hint,
        "status": item.status,
        "due_at": item.due_at,
        "last_reviewed_at": item.last_reviewed_at,
        "interval_days": item.interval_days,
        "ease_factor": item.ease_factor,
        "repetitions": item.repetitions,
    }
