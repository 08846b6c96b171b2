"""
Points & leveling service.

award_points() is the single entrypoint that changes profiles.points. It
applies the active boost, increments atomically at the storage layer, and
announces level-ups on the class stream as a best-effort side effect.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from activity_feed import notify
from boosts import boost_to_dict, calculate_boosted_points, get_active_boost
from db_stores import EntryStoreDB, ProfileStoreDB
from errors import NotFoundError, ValidationError
from levels import LevelInfo, get_level_info
from models import StudentMetrics, TeacherBoost, utc_now
from streaks import get_student_review_streak

logger = logging.getLogger(__name__)

# Base points per action, before boosts.
WORD_POINTS = 10
EXPRESSION_POINTS = 12
REVIEW_EASY_POINTS = 6
REVIEW_HARD_POINTS = 2


@dataclass
class PointsAward:
    awarded_points: int
    previous_points: int
    next_points: int
    boost: Optional[TeacherBoost] = None
    level_up: bool = False
    level: Optional[LevelInfo] = None

    def to_dict(self) -> dict:
        return {
            "awarded_points": self.awarded_points,
            "previous_points": self.previous_points,
            "next_points": self.next_points,
            "boost": boost_to_dict(self.boost),
            "level_up": self.level_up,
            "level": self.level.to_dict() if self.level else None,
        }


def award_points(student_id: int, base_points: int,
                 now: Optional[datetime] = None) -> PointsAward:
    if not student_id:
        raise ValidationError("student_id is required")
    try:
        base_points = int(base_points)
    except (TypeError, ValueError):
        raise ValidationError("base_points must be an integer")

    now = now or utc_now()
    boost = get_active_boost(now)
    awarded = calculate_boosted_points(base_points, boost)

    next_points = ProfileStoreDB.increment_points(student_id, awarded)
    if next_points is None:
        raise NotFoundError("Student profile not found")
    previous_points = next_points - awarded

    before = get_level_info(previous_points)
    after = get_level_info(next_points)
    level_up = after.level > before.level
    if level_up:
        _announce_level_up(student_id, after)

    logger.debug("Awarded %s (base %s) to %s: %s -> %s",
                 awarded, base_points, student_id, previous_points, next_points)
    return PointsAward(
        awarded_points=awarded,
        previous_points=previous_points,
        next_points=next_points,
        boost=boost,
        level_up=level_up,
        level=after,
    )


def _announce_level_up(student_id: int, level: LevelInfo) -> None:
    profile = ProfileStoreDB.get(student_id)
    name = profile.username if profile else "A student"
    notify(student_id, f"{name} reached Level {level.level}: {level.title}!")


def get_student_metrics(student_id: int, today: Optional[date] = None) -> StudentMetrics:
    profile = ProfileStoreDB.get(student_id)
    if profile is None:
        raise NotFoundError("Student profile not found")
    return StudentMetrics(
        points=max(0, profile.points or 0),
        streak=get_student_review_streak(student_id, today),
        words_collected=EntryStoreDB("vocabulary").count_for(student_id),
        expressions_collected=EntryStoreDB("expression").count_for(student_id),
    )
