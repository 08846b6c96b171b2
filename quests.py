"""
Weekly quests and the daily challenge.

Quest progress is never stored; it is recomputed from StudentMetrics on every
read. When no teacher-authored rows apply, a built-in set is used instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from db_stores import ChallengeStoreDB, QuestStoreDB
from errors import DependencyUnavailable, ValidationError
from models import METRICS, DailyChallenge, Quest, StudentMetrics, to_iso, utc_now, utc_today
from points import get_student_metrics

logger = logging.getLogger(__name__)

FALLBACK_QUESTS: list[Quest] = [
    Quest("fallback-quest-1", "Word Hunter", "Collect 5 new vocabulary words this week.",
          "words", 5, 40),
    Quest("fallback-quest-2", "Expression Explorer", "Add 3 expressions with usage examples.",
          "expressions", 3, 40),
    Quest("fallback-quest-3", "Consistency Sprint", "Reach a 3-day learning streak.",
          "streak", 3, 50),
]


def fallback_daily_challenge(today: date) -> DailyChallenge:
    return DailyChallenge(
        id="fallback-daily",
        title="Context Builder",
        description="Write one original sentence using a new vocabulary word.",
        challenge_date=today.isoformat(),
        metric="words",
        target_value=1,
        reward_points=20,
    )


@dataclass
class QuestProgress:
    id: object
    title: str
    description: str
    metric: str
    reward_points: int
    target_value: int
    current_value: int
    completion_percent: int
    is_completed: bool

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "metric": self.metric,
            "reward_points": self.reward_points,
            "target_value": self.target_value,
            "current_value": self.current_value,
            "completion_percent": self.completion_percent,
            "is_completed": self.is_completed,
        }


def quest_progress(quests: list[Quest], metrics: StudentMetrics) -> list[QuestProgress]:
    progress = []
    for quest in quests:
        current = metrics.value_for(quest.metric)
        target = quest.target_value
        progress.append(QuestProgress(
            id=quest.id,
            title=quest.title,
            description=quest.description,
            metric=quest.metric,
            reward_points=quest.reward_points,
            target_value=target,
            current_value=current,
            completion_percent=min(100, round(100 * current / max(target, 1))),
            is_completed=current >= target,
        ))
    return progress


def get_weekly_quest_progress(student_id: int, metrics: Optional[StudentMetrics] = None,
                              today: Optional[date] = None) -> list[QuestProgress]:
    today = today or utc_today()
    metrics = metrics or get_student_metrics(student_id, today)
    try:
        quests = QuestStoreDB.active_on(today.isoformat())
    except DependencyUnavailable:
        quests = []
    return quest_progress(quests or FALLBACK_QUESTS, metrics)


def get_today_daily_challenge(today: Optional[date] = None) -> DailyChallenge:
    today = today or utc_today()
    try:
        challenge = ChallengeStoreDB.active_on(today.isoformat())
    except DependencyUnavailable:
        challenge = None
    return challenge or fallback_daily_challenge(today)


# ── Teacher operations ───────────────────────────────────────────────


def _iso_date(value, field_name: str) -> str:
    if isinstance(value, date):
        return value.isoformat()
    try:
        return date.fromisoformat(str(value).strip()).isoformat()
    except ValueError:
        raise ValidationError(f"{field_name} must be a YYYY-MM-DD date")


def _validated_target(metric: str, target_value, reward_points) -> tuple[int, int]:
    if metric not in METRICS:
        raise ValidationError(f"metric must be one of {', '.join(METRICS)}")
    try:
        target_value = int(target_value)
        reward_points = int(reward_points)
    except (TypeError, ValueError):
        raise ValidationError("target_value and reward_points must be integers")
    if target_value <= 0:
        raise ValidationError("target_value must be positive")
    if reward_points < 0:
        raise ValidationError("reward_points cannot be negative")
    return target_value, reward_points


def create_daily_challenge(teacher_id: int, title: str, challenge_date, metric: str = "words",
                           target_value=1, reward_points=20, description: str = "",
                           now: Optional[datetime] = None) -> DailyChallenge:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Challenge title is required")
    target_value, reward_points = _validated_target(metric, target_value, reward_points)
    return ChallengeStoreDB.create(
        title=title,
        description=(description or "").strip(),
        challenge_date=_iso_date(challenge_date, "challenge_date"),
        metric=metric,
        target_value=target_value,
        reward_points=reward_points,
        created_by=teacher_id,
        now_iso=to_iso(now or utc_now()),
    )


def create_quest(teacher_id: int, title: str, metric: str, target_value, reward_points=0,
                 description: str = "", start_date=None, end_date=None,
                 now: Optional[datetime] = None) -> Quest:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Quest title is required")
    target_value, reward_points = _validated_target(metric, target_value, reward_points)
    start = _iso_date(start_date, "start_date") if start_date else None
    end = _iso_date(end_date, "end_date") if end_date else None
    if start and end and start > end:
        raise ValidationError("start_date must not be after end_date")
    return QuestStoreDB.create(
        title=title,
        description=(description or "").strip(),
        metric=metric,
        target_value=target_value,
        reward_points=reward_points,
        start_date=start,
        end_date=end,
        created_by=teacher_id,
        now_iso=to_iso(now or utc_now()),
    )


def list_teacher_daily_challenges(teacher_id: int) -> list[DailyChallenge]:
    return ChallengeStoreDB.for_creator(teacher_id)


def list_teacher_quests(teacher_id: int) -> list[Quest]:
    return QuestStoreDB.for_creator(teacher_id)


def challenge_to_dict(challenge: DailyChallenge) -> dict:
    return {
        "id": challenge.id,
        "title": challenge.title,
        "description": challenge.description,
        "challenge_date": challenge.challenge_date,
        "metric": challenge.metric,
        "target_value": challenge.target_value,
        "reward_points": challenge.reward_points,
        "is_active": challenge.is_active,
    }


def quest_to_dict(quest: Quest) -> dict:
    return {
        "id": quest.id,
        "title": quest.title,
        "description": quest.description,
        "metric": quest.metric,
        "target_value": quest.target_value,
        "reward_points": quest.reward_points,
        "is_active": quest.is_active,
        "start_date": quest.start_date,
        "end_date": quest.end_date,
    }
