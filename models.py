"""
Domain records for LexiQuest.

Plain dataclasses mirroring the relational rows the engine reads and writes,
plus the derived StudentMetrics and the UTC time helpers every module shares.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from datetime import date, datetime, timezone
from typing import Any, Optional

METRICS = ("words", "expressions", "points", "streak")
ROLES = ("student", "teacher", "admin")


# ── Time helpers ─────────────────────────────────────────────────────


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Serialise to the one timestamp format stored in every table."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_iso(value: str | datetime) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def utc_date_key(value: str | datetime) -> str:
    return parse_iso(value).date().isoformat()


def utc_today() -> date:
    return utc_now().date()


# ── Row mapping ──────────────────────────────────────────────────────


def _coerce(type_name: str, value: Any) -> Any:
    if value is None:
        return None
    if type_name == "bool":
        return bool(value)
    if type_name.startswith("list") and isinstance(value, str):
        return json.loads(value or "[]")
    if type_name == "float":
        return float(value)
    return value


def from_row(cls, row):
    """Build a dataclass from a sqlite3.Row / PgRow, ignoring unknown columns."""
    if row is None:
        return None
    keys = set(row.keys())
    kwargs = {}
    for f in fields(cls):
        if f.name in keys:
            kwargs[f.name] = _coerce(str(f.type), row[f.name])
    return cls(**kwargs)


# ── Profiles & metrics ───────────────────────────────────────────────


@dataclass
class Profile:
    id: int
    username: str
    role: str = "student"
    points: int = 0
    streak: int = 0
    avatar_url: Optional[str] = None
    created_at: str = ""


@dataclass
class StudentMetrics:
    """Derived on demand; never persisted as a unit."""
    points: int = 0
    streak: int = 0
    words_collected: int = 0
    expressions_collected: int = 0

    def value_for(self, metric: str) -> int:
        if metric == "words":
            value = self.words_collected
        elif metric == "expressions":
            value = self.expressions_collected
        elif metric == "streak":
            value = self.streak
        else:
            value = self.points
        return max(0, value)

    def to_dict(self) -> dict:
        return {
            "points": self.points,
            "streak": self.streak,
            "words_collected": self.words_collected,
            "expressions_collected": self.expressions_collected,
        }


# ── Collected entries ────────────────────────────────────────────────


@dataclass
class VocabularyEntry:
    id: int
    student_id: int
    word: str
    definition: str
    example_sentence: Optional[str] = None
    normalized_word: Optional[str] = None
    category: Optional[str] = None
    image_url: Optional[str] = None
    material_id: Optional[int] = None
    difficulty: str = "medium"
    status: str = "learning"
    created_at: str = ""


@dataclass
class ExpressionEntry:
    id: int
    student_id: int
    expression: str
    meaning: str
    usage_example: Optional[str] = None
    normalized_expression: Optional[str] = None
    context: Optional[str] = None
    material_id: Optional[int] = None
    created_at: str = ""


@dataclass
class ReviewItem:
    id: int
    student_id: int
    source_type: str        # "vocabulary" | "expression"
    source_id: int
    prompt: str
    answer: str
    context_hint: Optional[str] = None
    status: str = "learning"  # "learning" | "mastered"
    due_at: str = ""
    last_reviewed_at: Optional[str] = None
    interval_days: int = 1
    ease_factor: float = 2.5
    repetitions: int = 0
    created_at: str = ""
    updated_at: str = ""


# ── Teacher-authored definitions ─────────────────────────────────────


@dataclass
class TeacherBoost:
    id: int
    title: str
    boost_type: str  # "double_xp" | "bonus_flat"
    starts_at: str
    ends_at: str
    multiplier: float = 1.0
    flat_bonus: int = 0
    is_active: bool = True
    description: Optional[str] = None
    created_by: Optional[int] = None
    created_at: str = ""


@dataclass
class BadgeDefinition:
    id: Any
    slug: str
    name: str
    description: str
    metric: str
    target: int
    reward_points: int = 0
    icon: str = "spark"
    color: str = "blue"


@dataclass
class StudentBadgeRow:
    badge_id: Any
    progress_value: int = 0
    is_unlocked: bool = False
    unlocked_at: Optional[str] = None
    awarded_points: int = 0


@dataclass
class StudentBadge:
    id: Any
    slug: str
    name: str
    description: str
    icon: str
    color: str
    target: int
    progress: int
    unlocked: bool
    reward_points: int

    def to_dict(self) -> dict:
        return {
            "id": self.id, "slug": self.slug, "name": self.name,
            "description": self.description, "icon": self.icon, "color": self.color,
            "target": self.target, "progress": self.progress,
            "unlocked": self.unlocked, "reward_points": self.reward_points,
        }


@dataclass
class DailyChallenge:
    id: Any
    title: str
    description: str
    challenge_date: str
    metric: str = "words"
    target_value: int = 1
    reward_points: int = 0
    is_active: bool = True
    created_by: Optional[int] = None


@dataclass
class Quest:
    id: Any
    title: str
    description: str
    metric: str
    target_value: int
    reward_points: int = 0
    is_active: bool = True
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    created_by: Optional[int] = None


# ── Duels ────────────────────────────────────────────────────────────


@dataclass
class Duel:
    id: int
    created_by: int
    status: str = "waiting"  # waiting | active | finished | cancelled
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    winner_id: Optional[int] = None
    created_at: str = ""


@dataclass
class DuelParticipant:
    id: int
    duel_id: int
    student_id: int
    joined_at: str = ""
    total_score: int = 0
    correct_answers: int = 0


@dataclass
class DuelRound:
    id: int
    duel_id: int
    round_number: int
    prompt: str
    correct_answer: str
    options: list[str] = field(default_factory=list)
    created_at: str = ""


@dataclass
class DuelAnswer:
    id: int
    duel_id: int
    round_id: int
    student_id: int
    selected_answer: str
    is_correct: bool = False
    response_time_ms: Optional[int] = None
    points_earned: int = 0
    created_at: str = ""
