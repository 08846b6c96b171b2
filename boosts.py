"""
Boost engine — teacher-defined, time-windowed point multipliers and flat bonuses.

The lookup is a point-in-time read keyed on an explicit ``now``; applying a
boost is a pure function of the base points.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional

from db_stores import BoostStoreDB
from errors import DependencyUnavailable, NotFoundError, ValidationError
from models import TeacherBoost, parse_iso, to_iso, utc_now

logger = logging.getLogger(__name__)

BOOST_TYPES = ("double_xp", "bonus_flat")


def calculate_boosted_points(base_points: int, boost: Optional[TeacherBoost]) -> int:
    if boost is None:
        return base_points
    if boost.boost_type == "double_xp":
        boosted = round(base_points * float(boost.multiplier or 1))
    elif boost.boost_type == "bonus_flat":
        boosted = base_points + int(boost.flat_bonus or 0)
    else:
        boosted = base_points
    return max(0, boosted)


def select_active_boost(boosts: Iterable[TeacherBoost], now: datetime) -> Optional[TeacherBoost]:
    """Most recently created active boost whose window contains now."""
    best = None
    for boost in boosts:
        if not boost.is_active:
            continue
        if not (parse_iso(boost.starts_at) <= now <= parse_iso(boost.ends_at)):
            continue
        if best is None or (boost.created_at, boost.id) > (best.created_at, best.id):
            best = boost
    return best


def get_active_boost(now: Optional[datetime] = None) -> Optional[TeacherBoost]:
    now = now or utc_now()
    try:
        candidates = BoostStoreDB.active_at(to_iso(now))
    except DependencyUnavailable:
        logger.info("teacher_boosts unavailable; no boost applied")
        return None
    return select_active_boost(candidates, now)


# ── Teacher operations ───────────────────────────────────────────────


def _validated_window(starts_at, ends_at) -> tuple[str, str]:
    try:
        start = parse_iso(starts_at)
        end = parse_iso(ends_at)
    except (TypeError, ValueError, AttributeError):
        raise ValidationError("starts_at and ends_at must be ISO-8601 timestamps")
    if start >= end:
        raise ValidationError("starts_at must be before ends_at")
    return to_iso(start), to_iso(end)


def _validate_amounts(boost_type: str, multiplier, flat_bonus) -> tuple[float, int]:
    if boost_type not in BOOST_TYPES:
        raise ValidationError(f"boost_type must be one of {', '.join(BOOST_TYPES)}")
    try:
        multiplier = float(multiplier)
        flat_bonus = int(flat_bonus)
    except (TypeError, ValueError):
        raise ValidationError("multiplier and flat_bonus must be numbers")
    if multiplier < 1:
        raise ValidationError("multiplier must be at least 1")
    if flat_bonus < 0:
        raise ValidationError("flat_bonus cannot be negative")
    return multiplier, flat_bonus


def create_boost(teacher_id: int, title: str, boost_type: str, starts_at, ends_at,
                 multiplier=1.0, flat_bonus=0, description: Optional[str] = None,
                 is_active: bool = True, now: Optional[datetime] = None) -> TeacherBoost:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Boost title is required")
    multiplier, flat_bonus = _validate_amounts(boost_type, multiplier, flat_bonus)
    start, end = _validated_window(starts_at, ends_at)
    boost = BoostStoreDB.create(
        title=title,
        description=description,
        boost_type=boost_type,
        multiplier=multiplier,
        flat_bonus=flat_bonus,
        starts_at=start,
        ends_at=end,
        is_active=is_active,
        created_by=teacher_id,
        now_iso=to_iso(now or utc_now()),
    )
    logger.info("Boost %s created by %s (%s)", boost.id, teacher_id, boost_type)
    return boost


def update_boost(boost_id: int, **changes) -> TeacherBoost:
    boost = BoostStoreDB.get(boost_id)
    if boost is None:
        raise NotFoundError("Boost not found")

    for key in ("title", "description", "boost_type", "multiplier", "flat_bonus",
                "starts_at", "ends_at", "is_active"):
        if key in changes and changes[key] is not None:
            setattr(boost, key, changes[key])

    boost.title = (boost.title or "").strip()
    if not boost.title:
        raise ValidationError("Boost title is required")
    boost.multiplier, boost.flat_bonus = _validate_amounts(
        boost.boost_type, boost.multiplier, boost.flat_bonus
    )
    boost.starts_at, boost.ends_at = _validated_window(boost.starts_at, boost.ends_at)
    boost.is_active = bool(boost.is_active)
    return BoostStoreDB.update(boost)


def delete_boost(boost_id: int) -> None:
    if not BoostStoreDB.delete(boost_id):
        raise NotFoundError("Boost not found")


def list_teacher_boosts(teacher_id: int) -> list[TeacherBoost]:
    return BoostStoreDB.for_creator(teacher_id)


def boost_to_dict(boost: Optional[TeacherBoost]) -> Optional[dict]:
    if boost is None:
        return None
    return {
        "id": boost.id,
        "title": boost.title,
        "description": boost.description,
        "boost_type": boost.boost_type,
        "multiplier": boost.multiplier,
        "flat_bonus": boost.flat_bonus,
        "starts_at": boost.starts_at,
        "ends_at": boost.ends_at,
        "is_active": boost.is_active,
    }
