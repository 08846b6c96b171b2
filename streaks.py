"""Review-streak calculator — consecutive UTC days with at least one review, ending today."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Iterable, Optional

from flask import current_app

from db_stores import ProfileStoreDB, ReviewItemStoreDB
from errors import DependencyUnavailable
from models import utc_date_key, utc_today

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK = 365


def compute_consecutive_streak(date_keys: Iterable[str], today: date) -> int:
    """Count consecutive days present in date_keys walking back from today.

    A day without a review (today included) ends the streak.
    """
    days = set(date_keys)
    streak = 0
    cursor = today
    while cursor.isoformat() in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def get_student_review_streak(student_id: int, today: Optional[date] = None) -> int:
    today = today or utc_today()
    lookback = current_app.config.get("STREAK_LOOKBACK", DEFAULT_LOOKBACK)
    try:
        timestamps = ReviewItemStoreDB(student_id).review_timestamps(lookback)
    except DependencyUnavailable:
        logger.info("review_items unavailable; streak is 0")
        return 0
    return compute_consecutive_streak((utc_date_key(t) for t in timestamps), today)


def sync_student_review_streak(student_id: int, today: Optional[date] = None) -> int:
    """Recompute the streak from scratch and overwrite profiles.streak."""
    streak = get_student_review_streak(student_id, today)
    ProfileStoreDB.set_streak(student_id, streak)
    return streak
