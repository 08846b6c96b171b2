"""Tests for quests.py — weekly quest progress and daily challenges."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from conftest import NOW
from errors import ValidationError
from models import Quest, StudentMetrics
from quests import (
    FALLBACK_QUESTS,
    create_daily_challenge,
    create_quest,
    get_today_daily_challenge,
    get_weekly_quest_progress,
    list_teacher_daily_challenges,
    list_teacher_quests,
    quest_progress,
)


class TestQuestProgress:
    def test_percent_is_capped(self):
        quests = [Quest(1, "Words", "", "words", 4, 10), Quest(2, "Points", "", "points", 100, 5)]
        metrics = StudentMetrics(points=250, words_collected=1)
        first, second = quest_progress(quests, metrics)
        assert first.completion_percent == 25
        assert first.is_completed is False
        assert second.completion_percent == 100
        assert second.is_completed is True
        assert second.current_value == 250


class TestWeeklyQuests:
    def test_fallback_when_none_defined(self, ctx, student):
        progress = get_weekly_quest_progress(student.id, today=NOW.date())
        assert [p.id for p in progress] == [q.id for q in FALLBACK_QUESTS]

    def test_active_quests_by_date_window(self, ctx, teacher, student):
        create_quest(teacher.id, "Spring words", "words", 3,
                     start_date=date(2026, 3, 1), end_date=date(2026, 3, 31), now=NOW)
        create_quest(teacher.id, "Old quest", "words", 3,
                     start_date=date(2026, 1, 1), end_date=date(2026, 1, 31), now=NOW)
        create_quest(teacher.id, "Open quest", "points", 50, now=NOW)

        titles = {p.title for p in get_weekly_quest_progress(student.id, today=NOW.date())}
        assert titles == {"Spring words", "Open quest"}
        assert len(list_teacher_quests(teacher.id)) == 3

    def test_missing_table_falls_back(self, ctx, db, student):
        db.execute("DROP TABLE quests")
        db.commit()
        progress = get_weekly_quest_progress(student.id, today=NOW.date())
        assert len(progress) == len(FALLBACK_QUESTS)

    def test_quest_validation(self, ctx, teacher):
        with pytest.raises(ValidationError):
            create_quest(teacher.id, "No target", "words", 0)
        with pytest.raises(ValidationError):
            create_quest(teacher.id, "Bad metric", "reviews", 3)
        with pytest.raises(ValidationError):
            create_quest(teacher.id, "Backwards", "words", 3,
                         start_date="2026-03-10", end_date="2026-03-01")


class TestDailyChallenge:
    def test_fallback_challenge(self, ctx):
        challenge = get_today_daily_challenge(NOW.date())
        assert challenge.id == "fallback-daily"
        assert challenge.challenge_date == NOW.date().isoformat()

    def test_newest_challenge_for_the_day(self, ctx, teacher):
        create_daily_challenge(teacher.id, "Word: calm", NOW.date(), now=NOW)
        create_daily_challenge(teacher.id, "Word: brave", NOW.date(),
                               now=NOW + timedelta(minutes=5))
        assert get_today_daily_challenge(NOW.date()).title == "Word: brave"
        assert len(list_teacher_daily_challenges(teacher.id)) == 2

    def test_bad_date(self, ctx, teacher):
        with pytest.raises(ValidationError):
            create_daily_challenge(teacher.id, "Word: calm", "tomorrow")
