"""Tests for badges.py — evaluation, idempotent sync and fallback mode."""

from __future__ import annotations

import pytest

from badges import (
    FALLBACK_BADGES,
    create_badge_definition,
    evaluate_badges,
    sync_student_badges,
)
from conftest import NOW
from errors import StateConflictError, ValidationError
from models import BadgeDefinition, StudentBadgeRow, StudentMetrics


def _definition(id=1, metric="words", target=5, reward=20):
    return BadgeDefinition(id, f"badge-{id}", f"Badge {id}", "", metric, target, reward)


class TestEvaluateBadges:
    def test_unlocks_when_target_reached(self):
        result = evaluate_badges([_definition()], {}, StudentMetrics(words_collected=5), NOW)
        assert [b.slug for b in result.newly_unlocked] == ["badge-1"]
        assert result.reward_points == 20
        assert result.rows[0].is_unlocked is True
        assert result.rows[0].awarded_points == 20

    def test_progress_below_target(self):
        result = evaluate_badges([_definition()], {}, StudentMetrics(words_collected=3), NOW)
        assert result.newly_unlocked == []
        assert result.reward_points == 0
        assert result.badges[0].progress == 3
        assert result.rows[0].unlocked_at is None

    def test_unlock_is_monotonic(self):
        existing = {1: StudentBadgeRow(1, progress_value=5, is_unlocked=True,
                                       unlocked_at="2026-01-01T00:00:00+00:00",
                                       awarded_points=20)}
        result = evaluate_badges([_definition()], existing, StudentMetrics(words_collected=2), NOW)
        assert result.badges[0].unlocked is True
        assert result.newly_unlocked == []
        assert result.reward_points == 0
        assert result.rows[0].unlocked_at == "2026-01-01T00:00:00+00:00"
        assert result.rows[0].progress_value == 2

    def test_multiple_unlocks_sum_rewards(self):
        definitions = [_definition(1, "words", 1, 10), _definition(2, "points", 50, 15)]
        metrics = StudentMetrics(words_collected=1, points=60)
        assert evaluate_badges(definitions, {}, metrics, NOW).reward_points == 25


class TestSyncStudentBadges:
    def test_rewards_are_paid_once(self, ctx, make_profile, points_of):
        profile = make_profile("fay", points=150)
        first = sync_student_badges(profile.id, now=NOW)
        assert [b.slug for b in first.unlocked_badges] == ["point-racer"]
        assert points_of(profile.id) == 190

        second = sync_student_badges(profile.id, now=NOW)
        assert second.unlocked_badges == []
        assert points_of(profile.id) == 190
        racer = next(b for b in second.badges if b.slug == "point-racer")
        assert racer.unlocked is True

    def test_reward_can_cascade_on_next_sync(self, ctx, make_profile, points_of):
        # 380 + 40 (point-racer) crosses 400, which only the next sync sees
        profile = make_profile("gus", points=380)
        first = sync_student_badges(profile.id, now=NOW)
        assert [b.slug for b in first.unlocked_badges] == ["point-racer"]
        second = sync_student_badges(profile.id, now=NOW)
        assert [b.slug for b in second.unlocked_badges] == ["league-contender"]
        assert points_of(profile.id) == 500

    def test_empty_catalogue(self, ctx, student, clear_badges):
        result = sync_student_badges(student.id, now=NOW)
        assert result.badges == []
        assert result.fallback_mode is False

    def test_missing_tables_use_fallback(self, ctx, db, make_profile, points_of):
        profile = make_profile("hal", points=200)
        db.execute("DROP TABLE student_badges")
        db.commit()

        result = sync_student_badges(profile.id, now=NOW)
        assert result.fallback_mode is True
        assert result.unlocked_badges == []
        assert len(result.badges) == len(FALLBACK_BADGES)
        assert next(b for b in result.badges if b.slug == "point-racer").unlocked is True
        assert points_of(profile.id) == 200

    def test_unlock_posts_to_stream(self, ctx, make_profile):
        from activity_feed import recent_posts

        profile = make_profile("ivy", points=150)
        sync_student_badges(profile.id, now=NOW)
        assert any("Point Racer" in p["body"] for p in recent_posts())


class TestCreateBadgeDefinition:
    def test_create_and_evaluate(self, ctx, teacher, student, clear_badges, points_of):
        definition = create_badge_definition(teacher.id, "Word Hoarder", "words", 1,
                                             reward_points=5, now=NOW)
        assert definition.slug == "word-hoarder"

        from collection import create_vocabulary
        result = create_vocabulary(student.id, "apple", "a fruit", now=NOW)
        assert [b.slug for b in result.unlocked_badges] == ["word-hoarder"]
        assert points_of(student.id) == 15

    def test_duplicate_slug_conflicts(self, ctx, teacher):
        with pytest.raises(StateConflictError):
            create_badge_definition(teacher.id, "First Steps", "words", 3)

    def test_validation(self, ctx, teacher):
        with pytest.raises(ValidationError):
            create_badge_definition(teacher.id, "", "words", 3)
        with pytest.raises(ValidationError):
            create_badge_definition(teacher.id, "Bad Metric", "reviews", 3)
        with pytest.raises(ValidationError):
            create_badge_definition(teacher.id, "Zero", "words", 0)
