"""Tests for context_score.py."""

from __future__ import annotations

from context_score import score_context_usage


class TestContextScore:
    def test_rich_sentence_is_excellent(self):
        # base 20 + term 30 + length 20 + punctuation 10 + capital 10 + variety 10
        score = score_context_usage(
            "resilient", "Maria stayed resilient after losing the final match last week."
        )
        assert score.score == 100
        assert score.level == "excellent"
        assert score.bonus_points == 6

    def test_missing_term_caps_score(self):
        score = score_context_usage("resilient", "She kept going after losing the final match.")
        assert score.score == 70
        assert score.level == "strong"
        assert score.bonus_points == 4

    def test_fragment_needs_work(self):
        score = score_context_usage("resilient", "resilient")
        # 20 base + 30 term + 10 variety
        assert score.score == 60
        assert score.level == "developing"
        assert score.bonus_points == 2

    def test_empty_sentence(self):
        score = score_context_usage("resilient", "")
        assert score.score == 20
        assert score.level == "needs_work"
        assert score.bonus_points == 0

    def test_term_match_is_case_insensitive(self):
        upper = score_context_usage("Resilient", "They were RESILIENT.")
        lower = score_context_usage("resilient", "They were.")
        assert upper.score - lower.score == 30

    def test_to_dict(self):
        data = score_context_usage("run", "I run.").to_dict()
        assert set(data) == {"score", "level", "feedback", "bonus_points"}
