"""Tests for levels.py — the point-to-level curve."""

from __future__ import annotations

import pytest

from levels import LEVEL_TIERS, get_level_info


class TestLevelCurve:
    def test_zero_points_is_starter(self):
        info = get_level_info(0)
        assert info.level == 1
        assert info.title == "Starter"
        assert info.next_min_points == 120
        assert info.progress_percent == 0
        assert info.points_to_next == 120

    def test_threshold_is_inclusive(self):
        info = get_level_info(120)
        assert info.level == 2
        assert info.title == "Word Scout"
        assert info.points_into_level == 0

    def test_progress_within_tier(self):
        # 200 is 80 of the 160 points between Word Scout and Phrase Builder
        info = get_level_info(200)
        assert info.level == 2
        assert info.progress_percent == 50
        assert info.points_to_next == 80

    def test_top_tier_is_capped(self):
        info = get_level_info(10_000)
        assert info.level == len(LEVEL_TIERS)
        assert info.title == "Master Linguist"
        assert info.next_min_points is None
        assert info.points_to_next is None
        assert info.progress_percent == 100

    def test_negative_points_clamp_to_zero(self):
        assert get_level_info(-50).level == 1

    @pytest.mark.parametrize("points,level", [(119, 1), (279, 2), (520, 4), (1849, 6), (2500, 8)])
    def test_levels_are_monotonic(self, points, level):
        assert get_level_info(points).level == level

    def test_to_dict(self):
        data = get_level_info(300).to_dict()
        assert data["title"] == "Phrase Builder"
        assert set(data) >= {"level", "min_points", "next_min_points", "progress_percent"}
