"""Tests for uniqueness.py — normalisation, similarity and tiering."""

from __future__ import annotations

import pytest

from conftest import NOW
from uniqueness import (
    TIER_DUPLICATE,
    TIER_NEAR_DUPLICATE,
    TIER_UNIQUE,
    evaluate_entry_uniqueness,
    levenshtein_distance,
    normalize_for_match,
    score_against_candidates,
    string_similarity,
    tier_for,
    token_jaccard_similarity,
)


def _tokens(prefix, count, start=0):
    return [f"{prefix}{i:02d}" for i in range(start, start + count)]


class TestNormalization:
    def test_lowercases_and_strips_punctuation(self):
        assert normalize_for_match("  Break-the ICE! ") == "break the ice"

    def test_collapses_whitespace(self):
        assert normalize_for_match("a \t\n  b") == "a b"

    def test_non_ascii_letters_become_spaces(self):
        assert normalize_for_match("café") == "caf"

    def test_empty(self):
        assert normalize_for_match("") == ""
        assert normalize_for_match(None) == ""


class TestSimilarity:
    @pytest.mark.parametrize("left,right,expected", [
        ("", "", 0), ("abc", "", 3), ("kitten", "sitting", 3), ("same", "same", 0),
    ])
    def test_levenshtein(self, left, right, expected):
        assert levenshtein_distance(left, right) == expected

    def test_jaccard_ignores_order(self):
        assert token_jaccard_similarity("piece of cake", "cake of piece") == 1.0

    def test_similarity_takes_the_better_measure(self):
        # Edit similarity is low for reordered tokens; Jaccard rescues it
        assert string_similarity("piece of cake", "cake of piece") == 1.0

    def test_identical_empty_strings(self):
        assert string_similarity("", "") == 1.0


class TestTiering:
    def test_jaccard_threshold_is_inclusive(self):
        shared = _tokens("k", 43)
        candidate = " ".join(shared + _tokens("c", 4))
        existing = " ".join(shared + _tokens("e", 3))
        similarity = token_jaccard_similarity(candidate, existing)
        assert similarity == 43 / 50
        result = tier_for(similarity, 10)
        assert result.tier == TIER_NEAR_DUPLICATE
        assert result.base_points_to_award == 5

    def test_just_below_threshold_is_unique(self):
        shared = _tokens("k", 42)
        candidate = " ".join(shared + _tokens("c", 4))
        existing = " ".join(shared + _tokens("e", 4))
        similarity = token_jaccard_similarity(candidate, existing)
        assert similarity == 42 / 50
        result = tier_for(similarity, 10)
        assert result.tier == TIER_UNIQUE
        assert result.base_points_to_award == 10

    def test_near_duplicate_award_is_at_least_one(self):
        assert tier_for(0.9, 1).base_points_to_award == 1

    def test_exact_match_short_circuits(self):
        result = score_against_candidates("break the ice", ["zebra", "break the ice"], 12)
        assert result.tier == TIER_DUPLICATE
        assert result.base_points_to_award == 0

    def test_raw_values_are_normalised_on_the_slow_path(self):
        result = score_against_candidates("break the ice", ["Break the ICE!"], 12,
                                          already_normalized=False)
        assert result.tier == TIER_DUPLICATE

    def test_non_string_and_blank_values_are_skipped(self):
        result = score_against_candidates("apple", [None, "", "   "], 10)
        assert result.tier == TIER_UNIQUE
        assert result.base_points_to_award == 10


def _add_word(student_id, word):
    from db_stores import VocabularyStoreDB
    from models import to_iso
    return VocabularyStoreDB(student_id).add(
        word, "a definition", None, normalize_for_match(word), to_iso(NOW)
    )


class TestEntryUniqueness:
    def test_duplicate_of_another_student(self, ctx, student, other_student):
        _add_word(other_student.id, "Serendipity")
        result = evaluate_entry_uniqueness("vocabulary", student.id, "serendipity!", 10)
        assert result.tier == TIER_DUPLICATE
        assert result.base_points_to_award == 0

    def test_own_entries_do_not_count(self, ctx, student):
        _add_word(student.id, "serendipity")
        result = evaluate_entry_uniqueness("vocabulary", student.id, "serendipity", 10)
        assert result.tier == TIER_UNIQUE
        assert result.base_points_to_award == 10

    def test_near_duplicate(self, ctx, student, other_student):
        _add_word(other_student.id, "running late")
        result = evaluate_entry_uniqueness("vocabulary", student.id, "running lates", 10)
        assert result.tier == TIER_NEAR_DUPLICATE
        assert result.base_points_to_award == 5

    def test_unrelated_word_is_unique(self, ctx, student, other_student):
        _add_word(other_student.id, "zebra")
        result = evaluate_entry_uniqueness("vocabulary", student.id, "apple", 10)
        assert result.tier == TIER_UNIQUE

    def test_blank_candidate_is_unique(self, ctx, student):
        result = evaluate_entry_uniqueness("vocabulary", student.id, "!!!", 10)
        assert result.tier == TIER_UNIQUE
        assert result.base_points_to_award == 10

    def test_scan_limit_bounds_the_near_duplicate_scan(self, ctx, student, other_student):
        _add_word(other_student.id, "running late")
        for i in range(3):
            _add_word(other_student.id, f"unrelated{i}")
        result = evaluate_entry_uniqueness("vocabulary", student.id, "running lates", 10,
                                           scan_limit=2)
        assert result.tier == TIER_UNIQUE

    def test_expressions_are_checked_separately(self, ctx, student, other_student):
        _add_word(other_student.id, "break the ice")
        result = evaluate_entry_uniqueness("expression", student.id, "break the ice", 12)
        assert result.tier == TIER_UNIQUE
        assert result.base_points_to_award == 12

    def test_missing_normalized_column_falls_back_to_raw_scan(self, ctx, db, student, other_student):
        db.execute("DROP INDEX idx_vocabulary_normalized")
        db.execute("ALTER TABLE vocabulary DROP COLUMN normalized_word")
        db.commit()

        _add_word(other_student.id, "Break-the-Ice")
        result = evaluate_entry_uniqueness("vocabulary", student.id, "break the ice", 10)
        assert result.tier == TIER_DUPLICATE
        assert result.base_points_to_award == 0
