"""Tests for duels.py — lifecycle, answers, finalisation and reads."""

from __future__ import annotations

import random
from unittest.mock import patch

import pytest

from conftest import NOW
from db_stores import DuelStoreDB
from duels import (
    CORRECT_POINTS,
    PARTICIPATION_BONUS_POINTS,
    PROMPT_BANK,
    WINNER_BONUS_POINTS,
    WRONG_POINTS,
    create_duel,
    determine_winner,
    finalize_if_ready,
    get_duel_state,
    get_joinable_duels,
    get_student_duel_history,
    join_duel,
    pick_rounds,
    start_duel,
    submit_answer,
)
from errors import AuthorizationError, NotFoundError, StateConflictError, ValidationError
from models import DuelParticipant


def _wrong(duel_round):
    return next(o for o in duel_round.options if o != duel_round.correct_answer)


def _answer_all(duel_id, student_id, correct=True):
    for duel_round in DuelStoreDB(duel_id).rounds():
        choice = duel_round.correct_answer if correct else _wrong(duel_round)
        submit_answer(duel_id, duel_round.id, student_id, choice, 900, NOW)


@pytest.fixture
def active_duel(ctx, student, other_student):
    duel = create_duel(student.id, NOW, random.Random(7))
    join_duel(duel.id, other_student.id, NOW)
    start_duel(duel.id, student.id, NOW)
    return duel


class TestPureHelpers:
    def test_pick_rounds_samples_without_replacement(self):
        rounds = pick_rounds(5, rng=random.Random(1))
        assert len(rounds) == 5
        assert len({r["prompt"] for r in rounds}) == 5
        for r in rounds:
            assert r["correct_answer"] in r["options"]
            assert len(r["options"]) == 4

    def test_pick_rounds_is_capped_by_bank(self):
        assert len(pick_rounds(50, rng=random.Random(1))) == len(PROMPT_BANK)

    def test_winner_is_highest_score(self):
        a = DuelParticipant(1, 1, 10, total_score=20)
        b = DuelParticipant(2, 1, 11, total_score=30)
        assert determine_winner([a, b]) is b

    def test_tie_goes_to_earliest_participant(self):
        a = DuelParticipant(1, 1, 10, total_score=30)
        b = DuelParticipant(2, 1, 11, total_score=30)
        assert determine_winner([a, b]) is a

    def test_no_participants(self):
        assert determine_winner([]) is None


class TestLifecycle:
    def test_create_adds_creator_and_rounds(self, ctx, student):
        duel = create_duel(student.id, NOW, random.Random(3))
        store = DuelStoreDB(duel.id)
        assert duel.status == "waiting"
        assert [p.student_id for p in store.participants()] == [student.id]
        assert [r.round_number for r in store.rounds()] == [1, 2, 3, 4, 5]

    def test_round_count_comes_from_config(self, ctx, student):
        ctx.config["DUEL_ROUND_COUNT"] = 3
        duel = create_duel(student.id, NOW)
        assert len(DuelStoreDB(duel.id).rounds()) == 3

    def test_join_twice_conflicts(self, ctx, student, other_student):
        duel = create_duel(student.id, NOW)
        join_duel(duel.id, other_student.id, NOW)
        with pytest.raises(StateConflictError):
            join_duel(duel.id, other_student.id, NOW)

    def test_start_needs_two_players(self, ctx, student):
        duel = create_duel(student.id, NOW)
        with pytest.raises(StateConflictError):
            start_duel(duel.id, student.id, NOW)

    def test_only_creator_starts(self, ctx, student, other_student):
        duel = create_duel(student.id, NOW)
        join_duel(duel.id, other_student.id, NOW)
        with pytest.raises(AuthorizationError):
            start_duel(duel.id, other_student.id, NOW)

    def test_cannot_join_active_duel(self, ctx, make_profile, active_duel):
        late = make_profile("late")
        with pytest.raises(StateConflictError):
            join_duel(active_duel.id, late.id, NOW)

    def test_join_insert_is_guarded_by_status(self, ctx, make_profile, active_duel):
        late = make_profile("late")
        store = DuelStoreDB(active_duel.id)
        assert store.add_participant(late.id, "2026-03-10T12:00:00+00:00") == "closed"
        assert late.id not in [p.student_id for p in store.participants()]

    def test_join_racing_start_is_rejected(self, ctx, student, other_student, make_profile):
        duel = create_duel(student.id, NOW)
        join_duel(duel.id, other_student.id, NOW)
        stale = DuelStoreDB(duel.id).get()
        start_duel(duel.id, student.id, NOW)

        late = make_profile("late")
        with patch("duels._load", return_value=(DuelStoreDB(duel.id), stale)):
            with pytest.raises(StateConflictError):
                join_duel(duel.id, late.id, NOW)
        assert len(DuelStoreDB(duel.id).participants()) == 2

    def test_unknown_duel(self, ctx, student):
        with pytest.raises(NotFoundError):
            join_duel(999, student.id, NOW)

    def test_full_duel(self, ctx, student, other_student, active_duel, points_of):
        _answer_all(active_duel.id, student.id, correct=True)

        not_ready = finalize_if_ready(active_duel.id, student.id, NOW)
        assert not_ready.finalized is False

        _answer_all(active_duel.id, other_student.id, correct=False)
        result = finalize_if_ready(active_duel.id, student.id, NOW)
        assert result.finalized is True
        assert result.winner_id == student.id

        assert points_of(student.id) == 5 * CORRECT_POINTS + WINNER_BONUS_POINTS
        assert points_of(other_student.id) == 5 * WRONG_POINTS + PARTICIPATION_BONUS_POINTS

        state = get_duel_state(active_duel.id)
        assert state["duel"]["status"] == "finished"
        assert state["duel"]["winner_id"] == student.id
        scores = {p["student_id"]: p["total_score"] for p in state["participants"]}
        assert scores == {student.id: 60, other_student.id: 15}

    def test_finalize_after_finish_conflicts(self, ctx, student, other_student, active_duel):
        _answer_all(active_duel.id, student.id)
        _answer_all(active_duel.id, other_student.id)
        assert finalize_if_ready(active_duel.id, student.id, NOW).winner_id == student.id
        with pytest.raises(StateConflictError):
            finalize_if_ready(active_duel.id, student.id, NOW)

    def test_racing_finalize_is_a_noop(self, ctx, student, other_student, active_duel):
        store = DuelStoreDB(active_duel.id)
        assert store.mark_finished(student.id, "2026-03-10T12:00:00+00:00") is True
        assert store.mark_finished(other_student.id, "2026-03-10T12:00:01+00:00") is False
        assert store.get().winner_id == student.id

    def test_only_creator_finalizes(self, ctx, other_student, active_duel):
        with pytest.raises(AuthorizationError):
            finalize_if_ready(active_duel.id, other_student.id, NOW)


class TestAnswers:
    def test_duplicate_answer_conflicts(self, ctx, student, active_duel, points_of):
        first_round = DuelStoreDB(active_duel.id).rounds()[0]
        submit_answer(active_duel.id, first_round.id, student.id, first_round.correct_answer,
                      now=NOW)
        with pytest.raises(StateConflictError):
            submit_answer(active_duel.id, first_round.id, student.id, _wrong(first_round),
                          now=NOW)
        assert points_of(student.id) == CORRECT_POINTS

    def test_answer_must_be_an_option(self, ctx, student, active_duel):
        first_round = DuelStoreDB(active_duel.id).rounds()[0]
        with pytest.raises(ValidationError):
            submit_answer(active_duel.id, first_round.id, student.id, "made up", now=NOW)

    def test_outsider_cannot_answer(self, ctx, make_profile, active_duel):
        outsider = make_profile("outsider")
        first_round = DuelStoreDB(active_duel.id).rounds()[0]
        with pytest.raises(AuthorizationError):
            submit_answer(active_duel.id, first_round.id, outsider.id,
                          first_round.correct_answer, now=NOW)

    def test_waiting_duel_rejects_answers(self, ctx, student):
        duel = create_duel(student.id, NOW)
        first_round = DuelStoreDB(duel.id).rounds()[0]
        with pytest.raises(StateConflictError):
            submit_answer(duel.id, first_round.id, student.id, first_round.correct_answer,
                          now=NOW)

    def test_round_from_another_duel(self, ctx, student, other_student, active_duel):
        other = create_duel(other_student.id, NOW)
        foreign_round = DuelStoreDB(other.id).rounds()[0]
        with pytest.raises(NotFoundError):
            submit_answer(active_duel.id, foreign_round.id, student.id,
                          foreign_round.correct_answer, now=NOW)


class TestReads:
    def test_state_hides_answers_until_finished(self, ctx, active_duel):
        state = get_duel_state(active_duel.id)
        assert all(r["correct_answer"] is None for r in state["rounds"])
        assert state["poll_interval_seconds"] == 3

    def test_joinable_excludes_own_and_started(self, ctx, student, other_student, active_duel):
        waiting = create_duel(student.id, NOW)
        joinable_ids = [d["id"] for d in get_joinable_duels(other_student.id)]
        assert joinable_ids == [waiting.id]
        assert get_joinable_duels(student.id) == []

    def test_history(self, ctx, student, other_student, active_duel):
        _answer_all(active_duel.id, student.id, correct=False)
        _answer_all(active_duel.id, other_student.id, correct=True)
        finalize_if_ready(active_duel.id, student.id, NOW)

        mine = get_student_duel_history(student.id)
        theirs = get_student_duel_history(other_student.id)
        assert mine[0]["result"] == "lost"
        assert theirs[0]["result"] == "won"
        assert theirs[0]["correct_answers"] == 5
