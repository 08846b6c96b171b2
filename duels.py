"""
Duel engine — round-based multiple-choice vocabulary duels.

Lifecycle: waiting → active → finished (cancelled is representable but no
operation moves a duel there). The creator starts and finalizes; every
participant answers each round once, earning points per round. Clients poll
get_duel_state() for progress.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from flask import current_app

from activity_feed import notify
from db_stores import DuelStoreDB, ProfileStoreDB
from errors import AuthorizationError, NotFoundError, StateConflictError, ValidationError
from models import Duel, DuelAnswer, DuelParticipant, to_iso, utc_now
from points import PointsAward, award_points

logger = logging.getLogger(__name__)

DEFAULT_ROUND_COUNT = 5
DEFAULT_POLL_SECONDS = 3
CORRECT_POINTS = 12
WRONG_POINTS = 3
WINNER_BONUS_POINTS = 25
PARTICIPATION_BONUS_POINTS = 10

# (prompt, correct answer, distractors)
PROMPT_BANK: list[tuple[str, str, tuple[str, str, str]]] = [
    ('Choose the best meaning of "sustainable growth".',
     "Growth that can continue long-term without harm.",
     ("Growth that happens in one week only.",
      "Growth that ignores social impact.",
      "Growth that means no change at all.")),
    ('Pick the sentence with natural usage of "on the same page".',
     "Before we start, let us make sure we are on the same page.",
     ("I put the coffee on the same page.",
      "The page is same because it is big.",
      "She same page the result quickly.")),
    ('What does "feasible" mean?',
     "Possible and practical to do.",
     ("Extremely expensive.",
      "Not related to planning.",
      "Always impossible.")),
    ('Choose the best sentence using "take into account".',
     "We should take student feedback into account.",
     ("I account into took the bag.",
      "The account took into quickly.",
      "She into account take every.")),
    ('What is the closest meaning of "mitigate"?',
     "To reduce or make less severe.",
     ("To increase quickly.",
      "To ignore completely.",
      "To publish formally.")),
    ('What does "ubiquitous" mean?',
     "Found everywhere.",
     ("Very rare and valuable.",
      "Difficult to understand.",
      "Happening only at night.")),
    ('Pick the sentence with natural usage of "break the ice".',
     "He told a joke to break the ice at the meeting.",
     ("She broke the ice cube into the juice yesterday meeting.",
      "The ice broke the meeting quickly.",
      "They ice the break before lunch.")),
    ('What is the closest meaning of "reluctant"?',
     "Unwilling and hesitant.",
     ("Eager and excited.",
      "Loud and confident.",
      "Tired after work.")),
]


@dataclass
class AnswerResult:
    answer: DuelAnswer
    award: PointsAward

    def to_dict(self) -> dict:
        return {
            "answer": answer_to_dict(self.answer),
            "points": self.award.to_dict(),
        }


@dataclass
class FinalizeResult:
    finalized: bool
    winner_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {"finalized": self.finalized, "winner_id": self.winner_id}


def pick_rounds(count: int = DEFAULT_ROUND_COUNT, bank=PROMPT_BANK,
                rng: Optional[random.Random] = None) -> list[dict]:
    """Sample prompts without replacement; options are shuffled per round."""
    rng = rng or random.Random()
    rounds = []
    for prompt, correct, distractors in rng.sample(list(bank), min(count, len(bank))):
        options = [correct, *distractors]
        rng.shuffle(options)
        rounds.append({"prompt": prompt, "correct_answer": correct, "options": options})
    return rounds


def determine_winner(participants: list[DuelParticipant]) -> Optional[DuelParticipant]:
    """Highest total_score; on a tie the earliest participant in the given order wins."""
    if not participants:
        return None
    return sorted(participants, key=lambda p: p.total_score, reverse=True)[0]


def _load(duel_id: int) -> tuple[DuelStoreDB, Duel]:
    store = DuelStoreDB(duel_id)
    duel = store.get()
    if duel is None:
        raise NotFoundError("Duel not found")
    return store, duel


# ── Lifecycle ────────────────────────────────────────────────────────


def create_duel(student_id: int, now: Optional[datetime] = None,
                rng: Optional[random.Random] = None) -> Duel:
    if not student_id:
        raise ValidationError("student_id is required")
    round_count = current_app.config.get("DUEL_ROUND_COUNT", DEFAULT_ROUND_COUNT)
    store = DuelStoreDB.create(student_id, pick_rounds(round_count, rng=rng),
                               to_iso(now or utc_now()))
    logger.info("Duel %s created by %s", store.duel_id, student_id)
    return store.get()


def join_duel(duel_id: int, student_id: int, now: Optional[datetime] = None) -> Duel:
    store, duel = _load(duel_id)
    if duel.status != "waiting":
        raise StateConflictError("This duel is no longer accepting players")
    outcome = store.add_participant(student_id, to_iso(now or utc_now()))
    if outcome == "already_joined":
        raise StateConflictError("You have already joined this duel")
    if outcome == "closed":
        raise StateConflictError("This duel is no longer accepting players")
    return duel


def start_duel(duel_id: int, student_id: int, now: Optional[datetime] = None) -> Duel:
    store, duel = _load(duel_id)
    if duel.created_by != student_id:
        raise AuthorizationError("Only the duel creator can start the duel")
    if duel.status != "waiting":
        raise StateConflictError(f"Duel cannot be started while {duel.status}")
    if len(store.participants()) < 2:
        raise StateConflictError("At least two players are needed to start the duel")
    if not store.mark_active(to_iso(now or utc_now())):
        raise StateConflictError("Duel was started by another request")
    return store.get()


def submit_answer(duel_id: int, round_id: int, student_id: int, selected_answer: str,
                  response_time_ms: Optional[int] = None,
                  now: Optional[datetime] = None) -> AnswerResult:
    selected_answer = (selected_answer or "").strip()
    if not selected_answer:
        raise ValidationError("selected_answer is required")
    if response_time_ms is not None:
        try:
            response_time_ms = max(0, int(response_time_ms))
        except (TypeError, ValueError):
            raise ValidationError("response_time_ms must be an integer")

    now = now or utc_now()
    store, duel = _load(duel_id)
    if duel.status != "active":
        raise StateConflictError(f"Answers are not accepted while the duel is {duel.status}")
    if not any(p.student_id == student_id for p in store.participants()):
        raise AuthorizationError("You are not a participant in this duel")

    duel_round = next((r for r in store.rounds() if r.id == round_id), None)
    if duel_round is None:
        raise NotFoundError("Round not found in this duel")
    if selected_answer not in duel_round.options:
        raise ValidationError("selected_answer must be one of the round options")

    is_correct = selected_answer == duel_round.correct_answer
    points = CORRECT_POINTS if is_correct else WRONG_POINTS
    answer = store.record_answer(round_id, student_id, selected_answer, is_correct,
                                 response_time_ms, points, to_iso(now))
    if answer is None:
        raise StateConflictError("You already answered this round")

    award = award_points(student_id, points, now)
    return AnswerResult(answer=answer, award=award)


def finalize_if_ready(duel_id: int, student_id: int,
                      now: Optional[datetime] = None) -> FinalizeResult:
    """Finish the duel once every participant has answered every round.

    Not ready is a no-op. State is re-read here rather than trusted from the
    caller, and the status flip is guarded so a racing finalize does nothing.
    """
    now = now or utc_now()
    store, duel = _load(duel_id)
    if duel.created_by != student_id:
        raise AuthorizationError("Only the duel creator can finalize the duel")
    if duel.status != "active":
        raise StateConflictError(f"Duel cannot be finalized while {duel.status}")

    participants = store.participants()
    rounds = store.rounds()
    answered = {(a.student_id, a.round_id) for a in store.answers()}
    ready = bool(rounds) and all(
        (p.student_id, r.id) in answered for p in participants for r in rounds
    )
    if not ready:
        return FinalizeResult(finalized=False)

    winner = determine_winner(participants)
    winner_id = winner.student_id if winner else None
    if not store.mark_finished(winner_id, to_iso(now)):
        return FinalizeResult(finalized=False)

    for participant in participants:
        bonus = WINNER_BONUS_POINTS if participant.student_id == winner_id else PARTICIPATION_BONUS_POINTS
        award_points(participant.student_id, bonus, now)

    if winner_id is not None:
        profile = ProfileStoreDB.get(winner_id)
        notify(winner_id, f"{profile.username if profile else 'A student'} won a vocabulary duel!")
    logger.info("Duel %s finished, winner %s", duel_id, winner_id)
    return FinalizeResult(finalized=True, winner_id=winner_id)


# ── Reads ────────────────────────────────────────────────────────────


def get_duel_state(duel_id: int) -> dict:
    """Snapshot for polling clients. Correct answers are revealed once finished."""
    store, duel = _load(duel_id)
    reveal = duel.status == "finished"
    return {
        "duel": duel_to_dict(duel),
        "participants": [participant_to_dict(p) for p in store.participants()],
        "rounds": [
            {
                "id": r.id,
                "round_number": r.round_number,
                "prompt": r.prompt,
                "options": r.options,
                "correct_answer": r.correct_answer if reveal else None,
            }
            for r in store.rounds()
        ],
        "answers": [answer_to_dict(a) for a in store.answers()],
        "poll_interval_seconds": current_app.config.get("DUEL_POLL_SECONDS", DEFAULT_POLL_SECONDS),
    }


def get_joinable_duels(student_id: int, limit: int = 20) -> list[dict]:
    return DuelStoreDB.joinable_for(student_id, limit)


def get_student_duel_history(student_id: int, limit: int = 10) -> list[dict]:
    history = []
    for row in DuelStoreDB.history_for(student_id, limit):
        if row["status"] == "finished":
            result = "won" if row["winner_id"] == student_id else "lost"
        else:
            result = row["status"]
        history.append({
            "duel_id": row["id"],
            "status": row["status"],
            "result": result,
            "total_score": row["total_score"],
            "correct_answers": row["correct_answers"],
            "created_at": row["created_at"],
            "finished_at": row["finished_at"],
        })
    return history


def duel_to_dict(duel: Duel) -> dict:
    return {
        "id": duel.id,
        "created_by": duel.created_by,
        "status": duel.status,
        "started_at": duel.started_at,
        "finished_at": duel.finished_at,
        "winner_id": duel.winner_id,
        "created_at": duel.created_at,
    }


def participant_to_dict(participant: DuelParticipant) -> dict:
    return {
        "student_id": participant.student_id,
        "joined_at": participant.joined_at,
        "total_score": participant.total_score,
        "correct_answers": participant.correct_answers,
    }


def answer_to_dict(answer: DuelAnswer) -> dict:
    return {
        "id": answer.id,
        "round_id": answer.round_id,
        "student_id": answer.student_id,
        "selected_answer": answer.selected_answer,
        "is_correct": answer.is_correct,
        "response_time_ms": answer.response_time_ms,
        "points_earned": answer.points_earned,
    }
