"""Teacher routes: boosts, daily challenges, quests and badge definitions."""

from __future__ import annotations

from dataclasses import asdict

from flask import Blueprint, jsonify
from flask_login import current_user

from auth import teacher_required
from badges import create_badge_definition
from boosts import boost_to_dict, create_boost, delete_boost, list_teacher_boosts, update_boost
from db_stores import BadgeStoreDB, BoostStoreDB
from errors import AuthorizationError, NotFoundError
from helpers import current_user_id, json_body
from quests import (
    challenge_to_dict,
    create_daily_challenge,
    create_quest,
    list_teacher_daily_challenges,
    list_teacher_quests,
    quest_to_dict,
)

bp = Blueprint("teacher", __name__)


def _owned_boost(boost_id: int):
    boost = BoostStoreDB.get(boost_id)
    if boost is None:
        raise NotFoundError("Boost not found")
    if boost.created_by != current_user_id() and not current_user.is_admin:
        raise AuthorizationError("You can only change your own boosts")
    return boost


# ── Boosts ─────────────────────────────────────────────────

@bp.route("/api/teacher/boosts")
@teacher_required
def teacher_list_boosts():
    return jsonify({"boosts": [boost_to_dict(b) for b in list_teacher_boosts(current_user_id())]})


@bp.route("/api/teacher/boosts", methods=["POST"])
@teacher_required
def teacher_create_boost():
    data = json_body()
    boost = create_boost(
        current_user_id(),
        title=data.get("title", ""),
        boost_type=data.get("boost_type", ""),
        starts_at=data.get("starts_at"),
        ends_at=data.get("ends_at"),
        multiplier=data.get("multiplier", 1.0),
        flat_bonus=data.get("flat_bonus", 0),
        description=data.get("description"),
        is_active=bool(data.get("is_active", True)),
    )
    return jsonify({"boost": boost_to_dict(boost)}), 201


@bp.route("/api/teacher/boosts/<int:boost_id>", methods=["PATCH"])
@teacher_required
def teacher_update_boost(boost_id):
    _owned_boost(boost_id)
    data = json_body()
    changes = {k: data[k] for k in ("title", "description", "boost_type", "multiplier",
                                    "flat_bonus", "starts_at", "ends_at", "is_active") if k in data}
    return jsonify({"boost": boost_to_dict(update_boost(boost_id, **changes))})


@bp.route("/api/teacher/boosts/<int:boost_id>", methods=["DELETE"])
@teacher_required
def teacher_delete_boost(boost_id):
    _owned_boost(boost_id)
    delete_boost(boost_id)
    return jsonify({"success": True})


# ── Daily challenges & quests ──────────────────────────────

@bp.route("/api/teacher/daily-challenges")
@teacher_required
def teacher_list_challenges():
    challenges = list_teacher_daily_challenges(current_user_id())
    return jsonify({"challenges": [challenge_to_dict(c) for c in challenges]})


@bp.route("/api/teacher/daily-challenges", methods=["POST"])
@teacher_required
def teacher_create_challenge():
    data = json_body()
    challenge = create_daily_challenge(
        current_user_id(),
        title=data.get("title", ""),
        challenge_date=data.get("challenge_date", ""),
        metric=data.get("metric", "words"),
        target_value=data.get("target_value", 1),
        reward_points=data.get("reward_points", 20),
        description=data.get("description", ""),
    )
    return jsonify({"challenge": challenge_to_dict(challenge)}), 201


@bp.route("/api/teacher/quests")
@teacher_required
def teacher_list_quests():
    return jsonify({"quests": [quest_to_dict(q) for q in list_teacher_quests(current_user_id())]})


@bp.route("/api/teacher/quests", methods=["POST"])
@teacher_required
def teacher_create_quest():
    data = json_body()
    quest = create_quest(
        current_user_id(),
        title=data.get("title", ""),
        metric=data.get("metric", ""),
        target_value=data.get("target_value"),
        reward_points=data.get("reward_points", 0),
        description=data.get("description", ""),
        start_date=data.get("start_date"),
        end_date=data.get("end_date"),
    )
    return jsonify({"quest": quest_to_dict(quest)}), 201


# ── Badge definitions ──────────────────────────────────────

@bp.route("/api/teacher/badges")
@teacher_required
def teacher_list_badges():
    return jsonify({"badges": [asdict(d) for d in BadgeStoreDB.active_definitions()]})


@bp.route("/api/teacher/badges", methods=["POST"])
@teacher_required
def teacher_create_badge():
    data = json_body()
    definition = create_badge_definition(
        current_user_id(),
        name=data.get("name", ""),
        metric=data.get("metric", ""),
        target=data.get("target"),
        reward_points=data.get("reward_points", 0),
        description=data.get("description", ""),
        icon=data.get("icon", "spark"),
        color=data.get("color", "blue"),
        slug=data.get("slug"),
    )
    return jsonify({"badge": asdict(definition)}), 201
