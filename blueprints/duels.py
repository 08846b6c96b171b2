"""Real-time vocabulary duel routes. Clients poll the state endpoint."""

from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import login_required

from duels import (
    create_duel,
    duel_to_dict,
    finalize_if_ready,
    get_duel_state,
    get_joinable_duels,
    get_student_duel_history,
    join_duel,
    start_duel,
    submit_answer,
)
from extensions import limiter
from helpers import arg_int, body_int, current_user_id, json_body
from errors import ValidationError

bp = Blueprint("duels", __name__)


@bp.route("/api/duels", methods=["POST"])
@login_required
@limiter.limit("20 per minute")
def api_create_duel():
    duel = create_duel(current_user_id())
    return jsonify(get_duel_state(duel.id)), 201


@bp.route("/api/duels/joinable")
@login_required
def api_joinable_duels():
    return jsonify({"duels": get_joinable_duels(current_user_id(), arg_int("limit", 20, hi=50))})


@bp.route("/api/duels/history")
@login_required
def api_duel_history():
    return jsonify({"history": get_student_duel_history(current_user_id(), arg_int("limit", 10, hi=50))})


@bp.route("/api/duels/<int:duel_id>")
@login_required
def api_duel_state(duel_id):
    return jsonify(get_duel_state(duel_id))


@bp.route("/api/duels/<int:duel_id>/join", methods=["POST"])
@login_required
def api_join_duel(duel_id):
    return jsonify({"duel": duel_to_dict(join_duel(duel_id, current_user_id()))})


@bp.route("/api/duels/<int:duel_id>/start", methods=["POST"])
@login_required
def api_start_duel(duel_id):
    return jsonify({"duel": duel_to_dict(start_duel(duel_id, current_user_id()))})


@bp.route("/api/duels/<int:duel_id>/answer", methods=["POST"])
@login_required
def api_duel_answer(duel_id):
    data = json_body()
    round_id = body_int(data, "round_id")
    if round_id is None:
        raise ValidationError("round_id is required")
    result = submit_answer(
        duel_id,
        round_id,
        current_user_id(),
        data.get("selected_answer", ""),
        response_time_ms=body_int(data, "response_time_ms"),
    )
    return jsonify(result.to_dict())


@bp.route("/api/duels/<int:duel_id>/finalize", methods=["POST"])
@login_required
def api_finalize_duel(duel_id):
    return jsonify(finalize_if_ready(duel_id, current_user_id()).to_dict())
