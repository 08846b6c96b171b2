"""Spaced-repetition review routes."""

from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import login_required

from auth import teacher_required
from helpers import arg_int, current_user_id, json_body
from spaced_repetition import (
    get_due_review_count,
    get_due_review_items,
    get_review_analytics,
    get_reviews_completed_today,
    review_item_to_dict,
    submit_review_rating,
)

bp = Blueprint("review", __name__)


@bp.route("/api/review/due")
@login_required
def api_review_due():
    uid = current_user_id()
    items = get_due_review_items(uid, arg_int("limit", 20, hi=100))
    return jsonify({
        "items": [review_item_to_dict(i) for i in items],
        "due_count": get_due_review_count(uid),
        "completed_today": get_reviews_completed_today(uid),
    })


@bp.route("/api/review/<int:item_id>/rate", methods=["POST"])
@login_required
def api_review_rate(item_id):
    data = json_body()
    result = submit_review_rating(current_user_id(), item_id, data.get("rating", ""))
    return jsonify(result.to_dict())


@bp.route("/api/review/analytics")
@login_required
@teacher_required
def api_review_analytics():
    return jsonify(get_review_analytics())
