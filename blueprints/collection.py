"""Word and expression collection routes."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from collection import create_expression, create_vocabulary, entry_to_dict, list_vocabulary
from context_score import score_context_usage
from errors import ValidationError
from extensions import limiter
from helpers import arg_int, body_int, current_user_id, json_body

bp = Blueprint("collection", __name__)


@bp.route("/api/vocabulary", methods=["POST"])
@login_required
@limiter.limit("60 per minute")
def api_create_vocabulary():
    data = json_body()
    result = create_vocabulary(
        current_user_id(),
        word=data.get("word", ""),
        definition=data.get("definition", ""),
        example_sentence=data.get("example_sentence"),
        category=data.get("category"),
        material_id=body_int(data, "material_id"),
        image_url=data.get("image_url"),
    )
    return jsonify(result.to_dict()), 201


@bp.route("/api/vocabulary")
@login_required
def api_list_vocabulary():
    entries = list_vocabulary(current_user_id(), arg_int("limit", 50))
    return jsonify({"entries": [entry_to_dict(e) for e in entries]})


@bp.route("/api/expressions", methods=["POST"])
@login_required
@limiter.limit("60 per minute")
def api_create_expression():
    data = json_body()
    result = create_expression(
        current_user_id(),
        expression=data.get("expression", ""),
        meaning=data.get("meaning", ""),
        usage_example=data.get("usage_example"),
        context=data.get("context"),
        material_id=body_int(data, "material_id"),
    )
    return jsonify(result.to_dict()), 201


@bp.route("/api/context-score", methods=["POST"])
@login_required
def api_context_score():
    """Preview the context score for a sentence without awarding anything."""
    data = json_body()
    term = (data.get("term") or "").strip()
    if not term:
        raise ValidationError("term is required")
    sentence = data.get("sentence") or request.args.get("sentence", "")
    return jsonify(score_context_usage(term, sentence).to_dict())
