"""Generative helper routes."""

from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import login_required

from definition_generator import generate_definition_example
from extensions import limiter
from helpers import json_body

bp = Blueprint("ai", __name__)


@bp.route("/api/ai/definition-example", methods=["POST"])
@login_required
@limiter.limit("10 per minute")
def api_definition_example():
    data = json_body()
    result = generate_definition_example(
        data.get("term", ""),
        entry_type=data.get("entry_type", "word"),
        category=data.get("category", "general"),
        bilingual=bool(data.get("bilingual", False)),
    )
    return jsonify(result)
