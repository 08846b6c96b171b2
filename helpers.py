"""
Shared helpers used across blueprints.
"""

from __future__ import annotations

from typing import Any, Optional

from flask import request
from flask_login import current_user

from errors import ValidationError


def current_user_id() -> int:
    """Return the authenticated profile id (routes are behind login_required)."""
    return current_user.id


def json_body() -> dict[str, Any]:
    """Return the JSON request body, or raise ValidationError if it is not an object."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


def body_int(data: dict[str, Any], key: str, default: Optional[int] = None) -> Optional[int]:
    value = data.get(key, default)
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be an integer") from None


def arg_int(name: str, default: int, lo: int = 1, hi: int = 200) -> int:
    """Parse a clamped integer query arg."""
    try:
        value = int(request.args.get(name, default))
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer") from None
    return max(lo, min(value, hi))

