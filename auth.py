"""
Request authentication — Flask-Login wiring.

LexiQuest sits behind an auth proxy that has already verified the caller;
the proxy forwards the profile id in the configured AUTH_HEADER. Every API
request is resolved to a profile through a Flask-Login request_loader.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import current_app, jsonify, request
from flask_login import UserMixin, current_user

from db_stores import ProfileStoreDB
from errors import AuthorizationError
from extensions import login_manager
from models import Profile

logger = logging.getLogger(__name__)


class User(UserMixin):
    """Wraps a profile row for Flask-Login."""

    def __init__(self, profile: Profile):
        self.profile = profile
        self.id = profile.id
        self.username = profile.username
        self.role = profile.role

    @property
    def is_teacher(self):
        return self.role == "teacher"

    @property
    def is_admin(self):
        return self.role == "admin"

    @staticmethod
    def get(user_id: int):
        profile = ProfileStoreDB.get(user_id)
        if profile:
            return User(profile)
        return None


@login_manager.user_loader
def load_user(user_id):
    try:
        return User.get(int(user_id))
    except (TypeError, ValueError):
        return None


@login_manager.request_loader
def load_user_from_request(req):
    header = current_app.config.get("AUTH_HEADER", "X-Student-Id")
    raw = (req.headers.get(header) or "").strip()
    if not raw:
        return None
    try:
        user_id = int(raw)
    except ValueError:
        logger.warning("Ignoring malformed %s header: %r", header, raw)
        return None
    return User.get(user_id)


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "A valid identity header is required."}), 401


def role_required(*roles: str) -> Callable:
    """Decorator that requires the current profile to hold one of ``roles``."""
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated(*args: Any, **kwargs: Any) -> Any:
            if not current_user.is_authenticated:
                return login_manager.unauthorized()
            if current_user.role not in roles:
                logger.info("Profile %s (%s) denied %s", current_user.id, current_user.role,
                            request.path)
                raise AuthorizationError("This action requires the teacher role.")
            return f(*args, **kwargs)
        return decorated
    return decorator


teacher_required = role_required("teacher", "admin")
