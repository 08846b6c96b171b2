"""
Error taxonomy for the gamification engine.

Every failure a caller can see is a LexiQuestError carrying a human-readable
message and the HTTP status the blueprints render it with.
"""

from __future__ import annotations


class LexiQuestError(Exception):
    """Base class for all domain errors."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class ValidationError(LexiQuestError):
    """Malformed or missing input, rejected before any read."""

    status_code = 400


class AuthorizationError(LexiQuestError):
    """Caller lacks rights for the requested transition."""

    status_code = 403


class NotFoundError(LexiQuestError):
    status_code = 404


class StateConflictError(LexiQuestError):
    """Operation is invalid for the entity's current state."""

    status_code = 409


class PersistenceError(LexiQuestError):
    """The store rejected a write."""

    status_code = 500


class GenerationError(LexiQuestError):
    """The text-generation service returned nothing usable."""

    status_code = 502


class DependencyUnavailable(Exception):
    """A backing table or column is missing.

    Raised by stores only. Services with a sensible default convert it into
    an explicit fallback result; elsewhere the app renders it as a 503.
    """

    def __init__(self, relation: str, detail: str = ""):
        super().__init__(f"{relation} unavailable: {detail}" if detail else f"{relation} unavailable")
        self.relation = relation
