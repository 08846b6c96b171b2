"""
LexiQuest — Flask Web Application

Vocabulary-learning gamification engine: collection with uniqueness-tiered
points, spaced repetition, badges, quests, daily hooks, teacher boosts,
leaderboards and real-time duels.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from flask import Flask, Response, jsonify

import database
from blueprints import register_blueprints
from errors import DependencyUnavailable, LexiQuestError
from extensions import limiter, login_manager

logger = logging.getLogger(__name__)


def create_app(test_config: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)

    # Load config
    from config import config_by_name
    if test_config is not None:
        app.config.from_object(config_by_name["testing"])
        app.config.update(test_config)
    else:
        env = os.environ.get("FLASK_ENV", "development")
        cfg = config_by_name.get(env, config_by_name["development"])
        app.config.from_object(cfg)
        if hasattr(cfg, "validate"):
            cfg.validate()

    app.secret_key = app.config.get("SECRET_KEY", os.environ.get("SECRET_KEY", "dev-key-change-in-production"))

    # Background task processing (RQ or synchronous fallback)
    from tasks import init_tasks
    init_tasks(app)

    # Structured logging
    from logging_config import init_logging
    init_logging(app)

    # Register database teardown
    database.init_app(app)

    # Rate limiter (disabled in testing)
    limiter.init_app(app)
    if app.config.get("TESTING"):
        limiter.enabled = False

    # Header-based identity
    import auth  # noqa: F401  registers the login_manager loaders
    login_manager.init_app(app)

    # Register all application blueprints
    register_blueprints(app)

    @app.errorhandler(LexiQuestError)
    def handle_domain_error(exc: LexiQuestError):
        if exc.status_code >= 500:
            logger.error("%s: %s", type(exc).__name__, exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(DependencyUnavailable)
    def handle_dependency_unavailable(exc: DependencyUnavailable):
        logger.warning("Storage dependency unavailable: %s", exc.relation)
        return jsonify({"error": "This feature is temporarily unavailable."}), 503

    @app.errorhandler(429)
    def handle_rate_limited(exc):
        return jsonify({"error": f"Rate limit exceeded: {exc.description}"}), 429

    @app.route("/healthz")
    def healthz():
        try:
            database.get_db().execute("SELECT 1").fetchone()
        except Exception:
            logger.exception("Health check failed")
            return jsonify({"status": "degraded"}), 503
        return jsonify({"status": "ok"})

    # Security headers
    @app.after_request
    def set_security_headers(response: Response) -> Response:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"
        if not app.debug:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    return app


if __name__ == "__main__":
    create_app().run(debug=True, port=5001)
