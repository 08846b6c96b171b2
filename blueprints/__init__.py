"""
Blueprint registration for LexiQuest.

All blueprints are registered without URL prefixes; every route lives under /api.
"""

from __future__ import annotations


def register_blueprints(app):
    from blueprints.collection import bp as collection_bp
    from blueprints.review import bp as review_bp
    from blueprints.gamification import bp as gamification_bp
    from blueprints.duels import bp as duels_bp
    from blueprints.teacher import bp as teacher_bp
    from blueprints.ai import bp as ai_bp

    app.register_blueprint(collection_bp)
    app.register_blueprint(review_bp)
    app.register_blueprint(gamification_bp)
    app.register_blueprint(duels_bp)
    app.register_blueprint(teacher_bp)
    app.register_blueprint(ai_bp)
