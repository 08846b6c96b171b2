"""Progress, badge, quest, leaderboard and activity routes."""

from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import login_required

from activity_feed import recent_posts
from badges import sync_student_badges
from boosts import boost_to_dict, get_active_boost
from helpers import arg_int, current_user_id
from leaderboard import get_competition_leaderboard, get_team_leaderboard
from levels import get_level_info
from points import get_student_metrics
from quests import challenge_to_dict, get_today_daily_challenge, get_weekly_quest_progress

bp = Blueprint("gamification", __name__)


@bp.route("/api/me/progress")
@login_required
def api_progress():
    uid = current_user_id()
    metrics = get_student_metrics(uid)
    return jsonify({
        "metrics": metrics.to_dict(),
        "level": get_level_info(metrics.points).to_dict(),
        "quests": [q.to_dict() for q in get_weekly_quest_progress(uid, metrics)],
        "daily_challenge": challenge_to_dict(get_today_daily_challenge()),
        "active_boost": boost_to_dict(get_active_boost()),
    })


@bp.route("/api/badges/sync", methods=["POST"])
@login_required
def api_badges_sync():
    return jsonify(sync_student_badges(current_user_id()).to_dict())


@bp.route("/api/leaderboard")
@login_required
def api_leaderboard():
    return jsonify(get_competition_leaderboard(current_user_id(), arg_int("limit", 10, hi=100)))


@bp.route("/api/leaderboard/teams")
@login_required
def api_team_leaderboard():
    return jsonify(get_team_leaderboard(current_user_id()).to_dict())


@bp.route("/api/activity")
@login_required
def api_activity():
    return jsonify({"posts": recent_posts(arg_int("limit", 20, hi=100))})
