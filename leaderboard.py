"""Class and team leaderboards."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from db_stores import EntryStoreDB, ProfileStoreDB, TeamStoreDB
from errors import DependencyUnavailable, NotFoundError
from levels import get_level_info

logger = logging.getLogger(__name__)

FALLBACK_TEAMS = [
    {"id": "team-1", "name": "Blue Rockets", "color_hex": "#2563eb",
     "points": 1260, "members": 6, "avg_points": 210},
    {"id": "team-2", "name": "Orange Sparks", "color_hex": "#ea580c",
     "points": 1010, "members": 5, "avg_points": 202},
    {"id": "team-3", "name": "Green Titans", "color_hex": "#059669",
     "points": 940, "members": 5, "avg_points": 188},
]


@dataclass
class TeamLeaderboard:
    entries: list[dict] = field(default_factory=list)
    current_team_position: Optional[int] = None
    current_team_name: Optional[str] = None
    fallback_mode: bool = False

    def to_dict(self) -> dict:
        return {
            "entries": self.entries,
            "current_team_position": self.current_team_position,
            "current_team_name": self.current_team_name,
            "fallback_mode": self.fallback_mode,
        }


def get_competition_leaderboard(current_student_id: int, limit: int = 10) -> dict:
    me = ProfileStoreDB.get(current_student_id)
    if me is None:
        raise NotFoundError("Student profile not found")

    top = ProfileStoreDB.top_students(limit)
    ids = [p.id for p in top]
    words = EntryStoreDB("vocabulary").counts_for(ids)
    expressions = EntryStoreDB("expression").counts_for(ids)

    entries = []
    for position, profile in enumerate(top, 1):
        level = get_level_info(profile.points)
        entries.append({
            "rank": position,
            "student_id": profile.id,
            "username": profile.username,
            "avatar_url": profile.avatar_url,
            "points": profile.points,
            "level": level.level,
            "level_title": level.title,
            "words_collected": words.get(profile.id, 0),
            "expressions_collected": expressions.get(profile.id, 0),
            "is_current": profile.id == current_student_id,
        })

    return {
        "entries": entries,
        "current_rank": ProfileStoreDB.count_students_above(me.points) + 1,
        "current_points": me.points,
    }


def get_team_leaderboard(current_student_id: Optional[int] = None) -> TeamLeaderboard:
    try:
        standings = TeamStoreDB.standings()
        current_team = TeamStoreDB.team_for(current_student_id) if current_student_id else None
    except DependencyUnavailable as exc:
        logger.info("Team tables unavailable (%s); using fallback teams", exc.relation)
        return TeamLeaderboard(entries=[dict(t) for t in FALLBACK_TEAMS], fallback_mode=True)

    entries = []
    for row in standings:
        members = row["member_count"]
        points = row["total_points"]
        entries.append({
            "id": row["id"],
            "name": row["name"],
            "color_hex": row["color_hex"],
            "points": points,
            "members": members,
            "avg_points": round(points / members) if members else 0,
        })
    entries.sort(key=lambda e: e["points"], reverse=True)

    result = TeamLeaderboard(entries=entries)
    for position, entry in enumerate(entries, 1):
        if entry["id"] == current_team:
            result.current_team_position = position
            result.current_team_name = entry["name"]
    return result
