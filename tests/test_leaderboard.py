"""Tests for leaderboard.py."""

from __future__ import annotations

import pytest

from conftest import NOW
from errors import NotFoundError
from leaderboard import FALLBACK_TEAMS, get_competition_leaderboard, get_team_leaderboard


class TestCompetitionLeaderboard:
    def test_ranks_students_by_points(self, ctx, make_profile, teacher):
        low = make_profile("low", points=10)
        make_profile("high", points=300)
        make_profile("mid", points=150)

        board = get_competition_leaderboard(low.id)
        assert [e["username"] for e in board["entries"]] == ["high", "mid", "low"]
        assert board["entries"][0]["level_title"] == "Phrase Builder"
        assert board["current_rank"] == 3
        assert board["current_points"] == 10
        assert [e["is_current"] for e in board["entries"]] == [False, False, True]

    def test_teachers_are_excluded(self, ctx, make_profile):
        make_profile("boss", role="teacher", points=9999)
        me = make_profile("me", points=5)
        board = get_competition_leaderboard(me.id)
        assert [e["username"] for e in board["entries"]] == ["me"]
        assert board["current_rank"] == 1

    def test_counts_collected_entries(self, ctx, student, clear_badges):
        from collection import create_expression, create_vocabulary

        create_vocabulary(student.id, "apple", "a fruit", now=NOW)
        create_expression(student.id, "piece of cake", "easy", now=NOW)
        entry = get_competition_leaderboard(student.id)["entries"][0]
        assert entry["words_collected"] == 1
        assert entry["expressions_collected"] == 1

    def test_limit(self, ctx, make_profile):
        profiles = [make_profile(points=i) for i in range(5)]
        board = get_competition_leaderboard(profiles[0].id, limit=2)
        assert len(board["entries"]) == 2
        assert board["current_rank"] == 5

    def test_unknown_student(self, ctx):
        with pytest.raises(NotFoundError):
            get_competition_leaderboard(12345)


def _team(db, name, member_ids, color="#2563eb"):
    team_id = db.execute(
        "INSERT INTO teams (name, color_hex, created_at) VALUES (?, ?, '') RETURNING id",
        (name, color),
    ).fetchall()[0]["id"]
    for sid in member_ids:
        db.execute(
            "INSERT INTO team_memberships (team_id, student_id, joined_at) VALUES (?, ?, '')",
            (team_id, sid),
        )
    db.commit()
    return team_id


class TestTeamLeaderboard:
    def test_standings(self, ctx, db, make_profile):
        a = make_profile("a", points=100)
        b = make_profile("b", points=50)
        c = make_profile("c", points=400)
        _team(db, "Rockets", [a.id, b.id])
        _team(db, "Sparks", [c.id])
        _team(db, "Empty", [])

        board = get_team_leaderboard(a.id)
        assert [e["name"] for e in board.entries] == ["Sparks", "Rockets", "Empty"]
        rockets = board.entries[1]
        assert rockets["points"] == 150
        assert rockets["members"] == 2
        assert rockets["avg_points"] == 75
        assert board.entries[2]["avg_points"] == 0
        assert board.current_team_position == 2
        assert board.current_team_name == "Rockets"
        assert board.fallback_mode is False

    def test_student_without_team(self, ctx, db, make_profile):
        loner = make_profile("loner")
        _team(db, "Rockets", [])
        board = get_team_leaderboard(loner.id)
        assert board.current_team_position is None

    def test_missing_tables_fall_back(self, ctx, db, student):
        db.execute("DROP TABLE team_memberships")
        db.commit()
        board = get_team_leaderboard(student.id)
        assert board.fallback_mode is True
        assert [e["name"] for e in board.entries] == [t["name"] for t in FALLBACK_TEAMS]
