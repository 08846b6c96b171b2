"""
DB-backed store classes for LexiQuest.

Each class owns the SQL for one table family and returns the dataclasses in
models.py. Stores commit their own writes. A missing table or column is
reported as DependencyUnavailable so services can fall back explicitly;
every other driver error propagates unchanged.
"""

from __future__ import annotations

import json
from typing import Optional

from database import get_db
from errors import DependencyUnavailable
from models import (
    BadgeDefinition,
    DailyChallenge,
    Duel,
    DuelAnswer,
    DuelParticipant,
    DuelRound,
    ExpressionEntry,
    Profile,
    Quest,
    ReviewItem,
    StudentBadgeRow,
    TeacherBoost,
    VocabularyEntry,
    from_row,
)
from pg_compat import is_missing_relation, is_undefined_column, is_unique_violation


def _unavailable(db, exc: Exception, relation: str) -> None:
    """Roll back, then raise DependencyUnavailable for schema gaps or re-raise."""
    db.rollback()
    if is_missing_relation(exc) or is_undefined_column(exc):
        raise DependencyUnavailable(relation, str(exc)) from exc
    raise exc


def _insert_returning_id(db, sql: str, params: tuple) -> int:
    rows = db.execute(sql + " RETURNING id", params).fetchall()
    return rows[0]["id"]


# ── Profiles ─────────────────────────────────────────────────────────


class ProfileStoreDB:
    """Profiles table. Only the points service calls increment_points."""

    @staticmethod
    def create(username: str, role: str, now_iso: str,
               avatar_url: Optional[str] = None) -> Profile:
        db = get_db()
        profile_id = _insert_returning_id(
            db,
            "INSERT INTO profiles (username, role, points, streak, avatar_url, created_at) "
            "VALUES (?, ?, 0, 0, ?, ?)",
            (username, role, avatar_url, now_iso),
        )
        db.commit()
        return ProfileStoreDB.get(profile_id)

    @staticmethod
    def get(profile_id: int) -> Optional[Profile]:
        row = get_db().execute("SELECT * FROM profiles WHERE id = ?", (profile_id,)).fetchone()
        return from_row(Profile, row)

    @staticmethod
    def get_by_username(username: str) -> Optional[Profile]:
        row = get_db().execute(
            "SELECT * FROM profiles WHERE username = ?", (username,)
        ).fetchone()
        return from_row(Profile, row)

    @staticmethod
    def increment_points(profile_id: int, delta: int) -> Optional[int]:
        """Atomically add delta and return the new total (None if no such profile)."""
        db = get_db()
        rows = db.execute(
            "UPDATE profiles SET points = points + ? WHERE id = ? RETURNING points",
            (delta, profile_id),
        ).fetchall()
        db.commit()
        return rows[0]["points"] if rows else None

    @staticmethod
    def set_streak(profile_id: int, streak: int) -> None:
        db = get_db()
        db.execute("UPDATE profiles SET streak = ? WHERE id = ?", (streak, profile_id))
        db.commit()

    @staticmethod
    def top_students(limit: int = 10) -> list[Profile]:
        rows = get_db().execute(
            "SELECT * FROM profiles WHERE role = 'student' "
            "ORDER BY points DESC, created_at ASC, id ASC LIMIT ?",
            (limit,),
        ).fetchall()
        return [from_row(Profile, r) for r in rows]

    @staticmethod
    def count_students_above(points: int) -> int:
        row = get_db().execute(
            "SELECT COUNT(*) AS n FROM profiles WHERE role = 'student' AND points > ?",
            (points,),
        ).fetchone()
        return row["n"]


# ── Vocabulary & expressions ─────────────────────────────────────────


ENTRY_KINDS: dict[str, tuple[str, str, str]] = {
    # kind: (table, raw column, normalized column)
    "vocabulary": ("vocabulary", "word", "normalized_word"),
    "expression": ("expressions", "expression", "normalized_expression"),
}


class EntryStoreDB:
    """Read side shared by vocabulary and expressions: matching and counts."""

    def __init__(self, kind: str):
        if kind not in ENTRY_KINDS:
            raise ValueError(f"Unknown entry kind: {kind}")
        self.kind = kind
        self.table, self.raw_column, self.normalized_column = ENTRY_KINDS[kind]

    def other_student_has_normalized(self, normalized: str, student_id: int) -> bool:
        db = get_db()
        try:
            row = db.execute(
                f"SELECT 1 FROM {self.table} "
                f"WHERE {self.normalized_column} = ? AND student_id != ? LIMIT 1",
                (normalized, student_id),
            ).fetchone()
        except Exception as exc:
            _unavailable(db, exc, f"{self.table}.{self.normalized_column}")
        return row is not None

    def recent_normalized_terms(self, student_id: int, limit: int) -> list[str]:
        db = get_db()
        try:
            rows = db.execute(
                f"SELECT {self.normalized_column} AS term FROM {self.table} "
                f"WHERE student_id != ? AND {self.normalized_column} IS NOT NULL "
                "ORDER BY created_at DESC, id DESC LIMIT ?",
                (student_id, limit),
            ).fetchall()
        except Exception as exc:
            _unavailable(db, exc, f"{self.table}.{self.normalized_column}")
        return [r["term"] for r in rows]

    def recent_raw_terms(self, student_id: int, limit: int) -> list[str]:
        db = get_db()
        try:
            rows = db.execute(
                f"SELECT {self.raw_column} AS term FROM {self.table} "
                "WHERE student_id != ? ORDER BY created_at DESC, id DESC LIMIT ?",
                (student_id, limit),
            ).fetchall()
        except Exception as exc:
            _unavailable(db, exc, self.table)
        return [r["term"] for r in rows]

    def count_for(self, student_id: int) -> int:
        row = get_db().execute(
            f"SELECT COUNT(*) AS n FROM {self.table} WHERE student_id = ?", (student_id,)
        ).fetchone()
        return row["n"]

    def counts_for(self, student_ids: list[int]) -> dict[int, int]:
        if not student_ids:
            return {}
        placeholders = ", ".join("?" for _ in student_ids)
        rows = get_db().execute(
            f"SELECT student_id, COUNT(*) AS n FROM {self.table} "
            f"WHERE student_id IN ({placeholders}) GROUP BY student_id",
            tuple(student_ids),
        ).fetchall()
        return {r["student_id"]: r["n"] for r in rows}


def _insert_entry(db, table: str, columns: list[str], values: list,
                  normalized_column: str, normalized: str) -> int:
    """Insert with the normalized column, retrying without it on older schemas."""
    cols = columns + [normalized_column]
    vals = values + [normalized]
    try:
        return _insert_returning_id(
            db,
            f"INSERT INTO {table} ({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)})",
            tuple(vals),
        )
    except Exception as exc:
        if not is_undefined_column(exc):
            raise
        db.rollback()
    return _insert_returning_id(
        db,
        f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
        tuple(values),
    )


class VocabularyStoreDB:
    """A student's collected words."""

    def __init__(self, student_id: int):
        self.student_id = student_id

    def add(self, word: str, definition: str, example_sentence: Optional[str],
            normalized_word: str, now_iso: str, category: Optional[str] = None,
            material_id: Optional[int] = None, image_url: Optional[str] = None) -> VocabularyEntry:
        db = get_db()
        entry_id = _insert_entry(
            db, "vocabulary",
            ["student_id", "word", "definition", "example_sentence", "category",
             "material_id", "image_url", "created_at"],
            [self.student_id, word, definition, example_sentence, category,
             material_id, image_url, now_iso],
            "normalized_word", normalized_word,
        )
        db.commit()
        return self.get(entry_id)

    def get(self, entry_id: int) -> Optional[VocabularyEntry]:
        row = get_db().execute(
            "SELECT * FROM vocabulary WHERE id = ? AND student_id = ?",
            (entry_id, self.student_id),
        ).fetchone()
        return from_row(VocabularyEntry, row)

    def recent(self, limit: int = 50) -> list[VocabularyEntry]:
        rows = get_db().execute(
            "SELECT * FROM vocabulary WHERE student_id = ? "
            "ORDER BY created_at DESC, id DESC LIMIT ?",
            (self.student_id, limit),
        ).fetchall()
        return [from_row(VocabularyEntry, r) for r in rows]


class ExpressionStoreDB:
    """A student's collected expressions."""

    def __init__(self, student_id: int):
        self.student_id = student_id

    def add(self, expression: str, meaning: str, usage_example: Optional[str],
            normalized_expression: str, now_iso: str, context: Optional[str] = None,
            material_id: Optional[int] = None) -> ExpressionEntry:
        db = get_db()
        entry_id = _insert_entry(
            db, "expressions",
            ["student_id", "expression", "meaning", "usage_example", "context",
             "material_id", "created_at"],
            [self.student_id, expression, meaning, usage_example, context,
             material_id, now_iso],
            "normalized_expression", normalized_expression,
        )
        db.commit()
        return self.get(entry_id)

    def get(self, entry_id: int) -> Optional[ExpressionEntry]:
        row = get_db().execute(
            "SELECT * FROM expressions WHERE id = ? AND student_id = ?",
            (entry_id, self.student_id),
        ).fetchone()
        return from_row(ExpressionEntry, row)

    def recent(self, limit: int = 50) -> list[ExpressionEntry]:
        rows = get_db().execute(
            "SELECT * FROM expressions WHERE student_id = ? "
            "ORDER BY created_at DESC, id DESC LIMIT ?",
            (self.student_id, limit),
        ).fetchall()
        return [from_row(ExpressionEntry, r) for r in rows]


# ── Review items ─────────────────────────────────────────────────────


class ReviewItemStoreDB:
    """A student's spaced-repetition queue."""

    def __init__(self, student_id: int):
        self.student_id = student_id

    def ensure(self, source_type: str, source_id: int, prompt: str, answer: str,
               context_hint: Optional[str], now_iso: str) -> bool:
        """Insert the item unless it already exists. Returns True if inserted."""
        db = get_db()
        try:
            cur = db.execute(
                "INSERT INTO review_items (student_id, source_type, source_id, prompt, answer, "
                "context_hint, status, due_at, interval_days, ease_factor, repetitions, "
                "created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, 'learning', ?, 1, 2.5, 0, ?, ?) "
                "ON CONFLICT (student_id, source_type, source_id) DO NOTHING",
                (self.student_id, source_type, source_id, prompt, answer, context_hint,
                 now_iso, now_iso, now_iso),
            )
        except Exception as exc:
            _unavailable(db, exc, "review_items")
        db.commit()
        return cur.rowcount == 1

    def get(self, item_id: int) -> Optional[ReviewItem]:
        row = get_db().execute(
            "SELECT * FROM review_items WHERE id = ? AND student_id = ?",
            (item_id, self.student_id),
        ).fetchone()
        return from_row(ReviewItem, row)

    def update_schedule(self, item_id: int, *, status: str, interval_days: int,
                        ease_factor: float, repetitions: int, due_at: str,
                        reviewed_at: str) -> bool:
        db = get_db()
        cur = db.execute(
            "UPDATE review_items SET status = ?, interval_days = ?, ease_factor = ?, "
            "repetitions = ?, due_at = ?, last_reviewed_at = ?, updated_at = ? "
            "WHERE id = ? AND student_id = ?",
            (status, interval_days, ease_factor, repetitions, due_at, reviewed_at,
             reviewed_at, item_id, self.student_id),
        )
        db.commit()
        return cur.rowcount == 1

    def due(self, now_iso: str, limit: int = 20) -> list[ReviewItem]:
        db = get_db()
        try:
            rows = db.execute(
                "SELECT * FROM review_items WHERE student_id = ? AND due_at <= ? "
                "ORDER BY due_at ASC, id ASC LIMIT ?",
                (self.student_id, now_iso, limit),
            ).fetchall()
        except Exception as exc:
            _unavailable(db, exc, "review_items")
        return [from_row(ReviewItem, r) for r in rows]

    def due_count(self, now_iso: str) -> int:
        db = get_db()
        try:
            row = db.execute(
                "SELECT COUNT(*) AS n FROM review_items WHERE student_id = ? AND due_at <= ?",
                (self.student_id, now_iso),
            ).fetchone()
        except Exception as exc:
            _unavailable(db, exc, "review_items")
        return row["n"]

    def reviewed_since(self, since_iso: str) -> int:
        db = get_db()
        try:
            row = db.execute(
                "SELECT COUNT(*) AS n FROM review_items "
                "WHERE student_id = ? AND last_reviewed_at >= ?",
                (self.student_id, since_iso),
            ).fetchone()
        except Exception as exc:
            _unavailable(db, exc, "review_items")
        return row["n"]

    def review_timestamps(self, limit: int) -> list[str]:
        """Most recent last_reviewed_at values, newest first."""
        db = get_db()
        try:
            rows = db.execute(
                "SELECT last_reviewed_at FROM review_items "
                "WHERE student_id = ? AND last_reviewed_at IS NOT NULL "
                "ORDER BY last_reviewed_at DESC LIMIT ?",
                (self.student_id, limit),
            ).fetchall()
        except Exception as exc:
            _unavailable(db, exc, "review_items")
        return [r["last_reviewed_at"] for r in rows]

    @staticmethod
    def class_analytics(now_iso: str, day_start_iso: str) -> dict:
        db = get_db()
        try:
            row = db.execute(
                "SELECT "
                "  COALESCE(SUM(CASE WHEN due_at <= ? THEN 1 ELSE 0 END), 0) AS due_now, "
                "  COALESCE(SUM(CASE WHEN last_reviewed_at >= ? THEN 1 ELSE 0 END), 0) AS completed_today, "
                "  COALESCE(SUM(CASE WHEN status = 'mastered' THEN 1 ELSE 0 END), 0) AS mastered, "
                "  COUNT(*) AS total, "
                "  COUNT(DISTINCT CASE WHEN last_reviewed_at >= ? THEN student_id END) AS active_students "
                "FROM review_items",
                (now_iso, day_start_iso, day_start_iso),
            ).fetchone()
        except Exception as exc:
            _unavailable(db, exc, "review_items")
        return {
            "due_now": row["due_now"],
            "completed_today": row["completed_today"],
            "mastered_count": row["mastered"],
            "total_review_items": row["total"],
            "active_students_today": row["active_students"],
        }


# ── Teacher boosts ───────────────────────────────────────────────────


class BoostStoreDB:

    @staticmethod
    def active_at(now_iso: str) -> list[TeacherBoost]:
        """Active boosts whose window contains now, newest first."""
        db = get_db()
        try:
            rows = db.execute(
                "SELECT * FROM teacher_boosts "
                "WHERE is_active = 1 AND starts_at <= ? AND ends_at >= ? "
                "ORDER BY created_at DESC, id DESC LIMIT 5",
                (now_iso, now_iso),
            ).fetchall()
        except Exception as exc:
            _unavailable(db, exc, "teacher_boosts")
        return [from_row(TeacherBoost, r) for r in rows]

    @staticmethod
    def get(boost_id: int) -> Optional[TeacherBoost]:
        row = get_db().execute("SELECT * FROM teacher_boosts WHERE id = ?", (boost_id,)).fetchone()
        return from_row(TeacherBoost, row)

    @staticmethod
    def create(*, title: str, description: Optional[str], boost_type: str, multiplier: float,
               flat_bonus: int, starts_at: str, ends_at: str, is_active: bool,
               created_by: int, now_iso: str) -> TeacherBoost:
        db = get_db()
        boost_id = _insert_returning_id(
            db,
            "INSERT INTO teacher_boosts (title, description, boost_type, multiplier, flat_bonus, "
            "starts_at, ends_at, is_active, created_by, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (title, description, boost_type, multiplier, flat_bonus, starts_at, ends_at,
             int(is_active), created_by, now_iso),
        )
        db.commit()
        return BoostStoreDB.get(boost_id)

    @staticmethod
    def update(boost: TeacherBoost) -> TeacherBoost:
        db = get_db()
        db.execute(
            "UPDATE teacher_boosts SET title = ?, description = ?, boost_type = ?, multiplier = ?, "
            "flat_bonus = ?, starts_at = ?, ends_at = ?, is_active = ? WHERE id = ?",
            (boost.title, boost.description, boost.boost_type, boost.multiplier,
             boost.flat_bonus, boost.starts_at, boost.ends_at, int(boost.is_active), boost.id),
        )
        db.commit()
        return BoostStoreDB.get(boost.id)

    @staticmethod
    def delete(boost_id: int) -> bool:
        db = get_db()
        cur = db.execute("DELETE FROM teacher_boosts WHERE id = ?", (boost_id,))
        db.commit()
        return cur.rowcount == 1

    @staticmethod
    def for_creator(teacher_id: int) -> list[TeacherBoost]:
        rows = get_db().execute(
            "SELECT * FROM teacher_boosts WHERE created_by = ? ORDER BY created_at DESC, id DESC",
            (teacher_id,),
        ).fetchall()
        return [from_row(TeacherBoost, r) for r in rows]


# ── Badges ───────────────────────────────────────────────────────────


def _badge_definition(row) -> BadgeDefinition:
    return BadgeDefinition(
        id=row["id"],
        slug=row["slug"],
        name=row["name"],
        description=row["description"],
        metric=row["metric"],
        target=row["target_value"],
        reward_points=row["reward_points"],
        icon=row["icon"],
        color=row["color"],
    )


class BadgeStoreDB:
    """Badge definitions plus one student's progress rows."""

    def __init__(self, student_id: int):
        self.student_id = student_id

    @staticmethod
    def active_definitions() -> list[BadgeDefinition]:
        db = get_db()
        try:
            rows = db.execute(
                "SELECT * FROM badge_definitions WHERE is_active = 1 "
                "ORDER BY target_value ASC, id ASC"
            ).fetchall()
        except Exception as exc:
            _unavailable(db, exc, "badge_definitions")
        return [_badge_definition(r) for r in rows]

    @staticmethod
    def create_definition(*, slug: str, name: str, description: str, metric: str,
                          target: int, reward_points: int, icon: str, color: str,
                          created_by: Optional[int], now_iso: str) -> Optional[BadgeDefinition]:
        """None when the slug is already taken."""
        db = get_db()
        try:
            badge_id = _insert_returning_id(
                db,
                "INSERT INTO badge_definitions (slug, name, description, icon, color, metric, "
                "target_value, reward_points, is_active, created_by, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, 1, ?, ?)",
                (slug, name, description, icon, color, metric, target, reward_points,
                 created_by, now_iso),
            )
        except Exception as exc:
            db.rollback()
            if is_unique_violation(exc):
                return None
            raise
        db.commit()
        row = db.execute("SELECT * FROM badge_definitions WHERE id = ?", (badge_id,)).fetchone()
        return _badge_definition(row)

    def rows(self) -> dict:
        db = get_db()
        try:
            rows = db.execute(
                "SELECT * FROM student_badges WHERE student_id = ?", (self.student_id,)
            ).fetchall()
        except Exception as exc:
            _unavailable(db, exc, "student_badges")
        return {r["badge_id"]: from_row(StudentBadgeRow, r) for r in rows}

    def upsert(self, rows: list[StudentBadgeRow], now_iso: str) -> None:
        db = get_db()
        for row in rows:
            db.execute(
                "INSERT INTO student_badges (student_id, badge_id, progress_value, is_unlocked, "
                "unlocked_at, awarded_points, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT (student_id, badge_id) DO UPDATE SET "
                "progress_value = excluded.progress_value, "
                "is_unlocked = excluded.is_unlocked, "
                "unlocked_at = excluded.unlocked_at, "
                "awarded_points = excluded.awarded_points, "
                "updated_at = excluded.updated_at",
                (self.student_id, row.badge_id, row.progress_value, int(row.is_unlocked),
                 row.unlocked_at, row.awarded_points, now_iso),
            )
        db.commit()


# ── Daily challenges & quests ────────────────────────────────────────


class ChallengeStoreDB:

    @staticmethod
    def active_on(date_iso: str) -> Optional[DailyChallenge]:
        db = get_db()
        try:
            row = db.execute(
                "SELECT * FROM daily_challenges WHERE challenge_date = ? AND is_active = 1 "
                "ORDER BY created_at DESC, id DESC LIMIT 1",
                (date_iso,),
            ).fetchone()
        except Exception as exc:
            _unavailable(db, exc, "daily_challenges")
        return from_row(DailyChallenge, row)

    @staticmethod
    def claim(challenge_id: int, student_id: int, vocabulary_id: Optional[int],
              now_iso: str) -> Optional[int]:
        """Insert a claim row; None means the student already claimed it."""
        db = get_db()
        try:
            claim_id = _insert_returning_id(
                db,
                "INSERT INTO daily_challenge_claims "
                "(challenge_id, student_id, vocabulary_id, points_awarded, created_at) "
                "VALUES (?, ?, ?, 0, ?)",
                (challenge_id, student_id, vocabulary_id, now_iso),
            )
        except Exception as exc:
            if is_unique_violation(exc):
                db.rollback()
                return None
            _unavailable(db, exc, "daily_challenge_claims")
        db.commit()
        return claim_id

    @staticmethod
    def set_claim_points(claim_id: int, points: int) -> None:
        db = get_db()
        db.execute(
            "UPDATE daily_challenge_claims SET points_awarded = ? WHERE id = ?", (points, claim_id)
        )
        db.commit()

    @staticmethod
    def delete_claim(claim_id: int) -> None:
        db = get_db()
        db.execute("DELETE FROM daily_challenge_claims WHERE id = ?", (claim_id,))
        db.commit()

    @staticmethod
    def create(*, title: str, description: str, challenge_date: str, metric: str,
               target_value: int, reward_points: int, created_by: int,
               now_iso: str) -> DailyChallenge:
        db = get_db()
        challenge_id = _insert_returning_id(
            db,
            "INSERT INTO daily_challenges (title, description, challenge_date, metric, "
            "target_value, reward_points, is_active, created_by, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, 1, ?, ?)",
            (title, description, challenge_date, metric, target_value, reward_points,
             created_by, now_iso),
        )
        db.commit()
        row = db.execute("SELECT * FROM daily_challenges WHERE id = ?", (challenge_id,)).fetchone()
        return from_row(DailyChallenge, row)

    @staticmethod
    def for_creator(teacher_id: int, limit: int = 30) -> list[DailyChallenge]:
        rows = get_db().execute(
            "SELECT * FROM daily_challenges WHERE created_by = ? "
            "ORDER BY challenge_date DESC, id DESC LIMIT ?",
            (teacher_id, limit),
        ).fetchall()
        return [from_row(DailyChallenge, r) for r in rows]


class QuestStoreDB:

    @staticmethod
    def active_on(date_iso: str, limit: int = 20) -> list[Quest]:
        db = get_db()
        try:
            rows = db.execute(
                "SELECT * FROM quests WHERE is_active = 1 "
                "AND (start_date IS NULL OR start_date <= ?) "
                "AND (end_date IS NULL OR end_date >= ?) "
                "ORDER BY created_at ASC, id ASC LIMIT ?",
                (date_iso, date_iso, limit),
            ).fetchall()
        except Exception as exc:
            _unavailable(db, exc, "quests")
        return [from_row(Quest, r) for r in rows]

    @staticmethod
    def create(*, title: str, description: str, metric: str, target_value: int,
               reward_points: int, start_date: Optional[str], end_date: Optional[str],
               created_by: int, now_iso: str) -> Quest:
        db = get_db()
        quest_id = _insert_returning_id(
            db,
            "INSERT INTO quests (title, description, metric, target_value, reward_points, "
            "is_active, start_date, end_date, created_by, created_at) "
            "VALUES (?, ?, ?, ?, ?, 1, ?, ?, ?, ?)",
            (title, description, metric, target_value, reward_points, start_date, end_date,
             created_by, now_iso),
        )
        db.commit()
        row = db.execute("SELECT * FROM quests WHERE id = ?", (quest_id,)).fetchone()
        return from_row(Quest, row)

    @staticmethod
    def for_creator(teacher_id: int) -> list[Quest]:
        rows = get_db().execute(
            "SELECT * FROM quests WHERE created_by = ? ORDER BY created_at DESC, id DESC",
            (teacher_id,),
        ).fetchall()
        return [from_row(Quest, r) for r in rows]


# ── Duels ────────────────────────────────────────────────────────────


class DuelStoreDB:
    """Duels, their rounds, participants and answers."""

    def __init__(self, duel_id: int):
        self.duel_id = duel_id

    @staticmethod
    def create(created_by: int, rounds: list[dict], now_iso: str) -> "DuelStoreDB":
        """Insert the duel, its creator as first participant and every round together."""
        db = get_db()
        try:
            duel_id = _insert_returning_id(
                db,
                "INSERT INTO duels (created_by, status, created_at) VALUES (?, 'waiting', ?)",
                (created_by, now_iso),
            )
            db.execute(
                "INSERT INTO duel_participants (duel_id, student_id, joined_at) VALUES (?, ?, ?)",
                (duel_id, created_by, now_iso),
            )
            for number, rnd in enumerate(rounds, 1):
                db.execute(
                    "INSERT INTO duel_rounds (duel_id, round_number, prompt, correct_answer, "
                    "options, created_at) VALUES (?, ?, ?, ?, ?, ?)",
                    (duel_id, number, rnd["prompt"], rnd["correct_answer"],
                     json.dumps(rnd["options"]), now_iso),
                )
        except Exception:
            db.rollback()
            raise
        db.commit()
        return DuelStoreDB(duel_id)

    def get(self) -> Optional[Duel]:
        row = get_db().execute("SELECT * FROM duels WHERE id = ?", (self.duel_id,)).fetchone()
        return from_row(Duel, row)

    def participants(self) -> list[DuelParticipant]:
        rows = get_db().execute(
            "SELECT * FROM duel_participants WHERE duel_id = ? ORDER BY joined_at ASC, id ASC",
            (self.duel_id,),
        ).fetchall()
        return [from_row(DuelParticipant, r) for r in rows]

    def rounds(self) -> list[DuelRound]:
        rows = get_db().execute(
            "SELECT * FROM duel_rounds WHERE duel_id = ? ORDER BY round_number ASC",
            (self.duel_id,),
        ).fetchall()
        return [from_row(DuelRound, r) for r in rows]

    def answers(self) -> list[DuelAnswer]:
        rows = get_db().execute(
            "SELECT * FROM duel_answers WHERE duel_id = ? ORDER BY created_at ASC, id ASC",
            (self.duel_id,),
        ).fetchall()
        return [from_row(DuelAnswer, r) for r in rows]

    def add_participant(self, student_id: int, now_iso: str) -> str:
        """Insert only while the duel is waiting.

        Returns "joined", "already_joined" or "closed".
        """
        db = get_db()
        try:
            cur = db.execute(
                "INSERT INTO duel_participants (duel_id, student_id, joined_at) "
                "SELECT ?, ?, ? WHERE EXISTS "
                "(SELECT 1 FROM duels WHERE id = ? AND status = 'waiting')",
                (self.duel_id, student_id, now_iso, self.duel_id),
            )
        except Exception as exc:
            db.rollback()
            if is_unique_violation(exc):
                return "already_joined"
            raise
        db.commit()
        return "joined" if cur.rowcount else "closed"

    def mark_active(self, now_iso: str) -> bool:
        db = get_db()
        cur = db.execute(
            "UPDATE duels SET status = 'active', started_at = ? WHERE id = ? AND status = 'waiting'",
            (now_iso, self.duel_id),
        )
        db.commit()
        return cur.rowcount == 1

    def record_answer(self, round_id: int, student_id: int, selected_answer: str,
                      is_correct: bool, response_time_ms: Optional[int], points_earned: int,
                      now_iso: str) -> Optional[DuelAnswer]:
        """Append an answer and bump the participant's totals. None if already answered."""
        db = get_db()
        try:
            answer_id = _insert_returning_id(
                db,
                "INSERT INTO duel_answers (duel_id, round_id, student_id, selected_answer, "
                "is_correct, response_time_ms, points_earned, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (self.duel_id, round_id, student_id, selected_answer, int(is_correct),
                 response_time_ms, points_earned, now_iso),
            )
            db.execute(
                "UPDATE duel_participants SET total_score = total_score + ?, "
                "correct_answers = correct_answers + ? WHERE duel_id = ? AND student_id = ?",
                (points_earned, 1 if is_correct else 0, self.duel_id, student_id),
            )
        except Exception as exc:
            db.rollback()
            if is_unique_violation(exc):
                return None
            raise
        db.commit()
        row = db.execute("SELECT * FROM duel_answers WHERE id = ?", (answer_id,)).fetchone()
        return from_row(DuelAnswer, row)

    def mark_finished(self, winner_id: Optional[int], now_iso: str) -> bool:
        """Guarded transition; False if another finalize got there first."""
        db = get_db()
        cur = db.execute(
            "UPDATE duels SET status = 'finished', finished_at = ?, winner_id = ? "
            "WHERE id = ? AND status = 'active'",
            (now_iso, winner_id, self.duel_id),
        )
        db.commit()
        return cur.rowcount == 1

    @staticmethod
    def joinable_for(student_id: int, limit: int = 20) -> list[dict]:
        rows = get_db().execute(
            "SELECT d.*, "
            "  (SELECT COUNT(*) FROM duel_participants c WHERE c.duel_id = d.id) AS participant_count, "
            "  p.username AS creator_username "
            "FROM duels d JOIN profiles p ON p.id = d.created_by "
            "WHERE d.status = 'waiting' AND NOT EXISTS ("
            "  SELECT 1 FROM duel_participants m WHERE m.duel_id = d.id AND m.student_id = ?) "
            "ORDER BY d.created_at DESC, d.id DESC LIMIT ?",
            (student_id, limit),
        ).fetchall()
        return [dict(r) for r in rows]

    @staticmethod
    def history_for(student_id: int, limit: int = 10) -> list[dict]:
        rows = get_db().execute(
            "SELECT d.*, m.total_score, m.correct_answers "
            "FROM duel_participants m JOIN duels d ON d.id = m.duel_id "
            "WHERE m.student_id = ? ORDER BY d.created_at DESC, d.id DESC LIMIT ?",
            (student_id, limit),
        ).fetchall()
        return [dict(r) for r in rows]


# ── Teams ────────────────────────────────────────────────────────────


class TeamStoreDB:

    @staticmethod
    def standings() -> list[dict]:
        """Active teams with member count and summed member points."""
        db = get_db()
        try:
            rows = db.execute(
                "SELECT t.id, t.name, t.description, t.color_hex, "
                "  COUNT(m.student_id) AS member_count, "
                "  COALESCE(SUM(p.points), 0) AS total_points "
                "FROM teams t "
                "LEFT JOIN team_memberships m ON m.team_id = t.id "
                "LEFT JOIN profiles p ON p.id = m.student_id "
                "WHERE t.is_active = 1 "
                "GROUP BY t.id, t.name, t.description, t.color_hex"
            ).fetchall()
        except Exception as exc:
            _unavailable(db, exc, "teams")
        return [dict(r) for r in rows]

    @staticmethod
    def team_for(student_id: int) -> Optional[int]:
        db = get_db()
        try:
            row = db.execute(
                "SELECT team_id FROM team_memberships WHERE student_id = ? "
                "ORDER BY joined_at ASC, id ASC LIMIT 1",
                (student_id,),
            ).fetchone()
        except Exception as exc:
            _unavailable(db, exc, "team_memberships")
        return row["team_id"] if row else None


# ── Class stream ─────────────────────────────────────────────────────


class StreamStoreDB:

    @staticmethod
    def add(author_id: Optional[int], body: str, now_iso: str) -> int:
        db = get_db()
        post_id = _insert_returning_id(
            db,
            "INSERT INTO stream_posts (author_id, body, created_at) VALUES (?, ?, ?)",
            (author_id, body, now_iso),
        )
        db.commit()
        return post_id

    @staticmethod
    def recent(limit: int = 20) -> list[dict]:
        rows = get_db().execute(
            "SELECT s.id, s.author_id, s.body, s.created_at, p.username AS author_username "
            "FROM stream_posts s LEFT JOIN profiles p ON p.id = s.author_id "
            "ORDER BY s.created_at DESC, s.id DESC LIMIT ?",
            (limit,),
        ).fetchall()
        return [dict(r) for r in rows]
