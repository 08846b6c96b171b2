"""
SQLite database layer for LexiQuest.

Uses raw sqlite3 with WAL mode and parameterized queries.
A schema_version table handles migrations.
"""

from __future__ import annotations

import fcntl
import sqlite3
from pathlib import Path

from flask import current_app, g

from models import to_iso, utc_now
from pg_compat import connect_pg, is_postgres_url

DEFAULT_DATABASE = str(Path(__file__).parent / "lexiquest.db")


SCHEMA = """
-- Migration tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL,
    applied_at TEXT NOT NULL
);

-- Students and teachers
CREATE TABLE IF NOT EXISTS profiles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL UNIQUE,
    role TEXT NOT NULL DEFAULT 'student',
    points INTEGER NOT NULL DEFAULT 0,
    streak INTEGER NOT NULL DEFAULT 0,
    avatar_url TEXT,
    created_at TEXT NOT NULL DEFAULT ''
);

-- Collected words
CREATE TABLE IF NOT EXISTS vocabulary (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id INTEGER NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    material_id INTEGER,
    word TEXT NOT NULL,
    definition TEXT NOT NULL,
    example_sentence TEXT,
    category TEXT,
    image_url TEXT,
    difficulty TEXT NOT NULL DEFAULT 'medium',
    status TEXT NOT NULL DEFAULT 'learning',
    created_at TEXT NOT NULL DEFAULT ''
);
CREATE INDEX IF NOT EXISTS idx_vocabulary_student ON vocabulary(student_id, created_at);
CREATE INDEX IF NOT EXISTS idx_vocabulary_created ON vocabulary(created_at);

-- Collected expressions
CREATE TABLE IF NOT EXISTS expressions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id INTEGER NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    material_id INTEGER,
    expression TEXT NOT NULL,
    meaning TEXT NOT NULL,
    usage_example TEXT,
    context TEXT,
    created_at TEXT NOT NULL DEFAULT ''
);
CREATE INDEX IF NOT EXISTS idx_expressions_student ON expressions(student_id, created_at);
CREATE INDEX IF NOT EXISTS idx_expressions_created ON expressions(created_at);

-- Spaced repetition
CREATE TABLE IF NOT EXISTS review_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id INTEGER NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    source_type TEXT NOT NULL CHECK (source_type IN ('vocabulary', 'expression')),
    source_id INTEGER NOT NULL,
    prompt TEXT NOT NULL,
    answer TEXT NOT NULL,
    context_hint TEXT,
    status TEXT NOT NULL DEFAULT 'learning' CHECK (status IN ('learning', 'mastered')),
    due_at TEXT NOT NULL,
    last_reviewed_at TEXT,
    interval_days INTEGER NOT NULL DEFAULT 1,
    ease_factor REAL NOT NULL DEFAULT 2.5,
    repetitions INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL DEFAULT '',
    updated_at TEXT NOT NULL DEFAULT '',
    UNIQUE (student_id, source_type, source_id)
);
CREATE INDEX IF NOT EXISTS idx_review_items_due ON review_items(student_id, due_at);
CREATE INDEX IF NOT EXISTS idx_review_items_reviewed ON review_items(student_id, last_reviewed_at);

-- Teacher boosts
CREATE TABLE IF NOT EXISTS teacher_boosts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    description TEXT,
    boost_type TEXT NOT NULL CHECK (boost_type IN ('double_xp', 'bonus_flat')),
    multiplier REAL NOT NULL DEFAULT 1.0,
    flat_bonus INTEGER NOT NULL DEFAULT 0,
    starts_at TEXT NOT NULL,
    ends_at TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_by INTEGER REFERENCES profiles(id) ON DELETE SET NULL,
    created_at TEXT NOT NULL DEFAULT '',
    CHECK (starts_at < ends_at)
);
CREATE INDEX IF NOT EXISTS idx_teacher_boosts_window ON teacher_boosts(is_active, starts_at, ends_at);

-- Badges
CREATE TABLE IF NOT EXISTS badge_definitions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    slug TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    icon TEXT NOT NULL DEFAULT 'spark',
    color TEXT NOT NULL DEFAULT 'blue',
    metric TEXT NOT NULL CHECK (metric IN ('words', 'expressions', 'points', 'streak')),
    target_value INTEGER NOT NULL CHECK (target_value > 0),
    reward_points INTEGER NOT NULL DEFAULT 0,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_by INTEGER REFERENCES profiles(id) ON DELETE SET NULL,
    created_at TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS student_badges (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id INTEGER NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    badge_id INTEGER NOT NULL REFERENCES badge_definitions(id) ON DELETE CASCADE,
    progress_value INTEGER NOT NULL DEFAULT 0,
    is_unlocked INTEGER NOT NULL DEFAULT 0,
    unlocked_at TEXT,
    awarded_points INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT NOT NULL DEFAULT '',
    UNIQUE (student_id, badge_id)
);

-- Daily challenges
CREATE TABLE IF NOT EXISTS daily_challenges (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    challenge_date TEXT NOT NULL,
    metric TEXT NOT NULL DEFAULT 'words',
    target_value INTEGER NOT NULL DEFAULT 1,
    reward_points INTEGER NOT NULL DEFAULT 0,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_by INTEGER REFERENCES profiles(id) ON DELETE SET NULL,
    created_at TEXT NOT NULL DEFAULT ''
);
CREATE INDEX IF NOT EXISTS idx_daily_challenges_date ON daily_challenges(challenge_date, is_active);

CREATE TABLE IF NOT EXISTS daily_challenge_claims (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    challenge_id INTEGER NOT NULL REFERENCES daily_challenges(id) ON DELETE CASCADE,
    student_id INTEGER NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    vocabulary_id INTEGER REFERENCES vocabulary(id) ON DELETE SET NULL,
    points_awarded INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL DEFAULT '',
    UNIQUE (challenge_id, student_id)
);

-- Weekly quests
CREATE TABLE IF NOT EXISTS quests (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    metric TEXT NOT NULL CHECK (metric IN ('words', 'expressions', 'points', 'streak')),
    target_value INTEGER NOT NULL CHECK (target_value > 0),
    reward_points INTEGER NOT NULL DEFAULT 0,
    is_active INTEGER NOT NULL DEFAULT 1,
    start_date TEXT,
    end_date TEXT,
    created_by INTEGER REFERENCES profiles(id) ON DELETE SET NULL,
    created_at TEXT NOT NULL DEFAULT ''
);

-- Duels
CREATE TABLE IF NOT EXISTS duels (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_by INTEGER NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    status TEXT NOT NULL DEFAULT 'waiting'
        CHECK (status IN ('waiting', 'active', 'finished', 'cancelled')),
    started_at TEXT,
    finished_at TEXT,
    winner_id INTEGER REFERENCES profiles(id) ON DELETE SET NULL,
    created_at TEXT NOT NULL DEFAULT ''
);
CREATE INDEX IF NOT EXISTS idx_duels_status ON duels(status, created_at);

CREATE TABLE IF NOT EXISTS duel_participants (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    duel_id INTEGER NOT NULL REFERENCES duels(id) ON DELETE CASCADE,
    student_id INTEGER NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    joined_at TEXT NOT NULL DEFAULT '',
    total_score INTEGER NOT NULL DEFAULT 0,
    correct_answers INTEGER NOT NULL DEFAULT 0,
    UNIQUE (duel_id, student_id)
);

CREATE TABLE IF NOT EXISTS duel_rounds (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    duel_id INTEGER NOT NULL REFERENCES duels(id) ON DELETE CASCADE,
    round_number INTEGER NOT NULL,
    prompt TEXT NOT NULL,
    correct_answer TEXT NOT NULL,
    options TEXT NOT NULL DEFAULT '[]',
    created_at TEXT NOT NULL DEFAULT '',
    UNIQUE (duel_id, round_number)
);

CREATE TABLE IF NOT EXISTS duel_answers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    duel_id INTEGER NOT NULL REFERENCES duels(id) ON DELETE CASCADE,
    round_id INTEGER NOT NULL REFERENCES duel_rounds(id) ON DELETE CASCADE,
    student_id INTEGER NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    selected_answer TEXT NOT NULL,
    is_correct INTEGER NOT NULL DEFAULT 0,
    response_time_ms INTEGER,
    points_earned INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL DEFAULT '',
    UNIQUE (duel_id, round_id, student_id)
);

-- Teams
CREATE TABLE IF NOT EXISTS teams (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    color_hex TEXT NOT NULL DEFAULT '#2563eb',
    is_active INTEGER NOT NULL DEFAULT 1,
    created_by INTEGER REFERENCES profiles(id) ON DELETE SET NULL,
    created_at TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS team_memberships (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    team_id INTEGER NOT NULL REFERENCES teams(id) ON DELETE CASCADE,
    student_id INTEGER NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    role TEXT NOT NULL DEFAULT 'member',
    joined_at TEXT NOT NULL DEFAULT '',
    UNIQUE (team_id, student_id)
);

-- Class stream
CREATE TABLE IF NOT EXISTS stream_posts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    author_id INTEGER REFERENCES profiles(id) ON DELETE SET NULL,
    body TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT ''
);
CREATE INDEX IF NOT EXISTS idx_stream_posts_created ON stream_posts(created_at);
"""


MIGRATIONS: list[tuple[int, str]] = [
    # Version 1 = base schema.
    # -----------------------------------------------------------
    # Migration 2: Normalized match columns for duplicate detection
    (2, """
        ALTER TABLE vocabulary ADD COLUMN normalized_word TEXT;
        ALTER TABLE expressions ADD COLUMN normalized_expression TEXT;
        CREATE INDEX IF NOT EXISTS idx_vocabulary_normalized
            ON vocabulary(normalized_word);
        CREATE INDEX IF NOT EXISTS idx_expressions_normalized
            ON expressions(normalized_expression);
    """),
    # Migration 3: Built-in badge catalogue
    (3, """
        INSERT INTO badge_definitions
            (slug, name, description, icon, color, metric, target_value, reward_points, is_active, created_at)
        VALUES
            ('first-steps', 'First Steps', 'Collect 5 vocabulary words.', 'book', 'blue', 'words', 5, 20, 1, ''),
            ('phrase-finder', 'Phrase Finder', 'Add 5 expressions.', 'chat', 'cyan', 'expressions', 5, 20, 1, ''),
            ('streak-starter', 'Streak Starter', 'Reach a 3-day streak.', 'flame', 'amber', 'streak', 3, 30, 1, ''),
            ('point-racer', 'Point Racer', 'Earn 150 points.', 'target', 'emerald', 'points', 150, 40, 1, ''),
            ('vocab-sprinter', 'Vocab Sprinter', 'Collect 20 vocabulary words.', 'spark', 'violet', 'words', 20, 60, 1, ''),
            ('league-contender', 'League Contender', 'Earn 400 points.', 'trophy', 'rose', 'points', 400, 80, 1, '')
        ON CONFLICT (slug) DO NOTHING;
    """),
]


def get_db():
    """Return a DB connection from Flask g, creating if needed.

    Supports both SQLite (default) and PostgreSQL (when DATABASE starts
    with postgresql:// or postgres://).
    """
    if "db" not in g:
        db_url = current_app.config.get("DATABASE", DEFAULT_DATABASE)
        if is_postgres_url(db_url):
            g.db = connect_pg(db_url)
            return g.db

        g.db = sqlite3.connect(db_url)
        g.db.row_factory = sqlite3.Row
        g.db.execute("PRAGMA journal_mode=WAL")
        g.db.execute("PRAGMA foreign_keys=ON")
    return g.db


def close_db(e=None) -> None:
    """Teardown handler — close DB connection."""
    db = g.pop("db", None)
    if db is not None:
        db.close()


def init_db() -> None:
    """Execute schema DDL to create all tables."""
    db = get_db()
    db.executescript(SCHEMA)
    db.commit()


def run_migrations() -> None:
    """Apply any unapplied versioned migrations.

    Uses file-based locking to prevent race conditions when multiple
    Gunicorn workers start simultaneously.
    """
    db_url = current_app.config.get("DATABASE", DEFAULT_DATABASE)
    lock_file = None

    # File-based locking only for SQLite (PostgreSQL has its own locking)
    if not is_postgres_url(db_url):
        lock_path = Path(db_url).with_suffix(".migration.lock")
        try:
            lock_file = open(lock_path, "w")
            fcntl.flock(lock_file, fcntl.LOCK_EX)
        except OSError:
            lock_file = None

    try:
        db = get_db()
        applied = {
            row["version"]
            for row in db.execute("SELECT version FROM schema_version").fetchall()
        }
        for version, sql in MIGRATIONS:
            if version in applied:
                continue
            try:
                db.executescript(sql)
            except Exception as e:
                err_msg = str(e).lower()
                if "duplicate column" not in err_msg and "already exists" not in err_msg:
                    raise
                db.rollback()
            db.execute(
                "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                (version, to_iso(utc_now())),
            )
            db.commit()
    finally:
        if lock_file:
            fcntl.flock(lock_file, fcntl.LOCK_UN)
            lock_file.close()


def init_app(app) -> None:
    """Register teardown and auto-init on first request."""
    app.teardown_appcontext(close_db)

    @app.before_request
    def _ensure_db():
        if not getattr(app, "_db_initialized", False):
            init_db()
            run_migrations()
            app._db_initialized = True
