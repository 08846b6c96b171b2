"""PostgreSQL compatibility layer — wraps psycopg2 to match the sqlite3 API.

Stores are written once against sqlite3 (``?`` placeholders, ``sqlite3.Row``
access, ``ON CONFLICT`` upserts and ``RETURNING``, which both engines accept).
When DATABASE is a postgresql:// URL this module provides a connection wrapper
that translates:
  - ? placeholders → %s
  - INTEGER PRIMARY KEY AUTOINCREMENT → SERIAL PRIMARY KEY in DDL
  - executescript() → split and execute
  - rows → dict-like PgRow objects

It also classifies driver errors for both engines so stores can tell a
missing table/column or a unique-constraint race apart from a real failure.
"""

from __future__ import annotations

import logging
import re
import sqlite3
from typing import Any

logger = logging.getLogger(__name__)

PG_UNDEFINED_TABLE = "42P01"
PG_UNDEFINED_COLUMN = "42703"
PG_UNIQUE_VIOLATION = "23505"


# ── Error classification ─────────────────────────────────────────────


def _pgcode(exc: BaseException) -> str | None:
    return getattr(exc, "pgcode", None)


def is_missing_relation(exc: BaseException) -> bool:
    """True when the statement failed because a table does not exist."""
    if _pgcode(exc) == PG_UNDEFINED_TABLE:
        return True
    msg = str(exc).lower()
    if isinstance(exc, sqlite3.OperationalError):
        return "no such table" in msg
    return "relation" in msg and "does not exist" in msg


def is_undefined_column(exc: BaseException) -> bool:
    if _pgcode(exc) == PG_UNDEFINED_COLUMN:
        return True
    msg = str(exc).lower()
    if isinstance(exc, sqlite3.OperationalError):
        return "no such column" in msg or "has no column named" in msg
    return "column" in msg and "does not exist" in msg


def is_unique_violation(exc: BaseException) -> bool:
    if _pgcode(exc) == PG_UNIQUE_VIOLATION:
        return True
    msg = str(exc).lower()
    return "unique constraint failed" in msg or "duplicate key value" in msg


# ── Row / cursor / connection wrappers ───────────────────────────────


class PgRow(dict):
    """Dict row that also allows positional access, like sqlite3.Row."""

    def __init__(self, columns: list[str], values: tuple):
        super().__init__(zip(columns, values))
        self._values = tuple(values)

    def __getitem__(self, key: str | int) -> Any:
        if isinstance(key, int):
            return self._values[key]
        return super().__getitem__(key)


def _translate_sql(sql: str) -> str:
    """Translate sqlite-flavoured DML to psycopg2 paramstyle."""
    return sql.replace("%", "%%").replace("?", "%s")


def _translate_schema(sql: str) -> str:
    """Translate SQLite schema DDL to PostgreSQL DDL."""
    translated = re.sub(
        r"(\w+)\s+INTEGER\s+PRIMARY\s+KEY\s+AUTOINCREMENT",
        r"\1 SERIAL PRIMARY KEY",
        sql,
        flags=re.IGNORECASE,
    )
    return re.sub(r"PRAGMA\s+\w+\s*=\s*\w+\s*;?", "", translated, flags=re.IGNORECASE)


class PgCursorWrapper:
    """Wraps a psycopg2 cursor to match the sqlite3.Cursor interface."""

    def __init__(self, cursor):
        self._cursor = cursor

    @property
    def rowcount(self) -> int:
        return self._cursor.rowcount

    @property
    def description(self):
        return self._cursor.description

    def _columns(self) -> list[str]:
        return [desc[0] for desc in self._cursor.description or []]

    def execute(self, sql: str, params: tuple = ()) -> "PgCursorWrapper":
        self._cursor.execute(_translate_sql(sql), params)
        return self

    def fetchone(self) -> PgRow | None:
        if not self._cursor.description:
            return None
        row = self._cursor.fetchone()
        return PgRow(self._columns(), row) if row is not None else None

    def fetchall(self) -> list[PgRow]:
        if not self._cursor.description:
            return []
        columns = self._columns()
        return [PgRow(columns, row) for row in self._cursor.fetchall()]

    def close(self) -> None:
        self._cursor.close()


class PgConnectionWrapper:
    """Wraps a psycopg2 connection to match the sqlite3.Connection interface."""

    def __init__(self, conn):
        self._conn = conn
        self._conn.autocommit = False

    def execute(self, sql: str, params: tuple = ()) -> PgCursorWrapper:
        return PgCursorWrapper(self._conn.cursor()).execute(sql, params)

    def executescript(self, sql: str) -> None:
        statements = [s.strip() for s in _translate_schema(sql).split(";") if s.strip()]
        cursor = self._conn.cursor()
        try:
            for stmt in statements:
                cursor.execute(stmt)
        finally:
            cursor.close()

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()


def connect_pg(database_url: str) -> PgConnectionWrapper:
    """Create a PostgreSQL connection with a sqlite3-compatible interface."""
    try:
        import psycopg2
    except ImportError as exc:
        raise ImportError(
            "psycopg2 is required for PostgreSQL support. "
            "Install it with: pip install psycopg2-binary"
        ) from exc
    return PgConnectionWrapper(psycopg2.connect(database_url))


def is_postgres_url(url: str) -> bool:
    return url.startswith("postgresql://") or url.startswith("postgres://")
