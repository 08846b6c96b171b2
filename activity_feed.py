"""
Activity feed — system posts to the class stream.

Publishing is the notification boundary for level-ups and badge unlocks.
Callers dispatch through tasks.enqueue and never let a failure here fail
the operation that triggered it.
"""

from __future__ import annotations

import logging
from typing import Optional

from db_stores import StreamStoreDB
from errors import ValidationError
from models import to_iso, utc_now
from tasks import enqueue

logger = logging.getLogger(__name__)

MAX_POST_LENGTH = 280


def publish_system_post(author_id: Optional[int], body: str) -> int:
    text = (body or "").strip()[:MAX_POST_LENGTH]
    if not text:
        raise ValidationError("Post body is required")
    return StreamStoreDB.add(author_id, text, to_iso(utc_now()))


def notify(author_id: Optional[int], body: str) -> None:
    """Fire-and-forget publish; failures are logged, never raised."""
    try:
        enqueue(publish_system_post, author_id, body)
    except Exception:
        logger.exception("Activity post for %s failed", author_id)


def recent_posts(limit: int = 20) -> list[dict]:
    return StreamStoreDB.recent(max(1, min(int(limit), 100)))
