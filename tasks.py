"""Side-effect dispatch via RQ with synchronous fallback.

When REDIS_URL is configured and reachable, side effects such as level-up
posts are enqueued for a worker process. Otherwise they run synchronously in
the request thread.

Usage:
    from tasks import enqueue
    enqueue(publish_system_post, author_id, body)
"""

from __future__ import annotations

import logging

import redis
from flask import has_app_context
from rq import Queue

logger = logging.getLogger(__name__)

QUEUE_NAME = "lexiquest-side-effects"
JOB_TIMEOUT_SECONDS = 30

_queue = None


def init_tasks(app) -> None:
    """Initialize the RQ queue if Redis is available. Call once from create_app()."""
    global _queue
    _queue = None

    redis_url = app.config.get("REDIS_URL", "")
    if not redis_url:
        app.logger.info("Task backend: synchronous (no REDIS_URL)")
        return

    try:
        conn = redis.Redis.from_url(redis_url, socket_connect_timeout=2)
        conn.ping()
        _queue = Queue(QUEUE_NAME, connection=conn, default_timeout=JOB_TIMEOUT_SECONDS)
        app.logger.info("Task backend: RQ (%s)", redis_url)
    except redis.RedisError as e:
        app.logger.warning("Task backend: synchronous (Redis error: %s)", e)


def run_in_app_context(func, *args, **kwargs):
    """Worker entrypoint: stores need an app context for their connection."""
    if has_app_context():
        return func(*args, **kwargs)
    from app import create_app
    with create_app().app_context():
        return func(*args, **kwargs)


def enqueue(func, *args, **kwargs):
    """Push a task to RQ if available, else call synchronously.

    Returns the RQ Job object or the function's return value.
    """
    if _queue is not None:
        try:
            job = _queue.enqueue(run_in_app_context, func, *args, **kwargs)
            logger.debug("Enqueued %s (job=%s)", func.__name__, job.id)
            return job
        except redis.RedisError as e:
            logger.warning("RQ enqueue failed (%s), falling back to sync: %s", func.__name__, e)

    logger.debug("Running %s synchronously", func.__name__)
    return func(*args, **kwargs)


def is_async_available() -> bool:
    """Check if RQ background processing is available."""
    return _queue is not None
