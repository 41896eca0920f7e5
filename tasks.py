"""Fire-and-forget dispatch for sync writes.

With REDIS_URL set and rq installed, writes go to the "sync" queue and a
separate `rq worker sync` process performs them. Otherwise they run inline,
after the local change has already been saved.

Usage:
    from tasks import enqueue
    enqueue(write_document, store, user_id, "progress/data", payload)
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

QUEUE_NAME = "sync"
JOB_TIMEOUT = 30

_queue = None


def _connect_queue(redis_url: str):
    import redis
    from rq import Queue

    conn = redis.Redis.from_url(redis_url, socket_connect_timeout=2)
    conn.ping()
    return Queue(QUEUE_NAME, connection=conn, default_timeout=JOB_TIMEOUT)


def init_tasks(app) -> None:
    """Pick the sync backend for this app. Called once from create_app()."""
    global _queue
    _queue = None

    redis_url = app.config.get("REDIS_URL", "")
    if not redis_url:
        app.logger.info("Sync jobs run inline (REDIS_URL not set)")
        return

    try:
        _queue = _connect_queue(redis_url)
    except ImportError:
        app.logger.info("Sync jobs run inline (rq not installed)")
    except Exception as e:
        app.logger.warning("Sync jobs run inline, Redis unavailable: %s", e)
    else:
        app.logger.info("Sync jobs queued on %r", QUEUE_NAME)


def enqueue(func, *args, **kwargs):
    """Queue func on the sync queue, or call it now when there is no queue.

    Returns the RQ Job, or func's own return value when run inline.
    """
    if _queue is not None:
        try:
            job = _queue.enqueue(func, *args, **kwargs)
            logger.debug("Queued %s as job %s", func.__name__, job.id)
            return job
        except Exception as e:
            logger.warning("Could not queue %s, running inline: %s", func.__name__, e)
    return func(*args, **kwargs)


def is_async_available() -> bool:
    return _queue is not None
