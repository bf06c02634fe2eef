import logging
import time
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
import redis as _redis
from rq import Queue

logger = logging.getLogger(__name__)

db = SQLAlchemy()
migrate = Migrate()

# Initialized lazily in create_app
redis_client: _redis.Redis = None  # type: ignore
task_queue: Queue = None  # type: ignore
view_backend = None


class DummyQueue:
    """No-op queue for development without Redis."""

    def enqueue(self, *args, **kwargs):
        logger.warning("Redis not available, skipping job enqueue: %s", args[:1])
        return None


class MemoryViewBackend:
    """In-process stand-in for the Redis calls the view store makes.

    Only good for a single process (dev server, tests).
    """

    def __init__(self):
        self._data = {}

    def setex(self, key, ttl, value):
        now = time.monotonic()
        # Abandoned views never get a DELETE; sweep them on write.
        for stale in [k for k, (expires_at, _) in self._data.items() if expires_at <= now]:
            del self._data[stale]
        self._data[key] = (now + ttl, value)

    def get(self, key):
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at <= time.monotonic():
            self._data.pop(key, None)
            return None
        return value

    def delete(self, key):
        return 1 if self._data.pop(key, None) is not None else 0


def init_redis(app):
    global redis_client, task_queue, view_backend
    redis_url = app.config.get("REDIS_URL", "")
    if not redis_url:
        logger.warning("REDIS_URL not set, queue and shared view store disabled (dev mode)")
        redis_client = None
        task_queue = DummyQueue()
        view_backend = MemoryViewBackend()
        return

    try:
        redis_client = _redis.from_url(redis_url, decode_responses=False)
        redis_client.ping()
        task_queue = Queue("combo-audit", connection=redis_client)
        view_backend = redis_client
    except Exception as e:
        logger.warning("Redis connection failed (%s), queue and shared view store disabled", e)
        redis_client = None
        task_queue = DummyQueue()
        view_backend = MemoryViewBackend()
