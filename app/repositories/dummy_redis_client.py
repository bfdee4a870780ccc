import logging
import time

logger = logging.getLogger(__name__)


class DummyRedisClient:
    """In-process stand-in used when Redis is unreachable. Honors key expiry."""

    def __init__(self):
        self.local_storage: dict = {}
        self._expires_at: dict = {}
        logger.warning("Using in-memory storage as Redis fallback")

    def _evict_if_expired(self, key) -> None:
        deadline = self._expires_at.get(key)
        if deadline is not None and deadline <= time.monotonic():
            self.local_storage.pop(key, None)
            self._expires_at.pop(key, None)

    def get(self, key):
        self._evict_if_expired(key)
        return self.local_storage.get(key)

    def set(self, key, value, ex=None, nx=False):
        self._evict_if_expired(key)
        if nx and key in self.local_storage:
            return False
        self.local_storage[key] = value
        if ex:
            self._expires_at[key] = time.monotonic() + ex
        else:
            self._expires_at.pop(key, None)
        return True

    def delete(self, key):
        self._expires_at.pop(key, None)
        if key in self.local_storage:
            del self.local_storage[key]
            return 1
        return 0

    def exists(self, key):
        self._evict_if_expired(key)
        return key in self.local_storage

    def ping(self):
        return True
