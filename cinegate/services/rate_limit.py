import time, threading
import redis
from flask import current_app

from ..errors import RateLimited

_lock = threading.Lock()


class _MemStore:
    def __init__(self):
        self._data = {}
        self._exp = {}
        self._lock = threading.Lock()

    def _cleanup(self):
        now = time.time()
        expired = [k for k, ts in self._exp.items() if ts <= now]
        for k in expired:
            self._data.pop(k, None)
            self._exp.pop(k, None)

    def incr(self, key):
        with self._lock:
            self._cleanup()
            v = int(self._data.get(key, '0')) + 1
            self._data[key] = str(v)
            return v

    def expire(self, key, ttl):
        with self._lock:
            self._cleanup()
            self._exp[key] = time.time() + ttl

    def get(self, key):
        with self._lock:
            self._cleanup()
            return self._data.get(key)


def r():
    store = current_app.extensions.get('rate_limit_store')
    if store is not None:
        return store
    with _lock:
        store = current_app.extensions.get('rate_limit_store')
        if store is not None:
            return store
        url = current_app.config.get('REDIS_URL')
        if current_app.config.get('USE_REDIS') and url:
            try:
                client = redis.from_url(url, decode_responses=True)
                # Test connection once; fallback to memory on failure
                client.ping()
                store = client
            except redis.exceptions.RedisError as e:
                current_app.logger.warning('Redis unavailable (%s), rate limits are per-process', e)
        if store is None:
            store = _MemStore()
        current_app.extensions['rate_limit_store'] = store
        return store


def check_rate(kind: str, identifier: str, limit: int, window: int = 60):
    """Fixed-window counter; raises RateLimited once ``limit`` is passed."""
    now = time.time()
    bucket = int(now // window)
    k = f"rl:{kind}:{identifier}:{bucket}"
    v = r().incr(k)
    r().expire(k, window)
    if v > limit:
        retry_after = max(1, int((bucket + 1) * window - now))
        current_app.logger.warning('Rate limit hit for %s by %s', kind, identifier)
        raise RateLimited(retry_after)
    return v
