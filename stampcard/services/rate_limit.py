import time, threading
import redis
from flask import current_app
from loguru import logger

from ..errors import TooManyAttempts

_EXT_KEY = 'stampcard.attempts'
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
    store = current_app.extensions.get(_EXT_KEY)
    if store is not None:
        return store
    with _lock:
        store = current_app.extensions.get(_EXT_KEY)
        if store is not None:
            return store
        url = current_app.config.get('REDIS_URL')
        if current_app.config.get('USE_REDIS') and url:
            try:
                client = redis.from_url(url, decode_responses=True)
                # Test connection once; fallback to memory on failure
                client.ping()
                store = client
            except redis.RedisError as e:
                logger.warning('redis unavailable ({}), using in-memory attempt counters', e)
        if store is None:
            store = _MemStore()
        current_app.extensions[_EXT_KEY] = store
        return store

def _key(scope: str, ip: str, window: int) -> str:
    return f"rl:{scope}:{ip}:{int(time.time()//window)}"

def check_rate_ip(scope: str, ip: str, limit: int, window: int):
    """Count one attempt for ``ip`` against ``scope``; raise past ``limit`` per window."""
    k = _key(scope, ip, window)
    v = r().incr(k)
    r().expire(k, window)
    if v > limit:
        logger.warning('too many {} attempts from {}', scope, ip)
        raise TooManyAttempts(f'{scope} attempts exceeded')

# Failed attempts only; successful calls never count toward the limit

def ensure_not_blocked(scope: str, ip: str, limit: int, window: int):
    if int(r().get(_key(scope, ip, window)) or 0) >= limit:
        logger.warning('too many failed {} attempts from {}', scope, ip)
        raise TooManyAttempts(f'{scope} attempts exceeded')

def record_failure(scope: str, ip: str, window: int):
    k = _key(scope, ip, window)
    r().incr(k)
    r().expire(k, window)
