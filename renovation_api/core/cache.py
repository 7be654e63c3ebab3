from typing import Any
from cachetools import TTLCache
from .config import settings
from .utils import normalize_address

try:
    import redis  # Optional dependency
except ImportError:
    redis = None

class Cache:
    """
    Final estimates and per-minute request counters, kept in Redis when
    USE_REDIS is on and in a process-local TTL cache otherwise.
    """
    def __init__(self, ttl_seconds: int | None = None, use_redis: bool | None = None):
        self.ttl = ttl_seconds or settings.CACHE_TTL_SECONDS
        self.local = TTLCache(maxsize=4096, ttl=self.ttl)
        self.counters = TTLCache(maxsize=16384, ttl=60)
        self.backend = None
        if use_redis is None:
            use_redis = settings.USE_REDIS
        if use_redis and redis is not None:
            self.backend = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)

    def get(self, key: str) -> Any | None:
        if self.backend:
            return self.backend.get(key)
        return self.local.get(key)

    def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        if self.backend:
            self.backend.setex(key, ttl_seconds or self.ttl, value)
        else:
            self.local[key] = value

    def incr(self, key: str, ttl_seconds: int = 60) -> int:
        """Bump a short-lived counter and return its new value."""
        if self.backend:
            pipe = self.backend.pipeline()
            pipe.incr(key)
            pipe.expire(key, ttl_seconds)
            count, _ = pipe.execute()
            return int(count)
        count = self.counters.get(key, 0) + 1
        self.counters[key] = count
        return count

def estimate_key(address: str, details: tuple = (None, None, None), follow_up: bool = False) -> str:
    """Cache key for a final estimate: same address + same caller input ⇒ same entry."""
    dims = ":".join("-" if v is None else f"{float(v):g}" for v in details)
    mode = "followup" if follow_up else "first"
    return f"estimate:{normalize_address(address)}:{mode}:{dims}"

cache = Cache()
