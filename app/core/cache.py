"""
Redis caching helpers for frequently read campus data.

Every failure degrades to a cache miss: reads return None, writes return
False and get_or_set falls through to the fetcher.
"""
import json
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Optional
from uuid import UUID

import redis

from app.core.config import settings

logger = logging.getLogger(__name__)

# First matching prefix wins, so longer prefixes must come before shorter ones.
CACHE_TTL = {
    "student:profile": 3600,
    "employee:profile": 3600,
    "config:public": 86400,
    "academic:current-semester": 3600,
    "academic:current-year": 3600,
    "dashboard:admin": 300,
    "dashboard:student": 300,
    "dashboard:lecturer": 300,
    "schedule:student": 1800,
    "schedule:lecturer": 1800,
    "grades:student": 1800,
    "permissions:user": 3600,
    "fee-structure": 86400,
}


def _json_default(value: Any):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class CacheService:
    """Redis cache wrapper with prefixed keys and a TTL table"""

    def __init__(self, client: Optional[Any] = None, enabled: Optional[bool] = None, prefix: Optional[str] = None):
        self._client = client
        self.enabled = settings.CACHE_ENABLED if enabled is None else enabled
        self.prefix = settings.CACHE_KEY_PREFIX if prefix is None else prefix

    def _get_client(self):
        """Lazy load Redis client"""
        if not self.enabled:
            return None
        if self._client is None:
            if not settings.REDIS_URL:
                logger.warning("Cache enabled but REDIS_URL is not set; caching disabled")
                self.enabled = False
                return None
            self._client = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
        return self._client

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    @staticmethod
    def ttl_for(key: str) -> int:
        for prefix, ttl in CACHE_TTL.items():
            if key.startswith(prefix):
                return ttl
        return settings.CACHE_DEFAULT_TTL

    def is_enabled(self) -> bool:
        return self._get_client() is not None

    def get(self, key: str) -> Optional[Any]:
        client = self._get_client()
        if not client:
            return None
        try:
            value = client.get(self._key(key))
            if value is None:
                logger.debug(f"Cache MISS: {key}")
                return None
            logger.debug(f"Cache HIT: {key}")
            return json.loads(value)
        except (redis.RedisError, ValueError) as e:
            logger.warning(f"Cache get error for {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        client = self._get_client()
        if not client:
            return False
        ttl = ttl or self.ttl_for(key)
        try:
            client.setex(self._key(key), ttl, json.dumps(value, default=_json_default))
            logger.debug(f"Cache SET: {key} (TTL: {ttl}s)")
            return True
        except (redis.RedisError, TypeError) as e:
            logger.warning(f"Cache set error for {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        client = self._get_client()
        if not client:
            return False
        try:
            client.delete(self._key(key))
            return True
        except redis.RedisError as e:
            logger.warning(f"Cache delete error for {key}: {e}")
            return False

    def delete_pattern(self, pattern: str) -> int:
        """Delete all keys matching pattern (e.g. 'schedule:student:123:*')"""
        client = self._get_client()
        if not client:
            return 0
        try:
            keys = list(client.scan_iter(match=self._key(pattern), count=100))
            if not keys:
                return 0
            deleted = client.delete(*keys)
            logger.debug(f"Cache DELETE pattern: {pattern} ({deleted} keys)")
            return deleted
        except redis.RedisError as e:
            logger.warning(f"Cache delete pattern error for {pattern}: {e}")
            return 0

    def get_or_set(self, key: str, fetcher: Callable[[], Any], ttl: Optional[int] = None) -> Any:
        """Return the cached value, or call fetcher and cache its result"""
        cached_value = self.get(key)
        if cached_value is not None:
            return cached_value

        value = fetcher()
        if value is not None:
            self.set(key, value, ttl)
        return value

    def invalidate_user(self, user_id: Any) -> int:
        deleted = self.delete_pattern(f"permissions:user:{user_id}*")
        deleted += self.delete_pattern(f"dashboard:*:{user_id}*")
        return deleted

    def invalidate_student(self, student_id: Any) -> int:
        deleted = self.delete_pattern(f"student:profile:{student_id}*")
        deleted += self.delete_pattern(f"schedule:student:{student_id}*")
        deleted += self.delete_pattern(f"grades:student:{student_id}*")
        return deleted

    def clear(self) -> int:
        return self.delete_pattern("*")

    def get_stats(self) -> dict:
        client = self._get_client()
        if not client:
            return {"enabled": False}
        try:
            info = client.info("memory")
            keys = sum(1 for _ in client.scan_iter(match=self._key("*"), count=500))
            return {
                "enabled": True,
                "keys": keys,
                "memory": info.get("used_memory_human"),
            }
        except redis.RedisError as e:
            logger.warning(f"Failed to get cache stats: {e}")
            return {"enabled": True, "error": str(e)}


class CacheKeys:
    """Builders for keys shared between readers and invalidators"""

    @staticmethod
    def student_profile(student_id) -> str:
        return f"student:profile:{student_id}"

    @staticmethod
    def student_schedule(student_id, semester_id) -> str:
        return f"schedule:student:{student_id}:{semester_id}"

    @staticmethod
    def lecturer_schedule(employee_id, semester_id) -> str:
        return f"schedule:lecturer:{employee_id}:{semester_id}"

    @staticmethod
    def student_grades(student_id) -> str:
        return f"grades:student:{student_id}"

    @staticmethod
    def current_semester(campus_id) -> str:
        return f"academic:current-semester:{campus_id}"

    @staticmethod
    def current_year(campus_id) -> str:
        return f"academic:current-year:{campus_id}"

    @staticmethod
    def fee_structure(program_id, academic_year_id) -> str:
        return f"fee-structure:{program_id}:{academic_year_id}"

    @staticmethod
    def user_permissions(user_id) -> str:
        return f"permissions:user:{user_id}"


cache = CacheService()


def get_cache() -> CacheService:
    """FastAPI dependency returning the shared cache"""
    return cache


__all__ = ["CacheService", "CacheKeys", "CACHE_TTL", "cache", "get_cache"]
