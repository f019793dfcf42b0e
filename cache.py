import json
import logging
import time
from typing import Any, Optional

import redis

from config import config

LIST_CACHE_PREFIX = "files:list"


def list_cache_key(view_mode: str, parent_folder_id: Optional[int], starred: bool = False) -> str:
    parent = "root" if parent_folder_id is None else parent_folder_id
    return f"{LIST_CACHE_PREFIX}:{view_mode}:{parent}:{int(starred)}"


class CacheService:
    """Redis cache for formatted file listings"""

    def __init__(self):
        self.enabled = config.REDIS_CACHE_ENABLED
        self.client = None
        self._logger = logging.getLogger("drive_clone.cache")
        self._last_failure_logged_at: Optional[float] = None

        if self.enabled:
            try:
                self.client = redis.from_url(
                    config.REDIS_URL,
                    decode_responses=True,
                    socket_connect_timeout=5,
                    socket_timeout=5,
                    health_check_interval=30,
                    retry_on_timeout=True,
                    client_name="drive-clone",
                )
                # Test connection
                self.client.ping()
                self._logger.info(
                    "Redis cache enabled", extra={"redis_url": config.REDIS_URL, "ttl": config.REDIS_DEFAULT_TTL}
                )
            except Exception as e:
                self._log_failure("Redis connection failed, cache disabled", e)
                self.enabled = False
                self.client = None
        else:
            self._logger.info("Redis cache disabled", extra={"reason": "REDIS_CACHE_ENABLED=false"})

    def get_from_cache(self, key: str) -> Optional[Any]:
        """Cached listing for key, or None on a miss, when disabled, or when Redis fails."""
        if not self.enabled or not self.client:
            return None

        try:
            value = self.client.get(key)
            if value:
                return json.loads(value)
            return None
        except Exception as e:
            self._log_failure(f"Cache GET error for key '{key}'", e)
            return None

    def set_in_cache(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """JSON-encode value under key for ttl seconds (REDIS_DEFAULT_TTL by default)."""
        if not self.enabled or not self.client:
            return False

        try:
            ttl = ttl or config.REDIS_DEFAULT_TTL
            self.client.setex(key, ttl, json.dumps(value))
            return True
        except Exception as e:
            self._log_failure(f"Cache SET error for key '{key}'", e)
            return False

    def invalidate_cache(self, key_pattern: str) -> int:
        """Delete every key matching a glob pattern. Returns how many were removed."""
        if not self.enabled or not self.client:
            return 0

        try:
            keys = list(self.client.scan_iter(match=key_pattern))
            if keys:
                return self.client.delete(*keys)
            return 0
        except Exception as e:
            self._log_failure(f"Cache INVALIDATE error for pattern '{key_pattern}'", e)
            return 0

    def invalidate_listings(self) -> int:
        return self.invalidate_cache(f"{LIST_CACHE_PREFIX}:*")

    def ping(self) -> bool:
        if not self.enabled or not self.client:
            return False
        try:
            return bool(self.client.ping())
        except Exception as e:
            self._log_failure("Cache PING error", e)
            return False

    def _log_failure(self, message: str, exception: Exception) -> None:
        """At most one warning a minute while Redis is down."""
        now = time.time()
        if self._last_failure_logged_at is None or now - self._last_failure_logged_at > 60:
            self._last_failure_logged_at = now
            self._logger.warning(message, extra={"error": str(exception)})

# Global cache instance
cache_service = CacheService()
