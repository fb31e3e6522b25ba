from __future__ import annotations

import json
import logging
import threading
import time
from collections import OrderedDict
from hashlib import sha256
from typing import Any

import redis

from vizengine.config import CACHE_MAX_ENTRIES, CACHE_TTL_SECONDS, CACHE_VERSION, REDIS_URL

logger = logging.getLogger(__name__)


def cache_key(fingerprint: str, artifact: str, params: dict[str, Any] | None = None) -> str:
    encoded = json.dumps(params or {}, sort_keys=True, ensure_ascii=True, default=str)
    params_hash = sha256(encoded.encode("utf-8")).hexdigest()[:16]
    return f"cache:{CACHE_VERSION}:{fingerprint}:{artifact}:{params_hash}"


class CacheManager:
    """Result cache backed by Redis when REDIS_URL is set, else a bounded in-process LRU."""

    def __init__(
        self,
        redis_url: str | None = None,
        max_entries: int = CACHE_MAX_ENTRIES,
        ttl_seconds: int = CACHE_TTL_SECONDS,
    ) -> None:
        self._redis: redis.Redis | None = None
        self._entries: OrderedDict[str, tuple[float, str]] = OrderedDict()
        self._lock = threading.Lock()
        self._max_entries = max_entries
        self._ttl_seconds = ttl_seconds

        url = REDIS_URL if redis_url is None else redis_url
        if url:
            try:
                client = redis.Redis.from_url(url, decode_responses=True)
                client.ping()
                self._redis = client
                logger.info("Result cache using Redis at %s", url)
            except redis.RedisError as exc:
                logger.warning("Redis unavailable at %s (%s); using in-memory cache", url, exc)

    @property
    def backend(self) -> str:
        return "redis" if self._redis is not None else "memory"

    def get(self, key: str) -> dict[str, Any] | None:
        if self._redis is not None:
            value = self._redis.get(key)
            return json.loads(value) if value else None

        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, payload = entry
            if expires_at < time.monotonic():
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
        return json.loads(payload)

    def set(self, key: str, value: dict[str, Any], ttl_seconds: int | None = None) -> None:
        ttl = self._ttl_seconds if ttl_seconds is None else ttl_seconds
        payload = json.dumps(value, ensure_ascii=False)
        if self._redis is not None:
            self._redis.setex(key, ttl, payload)
            return

        with self._lock:
            self._entries[key] = (time.monotonic() + ttl, payload)
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def invalidate_prefix(self, prefix: str) -> int:
        if self._redis is not None:
            removed = 0
            for key in self._redis.scan_iter(match=f"{prefix}*"):
                removed += int(self._redis.delete(key))
            return removed

        with self._lock:
            stale = [key for key in self._entries if key.startswith(prefix)]
            for key in stale:
                del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        self.invalidate_prefix(f"cache:{CACHE_VERSION}:")

    def __len__(self) -> int:
        if self._redis is not None:
            return sum(1 for _ in self._redis.scan_iter(match=f"cache:{CACHE_VERSION}:*"))
        with self._lock:
            return len(self._entries)
