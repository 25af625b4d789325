"""Listing response cache: Redis when reachable, a bounded in-process map otherwise.

Entries are JSON payloads keyed by a digest of the request parameters, so the
same facets in a different order hit the same entry.
"""
from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Protocol

import redis

from .config import settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "discovery"
MAX_MEMORY_ENTRIES = 512


class CacheBackend(Protocol):
    def get(self, key: str) -> Optional[Dict[str, Any]]: ...

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None: ...


def cache_key(namespace: str, params: Mapping[str, str]) -> str:
    canonical = json.dumps(sorted(params.items()), ensure_ascii=False)
    digest = hashlib.sha1(canonical.encode("utf-8")).hexdigest()
    return f"{KEY_PREFIX}:{namespace}:{digest}"


@dataclass
class RedisCache:
    client: redis.Redis

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            raw = self.client.get(key)
        except redis.RedisError as exc:
            logger.warning("Redis get %s failed, treating as miss: %s", key, exc)
            return None
        if not raw:
            return None
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Dropping undecodable cache entry %s", key)
            return None
        return payload if isinstance(payload, dict) else None

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        try:
            self.client.setex(key, ttl, json.dumps(value, ensure_ascii=False))
        except redis.RedisError as exc:
            logger.warning("Redis set %s failed: %s", key, exc)


class InMemoryCache:
    """TTL map that evicts the least recently used entry past ``max_entries``."""

    def __init__(self, max_entries: int = MAX_MEMORY_ENTRIES) -> None:
        self._entries: "OrderedDict[str, tuple[float, Dict[str, Any]]]" = OrderedDict()
        self._max_entries = max_entries
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, payload = entry
            if expires_at < time.monotonic():
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return payload

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        with self._lock:
            self._entries[key] = (time.monotonic() + ttl, value)
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)


_cache: CacheBackend | None = None


def get_cache() -> CacheBackend:
    global _cache
    if _cache is not None:
        return _cache
    try:
        client = redis.Redis(host=settings.redis_host, port=settings.redis_port, decode_responses=False)
        client.ping()
        logger.info("Caching listing responses in Redis at %s:%s", settings.redis_host, settings.redis_port)
        _cache = RedisCache(client)
    except redis.RedisError:
        logger.warning("Redis not available, caching listing responses in memory")
        _cache = InMemoryCache()
    return _cache
