"""
Read-through cache coordinator backed by Redis.

The cache is a disposable view of the database: every public operation
degrades instead of failing. ``get`` turns any Redis or decoding error into a
miss, ``set`` and ``invalidate`` log a warning and return.

Keys follow ``<entity>:<id>[:<qualifier>...]`` so one incident's subtree can
be dropped with ``incident:<id>*`` without touching anything else.

Refills go through a lease: a reader takes ``<key>:lease`` before loading
from the database and only writes the value back if it still holds the lease.
Invalidation deletes the lease together with the value, so a reader that
loaded a snapshot before a writer committed cannot put it back afterwards.
"""

from __future__ import annotations

import json
import uuid
from typing import Any, Optional

import redis
import structlog

from .config import Settings

logger = structlog.get_logger()

LEASE_SUFFIX = "lease"


def create_redis_client(settings: Settings) -> Optional[redis.Redis]:
    """Build the Redis client, or ``None`` when caching is disabled."""
    if not settings.cache_enabled:
        return None
    return redis.Redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_timeout=settings.cache_socket_timeout,
        socket_connect_timeout=settings.cache_socket_timeout,
    )


class CacheCoordinator:
    """Best-effort JSON cache over a Redis client.

    Usage:
        cache = CacheCoordinator(redis_client, default_ttl=300)
        key = cache.key("incident", incident_id)
        view = cache.get(key)
    """

    def __init__(
        self,
        client: Optional[redis.Redis],
        default_ttl: int = 300,
        lease_ttl: int = 10,
    ):
        self.client = client
        self.default_ttl = default_ttl
        self.lease_ttl = lease_ttl

    @classmethod
    def from_settings(cls, settings: Settings) -> "CacheCoordinator":
        return cls(
            create_redis_client(settings),
            default_ttl=settings.cache_ttl_seconds,
            lease_ttl=settings.cache_lease_seconds,
        )

    @property
    def enabled(self) -> bool:
        return self.client is not None

    @staticmethod
    def key(entity_type: str, entity_id: str, *qualifiers: str) -> str:
        """Build a structured cache key: ``<entity>:<id>[:<qualifier>...]``."""
        return ":".join([entity_type, entity_id, *qualifiers])

    @staticmethod
    def incident_pattern(incident_id: str) -> str:
        """Pattern covering every cache entry of one incident."""
        return f"incident:{incident_id}*"

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or ``None`` on miss or any failure."""
        if self.client is None:
            return None
        try:
            raw = self.client.get(key)
        except redis.RedisError as exc:
            logger.warning("cache_get_failed", key=key, error=str(exc))
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as exc:
            logger.warning("cache_decode_failed", key=key, error=str(exc))
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store ``value`` as JSON for ``ttl`` seconds. Never raises."""
        if self.client is None:
            return
        try:
            self.client.setex(key, ttl or self.default_ttl, json.dumps(value))
        except (redis.RedisError, TypeError, ValueError) as exc:
            logger.warning("cache_set_failed", key=key, error=str(exc))

    def invalidate(self, pattern: str, *keys: str) -> int:
        """Delete every key matching a glob ``pattern``, plus ``keys``. Never raises.

        The explicit ``keys`` go into the same DEL as the scanned ones, so a
        key written between the SCAN and the DEL is still removed.

        Returns:
            Number of keys removed (0 when the cache is unavailable)
        """
        if self.client is None:
            logger.warning("cache_invalidate_skipped", pattern=pattern, reason="disabled")
            return 0
        try:
            matched = set(self.client.scan_iter(match=pattern, count=100))
            matched.update(keys)
            if not matched:
                return 0
            removed = self.client.delete(*sorted(matched))
        except redis.RedisError as exc:
            logger.warning("cache_invalidate_failed", pattern=pattern, error=str(exc))
            return 0
        logger.debug("cache_invalidated", pattern=pattern, removed=removed)
        return removed

    def invalidate_incident(self, incident_id: str) -> int:
        """Drop an incident's subtree, always including its view and refill lease.

        A refill that lands after the SCAN either loses its lease before EXEC
        (the WATCH aborts it) or is deleted by the same DEL.
        """
        view_key = self.key("incident", incident_id)
        return self.invalidate(
            self.incident_pattern(incident_id), view_key, f"{view_key}:{LEASE_SUFFIX}"
        )

    def begin_fill(self, key: str) -> Optional[str]:
        """Take the refill lease for ``key`` before loading from the database.

        Returns:
            A lease token, or ``None`` when the cache is unavailable
        """
        if self.client is None:
            return None
        token = uuid.uuid4().hex
        try:
            self.client.set(f"{key}:{LEASE_SUFFIX}", token, ex=self.lease_ttl)
        except redis.RedisError as exc:
            logger.warning("cache_lease_failed", key=key, error=str(exc))
            return None
        return token

    def complete_fill(
        self, key: str, value: Any, token: Optional[str], ttl: Optional[int] = None
    ) -> bool:
        """Write ``value`` only if the lease taken by ``begin_fill`` is still held.

        Returns:
            True when the value was cached
        """
        if self.client is None or token is None:
            return False
        lease_key = f"{key}:{LEASE_SUFFIX}"
        try:
            payload = json.dumps(value)
            with self.client.pipeline() as pipe:
                pipe.watch(lease_key)
                if pipe.get(lease_key) != token:
                    logger.debug("cache_fill_abandoned", key=key)
                    return False
                pipe.multi()
                pipe.setex(key, ttl or self.default_ttl, payload)
                pipe.delete(lease_key)
                pipe.execute()
        except redis.WatchError:
            logger.debug("cache_fill_abandoned", key=key)
            return False
        except (redis.RedisError, TypeError, ValueError) as exc:
            logger.warning("cache_fill_failed", key=key, error=str(exc))
            return False
        return True

    def ping(self) -> bool:
        if self.client is None:
            return False
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            return False
