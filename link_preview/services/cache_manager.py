"""
Redis-backed preview cache.

Stores serialized preview records under keys derived from normalized URLs,
with a sliding TTL that is reset on every cache hit.

Key Format:
    preview:{base64(normalized_url)}

Value Format:
    PreviewRecord JSON with camelCase field names

Connection Lifecycle:
    DISCONNECTED -> CONNECTING -> READY -> DISCONNECTED

    A single long-lived CacheManager owns the Redis client. Startup calls
    ``wait_until_ready()``; a command failing with a connection error moves
    the manager back to DISCONNECTED and the next successful command
    returns it to READY (redis-py reconnects through its pool).

Usage:
    from link_preview.services.cache_manager import cache_manager

    record = await cache_manager.get(key)
    if record is None:
        await cache_manager.put(key, new_record, ttl_seconds=86400)
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import pydantic
import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ..config import Settings, settings
from ..errors import CacheUnavailableError
from ..models import CacheEntry, CacheListing, PreviewRecord
from .cache_keys import url_from_cache_key

logger = logging.getLogger("link_preview.cache_manager")

T = TypeVar("T")


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"


def _format_info(info: Dict[str, Any]) -> str:
    """Render a parsed INFO reply back into ``field:value`` lines."""
    lines = []
    for name, value in info.items():
        if isinstance(value, dict):
            value = ",".join(f"{k}={v}" for k, v in value.items())
        lines.append(f"{name}:{value}")
    return "\n".join(lines) + "\n"


class CacheManager:
    """
    Preview cache on top of an async Redis client.

    Performs no local caching: every operation is a Redis command. Connection
    and timeout failures surface as CacheUnavailableError.

    Attributes:
        _redis: Async Redis client (created lazily from ``redis_url``)
        _state: Current connection state
    """

    def __init__(self, config: Optional[Settings] = None, client: Optional[redis.Redis] = None):
        self._config = config or settings
        self._redis: Optional[redis.Redis] = client
        self._state = ConnectionState.DISCONNECTED
        self._lock = asyncio.Lock()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def default_ttl(self) -> int:
        return self._config.cache_ttl_seconds

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self._state:
            logger.info(f"Redis connection state: {self._state.value} -> {state.value}")
            self._state = state

    async def connect(self) -> None:
        """
        Connect to Redis and verify the connection with PING.

        Raises:
            CacheUnavailableError: If Redis cannot be reached
        """
        async with self._lock:
            if self._state is ConnectionState.READY and self._redis is not None:
                return

            self._set_state(ConnectionState.CONNECTING)
            if self._redis is None:
                self._redis = redis.from_url(
                    self._config.redis_url,
                    decode_responses=True,
                    socket_timeout=self._config.cache_socket_timeout_s,
                    socket_connect_timeout=self._config.cache_socket_timeout_s,
                )
            try:
                await self._redis.ping()
            except RedisError as e:
                self._set_state(ConnectionState.DISCONNECTED)
                raise CacheUnavailableError(f"Failed to connect to Redis: {e}") from e

            self._set_state(ConnectionState.READY)

    async def wait_until_ready(self, timeout: Optional[float] = None, retry_interval: float = 0.5) -> None:
        """
        Block until Redis answers or the timeout elapses.

        Args:
            timeout: Seconds to keep retrying (defaults to cache_connect_timeout_s)
            retry_interval: Seconds between connection attempts

        Raises:
            CacheUnavailableError: If Redis is still unreachable at the deadline
        """
        timeout = self._config.cache_connect_timeout_s if timeout is None else timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            try:
                await self.connect()
                logger.info("Redis client is ready to handle requests")
                return
            except CacheUnavailableError as e:
                if loop.time() + retry_interval > deadline:
                    raise
                logger.warning(f"{e}; retrying in {retry_interval}s")
                await asyncio.sleep(retry_interval)

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
        self._set_state(ConnectionState.DISCONNECTED)

    async def _execute(self, operation: str, command: Callable[[redis.Redis], Awaitable[T]]) -> T:
        if self._redis is None:
            await self.connect()

        try:
            result = await command(self._redis)
        except (RedisConnectionError, RedisTimeoutError) as e:
            self._set_state(ConnectionState.DISCONNECTED)
            raise CacheUnavailableError(f"Redis {operation} failed: {e}") from e
        except RedisError as e:
            raise CacheUnavailableError(f"Redis {operation} failed: {e}") from e

        self._set_state(ConnectionState.READY)
        return result

    async def get(self, key: str) -> Optional[PreviewRecord]:
        """
        Fetch a cached preview.

        Returns:
            The stored record, or None on a miss. A value that no longer
            decodes is logged and reported as a miss so it gets regenerated.
        """
        raw = await self._execute("GET", lambda r: r.get(key))
        if raw is None:
            return None
        try:
            return PreviewRecord.model_validate_json(raw)
        except pydantic.ValidationError as e:
            logger.warning(f"Discarding undecodable cache value for {key}: {e}")
            return None

    async def put(self, key: str, record: PreviewRecord, ttl_seconds: Optional[int] = None) -> None:
        """Store a preview, overwriting any existing value."""
        ttl = ttl_seconds or self.default_ttl
        payload = record.model_dump_json(by_alias=True)
        await self._execute("SET", lambda r: r.set(key, payload, ex=ttl))
        logger.debug(f"Cached {key} for {ttl}s")

    async def refresh_ttl(self, key: str, ttl_seconds: Optional[int] = None) -> bool:
        """
        Reset the expiry of an existing key.

        A missing key (it expired since it was read) is not an error: a
        warning is logged and nothing is created.

        Returns:
            True if the expiry was reset
        """
        ttl = ttl_seconds or self.default_ttl
        refreshed = await self._execute("EXPIRE", lambda r: r.expire(key, ttl))
        if not refreshed:
            logger.warning(f'Key "{key}" does not exist. TTL not reset.')
            return False
        return True

    async def delete(self, key: str) -> None:
        """Remove a key. Deleting a missing key is a no-op."""
        removed = await self._execute("DEL", lambda r: r.delete(key))
        logger.debug(f"Deleted {key} (existed={bool(removed)})")

    async def list_by_prefix(self, prefix: Optional[str] = None) -> CacheListing:
        """
        List every cached preview whose key starts with ``prefix``.

        Entries that fail to parse are skipped and reported in
        ``invalid_keys``; keys that expire mid-listing are skipped silently.
        """
        prefix = prefix or self._config.cache_key_prefix

        async def scan(r: redis.Redis):
            return [key async for key in r.scan_iter(match=f"{prefix}*", count=200)]

        keys = await self._execute("SCAN", scan)
        listing = CacheListing()
        if not keys:
            return listing

        values = await self._execute("MGET", lambda r: r.mget(keys))
        for key, raw in zip(keys, values):
            if raw is None:
                continue
            try:
                record = PreviewRecord.model_validate_json(raw)
            except pydantic.ValidationError as e:
                logger.warning(f"Skipping undecodable cache entry {key}: {e}")
                listing.invalid_keys.append(key)
                continue
            try:
                url = url_from_cache_key(key, self._config.cache_key_prefix)
            except ValueError:
                url = None
            listing.entries.append(CacheEntry(key=key, url=url, record=record))

        return listing

    async def info(self) -> str:
        """Return Redis INFO as plain text."""
        info = await self._execute("INFO", lambda r: r.info())
        return _format_info(info)


# Singleton instance
cache_manager = CacheManager()
