"""
Fail-Safe Redis Client

Architecture:
    RedisClient (Public API)
        ├── ConnectionManager (connect, backoff, reconnect, readiness)
        ├── OperationExecutor (commands with degraded fallbacks)
        └── HealthMonitor (ping latency for health endpoints)

Contract:
    No method on RedisClient raises because Redis is down. Reads return the
    miss value (None / False / 0 / -1), writes return False, and the failure
    is logged with the command name and key. Callers treat the store as an
    optimisation, never as a dependency.

Author: Platform Team
Date: 2026-03-04
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from contextlib import suppress
from dataclasses import asdict, dataclass
from functools import lru_cache
from typing import Any, TypeVar
from urllib.parse import urlsplit

import orjson
import redis.asyncio as redis
from pydantic import BaseModel, TypeAdapter, ValidationError
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from swapcache.core.config.settings import Settings
from swapcache.core.exceptions import CacheConnectionError, CacheSerializationError
from swapcache.core.logging.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

ClientFactory = Callable[[], redis.Redis]

# INCR and first-hit EXPIRE in one round trip, so a counter can never be
# created without its window.
INCR_WITH_EXPIRE_SCRIPT = """
local count = redis.call('INCR', KEYS[1])
if count == 1 then
    redis.call('EXPIRE', KEYS[1], ARGV[1])
end
return {count, redis.call('TTL', KEYS[1])}
"""

# DECR only while the counter is inside a live window; an expired or
# TTL-less key is left alone and nil is returned.
DECR_IF_LIVE_SCRIPT = """
if redis.call('TTL', KEYS[1]) > 0 then
    return redis.call('DECR', KEYS[1])
end
return nil
"""

_DELETE_BATCH_SIZE = 500


@dataclass(frozen=True)
class StoreStats:
    """Snapshot of Redis keyspace statistics."""

    connected: bool
    db_size: int = 0
    memory_human: str = "N/A"
    hits: int = 0
    misses: int = 0

    @property
    def hit_rate(self) -> float:
        """Hit percentage over all keyspace lookups (0 when there were none)."""
        total = self.hits + self.misses
        return (self.hits / total) * 100 if total else 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


DISCONNECTED_STATS = StoreStats(connected=False)


@lru_cache(maxsize=128)
def _type_adapter(model: Any) -> TypeAdapter:
    return TypeAdapter(model)


def _json_default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (set, frozenset)):
        return list(value)
    raise TypeError(f"Type is not JSON serializable: {type(value).__name__}")


def encode_json(value: Any) -> str:
    """
    Encode ``value`` to JSON text.

    Raises:
        CacheSerializationError: value is not JSON serializable
    """
    try:
        return orjson.dumps(value, default=_json_default).decode()
    except TypeError as e:
        raise CacheSerializationError.from_exception(e, message="Value is not JSON serializable")


# =============================================================================
# LAYER 1: CONNECTION MANAGEMENT
# Connect with bounded exponential backoff, track readiness, reconnect
# =============================================================================


class ConnectionManager:
    """
    Owns the redis.asyncio client and its readiness flag.

    Connection attempts back off exponentially (capped per attempt) and stop
    after REDIS_RECONNECT_MAX_ATTEMPTS consecutive failures. Giving up is
    logged at critical level; the application keeps serving in degraded mode.

    A connection or timeout error raised by any command flips the client to
    not-ready and starts one background reconnect using the same policy.
    """

    def __init__(self, settings: Settings, client_factory: ClientFactory | None = None):
        self._settings = settings
        self._client_factory = client_factory or self._build_client
        self._client: redis.Redis | None = None
        self._ready = False
        self._connect_lock = asyncio.Lock()
        self._reconnect_task: asyncio.Task | None = None

        url = urlsplit(settings.redis.REDIS_URL)
        self._host = url.hostname or "localhost"
        self._port = url.port or 6379

    def _build_client(self) -> redis.Redis:
        cfg = self._settings.redis
        return redis.from_url(
            cfg.REDIS_URL,
            decode_responses=True,
            max_connections=cfg.REDIS_MAX_CONNECTIONS,
            socket_timeout=cfg.REDIS_SOCKET_TIMEOUT,
            socket_connect_timeout=cfg.REDIS_SOCKET_CONNECT_TIMEOUT,
            health_check_interval=cfg.REDIS_HEALTH_CHECK_INTERVAL,
        )

    @property
    def client(self) -> redis.Redis | None:
        return self._client

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    def is_ready(self) -> bool:
        return self._ready and self._client is not None

    async def _open(self) -> None:
        """
        Create a client and verify it with PING.

        STAGE-REDIS.2: Connection establishment

        Raises:
            CacheConnectionError: PING failed
        """
        client = self._client_factory()
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            await self._close_client(client)
            raise CacheConnectionError.from_exception(
                e, message="Redis did not answer PING", host=self._host, port=self._port
            )

        previous, self._client = self._client, client
        self._ready = True
        if previous is not None and previous is not client:
            await self._close_client(previous)

    def _log_retry(self, retry_state) -> None:
        logger.warning(
            "Redis connection attempt failed, retrying",
            stage="REDIS.2",
            attempt=retry_state.attempt_number,
            delay_s=round(retry_state.next_action.sleep, 3) if retry_state.next_action else None,
            error=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        )

    async def connect(self) -> bool:
        """
        Connect with bounded exponential backoff.

        Returns:
            True once Redis answers PING, False after the attempt budget is
            exhausted. Never raises for connection failures.
        """
        cfg = self._settings.redis

        @retry(
            stop=stop_after_attempt(cfg.REDIS_RECONNECT_MAX_ATTEMPTS),
            wait=wait_exponential_jitter(
                initial=cfg.REDIS_RECONNECT_BASE_DELAY,
                max=cfg.REDIS_RECONNECT_MAX_DELAY,
                jitter=cfg.REDIS_RECONNECT_BASE_DELAY,
            ),
            retry=retry_if_exception_type(CacheConnectionError),
            before_sleep=self._log_retry,
            reraise=True,
        )
        async def _connect_with_retry() -> None:
            await self._open()

        async with self._connect_lock:
            if self.is_ready():
                return True
            try:
                await _connect_with_retry()
            except CacheConnectionError as e:
                self._ready = False
                logger.critical(
                    "Redis: maximum reconnection attempts reached, running without cache",
                    stage="REDIS.2",
                    host=self._host,
                    port=self._port,
                    attempts=cfg.REDIS_RECONNECT_MAX_ATTEMPTS,
                    error=e.message,
                )
                return False

        logger.info("Redis client ready", stage="REDIS.2", host=self._host, port=self._port)
        return True

    def mark_unavailable(self, error: Exception) -> None:
        """Flip to not-ready and schedule a single background reconnect."""
        if not self._ready:
            return
        self._ready = False
        logger.warning(
            "Redis connection lost, reconnecting in background",
            stage="REDIS.2",
            error=str(error),
        )
        if self._reconnect_task is None or self._reconnect_task.done():
            self._reconnect_task = asyncio.create_task(self.connect(), name="redis-reconnect")

    async def disconnect(self) -> None:
        """
        Cancel any pending reconnect and close the client.

        STAGE-REDIS.3: Connection cleanup
        """
        if self._reconnect_task is not None and not self._reconnect_task.done():
            self._reconnect_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._reconnect_task
        self._reconnect_task = None

        self._ready = False
        if self._client is not None:
            await self._close_client(self._client)
            self._client = None

        logger.info("Redis disconnected", stage="REDIS.3")

    @staticmethod
    async def _close_client(client: redis.Redis) -> None:
        try:
            await client.aclose()
        except (RedisError, OSError) as e:
            logger.debug("Error while closing Redis client", stage="REDIS.3", error=str(e))


# =============================================================================
# LAYER 2: OPERATION EXECUTOR
# Every command returns a degraded value instead of raising
# =============================================================================


class OperationExecutor:
    """
    Executes Redis commands with uniform degraded fallbacks.

    Error Handling Strategy:
    - Not ready: return the fallback without touching the network
    - ConnectionError / TimeoutError: log, mark unavailable, return fallback
    - Any other RedisError: log, return fallback
    """

    def __init__(self, connection_manager: ConnectionManager):
        self._conn = connection_manager

    async def _run(
        self,
        command: str,
        key: str | None,
        fallback: T,
        call: Callable[[redis.Redis], Awaitable[T]],
    ) -> T:
        client = self._conn.client
        if client is None or not self._conn.is_ready():
            logger.debug("Redis not ready, skipping command", stage=f"REDIS.{command}", key=key)
            return fallback

        try:
            return await call(client)
        except (RedisConnectionError, RedisTimeoutError) as e:
            logger.error(f"Redis {command} failed", stage=f"REDIS.{command}", key=key, error=str(e))
            self._conn.mark_unavailable(e)
            return fallback
        except RedisError as e:
            logger.error(f"Redis {command} failed", stage=f"REDIS.{command}", key=key, error=str(e))
            return fallback

    # -------------------------------------------------------------------------
    # Basic Operations
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        return await self._run("GET", key, None, lambda c: c.get(key))

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """
        STAGE-REDIS.SET: SET with optional EX.

        A falsy ``ttl`` writes a durable key.
        """
        async def _set(client: redis.Redis) -> bool:
            if ttl:
                await client.set(key, value, ex=ttl)
            else:
                await client.set(key, value)
            return True

        return await self._run("SET", key, False, _set)

    async def delete(self, key: str) -> bool:
        async def _delete(client: redis.Redis) -> bool:
            await client.delete(key)
            return True

        return await self._run("DEL", key, False, _delete)

    async def delete_pattern(self, pattern: str) -> int:
        """
        Delete every key matching a glob pattern.

        STAGE-REDIS.DELPATTERN: SCAN MATCH + batched DEL

        Returns:
            Number of keys deleted (0 when nothing matched or Redis is down)
        """
        async def _delete_matching(client: redis.Redis) -> int:
            deleted = 0
            batch: list[str] = []
            async for key in client.scan_iter(match=pattern, count=_DELETE_BATCH_SIZE):
                batch.append(key)
                if len(batch) >= _DELETE_BATCH_SIZE:
                    deleted += await client.delete(*batch)
                    batch = []
            if batch:
                deleted += await client.delete(*batch)
            return deleted

        return await self._run("DELPATTERN", pattern, 0, _delete_matching)

    async def exists(self, key: str) -> bool:
        async def _exists(client: redis.Redis) -> bool:
            return await client.exists(key) == 1

        return await self._run("EXISTS", key, False, _exists)

    async def expire(self, key: str, seconds: int) -> bool:
        async def _expire(client: redis.Redis) -> bool:
            return bool(await client.expire(key, seconds))

        return await self._run("EXPIRE", key, False, _expire)

    async def ttl(self, key: str) -> int:
        return await self._run("TTL", key, -1, lambda c: c.ttl(key))

    # -------------------------------------------------------------------------
    # Counters
    # -------------------------------------------------------------------------

    async def incr(self, key: str) -> int:
        return await self._run("INCR", key, 0, lambda c: c.incr(key))

    async def decr(self, key: str) -> int:
        return await self._run("DECR", key, 0, lambda c: c.decr(key))

    async def incr_with_expire(self, key: str, seconds: int) -> tuple[int, int]:
        """
        Atomically increment ``key`` and start its expiry on first hit.

        Returns:
            (count, ttl); (0, -1) when Redis is unavailable
        """
        async def _incr_expire(client: redis.Redis) -> tuple[int, int]:
            count, ttl = await client.eval(INCR_WITH_EXPIRE_SCRIPT, 1, key, seconds)
            return int(count), int(ttl)

        return await self._run("INCREXPIRE", key, (0, -1), _incr_expire)

    async def decr_if_live(self, key: str) -> int | None:
        """
        Atomically decrement ``key`` only if it exists with a TTL.

        Returns:
            The new count; None when the key is gone, has no expiry or Redis
            is unavailable
        """
        async def _decr_live(client: redis.Redis) -> int | None:
            count = await client.eval(DECR_IF_LIVE_SCRIPT, 1, key)
            return None if count is None else int(count)

        return await self._run("DECRLIVE", key, None, _decr_live)

    # -------------------------------------------------------------------------
    # Server
    # -------------------------------------------------------------------------

    async def flush_all(self) -> bool:
        async def _flush(client: redis.Redis) -> bool:
            await client.flushall()
            return True

        return await self._run("FLUSHALL", None, False, _flush)

    async def stats(self) -> StoreStats:
        """
        STAGE-REDIS.STATS: INFO stats + INFO memory + DBSIZE.

        Any command failure or malformed field yields the disconnected shape.
        """
        async def _stats(client: redis.Redis) -> StoreStats:
            stats_info = await client.info("stats")
            memory_info = await client.info("memory")
            db_size = await client.dbsize()
            try:
                return StoreStats(
                    connected=True,
                    db_size=int(db_size),
                    memory_human=str(memory_info.get("used_memory_human", "N/A")),
                    hits=int(stats_info.get("keyspace_hits", 0)),
                    misses=int(stats_info.get("keyspace_misses", 0)),
                )
            except (TypeError, ValueError, AttributeError) as e:
                logger.error("Malformed Redis INFO reply", stage="REDIS.STATS", error=str(e))
                return DISCONNECTED_STATS

        return await self._run("STATS", None, DISCONNECTED_STATS, _stats)


# =============================================================================
# LAYER 3: HEALTH MONITORING
# =============================================================================


class HealthMonitor:
    """Ping latency and connection details for the health endpoints."""

    def __init__(self, connection_manager: ConnectionManager):
        self._conn = connection_manager

    async def health_check(self) -> dict[str, Any]:
        """
        STAGE-REDIS.HEALTH: Redis health check

        Returns:
            Dict with status, connected flag, host/port and ping latency
        """
        health: dict[str, Any] = {
            "status": "healthy",
            "connected": self._conn.is_ready(),
            "host": self._conn.host,
            "port": self._conn.port,
            "ping_latency_ms": None,
        }

        client = self._conn.client
        if client is None or not self._conn.is_ready():
            health["status"] = "unhealthy"
            health["error"] = "Client not connected"
            return health

        try:
            start = time.perf_counter()
            await client.ping()
            health["ping_latency_ms"] = round((time.perf_counter() - start) * 1000, 2)
        except (RedisError, OSError) as e:
            health["status"] = "unhealthy"
            health["error"] = str(e)

        return health


# =============================================================================
# LAYER 4: PUBLIC API
# =============================================================================


class RedisClient:
    """
    Key-value store adapter used by every other component.

    Usage:
        client = RedisClient(settings)
        await client.connect()            # never raises
        await client.set_json("user:1", {"name": "A"}, ttl=1800)
        user = await client.get_json("user:1")
        await client.disconnect()

    ``client_factory`` replaces the redis.asyncio client (tests pass an
    in-memory double).
    """

    def __init__(self, settings: Settings, client_factory: ClientFactory | None = None):
        self._connection = ConnectionManager(settings, client_factory)
        self._executor = OperationExecutor(self._connection)
        self._health = HealthMonitor(self._connection)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self) -> bool:
        return await self._connection.connect()

    async def disconnect(self) -> None:
        await self._connection.disconnect()

    def is_ready(self) -> bool:
        return self._connection.is_ready()

    # -------------------------------------------------------------------------
    # Strings and JSON
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        return await self._executor.get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        return await self._executor.set(key, value, ttl)

    async def set_json(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """
        Serialize ``value`` with orjson and store it.

        pydantic models, dataclasses, datetimes and enums are encoded natively.

        Returns:
            False when the value cannot be encoded or Redis is unavailable
        """
        try:
            payload = encode_json(value)
        except CacheSerializationError as e:
            logger.error("Redis SETJSON encode failed", stage="REDIS.SETJSON", key=key, error=e.message)
            return False
        return await self._executor.set(key, payload, ttl)

    async def get_json(self, key: str, model: Any = None) -> Any:
        """
        Fetch and decode a JSON value.

        Args:
            key: Redis key
            model: Optional target type (pydantic model, dataclass, ``list[X]``,
                ...) the decoded value is validated into

        Returns:
            Decoded value, or None on miss, decode failure or validation failure
        """
        raw = await self._executor.get(key)
        if raw is None:
            return None

        try:
            data = orjson.loads(raw)
            if model is None:
                return data
            return _type_adapter(model).validate_python(data)
        except orjson.JSONDecodeError as e:
            logger.error("Redis GETJSON decode failed", stage="REDIS.GETJSON", key=key, error=str(e))
        except ValidationError as e:
            logger.error(
                "Redis GETJSON validation failed",
                stage="REDIS.GETJSON",
                key=key,
                model=getattr(model, "__name__", str(model)),
                errors=e.error_count(),
            )
        return None

    # -------------------------------------------------------------------------
    # Keys
    # -------------------------------------------------------------------------

    async def delete(self, key: str) -> bool:
        return await self._executor.delete(key)

    async def delete_pattern(self, pattern: str) -> int:
        return await self._executor.delete_pattern(pattern)

    async def exists(self, key: str) -> bool:
        return await self._executor.exists(key)

    async def expire(self, key: str, seconds: int) -> bool:
        return await self._executor.expire(key, seconds)

    async def ttl(self, key: str) -> int:
        return await self._executor.ttl(key)

    # -------------------------------------------------------------------------
    # Counters
    # -------------------------------------------------------------------------

    async def incr(self, key: str) -> int:
        return await self._executor.incr(key)

    async def decr(self, key: str) -> int:
        return await self._executor.decr(key)

    async def incr_with_expire(self, key: str, seconds: int) -> tuple[int, int]:
        return await self._executor.incr_with_expire(key, seconds)

    async def decr_if_live(self, key: str) -> int | None:
        return await self._executor.decr_if_live(key)

    # -------------------------------------------------------------------------
    # Server
    # -------------------------------------------------------------------------

    async def flush_all(self) -> bool:
        logger.warning("Flushing all Redis keys", stage="REDIS.FLUSHALL")
        return await self._executor.flush_all()

    async def get_stats(self) -> StoreStats:
        return await self._executor.stats()

    async def health_check(self) -> dict[str, Any]:
        return await self._health.health_check()
