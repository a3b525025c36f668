"""
Redis client module

Async Redis connection shared by the fan-out channel and health checks.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Optional

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import RedisError

from .config import settings

logger = logging.getLogger(__name__)

_redis_client: Optional[Redis] = None


async def get_redis_client() -> Redis:
    """
    Get the shared async Redis client

    Returns:
        Redis client backed by a connection pool

    Raises:
        RedisError: connection could not be configured
    """
    global _redis_client

    if _redis_client is None:
        logger.info(f"Connecting to Redis: {settings.redis_url}")
        _redis_client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5.0,
            socket_timeout=5.0,
        )

    return _redis_client


async def close_redis_client() -> None:
    global _redis_client

    if _redis_client is not None:
        await _redis_client.close()
        _redis_client = None
        logger.info("Redis connection closed")


async def check_redis_health() -> dict[str, Any]:
    """
    Ping Redis

    Returns:
        dict with `connected` and either `latency_ms` or `error`
    """
    try:
        client = await get_redis_client()
        start = time.time()
        await client.ping()
        latency_ms = (time.time() - start) * 1000
        return {"connected": True, "latency_ms": round(latency_ms, 2)}
    except RedisError as e:
        logger.warning(f"Redis health check failed: {e}")
        return {"connected": False, "error": str(e)}


__all__ = [
    "get_redis_client",
    "close_redis_client",
    "check_redis_health",
    "RedisError",
]
