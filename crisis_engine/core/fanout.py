"""
Session fan-out channel

Publishes engine events onto session-scoped Redis Pub/Sub channels. Real-time
delivery to clients (WebSocket gateways) subscribes to `{prefix}{session_id}`
and is not part of this process. Delivery is at-least-once; each message
carries the event-log id so clients can deduplicate.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from redis.asyncio import Redis

from crisis_engine.core.config import settings
from crisis_engine.core.redis import get_redis_client


logger = logging.getLogger(__name__)


class RedisFanoutChannel:
    """
    Redis Pub/Sub publisher

    Channel naming:
    - {prefix}{session_id}: every event for one session
    """

    def __init__(self, channel_prefix: Optional[str] = None):
        self.channel_prefix = channel_prefix or settings.fanout_channel_prefix
        self._redis: Optional[Redis] = None
        self._running = False

    @property
    def connected(self) -> bool:
        return self._redis is not None

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        try:
            self._redis = await get_redis_client()
            await self._redis.ping()
            logger.info("Fan-out channel connected to Redis")
        except Exception as e:
            # publish() keeps retrying the connection on demand
            logger.warning(f"Redis unavailable at startup, fan-out will retry lazily: {e}")
            self._redis = None

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        self._redis = None
        logger.info("Fan-out channel stopped")

    def channel_for(self, session_id: UUID) -> str:
        return f"{self.channel_prefix}{session_id}"

    async def publish(
        self,
        session_id: UUID,
        event_type: str,
        payload: dict[str, Any],
        event_id: Optional[UUID] = None,
    ) -> int:
        """
        Push one event to the session channel

        Args:
            session_id: target session
            event_type: event-log type, e.g. "inject"
            payload: same payload that was written to the event log
            event_id: event-log row id, used by clients for deduplication

        Returns:
            number of Redis subscribers that received the message
        """
        if self._redis is None:
            self._redis = await get_redis_client()

        message = {
            "type": event_type,
            "event_id": str(event_id) if event_id else None,
            "session_id": str(session_id),
            "data": payload,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        channel = self.channel_for(session_id)
        receivers = await self._redis.publish(channel, json.dumps(message, default=str))
        logger.debug(f"Fan-out {event_type} -> {channel} ({receivers} subscribers)")
        return receivers


fanout_channel = RedisFanoutChannel()
