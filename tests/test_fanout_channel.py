"""Tests for the Redis fan-out message shape."""
from __future__ import annotations

import json
import uuid
from datetime import datetime

import pytest

from crisis_engine.core.fanout import RedisFanoutChannel


class _DummyRedis:
    def __init__(self) -> None:
        self.published: list[tuple[str, str]] = []

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        return 2


@pytest.mark.asyncio
async def test_publish_sends_session_channel_message_with_aware_timestamp() -> None:
    session_id = uuid.uuid4()
    event_id = uuid.uuid4()
    channel = RedisFanoutChannel(channel_prefix="sim:session:")
    redis = _DummyRedis()
    channel._redis = redis

    receivers = await channel.publish(session_id, "inject", {"title": "Levee breach"}, event_id=event_id)

    assert receivers == 2
    name, raw = redis.published[0]
    message = json.loads(raw)
    assert name == f"sim:session:{session_id}"
    assert message["event_id"] == str(event_id)
    assert message["data"] == {"title": "Levee breach"}
    assert datetime.fromisoformat(message["timestamp"]).utcoffset().total_seconds() == 0
