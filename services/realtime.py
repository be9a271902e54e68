"""
Realtime channels over redis pub/sub.

Publishers push JSON payloads to named channels; subscribers get a
``Subscription`` that feeds every payload to a callback until closed.
"""

import asyncio
import inspect
import json
from typing import Any, Callable, Optional

from core.logging import get_logger

logger = get_logger(__name__)


class Subscription:
    """A live channel subscription; ``close()`` stops delivery."""

    def __init__(self, channel: str, pubsub, callback: Callable[[Any], Any]):
        self.channel = channel
        self._pubsub = pubsub
        self._callback = callback
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> "Subscription":
        await self._pubsub.subscribe(self.channel)
        self._task = asyncio.create_task(self._listen())
        logger.info("Subscribed to realtime channel", channel=self.channel)
        return self

    async def _listen(self):
        async for message in self._pubsub.listen():
            if message.get("type") != "message":
                continue
            try:
                payload = json.loads(message["data"])
            except (TypeError, ValueError):
                logger.warning("Dropping malformed realtime payload", channel=self.channel)
                continue
            try:
                result = self._callback(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error("Realtime callback failed", channel=self.channel, error=str(e))

    async def close(self):
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self._pubsub.unsubscribe(self.channel)
        await self._pubsub.aclose()
        logger.info("Unsubscribed from realtime channel", channel=self.channel)


class RealtimeHub:
    def __init__(self, client):
        self.client = client

    async def publish(self, channel: str, payload: Any) -> int:
        return await self.client.publish(channel, json.dumps(payload, default=str))

    async def subscribe(self, channel: str, callback: Callable[[Any], Any]) -> Subscription:
        return await Subscription(channel, self.client.pubsub(), callback).start()
