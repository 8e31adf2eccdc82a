from __future__ import annotations
from zulipbridge.core.locks import RWLock

FALLBACK_TOPIC = "matterbridge"

class TopicResolver:
    """Channel -> Zulip topic bindings, shared by the poll loop and senders."""
    def __init__(self, default_topic: str = ""):
        self.default_topic = default_topic
        self._lock = RWLock()
        self._bindings: dict[str, str] = {}

    async def bind(self, channel: str, topic: str) -> None:
        async with self._lock.write():
            self._bindings[channel] = topic

    async def topic_for(self, channel: str) -> str:
        """Bound topic, else the configured default, else ""."""
        async with self._lock.read():
            topic = self._bindings.get(channel, "")
        return topic or self.default_topic

    async def resolve(self, channel: str) -> str:
        return await self.topic_for(channel) or FALLBACK_TOPIC
