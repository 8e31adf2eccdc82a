from __future__ import annotations

import asyncio
from typing import AsyncIterator

from zulipbridge.channels.base import ChannelAdapter
from zulipbridge.domain.models import ChannelInfo, RelayMessage
from zulipbridge.observability.logging import get_logger

log = get_logger("bus")


class MessageBus:
    """In-process relay bus.
    - Adapters push inbound messages onto `remote`.
    - Outbound messages and channel joins are routed to adapters by account tag.
    """

    def __init__(self, max_queue_size: int = 1000):
        self.remote: asyncio.Queue[RelayMessage] = asyncio.Queue(maxsize=max_queue_size)
        self._adapters: dict[str, ChannelAdapter] = {}

    def register(self, adapter: ChannelAdapter) -> None:
        if adapter.account in self._adapters:
            raise ValueError(f"adapter already registered: {adapter.account}")
        self._adapters[adapter.account] = adapter

    def unregister(self, account: str) -> None:
        self._adapters.pop(account, None)

    def adapter(self, account: str) -> ChannelAdapter:
        try:
            return self._adapters[account]
        except KeyError:
            raise KeyError(f"no adapter for account {account!r}") from None

    async def forward(self, msg: RelayMessage) -> None:
        # Waits while the buffer is full; callers bound the wait themselves.
        await self.remote.put(msg)

    async def deliver(self, account: str, msg: RelayMessage) -> str:
        return await self.adapter(account).send(msg)

    async def join(self, account: str, channel: ChannelInfo) -> None:
        await self.adapter(account).join_channel(channel)

    async def iter(self) -> AsyncIterator[RelayMessage]:
        while True:
            msg = await self.remote.get()
            yield msg
