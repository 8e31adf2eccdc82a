from __future__ import annotations
import abc
from typing import Awaitable, Callable
from zulipbridge.domain.models import AdapterStatus, ChannelInfo, RelayMessage

ForwardCallback = Callable[[RelayMessage], Awaitable[None]]

class ChannelAdapter(abc.ABC):
    """Chat platform adapter interface.

    Adapters are owned by the bus and must be pure async.
    Inbound messages go back to the bus via the 'forward' callback given to connect().
    """
    def __init__(self, account: str):
        self.account = account
        self.status = AdapterStatus.offline

    @abc.abstractmethod
    async def connect(self, forward: ForwardCallback) -> None:
        ...

    @abc.abstractmethod
    async def disconnect(self) -> None:
        ...

    @abc.abstractmethod
    async def join_channel(self, channel: ChannelInfo) -> None:
        ...

    @abc.abstractmethod
    async def send(self, msg: RelayMessage) -> str:
        """Deliver msg to the platform. Returns the platform's id for it, or ""."""
        ...
