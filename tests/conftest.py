from __future__ import annotations

import asyncio
from typing import Any

import pytest

from zulipbridge.config import Settings
from zulipbridge.domain.models import StreamInfo, StreamMessage, ZulipEvent


class FakeZulip:
    """Scriptable stand-in for ZulipClient.

    `fetches` and `registrations` are consumed in order; an Exception entry
    is raised instead of returned.
    """

    def __init__(self):
        self.streams = [StreamInfo(stream_id=3, name="general"), StreamInfo(stream_id=4, name="random")]
        self.stream_error: Exception | None = None
        self.stream_fetches = 0
        self.fetches: list[Any] = []
        self.registrations: list[Any] = []
        self.calls: list[Any] = []
        self.sent: list[StreamMessage] = []
        self.updates: list[tuple[str, str]] = []
        self.send_response: Any = "auto"
        self.send_error: Exception | None = None
        self.update_error: Exception | None = None
        self.block_when_idle = False
        self.next_id = 42
        self._queues = 0

    async def register_queue(self) -> tuple[str, int]:
        self.calls.append("register")
        if self.registrations:
            r = self.registrations.pop(0)
            if isinstance(r, Exception):
                raise r
            return r
        self._queues += 1
        return f"q{self._queues}", -1

    async def get_events(self, queue_id: str, last_event_id: int) -> list[ZulipEvent]:
        self.calls.append(("events", queue_id, last_event_id))
        if not self.fetches:
            if self.block_when_idle:
                await asyncio.Event().wait()
            return []
        r = self.fetches.pop(0)
        if isinstance(r, Exception):
            raise r
        return r

    async def get_streams(self) -> list[StreamInfo]:
        self.stream_fetches += 1
        await asyncio.sleep(0)
        if self.stream_error is not None:
            raise self.stream_error
        return list(self.streams)

    async def send_message(self, msg: StreamMessage) -> dict[str, Any] | None:
        self.sent.append(msg)
        if self.send_error is not None:
            raise self.send_error
        if self.send_response != "auto":
            return self.send_response
        mid = self.next_id
        self.next_id += 1
        return {"id": mid, "msg": "", "result": "success"}

    async def update_message(self, message_id: str, content: str) -> None:
        self.updates.append((message_id, content))
        if self.update_error is not None:
            raise self.update_error


class RecordingSleep:
    """Fake clock: records requested sleeps and returns immediately."""

    def __init__(self):
        self.sleeps: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        await asyncio.sleep(0)


def make_event(
    id: int,
    sender: str = "alice@x",
    name: str = "alice",
    sender_id: int = 7,
    stream_id: int | None = 3,
    content: str = "hi",
    avatar: str = "https://x/avatar/7.png",
) -> ZulipEvent:
    return ZulipEvent(
        id=id,
        message_id=1000 + id,
        sender_email=sender,
        sender_id=sender_id,
        sender_full_name=name,
        avatar_url=avatar,
        stream_id=stream_id,
        content=content,
    )


@pytest.fixture
def fake_api():
    return FakeZulip()


@pytest.fixture
def fake_sleep():
    return RecordingSleep()


@pytest.fixture
def settings():
    return Settings(
        server="https://zulip.example.com",
        login="bridge-bot@x",
        token="secret",
        topic="",
        account="zulip.test",
        _env_file=None,
    )
