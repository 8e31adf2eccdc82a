from __future__ import annotations
import asyncio
import contextlib
from typing import Any
from zulipbridge.channels.base import ChannelAdapter, ForwardCallback
from zulipbridge.config import Settings
from zulipbridge.domain.models import AdapterStatus, ChannelInfo, RelayMessage, Session
from zulipbridge.observability.logging import bind_account, get_logger
from zulipbridge.zulip.client import ZulipAPI, ZulipClient
from zulipbridge.zulip.dispatcher import OutboundDispatcher
from zulipbridge.zulip.errors import ZulipError
from zulipbridge.zulip.poller import EventPoller, PollTimings, SleepFn
from zulipbridge.zulip.session import SessionManager
from zulipbridge.zulip.streams import StreamDirectory
from zulipbridge.zulip.topics import TopicResolver

log = get_logger("zulip")

class ZulipChannel(ChannelAdapter):
    """Bridges one Zulip organisation onto the relay bus.

    connect() registers an event queue and starts the poll task;
    send() runs on the caller's task, concurrently with polling.
    """
    def __init__(self, settings: Settings, api: ZulipAPI | None = None, sleep: SleepFn | None = None):
        super().__init__(settings.account)
        self.settings = settings
        self._owns_api = api is None
        self.api: ZulipAPI = api if api is not None else ZulipClient.from_settings(settings)
        self.sessions = SessionManager(
            self.api,
            Session(email=settings.login, api_key=settings.token, base_url=settings.api_url),
            account=settings.account,
            connect_retries=settings.connect_retries,
        )
        self.streams = StreamDirectory(self.api)
        self.topics = TopicResolver(default_topic=settings.topic)
        self.dispatcher = OutboundDispatcher(
            self.api,
            self.topics,
            account=settings.account,
            media_download_size=settings.media_download_size,
        )
        self.poller: EventPoller | None = None
        self._sleep = sleep
        self._task: asyncio.Task | None = None
        self._stop = asyncio.Event()

    async def connect(self, forward: ForwardCallback) -> None:
        try:
            await self.sessions.connect()
        except ZulipError as e:
            self.status = AdapterStatus.error
            log.error("connect_failed", account=self.account, error=str(e))
            raise
        # init streams
        await self.streams.prime()

        self.poller = EventPoller(
            self.api,
            self.sessions,
            self.streams,
            forward,
            login=self.settings.login,
            account=self.account,
            timings=PollTimings(
                backoff=self.settings.backoff_sleep_s,
                unavailable=self.settings.unavailable_sleep_s,
                recover=self.settings.recover_sleep_s,
                idle=self.settings.idle_sleep_s,
                handoff_timeout=self.settings.handoff_timeout_s,
            ),
            sleep=self._sleep,
            recover_alert_threshold=self.settings.recover_alert_threshold,
            on_status=self._set_status,
        )
        self._stop.clear()
        self._task = asyncio.create_task(self._poll())
        self.status = AdapterStatus.ready
        log.info("connection_succeeded", account=self.account, queue_id=self.sessions.queue_id)

    async def _poll(self) -> None:
        bind_account(self.account)
        await self.poller.run(self._stop)

    async def disconnect(self) -> None:
        self._stop.set()
        if self._task:
            # the in-flight long-poll doesn't watch the stop event
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        if self._owns_api:
            await self.api.aclose()
        self.status = AdapterStatus.offline
        log.info("disconnected", account=self.account)

    async def join_channel(self, channel: ChannelInfo) -> None:
        await self.topics.bind(channel.name, channel.topic)

    async def send(self, msg: RelayMessage) -> str:
        return await self.dispatcher.send(msg)

    def health(self) -> dict[str, Any]:
        return {
            "account": self.account,
            "status": self.status.value,
            "queue_id": self.sessions.queue_id,
            "last_event_id": self.sessions.last_event_id,
            "streams": len(self.streams),
        }

    def _set_status(self, status: AdapterStatus) -> None:
        self.status = status
