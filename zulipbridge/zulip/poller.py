"""Long-poll loop pulling events from the Zulip queue into the relay bus."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable

from zulipbridge.channels.base import ForwardCallback
from zulipbridge.domain.models import AdapterStatus, RelayMessage, ZulipEvent
from zulipbridge.observability.logging import get_logger
from zulipbridge.observability import metrics
from zulipbridge.zulip.client import ZulipAPI
from zulipbridge.zulip.errors import (
    BackoffError,
    BadEventQueueError,
    HeartbeatError,
    MalformedResponseError,
    NetworkError,
    NoJSONError,
    ZulipError,
)
from zulipbridge.zulip.session import SessionManager
from zulipbridge.zulip.streams import StreamDirectory

log = get_logger("zulip.poller")

SleepFn = Callable[[float], Awaitable[None]]


@dataclass
class PollTimings:
    backoff: float = 5.0
    unavailable: float = 10.0
    recover: float = 10.0
    idle: float = 3.0
    handoff_timeout: float = 30.0


class EventPoller:
    """
    Fetch -> classify -> forward -> throttle, until the stop event is set.

    - 429 / rate limit: sleep `backoff`, refetch
    - non-JSON or unreachable server: sleep `unavailable`, refetch
    - unreadable batch: sleep `unavailable`, refetch. A single unreadable
      event only moves the cursor
    - bad queue id: re-register the queue; while that keeps failing, sleep
      `recover` and retry the registration instead of the fetch
    - heartbeat: nothing to do, refetch
    - anything else: log and refetch

    The cursor only moves past an event once it is on the bus, so a failed
    hand-off means the event comes back on the next fetch.
    """

    def __init__(
        self,
        api: ZulipAPI,
        sessions: SessionManager,
        streams: StreamDirectory,
        forward: ForwardCallback,
        login: str,
        account: str,
        timings: PollTimings | None = None,
        sleep: SleepFn | None = None,
        recover_alert_threshold: int = 0,
        on_status: Callable[[AdapterStatus], None] | None = None,
    ):
        self.api = api
        self.sessions = sessions
        self.streams = streams
        self.forward = forward
        self.login = login
        self.account = account
        self.timings = timings or PollTimings()
        self.recover_alert_threshold = recover_alert_threshold
        self.recover_failures = 0
        self.needs_recover = False
        self._sleep = sleep
        self._on_status = on_status
        self._stop = asyncio.Event()

    async def run(self, stop: asyncio.Event | None = None) -> None:
        if stop is not None:
            self._stop = stop
        log.info("poller_started", queue_id=self.sessions.queue_id)
        while not self._stop.is_set():
            try:
                await self.step()
            except Exception:
                log.exception("poll_iteration_crashed")
                await self._pause(self.timings.unavailable)
        log.info("poller_stopped", last_event_id=self.sessions.last_event_id)

    async def step(self) -> None:
        """One iteration of the loop."""
        if self.needs_recover:
            await self._recover()
            return

        try:
            events = await self.api.get_events(self.sessions.queue_id, self.sessions.last_event_id)
        except HeartbeatError as e:
            log.debug("heartbeat_received")
            self.sessions.advance(e.event_id)
            return
        except BackoffError:
            self._count_error("backoff")
            log.debug("poll_backoff", sleep_s=self.timings.backoff)
            await self._pause(self.timings.backoff)
            return
        except (NoJSONError, NetworkError) as e:
            self._count_error(e.kind)
            log.error(
                "poll_server_unavailable",
                error=str(e),
                hint="server down or restarting?",
                sleep_s=self.timings.unavailable,
            )
            await self._pause(self.timings.unavailable)
            return
        except MalformedResponseError as e:
            # the whole batch is unreadable; don't hammer the server refetching it
            self._count_error(e.kind)
            log.warning("poll_malformed_response", error=str(e), sleep_s=self.timings.unavailable)
            await self._pause(self.timings.unavailable)
            return
        except BadEventQueueError:
            self._count_error("bad_queue")
            log.info("bad_event_queue_reconnecting", queue_id=self.sessions.queue_id)
            self.needs_recover = True
            self._set_status(AdapterStatus.recovering)
            await self._recover()
            return
        except ZulipError as e:
            self._count_error(e.kind)
            log.debug("poll_receive_error", error=str(e), error_type=type(e).__name__)
            return

        await self.forward_batch(events)
        await self._pause(self.timings.idle)

    async def forward_batch(self, events: list[ZulipEvent]) -> int:
        """Hand events to the bus in order. Returns how many were forwarded."""
        forwarded = 0
        for ev in events:
            if ev.type != "message":
                self.sessions.advance(ev.id)
                continue
            log.debug("event_received", event_id=ev.id, stream_id=ev.stream_id, sender=ev.sender_email)
            # ignore our own messages
            if ev.sender_email == self.login:
                metrics.self_echo_skipped.labels(account=self.account).inc()
                self.sessions.advance(ev.id)
                continue

            msg = RelayMessage(
                username=ev.sender_full_name,
                text=ev.content,
                channel=await self.streams.resolve(ev.stream_id),
                account=self.account,
                user_id=str(ev.sender_id),
                avatar=ev.avatar_url,
            )
            try:
                await asyncio.wait_for(self.forward(msg), timeout=self.timings.handoff_timeout)
            except asyncio.TimeoutError:
                # leave the cursor here; the rest of the batch is fetched again
                log.warning("bus_handoff_timeout", event_id=ev.id, pending=len(events) - forwarded)
                return forwarded
            self.sessions.advance(ev.id)
            forwarded += 1
            metrics.inbound_forwarded.labels(account=self.account).inc()
            log.debug("event_forwarded", event_id=ev.id, username=msg.username, channel=msg.channel)
        return forwarded

    async def _recover(self) -> None:
        try:
            await self.sessions.recover()
        except ZulipError as e:
            self.recover_failures += 1
            metrics.queue_recoveries.labels(account=self.account, outcome="failed").inc()
            metrics.recover_failures.labels(account=self.account).set(self.recover_failures)
            log.error(
                "queue_reconnect_failed",
                error=str(e),
                failures=self.recover_failures,
                sleep_s=self.timings.recover,
            )
            if self.recover_alert_threshold and self.recover_failures % self.recover_alert_threshold == 0:
                log.error("queue_recover_failing", failures=self.recover_failures)
            await self._pause(self.timings.recover)
            return
        self.needs_recover = False
        self.recover_failures = 0
        metrics.queue_recoveries.labels(account=self.account, outcome="ok").inc()
        metrics.recover_failures.labels(account=self.account).set(0)
        self._set_status(AdapterStatus.ready)

    async def _pause(self, seconds: float) -> None:
        if self._sleep is not None:
            await self._sleep(seconds)
            return
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    def _count_error(self, kind: str) -> None:
        metrics.poll_errors.labels(account=self.account, kind=kind).inc()

    def _set_status(self, status: AdapterStatus) -> None:
        if self._on_status is not None:
            self._on_status(status)
