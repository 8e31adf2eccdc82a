"""Thin async client for the handful of Zulip REST endpoints the bridge uses."""
from __future__ import annotations

import json
from typing import Any, Protocol

import httpx

from zulipbridge.config import Settings
from zulipbridge.domain.models import StreamInfo, StreamMessage, ZulipEvent
from zulipbridge.observability.logging import get_logger
from zulipbridge.zulip.errors import (
    AuthenticationError,
    BackoffError,
    BadEventQueueError,
    HeartbeatError,
    MalformedResponseError,
    NetworkError,
    NoJSONError,
    ServiceError,
)

log = get_logger("zulip.client")

AUTH_ERROR_CODES = {"UNAUTHORIZED", "INVALID_API_KEY", "USER_DEACTIVATED", "REALM_DEACTIVATED"}


class ZulipAPI(Protocol):
    """What the bridge needs from a Zulip connection."""

    async def register_queue(self) -> tuple[str, int]: ...
    async def get_events(self, queue_id: str, last_event_id: int) -> list[ZulipEvent]: ...
    async def get_streams(self) -> list[StreamInfo]: ...
    async def send_message(self, msg: StreamMessage) -> dict[str, Any] | None: ...
    async def update_message(self, message_id: str, content: str) -> None: ...


class ZulipClient:
    def __init__(
        self,
        email: str,
        api_key: str,
        api_url: str,
        timeout: float = 90.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.email = email
        self.api_url = api_url
        self._http = httpx.AsyncClient(
            base_url=api_url,
            auth=(email, api_key),
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> "ZulipClient":
        return cls(
            email=settings.login,
            api_key=settings.token,
            api_url=settings.api_url,
            timeout=settings.request_timeout_s,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, allow_empty: bool = False, **kwargs: Any) -> dict[str, Any] | None:
        try:
            resp = await self._http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise NetworkError(f"{method} {path}: {e!r}") from e

        if resp.status_code == 429:
            raise BackoffError("rate limited", code="RATE_LIMIT_HIT", status=429)
        if allow_empty and not resp.content:
            if resp.is_error:
                raise (NetworkError if resp.status_code >= 500 else ServiceError)(
                    f"{method} {path} failed with HTTP {resp.status_code}", status=resp.status_code
                )
            return None
        try:
            data = resp.json()
        except ValueError as e:
            raise NoJSONError(f"{method} {path}: response wasn't JSON", status=resp.status_code) from e
        if not isinstance(data, dict):
            raise NoJSONError(f"{method} {path}: response wasn't a JSON object", status=resp.status_code)

        if resp.is_error or data.get("result") == "error":
            code = data.get("code")
            msg = data.get("msg") or f"{method} {path} failed with HTTP {resp.status_code}"
            if code == "BAD_EVENT_QUEUE_ID":
                raise BadEventQueueError(msg, code=code, status=resp.status_code)
            if code == "RATE_LIMIT_HIT":
                raise BackoffError(msg, code=code, status=resp.status_code)
            if resp.status_code == 401 or code in AUTH_ERROR_CODES:
                raise AuthenticationError(msg, code=code, status=resp.status_code)
            if resp.status_code >= 500:
                raise NetworkError(msg, code=code, status=resp.status_code)
            raise ServiceError(msg, code=code, status=resp.status_code)
        return data

    async def register_queue(self) -> tuple[str, int]:
        """Register an event queue for all messages we can see.

        Returns (queue_id, last_event_id) for the new queue.
        """
        data = await self._request(
            "POST",
            "register",
            data={"event_types": json.dumps(["message"]), "all_public_streams": "true"},
        )
        try:
            return str(data["queue_id"]), int(data.get("last_event_id", -1))
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedResponseError(f"register: unexpected response {data!r}") from e

    async def get_events(self, queue_id: str, last_event_id: int) -> list[ZulipEvent]:
        """Long-poll for events newer than last_event_id."""
        data = await self._request(
            "GET",
            "events",
            params={"queue_id": queue_id, "last_event_id": last_event_id},
        )
        raw_events = data.get("events") or []
        if not isinstance(raw_events, list):
            raise MalformedResponseError(f"events: expected a list, got {raw_events!r}")
        if raw_events and all(isinstance(e, dict) and e.get("type") == "heartbeat" for e in raw_events):
            raise HeartbeatError(event_id=max(int(e.get("id", last_event_id)) for e in raw_events))
        return [_parse_event(e) for e in raw_events]

    async def get_streams(self) -> list[StreamInfo]:
        data = await self._request("GET", "streams")
        return [StreamInfo(stream_id=s["stream_id"], name=s["name"]) for s in data.get("streams", [])]

    async def send_message(self, msg: StreamMessage) -> dict[str, Any] | None:
        """Post a stream message. Returns the decoded response body, None if empty."""
        return await self._request(
            "POST",
            "messages",
            allow_empty=True,
            data={"type": "stream", "to": msg.stream, "topic": msg.topic, "content": msg.content},
        )

    async def update_message(self, message_id: str, content: str) -> None:
        await self._request("PATCH", f"messages/{message_id}", data={"content": content})


def _parse_event(raw: dict[str, Any]) -> ZulipEvent:
    """Parse one queue event.

    An event we can't read keeps its id under type "malformed", so the
    poller can step the cursor past it instead of refetching it forever.
    """
    try:
        return ZulipEvent.from_event(raw)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        try:
            event_id = int(raw["id"])
        except (KeyError, TypeError, ValueError):
            raise MalformedResponseError(f"events: event without a usable id: {raw!r}") from e
        log.warning("event_malformed", event_id=event_id, error=str(e))
        return ZulipEvent(id=event_id, type="malformed")
