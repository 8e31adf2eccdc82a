"""Error taxonomy for Zulip API calls.

The poll loop branches on these classes; everything else sees them as
ordinary exceptions raised out of `ZulipClient`.
"""
from __future__ import annotations

from zulipbridge.core.retry import RateLimitError, TransientError


class ZulipError(Exception):
    """Base error for a failed Zulip API call."""

    kind = "other"

    def __init__(self, message: str, *, code: str | None = None, status: int | None = None):
        super().__init__(message)
        self.code = code
        self.status = status


class AuthenticationError(ZulipError):
    """Credentials were rejected. Fatal at connect."""

    kind = "auth"


class BackoffError(ZulipError, RateLimitError):
    """Server asked us to slow down (HTTP 429)."""

    kind = "backoff"


class NoJSONError(ZulipError, TransientError):
    """Response body wasn't JSON; server down or restarting."""

    kind = "no_json"


class NetworkError(ZulipError, TransientError):
    """Request never got a response (connect/read failure or timeout)."""

    kind = "network"


class BadEventQueueError(ZulipError):
    """Server expired or forgot our event queue."""

    kind = "bad_queue"


class HeartbeatError(ZulipError):
    """Long-poll returned only keepalive events."""

    kind = "heartbeat"

    def __init__(self, message: str = "heartbeat", *, event_id: int = -1):
        super().__init__(message)
        self.event_id = event_id


class MalformedResponseError(ZulipError):
    """JSON response lacks a field we need."""

    kind = "malformed"


class ServiceError(ZulipError):
    """Any other `result: error` answer."""

    kind = "service"
