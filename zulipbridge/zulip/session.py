from __future__ import annotations
from zulipbridge.core.retry import RateLimitError, TransientError, retry_async
from zulipbridge.domain.models import Session
from zulipbridge.observability.logging import get_logger
from zulipbridge.observability import metrics
from zulipbridge.zulip.client import ZulipAPI
from zulipbridge.zulip.errors import AuthenticationError

log = get_logger("zulip.session")

class SessionManager:
    """Owns the Zulip session: credentials, event queue handle and poll cursor.

    Only the poll loop advances the cursor or calls recover().
    """
    def __init__(
        self,
        api: ZulipAPI,
        session: Session,
        account: str = "",
        connect_retries: int = 3,
        retry_min_wait: float = 1.0,
        retry_max_wait: float = 10.0,
    ):
        self.api = api
        self.session = session
        self.account = account
        self.connect_retries = connect_retries
        self.retry_min_wait = retry_min_wait
        self.retry_max_wait = retry_max_wait

    @property
    def queue_id(self) -> str | None:
        return self.session.queue_id

    @property
    def last_event_id(self) -> int:
        return self.session.last_event_id

    async def connect(self) -> Session:
        """Authenticate and register a fresh queue. Auth failures are raised as-is."""
        try:
            queue_id, last_event_id = await retry_async(
                self.api.register_queue,
                max_attempts=self.connect_retries,
                min_wait=self.retry_min_wait,
                max_wait=self.retry_max_wait,
                retryable_exceptions=(TransientError, RateLimitError),
            )
        except AuthenticationError as e:
            log.error("zulip_auth_failed", email=self.session.email, error=str(e))
            raise
        self._install(queue_id, last_event_id)
        log.info("zulip_connected", queue_id=queue_id, last_event_id=last_event_id)
        return self.session

    async def recover(self) -> Session:
        """Drop the current queue and register a new one."""
        old = self.session.queue_id
        self.session.queue_id = None
        queue_id, last_event_id = await self.api.register_queue()
        self._install(queue_id, last_event_id)
        log.info("zulip_queue_recovered", old_queue_id=old, queue_id=queue_id, last_event_id=last_event_id)
        return self.session

    def advance(self, event_id: int) -> None:
        if event_id <= self.session.last_event_id:
            return
        self.session.last_event_id = event_id
        metrics.last_event_id.labels(account=self.account).set(event_id)

    def _install(self, queue_id: str, last_event_id: int) -> None:
        # the new queue's cursor replaces ours wholesale, even if it is lower
        self.session.queue_id = queue_id
        self.session.last_event_id = last_event_id
        metrics.last_event_id.labels(account=self.account).set(last_event_id)
