from __future__ import annotations
from typing import Any
from zulipbridge.attachments import stage_attachments
from zulipbridge.domain.models import Delete, Edit, OutboundAction, Post, RelayMessage, StreamMessage, Upload, classify
from zulipbridge.observability.logging import get_logger
from zulipbridge.observability import metrics
from zulipbridge.zulip.client import ZulipAPI
from zulipbridge.zulip.errors import MalformedResponseError
from zulipbridge.zulip.topics import TopicResolver

log = get_logger("zulip.dispatcher")

def parse_message_id(body: dict[str, Any] | None) -> str:
    """Extract the numeric message id from a send response, as a string."""
    if not body:
        raise MalformedResponseError("send: empty response")
    mid = body.get("id")
    if isinstance(mid, bool) or not isinstance(mid, int):
        raise MalformedResponseError(f"send: no numeric id in response {body!r}")
    return str(mid)

class OutboundDispatcher:
    """Turns relay messages into Zulip API calls. Errors go back to the caller."""
    def __init__(self, api: ZulipAPI, topics: TopicResolver, account: str = "", media_download_size: int = 0):
        self.api = api
        self.topics = topics
        self.account = account
        self.media_download_size = media_download_size

    async def send(self, msg: RelayMessage) -> str:
        log.debug("outbound_received", channel=msg.channel, kind=msg.event.value, id=msg.id)
        return await self.dispatch(classify(msg))

    async def dispatch(self, action: OutboundAction) -> str:
        name = type(action).__name__.lower()
        metrics.outbound_sends.labels(account=self.account, action=name).inc()
        try:
            if isinstance(action, Delete):
                return await self._delete(action)
            if isinstance(action, Upload):
                return await self._upload(action)
            if isinstance(action, Edit):
                await self._notify_refused(action.message)
                return await self._edit(action)
            if isinstance(action, Post):
                await self._notify_refused(action.message)
                return await self.post(action.message)
            raise TypeError(f"unknown outbound action: {action!r}")
        except Exception as e:
            metrics.outbound_errors.labels(account=self.account, action=name).inc()
            log.warning("outbound_failed", action=name, error=str(e), error_type=type(e).__name__)
            raise

    async def post(self, msg: RelayMessage) -> str:
        topic = await self.topics.resolve(msg.channel)
        body = await self.api.send_message(
            StreamMessage(stream=msg.channel, topic=topic, content=msg.username + msg.text)
        )
        remote_id = parse_message_id(body)
        log.debug("outbound_posted", channel=msg.channel, topic=topic, remote_id=remote_id)
        return remote_id

    async def _notify_refused(self, msg: RelayMessage) -> None:
        for notice in stage_attachments(msg, self.media_download_size).notices:
            await self.post(notice)

    async def _delete(self, action: Delete) -> str:
        if not action.message_id:
            return ""
        # Zulip has no bot-friendly delete; clearing the content is the closest thing
        await self.api.update_message(action.message_id, "")
        return ""

    async def _edit(self, action: Edit) -> str:
        msg = action.message
        await self.api.update_message(msg.id, msg.username + msg.text)
        return ""

    async def _upload(self, action: Upload) -> str:
        msg = action.message
        staged = stage_attachments(msg, self.media_download_size)
        for notice in staged.notices:
            await self.post(notice)
        last_id = ""
        if msg.text:
            last_id = await self.post(msg)
        for att in staged.attachments:
            last_id = await self.post(msg.model_copy(update={"text": att.compose()}))
        return last_id
