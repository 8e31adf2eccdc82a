from __future__ import annotations
import asyncio
from zulipbridge.observability.logging import get_logger
from zulipbridge.zulip.client import ZulipAPI
from zulipbridge.zulip.errors import ZulipError

log = get_logger("zulip.streams")

class StreamDirectory:
    """Lazy stream id -> stream name cache.

    A miss refreshes the whole list once. Ids still absent afterwards are
    remembered as missing and answered with "" without refetching, until a
    refresh triggered by some other unknown id clears that memory.
    """
    def __init__(self, api: ZulipAPI):
        self.api = api
        self._names: dict[int, str] = {}
        self._missing: set[int] = set()
        self._refresh_lock = asyncio.Lock()
        self.refreshes = 0

    def __len__(self) -> int:
        return len(self._names)

    def cached(self, stream_id: int) -> str | None:
        return self._names.get(stream_id)

    async def resolve(self, stream_id: int | None) -> str:
        # private messages carry no stream
        if not stream_id:
            return ""
        name = self._names.get(stream_id)
        if name is not None:
            return name
        if stream_id in self._missing:
            return ""
        async with self._refresh_lock:
            # another caller may have refreshed while we waited
            name = self._names.get(stream_id)
            if name is not None:
                return name
            if stream_id in self._missing:
                return ""
            if not await self._refresh():
                return ""
            name = self._names.get(stream_id)
            if name is None:
                self._missing.add(stream_id)
                log.debug("stream_unknown", stream_id=stream_id)
                return ""
            return name

    async def prime(self) -> None:
        async with self._refresh_lock:
            await self._refresh()

    async def _refresh(self) -> bool:
        try:
            streams = await self.api.get_streams()
        except ZulipError as e:
            log.error("stream_refresh_failed", error=str(e), error_type=type(e).__name__)
            return False
        self.refreshes += 1
        self._missing.clear()
        for s in streams:
            self._names[s.stream_id] = s.name
        log.debug("streams_refreshed", count=len(streams))
        return True
