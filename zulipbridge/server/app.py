from __future__ import annotations
import asyncio
import contextlib
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from zulipbridge.bus import MessageBus
from zulipbridge.config import Settings
from zulipbridge.domain.models import AdapterStatus
from zulipbridge.observability.logging import configure_logging, get_logger
from zulipbridge.zulip.adapter import ZulipChannel

log = get_logger("app")

VERSION = "0.1.0"

def create_app(settings: Settings, adapter: ZulipChannel | None = None, bus: MessageBus | None = None) -> FastAPI:
    configure_logging(settings.log_level, settings.json_logs)

    bus = bus if bus is not None else MessageBus(max_queue_size=settings.bus_queue_size)
    adapter = adapter if adapter is not None else ZulipChannel(settings)

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        bus.register(adapter)
        try:
            await adapter.connect(bus.forward)
        except Exception:
            bus.unregister(adapter.account)
            raise
        # standalone mode: nobody else reads the bus, so log what arrives
        drain = asyncio.create_task(_drain(bus))
        log.info("bridge_started", account=adapter.account, server=settings.server)
        try:
            yield
        finally:
            drain.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await drain
            bus.unregister(adapter.account)
            await adapter.disconnect()

    app = FastAPI(title="Zulip Bridge", version=VERSION, lifespan=lifespan)
    app.state.bus = bus
    app.state.adapter = adapter

    @app.get(settings.health_path)
    async def healthz():
        return {
            "ok": adapter.status in (AdapterStatus.ready, AdapterStatus.recovering),
            "service": "zulipbridge",
            "version": VERSION,
            **adapter.health(),
        }

    @app.get(settings.metrics_path)
    async def metrics_endpoint():
        return PlainTextResponse(generate_latest().decode("utf-8"), media_type=CONTENT_TYPE_LATEST)

    return app

async def _drain(bus: MessageBus) -> None:
    async for msg in bus.iter():
        log.info("relay_inbound", account=msg.account, channel=msg.channel, username=msg.username, user_id=msg.user_id, text=msg.text)
