from __future__ import annotations
import asyncio
import typer
from rich import print
from rich.table import Table
from zulipbridge.config import load_settings
from zulipbridge.domain.models import RelayMessage
from zulipbridge.observability.logging import configure_logging
from zulipbridge.zulip.client import ZulipClient
from zulipbridge.zulip.dispatcher import OutboundDispatcher
from zulipbridge.zulip.topics import TopicResolver

app = typer.Typer(help="Zulip bridge - relays a Zulip organisation onto the chat relay bus.")

@app.command()
def run(host: str = typer.Option(None), port: int = typer.Option(None)):
    """Connect to Zulip and serve health/metrics endpoints."""
    import uvicorn
    from zulipbridge.server.app import create_app

    settings = load_settings()
    uvicorn.run(
        create_app(settings),
        host=host or settings.host,
        port=port or settings.port,
        log_level=settings.log_level.lower(),
    )

@app.command()
def streams():
    """List the streams the bot can see."""
    settings = load_settings()
    configure_logging(settings.log_level, json_logs=False)

    async def _run():
        client = ZulipClient.from_settings(settings)
        try:
            return await client.get_streams()
        finally:
            await client.aclose()

    t = Table(title=f"Streams on {settings.server}")
    t.add_column("stream_id"); t.add_column("name")
    for s in sorted(asyncio.run(_run()), key=lambda s: s.stream_id):
        t.add_row(str(s.stream_id), s.name)
    print(t)

@app.command()
def send(
    channel: str,
    text: str,
    topic: str = typer.Option("", help="Topic to post under; defaults to ZB_TOPIC."),
    username: str = typer.Option("", help="Prefix prepended to the text."),
):
    """Post one message to a stream and print its id."""
    settings = load_settings()
    configure_logging(settings.log_level, json_logs=False)

    async def _run():
        client = ZulipClient.from_settings(settings)
        try:
            dispatcher = OutboundDispatcher(client, TopicResolver(default_topic=topic or settings.topic), account=settings.account)
            return await dispatcher.send(RelayMessage(channel=channel, text=text, username=username))
        finally:
            await client.aclose()

    print(f"[bold]sent[/bold] id={asyncio.run(_run())}")

def main():
    """Entry point for the CLI."""
    app()
