"""Gossip subcommand: list, post."""

from __future__ import annotations

import asyncio

import typer

from predpool.cli.common import fail, make_client
from predpool.errors import PredpoolError
from predpool.gossip.reconciler import GossipDisplayItem, GossipReconciler
from predpool.models import DeliveryState

app = typer.Typer(help="Event gossip threads")


def _line(item: GossipDisplayItem) -> str:
    m = item.message
    author = m.user_username or m.user_name or "you"
    prefix = f"  ↳ @{item.reply_label} " if item.reply_label else "  "
    suffix = "" if item.state is DeliveryState.SENT else f"  [{item.state.value}]"
    return f"{prefix}{author}: {m.message}{suffix}"


@app.command("list")
def list_gossip(ctx: typer.Context, event_id: int = typer.Argument(..., help="Event id")) -> None:
    """Show an event's gossip thread, newest first."""
    settings = ctx.obj["settings"]

    async def _list() -> list[GossipDisplayItem]:
        async with make_client(settings) as client:
            reconciler = GossipReconciler(client, event_id, max_length=settings.gossip_max_length)
            await reconciler.load()
            return reconciler.messages()

    items = asyncio.run(_list())
    for item in items:
        typer.echo(_line(item))
    typer.echo(f"Total: {len(items)} messages")


@app.command("post")
def post(
    ctx: typer.Context,
    event_id: int = typer.Argument(..., help="Event id"),
    text: str = typer.Argument(..., help="Message text"),
    reply_to: int | None = typer.Option(None, "--reply-to", "-r", help="Id of the message to reply to"),
) -> None:
    """Post a message to an event's gossip thread."""
    settings = ctx.obj["settings"]

    async def _post() -> GossipDisplayItem:
        async with make_client(settings) as client:
            reconciler = GossipReconciler(client, event_id, max_length=settings.gossip_max_length)
            await reconciler.load()
            return await reconciler.send(text, reply_to_id=reply_to)

    try:
        item = asyncio.run(_post())
    except PredpoolError as e:
        fail(e)
    if item.state is DeliveryState.FAILED:
        typer.echo("Failed to send. Try again.", err=True)
        raise typer.Exit(1)
    typer.echo(_line(item))
