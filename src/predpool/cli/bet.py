"""Bet subcommand: place."""

from __future__ import annotations

import asyncio

import typer

from predpool.betting.executor import BetExecutor
from predpool.cli.common import fail, make_calculator, make_client
from predpool.cli.odds import print_preview
from predpool.errors import PredpoolError
from predpool.ledger.mirror import LedgerMirror
from predpool.ledger.pool import PoolLedger
from predpool.models import ActivityBet, BetReceipt

app = typer.Typer(help="Place bets (requires api.session_cookie)")


@app.command("place")
def place(
    ctx: typer.Context,
    event_id: int = typer.Argument(..., help="Event id"),
    side: str = typer.Option(..., "--side", "-s", help="YES/NO or outcome id"),
    amount: float = typer.Option(..., "--amount", "-a", help="Stake in tokens"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
) -> None:
    """Preview, confirm and place a bet."""
    settings = ctx.obj["settings"]

    async def _place() -> BetReceipt | None:
        async with make_client(settings) as client:
            mirror = LedgerMirror()
            detail = await client.fetch_event_detail(event_id)
            event = detail.event
            pools = await client.fetch_odds(event_id)
            mirror.replace(event_id, PoolLedger.from_pools(event, pools))
            executor = BetExecutor(client, mirror, make_calculator(settings), min_stake=settings.min_stake)
            print_preview(executor.preview(event, side, amount))
            if not yes and not typer.confirm("Place this bet?"):
                return None
            return await executor.place(event, side, amount)

    try:
        receipt = asyncio.run(_place())
    except PredpoolError as e:
        fail(e)
    if receipt is None:
        typer.echo("Cancelled.")
        return
    typer.echo(f"Placed bet {receipt.bet.bet_id or '-'}: {receipt.bet.amount:,.0f} on {receipt.bet.key}")
    if receipt.potential_return is not None:
        typer.echo(f"  Potential return: {receipt.potential_return:,.2f}")
    if receipt.new_balance is not None:
        typer.echo(f"  New balance: {receipt.new_balance:,.0f}")


@app.command("activity")
def activity(ctx: typer.Context, event_id: int = typer.Argument(..., help="Event id")) -> None:
    """List recent bets on an event."""
    settings = ctx.obj["settings"]

    async def _activity() -> list[ActivityBet]:
        async with make_client(settings) as client:
            return await client.fetch_event_activity(event_id)

    try:
        bets = asyncio.run(_activity())
    except PredpoolError as e:
        fail(e)
    for b in bets:
        who = b.user_username or b.user_name or "?"
        typer.echo(f"  {b.timestamp}  {who[:20]:<20} {b.notional:>8,.0f} on {b.key or '-'}")
    typer.echo(f"Total: {len(bets)} bets")
