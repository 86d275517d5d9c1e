"""Odds subcommand: calc (offline), show, preview."""

from __future__ import annotations

import asyncio

import typer

from predpool.cli.common import fail, make_calculator, make_client, parse_pairs
from predpool.errors import PredpoolError
from predpool.ledger.pool import PoolLedger
from predpool.models import BINARY_KEYS, Event, EventOutcome
from predpool.odds.calculator import BetPreview, OddsSnapshot, display_odds

app = typer.Typer(help="Pool odds: offline calculator and live event odds")


def print_snapshot(snapshot: OddsSnapshot, event: Event | None = None) -> None:
    labels = {o.id: o.label for o in event.outcomes} if event is not None else {}
    typer.echo(f"Source: {snapshot.source}  Total pool: {snapshot.total_pool:,.0f}")
    for key, quote in snapshot.quotes.items():
        label = labels.get(key) or key
        typer.echo(f"  {label[:30]:<30} {quote.percent:>3}%  odds {display_odds(quote.odds):.2f}  pool {quote.pool:,.0f}")
    if snapshot.liquidity_warning:
        typer.echo(f"Warning: {snapshot.liquidity_warning}")


def print_preview(preview: BetPreview) -> None:
    typer.echo(f"Bet {preview.amount:,.0f} on {preview.key}:")
    typer.echo(f"  Payout: {preview.payout:.2f}")
    typer.echo(f"  Profit: {preview.profit:.2f}")
    typer.echo(f"  Odds: {display_odds(preview.effective_odds):.2f}")
    typer.echo(f"  New percent: {preview.percent}%")
    if preview.is_low_liquidity:
        typer.echo("  Low liquidity: your odds may move a lot.")


def _offline_event(pools: dict[str, float], seeds: dict[str, float], multiple: bool) -> Event:
    keys = list(dict.fromkeys([*pools, *seeds]))
    upper = [k.upper() for k in keys]
    if not multiple and set(upper) <= set(BINARY_KEYS):
        lookup = dict(zip(upper, keys))
        return Event(
            id=0,
            event_type="binary",
            yes_percent=int(seeds[lookup["YES"]]) if "YES" in lookup and lookup["YES"] in seeds else None,
            no_percent=int(seeds[lookup["NO"]]) if "NO" in lookup and lookup["NO"] in seeds else None,
        )
    outcomes = [EventOutcome(id=k, label=k, probability=int(seeds.get(k, 0))) for k in keys]
    return Event(id=0, event_type="multiple", outcomes=outcomes)


@app.command("calc")
def calc(
    ctx: typer.Context,
    pool: list[str] | None = typer.Option(None, "--pool", help="Stake already in a bucket, KEY=AMOUNT (repeatable)"),
    seed: list[str] | None = typer.Option(None, "--seed", help="Seeded probability, KEY=PERCENT (repeatable)"),
    side: str | None = typer.Option(None, "--side", "-s", help="Side or outcome to preview a bet on"),
    amount: float | None = typer.Option(None, "--amount", "-a", help="Stake to preview"),
    multiple: bool = typer.Option(False, "--multiple", help="Treat keys as multiple-choice outcomes"),
) -> None:
    """Compute pool odds offline, e.g. --pool YES=300 --pool NO=700 --side YES --amount 200."""
    settings = ctx.obj["settings"]
    pools = parse_pairs(pool, "--pool")
    seeds = parse_pairs(seed, "--seed")
    if not pools and not seeds:
        raise typer.BadParameter("give at least one --pool or --seed", param_hint="--pool")
    event = _offline_event(pools, seeds, multiple)
    buckets = {(k.upper() if event.is_binary else k): v for k, v in pools.items()}
    ledger = PoolLedger(event.id, buckets)
    calculator = make_calculator(settings)
    print_snapshot(calculator.compute(event, ledger), event)
    if side is None and amount is None:
        return
    if side is None or amount is None:
        raise typer.BadParameter("--side and --amount go together", param_hint="--side")
    key = event.normalize_key(side)
    if key is None:
        raise typer.BadParameter(f"unknown side {side!r}", param_hint="--side")
    try:
        preview = calculator.preview(event, ledger, key, amount)
    except PredpoolError as e:
        fail(e)
    print_preview(preview)


@app.command("show")
def show(ctx: typer.Context, event_id: int = typer.Argument(..., help="Event id")) -> None:
    """Fetch an event and its pools and show current odds."""
    settings = ctx.obj["settings"]

    async def _show() -> None:
        async with make_client(settings) as client:
            detail = await client.fetch_event_detail(event_id)
            pools = await client.fetch_odds(event_id)
        event = detail.event
        ledger = PoolLedger.from_pools(event, pools)
        typer.echo(f"{event.title} [{event.status}]")
        print_snapshot(make_calculator(settings).compute(event, ledger, pools), event)

    try:
        asyncio.run(_show())
    except PredpoolError as e:
        fail(e)


@app.command("preview")
def preview(
    ctx: typer.Context,
    event_id: int = typer.Argument(..., help="Event id"),
    side: str = typer.Option(..., "--side", "-s", help="YES/NO or outcome id"),
    amount: float = typer.Option(..., "--amount", "-a", help="Stake"),
) -> None:
    """Preview payout for a stake against the event's current pool."""
    settings = ctx.obj["settings"]

    async def _preview() -> BetPreview:
        async with make_client(settings) as client:
            detail = await client.fetch_event_detail(event_id)
            pools = await client.fetch_odds(event_id)
        event = detail.event
        key = event.normalize_key(side)
        if key is None:
            raise typer.BadParameter(f"unknown side {side!r}", param_hint="--side")
        return make_calculator(settings).preview(event, PoolLedger.from_pools(event, pools), key, amount)

    try:
        print_preview(asyncio.run(_preview()))
    except PredpoolError as e:
        fail(e)
