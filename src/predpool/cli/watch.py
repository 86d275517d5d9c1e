"""Watch command: keep an event's odds fresh and print movement until Ctrl+C."""

from __future__ import annotations

import asyncio
import signal
import sys

import typer

from predpool.cli.common import make_calculator, make_client
from predpool.cli.odds import print_snapshot
from predpool.ledger.mirror import LedgerMirror
from predpool.signals import ClosingSoon, NotableSwing, OddsDelta, Signal
from predpool.sync.live import LiveOddsSync


def describe(signal_: Signal) -> str | None:
    match signal_:
        case NotableSwing(key=key, delta=delta):
            return f"Big move: {key} {delta:+d}%"
        case OddsDelta(key=key, delta=delta):
            return f"{key} {delta:+d}%"
        case ClosingSoon(minutes_remaining=minutes):
            return f"Closing in {minutes} min"
    return None


def watch(
    ctx: typer.Context,
    event_id: int = typer.Argument(..., help="Event id"),
    duration: float = typer.Option(0.0, "--duration", "-d", help="Stop after this many seconds (0 = until Ctrl+C)"),
) -> None:
    """Poll odds for an event and print changes (Ctrl+C to stop)."""
    settings = ctx.obj["settings"]
    stop_event = asyncio.Event()

    def on_signal(signal_: Signal) -> None:
        text = describe(signal_)
        if text:
            typer.echo(text)

    async def _watch() -> None:
        async with make_client(settings) as client:
            sync = LiveOddsSync(
                client,
                LedgerMirror(),
                make_calculator(settings),
                refresh_interval=settings.refresh_interval_sec,
                coalesce_window=settings.coalesce_window_sec,
                delta_ttl=settings.delta_ttl_sec,
                swing_threshold=settings.swing_threshold,
                closing_soon_minutes=settings.closing_soon_minutes,
            )
            snapshot = await sync.refresh(event_id, force=True)
            if snapshot is not None:
                print_snapshot(snapshot, sync.event(event_id))
            handle = sync.start(event_id, on_signal)
            try:
                if duration > 0:
                    try:
                        await asyncio.wait_for(stop_event.wait(), timeout=duration)
                    except asyncio.TimeoutError:
                        pass
                else:
                    await stop_event.wait()
            finally:
                sync.close()
                await handle.wait()

    def shutdown() -> None:
        stop_event.set()

    loop = asyncio.new_event_loop()
    if sys.platform != "win32":
        loop.add_signal_handler(signal.SIGINT, shutdown)
        loop.add_signal_handler(signal.SIGTERM, shutdown)
    try:
        typer.echo("Watching odds (Ctrl+C to stop)...")
        loop.run_until_complete(_watch())
    except KeyboardInterrupt:
        pass
    finally:
        loop.close()
    typer.echo("Stopped.")
