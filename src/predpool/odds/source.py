"""OddsSource - where displayed odds come from: live pool, static seeds, or frozen final state."""

from __future__ import annotations

from dataclasses import dataclass

from predpool.ledger.pool import PoolLedger
from predpool.models.event import Event
from predpool.models.pools import PoolData


@dataclass(frozen=True, eq=False)
class Live:
    """Pool has stake: derive everything from the ledger."""

    ledger: PoolLedger


@dataclass(frozen=True)
class Static:
    """No stake yet: use the probabilities seeded at event creation."""

    seeds: dict[str, int]


@dataclass(frozen=True)
class Frozen:
    """Resolved event: server-reported final numbers, never recomputed."""

    pools: PoolData
    ledger: PoolLedger


OddsSource = Live | Static | Frozen


def select_source(event: Event, ledger: PoolLedger, pools: PoolData | None = None) -> OddsSource:
    """Pick the odds source for an event. Pool math only runs when the pool has liquidity."""
    final = pools if pools is not None else event.pools
    if event.is_resolved and final is not None:
        return Frozen(pools=final, ledger=ledger)
    if ledger.has_liquidity:
        return Live(ledger=ledger)
    return Static(seeds={key: event.static_percent(key) for key in event.keys()})


def source_name(source: OddsSource) -> str:
    match source:
        case Live():
            return "live"
        case Static():
            return "static"
        case Frozen():
            return "frozen"
    raise TypeError(f"unknown odds source {source!r}")
