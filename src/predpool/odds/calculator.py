"""Parimutuel odds - percent, decimal odds, payout preview and liquidity flags.

Binary example: YES pool 300, NO pool 700 (total 1000). Betting 200 on YES:
new YES pool 500, new total 1200, share 200/500 = 0.4, payout 0.4 * 1200 = 480,
profit 280, effective odds 1200/500 = 2.4. Percents become 42 / 58.

Percents are rounded per side, so they need not sum to exactly 100.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field

import structlog

from predpool.errors import EventNotOpen, InvalidStake
from predpool.ledger.pool import PoolLedger
from predpool.models.event import Event
from predpool.models.pools import PoolData
from predpool.odds.source import Frozen, Live, OddsSource, Static, select_source, source_name

log = structlog.get_logger(__name__)

DEFAULT_LOW_LIQUIDITY_FLOOR = 100.0
DEFAULT_LOW_LIQUIDITY_RATIO = 0.1


def round_half_up(value: float) -> int:
    """Round to nearest integer, halves away from zero (not banker's rounding)."""
    if value < 0:
        return -int(math.floor(-value + 0.5))
    return int(math.floor(value + 0.5))


def pool_percent(side: float, total: float) -> int:
    return round_half_up(100.0 * side / total)


def static_odds(percent: int) -> float:
    """Odds implied by a seeded probability. Denominator floored at 1."""
    return 100.0 / max(percent, 1)


def display_odds(odds: float) -> float:
    return round(odds, 2)


@dataclass(frozen=True)
class OddsQuote:
    key: str
    percent: int
    odds: float
    pool: float = 0.0


@dataclass
class OddsSnapshot:
    """Derived odds for one event. A display hint, never stored as truth."""

    event_id: int
    source: str  # "live" | "static" | "frozen"
    quotes: dict[str, OddsQuote]
    total_pool: float
    low_liquidity: bool = False
    liquidity_warning: str | None = None
    computed_at: float = field(default_factory=time.time)

    def percent(self, key: str) -> int | None:
        quote = self.quotes.get(key)
        return quote.percent if quote else None

    def odds(self, key: str) -> float | None:
        quote = self.quotes.get(key)
        return quote.odds if quote else None

    def percents(self) -> dict[str, int]:
        return {k: q.percent for k, q in self.quotes.items()}

    def age(self, now: float | None = None) -> float:
        return (now if now is not None else time.time()) - self.computed_at


@dataclass
class BetPreview:
    """Projected outcome of staking ``amount`` on ``key`` against the current pool."""

    key: str
    amount: float
    side_pool_before: float
    total_pool_before: float
    new_side_total: float
    new_grand_total: float
    share: float
    payout: float
    profit: float
    effective_odds: float
    is_low_liquidity: bool
    snapshot: OddsSnapshot

    @property
    def percent(self) -> int:
        return self.snapshot.quotes[self.key].percent


def _check_amount(amount: object) -> float:
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise InvalidStake(amount, "Amount must be a number")
    if not math.isfinite(amount):
        raise InvalidStake(amount, "Amount must be finite")
    if amount <= 0:
        raise InvalidStake(amount)
    return float(amount)


class OddsCalculator:
    """Turns a PoolLedger (plus an optional hypothetical stake) into display numbers."""

    def __init__(
        self,
        low_liquidity_floor: float = DEFAULT_LOW_LIQUIDITY_FLOOR,
        low_liquidity_ratio: float = DEFAULT_LOW_LIQUIDITY_RATIO,
    ) -> None:
        self.low_liquidity_floor = low_liquidity_floor
        self.low_liquidity_ratio = low_liquidity_ratio

    def source(self, event: Event, ledger: PoolLedger, pools: PoolData | None = None) -> OddsSource:
        return select_source(event, ledger, pools)

    def _keys(self, event: Event, ledger: PoolLedger) -> list[str]:
        keys = event.keys()
        if not event.is_binary:
            # Outcomes can appear in server pool data before the event detail lists them
            keys += [k for k in ledger.funded_keys() if k not in keys]
        return keys

    def _live_quote(self, event: Event, ledger: PoolLedger, key: str) -> OddsQuote:
        side = ledger.bucket(key)
        total = ledger.total_pool
        percent = pool_percent(side, total) if total > 0 else event.static_percent(key)
        odds = total / side if side > 0 else static_odds(event.static_percent(key))
        return OddsQuote(key=key, percent=percent, odds=odds, pool=side)

    def compute(self, event: Event, ledger: PoolLedger, pools: PoolData | None = None) -> OddsSnapshot:
        """Odds for every side/outcome of ``event`` from the current ledger."""
        source = self.source(event, ledger, pools)
        quotes: dict[str, OddsQuote] = {}
        match source:
            case Frozen(pools=final, ledger=frozen_ledger):
                for key in self._keys(event, frozen_ledger):
                    derived = self._live_quote(event, frozen_ledger, key)
                    percent = final.reported_percent(key)
                    odds = final.reported_odds(key)
                    pool = final.reported_pool(key)
                    quotes[key] = OddsQuote(
                        key=key,
                        percent=percent if percent is not None else derived.percent,
                        odds=odds if odds is not None else derived.odds,
                        pool=pool if pool is not None else derived.pool,
                    )
                total = final.total_pool if final.total_pool is not None else frozen_ledger.total_pool
            case Live(ledger=live_ledger):
                for key in self._keys(event, live_ledger):
                    quotes[key] = self._live_quote(event, live_ledger, key)
                total = live_ledger.total_pool
            case Static(seeds=seeds):
                for key, percent in seeds.items():
                    quotes[key] = OddsQuote(key=key, percent=percent, odds=static_odds(percent))
                total = 0.0
        return OddsSnapshot(
            event_id=event.id,
            source=source_name(source),
            quotes=quotes,
            total_pool=total,
            low_liquidity=self.pool_is_thin(event, ledger),
            liquidity_warning=self.liquidity_warning(event, ledger),
        )

    def percent(self, event: Event, ledger: PoolLedger, key: str) -> int:
        if ledger.has_liquidity:
            return pool_percent(ledger.bucket(key), ledger.total_pool)
        return event.static_percent(key)

    def decimal_odds(self, event: Event, ledger: PoolLedger, key: str) -> float:
        side = ledger.bucket(key)
        if side > 0:
            return ledger.total_pool / side
        return static_odds(event.static_percent(key))

    def is_low_liquidity(self, total_pool: float, side_pool: float, amount: float) -> bool:
        """Opposing pool under ratio * stake, or the pre-stake total under the floor."""
        opposing = total_pool - side_pool
        return opposing < amount * self.low_liquidity_ratio or total_pool < self.low_liquidity_floor

    def preview(self, event: Event, ledger: PoolLedger, key: str, amount: float) -> BetPreview:
        """Project payout for a hypothetical stake. Matches the ledger after the real stake."""
        if event.is_resolved:
            raise EventNotOpen(event.id, event.status)
        stake = _check_amount(amount)
        side_pool = ledger.bucket(key)
        total_pool = ledger.total_pool
        new_side_total = side_pool + stake
        new_grand_total = total_pool + stake
        share = stake / new_side_total
        payout = share * new_grand_total
        preview = BetPreview(
            key=key,
            amount=stake,
            side_pool_before=side_pool,
            total_pool_before=total_pool,
            new_side_total=new_side_total,
            new_grand_total=new_grand_total,
            share=share,
            payout=payout,
            profit=payout - stake,
            effective_odds=new_grand_total / new_side_total,
            is_low_liquidity=self.is_low_liquidity(total_pool, side_pool, stake),
            snapshot=self.compute(event, ledger.with_stake(key, stake)),
        )
        log.debug(
            "bet_preview",
            event_id=event.id,
            key=key,
            amount=stake,
            payout=payout,
            low_liquidity=preview.is_low_liquidity,
        )
        return preview

    def pool_is_thin(self, event: Event, ledger: PoolLedger) -> bool:
        """Pool-level liquidity flag: under the floor, or fewer than two funded sides."""
        return ledger.total_pool < self.low_liquidity_floor or len(ledger.funded_keys()) < 2

    def liquidity_warning(self, event: Event, ledger: PoolLedger) -> str | None:
        if not ledger.has_liquidity:
            return "No bets yet. Your profit depends on others betting against you."
        if event.is_binary:
            for side in ("YES", "NO"):
                if ledger.bucket(side) == 0:
                    other = "NO" if side == "YES" else "YES"
                    return f"No {side} bets yet. If you bet {side} and no one bets {other}, profit is 0."
        elif len(ledger.funded_keys()) < 2:
            return "Only one outcome has bets. If it wins, everyone just gets their money back."
        if ledger.total_pool < self.low_liquidity_floor:
            return "Low activity. Your final odds depend on future bets."
        return None
