"""Resolution-time settlement and open-position projections."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable

from predpool.ledger.pool import PoolLedger
from predpool.models.bet import Bet
from predpool.models.event import Event
from predpool.odds.calculator import OddsCalculator


@dataclass(frozen=True)
class Payout:
    bet: Bet
    payout: float
    profit: float
    won: bool


@dataclass
class Settlement:
    winning_key: str
    total_pool: float
    winning_pool: float
    payouts: list[Payout] = field(default_factory=list)
    message: str | None = None

    @property
    def losing_pool(self) -> float:
        return self.total_pool - self.winning_pool

    @property
    def total_paid_out(self) -> float:
        return sum(p.payout for p in self.payouts)


def settle(bets: Iterable[Bet], winning_key: str) -> Settlement:
    """Distribute the whole pool to the winning side, pro rata.

    Each winner receives ``amount / winning_pool * total_pool``: the same
    share * total formula the preview uses. With no winning stake nobody is
    paid; with no losing stake winners get their stake back.
    """
    bets = list(bets)
    total_pool = 0.0
    winning_pool = 0.0
    for bet in bets:
        total_pool += bet.amount
        if bet.key == winning_key:
            winning_pool += bet.amount

    if winning_pool <= 0:
        return Settlement(
            winning_key=winning_key,
            total_pool=total_pool,
            winning_pool=0.0,
            payouts=[Payout(bet=b, payout=0.0, profit=-b.amount, won=False) for b in bets],
            message="No winners - all bets were on the losing side.",
        )

    if winning_pool == total_pool:
        return Settlement(
            winning_key=winning_key,
            total_pool=total_pool,
            winning_pool=winning_pool,
            payouts=[Payout(bet=b, payout=b.amount, profit=0.0, won=True) for b in bets],
            message="All bets were on the winning side - original stakes returned.",
        )

    payouts: list[Payout] = []
    for bet in bets:
        if bet.key != winning_key:
            payouts.append(Payout(bet=bet, payout=0.0, profit=-bet.amount, won=False))
            continue
        amount = (bet.amount / winning_pool) * total_pool
        payouts.append(Payout(bet=bet, payout=amount, profit=amount - bet.amount, won=True))
    return Settlement(
        winning_key=winning_key,
        total_pool=total_pool,
        winning_pool=winning_pool,
        payouts=payouts,
    )


@dataclass(frozen=True)
class PositionLine:
    key: str
    amount: float
    potential_payout: float
    potential_profit: float


def position(
    event: Event,
    ledger: PoolLedger,
    bets: Iterable[Bet],
    calculator: OddsCalculator | None = None,
) -> list[PositionLine]:
    """A bettor's stake per side/outcome and what it would pay at current odds."""
    calculator = calculator or OddsCalculator()
    stakes: dict[str, float] = defaultdict(float)
    for bet in bets:
        if bet.event_id == event.id:
            stakes[bet.key] += bet.amount
    lines = []
    for key, amount in stakes.items():
        multiplier = calculator.decimal_odds(event, ledger, key) if ledger.bucket(key) > 0 else 1.0
        payout = amount * multiplier
        lines.append(PositionLine(key=key, amount=amount, potential_payout=payout, potential_profit=payout - amount))
    return lines
