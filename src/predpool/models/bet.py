"""Bet, BetReceipt, ActivityBet - committed wagers."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from predpool.models.pools import PoolData


class Bet(BaseModel):
    """Committed stake. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    event_id: int
    key: str  # "YES"/"NO" or outcome id
    amount: float = Field(..., gt=0)
    placed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    bettor_id: int | str | None = None
    bet_id: int | None = None


class BetReceipt(BaseModel):
    """Result of a successful commit, as reported by the market API."""

    bet: Bet
    potential_return: float | None = None
    potential_profit: float | None = None
    new_balance: float | None = None
    odds_before: PoolData | None = None
    odds_after: PoolData | None = None


class ActivityBet(BaseModel):
    """Bet entry from the event activity feed."""

    id: int
    timestamp: str = ""
    side: str | None = None
    outcome_id: str | None = None
    notional: float = 0.0
    user_name: str | None = None
    user_username: str | None = None

    @property
    def key(self) -> str | None:
        return self.side or self.outcome_id
