"""PoolData, OutcomePool - pool payload as returned by the market API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class OutcomePool(BaseModel):
    """Per-outcome pool entry (multiple-choice events)."""

    id: str
    label: str = ""
    pool: float = Field(0.0, ge=0)
    percent: int | None = None
    odds: float | None = None


class PoolData(BaseModel):
    """Pool payload. Any field may be absent; numbers may arrive as strings."""

    total_pool: float | None = None
    yes_pool: float | None = None
    no_pool: float | None = None
    yes_percent: int | None = None
    no_percent: int | None = None
    yes_odds: float | None = None
    no_odds: float | None = None
    outcomes: list[OutcomePool] | None = None
    low_liquidity: bool | None = None
    liquidity_warning: str | None = None

    def reported_percent(self, key: str) -> int | None:
        """Server-computed percent for a side/outcome, if present."""
        if key == "YES":
            return self.yes_percent
        if key == "NO":
            return self.no_percent
        for o in self.outcomes or []:
            if o.id == key:
                return o.percent
        return None

    def reported_odds(self, key: str) -> float | None:
        if key == "YES":
            return self.yes_odds
        if key == "NO":
            return self.no_odds
        for o in self.outcomes or []:
            if o.id == key:
                return o.odds
        return None

    def reported_pool(self, key: str) -> float | None:
        if key == "YES":
            return self.yes_pool
        if key == "NO":
            return self.no_pool
        for o in self.outcomes or []:
            if o.id == key:
                return o.pool
        return None
