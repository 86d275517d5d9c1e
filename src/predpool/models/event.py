"""Event, EventOutcome - prediction events and their static seeds."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from predpool.models.pools import PoolData

BINARY_KEYS = ("YES", "NO")

EventType = Literal["binary", "multiple"]
EventStatus = Literal["open", "closed", "resolved"]


class EventOutcome(BaseModel):
    """Multiple-choice outcome with its pre-seeded probability."""

    id: str
    label: str = ""
    probability: int = Field(0, ge=0, le=100)
    percent: int | None = None
    odds: float | None = None
    pool: float | None = None


class Event(BaseModel):
    """Prediction event. Owns at most one pool ledger (kept in LedgerMirror)."""

    id: int
    title: str = ""
    event_type: EventType = "binary"
    status: EventStatus = "open"
    closes_at: datetime | None = None
    yes_percent: int | None = None
    no_percent: int | None = None
    outcomes: list[EventOutcome] = Field(default_factory=list)
    winning_side: str | None = None
    winning_outcome_id: str | None = None
    pools: PoolData | None = None

    @field_validator("closes_at")
    @classmethod
    def _assume_utc(cls, v: datetime | None) -> datetime | None:
        # Backend sends naive "YYYY-MM-DD HH:MM:SS" timestamps in UTC
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def is_binary(self) -> bool:
        return self.event_type == "binary"

    @property
    def is_open(self) -> bool:
        return self.status == "open"

    @property
    def is_resolved(self) -> bool:
        return self.status == "resolved"

    @property
    def winning_key(self) -> str | None:
        if not self.is_resolved:
            return None
        if self.is_binary:
            return self.winning_side.upper() if self.winning_side else None
        return self.winning_outcome_id

    def keys(self) -> list[str]:
        """Sides (binary) or outcome ids (multiple), in display order."""
        if self.is_binary:
            return list(BINARY_KEYS)
        return [o.id for o in self.outcomes]

    def normalize_key(self, key: str) -> str | None:
        """Canonical form of a side/outcome key, or None if the event does not know it."""
        if self.is_binary:
            upper = key.strip().upper()
            return upper if upper in BINARY_KEYS else None
        return key if any(o.id == key for o in self.outcomes) else None

    def outcome(self, key: str) -> EventOutcome | None:
        for o in self.outcomes:
            if o.id == key:
                return o
        return None

    def static_percent(self, key: str) -> int:
        """Seeded probability for a side/outcome, used when the pool is empty."""
        if self.is_binary:
            side = key.upper()
            if side == "YES":
                if self.yes_percent is not None:
                    return self.yes_percent
                if self.no_percent is not None:
                    return 100 - self.no_percent
                return 50
            if side == "NO":
                if self.no_percent is not None:
                    return self.no_percent
                if self.yes_percent is not None:
                    return 100 - self.yes_percent
                return 50
            return 0
        outcome = self.outcome(key)
        if outcome is None:
            return 0
        return outcome.percent if outcome.percent is not None else outcome.probability

    def seconds_to_close(self, now: datetime | None = None) -> float | None:
        if self.closes_at is None:
            return None
        now = now or datetime.now(timezone.utc)
        return (self.closes_at - now).total_seconds()
