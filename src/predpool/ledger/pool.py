"""Parimutuel pool ledger - accumulated stake per side/outcome of one event."""

from __future__ import annotations

import math

import structlog

from predpool.models.event import Event
from predpool.models.pools import PoolData

log = structlog.get_logger(__name__)


class PoolLedger:
    """Per-event pool balances. Pure value type: only ``apply_stake`` mutates.

    Unknown keys read as zero so outcomes introduced by the server need no
    client-side allow-list. The total is kept as a running sum, incremented
    by the same addition as the bucket, so ``P_total + A`` computed for a
    preview equals the total after the real stake is applied.
    """

    __slots__ = ("event_id", "_buckets", "_total")

    def __init__(self, event_id: int, buckets: dict[str, float] | None = None) -> None:
        self.event_id = event_id
        self._buckets: dict[str, float] = {}
        self._total = 0.0
        for key, amount in (buckets or {}).items():
            amount = float(amount)
            if amount < 0 or not math.isfinite(amount):
                log.warning("ledger_invalid_bucket", event_id=event_id, key=key, amount=amount)
                continue
            self._buckets[key] = amount
            self._total += amount

    @classmethod
    def from_pools(cls, event: Event, pools: PoolData | None) -> PoolLedger:
        """Build from a pool payload. Absent bucket fields count as zero."""
        buckets: dict[str, float] = {}
        if pools is not None:
            if event.is_binary:
                buckets["YES"] = pools.yes_pool or 0.0
                buckets["NO"] = pools.no_pool or 0.0
            else:
                for o in pools.outcomes or []:
                    buckets[o.id] = o.pool
            if pools.total_pool and not any(buckets.values()):
                log.warning(
                    "ledger_missing_buckets",
                    event_id=event.id,
                    total_pool=pools.total_pool,
                    msg="Pool payload has a total but no per-side amounts; using static odds.",
                )
        return cls(event.id, buckets)

    @property
    def total_pool(self) -> float:
        return self._total

    @property
    def has_liquidity(self) -> bool:
        return self._total > 0

    def bucket(self, key: str) -> float:
        return self._buckets.get(key, 0.0)

    def buckets(self) -> dict[str, float]:
        return dict(self._buckets)

    def funded_keys(self) -> list[str]:
        return [k for k, v in self._buckets.items() if v > 0]

    def apply_stake(self, key: str, amount: float) -> None:
        """Add a positive, finite stake to ``key``."""
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            raise ValueError(f"stake must be a number, got {amount!r}")
        if not math.isfinite(amount) or amount <= 0:
            raise ValueError(f"stake must be positive and finite, got {amount!r}")
        self._buckets[key] = self._buckets.get(key, 0.0) + amount
        self._total += amount

    def with_stake(self, key: str, amount: float) -> PoolLedger:
        """Copy of this ledger with the stake applied."""
        ledger = self.copy()
        ledger.apply_stake(key, amount)
        return ledger

    def copy(self) -> PoolLedger:
        ledger = PoolLedger(self.event_id)
        ledger._buckets = dict(self._buckets)
        ledger._total = self._total
        return ledger

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PoolLedger):
            return NotImplemented
        return (
            self.event_id == other.event_id
            and self._buckets == other._buckets
            and self._total == other._total
        )

    def __repr__(self) -> str:
        return f"PoolLedger(event_id={self.event_id!r}, buckets={self._buckets!r}, total={self._total!r})"
