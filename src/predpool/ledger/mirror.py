"""Local ledger mirror - one PoolLedger per event, overwritten by every successful fetch."""

from __future__ import annotations

import structlog

from predpool.ledger.pool import PoolLedger

log = structlog.get_logger(__name__)


class LedgerMirror:
    """Holds the local PoolLedger per event id.

    The remote market API is the source of truth: ``replace`` overwrites the
    local copy with fetched state. Optimistic stakes from the bet executor are a
    bridge until the next refresh. Every replacement or optimistic stake bumps a
    per-event generation so a rollback never clobbers newer state.
    """

    def __init__(self) -> None:
        self._ledgers: dict[int, PoolLedger] = {}
        self._generations: dict[int, int] = {}

    def get(self, event_id: int) -> PoolLedger | None:
        return self._ledgers.get(event_id)

    def ensure(self, event_id: int) -> PoolLedger:
        if event_id not in self._ledgers:
            self._ledgers[event_id] = PoolLedger(event_id)
            self._generations.setdefault(event_id, 0)
        return self._ledgers[event_id]

    def generation(self, event_id: int) -> int:
        return self._generations.get(event_id, 0)

    def _bump(self, event_id: int) -> int:
        self._generations[event_id] = self._generations.get(event_id, 0) + 1
        return self._generations[event_id]

    def replace(self, event_id: int, ledger: PoolLedger) -> None:
        """Authoritative overwrite from a remote fetch."""
        self._ledgers[event_id] = ledger
        self._bump(event_id)

    def apply_stake(self, event_id: int, key: str, amount: float) -> tuple[PoolLedger, int]:
        """Optimistically mirror a stake. Returns (pre-stake copy, generation) for rollback."""
        ledger = self.ensure(event_id)
        before = ledger.copy()
        ledger.apply_stake(key, amount)
        return before, self._bump(event_id)

    def rollback(self, event_id: int, before: PoolLedger, generation: int) -> bool:
        """Undo an optimistic stake unless the ledger changed since (refresh or another stake)."""
        if self.generation(event_id) != generation:
            log.info("ledger_rollback_skipped", event_id=event_id, msg="Ledger changed since the optimistic stake.")
            return False
        self._ledgers[event_id] = before
        self._bump(event_id)
        return True

    def drop(self, event_id: int) -> None:
        self._ledgers.pop(event_id, None)
        self._generations.pop(event_id, None)

    def event_ids(self) -> list[int]:
        return list(self._ledgers)
