"""Bet placement: validate, preview, commit remotely, mirror the stake locally."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Awaitable, Callable

import structlog

from predpool.client.base import BalanceProvider, MarketAPI
from predpool.errors import (
    EventNotOpen,
    InsufficientBalance,
    InvalidOutcome,
    InvalidStake,
    NetworkError,
    RemoteRejected,
)
from predpool.ledger.mirror import LedgerMirror
from predpool.ledger.pool import PoolLedger
from predpool.models import Bet, BetReceipt, Event
from predpool.odds.calculator import BetPreview, OddsCalculator

log = structlog.get_logger(__name__)

Refresher = Callable[[int], Awaitable[object]]


class BetExecutor:
    """Validates wagers and applies them.

    The market API holds the authoritative pool. After a successful commit the
    stake is mirrored into the local ledger so odds reflect it immediately; a
    failed commit rolls the mirror back. After a ``NetworkError`` the outcome
    is ambiguous, so the next attempt on that event forces a refresh first.
    """

    def __init__(
        self,
        api: MarketAPI,
        mirror: LedgerMirror,
        calculator: OddsCalculator | None = None,
        *,
        balance: BalanceProvider | None = None,
        refresher: Refresher | None = None,
        min_stake: float = 1.0,
    ) -> None:
        self.api = api
        self.mirror = mirror
        self.calculator = calculator or OddsCalculator()
        self.balance = balance
        self.refresher = refresher
        self.min_stake = min_stake
        self._needs_resync: set[int] = set()

    def validate(self, event: Event, key: str, amount: object) -> str:
        """Return the canonical key, or raise a validation error."""
        if not event.is_open:
            raise EventNotOpen(event.id, event.status)
        canonical = event.normalize_key(key)
        if canonical is None:
            raise InvalidOutcome(event.id, key)
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            raise InvalidStake(amount, "Amount must be a number")
        if not math.isfinite(amount):
            raise InvalidStake(amount, "Amount must be finite")
        if amount <= 0:
            raise InvalidStake(amount)
        if amount < self.min_stake:
            raise InvalidStake(amount, f"Minimum bet is {self.min_stake:g} tokens")
        return canonical

    def ledger(self, event: Event) -> PoolLedger:
        ledger = self.mirror.get(event.id)
        if ledger is None:
            ledger = PoolLedger.from_pools(event, event.pools)
            self.mirror.replace(event.id, ledger)
        return ledger

    def preview(self, event: Event, key: str, amount: float) -> BetPreview:
        canonical = self.validate(event, key, amount)
        return self.calculator.preview(event, self.ledger(event), canonical, float(amount))

    async def _check_balance(self, amount: float) -> None:
        if self.balance is None:
            return
        available = await self.balance.available_balance()
        if available is not None and available < amount:
            raise InsufficientBalance(
                f"Insufficient token balance. You have {available:,.0f} tokens.",
                available=available,
            )

    async def _refresh(self, event_id: int) -> bool:
        """Run the injected refresher. Returns False if it raised."""
        if self.refresher is None:
            return True
        try:
            await self.refresher(event_id)
        except Exception as e:
            log.warning("bet_refresh_failed", event_id=event_id, error=str(e))
            return False
        return True

    async def place(
        self,
        event: Event,
        key: str,
        amount: float,
        bettor_id: int | str | None = None,
    ) -> BetReceipt:
        """Commit a bet. Raises the validation errors, InsufficientBalance, RemoteRejected or NetworkError."""
        canonical = self.validate(event, key, amount)
        stake = float(amount)
        await self._check_balance(stake)

        if event.id in self._needs_resync:
            log.info("bet_resync_before_retry", event_id=event.id)
            if await self._refresh(event.id):
                self._needs_resync.discard(event.id)

        self.ledger(event)
        before, generation = self.mirror.apply_stake(event.id, canonical, stake)
        try:
            placement = await self.api.place_bet(event.id, canonical, stake, binary=event.is_binary)
        except RemoteRejected as e:
            self._undo(event.id, before, generation)
            log.info("bet_rejected", event_id=event.id, key=canonical, amount=stake, error=e.message)
            if "insufficient" in e.message.lower():
                raise InsufficientBalance(e.message) from e
            raise
        except NetworkError:
            self._undo(event.id, before, generation)
            self._needs_resync.add(event.id)
            log.warning("bet_network_error", event_id=event.id, key=canonical, amount=stake)
            raise
        except BaseException:
            # Outcome unknown (cancelled or unexpected failure): treat like a network error
            self._undo(event.id, before, generation)
            self._needs_resync.add(event.id)
            log.warning("bet_commit_interrupted", event_id=event.id, key=canonical, amount=stake)
            raise

        bet = Bet(
            event_id=event.id,
            key=canonical,
            amount=stake,
            placed_at=datetime.now(timezone.utc),
            bettor_id=bettor_id,
            bet_id=placement.bet_id,
        )
        if placement.odds_after is not None:
            authoritative = PoolLedger.from_pools(event, placement.odds_after)
            if authoritative.has_liquidity:
                self.mirror.replace(event.id, authoritative)
        log.info("bet_placed", event_id=event.id, key=canonical, amount=stake, bet_id=bet.bet_id)
        await self._refresh(event.id)
        return BetReceipt(
            bet=bet,
            potential_return=placement.potential_return,
            potential_profit=placement.potential_profit,
            new_balance=placement.new_balance,
            odds_before=placement.odds_before,
            odds_after=placement.odds_after,
        )

    def _undo(self, event_id: int, before: PoolLedger, generation: int) -> None:
        if not self.mirror.rollback(event_id, before, generation):
            # Ledger moved on since the optimistic stake; next refresh re-syncs it
            self._needs_resync.add(event_id)

    def needs_resync(self, event_id: int) -> bool:
        return event_id in self._needs_resync
