"""Live odds refresh - coalesced polling, swing detection, closing-soon signal."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

import structlog

from predpool.client.base import MarketAPI
from predpool.ledger.mirror import LedgerMirror
from predpool.ledger.pool import PoolLedger
from predpool.models import Event, PoolData
from predpool.odds.calculator import OddsCalculator, OddsSnapshot
from predpool.signals import ClosingSoon, Listener, NotableSwing, OddsDelta, Signal, SignalBus

log = structlog.get_logger(__name__)


@dataclass
class _EventSync:
    """Per-event refresh state. Owned by one LiveOddsSync."""

    event: Event | None = None
    pools: PoolData | None = None
    snapshot: OddsSnapshot | None = None
    last_fetch_at: float | None = None
    inflight: asyncio.Task | None = None
    percents: dict[str, int] = field(default_factory=dict)
    deltas: dict[str, tuple[int, float]] = field(default_factory=dict)  # key -> (delta, expires_at)
    fetch_count: int = 0


class SyncHandle:
    """Cancellable polling loop for one event, owned and disposed by the caller."""

    def __init__(self, event_id: int, listener: Listener | None = None) -> None:
        self.event_id = event_id
        self._listener = listener
        self._task: asyncio.Task | None = None
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait(self) -> None:
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    def deliver(self, signal: Signal) -> None:
        if self._cancelled or self._listener is None:
            return
        try:
            self._listener(signal)
        except Exception as e:
            log.warning("sync_listener_failed", event_id=self.event_id, error=str(e))


class LiveOddsSync:
    """Keeps the local ledger mirror fresh and reports odds movement.

    A non-forced refresh within ``coalesce_window`` seconds of the last completed
    fetch returns the cached snapshot. Concurrent refreshes for one event join
    the in-flight fetch. Fetch failures are logged and the previous snapshot is
    kept; the next cycle tries again.
    """

    def __init__(
        self,
        api: MarketAPI,
        mirror: LedgerMirror,
        calculator: OddsCalculator | None = None,
        bus: SignalBus | None = None,
        *,
        refresh_interval: float = 5.0,
        coalesce_window: float = 3.0,
        delta_ttl: float = 2.5,
        swing_threshold: int = 5,
        closing_soon_minutes: int = 15,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.api = api
        self.mirror = mirror
        self.calculator = calculator or OddsCalculator()
        self.bus = bus or SignalBus()
        self.refresh_interval = refresh_interval
        self.coalesce_window = coalesce_window
        self.delta_ttl = delta_ttl
        self.swing_threshold = swing_threshold
        self.closing_soon_seconds = closing_soon_minutes * 60
        self._clock = clock
        self._now = now
        self._states: dict[int, _EventSync] = {}
        self._handles: dict[int, list[SyncHandle]] = {}
        self._focus: SyncHandle | None = None
        self._closing_notified: set[int] = set()

    def _state(self, event_id: int) -> _EventSync:
        if event_id not in self._states:
            self._states[event_id] = _EventSync()
        return self._states[event_id]

    # Read side

    def snapshot(self, event_id: int) -> OddsSnapshot | None:
        state = self._states.get(event_id)
        return state.snapshot if state else None

    def event(self, event_id: int) -> Event | None:
        state = self._states.get(event_id)
        return state.event if state else None

    def fetch_count(self, event_id: int) -> int:
        state = self._states.get(event_id)
        return state.fetch_count if state else 0

    def active_deltas(self, event_id: int) -> dict[str, int]:
        """Unexpired cosmetic deltas for an event."""
        state = self._states.get(event_id)
        if state is None:
            return {}
        now = self._clock()
        state.deltas = {k: v for k, v in state.deltas.items() if v[1] > now}
        return {k: delta for k, (delta, _) in state.deltas.items()}

    # Refresh

    async def refresh(self, event_id: int, *, force: bool = False) -> OddsSnapshot | None:
        """Fetch fresh pools unless a recent fetch (or one in flight) already covers it."""
        state = self._state(event_id)
        if state.inflight is not None and not state.inflight.done():
            return await asyncio.shield(state.inflight)
        if (
            not force
            and state.last_fetch_at is not None
            and self._clock() - state.last_fetch_at < self.coalesce_window
        ):
            return state.snapshot
        task = asyncio.create_task(self._fetch(event_id))
        state.inflight = task
        task.add_done_callback(lambda t: self._clear_inflight(event_id, t))
        return await asyncio.shield(task)

    def _clear_inflight(self, event_id: int, task: asyncio.Task) -> None:
        state = self._states.get(event_id)
        if state is not None and state.inflight is task:
            state.inflight = None

    async def on_bet_placed(self, event_id: int) -> OddsSnapshot | None:
        return await self.refresh(event_id, force=True)

    async def _fetch(self, event_id: int) -> OddsSnapshot | None:
        state = self._state(event_id)
        detail, pools = await asyncio.gather(
            self.api.fetch_event_detail(event_id),
            self.api.fetch_odds(event_id),
            return_exceptions=True,
        )
        if isinstance(detail, BaseException):
            log.warning("odds_detail_fetch_failed", event_id=event_id, error=str(detail))
            detail = None
        if isinstance(pools, BaseException):
            log.warning("odds_pool_fetch_failed", event_id=event_id, error=str(pools))
            pools = detail.pools if detail is not None else None
        if detail is None and pools is None:
            return state.snapshot
        if detail is not None:
            state.event = detail.event
        event = state.event
        if event is None:
            log.warning("odds_refresh_without_event", event_id=event_id)
            return state.snapshot

        if pools is not None:
            ledger = PoolLedger.from_pools(event, pools)
            self.mirror.replace(event_id, ledger)
            state.pools = pools
            state.last_fetch_at = self._clock()
            state.fetch_count += 1
        else:
            # Detail only: no fresh pool, so the coalescing clock stays put
            ledger = self.mirror.ensure(event_id)
        snapshot = self.calculator.compute(event, ledger, state.pools)
        self._detect_swings(event_id, state, snapshot)
        self._check_closing(event_id, event)
        state.snapshot = snapshot
        log.debug("odds_refreshed", event_id=event_id, source=snapshot.source, total_pool=snapshot.total_pool)
        return snapshot

    def _detect_swings(self, event_id: int, state: _EventSync, snapshot: OddsSnapshot) -> None:
        current = snapshot.percents()
        previous = state.percents
        expires_at = self._clock() + self.delta_ttl
        for key, value in current.items():
            delta = value - previous.get(key, value)
            if delta == 0:
                continue
            state.deltas[key] = (delta, expires_at)
            self._emit(event_id, OddsDelta(event_id=event_id, key=key, delta=delta, ttl=self.delta_ttl))
            if abs(delta) >= self.swing_threshold:
                log.info("odds_swing", event_id=event_id, key=key, delta=delta)
                self._emit(event_id, NotableSwing(event_id=event_id, key=key, delta=delta))
        state.percents = current

    def _check_closing(self, event_id: int, event: Event) -> None:
        if event_id in self._closing_notified:
            return
        remaining = event.seconds_to_close(self._now())
        if remaining is None:
            return
        if 0 < remaining < self.closing_soon_seconds:
            self._closing_notified.add(event_id)
            self._emit(event_id, ClosingSoon(event_id=event_id, minutes_remaining=int(remaining // 60)))

    def _emit(self, event_id: int, signal: Signal) -> None:
        self.bus.emit(signal)
        for handle in self._handles.get(event_id, []):
            handle.deliver(signal)

    # Polling lifecycle

    def start(self, event_id: int, listener: Listener | None = None) -> SyncHandle:
        """Poll ``event_id`` every ``refresh_interval`` seconds until the handle is cancelled."""
        handle = SyncHandle(event_id, listener)
        handle._task = asyncio.create_task(self._poll(handle))
        self._handles.setdefault(event_id, []).append(handle)
        handle._task.add_done_callback(lambda _: self._forget(handle))
        log.info("odds_sync_started", event_id=event_id, interval=self.refresh_interval)
        return handle

    def focus(self, event_id: int, listener: Listener | None = None) -> SyncHandle:
        """Switch the focused event: stop polling the previous one, start this one."""
        if self._focus is not None:
            self._focus.cancel()
        self._focus = self.start(event_id, listener)
        return self._focus

    async def _poll(self, handle: SyncHandle) -> None:
        while not handle.cancelled:
            try:
                await self.refresh(handle.event_id)
            except Exception as e:
                log.warning("odds_poll_error", event_id=handle.event_id, error=str(e))
            await asyncio.sleep(self.refresh_interval)

    def _forget(self, handle: SyncHandle) -> None:
        handles = self._handles.get(handle.event_id, [])
        if handle in handles:
            handles.remove(handle)
        if not handles:
            self._handles.pop(handle.event_id, None)
        log.info("odds_sync_stopped", event_id=handle.event_id)

    def close(self) -> None:
        """Cancel every polling loop. In-flight fetches finish but reach no listener."""
        for handles in list(self._handles.values()):
            for handle in list(handles):
                handle.cancel()
        self._focus = None
