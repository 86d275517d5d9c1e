"""Shared fixtures: in-memory market and social APIs, sample events."""

from __future__ import annotations

import asyncio
import itertools
from datetime import datetime, timezone

import pytest

from predpool.client.base import BetPlacement, EventDetail
from predpool.errors import NetworkError
from predpool.ledger.mirror import LedgerMirror
from predpool.ledger.pool import PoolLedger
from predpool.models import Event, EventOutcome, GossipMessage, PoolData


def binary_event(event_id: int = 1, status: str = "open", **kwargs) -> Event:
    return Event(id=event_id, title="Will it rain?", event_type="binary", status=status, **kwargs)


def multiple_event(event_id: int = 2, status: str = "open", **kwargs) -> Event:
    outcomes = [
        EventOutcome(id="a", label="Alpha", probability=40),
        EventOutcome(id="b", label="Beta", probability=35),
        EventOutcome(id="c", label="Gamma", probability=25),
    ]
    return Event(id=event_id, title="Who wins?", event_type="multiple", status=status, outcomes=outcomes, **kwargs)


def binary_pools(yes: float, no: float) -> PoolData:
    return PoolData(total_pool=yes + no, yes_pool=yes, no_pool=no)


class FakeMarketAPI:
    """MarketAPI over in-memory state. Set ``*_error`` to make the next call(s) fail."""

    def __init__(self, event: Event, pools: PoolData | None = None) -> None:
        self.event = event
        self.pools = pools or PoolData()
        self.detail_calls = 0
        self.odds_calls = 0
        self.placed: list[tuple[int, str, float, bool]] = []
        self.calls: list[str] = []
        self.detail_error: Exception | None = None
        self.odds_error: Exception | None = None
        self.place_error: Exception | None = None
        self.odds_after: PoolData | None = None
        self.detail_includes_pools = True
        self.place_gate: asyncio.Event | None = None
        self._bet_ids = itertools.count(100)

    async def fetch_event_detail(self, event_id: int) -> EventDetail:
        self.detail_calls += 1
        self.calls.append("detail")
        if self.detail_error is not None:
            raise self.detail_error
        return EventDetail(event=self.event, pools=self.pools if self.detail_includes_pools else None)

    async def fetch_odds(self, event_id: int) -> PoolData:
        self.odds_calls += 1
        self.calls.append("odds")
        if self.odds_error is not None:
            raise self.odds_error
        return self.pools

    async def place_bet(self, event_id: int, key: str, amount: float, *, binary: bool = True) -> BetPlacement:
        self.calls.append("place")
        if self.place_gate is not None:
            await self.place_gate.wait()
        if self.place_error is not None:
            error, self.place_error = self.place_error, None
            raise error
        self.placed.append((event_id, key, amount, binary))
        return BetPlacement(bet_id=next(self._bet_ids), potential_return=amount * 2, odds_after=self.odds_after)

    async def fetch_event_activity(self, event_id: int) -> list:
        return []


class FakeSocialAPI:
    """SocialAPI that echoes posts back without ``reply_to_id``, like the real backend."""

    def __init__(self, messages: list[GossipMessage] | None = None) -> None:
        self.messages = list(messages or [])
        self.posts: list[tuple[int, str, int | None]] = []
        self.fail_next = 0
        self.load_error: Exception | None = None
        self.post_gate: asyncio.Event | None = None
        self._ids = itertools.count(1000)

    async def fetch_gossip(self, event_id: int) -> list[GossipMessage]:
        if self.load_error is not None:
            raise self.load_error
        return list(self.messages)

    async def post_gossip(self, event_id: int, text: str, reply_to_id: int | None = None) -> GossipMessage:
        self.posts.append((event_id, text, reply_to_id))
        if self.post_gate is not None:
            await self.post_gate.wait()
        if self.fail_next > 0:
            self.fail_next -= 1
            raise NetworkError("connection reset")
        msg = GossipMessage(
            id=next(self._ids),
            user_id=7,
            message=text,
            created_at="2026-01-01 12:00:00",
            user_name="Me",
            user_username="me",
        )
        self.messages.append(msg)
        return msg


class FakeClock:
    def __init__(self, t: float = 1000.0) -> None:
        self.t = t

    def __call__(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds


@pytest.fixture
def event() -> Event:
    return binary_event()


@pytest.fixture
def mc_event() -> Event:
    return multiple_event()


@pytest.fixture
def mirror() -> LedgerMirror:
    return LedgerMirror()


@pytest.fixture
def ledger() -> PoolLedger:
    return PoolLedger(1, {"YES": 300, "NO": 700})


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
