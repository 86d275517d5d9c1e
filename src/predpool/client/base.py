"""Remote collaborators: the market API (events, pools, bets) and the social API (gossip)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from predpool.models import ActivityBet, Event, GossipMessage, PoolData


@dataclass
class EventDetail:
    event: Event
    pools: PoolData | None = None


@dataclass
class BetPlacement:
    """Server acknowledgement of a committed bet."""

    bet_id: int | None = None
    potential_return: float | None = None
    potential_profit: float | None = None
    new_balance: float | None = None
    odds_before: PoolData | None = None
    odds_after: PoolData | None = None


class MarketAPI(Protocol):
    """Events, pools and bets. Raises RemoteRejected / NetworkError."""

    async def fetch_event_detail(self, event_id: int) -> EventDetail: ...

    async def fetch_odds(self, event_id: int) -> PoolData: ...

    async def place_bet(self, event_id: int, key: str, amount: float, *, binary: bool = True) -> BetPlacement: ...

    async def fetch_event_activity(self, event_id: int) -> list[ActivityBet]: ...


class SocialAPI(Protocol):
    """Threaded gossip attached to events."""

    async def fetch_gossip(self, event_id: int) -> list[GossipMessage]: ...

    async def post_gossip(self, event_id: int, text: str, reply_to_id: int | None = None) -> GossipMessage: ...


class BalanceProvider(Protocol):
    """Current spendable balance of the bettor (owned by the session layer)."""

    async def available_balance(self) -> float | None: ...
