"""Canonical schema (Pydantic) - Event, PoolData, Bet, GossipMessage."""

from predpool.models.bet import ActivityBet, Bet, BetReceipt
from predpool.models.event import BINARY_KEYS, Event, EventOutcome
from predpool.models.gossip import DeliveryState, GossipMessage
from predpool.models.pools import OutcomePool, PoolData

__all__ = [
    "BINARY_KEYS",
    "Event",
    "EventOutcome",
    "PoolData",
    "OutcomePool",
    "Bet",
    "BetReceipt",
    "ActivityBet",
    "GossipMessage",
    "DeliveryState",
]
