"""Events emitted to UI and notification collaborators."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Union

import structlog

from predpool.models.gossip import DeliveryState

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class OddsDelta:
    """Cosmetic percent change for one key; shown for ``ttl`` seconds."""

    event_id: int
    key: str
    delta: int
    ttl: float = 2.5


@dataclass(frozen=True)
class NotableSwing:
    """Percent moved by at least the swing threshold between two refreshes."""

    event_id: int
    key: str
    delta: int


@dataclass(frozen=True)
class ClosingSoon:
    event_id: int
    minutes_remaining: int


@dataclass(frozen=True)
class GossipStateChanged:
    event_id: int
    local_id: str
    state: DeliveryState


Signal = Union[OddsDelta, NotableSwing, ClosingSoon, GossipStateChanged]
Listener = Callable[[Signal], None]


class SignalBus:
    """Fan-out of signals to listeners. A failing listener never breaks the emitter."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, signal: Signal) -> None:
        for listener in list(self._listeners):
            try:
                listener(signal)
            except Exception as e:
                log.warning("signal_listener_failed", signal=type(signal).__name__, error=str(e))

    def __len__(self) -> int:
        return len(self._listeners)
