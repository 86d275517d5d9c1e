"""GossipMessage - threaded chat attached to an event."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class DeliveryState(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class GossipMessage(BaseModel):
    """Chat message. ``id`` is negative while the message is only provisional."""

    id: int
    event_id: int | None = None
    user_id: int | None = None
    message: str
    created_at: str = ""
    reply_to_id: int | None = None
    user_name: str | None = None
    user_username: str | None = None
    # Local-only fields for optimistic send tracking
    local_id: str | None = None
    state: DeliveryState = DeliveryState.SENT

    @property
    def is_provisional(self) -> bool:
        return self.id < 0
