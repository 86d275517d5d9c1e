"""Optimistic gossip send and reconciliation against server-confirmed messages.

Each logical send is keyed by a client-generated ``local_id``:

    pending --ack--> sent      (replaced by the authoritative record)
    pending --err--> failed    (stays visible in place, retryable)
    failed --retry--> pending  (same local_id, same provisional id)

At most one visible entry exists per ``local_id`` whatever the retry count.
"""

from __future__ import annotations

import itertools
import uuid
from dataclasses import dataclass
from typing import Callable, Iterable

import structlog

from predpool.client.base import SocialAPI
from predpool.errors import InvalidMessage, RemoteError
from predpool.models import DeliveryState, GossipMessage
from predpool.signals import GossipStateChanged, SignalBus

log = structlog.get_logger(__name__)

MAX_MESSAGE_LENGTH = 1000


@dataclass
class PendingGossip:
    """Optimistic entry. ``seq`` orders pending entries most-recent-first."""

    message: GossipMessage
    seq: int

    @property
    def local_id(self) -> str:
        return self.message.local_id or ""

    @property
    def state(self) -> DeliveryState:
        return self.message.state


@dataclass(frozen=True)
class GossipDisplayItem:
    key: str
    message: GossipMessage
    state: DeliveryState
    reply_label: str | None = None


def _recency(message: GossipMessage) -> tuple[str, int]:
    return (message.created_at, message.id)


def merge_thread(pending: Iterable[PendingGossip], confirmed: Iterable[GossipMessage]) -> list[GossipDisplayItem]:
    """Render order: optimistic entries (newest first) above confirmed ones (newest first)."""
    confirmed = sorted(confirmed, key=_recency, reverse=True)
    by_id = {m.id: m for m in confirmed}

    def label(message: GossipMessage) -> str | None:
        if message.reply_to_id is None:
            return None
        parent = by_id.get(message.reply_to_id)
        if parent is None:
            return None
        return parent.user_username or parent.user_name

    items = [
        GossipDisplayItem(key=p.local_id, message=p.message, state=p.state, reply_label=label(p.message))
        for p in sorted(pending, key=lambda p: p.seq, reverse=True)
    ]
    items += [
        GossipDisplayItem(key=f"srv-{m.id}", message=m, state=DeliveryState.SENT, reply_label=label(m))
        for m in confirmed
    ]
    return items


class GossipReconciler:
    """Gossip thread state for one event chat session."""

    def __init__(
        self,
        api: SocialAPI,
        event_id: int,
        *,
        author_id: int | None = None,
        bus: SignalBus | None = None,
        max_length: int = MAX_MESSAGE_LENGTH,
        local_id_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ) -> None:
        self.api = api
        self.event_id = event_id
        self.author_id = author_id
        self.bus = bus or SignalBus()
        self.max_length = max_length
        self._local_id_factory = local_id_factory
        self._confirmed: dict[int, GossipMessage] = {}
        self._pending: dict[str, PendingGossip] = {}
        self._sent_ids: dict[str, int] = {}  # local_id -> server id
        self._seq = itertools.count(1)
        self._provisional_ids = itertools.count(-1, -1)

    @property
    def confirmed(self) -> list[GossipMessage]:
        return sorted(self._confirmed.values(), key=_recency, reverse=True)

    def pending(self, local_id: str) -> PendingGossip | None:
        return self._pending.get(local_id)

    def messages(self) -> list[GossipDisplayItem]:
        return merge_thread(self._pending.values(), self._confirmed.values())

    def reply_label(self, message: GossipMessage) -> str | None:
        """Parent author for a reply, if the parent is loaded; otherwise None."""
        if message.reply_to_id is None:
            return None
        parent = self._confirmed.get(message.reply_to_id)
        if parent is None:
            return None
        return parent.user_username or parent.user_name

    async def load(self) -> list[GossipMessage]:
        """Replace the confirmed list with the server's. Failures keep the current list."""
        try:
            messages = await self.api.fetch_gossip(self.event_id)
        except RemoteError as e:
            log.warning("gossip_load_failed", event_id=self.event_id, error=str(e))
            return self.confirmed
        # Locally known reply parents survive reloads; the server does not store them
        replies = {m.id: m.reply_to_id for m in self._confirmed.values() if m.reply_to_id is not None}
        self._confirmed = {}
        for m in messages:
            if m.reply_to_id is None and m.id in replies:
                m = m.model_copy(update={"reply_to_id": replies[m.id]})
            self._confirmed[m.id] = m.model_copy(update={"state": DeliveryState.SENT, "local_id": None})
        return self.confirmed

    def _validate(self, text: str) -> str:
        body = text.strip()
        if not body:
            raise InvalidMessage("Message is empty")
        if len(body) > self.max_length:
            raise InvalidMessage(f"Message is too long ({len(body)} > {self.max_length} characters)")
        return body

    def _set_state(self, local_id: str, state: DeliveryState) -> None:
        self.bus.emit(GossipStateChanged(event_id=self.event_id, local_id=local_id, state=state))

    async def send(self, text: str, reply_to_id: int | None = None) -> GossipDisplayItem:
        """Insert a pending entry immediately, then post it."""
        body = self._validate(text)
        local_id = self._local_id_factory()
        message = GossipMessage(
            id=next(self._provisional_ids),
            event_id=self.event_id,
            user_id=self.author_id,
            message=body,
            reply_to_id=reply_to_id,
            local_id=local_id,
            state=DeliveryState.PENDING,
        )
        self._pending[local_id] = PendingGossip(message=message, seq=next(self._seq))
        self._set_state(local_id, DeliveryState.PENDING)
        return await self._post(local_id)

    async def retry(self, local_id: str) -> GossipDisplayItem:
        """Re-send a failed entry under the same local_id and provisional id."""
        entry = self._pending.get(local_id)
        if entry is None:
            if local_id in self._sent_ids:
                return self._item_for_sent(local_id)
            raise KeyError(local_id)
        if entry.state is DeliveryState.PENDING:
            return self._item(entry)
        entry.message = entry.message.model_copy(update={"state": DeliveryState.PENDING})
        entry.seq = next(self._seq)
        self._set_state(local_id, DeliveryState.PENDING)
        return await self._post(local_id)

    async def _post(self, local_id: str) -> GossipDisplayItem:
        entry = self._pending[local_id]
        draft = entry.message
        try:
            confirmed = await self.api.post_gossip(self.event_id, draft.message, draft.reply_to_id)
        except RemoteError as e:
            log.info("gossip_send_failed", event_id=self.event_id, local_id=local_id, error=str(e))
            return self._fail(local_id)
        except Exception as e:
            log.warning("gossip_send_error", event_id=self.event_id, local_id=local_id, error=repr(e))
            return self._fail(local_id)
        except BaseException:
            # Cancelled mid-send: leave the entry retryable
            self._fail(local_id)
            raise
        return self._confirm(local_id, confirmed)

    def _fail(self, local_id: str) -> GossipDisplayItem:
        entry = self._pending.get(local_id)
        if entry is None:
            # Already confirmed through another path
            return self._item_for_sent(local_id)
        entry.message = entry.message.model_copy(update={"state": DeliveryState.FAILED})
        self._set_state(local_id, DeliveryState.FAILED)
        return self._item(entry)

    def _confirm(self, local_id: str, confirmed: GossipMessage) -> GossipDisplayItem:
        if local_id in self._sent_ids:
            return self._item_for_sent(local_id)
        entry = self._pending.pop(local_id, None)
        draft = entry.message if entry else None
        update: dict = {"state": DeliveryState.SENT, "local_id": None}
        if draft is not None:
            if confirmed.reply_to_id is None and draft.reply_to_id is not None:
                update["reply_to_id"] = draft.reply_to_id
            if confirmed.user_id is None:
                update["user_id"] = draft.user_id
        if confirmed.event_id is None:
            update["event_id"] = self.event_id
        record = confirmed.model_copy(update=update)
        self._confirmed[record.id] = record
        self._sent_ids[local_id] = record.id
        log.debug("gossip_sent", event_id=self.event_id, local_id=local_id, message_id=record.id)
        self._set_state(local_id, DeliveryState.SENT)
        return GossipDisplayItem(
            key=f"srv-{record.id}",
            message=record,
            state=DeliveryState.SENT,
            reply_label=self.reply_label(record),
        )

    def _item(self, entry: PendingGossip) -> GossipDisplayItem:
        return GossipDisplayItem(
            key=entry.local_id,
            message=entry.message,
            state=entry.state,
            reply_label=self.reply_label(entry.message),
        )

    def _item_for_sent(self, local_id: str) -> GossipDisplayItem:
        record = self._confirmed[self._sent_ids[local_id]]
        return GossipDisplayItem(
            key=f"srv-{record.id}",
            message=record,
            state=DeliveryState.SENT,
            reply_label=self.reply_label(record),
        )
