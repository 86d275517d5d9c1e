"""GossipReconciler tests: optimistic send, failure, retry idempotence, ordering, reply labels."""

import asyncio

import httpx
import pytest

from conftest import FakeSocialAPI
from predpool.client.http import TychesClient
from predpool.errors import InvalidMessage, NetworkError
from predpool.gossip.reconciler import GossipReconciler, PendingGossip, merge_thread
from predpool.models import DeliveryState, GossipMessage
from predpool.signals import GossipStateChanged, SignalBus


def _msg(id, created_at, **kwargs):
    return GossipMessage(id=id, event_id=1, message=f"msg {id}", created_at=created_at, **kwargs)


@pytest.fixture
def history():
    # Server returns oldest first
    return [
        _msg(1, "2026-01-01 10:00:00", user_name="Alice Smith", user_username="alice"),
        _msg(2, "2026-01-01 10:05:00", user_name="Bob Jones"),
        _msg(3, "2026-01-01 10:05:00", user_name="Carol"),
    ]


@pytest.fixture
def social(history):
    return FakeSocialAPI(history)


@pytest.fixture
def states():
    return []


@pytest.fixture
def reconciler(social, states):
    bus = SignalBus()
    bus.subscribe(lambda s: states.append((s.local_id, s.state)) if isinstance(s, GossipStateChanged) else None)
    return GossipReconciler(social, 1, author_id=7, bus=bus, local_id_factory=iter(["l1", "l2", "l3"]).__next__)


@pytest.mark.asyncio
async def test_load_orders_newest_first(reconciler):
    confirmed = await reconciler.load()
    assert [m.id for m in confirmed] == [3, 2, 1]
    assert [i.message.id for i in reconciler.messages()] == [3, 2, 1]


@pytest.mark.asyncio
async def test_load_failure_keeps_thread(reconciler, social):
    await reconciler.load()
    social.load_error = NetworkError("down")
    assert [m.id for m in await reconciler.load()] == [3, 2, 1]


@pytest.mark.asyncio
async def test_send_success_replaces_pending_with_server_record(reconciler, social, states):
    await reconciler.load()
    item = await reconciler.send("  hello  ")
    assert item.state is DeliveryState.SENT
    assert item.message.id == 1000
    assert item.message.message == "hello"
    assert social.posts == [(1, "hello", None)]
    assert reconciler.pending("l1") is None
    items = reconciler.messages()
    assert len(items) == 4
    assert sum(1 for i in items if i.message.id == 1000) == 1
    assert states == [("l1", DeliveryState.PENDING), ("l1", DeliveryState.SENT)]


@pytest.mark.asyncio
async def test_send_failure_stays_visible_in_place(reconciler, social):
    social.fail_next = 1
    item = await reconciler.send("hello")
    assert item.state is DeliveryState.FAILED
    assert item.key == "l1"
    assert item.message.id < 0
    assert item.message.is_provisional
    assert [i.state for i in reconciler.messages()] == [DeliveryState.FAILED]


@pytest.mark.asyncio
async def test_repeated_retries_keep_one_entry(reconciler, social, states):
    social.fail_next = 3
    first = await reconciler.send("hello")
    provisional_id = first.message.id
    for _ in range(2):
        item = await reconciler.retry("l1")
        assert item.state is DeliveryState.FAILED
        assert item.message.id == provisional_id
        assert len(reconciler.messages()) == 1
    final = await reconciler.retry("l1")
    assert final.state is DeliveryState.SENT
    assert len(social.posts) == 4
    assert [i.message.id for i in reconciler.messages()] == [1000]
    assert states[-1] == ("l1", DeliveryState.SENT)
    assert [s for _, s in states].count(DeliveryState.SENT) == 1


@pytest.mark.asyncio
async def test_retry_after_success_does_not_resend(reconciler, social):
    await reconciler.send("hello")
    again = await reconciler.retry("l1")
    assert again.state is DeliveryState.SENT
    assert len(social.posts) == 1
    assert len(reconciler.messages()) == 1


@pytest.mark.asyncio
async def test_retry_unknown_local_id(reconciler):
    with pytest.raises(KeyError):
        await reconciler.retry("nope")


@pytest.mark.asyncio
async def test_pending_entries_render_above_confirmed(reconciler, social):
    await reconciler.load()
    social.fail_next = 2
    await reconciler.send("first")
    await reconciler.send("second")
    keys = [i.key for i in reconciler.messages()]
    assert keys[:2] == ["l2", "l1"]
    assert keys[2:] == ["srv-3", "srv-2", "srv-1"]

    social.fail_next = 1
    await reconciler.retry("l1")
    assert [i.key for i in reconciler.messages()][:2] == ["l1", "l2"]


@pytest.mark.parametrize("text", ["", "   \n", "x" * 1001])
@pytest.mark.asyncio
async def test_invalid_message_is_not_sent(reconciler, social, text):
    with pytest.raises(InvalidMessage):
        await reconciler.send(text)
    assert social.posts == []
    assert reconciler.messages() == []


@pytest.mark.asyncio
async def test_max_length_message_is_accepted(reconciler):
    item = await reconciler.send("x" * 1000)
    assert item.state is DeliveryState.SENT


@pytest.mark.asyncio
async def test_reply_keeps_parent_locally_and_labels_it(reconciler, social):
    await reconciler.load()
    item = await reconciler.send("agreed", reply_to_id=1)
    assert social.posts == [(1, "agreed", 1)]
    assert item.message.reply_to_id == 1
    assert item.reply_label == "alice"
    # Reload from a server that does not store reply parents
    await reconciler.load()
    reply = next(i for i in reconciler.messages() if i.message.id == item.message.id)
    assert reply.reply_label == "alice"


@pytest.mark.asyncio
async def test_reply_label_falls_back_to_display_name(reconciler):
    await reconciler.load()
    assert reconciler.reply_label(_msg(10, "", reply_to_id=2)) == "Bob Jones"
    assert reconciler.reply_label(_msg(11, "", reply_to_id=404)) is None
    assert reconciler.reply_label(_msg(12, "")) is None


def test_merge_thread_is_pure():
    confirmed = [_msg(1, "2026-01-01 10:00:00"), _msg(2, "2026-01-01 11:00:00")]
    pending = [
        PendingGossip(GossipMessage(id=-1, message="a", local_id="x", state=DeliveryState.PENDING), seq=1),
        PendingGossip(GossipMessage(id=-2, message="b", local_id="y", state=DeliveryState.FAILED), seq=2),
    ]
    items = merge_thread(pending, confirmed)
    assert [i.key for i in items] == ["y", "x", "srv-2", "srv-1"]
    assert [i.state for i in items[:2]] == [DeliveryState.FAILED, DeliveryState.PENDING]
    assert merge_thread(pending, confirmed) == items


@pytest.mark.asyncio
async def test_malformed_server_reply_marks_failed_and_retry_resends():
    posts = []

    def handler(request):
        if request.url.path.endswith("csrf.php"):
            return httpx.Response(200, json={"csrf_token": "t"})
        posts.append(request)
        if len(posts) == 1:
            return httpx.Response(201, json={"ok": True})
        return httpx.Response(201, json={"id": 55, "message": "hello", "created_at": "2026-01-01 12:00:00"})

    async with TychesClient("https://tyches.test/api/", transport=httpx.MockTransport(handler)) as client:
        reconciler = GossipReconciler(client, 1, local_id_factory=lambda: "l1")
        first = await reconciler.send("hello")
        assert first.state is DeliveryState.FAILED
        assert reconciler.pending("l1").state is DeliveryState.FAILED
        second = await reconciler.retry("l1")
    assert second.state is DeliveryState.SENT
    assert second.message.id == 55
    assert len(posts) == 2
    assert [i.message.id for i in reconciler.messages()] == [55]


@pytest.mark.asyncio
async def test_cancelled_send_is_left_retryable(reconciler, social):
    social.post_gate = asyncio.Event()
    task = asyncio.create_task(reconciler.send("hello"))
    while not social.posts:
        await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert reconciler.pending("l1").state is DeliveryState.FAILED

    social.post_gate = None
    item = await reconciler.retry("l1")
    assert item.state is DeliveryState.SENT
    assert len(reconciler.messages()) == 1
