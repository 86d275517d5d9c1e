"""TychesClient tests against httpx.MockTransport."""

import json

import httpx
import pytest

from predpool.client.http import TychesClient
from predpool.errors import NetworkError, RemoteRejected

BASE = "https://tyches.test/api/"


def _client(handler, **kwargs):
    return TychesClient(BASE, transport=httpx.MockTransport(handler), **kwargs)


@pytest.mark.asyncio
async def test_fetch_event_detail_with_nested_pools():
    def handler(request):
        assert request.url.path == "/api/events.php"
        assert request.url.params["id"] == "5"
        return httpx.Response(
            200,
            json={
                "event": {
                    "id": 5,
                    "title": "Rain tomorrow?",
                    "event_type": "binary",
                    "status": "open",
                    "closes_at": "2026-01-01T12:00:00",
                    "yes_percent": 60,
                    "no_percent": 40,
                    "pools": {"total_pool": "1000", "yes_pool": "300", "no_pool": 700},
                }
            },
        )

    async with _client(handler) as client:
        detail = await client.fetch_event_detail(5)
    assert detail.event.id == 5
    assert detail.event.closes_at.tzinfo is not None
    assert detail.pools.yes_pool == 300
    assert detail.event.pools.no_pool == 700


@pytest.mark.asyncio
async def test_fetch_odds_reads_odds_key():
    def handler(request):
        return httpx.Response(200, json={"odds": {"outcomes": [{"id": "a", "pool": 10}, {"id": "b", "pool": 0}]}})

    async with _client(handler) as client:
        pools = await client.fetch_odds(2)
    assert [o.id for o in pools.outcomes] == ["a", "b"]


@pytest.mark.asyncio
async def test_place_bet_sends_csrf_and_side():
    seen = []

    def handler(request):
        if request.url.path.endswith("csrf.php"):
            return httpx.Response(200, json={"csrf_token": "tok-1"})
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "ok": True,
                "bet_id": 42,
                "potential_return": 480,
                "new_balance": 800,
                "odds_after": {"yes_pool": 500, "no_pool": 700, "total_pool": 1200},
            },
        )

    async with _client(handler, session_cookie="abc") as client:
        placement = await client.place_bet(1, "YES", 200)
        await client.place_bet(1, "YES", 10)
    assert seen[0].headers["X-CSRF-Token"] == "tok-1"
    assert "PHPSESSID=abc" in seen[0].headers["cookie"]
    assert json.loads(seen[0].content) == {"event_id": 1, "amount": 200, "side": "YES"}
    assert placement.bet_id == 42
    assert placement.odds_after.total_pool == 1200
    assert len(seen) == 2


@pytest.mark.asyncio
async def test_place_bet_multiple_uses_outcome_id():
    bodies = []

    def handler(request):
        if request.url.path.endswith("csrf.php"):
            return httpx.Response(200, json={"csrf_token": "t"})
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"ok": True, "id": 3})

    async with _client(handler) as client:
        await client.place_bet(2, "b", 25, binary=False)
    assert bodies == [{"event_id": 2, "amount": 25, "outcome_id": "b"}]


@pytest.mark.asyncio
async def test_error_body_maps_to_remote_rejected():
    def handler(request):
        if request.url.path.endswith("csrf.php"):
            return httpx.Response(200, json={"csrf_token": "t"})
        return httpx.Response(400, json={"error": "Event is closed for betting"})

    async with _client(handler) as client:
        with pytest.raises(RemoteRejected) as exc:
            await client.place_bet(1, "YES", 10)
    assert exc.value.message == "Event is closed for betting"
    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_server_error_without_message_is_network_error():
    async with _client(lambda request: httpx.Response(503, text="bad gateway")) as client:
        with pytest.raises(NetworkError):
            await client.fetch_odds(1)


@pytest.mark.asyncio
async def test_transport_failure_is_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(NetworkError):
            await client.fetch_event_detail(1)


@pytest.mark.asyncio
async def test_invalid_json_is_network_error():
    async with _client(lambda request: httpx.Response(200, text="<html>")) as client:
        with pytest.raises(NetworkError):
            await client.fetch_odds(1)


@pytest.mark.asyncio
async def test_gossip_round_trip():
    posted = []

    def handler(request):
        if request.url.path.endswith("csrf.php"):
            return httpx.Response(200, json={"csrf_token": "t"})
        if request.method == "POST":
            posted.append(json.loads(request.content))
            return httpx.Response(201, json={"id": 9, "message": "hi", "created_at": "2026-01-01 12:00:00"})
        return httpx.Response(
            200,
            json={"messages": [{"id": 1, "message": "first", "user_name": "Alice", "created_at": "2026-01-01 10:00:00"}]},
        )

    async with _client(handler) as client:
        messages = await client.fetch_gossip(4)
        msg = await client.post_gossip(4, "hi", reply_to_id=1)
    assert [m.id for m in messages] == [1]
    assert messages[0].event_id == 4
    assert posted == [{"event_id": 4, "message": "hi", "reply_to_id": 1}]
    assert msg.id == 9
    assert msg.event_id == 4


@pytest.mark.asyncio
async def test_fetch_event_activity():
    def handler(request):
        assert request.url.path == "/api/event-activity.php"
        return httpx.Response(
            200,
            json={"bets": [{"id": 1, "side": "YES", "notional": "25", "user_username": "alice"}, {"id": 2, "outcome_id": "b"}]},
        )

    async with _client(handler) as client:
        bets = await client.fetch_event_activity(3)
    assert [b.key for b in bets] == ["YES", "b"]
    assert bets[0].notional == 25.0
