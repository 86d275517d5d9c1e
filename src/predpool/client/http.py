"""Market + social API client over the PHP JSON backend (httpx, async)."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from predpool.client.base import BetPlacement, EventDetail
from predpool.errors import NetworkError, RemoteRejected
from predpool.models import ActivityBet, Event, GossipMessage, PoolData

log = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://www.tyches.app/api/"
SESSION_COOKIE = "PHPSESSID"
WRITE_METHODS = ("POST", "PUT", "PATCH", "DELETE")


def parse_pools(raw: dict[str, Any] | None) -> PoolData | None:
    if not isinstance(raw, dict) or raw.get("error"):
        return None
    return PoolData.model_validate(raw)


def parse_event_detail(data: dict[str, Any]) -> EventDetail:
    """``events.php?id=`` returns ``{event, pools?}``; pools may also sit inside event."""
    raw_event = dict(data.get("event") or data)
    pools = parse_pools(data.get("pools")) or parse_pools(raw_event.get("pools"))
    raw_event.pop("pools", None)
    event = Event.model_validate(raw_event)
    if pools is not None:
        event = event.model_copy(update={"pools": pools})
    return EventDetail(event=event, pools=pools)


def parse_gossip(raw: dict[str, Any], event_id: int | None = None) -> GossipMessage:
    msg = GossipMessage.model_validate(raw)
    if msg.event_id is None and event_id is not None:
        msg = msg.model_copy(update={"event_id": event_id})
    return msg


def _error_message(resp: httpx.Response) -> str | None:
    try:
        body = resp.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return None


class TychesClient:
    """Implements MarketAPI and SocialAPI. Session auth comes from config (cookie)."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 15.0,
        session_cookie: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        cookies = {SESSION_COOKIE: session_cookie} if session_cookie else None
        self._client = httpx.AsyncClient(
            base_url=base_url if base_url.endswith("/") else base_url + "/",
            timeout=timeout,
            cookies=cookies,
            headers={"Accept": "application/json"},
            transport=transport,
        )
        self._csrf_token: str | None = None

    async def __aenter__(self) -> TychesClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _csrf(self) -> str:
        if self._csrf_token is None:
            data = await self._request("GET", "csrf.php", with_csrf=False)
            self._csrf_token = str(data.get("csrf_token") or "")
        return self._csrf_token

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        with_csrf: bool = True,
    ) -> dict[str, Any]:
        headers = {}
        if method in WRITE_METHODS and with_csrf:
            headers["X-CSRF-Token"] = await self._csrf()
        try:
            resp = await self._client.request(method, path, params=params, json=json, headers=headers)
        except (httpx.TimeoutException, httpx.TransportError) as e:
            log.warning("api_transport_error", method=method, path=path, error=str(e))
            raise NetworkError(f"{method} {path} failed: {e}") from e
        if resp.status_code >= 400:
            message = _error_message(resp)
            if message is None and resp.status_code >= 500:
                raise NetworkError(f"{method} {path} returned HTTP {resp.status_code}")
            if resp.status_code == 403 and message and "csrf" in message.lower():
                self._csrf_token = None
            log.info("api_rejected", method=method, path=path, status=resp.status_code, error=message)
            raise RemoteRejected(message or f"HTTP {resp.status_code}", resp.status_code)
        try:
            data = resp.json()
        except ValueError as e:
            raise NetworkError(f"{method} {path} returned invalid JSON") from e
        return data if isinstance(data, dict) else {"data": data}

    # MarketAPI

    async def fetch_event_detail(self, event_id: int) -> EventDetail:
        data = await self._request("GET", "events.php", params={"id": event_id})
        return parse_event_detail(data)

    async def fetch_odds(self, event_id: int) -> PoolData:
        data = await self._request("GET", "odds.php", params={"event_id": event_id})
        return parse_pools(data.get("odds")) or PoolData()

    async def place_bet(self, event_id: int, key: str, amount: float, *, binary: bool = True) -> BetPlacement:
        body: dict[str, Any] = {"event_id": event_id, "amount": amount}
        if binary:
            body["side"] = key
        else:
            body["outcome_id"] = key
        data = await self._request("POST", "bets.php", json=body)
        if data.get("ok") is False:
            raise RemoteRejected(str(data.get("error") or "Bet was not accepted"))
        bet_id = data.get("bet_id") or data.get("id")
        return BetPlacement(
            bet_id=int(bet_id) if bet_id is not None else None,
            potential_return=data.get("potential_return"),
            potential_profit=data.get("potential_profit"),
            new_balance=data.get("new_balance"),
            odds_before=parse_pools(data.get("odds_before")),
            odds_after=parse_pools(data.get("odds_after")),
        )

    async def fetch_event_activity(self, event_id: int) -> list[ActivityBet]:
        data = await self._request("GET", "event-activity.php", params={"event_id": event_id})
        return [ActivityBet.model_validate(row) for row in data.get("bets") or []]

    # SocialAPI

    async def fetch_gossip(self, event_id: int) -> list[GossipMessage]:
        data = await self._request("GET", "gossip.php", params={"event_id": event_id})
        return [parse_gossip(row, event_id) for row in data.get("messages") or []]

    async def post_gossip(self, event_id: int, text: str, reply_to_id: int | None = None) -> GossipMessage:
        body = {"event_id": event_id, "message": text, "reply_to_id": reply_to_id}
        data = await self._request("POST", "gossip.php", json=body)
        return parse_gossip(data, event_id)
