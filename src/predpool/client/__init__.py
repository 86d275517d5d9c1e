from predpool.client.base import BalanceProvider, BetPlacement, EventDetail, MarketAPI, SocialAPI
from predpool.client.http import TychesClient

__all__ = ["BalanceProvider", "BetPlacement", "EventDetail", "MarketAPI", "SocialAPI", "TychesClient"]
