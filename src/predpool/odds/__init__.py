from predpool.odds.calculator import (
    BetPreview,
    OddsCalculator,
    OddsQuote,
    OddsSnapshot,
    display_odds,
    round_half_up,
)
from predpool.odds.settlement import Payout, PositionLine, Settlement, position, settle
from predpool.odds.source import Frozen, Live, OddsSource, Static, select_source

__all__ = [
    "BetPreview",
    "OddsCalculator",
    "OddsQuote",
    "OddsSnapshot",
    "display_odds",
    "round_half_up",
    "Payout",
    "PositionLine",
    "Settlement",
    "position",
    "settle",
    "Frozen",
    "Live",
    "OddsSource",
    "Static",
    "select_source",
]
