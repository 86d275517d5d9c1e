"""predpool - parimutuel pool odds, bet placement, live odds sync and gossip reconciliation."""

__version__ = "0.1.0"
