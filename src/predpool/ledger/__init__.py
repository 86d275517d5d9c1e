from predpool.ledger.mirror import LedgerMirror
from predpool.ledger.pool import PoolLedger

__all__ = ["LedgerMirror", "PoolLedger"]
