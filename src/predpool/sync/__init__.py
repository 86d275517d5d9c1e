from predpool.sync.live import LiveOddsSync, SyncHandle

__all__ = ["LiveOddsSync", "SyncHandle"]
