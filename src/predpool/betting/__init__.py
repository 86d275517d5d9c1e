from predpool.betting.executor import BetExecutor

__all__ = ["BetExecutor"]
