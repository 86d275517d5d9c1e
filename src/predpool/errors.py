"""Failure taxonomy surfaced to callers.

Validation errors (``InvalidStake``, ``InvalidOutcome``, ``EventNotOpen``,
``InvalidMessage``) are raised synchronously and never retried automatically.
Remote errors split into ``RemoteRejected`` (business rule failure, message is
shown verbatim) and ``NetworkError`` (transient; the caller may re-invoke the
whole operation).
"""

from __future__ import annotations


class PredpoolError(Exception):
    """Base for all predpool errors."""


class ValidationError(PredpoolError):
    """Local, synchronous validation failure."""


class EventNotOpen(ValidationError):
    def __init__(self, event_id: int, status: str) -> None:
        super().__init__(f"Event {event_id} is not open for betting (status={status})")
        self.event_id = event_id
        self.status = status


class InvalidOutcome(ValidationError):
    def __init__(self, event_id: int, key: str) -> None:
        super().__init__(f"Unknown side or outcome {key!r} for event {event_id}")
        self.event_id = event_id
        self.key = key


class InvalidStake(ValidationError):
    def __init__(self, amount: object, reason: str = "Amount must be greater than 0") -> None:
        super().__init__(f"{reason} (got {amount!r})")
        self.amount = amount
        self.reason = reason


class InvalidMessage(ValidationError):
    """Gossip body rejected before sending (empty or too long)."""


class InsufficientBalance(PredpoolError):
    def __init__(self, message: str, available: float | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.available = available


class RemoteError(PredpoolError):
    """Failure reported by, or while talking to, the remote API."""


class RemoteRejected(RemoteError):
    """Server-side business rejection. ``message`` is meant for display as-is."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NetworkError(RemoteError):
    """Transient transport failure or timeout."""
