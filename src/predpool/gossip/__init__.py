from predpool.gossip.reconciler import (
    MAX_MESSAGE_LENGTH,
    GossipDisplayItem,
    GossipReconciler,
    PendingGossip,
    merge_thread,
)

__all__ = [
    "GossipDisplayItem",
    "GossipReconciler",
    "MAX_MESSAGE_LENGTH",
    "PendingGossip",
    "merge_thread",
]
