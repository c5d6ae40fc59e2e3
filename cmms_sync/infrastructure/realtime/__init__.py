"""Realtime change-feed adapters."""

from .in_memory_change_feed import InMemoryChangeFeed
from .sse_change_feed import SSEChangeFeed

__all__ = ["InMemoryChangeFeed", "SSEChangeFeed"]
