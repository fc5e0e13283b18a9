"""In-memory transport for testing."""

from __future__ import annotations

from .channel import ChannelCall, InMemoryChannel

__all__ = [
    "ChannelCall",
    "InMemoryChannel",
]
