"""Cross-partition (halo) data collection."""

from __future__ import annotations

from .halo import (
    HaloGatherer,
    HaloReply,
    HaloRequestSet,
    HaloTransport,
    HaloValueCache,
    InMemoryTransport,
)

__all__ = [
    "HaloGatherer",
    "HaloReply",
    "HaloRequestSet",
    "HaloTransport",
    "HaloValueCache",
    "InMemoryTransport",
]
