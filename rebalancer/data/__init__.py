"""Snapshot data layer.

Components:
- SnapshotSource: Abstract interface for snapshot sources
- SnapshotData: Positions and instrument catalog captured for one run
"""

from rebalancer.data.base import SnapshotData, SnapshotSource

__all__ = ["SnapshotSource", "SnapshotData"]
