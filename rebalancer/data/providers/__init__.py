"""Snapshot source implementations."""

from rebalancer.data.providers.file_provider import FileSnapshotSource
from rebalancer.data.providers.tinkoff_provider import TinkoffSnapshotSource

__all__ = ["FileSnapshotSource", "TinkoffSnapshotSource"]
