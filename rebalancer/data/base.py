"""Abstract base class for portfolio snapshot sources.

This module defines the SnapshotSource interface that all concrete sources
(YAML file, brokerage API) must implement.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import List

from rebalancer.portfolio.snapshot import InstrumentMeta, Position


@dataclass(frozen=True)
class SnapshotData:
    """Raw inputs captured from a snapshot source.

    Attributes:
        positions: Held positions
        instruments: Instrument catalog
        captured_at: When the snapshot was taken
    """

    positions: List[Position]
    instruments: List[InstrumentMeta]
    captured_at: datetime = field(default_factory=datetime.now)


class SnapshotSource(ABC):
    """Abstract interface for snapshot sources.

    A source is called once per run and returns a static snapshot; the
    rebalancing engine performs no I/O of its own.

    Example:
        >>> class MySource(SnapshotSource):
        ...     def fetch(self):
        ...         return SnapshotData(positions=[], instruments=[])
    """

    @abstractmethod
    def fetch(self) -> SnapshotData:
        """Fetch held positions and the instrument catalog.

        Returns:
            SnapshotData with positions and instruments

        Raises:
            DataProviderError: If fetching or parsing fails
        """
        pass
