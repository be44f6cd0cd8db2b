"""YAML snapshot file source.

Reads a previously captured portfolio snapshot from disk, for offline runs
and reproducible rebalancing checks.

File layout::

    positions:
      - instrument_id: BBG004730N88
        quantity: 70
        unit_price: {currency: rub, whole: 100, frac: 0}
    instruments:
      - {id: BBG004730N88, ticker: SBER, lot_size: 1}
"""

import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from rebalancer.data.base import SnapshotData, SnapshotSource
from rebalancer.portfolio.money import FixedPointMoney, Quantity
from rebalancer.portfolio.snapshot import InstrumentMeta, Position
from rebalancer.utils.exceptions import DataProviderError

logger = logging.getLogger(__name__)


def _as_int(value: Any, field: str) -> int:
    """Read a whole number, rejecting fractional values instead of truncating."""
    if isinstance(value, bool):
        raise ValueError(f"{field} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        return int(value.strip())
    raise ValueError(f"{field} must be an integer, got {value!r}")


class FileSnapshotSource(SnapshotSource):
    """Snapshot source backed by a YAML file.

    Args:
        path: Path to the snapshot file
        currency: Default currency for prices that omit one
    """

    def __init__(self, path: str | Path, currency: str = "rub"):
        self.path = Path(path)
        self.currency = currency.lower()

    def fetch(self) -> SnapshotData:
        """Load and parse the snapshot file.

        Raises:
            DataProviderError: If the file is missing or malformed
        """
        if not self.path.exists():
            raise DataProviderError(f"Snapshot file not found: {self.path}")

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise DataProviderError(
                f"Failed to parse snapshot file {self.path}: {e}"
            ) from e

        if not isinstance(raw, dict):
            raise DataProviderError(
                f"Snapshot file {self.path} must contain a mapping"
            )

        positions = [self._parse_position(p) for p in raw.get("positions") or []]
        instruments = [
            self._parse_instrument(i) for i in raw.get("instruments") or []
        ]

        logger.info(
            "Loaded snapshot from %s: %d positions, %d instruments",
            self.path,
            len(positions),
            len(instruments),
        )
        return SnapshotData(positions=positions, instruments=instruments)

    def _parse_position(self, entry: Any) -> Position:
        try:
            price = entry["unit_price"]
            return Position(
                instrument_id=str(entry["instrument_id"]),
                quantity=Quantity(_as_int(entry["quantity"], "quantity")),
                unit_price=self._parse_money(price),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise DataProviderError(
                f"Invalid position entry in {self.path}: {entry!r} ({e})"
            ) from e

    def _parse_instrument(self, entry: Any) -> InstrumentMeta:
        try:
            return InstrumentMeta(
                id=str(entry["id"]),
                ticker=str(entry["ticker"]),
                lot_size=_as_int(entry.get("lot_size", 1), "lot_size"),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise DataProviderError(
                f"Invalid instrument entry in {self.path}: {entry!r} ({e})"
            ) from e

    def _parse_money(self, price: Any) -> FixedPointMoney:
        currency: Optional[str] = price.get("currency") or self.currency
        return FixedPointMoney(
            currency=str(currency).lower(),
            whole=_as_int(price.get("whole", 0), "whole"),
            frac=_as_int(price.get("frac", 0), "frac"),
        )
