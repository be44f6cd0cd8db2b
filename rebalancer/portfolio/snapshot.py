"""Portfolio snapshot assembly and valuation.

Joins held positions, instrument metadata and target allocations into one
working record per tracked ticker, and values the joined portfolio using
checked fixed-point arithmetic.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional

from rebalancer.portfolio.allocation_model import AllocationModel, TargetAllocation
from rebalancer.portfolio.money import FixedPointMoney, Quantity
from rebalancer.utils.exceptions import (
    MoneyError,
    NoPositionError,
    UnknownTickerError,
    ValuationError,
)
from rebalancer.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class InstrumentMeta:
    """Reference data for a tradable instrument.

    Attributes:
        id: Instrument identifier used by positions (e.g. FIGI)
        ticker: Exchange ticker
        lot_size: Number of shares in one lot
    """

    id: str
    ticker: str
    lot_size: int

    def __post_init__(self):
        if self.lot_size <= 0:
            raise ValueError(
                f"lot_size must be positive for {self.ticker}, got {self.lot_size}"
            )


@dataclass(frozen=True)
class Position:
    """Held position captured in the snapshot.

    Attributes:
        instrument_id: Identifier matching InstrumentMeta.id
        quantity: Number of lots held
        unit_price: Current price of one share
    """

    instrument_id: str
    quantity: Quantity
    unit_price: FixedPointMoney


@dataclass(frozen=True)
class WorkingRecord:
    """A target joined to its instrument metadata and held position."""

    ticker: str
    target_percent: int
    instrument: InstrumentMeta
    position: Position

    @property
    def lot_size(self) -> int:
        return self.instrument.lot_size

    @property
    def unit_price(self) -> FixedPointMoney:
        return self.position.unit_price

    @property
    def lot_price(self) -> FixedPointMoney:
        """Price of one lot (unit price times lot size)."""
        try:
            return self.unit_price.multiply_by_quantity(self.lot_size)
        except MoneyError as e:
            raise e.with_ticker(self.ticker) from e

    def market_value(self) -> FixedPointMoney:
        """Value held: unit_price * quantity * lot_size.

        Raises:
            FixedPointOverflowError: If the product overflows
        """
        try:
            return self.unit_price.multiply_by_quantity(
                self.position.quantity
            ).multiply_by_quantity(self.lot_size)
        except MoneyError as e:
            raise e.with_ticker(self.ticker) from e


def _pick_instrument(
    ticker: str,
    candidates: List[InstrumentMeta],
    positions: Dict[str, Position],
) -> InstrumentMeta:
    """Resolve a ticker listed more than once in the catalog.

    A held listing wins over one that is not held; otherwise the first
    listing is used.
    """
    if len(candidates) == 1:
        return candidates[0]

    held = [c for c in candidates if c.id in positions]
    chosen = held[0] if held else candidates[0]
    logger.warning(
        "Ticker %s matches %d catalog entries (%s); using %s",
        ticker,
        len(candidates),
        ", ".join(c.id for c in candidates),
        chosen.id,
    )
    return chosen


class PortfolioSnapshot:
    """Immutable set of working records in target order.

    Example:
        >>> snapshot = PortfolioSnapshot.build(positions, instruments, model)
        >>> total = snapshot.total_value()
    """

    def __init__(self, records: Iterable[WorkingRecord]):
        self._records = tuple(records)

    @classmethod
    def build(
        cls,
        positions: Iterable[Position],
        instruments: Iterable[InstrumentMeta],
        targets: AllocationModel | Iterable[TargetAllocation],
    ) -> "PortfolioSnapshot":
        """Join targets to instruments (by ticker) and positions (by id).

        Positions that are held but not in the target model are skipped.

        Args:
            positions: Held positions
            instruments: Instrument catalog
            targets: Allocation model or target list

        Returns:
            PortfolioSnapshot with one record per target

        Raises:
            UnknownTickerError: If a target ticker is not in the catalog
            NoPositionError: If a target ticker is not held
        """
        by_ticker: Dict[str, List[InstrumentMeta]] = {}
        for instrument in instruments:
            by_ticker.setdefault(instrument.ticker, []).append(instrument)

        by_id: Dict[str, Position] = {p.instrument_id: p for p in positions}

        records: List[WorkingRecord] = []
        tracked_ids = set()
        for target in targets:
            candidates = by_ticker.get(target.ticker)
            if not candidates:
                raise UnknownTickerError(target.ticker)
            instrument = _pick_instrument(target.ticker, candidates, by_id)

            position = by_id.get(instrument.id)
            if position is None:
                raise NoPositionError(target.ticker, instrument.id)

            tracked_ids.add(instrument.id)
            records.append(
                WorkingRecord(
                    ticker=target.ticker,
                    target_percent=target.target_percent,
                    instrument=instrument,
                    position=position,
                )
            )

        untracked = [i for i in by_id if i not in tracked_ids]
        if untracked:
            logger.debug(
                "Skipping %d untracked positions: %s", len(untracked), untracked
            )

        logger.debug("Built snapshot with %d records", len(records))
        return cls(records)

    @property
    def records(self) -> List[WorkingRecord]:
        return list(self._records)

    def total_value(self, currency: Optional[str] = None) -> FixedPointMoney:
        """Sum of market values over all records.

        Args:
            currency: Settlement currency. Required for an empty snapshot;
                when given, every record must be priced in it.

        Returns:
            Total portfolio value

        Raises:
            CurrencyMismatchError: If records are priced in different currencies
            FixedPointOverflowError: If the sum overflows
            ValuationError: If the snapshot is empty and no currency is given
        """
        if currency is None:
            if not self._records:
                raise ValuationError(
                    "Cannot value an empty snapshot without a settlement currency"
                )
            currency = self._records[0].unit_price.currency

        total = FixedPointMoney.zero(currency)
        for record in self._records:
            value = record.market_value()
            try:
                total = total.add(value)
            except MoneyError as e:
                raise e.with_ticker(record.ticker) from e
        return total

    def __iter__(self) -> Iterator[WorkingRecord]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)
