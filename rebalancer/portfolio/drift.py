"""Drift detection.

Computes each instrument's current share of the portfolio and flags the ones
that have drifted from target beyond the policy threshold.

Threshold policy:
    - current percent below 20: shifted when
      |current - target| > current * 0.05 (relative 5% band)
    - otherwise: shifted when |trunc(current) - target| >= 5
      (absolute 5-point band; the current percent is truncated toward zero,
      not rounded, before the comparison)
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from rebalancer.portfolio.money import FixedPointMoney
from rebalancer.portfolio.snapshot import PortfolioSnapshot, WorkingRecord
from rebalancer.utils.exceptions import (
    ConfigurationError,
    MoneyError,
    ValuationError,
)
from rebalancer.utils.logging import get_logger, log_with_context

logger = get_logger(__name__)

HUNDRED = Decimal(100)


@dataclass(frozen=True)
class DriftPolicy:
    """Thresholds for flagging an instrument as shifted.

    Attributes:
        regime_boundary: Percent below which the relative band applies
        relative_band: Allowed drift as a fraction of the current percent
        absolute_band: Allowed drift in whole percentage points
    """

    regime_boundary: Decimal = Decimal("20")
    relative_band: Decimal = Decimal("0.05")
    absolute_band: int = 5

    @classmethod
    def from_config(cls, section: Optional[Dict[str, Any]]) -> "DriftPolicy":
        section = section or {}
        try:
            return cls(
                regime_boundary=Decimal(str(section.get("regime_boundary", "20"))),
                relative_band=Decimal(str(section.get("relative_band", "0.05"))),
                absolute_band=int(section.get("absolute_band", 5)),
            )
        except (ArithmeticError, ValueError, TypeError) as e:
            raise ConfigurationError(f"Invalid drift configuration: {e}") from e

    def is_shifted(self, current_percent: Decimal, target_percent: int) -> bool:
        """Apply the threshold policy to one instrument."""
        if not isinstance(current_percent, Decimal):
            current_percent = Decimal(str(current_percent))

        if current_percent < self.regime_boundary:
            band = current_percent * self.relative_band
            return abs(current_percent - target_percent) > band

        return abs(int(current_percent) - target_percent) >= self.absolute_band


@dataclass(frozen=True)
class InstrumentAllocation:
    """Derived per-instrument allocation view for one run.

    Attributes:
        ticker: Instrument ticker
        target_percent: Target share of the portfolio
        current_percent: Observed share of the (adjusted) portfolio total
        current_price: Current price of one share
        lot_size: Shares per lot
        volume: Monetary value recovered from current_percent
        shifted: Whether drift exceeds the policy threshold
    """

    ticker: str
    target_percent: int
    current_percent: Decimal
    current_price: FixedPointMoney
    lot_size: int
    volume: FixedPointMoney
    shifted: bool

    @property
    def lot_price(self) -> FixedPointMoney:
        return self.current_price.multiply_by_quantity(self.lot_size)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ticker": self.ticker,
            "target_percent": self.target_percent,
            "current_percent": str(self.current_percent),
            "shifted": self.shifted,
            "volume": str(self.volume),
        }


class DriftDetector:
    """Computes current allocations and flags drifted instruments.

    Example:
        >>> detector = DriftDetector()
        >>> allocations = detector.detect(snapshot, total)
        >>> detector.any_shifted(allocations)
        True
    """

    def __init__(self, policy: Optional[DriftPolicy] = None):
        self.policy = policy or DriftPolicy()

    @staticmethod
    def current_percent(record: WorkingRecord, total: FixedPointMoney) -> Decimal:
        """Share of the total held in this record, in percent.

        Raises:
            CurrencyMismatchError: If the record is priced in another currency
            ValuationError: If the total is not positive
        """
        total_amount = total.to_decimal(total.currency)
        if total_amount <= 0:
            raise ValuationError(
                f"Portfolio total must be positive to compute allocation, got {total}"
            )

        try:
            value = record.market_value().to_decimal(total.currency)
        except MoneyError as e:
            raise e.with_ticker(record.ticker) from e
        return value / total_amount * HUNDRED

    def evaluate(
        self, record: WorkingRecord, total: FixedPointMoney
    ) -> InstrumentAllocation:
        """Build the allocation view for a single record."""
        current = self.current_percent(record, total)
        volume = FixedPointMoney.from_decimal(
            current * total.to_decimal(total.currency) / HUNDRED, total.currency
        )
        shifted = self.policy.is_shifted(current, record.target_percent)

        if shifted:
            log_with_context(
                logger,
                "info",
                "Instrument drifted from target",
                ticker=record.ticker,
                current_percent=f"{current:.2f}",
                target_percent=record.target_percent,
            )

        return InstrumentAllocation(
            ticker=record.ticker,
            target_percent=record.target_percent,
            current_percent=current,
            current_price=record.unit_price,
            lot_size=record.lot_size,
            volume=volume,
            shifted=shifted,
        )

    def detect(
        self, snapshot: PortfolioSnapshot, total: FixedPointMoney
    ) -> List[InstrumentAllocation]:
        """Evaluate every record in the snapshot, in target order."""
        allocations = [self.evaluate(record, total) for record in snapshot]
        logger.info(
            "Drift check complete: %d of %d instruments shifted",
            sum(1 for a in allocations if a.shifted),
            len(allocations),
        )
        return allocations

    @staticmethod
    def any_shifted(allocations: List[InstrumentAllocation]) -> bool:
        return any(a.shifted for a in allocations)
