"""Whole-lot trade sizing.

Converts the gap between each instrument's target volume and its current
volume into a number of lots to buy or sell. Lots are rounded to the nearest
integer, with halves rounded away from zero (1.5 -> 2, -1.5 -> -2). Fees and
minimum order sizes are not modeled; a zero-lot action is a valid no-op.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Dict, List

from rebalancer.portfolio.drift import HUNDRED, InstrumentAllocation
from rebalancer.portfolio.money import FixedPointMoney
from rebalancer.utils.exceptions import MoneyError, ValuationError
from rebalancer.utils.logging import get_logger

logger = get_logger(__name__)


class TradeSide(Enum):
    """Trade direction."""

    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class TradeAction:
    """Lot adjustment that moves one instrument back to target.

    Attributes:
        ticker: Instrument ticker
        target_volume: Monetary value the instrument should hold
        side: BUY or SELL
        lots: Number of lots to trade (non-negative)
        current_price: Current price of one share
    """

    ticker: str
    target_volume: FixedPointMoney
    side: TradeSide
    lots: int
    current_price: FixedPointMoney

    def __post_init__(self):
        if self.lots < 0:
            raise ValueError(f"lots must be non-negative, got {self.lots}")

    @property
    def is_noop(self) -> bool:
        return self.lots == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ticker": self.ticker,
            "target_volume": str(self.target_volume),
            "side": self.side.value,
            "lots": self.lots,
            "current_price": str(self.current_price),
        }


class TradePlanner:
    """Sizes rebalancing trades in whole lots.

    Example:
        >>> planner = TradePlanner()
        >>> actions = planner.plan_all(allocations, total)
        >>> [(a.ticker, a.side.value, a.lots) for a in actions]
        [('SBER', 'SELL', 10), ('GAZP', 'BUY', 1)]
    """

    def plan(
        self, allocation: InstrumentAllocation, total: FixedPointMoney
    ) -> TradeAction:
        """Compute the lot adjustment for one instrument.

        target_volume = target_percent * total / 100
        lots = round(diff / lot_price), diff = target_volume - volume

        Raises:
            CurrencyMismatchError: If prices and total differ in currency
            ValuationError: If the lot price is zero
        """
        currency = total.currency
        try:
            total_amount = total.to_decimal(currency)
            target_amount = allocation.target_percent * total_amount / HUNDRED
            target_volume = FixedPointMoney.from_decimal(target_amount, currency)

            diff = target_volume.to_decimal(currency) - allocation.volume.to_decimal(
                currency
            )
            lot_price = allocation.lot_price.to_decimal(currency)
        except MoneyError as e:
            raise e.with_ticker(allocation.ticker) from e

        if lot_price == 0:
            raise ValuationError(
                f"Cannot size trade for {allocation.ticker}: lot price is zero"
            )

        lots = int((diff / lot_price).to_integral_value(rounding=ROUND_HALF_UP))
        side = TradeSide.SELL if lots < 0 else TradeSide.BUY

        logger.debug(
            "Planned %s %d lots of %s (diff=%s, lot_price=%s)",
            side.value,
            abs(lots),
            allocation.ticker,
            diff,
            lot_price,
        )

        return TradeAction(
            ticker=allocation.ticker,
            target_volume=target_volume,
            side=side,
            lots=abs(lots),
            current_price=allocation.current_price,
        )

    def plan_all(
        self,
        allocations: List[InstrumentAllocation],
        total: FixedPointMoney,
    ) -> List[TradeAction]:
        """Plan every instrument once any of them has drifted.

        Returns:
            One action per allocation in input order, or an empty list when
            no instrument is shifted
        """
        if not any(a.shifted for a in allocations):
            logger.info("No instrument drifted; trade plan is empty")
            return []

        actions = [self.plan(allocation, total) for allocation in allocations]
        logger.info(
            "Trade plan: %d actions (%d non-zero)",
            len(actions),
            sum(1 for a in actions if not a.is_noop),
        )
        return actions
