"""Result of a rebalancing run."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List

from rebalancer.portfolio.drift import InstrumentAllocation
from rebalancer.portfolio.money import FixedPointMoney
from rebalancer.portfolio.planner import TradeAction, TradeSide


@dataclass(frozen=True)
class RebalanceResult:
    """Allocation report and trade plan for one snapshot.

    Attributes:
        observed_total: Sum of market values of tracked instruments
        adjusted_total: Observed total plus the manual value delta; all
            percentages and trade sizes are computed against this
        report: Per-instrument allocation, in target order
        trade_plan: Lot adjustments (empty when nothing drifted)
        cash_reserve_percent: Share of the portfolio left untargeted
        timestamp: When the result was computed
    """

    observed_total: FixedPointMoney
    adjusted_total: FixedPointMoney
    report: List[InstrumentAllocation]
    trade_plan: List[TradeAction]
    cash_reserve_percent: int = 0
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def currency(self) -> str:
        return self.adjusted_total.currency

    @property
    def shifted(self) -> List[InstrumentAllocation]:
        return [a for a in self.report if a.shifted]

    @property
    def needs_rebalance(self) -> bool:
        return bool(self.trade_plan)

    def metrics(self) -> Dict[str, Any]:
        """Summary counts for logging and display."""
        return {
            "instrument_count": len(self.report),
            "shifted_count": len(self.shifted),
            "buy_count": sum(
                1 for a in self.trade_plan if a.side == TradeSide.BUY and a.lots
            ),
            "sell_count": sum(
                1 for a in self.trade_plan if a.side == TradeSide.SELL and a.lots
            ),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "observed_total": str(self.observed_total),
            "adjusted_total": str(self.adjusted_total),
            "report": [a.to_dict() for a in self.report],
            "trade_plan": [a.to_dict() for a in self.trade_plan],
            "cash_reserve_percent": self.cash_reserve_percent,
            "timestamp": self.timestamp.isoformat(),
        }
