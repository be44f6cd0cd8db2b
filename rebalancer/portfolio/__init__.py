"""Portfolio Rebalancing Layer.

This layer values a static portfolio snapshot, detects allocation drift and
sizes the whole-lot trades needed to return to target.

Components:
- FixedPointMoney / Quantity: Checked fixed-point value types
- AllocationModel: Validated target allocation table
- PortfolioSnapshot: Join of positions, instruments and targets
- DriftDetector: Current allocation and threshold policy
- TradePlanner: Whole-lot buy/sell sizing
- RebalanceResult: Report and trade plan for one run
"""

from rebalancer.portfolio.allocation_model import AllocationModel, TargetAllocation
from rebalancer.portfolio.drift import DriftDetector, DriftPolicy, InstrumentAllocation
from rebalancer.portfolio.money import FixedPointMoney, Quantity
from rebalancer.portfolio.planner import TradeAction, TradePlanner, TradeSide
from rebalancer.portfolio.result import RebalanceResult
from rebalancer.portfolio.snapshot import (
    InstrumentMeta,
    PortfolioSnapshot,
    Position,
    WorkingRecord,
)

__all__ = [
    "FixedPointMoney",
    "Quantity",
    "AllocationModel",
    "TargetAllocation",
    "InstrumentMeta",
    "Position",
    "WorkingRecord",
    "PortfolioSnapshot",
    "DriftPolicy",
    "DriftDetector",
    "InstrumentAllocation",
    "TradeSide",
    "TradeAction",
    "TradePlanner",
    "RebalanceResult",
]
