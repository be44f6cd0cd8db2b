"""User-friendly APIs for the portfolio rebalancer.

Components:
- RebalanceAPI: Snapshot-to-trade-plan pipeline
"""

from rebalancer.api.rebalance_api import RebalanceAPI

__all__ = ["RebalanceAPI"]
