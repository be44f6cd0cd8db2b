"""Portfolio rebalancer.

Values a brokerage portfolio snapshot against a target allocation model,
flags drifted instruments and sizes whole-lot rebalancing trades.
"""

__version__ = "0.1.0"
