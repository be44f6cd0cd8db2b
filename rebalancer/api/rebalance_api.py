"""User-friendly Rebalance API.

This module provides the single rebalancing pipeline:
fetch -> build snapshot -> value -> detect drift -> plan trades -> render.
The fetch and render stages are injected collaborators; everything between
them is pure computation over the captured snapshot.
"""

from typing import Optional

import pandas as pd

from rebalancer.data.base import SnapshotData, SnapshotSource
from rebalancer.portfolio.drift import DriftDetector
from rebalancer.portfolio.money import FixedPointMoney
from rebalancer.portfolio.planner import TradePlanner
from rebalancer.portfolio.result import RebalanceResult
from rebalancer.portfolio.snapshot import PortfolioSnapshot
from rebalancer.reporting.base import ReportRenderer
from rebalancer.utils.config import RebalanceConfig
from rebalancer.utils.exceptions import (
    ConfigurationError,
    RebalancerError,
    ValuationError,
)
from rebalancer.utils.logging import get_logger, log_with_context

logger = get_logger(__name__)


class RebalanceAPI:
    """High-level API for portfolio rebalancing.

    Example:
        >>> from rebalancer.data.providers import FileSnapshotSource
        >>> config = RebalanceConfig.from_file("config/default.yaml")
        >>> api = RebalanceAPI(
        ...     config,
        ...     source=FileSnapshotSource("config/example_snapshot.yaml"),
        ...     renderer=ConsoleRenderer(),
        ... )
        >>> result = api.run()
        >>> print(api.format_trade_plan(result))
    """

    def __init__(
        self,
        config: RebalanceConfig,
        source: Optional[SnapshotSource] = None,
        renderer: Optional[ReportRenderer] = None,
        detector: Optional[DriftDetector] = None,
        planner: Optional[TradePlanner] = None,
    ):
        """Initialize RebalanceAPI.

        Args:
            config: Run settings (allocation model, currency, drift policy)
            source: Snapshot source used by run()
            renderer: Optional renderer invoked after a successful run
            detector: DriftDetector (defaults to one using config.drift_policy)
            planner: TradePlanner (defaults to new instance)
        """
        self.config = config
        self.source = source
        self.renderer = renderer
        self.detector = detector or DriftDetector(config.drift_policy)
        self.planner = planner or TradePlanner()

        logger.debug(
            "RebalanceAPI initialized with %d targets",
            len(config.allocation_model),
        )

    def run(self) -> RebalanceResult:
        """Fetch a snapshot, compute the result and render it.

        Returns:
            RebalanceResult

        Raises:
            RebalancerError: Any fetch, join, valuation or arithmetic error;
                no partial result is produced
        """
        if self.source is None:
            raise ConfigurationError("No snapshot source configured")

        try:
            logger.info("Fetching portfolio snapshot via %s", type(self.source).__name__)
            data = self.source.fetch()
            result = self.compute(data)
        except RebalancerError as e:
            logger.error("Rebalancing run aborted: %s", e)
            raise

        if self.renderer is not None:
            self.renderer.render(result)

        return result

    def compute(self, data: SnapshotData) -> RebalanceResult:
        """Run the pure pipeline over an already captured snapshot.

        Args:
            data: Positions and instrument catalog

        Returns:
            RebalanceResult with report and trade plan
        """
        model = self.config.allocation_model
        currency = self.config.settlement_currency

        snapshot = PortfolioSnapshot.build(data.positions, data.instruments, model)
        observed_total = snapshot.total_value(currency)
        adjusted_total = self.adjusted_total(observed_total)

        log_with_context(
            logger,
            "info",
            "Portfolio valued",
            instruments=len(snapshot),
            observed_total=observed_total,
            adjusted_total=adjusted_total,
        )

        report = self.detector.detect(snapshot, adjusted_total)
        trade_plan = self.planner.plan_all(report, adjusted_total)

        return RebalanceResult(
            observed_total=observed_total,
            adjusted_total=adjusted_total,
            report=report,
            trade_plan=trade_plan,
            cash_reserve_percent=model.cash_reserve_percent,
        )

    def adjusted_total(self, observed_total: FixedPointMoney) -> FixedPointMoney:
        """Apply the manual value delta to the observed total.

        Raises:
            ValuationError: If the adjusted total is not positive
        """
        delta = self.config.allocation_model.manual_value_delta
        total = observed_total
        if delta:
            total = observed_total.add(
                FixedPointMoney.from_decimal(delta, observed_total.currency)
            )

        if not total.is_positive():
            raise ValuationError(
                f"Adjusted portfolio total must be positive, got {total} "
                f"(observed {observed_total}, manual delta {delta})"
            )
        return total

    def format_report(self, result: RebalanceResult) -> pd.DataFrame:
        """Format the allocation report as a DataFrame for display.

        Args:
            result: Completed rebalancing result

        Returns:
            DataFrame with one row per tracked instrument
        """
        columns = ["ticker", "target_percent", "current_percent", "shifted", "volume"]
        if not result.report:
            return pd.DataFrame(columns=columns)

        data = [
            {
                "ticker": a.ticker,
                "target_percent": a.target_percent,
                "current_percent": float(a.current_percent),
                "shifted": a.shifted,
                "volume": float(a.volume.to_decimal(result.currency)),
            }
            for a in result.report
        ]
        return pd.DataFrame(data, columns=columns)

    def format_trade_plan(self, result: RebalanceResult) -> pd.DataFrame:
        """Format the trade plan as a DataFrame for display.

        Sells are listed before buys.
        """
        columns = ["ticker", "side", "lots", "current_price", "target_volume"]
        if not result.trade_plan:
            return pd.DataFrame(columns=columns)

        data = [
            {
                "ticker": a.ticker,
                "side": a.side.value,
                "lots": a.lots,
                "current_price": float(a.current_price.to_decimal(result.currency)),
                "target_volume": float(a.target_volume.to_decimal(result.currency)),
            }
            for a in result.trade_plan
        ]
        df = pd.DataFrame(data, columns=columns)
        return df.sort_values("side", key=lambda s: s != "SELL", kind="stable").reset_index(
            drop=True
        )
