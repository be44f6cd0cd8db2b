"""Unit tests for RebalanceAPI."""

from decimal import Decimal
from unittest.mock import MagicMock

import pandas as pd
import pytest

from rebalancer.api.rebalance_api import RebalanceAPI
from rebalancer.data.base import SnapshotData, SnapshotSource
from rebalancer.portfolio.allocation_model import AllocationModel
from rebalancer.portfolio.drift import DriftDetector
from rebalancer.portfolio.money import FixedPointMoney, Quantity
from rebalancer.portfolio.planner import TradePlanner, TradeSide
from rebalancer.portfolio.snapshot import InstrumentMeta, Position
from rebalancer.reporting.base import ReportRenderer
from rebalancer.utils.config import RebalanceConfig
from rebalancer.utils.exceptions import (
    ConfigurationError,
    CurrencyMismatchError,
    DataProviderError,
    NoPositionError,
    UnknownTickerError,
    ValuationError,
)


def rub(whole: int, frac: int = 0) -> FixedPointMoney:
    return FixedPointMoney("rub", whole, frac)


@pytest.fixture
def snapshot_data() -> SnapshotData:
    """SBER 70 x 100 and GAZP 3 lots of 10 x 100: a 70/30 split of 10000."""
    return SnapshotData(
        positions=[
            Position("FIGI_SBER", Quantity(70), rub(100)),
            Position("FIGI_GAZP", Quantity(3), rub(100)),
            Position("FIGI_AAPL", Quantity(5), rub(180, 250_000_000)),
        ],
        instruments=[
            InstrumentMeta("FIGI_SBER", "SBER", 1),
            InstrumentMeta("FIGI_GAZP", "GAZP", 10),
            InstrumentMeta("FIGI_AAPL", "AAPL", 1),
        ],
    )


def make_config(targets, delta: str = "0", currency: str = "rub") -> RebalanceConfig:
    return RebalanceConfig(
        allocation_model=AllocationModel(targets, manual_value_delta=Decimal(delta)),
        settlement_currency=currency,
    )


class TestRebalanceAPIInit:
    """Test cases for RebalanceAPI initialization."""

    def test_default_collaborators(self) -> None:
        """Test detector and planner defaults."""
        api = RebalanceAPI(make_config([("SBER", 100)]))

        assert isinstance(api.detector, DriftDetector)
        assert isinstance(api.planner, TradePlanner)
        assert api.source is None
        assert api.renderer is None

    def test_detector_uses_config_policy(self) -> None:
        """Test the default detector applies the configured drift policy."""
        config = make_config([("SBER", 100)])
        api = RebalanceAPI(config)

        assert api.detector.policy == config.drift_policy


class TestCompute:
    """Test cases for compute."""

    def test_end_to_end(self, snapshot_data: SnapshotData) -> None:
        """Test 70/30 holdings against 60/40 targets."""
        api = RebalanceAPI(make_config([("SBER", 60), ("GAZP", 40)]))

        result = api.compute(snapshot_data)

        assert result.observed_total == rub(10000)
        assert result.adjusted_total == rub(10000)
        assert [a.current_percent for a in result.report] == [
            Decimal("70"),
            Decimal("30"),
        ]
        assert all(a.shifted for a in result.report)

        sber, gazp = result.trade_plan
        assert (sber.ticker, sber.side, sber.lots) == ("SBER", TradeSide.SELL, 10)
        assert sber.target_volume == rub(6000)
        assert (gazp.ticker, gazp.side, gazp.lots) == ("GAZP", TradeSide.BUY, 1)
        assert gazp.target_volume == rub(4000)
        assert result.needs_rebalance

    def test_no_drift_empty_plan(self, snapshot_data: SnapshotData) -> None:
        """Test holdings on target produce an empty trade plan."""
        api = RebalanceAPI(make_config([("SBER", 70), ("GAZP", 30)]))

        result = api.compute(snapshot_data)

        assert result.trade_plan == []
        assert not result.needs_rebalance
        assert result.metrics()["shifted_count"] == 0

    def test_cash_reserve(self, snapshot_data: SnapshotData) -> None:
        """Test a target sum under 100 is carried as a cash reserve."""
        api = RebalanceAPI(make_config([("SBER", 60), ("GAZP", 30)]))

        result = api.compute(snapshot_data)

        assert result.cash_reserve_percent == 10

    def test_manual_delta_changes_percentages(self) -> None:
        """Test percentages are computed against the adjusted total."""
        data = SnapshotData(
            positions=[Position("FIGI_SBER", Quantity(50), rub(100))],
            instruments=[InstrumentMeta("FIGI_SBER", "SBER", 1)],
        )

        without_delta = RebalanceAPI(make_config([("SBER", 50)])).compute(data)
        with_delta = RebalanceAPI(make_config([("SBER", 50)], delta="5000")).compute(data)

        assert without_delta.report[0].current_percent == Decimal("100")
        assert without_delta.report[0].shifted
        assert with_delta.observed_total == rub(5000)
        assert with_delta.adjusted_total == rub(10000)
        assert with_delta.report[0].current_percent == Decimal("50")
        assert with_delta.trade_plan == []

    def test_non_positive_adjusted_total(self) -> None:
        """Test a delta that wipes out the total is rejected."""
        data = SnapshotData(
            positions=[Position("FIGI_SBER", Quantity(50), rub(100))],
            instruments=[InstrumentMeta("FIGI_SBER", "SBER", 1)],
        )
        api = RebalanceAPI(make_config([("SBER", 50)], delta="-5000"))

        with pytest.raises(ValuationError, match="must be positive"):
            api.compute(data)

    def test_join_error_propagates(self, snapshot_data: SnapshotData) -> None:
        """Test a target that is not held aborts the run."""
        data = SnapshotData(
            positions=snapshot_data.positions[:1],
            instruments=snapshot_data.instruments,
        )
        api = RebalanceAPI(make_config([("SBER", 60), ("GAZP", 40)]))

        with pytest.raises(NoPositionError):
            api.compute(data)

    def test_settlement_currency_enforced(self, snapshot_data: SnapshotData) -> None:
        """Test prices in another currency abort the run."""
        api = RebalanceAPI(make_config([("SBER", 60), ("GAZP", 40)], currency="usd"))

        with pytest.raises(CurrencyMismatchError) as exc_info:
            api.compute(snapshot_data)

        assert exc_info.value.ticker == "SBER"


class TestRun:
    """Test cases for run."""

    def test_run_fetches_and_renders(self, snapshot_data: SnapshotData) -> None:
        """Test run fetches once and passes the result to the renderer."""
        source = MagicMock(spec=SnapshotSource)
        source.fetch.return_value = snapshot_data
        renderer = MagicMock(spec=ReportRenderer)
        api = RebalanceAPI(
            make_config([("SBER", 60), ("GAZP", 40)]),
            source=source,
            renderer=renderer,
        )

        result = api.run()

        source.fetch.assert_called_once()
        renderer.render.assert_called_once_with(result)

    def test_run_without_source(self) -> None:
        """Test run requires a snapshot source."""
        api = RebalanceAPI(make_config([("SBER", 100)]))

        with pytest.raises(ConfigurationError, match="No snapshot source"):
            api.run()

    def test_fetch_error_aborts_without_render(self) -> None:
        """Test a source failure propagates and nothing is rendered."""
        source = MagicMock(spec=SnapshotSource)
        source.fetch.side_effect = DataProviderError("connection refused")
        renderer = MagicMock(spec=ReportRenderer)
        api = RebalanceAPI(make_config([("SBER", 100)]), source=source, renderer=renderer)

        with pytest.raises(DataProviderError, match="connection refused"):
            api.run()

        renderer.render.assert_not_called()

    def test_compute_error_aborts_without_render(
        self, snapshot_data: SnapshotData
    ) -> None:
        """Test a join failure propagates and nothing is rendered."""
        source = MagicMock(spec=SnapshotSource)
        source.fetch.return_value = snapshot_data
        renderer = MagicMock(spec=ReportRenderer)
        api = RebalanceAPI(
            make_config([("SBER", 50), ("YNDX", 50)]), source=source, renderer=renderer
        )

        with pytest.raises(UnknownTickerError, match="YNDX"):
            api.run()

        renderer.render.assert_not_called()


class TestFormatting:
    """Test cases for DataFrame formatting."""

    def test_format_report(self, snapshot_data: SnapshotData) -> None:
        """Test the report DataFrame has one row per tracked instrument."""
        api = RebalanceAPI(make_config([("SBER", 60), ("GAZP", 40)]))
        result = api.compute(snapshot_data)

        df = api.format_report(result)

        assert isinstance(df, pd.DataFrame)
        assert list(df.columns) == [
            "ticker",
            "target_percent",
            "current_percent",
            "shifted",
            "volume",
        ]
        assert df["ticker"].tolist() == ["SBER", "GAZP"]
        assert df["current_percent"].tolist() == [70.0, 30.0]
        assert df["volume"].tolist() == [7000.0, 3000.0]

    def test_format_trade_plan_sells_first(self, snapshot_data: SnapshotData) -> None:
        """Test sells are listed before buys."""
        api = RebalanceAPI(make_config([("GAZP", 40), ("SBER", 60)]))
        result = api.compute(snapshot_data)

        df = api.format_trade_plan(result)

        assert df["ticker"].tolist() == ["SBER", "GAZP"]
        assert df["side"].tolist() == ["SELL", "BUY"]
        assert df["lots"].tolist() == [10, 1]

    def test_format_empty_trade_plan(self, snapshot_data: SnapshotData) -> None:
        """Test formatting an empty plan."""
        api = RebalanceAPI(make_config([("SBER", 70), ("GAZP", 30)]))
        result = api.compute(snapshot_data)

        df = api.format_trade_plan(result)

        assert isinstance(df, pd.DataFrame)
        assert len(df) == 0
