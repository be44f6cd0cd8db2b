"""Unit tests for the rebalance CLI."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import yaml
from click.testing import CliRunner

from rebalancer.cli import cli, create_source
from rebalancer.data.providers.file_provider import FileSnapshotSource
from rebalancer.data.providers.tinkoff_provider import TinkoffSnapshotSource
from rebalancer.portfolio.allocation_model import AllocationModel
from rebalancer.utils.config import RebalanceConfig
from rebalancer.utils.exceptions import ConfigurationError, DataProviderError

ROOT = Path(__file__).parent.parent.parent
EXAMPLE_SNAPSHOT = str(ROOT / "config" / "example_snapshot.yaml")


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Write a 60/40 SBER/GAZP config without a snapshot path."""
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.dump(
            {
                "logging": {"level": "WARNING"},
                "allocation": {
                    "targets": [
                        {"ticker": "SBER", "target_percent": 60},
                        {"ticker": "GAZP", "target_percent": 40},
                    ]
                },
            }
        )
    )
    return path


class TestCreateSource:
    """Test cases for snapshot source selection."""

    @pytest.fixture
    def config(self) -> RebalanceConfig:
        return RebalanceConfig(
            allocation_model=AllocationModel([("SBER", 100)]),
            snapshot_path=Path("config/example_snapshot.yaml"),
        )

    def test_snapshot_option_wins(self, config: RebalanceConfig) -> None:
        """Test an explicit snapshot file is preferred."""
        source = create_source(config, "other.yaml", use_tinkoff=True)

        assert isinstance(source, FileSnapshotSource)
        assert source.path == Path("other.yaml")

    def test_tinkoff(self, config: RebalanceConfig) -> None:
        """Test --tinkoff builds an API source from credentials."""
        with patch(
            "rebalancer.cli.load_tinkoff_credentials", return_value={"token": "t.x"}
        ):
            source = create_source(config, None, use_tinkoff=True)

        assert isinstance(source, TinkoffSnapshotSource)

    def test_config_snapshot_path(self, config: RebalanceConfig) -> None:
        """Test the config snapshot path is the fallback."""
        source = create_source(config, None, use_tinkoff=False)

        assert isinstance(source, FileSnapshotSource)
        assert source.path == Path("config/example_snapshot.yaml")

    def test_no_source(self) -> None:
        """Test an error is raised without any source."""
        config = RebalanceConfig(allocation_model=AllocationModel([]))

        with pytest.raises(ConfigurationError, match="No snapshot source"):
            create_source(config, None, use_tinkoff=False)


class TestRunCommand:
    """Test cases for the run command."""

    def test_run_with_snapshot(self, runner: CliRunner, config_file: Path) -> None:
        """Test a run against the example snapshot prints a trade plan."""
        result = runner.invoke(
            cli, ["run", "--config", str(config_file), "--snapshot", EXAMPLE_SNAPSHOT]
        )

        assert result.exit_code == 0, result.output
        assert "Allocation Report" in result.output
        assert "Trade Plan" in result.output
        assert "SBER" in result.output

    def test_run_missing_config(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test a missing config file exits with an error."""
        result = runner.invoke(
            cli, ["run", "--config", str(tmp_path / "missing.yaml")]
        )

        assert result.exit_code == 1
        assert "Configuration file not found" in result.output

    def test_run_missing_snapshot(
        self, runner: CliRunner, config_file: Path, tmp_path: Path
    ) -> None:
        """Test a missing snapshot file exits with an error."""
        result = runner.invoke(
            cli,
            [
                "run",
                "--config",
                str(config_file),
                "--snapshot",
                str(tmp_path / "missing.yaml"),
            ],
        )

        assert result.exit_code == 1
        assert "Snapshot file not found" in result.output

    def test_run_unknown_ticker(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test a join failure aborts the run."""
        path = tmp_path / "config.yaml"
        path.write_text(
            yaml.dump(
                {"allocation": {"targets": [{"ticker": "YNDX", "target_percent": 50}]}}
            )
        )

        result = runner.invoke(
            cli, ["run", "--config", str(path), "--snapshot", EXAMPLE_SNAPSHOT]
        )

        assert result.exit_code == 1
        assert "YNDX" in result.output

    def test_run_tinkoff_overrides(self, runner: CliRunner, config_file: Path) -> None:
        """Test --sandbox and --account reach the Tinkoff source."""
        source = MagicMock()
        source.fetch.side_effect = DataProviderError("sandbox unavailable")

        with patch("rebalancer.cli.create_source", return_value=source) as create:
            result = runner.invoke(
                cli,
                [
                    "run",
                    "--config",
                    str(config_file),
                    "--tinkoff",
                    "--sandbox",
                    "--account",
                    "2000222",
                ],
            )

        config = create.call_args[0][0]
        assert config.sandbox is True
        assert config.account_id == "2000222"
        assert result.exit_code == 1
        assert "sandbox unavailable" in result.output


class TestCheckConfigCommand:
    """Test cases for the check-config command."""

    def test_valid_config(self, runner: CliRunner, config_file: Path) -> None:
        """Test a valid config prints the targets."""
        result = runner.invoke(cli, ["check-config", "--config", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "Target Allocation" in result.output
        assert "Total: 100%" in result.output
        assert "Configuration is valid" in result.output

    def test_over_allocated(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test an over-allocated model fails validation."""
        path = tmp_path / "config.yaml"
        path.write_text(
            yaml.dump(
                {
                    "allocation": {
                        "targets": [
                            {"ticker": "SBER", "target_percent": 70},
                            {"ticker": "GAZP", "target_percent": 40},
                        ]
                    }
                }
            )
        )

        result = runner.invoke(cli, ["check-config", "--config", str(path)])

        assert result.exit_code == 1
        assert "exceeds 100" in result.output

    def test_non_finite_delta(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test a NaN manual delta is reported as a configuration error."""
        path = tmp_path / "config.yaml"
        path.write_text(
            yaml.dump(
                {
                    "allocation": {
                        "manual_value_delta": float("nan"),
                        "targets": [{"ticker": "SBER", "target_percent": 100}],
                    }
                }
            )
        )

        result = runner.invoke(cli, ["check-config", "--config", str(path)])

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "must be finite" in result.output


class TestAccountsCommand:
    """Test cases for the accounts command."""

    def test_accounts(self, runner: CliRunner) -> None:
        """Test accounts are listed."""
        source = MagicMock()
        source.get_accounts.return_value = [
            {"id": "2000222", "name": "Main", "status": "ACCOUNT_STATUS_OPEN"}
        ]

        with patch(
            "rebalancer.cli.load_tinkoff_credentials", return_value={"token": "t.x"}
        ), patch("rebalancer.cli.TinkoffSnapshotSource", return_value=source) as cls:
            result = runner.invoke(cli, ["accounts", "--sandbox"])

        assert result.exit_code == 0, result.output
        assert "2000222" in result.output
        cls.assert_called_once_with(token="t.x", sandbox=True)

    def test_missing_token(self, runner: CliRunner) -> None:
        """Test a missing token exits with an error."""
        with patch(
            "rebalancer.cli.load_tinkoff_credentials",
            side_effect=ConfigurationError("Missing required environment variable: TINKOFF_TOKEN"),
        ):
            result = runner.invoke(cli, ["accounts"])

        assert result.exit_code == 1
        assert "TINKOFF_TOKEN" in result.output
