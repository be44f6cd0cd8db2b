"""Portfolio rebalancing CLI tool.

Examples:
    # Check drift against an offline snapshot file
    rebalance run --config config/default.yaml --snapshot config/example_snapshot.yaml

    # Check drift against the live brokerage portfolio (token from .env)
    rebalance run --config config/default.yaml --tinkoff

    # Same, in the sandbox environment
    rebalance run --tinkoff --sandbox

    # Validate the allocation model without fetching anything
    rebalance check-config --config config/default.yaml

    # List brokerage accounts
    rebalance accounts --sandbox
"""

import sys
from dataclasses import replace
from typing import Optional

import click
import yaml
from rich.console import Console
from rich.table import Table

from rebalancer.api.rebalance_api import RebalanceAPI
from rebalancer.data.base import SnapshotSource
from rebalancer.data.providers.file_provider import FileSnapshotSource
from rebalancer.data.providers.tinkoff_provider import TinkoffSnapshotSource
from rebalancer.reporting.console import ConsoleRenderer
from rebalancer.utils.config import RebalanceConfig, load_tinkoff_credentials
from rebalancer.utils.exceptions import ConfigurationError, RebalancerError
from rebalancer.utils.logging import setup_logging

console = Console()


def load_run_config(config_path: Optional[str]) -> RebalanceConfig:
    """Load run settings, turning an unreadable file into a ConfigurationError."""
    try:
        return RebalanceConfig.from_file(config_path)
    except (FileNotFoundError, yaml.YAMLError) as e:
        raise ConfigurationError(str(e)) from e


def create_source(
    config: RebalanceConfig,
    snapshot: Optional[str],
    use_tinkoff: bool,
) -> SnapshotSource:
    """Pick the snapshot source for a run.

    An explicit --snapshot file wins, then --tinkoff, then the snapshot path
    from the config file.

    Raises:
        ConfigurationError: If no source is available
    """
    if snapshot:
        return FileSnapshotSource(snapshot, currency=config.settlement_currency)

    if use_tinkoff:
        credentials = load_tinkoff_credentials()
        return TinkoffSnapshotSource(
            token=credentials["token"],
            account_id=config.account_id,
            sandbox=config.sandbox,
            currency=config.settlement_currency,
            timeout=config.request_timeout,
        )

    if config.snapshot_path:
        return FileSnapshotSource(
            config.snapshot_path, currency=config.settlement_currency
        )

    raise ConfigurationError(
        "No snapshot source: pass --snapshot PATH, --tinkoff, "
        "or set snapshot.path in the config file"
    )


@click.group()
def cli():
    """Portfolio Rebalancing Tool"""
    pass


@cli.command()
@click.option("--config", "config_path", type=str, default=None, help="Config YAML path")
@click.option("--snapshot", type=str, default=None, help="Snapshot YAML file")
@click.option("--tinkoff", "use_tinkoff", is_flag=True, help="Fetch from Tinkoff Invest API")
@click.option("--sandbox", is_flag=True, help="Use the Tinkoff sandbox environment")
@click.option("--account", type=str, default=None, help="Brokerage account id")
@click.option("--log-level", type=str, default=None, help="Logging level")
def run(
    config_path: Optional[str],
    snapshot: Optional[str],
    use_tinkoff: bool,
    sandbox: bool,
    account: Optional[str],
    log_level: Optional[str],
):
    """Check allocation drift and print a rebalancing trade plan."""
    try:
        config = load_run_config(config_path)
        setup_logging(level=log_level or config.log_level)

        if sandbox or account:
            config = replace(
                config,
                sandbox=sandbox or config.sandbox,
                account_id=account or config.account_id,
            )

        source = create_source(config, snapshot, use_tinkoff)
        api = RebalanceAPI(config, source=source, renderer=ConsoleRenderer(console))
        api.run()
    except RebalancerError as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)


@cli.command("check-config")
@click.option("--config", "config_path", type=str, default=None, help="Config YAML path")
def check_config(config_path: Optional[str]):
    """Validate the allocation model in a config file."""
    try:
        config = load_run_config(config_path)
    except RebalancerError as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)

    model = config.allocation_model
    table = Table(title="Target Allocation", show_header=True, header_style="bold magenta")
    table.add_column("Ticker", style="cyan", no_wrap=True)
    table.add_column("Target %", justify="right")

    for target in model:
        table.add_row(target.ticker, str(target.target_percent))

    console.print(table)
    console.print(f"Total: {model.total_percent}%  Cash reserve: {model.cash_reserve_percent}%")
    if model.manual_value_delta:
        console.print(f"Manual value delta: {model.manual_value_delta}")
    console.print("[green]✅ Configuration is valid[/green]")


@cli.command()
@click.option("--sandbox", is_flag=True, help="Use the Tinkoff sandbox environment")
def accounts(sandbox: bool):
    """List Tinkoff Invest accounts."""
    try:
        credentials = load_tinkoff_credentials()
        source = TinkoffSnapshotSource(token=credentials["token"], sandbox=sandbox)
        account_list = source.get_accounts()
    except RebalancerError as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)

    table = Table(title="Accounts", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Status")

    if not account_list:
        table.add_row("No accounts", "", "")

    for account in account_list:
        table.add_row(
            str(account.get("id", "")),
            str(account.get("name", "")),
            str(account.get("status", "")),
        )

    console.print(table)


if __name__ == "__main__":
    cli()
