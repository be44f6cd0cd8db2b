"""Rich console renderer for rebalancing results."""

from typing import Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from rebalancer.portfolio.planner import TradeSide
from rebalancer.portfolio.result import RebalanceResult
from rebalancer.reporting.base import ReportRenderer


class ConsoleRenderer(ReportRenderer):
    """Renders the allocation report and trade plan as rich tables.

    Example:
        >>> renderer = ConsoleRenderer()
        >>> renderer.render(result)
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def create_report_table(self, result: RebalanceResult) -> Table:
        """Create the per-instrument allocation table.

        Args:
            result: Completed rebalancing result

        Returns:
            Rich Table with target vs current allocation
        """
        table = Table(
            title="Allocation Report", show_header=True, header_style="bold magenta"
        )
        table.add_column("Ticker", style="cyan", no_wrap=True)
        table.add_column("Target %", justify="right")
        table.add_column("Current %", justify="right")
        table.add_column("Volume", justify="right")
        table.add_column("Status", justify="center")

        if not result.report:
            table.add_row("No tracked instruments", "", "", "", "")
            return table

        for allocation in result.report:
            status = (
                Text("SHIFTED", style="red")
                if allocation.shifted
                else Text("OK", style="green")
            )
            table.add_row(
                allocation.ticker,
                str(allocation.target_percent),
                f"{allocation.current_percent:.2f}",
                f"{allocation.volume.to_decimal(result.currency):,.2f}",
                status,
            )

        return table

    def create_trade_table(self, result: RebalanceResult) -> Table:
        """Create the trade plan table.

        Args:
            result: Completed rebalancing result

        Returns:
            Rich Table with lot adjustments
        """
        table = Table(title="Trade Plan", show_header=True, header_style="bold magenta")
        table.add_column("Ticker", style="cyan", no_wrap=True)
        table.add_column("Side", justify="center")
        table.add_column("Lots", justify="right")
        table.add_column("Price", justify="right")
        table.add_column("Target Volume", justify="right")

        for action in result.trade_plan:
            side_color = "green" if action.side == TradeSide.BUY else "red"
            table.add_row(
                action.ticker,
                Text(action.side.value, style=side_color),
                str(action.lots),
                f"{action.current_price.to_decimal(result.currency):,.2f}",
                f"{action.target_volume.to_decimal(result.currency):,.2f}",
            )

        return table

    def render(self, result: RebalanceResult) -> None:
        currency = result.currency.upper()
        self.console.print(
            f"[bold]Portfolio value:[/bold] "
            f"{result.observed_total.to_decimal(result.currency):,.2f} {currency}"
        )
        if result.adjusted_total != result.observed_total:
            self.console.print(
                f"[bold]Adjusted value:[/bold] "
                f"{result.adjusted_total.to_decimal(result.currency):,.2f} {currency}"
            )
        if result.cash_reserve_percent:
            self.console.print(
                f"[bold]Cash reserve:[/bold] {result.cash_reserve_percent}%"
            )

        self.console.print(self.create_report_table(result))

        if result.needs_rebalance:
            self.console.print(self.create_trade_table(result))
        else:
            self.console.print("[green]✅ Portfolio is within drift thresholds[/green]")
