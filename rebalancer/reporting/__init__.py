"""Presentation layer for rebalancing results."""

from rebalancer.reporting.base import ReportRenderer
from rebalancer.reporting.console import ConsoleRenderer

__all__ = ["ReportRenderer", "ConsoleRenderer"]
