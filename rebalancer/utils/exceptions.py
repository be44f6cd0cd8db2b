"""Custom exceptions for the portfolio rebalancer.

This module defines the exception hierarchy for the application. Every error
raised by the valuation, drift and trade-sizing engine aborts the whole run,
so exceptions carry enough context (ticker, operation) to diagnose the failure
without re-running.
"""

from typing import Optional


class RebalancerError(Exception):
    """Base exception for all rebalancer errors.

    All custom exceptions in the application should inherit from this class.
    """

    pass


class ConfigurationError(RebalancerError):
    """Raised when configuration is invalid or missing.

    Examples:
        - Missing required configuration keys
        - Target percent outside 0..100
        - Duplicate ticker in the allocation model
        - Missing TINKOFF_TOKEN
    """

    pass


class AllocationSumExceededError(ConfigurationError):
    """Raised when target percentages sum to more than 100."""

    def __init__(self, total_percent: int):
        self.total_percent = total_percent
        super().__init__(
            f"Target allocation percentages sum to {total_percent}, "
            "which exceeds 100"
        )


class PortfolioError(RebalancerError):
    """Base exception for portfolio layer errors.

    Parent class for snapshot join and valuation errors.
    """

    pass


class JoinError(PortfolioError):
    """Raised when a target cannot be joined to the portfolio snapshot."""

    def __init__(self, message: str, ticker: str):
        self.ticker = ticker
        super().__init__(message)


class UnknownTickerError(JoinError):
    """Raised when no instrument in the catalog matches a target ticker."""

    def __init__(self, ticker: str):
        super().__init__(
            f"No instrument in the catalog matches ticker '{ticker}'", ticker
        )


class NoPositionError(JoinError):
    """Raised when a target ticker is not currently held."""

    def __init__(self, ticker: str, instrument_id: str):
        self.instrument_id = instrument_id
        super().__init__(
            f"Ticker '{ticker}' (instrument {instrument_id}) is a target "
            "but is not held in the portfolio",
            ticker,
        )


class ValuationError(PortfolioError):
    """Raised when portfolio valuation cannot produce a meaningful result.

    Examples:
        - Adjusted portfolio total is zero or negative
        - Lot price of an instrument is zero
        - Empty snapshot without a settlement currency
    """

    pass


class MoneyError(RebalancerError):
    """Base exception for fixed-point money arithmetic errors.

    Attributes:
        operation: Name of the arithmetic operation that failed
        ticker: Instrument the value belongs to, when known
    """

    def __init__(
        self,
        message: str,
        operation: str,
        ticker: Optional[str] = None,
    ):
        self.message = message
        self.operation = operation
        self.ticker = ticker
        super().__init__(self._format())

    def _format(self) -> str:
        context = f"operation={self.operation}"
        if self.ticker is not None:
            context += f" ticker={self.ticker}"
        return f"{self.message} ({context})"

    def with_ticker(self, ticker: str) -> "MoneyError":
        """Return a copy of this error annotated with an instrument ticker."""
        error = self.__class__.__new__(self.__class__)
        error.__dict__.update(self.__dict__)
        error.ticker = ticker
        error.args = (error._format(),)
        return error


class CurrencyMismatchError(MoneyError):
    """Raised when values in different currencies are combined or compared."""

    def __init__(
        self,
        expected: str,
        actual: str,
        operation: str,
        ticker: Optional[str] = None,
    ):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Currency mismatch: expected '{expected}', got '{actual}'",
            operation,
            ticker,
        )


class FixedPointOverflowError(MoneyError, OverflowError):
    """Raised when a fixed-point component leaves the signed 64-bit range."""

    def __init__(self, operation: str, ticker: Optional[str] = None):
        super().__init__("Fixed-point value out of range", operation, ticker)


class DataProviderError(RebalancerError):
    """Raised when a snapshot source fails to fetch or parse data.

    Examples:
        - Brokerage API request failed
        - Invalid API token
        - Snapshot file missing required fields
    """

    pass
