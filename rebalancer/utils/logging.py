"""Logging setup for rebalancing runs.

A run logs its pipeline stages (fetch, valuation, drift, trade plan) to stdout
so the output of ``rebalance run`` can be redirected or piped as a whole.
Context fields are appended to messages as ``key=value`` pairs; money values
print as ``"10000.000000000 rub"`` and are quoted to keep pairs parseable.
"""

import logging
import sys
from typing import Any

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# HTTP client loggers used by the brokerage source
NOISY_LOGGERS = ("urllib3", "requests")


def setup_logging(
    level: str = "INFO",
    log_format: str | None = None,
) -> None:
    """Configure the root logger for a rebalancing run.

    Request-level chatter from the HTTP client is shown only at DEBUG.

    Args:
        level: Level name, case-insensitive; unknown names fall back to INFO
        log_format: Custom format string. If None, uses DEFAULT_FORMAT.

    Example:
        >>> setup_logging(level="debug")
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logging.basicConfig(
        level=numeric_level,
        format=log_format or DEFAULT_FORMAT,
        stream=sys.stdout,
        force=True,  # replace handlers from an earlier run in the same process
    )

    http_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(http_level)


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a module (pass ``__name__``)."""
    return logging.getLogger(name)


def _format_value(value: Any) -> str:
    text = str(value)
    if " " in text:
        return f'"{text}"'
    return text


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    **context: Any,
) -> None:
    """Log a message followed by ``| key=value`` context.

    Fields whose value is None are left out.

    Args:
        logger: Logger instance
        level: Level name (debug, info, warning, error, critical)
        message: Log message
        **context: Context fields, e.g. ticker or totals

    Example:
        >>> log_with_context(
        ...     logger, "info", "Portfolio valued",
        ...     instruments=2, observed_total=total, account_id=None
        ... )
        # Logs: 'Portfolio valued | instruments=2 observed_total="10000.000000000 rub"'
    """
    log_func = getattr(logger, level.lower())

    fields = " ".join(
        f"{key}={_format_value(value)}"
        for key, value in context.items()
        if value is not None
    )
    log_func(f"{message} | {fields}" if fields else message)
