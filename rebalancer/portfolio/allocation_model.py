"""Target allocation model.

The model maps each tracked ticker to an integer target percent. Percentages
may sum to at most 100; anything left under 100 is kept as a cash reserve.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from rebalancer.utils.exceptions import (
    AllocationSumExceededError,
    ConfigurationError,
)


@dataclass(frozen=True)
class TargetAllocation:
    """Target share of the portfolio for one ticker.

    Attributes:
        ticker: Instrument ticker (exact match against the catalog)
        target_percent: Whole percent of total portfolio value, 0..100
    """

    ticker: str
    target_percent: int

    def __post_init__(self):
        if not self.ticker:
            raise ConfigurationError("ticker must be a non-empty string")
        if not isinstance(self.target_percent, int) or isinstance(
            self.target_percent, bool
        ):
            raise ConfigurationError(
                f"target_percent for {self.ticker} must be an integer, "
                f"got {self.target_percent!r}"
            )
        if not 0 <= self.target_percent <= 100:
            raise ConfigurationError(
                f"target_percent for {self.ticker} must be in [0, 100], "
                f"got {self.target_percent}"
            )


TargetLike = Union[TargetAllocation, Tuple[str, int]]


class AllocationModel:
    """Validated ticker -> target percent table.

    The sum rule is checked once, at construction. The optional manual value
    delta is a signed amount added to the observed portfolio total before any
    percentage or trade size is computed (e.g. an anticipated deposit).

    Example:
        >>> model = AllocationModel([("SBER", 60), ("GAZP", 40)])
        >>> model.total_percent
        100
        >>> model.cash_reserve_percent
        0
    """

    def __init__(
        self,
        targets: Iterable[TargetLike],
        manual_value_delta: Decimal | int | str = Decimal("0"),
    ):
        self._targets: List[TargetAllocation] = [
            t if isinstance(t, TargetAllocation) else TargetAllocation(*t)
            for t in targets
        ]
        self.manual_value_delta = _to_decimal(manual_value_delta)
        self.validate()

    @classmethod
    def from_config(cls, section: Optional[Dict[str, Any]]) -> "AllocationModel":
        """Build a model from the ``allocation`` config section.

        Expected layout::

            allocation:
              manual_value_delta: 0
              targets:
                - {ticker: SBER, target_percent: 60}
                - {ticker: GAZP, target_percent: 40}
        """
        section = section or {}
        raw_targets = section.get("targets") or []
        if not isinstance(raw_targets, list):
            raise ConfigurationError("allocation.targets must be a list")

        targets = []
        for entry in raw_targets:
            if not isinstance(entry, dict) or "ticker" not in entry:
                raise ConfigurationError(
                    f"Invalid allocation target entry: {entry!r}"
                )
            targets.append(
                TargetAllocation(
                    ticker=str(entry["ticker"]),
                    target_percent=entry.get("target_percent"),
                )
            )

        return cls(targets, section.get("manual_value_delta", 0) or 0)

    def validate(self) -> None:
        """Check the model invariants.

        A sum of exactly 100 is accepted; anything above is rejected.

        Raises:
            ConfigurationError: If a ticker appears more than once
            AllocationSumExceededError: If percentages sum to more than 100
        """
        seen = set()
        for target in self._targets:
            if target.ticker in seen:
                raise ConfigurationError(
                    f"Duplicate ticker in allocation model: {target.ticker}"
                )
            seen.add(target.ticker)

        total = self.total_percent
        if total > 100:
            raise AllocationSumExceededError(total)

    @property
    def targets(self) -> List[TargetAllocation]:
        return list(self._targets)

    @property
    def tickers(self) -> List[str]:
        return [t.ticker for t in self._targets]

    @property
    def total_percent(self) -> int:
        return sum(t.target_percent for t in self._targets)

    @property
    def cash_reserve_percent(self) -> int:
        return 100 - self.total_percent

    def target_for(self, ticker: str) -> int:
        for target in self._targets:
            if target.ticker == ticker:
                return target.target_percent
        raise KeyError(f"Ticker not in allocation model: {ticker}")

    def __iter__(self):
        return iter(self._targets)

    def __len__(self) -> int:
        return len(self._targets)

    def __repr__(self) -> str:
        pairs = ", ".join(f"{t.ticker}={t.target_percent}" for t in self._targets)
        return f"AllocationModel({pairs}, manual_value_delta={self.manual_value_delta})"


def _to_decimal(value: Decimal | int | float | str) -> Decimal:
    if isinstance(value, bool):
        raise ConfigurationError(
            f"manual_value_delta must be a number, got {value!r}"
        )
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as e:
        raise ConfigurationError(
            f"manual_value_delta must be a number, got {value!r}"
        ) from e
    if not amount.is_finite():
        raise ConfigurationError(
            f"manual_value_delta must be finite, got {value!r}"
        )
    return amount
