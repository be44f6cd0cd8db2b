"""Fixed-point money and quantity value types.

Monetary values are stored as an integer whole part plus a fractional part
scaled by 10^9, the same layout the brokerage API uses on the wire
(``units`` / ``nano``). Both components are bounded to the signed 64-bit range
and all arithmetic is overflow-checked: an out-of-range result raises
FixedPointOverflowError instead of wrapping or truncating.

Negative amounts keep a non-negative fractional part, so -1.5 is stored as
whole=-2, frac=500_000_000.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext

from rebalancer.utils.exceptions import (
    CurrencyMismatchError,
    FixedPointOverflowError,
    MoneyError,
)

FRAC_SCALE = 10**9
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

_NANO = Decimal(1).scaleb(-9)


def _checked(value: int, operation: str) -> int:
    """Return value if it fits in a signed 64-bit integer."""
    if value < INT64_MIN or value > INT64_MAX:
        raise FixedPointOverflowError(operation)
    return value


@dataclass(frozen=True)
class Quantity:
    """Whole number of lots held or traded."""

    whole: int

    def __post_init__(self):
        if not isinstance(self.whole, int) or isinstance(self.whole, bool):
            raise TypeError(f"Quantity must be an integer, got {self.whole!r}")
        _checked(self.whole, "quantity")


@dataclass(frozen=True)
class FixedPointMoney:
    """Exact monetary value in a single currency.

    Attributes:
        currency: Currency code (e.g. "rub")
        whole: Integer whole part
        frac: Fractional part in units of 10^-9, always in [0, 10^9)

    Example:
        >>> price = FixedPointMoney("rub", 1, 500_000_000)
        >>> price.to_decimal("rub")
        Decimal('1.500000000')
    """

    currency: str
    whole: int
    frac: int = 0

    def __post_init__(self):
        if not 0 <= self.frac < FRAC_SCALE:
            raise ValueError(
                f"frac must be in [0, {FRAC_SCALE}), got {self.frac}"
            )
        _checked(self.whole, "construct")

    @classmethod
    def zero(cls, currency: str) -> "FixedPointMoney":
        return cls(currency, 0, 0)

    @classmethod
    def from_decimal(cls, value: Decimal | int | str, currency: str) -> "FixedPointMoney":
        """Build a value from a decimal amount, rounding half-up to 10^-9.

        Raises:
            FixedPointOverflowError: If the whole part is out of range
            MoneyError: If the value is not a finite number
        """
        try:
            amount = Decimal(value)
        except InvalidOperation as e:
            raise MoneyError(f"Invalid decimal amount {value!r}", "from_decimal") from e
        if not amount.is_finite():
            raise MoneyError(f"Non-finite amount {value!r}", "from_decimal")

        with localcontext() as ctx:
            ctx.prec = 60
            try:
                nanos = int(
                    amount.quantize(_NANO, rounding=ROUND_HALF_UP).scaleb(9)
                )
            except InvalidOperation as e:
                raise FixedPointOverflowError("from_decimal") from e
        whole, frac = divmod(nanos, FRAC_SCALE)
        return cls(currency, _checked(whole, "from_decimal"), frac)

    def _require_currency(self, expected: str, operation: str) -> None:
        if self.currency != expected:
            raise CurrencyMismatchError(expected, self.currency, operation)

    def to_decimal(self, expected_currency: str) -> Decimal:
        """Return the exact decimal amount.

        Args:
            expected_currency: Settlement currency the caller works in

        Raises:
            CurrencyMismatchError: If this value is in another currency
        """
        self._require_currency(expected_currency, "to_decimal")
        return Decimal(self.whole) + Decimal(self.frac).scaleb(-9)

    def add(self, other: "FixedPointMoney") -> "FixedPointMoney":
        """Add two values of the same currency.

        The fractional carry is folded into the whole-part sum before the
        whole part is range-checked.

        Raises:
            CurrencyMismatchError: If the currencies differ
            FixedPointOverflowError: If the whole part overflows
        """
        other._require_currency(self.currency, "add")

        frac = self.frac + other.frac
        carry = 0
        if frac >= FRAC_SCALE:
            frac -= FRAC_SCALE
            carry = 1

        whole = _checked(self.whole + other.whole + carry, "add")
        return FixedPointMoney(self.currency, whole, frac)

    def __add__(self, other: "FixedPointMoney") -> "FixedPointMoney":
        if not isinstance(other, FixedPointMoney):
            return NotImplemented
        return self.add(other)

    def multiply_by_quantity(self, quantity: Quantity | int) -> "FixedPointMoney":
        """Scale by an integer count of lots or shares.

        Both components are multiplied with range checks; the scaled
        fractional part is normalized back into [0, 10^9) with its carry
        added to the whole part.

        Raises:
            FixedPointOverflowError: If any component overflows
        """
        count = quantity.whole if isinstance(quantity, Quantity) else quantity

        whole = _checked(self.whole * count, "multiply")
        frac = _checked(self.frac * count, "multiply")

        carry, frac = divmod(frac, FRAC_SCALE)
        whole = _checked(whole + carry, "multiply")
        return FixedPointMoney(self.currency, whole, frac)

    def is_positive(self) -> bool:
        return self.whole > 0 or (self.whole == 0 and self.frac > 0)

    def __str__(self) -> str:
        nanos = self.whole * FRAC_SCALE + self.frac
        sign = "-" if nanos < 0 else ""
        whole, frac = divmod(abs(nanos), FRAC_SCALE)
        return f"{sign}{whole}.{frac:09d} {self.currency}"
