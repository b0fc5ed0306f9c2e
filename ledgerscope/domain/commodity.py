"""Commodities and exact amounts.

Quantities are decimal.Decimal values parsed straight from their text form.
Arithmetic runs in a context that traps Inexact, so a result that would need
rounding raises instead of drifting.
"""

import decimal
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from ledgerscope.domain.errors import CommodityMismatchError
from ledgerscope.domain.models import CommoditySymbol

EXACT = decimal.Context(
    prec=64,
    rounding=decimal.ROUND_HALF_EVEN,
    traps=[decimal.InvalidOperation, decimal.DivisionByZero, decimal.Overflow, decimal.Inexact],
)

# Display only, never used for balancing
DISPLAY = decimal.Context(prec=64, rounding=decimal.ROUND_HALF_EVEN)


class SymbolPosition(Enum):
    """Where a commodity symbol sits relative to the number."""

    LEFT = "left"
    RIGHT = "right"


def parse_quantity(text: str, decimal_mark: str = ".", thousands_separator: str = ",") -> Decimal:
    """Parse a numeric literal into an exact Decimal.

    Args:
        text: Literal such as "1,234.50" or "-12".
        decimal_mark: Character separating the fractional part.
        thousands_separator: Character grouping integer digits, or "" for none.

    Returns:
        Exact quantity.

    Raises:
        ValueError: If the literal does not fit the separators.
    """
    if decimal_mark == thousands_separator:
        raise ValueError("Decimal mark and thousands separator must differ")

    body = text.strip()
    negative = body.startswith("-")
    if body[:1] in ("-", "+"):
        body = body[1:]

    if decimal_mark in body:
        integer, _, fraction = body.rpartition(decimal_mark)
        if not fraction.isdigit():
            raise ValueError(f"Invalid fractional part in {text!r}")
    else:
        integer, fraction = body, ""

    groups = integer.split(thousands_separator) if thousands_separator else [integer]
    if not all(group.isdigit() for group in groups):
        raise ValueError(f"Invalid quantity {text!r}")
    if len(groups) > 1 and (len(groups[0]) > 3 or any(len(group) != 3 for group in groups[1:])):
        raise ValueError(f"Misplaced thousands separator in {text!r}")

    digits = "".join(groups)
    if fraction:
        digits = f"{digits}.{fraction}"
    quantity = Decimal(digits)
    return quantity.copy_negate() if negative else quantity


def decimal_places(quantity: Decimal) -> int:
    """Count digits after the decimal point as written."""
    exponent = quantity.as_tuple().exponent
    if not isinstance(exponent, int):
        return 0
    return max(0, -exponent)


@dataclass(frozen=True)
class CommodityFormat:
    """Display metadata for a commodity."""

    symbol_position: SymbolPosition = SymbolPosition.RIGHT
    spacing: bool = True
    decimal_mark: str = "."
    thousands_separator: str = ","
    precision: int = 0
    quoted: bool = False

    def parse_quantity(self, text: str) -> Decimal:
        """Parse a literal written in this format."""
        return parse_quantity(text, self.decimal_mark, self.thousands_separator)

    def format_quantity(self, quantity: Decimal) -> str:
        """Render a quantity with grouping, rounded to the format's precision."""
        exponent = Decimal(1).scaleb(-self.precision)
        rounded = quantity.quantize(exponent, context=DISPLAY)
        integer, _, fraction = f"{rounded.copy_abs():f}".partition(".")

        if self.thousands_separator:
            groups = []
            while len(integer) > 3:
                groups.insert(0, integer[-3:])
                integer = integer[:-3]
            groups.insert(0, integer)
            integer = self.thousands_separator.join(groups)

        text = f"{integer}{self.decimal_mark}{fraction}" if fraction else integer
        return f"-{text}" if rounded < 0 else text


@dataclass(frozen=True)
class Amount:
    """Exact quantity of a single commodity."""

    quantity: Decimal
    commodity: CommoditySymbol

    @classmethod
    def zero(cls, commodity: CommoditySymbol) -> "Amount":
        return cls(Decimal(0), commodity)

    def _check(self, other: "Amount") -> None:
        if not isinstance(other, Amount):
            raise TypeError(f"Expected Amount, got {type(other).__name__}")
        if other.commodity != self.commodity:
            raise CommodityMismatchError(self.commodity, other.commodity)

    def __add__(self, other: "Amount") -> "Amount":
        self._check(other)
        return Amount(EXACT.add(self.quantity, other.quantity), self.commodity)

    def __sub__(self, other: "Amount") -> "Amount":
        self._check(other)
        return Amount(EXACT.subtract(self.quantity, other.quantity), self.commodity)

    def __neg__(self) -> "Amount":
        return Amount(EXACT.minus(self.quantity), self.commodity)

    def __abs__(self) -> "Amount":
        return Amount(EXACT.abs(self.quantity), self.commodity)

    def is_zero(self) -> bool:
        return self.quantity.is_zero()

    def convert(self, rate: "Amount") -> "Amount":
        """Value this amount at a per-unit rate.

        Args:
            rate: Price of one unit of this commodity, in the target commodity.

        Returns:
            Amount in the rate's commodity.
        """
        return Amount(EXACT.multiply(self.quantity, rate.quantity), rate.commodity)

    def __str__(self) -> str:
        if not self.commodity:
            return f"{self.quantity:f}"
        return f"{self.quantity:f} {self.commodity}"


@dataclass(frozen=True)
class Commodity:
    """A currency or tradeable symbol with its display format."""

    symbol: CommoditySymbol
    style: CommodityFormat = field(default_factory=CommodityFormat)

    @property
    def display_symbol(self) -> str:
        return f'"{self.symbol}"' if self.style.quoted else self.symbol

    def format(self, amount: Amount) -> str:
        """Render an amount of this commodity for display.

        Args:
            amount: Amount in this commodity.

        Returns:
            Formatted string (e.g. "$1,234.50" or "10 AAPL").

        Raises:
            CommodityMismatchError: If the amount is in another commodity.
        """
        if amount.commodity != self.symbol:
            raise CommodityMismatchError(self.symbol, amount.commodity)

        number = self.style.format_quantity(amount.quantity)
        if not self.symbol:
            return number

        space = " " if self.style.spacing else ""
        if self.style.symbol_position is SymbolPosition.LEFT:
            sign, digits = ("-", number[1:]) if number.startswith("-") else ("", number)
            return f"{sign}{self.display_symbol}{space}{digits}"
        return f"{number}{space}{self.display_symbol}"
