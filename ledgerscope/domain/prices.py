"""Price database: historical exchange rates between commodities.

Prices are indexed by (source, target) pair and kept sorted by timestamp.
A lookup picks the newest price at or before the query time, trying the
direct pair first and then the inverse pair. Conversion factors are exact
fractions, so balancing through an inverse rate never rounds.
"""

import bisect
import decimal
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from datetime import date, datetime, time
from fractions import Fraction

from ledgerscope.dates import as_timestamp
from ledgerscope.domain.commodity import Amount, parse_quantity
from ledgerscope.domain.errors import LexError, NoPriceBefore, ParseError
from ledgerscope.domain.models import CommoditySymbol, Position
from ledgerscope.domain.scanner import ScanOptions, Scanner, Token, TokenKind, records
from ledgerscope.logging_setup import get_logger

logger = get_logger(__name__)

# Inverse rates shown to callers are rounded to decimal128 precision
RATE_DISPLAY = decimal.Context(prec=34, rounding=decimal.ROUND_HALF_EVEN)

PriceKey = tuple[datetime, CommoditySymbol, CommoditySymbol]


@dataclass(frozen=True)
class Price:
    """Value of one unit of ``source`` at ``timestamp``, expressed as ``rate``."""

    timestamp: datetime
    source: CommoditySymbol
    rate: Amount
    line: int = 0

    @property
    def target(self) -> CommoditySymbol:
        return self.rate.commodity

    @property
    def key(self) -> PriceKey:
        return (self.timestamp, self.source, self.target)

    def __str__(self) -> str:
        return f"P {self.timestamp:%Y-%m-%d %H:%M:%S} {self.source} {self.rate}"


@dataclass(frozen=True)
class Conversion:
    """Exact factor turning quantities of ``source`` into ``target``."""

    source: CommoditySymbol
    target: CommoditySymbol
    factor: Fraction
    price: Price | None = None
    inverted: bool = False

    def apply(self, quantity: Fraction) -> Fraction:
        return quantity * self.factor

    def as_amount(self) -> Amount:
        """The factor as an Amount of ``target`` per unit of ``source``."""
        if self.price is not None and not self.inverted:
            return self.price.rate
        quantity = RATE_DISPLAY.divide(
            decimal.Decimal(self.factor.numerator), decimal.Decimal(self.factor.denominator)
        )
        return Amount(quantity, self.target)


class PriceDatabase:
    """Immutable, time-ordered collection of prices."""

    def __init__(self, prices: Iterable[Price] = ()) -> None:
        latest: dict[PriceKey, Price] = {}
        for price in prices:
            previous = latest.get(price.key)
            if previous is not None and previous.rate != price.rate:
                logger.warning(
                    "Price for %s in %s at %s declared twice (lines %d and %d), keeping %s",
                    price.source,
                    price.target,
                    price.timestamp,
                    previous.line,
                    price.line,
                    price.rate,
                )
            latest[price.key] = price

        history: dict[tuple[CommoditySymbol, CommoditySymbol], list[Price]] = {}
        for price in sorted(latest.values(), key=lambda p: p.key):
            history.setdefault((price.source, price.target), []).append(price)

        self._history = history
        self._timestamps = {pair: [p.timestamp for p in series] for pair, series in history.items()}

    def merged(self, prices: Iterable[Price]) -> "PriceDatabase":
        """Return a new database with ``prices`` layered over these (later wins)."""
        return PriceDatabase([*self, *prices])

    def __len__(self) -> int:
        return sum(len(series) for series in self._history.values())

    def __iter__(self) -> Iterator[Price]:
        for pair in sorted(self._history):
            yield from self._history[pair]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PriceDatabase):
            return NotImplemented
        return self._history == other._history

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"PriceDatabase({len(self)} prices, {len(self._history)} pairs)"

    def pairs(self) -> list[tuple[CommoditySymbol, CommoditySymbol]]:
        return sorted(self._history)

    def history(self, source: CommoditySymbol, target: CommoditySymbol) -> list[Price]:
        """All prices for a pair, oldest first."""
        return list(self._history.get((source, target), []))

    def latest(self, source: CommoditySymbol, target: CommoditySymbol, at: date | datetime) -> Price | None:
        """Newest direct price at or before ``at``, without trying the inverse."""
        timestamps = self._timestamps.get((source, target))
        if not timestamps:
            return None
        index = bisect.bisect_right(timestamps, as_timestamp(at))
        if index == 0:
            return None
        return self._history[(source, target)][index - 1]

    def lookup(self, source: CommoditySymbol, target: CommoditySymbol, at: date | datetime) -> Conversion:
        """Find the conversion from ``source`` to ``target`` valid at ``at``.

        Args:
            source: Commodity to convert from.
            target: Commodity to convert to.
            at: Query time. A date means the end of that day.

        Returns:
            Exact conversion, identity when source equals target.

        Raises:
            NoPriceBefore: If neither a direct nor an inverse price exists at or before ``at``.
        """
        if source == target:
            return Conversion(source, target, Fraction(1))

        direct = self.latest(source, target, at)
        if direct is not None:
            return Conversion(source, target, Fraction(direct.rate.quantity), direct)

        inverse = self.latest(target, source, at)
        if inverse is not None and not inverse.rate.is_zero():
            return Conversion(source, target, 1 / Fraction(inverse.rate.quantity), inverse, inverted=True)

        raise NoPriceBefore(source, target, as_timestamp(at))

    def rate(self, source: CommoditySymbol, target: CommoditySymbol, at: date | datetime) -> Amount:
        """Value of one unit of ``source`` in ``target`` at ``at``.

        Raises:
            NoPriceBefore: If no applicable price exists.
        """
        return self.lookup(source, target, at).as_amount()


def parse_price_record(record: list[Token], source_id: str, to_amount: Callable[[Token], Amount]) -> Price:
    """Build a Price from the tokens of a ``P`` line.

    Args:
        record: Tokens of one record, starting with the ``P`` directive.
        source_id: Source label for errors.
        to_amount: Resolves an AMOUNT token into an exact Amount.

    Returns:
        Parsed price.

    Raises:
        ParseError: If the record is not a well-formed price.
    """
    head = record[0]
    fields = [t for t in record[1:] if t.kind not in (TokenKind.END_OF_RECORD, TokenKind.COMMENT)]
    kinds = [t.kind for t in fields]

    if kinds == [TokenKind.DATE, TokenKind.SYMBOL, TokenKind.AMOUNT]:
        day, symbol, amount = fields
        at_time = time()
    elif kinds == [TokenKind.DATE, TokenKind.TIME, TokenKind.SYMBOL, TokenKind.AMOUNT]:
        day, clock, symbol, amount = fields
        at_time = clock.value
    else:
        raise ParseError(head.position, "Expected 'P <date> [<time>] <symbol> <amount>'", source_id)

    rate = to_amount(amount)
    if not rate.commodity:
        raise ParseError(amount.position, "Price amount needs a commodity symbol", source_id)
    if rate.quantity <= 0:
        raise ParseError(amount.position, f"Price must be positive, got {rate}", source_id)
    if rate.commodity == symbol.value:
        raise ParseError(amount.position, f"Price of {symbol.value} cannot be in {symbol.value}", source_id)

    return Price(
        timestamp=datetime.combine(day.value, at_time),
        source=CommoditySymbol(symbol.value),
        rate=rate,
        line=head.position.line,
    )


def load_price_database(
    text: str,
    source_id: str = "<prices>",
    options: ScanOptions | None = None,
) -> PriceDatabase:
    """Parse a price database file.

    Args:
        text: One ``P`` line per price; blank and comment lines are allowed.
        source_id: Source label for errors.
        options: Number separators for the rate amounts.

    Returns:
        PriceDatabase with duplicate keys resolved last-write-wins.

    Raises:
        ParseError: On the first malformed line.
    """
    options = options or ScanOptions()

    def to_amount(token: Token) -> Amount:
        literal = token.value
        try:
            quantity = parse_quantity(literal.number, options.decimal_mark, options.thousands_separator)
        except ValueError as e:
            raise ParseError(token.position, str(e), source_id) from e
        if literal.negative:
            quantity = quantity.copy_negate()
        return Amount(quantity, CommoditySymbol(literal.symbol))

    prices = []
    try:
        for record in records(Scanner(text, options)):
            head = record[0]
            if head.kind is not TokenKind.DIRECTIVE or head.value != "P":
                raise ParseError(head.position, "Expected a price line starting with 'P'", source_id)
            prices.append(parse_price_record(record, source_id, to_amount))
    except LexError as e:
        raise ParseError(e.position or Position(0), e.message, source_id) from e

    logger.debug("Loaded %d prices from %s", len(prices), source_id)
    return PriceDatabase(prices)
