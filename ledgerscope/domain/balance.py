"""Transaction validation and autobalancing.

Every transaction is checked on its own:
1. At most one posting may omit its amount.
2. The reference commodity is the commodity of the first posting with an amount.
3. Subtotals in other commodities are converted into the reference commodity
   through the price database at the transaction date.
4. A missing amount is inferred after conversion, in the posting's declared
   commodity or the reference commodity.
5. The converted total must be exactly zero.

Sums are kept as fractions.Fraction, so there is no tolerance: any remainder
is an imbalance.
"""

import decimal
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from fractions import Fraction

from ledgerscope.domain.commodity import DISPLAY, EXACT, Amount, Commodity, decimal_places
from ledgerscope.domain.errors import (
    BalanceError,
    Diagnostic,
    MultipleInferredPostings,
    NoConversionPath,
    NoPriceBefore,
    Unbalanced,
)
from ledgerscope.domain.models import AccountPath, CommoditySymbol, Payee, Position, Status
from ledgerscope.domain.parser import RawTransaction
from ledgerscope.domain.prices import Conversion, PriceDatabase
from ledgerscope.logging_setup import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Posting:
    """Validated posting; ``inferred`` marks an amount computed by autobalancing."""

    account: AccountPath
    amount: Amount
    position: Position
    inferred: bool = False
    note: str | None = None


@dataclass(frozen=True)
class Transaction:
    """Validated transaction whose postings sum to zero."""

    date: date
    status: Status
    payee: Payee
    postings: tuple[Posting, ...]
    position: Position
    source_id: str
    code: str | None = None
    note: str | None = None

    def commodities(self) -> list[CommoditySymbol]:
        """Commodities used, in order of first appearance."""
        return list(dict.fromkeys(p.amount.commodity for p in self.postings))


def _convert(prices: PriceDatabase, commodity: CommoditySymbol, reference: CommoditySymbol, raw: RawTransaction) -> Conversion:
    try:
        return prices.lookup(commodity, reference, raw.date)
    except NoPriceBefore as e:
        raise NoConversionPath(commodity, reference, raw.date, raw.position, raw.source_id) from e


def _places(raw: RawTransaction, symbol: CommoditySymbol, commodities: Mapping[CommoditySymbol, Commodity]) -> int:
    commodity = commodities.get(symbol)
    if commodity is not None:
        return commodity.style.precision
    written = [decimal_places(p.amount.quantity) for p in raw.postings if p.amount and p.amount.commodity == symbol]
    return max(written, default=0)


def _pad(quantity: Decimal, places: int) -> Decimal:
    """Append trailing zeros up to ``places`` decimal places; exact at any size."""
    sign, digits, exponent = quantity.as_tuple()
    assert isinstance(exponent, int)
    if -exponent >= places:
        return quantity
    return Decimal((sign, digits + (0,) * (exponent + places), -places))


def _to_decimal(value: Fraction, places: int) -> Decimal:
    """Exact decimal for ``value``, padded to ``places``; rounded only when no finite expansion exists.

    Raises:
        decimal.InvalidOperation: If a rounded value has more digits than the display context holds.
    """
    exponent = Decimal(1).scaleb(-places)
    try:
        quantity = EXACT.divide(Decimal(value.numerator), Decimal(value.denominator))
    except decimal.Inexact:
        return DISPLAY.divide(Decimal(value.numerator), Decimal(value.denominator)).quantize(
            exponent, context=DISPLAY
        )
    return _pad(quantity, places)


def balance_transaction(
    raw: RawTransaction,
    prices: PriceDatabase,
    commodities: Mapping[CommoditySymbol, Commodity] | None = None,
) -> Transaction:
    """Validate a transaction, inferring its missing amount if it has one.

    Args:
        raw: Parsed transaction.
        prices: Price database used to convert between commodities.
        commodities: Known commodities, used for the precision of inferred amounts.

    Returns:
        Transaction with every posting amount present.

    Raises:
        MultipleInferredPostings: If more than one posting has no amount.
        NoConversionPath: If a commodity cannot be priced in the reference commodity.
        Unbalanced: If the postings do not sum to zero.
    """
    commodities = commodities or {}
    missing = [index for index, posting in enumerate(raw.postings) if posting.missing]
    known = [posting.amount for posting in raw.postings if posting.amount is not None]
    if len(missing) > 1 or not known:
        raise MultipleInferredPostings(len(missing), raw.position, raw.source_id)

    reference = known[0].commodity

    subtotals: dict[CommoditySymbol, Fraction] = {}
    for amount in known:
        subtotals[amount.commodity] = subtotals.get(amount.commodity, Fraction(0)) + Fraction(amount.quantity)

    conversions = {commodity: _convert(prices, commodity, reference, raw) for commodity in subtotals}
    total = sum((conversions[c].apply(subtotal) for c, subtotal in subtotals.items()), Fraction(0))

    postings = [
        Posting(p.account, p.amount, p.position, inferred=False, note=p.note)
        for p in raw.postings
        if p.amount is not None
    ]

    if missing:
        index = missing[0]
        slot = raw.postings[index]
        target = slot.declared_commodity or reference
        conversion = conversions.get(target) or _convert(prices, target, reference, raw)
        try:
            quantity = _to_decimal(-total / conversion.factor, _places(raw, target, commodities))
        except decimal.InvalidOperation as e:
            residual = DISPLAY.divide(Decimal(total.numerator), Decimal(total.denominator))
            raise Unbalanced(Amount(residual, reference), raw.position, raw.source_id) from e
        total += conversion.apply(Fraction(quantity))
        inferred = Amount(quantity, target)
        logger.debug("%s:%s: inferred %s for %s", raw.source_id, slot.position, inferred, slot.account)
        postings.insert(index, Posting(slot.account, inferred, slot.position, inferred=True, note=slot.note))

    if total != 0:
        residual = DISPLAY.divide(Decimal(total.numerator), Decimal(total.denominator))
        raise Unbalanced(Amount(residual, reference), raw.position, raw.source_id)

    return Transaction(
        date=raw.date,
        status=raw.status,
        payee=raw.payee,
        postings=tuple(postings),
        position=raw.position,
        source_id=raw.source_id,
        code=raw.code,
        note=raw.note,
    )


def validate_transactions(
    raws: Iterable[RawTransaction],
    prices: PriceDatabase,
    commodities: Mapping[CommoditySymbol, Commodity] | None = None,
    max_workers: int | None = None,
) -> tuple[list[Transaction], list[Diagnostic]]:
    """Balance every transaction, collecting failures instead of stopping.

    Args:
        raws: Parsed transactions in ledger order.
        prices: Fully loaded price database.
        commodities: Known commodities.
        max_workers: Thread pool size; None or 1 checks sequentially.

    Returns:
        Tuple of (valid transactions in input order, diagnostics for the rest).
    """
    raws = list(raws)

    def check(raw: RawTransaction) -> Transaction | Diagnostic:
        try:
            return balance_transaction(raw, prices, commodities)
        except BalanceError as e:
            logger.info("%s", e)
            return Diagnostic.from_error(e)

    if max_workers is not None and max_workers > 1 and len(raws) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            results = list(pool.map(check, raws))
    else:
        results = [check(raw) for raw in raws]

    transactions = [r for r in results if isinstance(r, Transaction)]
    diagnostics = [r for r in results if isinstance(r, Diagnostic)]
    return transactions, diagnostics
