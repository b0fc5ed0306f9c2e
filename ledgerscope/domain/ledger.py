"""Ledger model: the validated result of loading one or more ledger files."""

from collections.abc import Iterable, Iterator, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import NamedTuple

from ledgerscope.domain.balance import Posting, Transaction, validate_transactions
from ledgerscope.domain.commodity import Amount, Commodity
from ledgerscope.domain.errors import Diagnostic, LedgerLoadError, LexError, ParseError
from ledgerscope.domain.models import CommoditySymbol
from ledgerscope.domain.parser import ParsedFile, parse_text
from ledgerscope.domain.prices import PriceDatabase
from ledgerscope.domain.scanner import ScanOptions
from ledgerscope.logging_setup import get_logger

logger = get_logger(__name__)


class LedgerSource(NamedTuple):
    """One segment of ledger text and the label used in its diagnostics.

    ``order`` places the segment among the others: an included file gets its
    parent's order followed by the include line and its index within that
    line's matches. Empty means the segment's position in the list.
    """

    source_id: str
    text: str
    order: tuple[int, ...] = ()


@dataclass(frozen=True)
class LedgerStatistics:
    transaction_count: int
    posting_count: int
    price_count: int
    last_modified: datetime | None

    def as_dict(self) -> dict[str, object]:
        return {
            "transactions": self.transaction_count,
            "postings": self.posting_count,
            "prices": self.price_count,
            "last_modified": self.last_modified.isoformat() if self.last_modified else None,
        }


@dataclass(frozen=True)
class Ledger:
    """Immutable snapshot of a loaded ledger.

    Only transactions that balanced are kept; the others are described by
    ``diagnostics``. A reload builds a new Ledger.
    """

    transactions: tuple[Transaction, ...]
    commodities: Mapping[CommoditySymbol, Commodity]
    prices: PriceDatabase
    diagnostics: tuple[Diagnostic, ...] = ()
    source_ids: tuple[str, ...] = ()
    last_modified: datetime | None = None
    _posting_count: int = field(default=0, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "commodities", MappingProxyType(dict(self.commodities)))
        object.__setattr__(self, "_posting_count", sum(len(t.postings) for t in self.transactions))

    @property
    def is_valid(self) -> bool:
        return not self.diagnostics

    def statistics(self) -> LedgerStatistics:
        return LedgerStatistics(
            transaction_count=len(self.transactions),
            posting_count=self._posting_count,
            price_count=len(self.prices),
            last_modified=self.last_modified,
        )

    def postings(self) -> Iterator[tuple[Transaction, Posting]]:
        """Every posting with its transaction, in ledger order."""
        for transaction in self.transactions:
            for posting in transaction.postings:
                yield transaction, posting

    def commodity(self, symbol: CommoditySymbol) -> Commodity:
        """Look up a commodity by symbol.

        Raises:
            KeyError: If the symbol never appeared in the ledger.
        """
        return self.commodities[symbol]

    def format(self, amount: Amount) -> str:
        """Render an amount in its commodity's display style."""
        commodity = self.commodities.get(amount.commodity)
        if commodity is None:
            return str(amount)
        return commodity.format(amount)


def _parse_one(
    source: LedgerSource,
    options: ScanOptions | None,
    default_commodity: CommoditySymbol | None,
) -> ParsedFile | Diagnostic:
    try:
        return parse_text(source.text, source.source_id, options, default_commodity)
    except (LexError, ParseError) as e:
        e.source_id = e.source_id or source.source_id
        logger.info("%s", e)
        return Diagnostic.from_error(e)


def _merge_commodities(parsed: list[ParsedFile]) -> dict[CommoditySymbol, Commodity]:
    """First declared format wins; otherwise the first file to use a commodity sets its style."""
    commodities: dict[CommoditySymbol, Commodity] = {}
    declared: set[CommoditySymbol] = set()
    for result in parsed:
        for commodity in result.commodities:
            if commodity.symbol in result.declared and commodity.symbol not in declared:
                commodities[commodity.symbol] = commodity
                declared.add(commodity.symbol)
            else:
                commodities.setdefault(commodity.symbol, commodity)
    return commodities


def parse_ledger_sources(
    sources: Iterable[LedgerSource],
    *,
    prices: PriceDatabase | None = None,
    options: ScanOptions | None = None,
    default_commodity: CommoditySymbol | None = None,
    last_modified: datetime | None = None,
    max_workers: int | None = None,
) -> Ledger:
    """Parse and validate several ledger segments as one ledger.

    Segments are parsed independently, optionally on a thread pool, then
    merged by each segment's ``order`` and source line, so an included file's
    transactions sit where its include line was. ``P`` lines found in the
    segments are layered over ``prices`` before any transaction is validated.

    Args:
        sources: Ledger segments in declaration order.
        prices: Price database loaded from a separate file.
        options: Default number separators.
        default_commodity: Commodity for bare numbers.
        last_modified: Newest modification time across the sources.
        max_workers: Thread pool size for parsing and validation.

    Returns:
        Ledger with valid transactions and diagnostics for the rest.

    Raises:
        LedgerLoadError: If any segment fails to scan or parse.
    """
    sources = list(sources)
    if max_workers is not None and max_workers > 1 and len(sources) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            results = list(pool.map(lambda s: _parse_one(s, options, default_commodity), sources))
    else:
        results = [_parse_one(source, options, default_commodity) for source in sources]

    failures = [r for r in results if isinstance(r, Diagnostic)]
    if failures:
        raise LedgerLoadError(failures)
    parsed = [r for r in results if isinstance(r, ParsedFile)]

    orders = [source.order or (index,) for index, source in enumerate(sources)]
    ledger_prices = sorted(
        ((order + (price.line,), price) for order, result in zip(orders, parsed) for price in result.prices),
        key=lambda pair: pair[0],
    )
    database = (prices or PriceDatabase()).merged(price for _, price in ledger_prices)
    commodities = _merge_commodities(parsed)
    raws = [
        transaction
        for _, transaction in sorted(
            (
                (order + (transaction.position.line,), transaction)
                for order, result in zip(orders, parsed)
                for transaction in result.transactions
            ),
            key=lambda pair: pair[0],
        )
    ]

    transactions, diagnostics = validate_transactions(raws, database, commodities, max_workers)
    logger.info(
        "Loaded %d of %d transactions from %d sources, %d prices",
        len(transactions),
        len(raws),
        len(sources),
        len(database),
    )

    return Ledger(
        transactions=tuple(transactions),
        commodities=commodities,
        prices=database,
        diagnostics=tuple(diagnostics),
        source_ids=tuple(source.source_id for source in sources),
        last_modified=last_modified,
    )


def parse_ledger(
    text: str,
    source_id: str = "<ledger>",
    *,
    prices: PriceDatabase | None = None,
    options: ScanOptions | None = None,
    default_commodity: CommoditySymbol | None = None,
    last_modified: datetime | None = None,
) -> Ledger:
    """Parse and validate a single ledger text.

    Args:
        text: Ledger file contents.
        source_id: Label used in diagnostics.
        prices: Price database used to balance multi-commodity transactions.
        options: Default number separators.
        default_commodity: Commodity for bare numbers.
        last_modified: Modification time of the source.

    Returns:
        Ledger with valid transactions and diagnostics for the rest.

    Raises:
        LedgerLoadError: If the text fails to scan or parse.
    """
    return parse_ledger_sources(
        [LedgerSource(source_id, text)],
        prices=prices,
        options=options,
        default_commodity=default_commodity,
        last_modified=last_modified,
    )
