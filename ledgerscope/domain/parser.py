"""Ledger parser: turns scanner records into raw transactions.

Parsing is a single sequential pass. All mutable bookkeeping (the open
transaction, declared commodity formats, collected prices) lives in a
ParserState created for each call and passed to every step, so separate
files can be parsed on separate threads.

Any LexError or ParseError aborts the file. Nothing parsed so far is
returned in that case.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import date

from ledgerscope.domain.commodity import Amount, Commodity, CommodityFormat, parse_quantity
from ledgerscope.domain.errors import LexError, ParseError
from ledgerscope.domain.models import AccountPath, CommoditySymbol, Payee, Position, Status
from ledgerscope.domain.prices import Price, parse_price_record
from ledgerscope.domain.scanner import AmountLiteral, ScanOptions, Scanner, Token, TokenKind, records
from ledgerscope.logging_setup import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RawPosting:
    """Posting as written; ``amount`` is None for the autobalance slot."""

    account: AccountPath
    amount: Amount | None
    position: Position
    declared_commodity: CommoditySymbol | None = None
    note: str | None = None

    @property
    def missing(self) -> bool:
        return self.amount is None


@dataclass(frozen=True)
class RawTransaction:
    """Transaction as written, before balancing."""

    date: date
    status: Status
    payee: Payee
    postings: tuple[RawPosting, ...]
    position: Position
    source_id: str
    code: str | None = None
    note: str | None = None


@dataclass(frozen=True)
class ParsedFile:
    """Everything one ledger text declares."""

    source_id: str
    transactions: tuple[RawTransaction, ...]
    prices: tuple[Price, ...]
    commodities: tuple[Commodity, ...]
    default_commodity: CommoditySymbol | None = None
    declared: frozenset[CommoditySymbol] = frozenset()


@dataclass
class _OpenHeader:
    date: date
    status: Status
    payee: Payee
    position: Position
    code: str | None
    note: str | None


@dataclass
class ParserState:
    """Bookkeeping for one parse call."""

    source_id: str
    options: ScanOptions
    default_commodity: CommoditySymbol | None = None
    declared: dict[CommoditySymbol, CommodityFormat] = field(default_factory=dict)
    observed: dict[CommoditySymbol, CommodityFormat] = field(default_factory=dict)
    styled: set[CommoditySymbol] = field(default_factory=set)
    transactions: list[RawTransaction] = field(default_factory=list)
    prices: list[Price] = field(default_factory=list)
    header: _OpenHeader | None = None
    postings: list[RawPosting] = field(default_factory=list)
    block_commodity: CommoditySymbol | None = None

    def error(self, position: Position, reason: str) -> ParseError:
        return ParseError(position, reason, self.source_id)


def infer_separators(number: str, options: ScanOptions) -> tuple[str, str, int]:
    """Work out decimal mark, thousands separator and precision from a sample number.

    Args:
        number: Sample digits such as "1.000,00" or "1,000.00".
        options: Configured defaults, used when the sample is ambiguous.

    Returns:
        Tuple of (decimal_mark, thousands_separator, precision).
    """
    marks = [c for c in number if not c.isdigit()]
    if not marks:
        return options.decimal_mark, options.thousands_separator, 0

    last = marks[-1]
    others = {c for c in marks if c != last}
    tail = number.rsplit(last, 1)[1]

    if others:
        decimal_mark, thousands = last, others.pop()
    elif marks.count(last) > 1:
        # repeated separator can only be grouping
        decimal_mark, thousands = options.decimal_mark, last
        if decimal_mark == thousands:
            decimal_mark = "," if last == "." else "."
        return decimal_mark, thousands, 0
    elif last == options.thousands_separator and len(tail) == 3 and last != options.decimal_mark:
        return options.decimal_mark, last, 0
    else:
        decimal_mark = last
        thousands = options.thousands_separator
        if thousands == last:
            thousands = "," if last == "." else "."

    return decimal_mark, thousands, len(tail)


def parse(
    tokens: Iterable[Token],
    source_id: str,
    options: ScanOptions | None = None,
    default_commodity: CommoditySymbol | None = None,
) -> ParsedFile:
    """Assemble raw transactions from a token stream.

    Args:
        tokens: Scanner output for one file.
        source_id: Label attached to every transaction and error.
        options: Default number separators.
        default_commodity: Commodity for bare numbers until a ``D`` directive says otherwise.

    Returns:
        ParsedFile with transactions in source order.

    Raises:
        LexError: If the token stream hits unscannable text.
        ParseError: On the first grammar violation.
    """
    state = ParserState(source_id, options or ScanOptions(), default_commodity)

    try:
        for record in records(tokens):
            _step(state, record)
    except LexError as e:
        e.source_id = e.source_id or source_id
        raise

    _close_transaction(state)
    return _finish(state)


def parse_text(
    text: str,
    source_id: str,
    options: ScanOptions | None = None,
    default_commodity: CommoditySymbol | None = None,
) -> ParsedFile:
    """Scan and parse ledger text in one go."""
    return parse(Scanner(text, options), source_id, options, default_commodity)


def _step(state: ParserState, record: list[Token]) -> None:
    head = record[0]

    if head.kind is TokenKind.DATE:
        _close_transaction(state)
        state.block_commodity = None
        _open_transaction(state, record)
    elif head.kind is TokenKind.ACCOUNT:
        if state.header is None:
            raise state.error(head.position, "Posting outside of a transaction")
        state.postings.append(_posting(state, record))
    elif head.kind is TokenKind.DIRECTIVE and head.position.column == 1:
        _close_transaction(state)
        state.block_commodity = None
        _directive(state, record)
    elif head.kind is TokenKind.DIRECTIVE:
        _sub_directive(state, record)
    elif head.kind is not TokenKind.END_OF_RECORD:
        raise state.error(head.position, f"Unexpected {head.kind.value} at start of line")

    tail = record[-1]
    if tail.kind is TokenKind.END_OF_RECORD and tail.value:
        _close_transaction(state)
        state.block_commodity = None


def _fields(record: list[Token]) -> list[Token]:
    return [t for t in record if t.kind is not TokenKind.END_OF_RECORD]


def _note(tokens: list[Token]) -> str | None:
    notes = [t.value for t in tokens if t.kind is TokenKind.COMMENT]
    return notes[0] if notes and notes[0] else None


def _open_transaction(state: ParserState, record: list[Token]) -> None:
    fields = _fields(record)
    by_kind: dict[TokenKind, Token] = {}
    for token in fields:
        if token.kind in by_kind:
            raise state.error(token.position, f"Transaction header has more than one {token.kind.value}")
        by_kind[token.kind] = token

    head = fields[0]
    payee = by_kind.get(TokenKind.PAYEE)
    if payee is None:
        raise state.error(head.position, "Transaction header needs a description")

    status = by_kind.get(TokenKind.STATUS)
    code = by_kind.get(TokenKind.CODE)
    state.header = _OpenHeader(
        date=head.value,
        status=status.value if status else Status.UNCLEARED,
        payee=Payee(payee.value),
        position=head.position,
        code=code.value if code else None,
        note=_note(fields),
    )
    state.postings = []


def _close_transaction(state: ParserState) -> None:
    header = state.header
    if header is None:
        return

    if len(state.postings) < 2:
        raise state.error(header.position, "Transaction needs at least two postings")

    state.transactions.append(
        RawTransaction(
            date=header.date,
            status=header.status,
            payee=header.payee,
            postings=tuple(state.postings),
            position=header.position,
            source_id=state.source_id,
            code=header.code,
            note=header.note,
        )
    )
    state.header = None
    state.postings = []


def _posting(state: ParserState, record: list[Token]) -> RawPosting:
    fields = _fields(record)
    account = fields[0]
    values = [t for t in fields[1:] if t.kind in (TokenKind.AMOUNT, TokenKind.SYMBOL)]
    if len(values) > 1:
        raise state.error(values[1].position, "Posting has more than one amount")

    amount = None
    declared = None
    if values and values[0].kind is TokenKind.AMOUNT:
        amount = _to_amount(state, values[0])
    elif values:
        declared = CommoditySymbol(values[0].value)
        _register(state, declared)

    return RawPosting(
        account=AccountPath(account.value),
        amount=amount,
        position=account.position,
        declared_commodity=declared,
        note=_note(fields),
    )


def _directive(state: ParserState, record: list[Token]) -> None:
    fields = _fields(record)
    head = fields[0]
    keyword = head.value
    argument = fields[1] if len(fields) > 1 and fields[1].kind is not TokenKind.COMMENT else None

    if keyword == "P":
        state.prices.append(parse_price_record(record, state.source_id, lambda t: _to_amount(state, t)))
        _register(state, state.prices[-1].source)
    elif keyword == "commodity":
        symbol = _declare(state, head, argument)
        state.block_commodity = symbol
    elif keyword == "D":
        state.default_commodity = _declare(state, head, argument)
    elif keyword == "include":
        if argument is None:
            raise state.error(head.position, "include needs a file path")
        logger.debug("%s:%s: include %s is expanded by the loader", state.source_id, head.position, argument.value)
    else:
        logger.debug("%s:%s: ignoring %s directive", state.source_id, head.position, keyword)


def _sub_directive(state: ParserState, record: list[Token]) -> None:
    fields = _fields(record)
    head = fields[0]
    if head.value != "format" or state.block_commodity is None:
        logger.debug("%s:%s: ignoring %s sub-directive", state.source_id, head.position, head.value)
        return

    sample = fields[1]
    literal: AmountLiteral = sample.value
    if literal.symbol and literal.symbol != state.block_commodity:
        raise state.error(
            sample.position,
            f"Format sample is for {literal.symbol}, not {state.block_commodity}",
        )
    _declare_format(state, state.block_commodity, literal)


def _declare(state: ParserState, head: Token, argument: Token | None) -> CommoditySymbol:
    if argument is None:
        raise state.error(head.position, "Expected a commodity")
    if argument.kind is TokenKind.SYMBOL:
        symbol = CommoditySymbol(argument.value)
        _register(state, symbol)
        return symbol
    if argument.kind is not TokenKind.AMOUNT:
        raise state.error(argument.position, "Expected a commodity or sample amount")

    literal: AmountLiteral = argument.value
    if not literal.symbol:
        raise state.error(argument.position, "Sample amount needs a commodity symbol")
    symbol = CommoditySymbol(literal.symbol)
    _declare_format(state, symbol, literal)
    return symbol


def _declare_format(state: ParserState, symbol: CommoditySymbol, literal: AmountLiteral) -> None:
    decimal_mark, thousands, precision = infer_separators(literal.number, state.options)
    state.declared[symbol] = CommodityFormat(
        symbol_position=literal.symbol_position,
        spacing=literal.spacing,
        decimal_mark=decimal_mark,
        thousands_separator=thousands,
        precision=precision,
        quoted=literal.quoted,
    )
    _register(state, symbol)


def _register(state: ParserState, symbol: CommoditySymbol) -> None:
    if symbol not in state.observed:
        state.observed[symbol] = CommodityFormat(
            decimal_mark=state.options.decimal_mark,
            thousands_separator=state.options.thousands_separator,
        )


def _to_amount(state: ParserState, token: Token) -> Amount:
    literal: AmountLiteral = token.value
    symbol = CommoditySymbol(literal.symbol) if literal.symbol else state.default_commodity or CommoditySymbol("")

    declared = state.declared.get(symbol)
    if declared is not None:
        decimal_mark, thousands = declared.decimal_mark, declared.thousands_separator
    else:
        decimal_mark, thousands = state.options.decimal_mark, state.options.thousands_separator

    try:
        quantity = parse_quantity(literal.number, decimal_mark, thousands)
    except ValueError as e:
        raise state.error(token.position, str(e)) from e
    if literal.negative:
        quantity = quantity.copy_negate()

    _observe(state, symbol, literal, decimal_mark)
    return Amount(quantity, symbol)


def _observe(state: ParserState, symbol: CommoditySymbol, literal: AmountLiteral, decimal_mark: str) -> None:
    """Track the first-seen style and widest precision of a commodity."""
    precision = 0
    if decimal_mark in literal.number:
        precision = len(literal.number.rpartition(decimal_mark)[2])

    if symbol not in state.styled:
        state.observed[symbol] = CommodityFormat(
            symbol_position=literal.symbol_position,
            spacing=literal.spacing,
            decimal_mark=state.options.decimal_mark,
            thousands_separator=state.options.thousands_separator,
            precision=precision,
            quoted=literal.quoted,
        )
        state.styled.add(symbol)
    elif precision > state.observed[symbol].precision:
        state.observed[symbol] = replace(state.observed[symbol], precision=precision)


def _finish(state: ParserState) -> ParsedFile:
    commodities = tuple(
        Commodity(symbol, state.declared.get(symbol, style)) for symbol, style in state.observed.items()
    )
    logger.debug(
        "Parsed %s: %d transactions, %d prices, %d commodities",
        state.source_id,
        len(state.transactions),
        len(state.prices),
        len(commodities),
    )
    return ParsedFile(
        source_id=state.source_id,
        transactions=tuple(state.transactions),
        prices=tuple(state.prices),
        commodities=commodities,
        default_commodity=state.default_commodity,
        declared=frozenset(state.declared),
    )
