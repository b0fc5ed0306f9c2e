"""Lexical scanner for ledger and price database text.

The scanner is line oriented. Every non-blank, non-comment line becomes a
record: a run of typed tokens closed by an END_OF_RECORD token. Blank lines
and comment lines produce nothing, but line numbers keep counting so token
positions always point at the real source line.

END_OF_RECORD carries a boolean value: True when the record is followed by a
blank line or the end of input. The parser uses it to close transactions.

Amount literals keep their number as written. The exact quantity depends on
the commodity's separators, which the parser knows and the scanner does not.
"""

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ledgerscope.dates import parse_date, parse_time
from ledgerscope.domain.commodity import SymbolPosition
from ledgerscope.domain.errors import LexError
from ledgerscope.domain.models import Position, Status

COMMENT_CHARS = (";", "#")

DIRECTIVES = frozenset(
    {"P", "D", "commodity", "include", "account", "alias", "payee", "tag", "year", "apply", "end"}
)

# Directives whose indented follow-up lines are sub-directives, not postings
BLOCK_DIRECTIVES = frozenset({"commodity", "account"})

_WS_RE = re.compile(r"[ \t]*")
_WORD_RE = re.compile(r"[A-Za-z]+")
_DATE_RE = re.compile(r"\d{4}[-/.]\d{1,2}[-/.]\d{1,2}")
_TIME_RE = re.compile(r"\d{1,2}:\d{2}(?::\d{2})?(?=[ \t]|$)")
_CODE_RE = re.compile(r"\(([^)\r\n]*)\)")
_PAYEE_RE = re.compile(r"[^;]*")
_ACCOUNT_RE = re.compile(r"[^\s;](?:[^\s;]| (?=[^\s;]))*")
_LOOSE_NUMBER_RE = re.compile(r" [-+]?\d")
_QUOTED_SYMBOL_RE = re.compile(r'"([^"\r\n]+)"')
_UNQUOTED_SYMBOL_RE = re.compile(r"[^\s\-+\d.,;\"'@=()\[\]{}*!#]+")


class TokenKind(Enum):
    """Kinds of tokens produced by the scanner."""

    DATE = "date"
    TIME = "time"
    STATUS = "status"
    CODE = "code"
    PAYEE = "payee"
    ACCOUNT = "account"
    AMOUNT = "amount"
    SYMBOL = "symbol"
    COMMENT = "comment"
    DIRECTIVE = "directive"
    ARGUMENT = "argument"
    END_OF_RECORD = "end_of_record"


@dataclass(frozen=True)
class AmountLiteral:
    """An amount as written, before its quantity is resolved."""

    number: str
    negative: bool
    symbol: str
    symbol_position: SymbolPosition
    spacing: bool
    quoted: bool = False


@dataclass(frozen=True)
class Token:
    """Immutable token with its source position."""

    kind: TokenKind
    text: str
    position: Position
    value: Any = None


@dataclass(frozen=True)
class ScanOptions:
    """Number separators used when no commodity format says otherwise."""

    decimal_mark: str = "."
    thousands_separator: str = ","


class _LineScanner:
    """Cursor over a single line."""

    def __init__(self, line: str, lineno: int, number_re: re.Pattern[str]) -> None:
        self.line = line
        self.lineno = lineno
        self.pos = 0
        self.number_re = number_re

    def at_end(self) -> bool:
        return self.pos >= len(self.line)

    def peek(self) -> str:
        return "" if self.at_end() else self.line[self.pos]

    def skip_ws(self) -> int:
        match = _WS_RE.match(self.line, self.pos)
        assert match is not None
        skipped = match.end() - self.pos
        self.pos = match.end()
        return skipped

    def match(self, pattern: re.Pattern[str]) -> re.Match[str] | None:
        match = pattern.match(self.line, self.pos)
        if match:
            self.pos = match.end()
        return match

    def token(self, kind: TokenKind, start: int, value: Any = None) -> Token:
        return Token(kind, self.line[start : self.pos], Position(self.lineno, start + 1), value)

    def error(self, reason: str | None = None) -> LexError:
        return LexError(Position(self.lineno, self.pos + 1), self.peek() or "\n", reason)

    def _symbol(self) -> tuple[str | None, bool]:
        quoted = self.match(_QUOTED_SYMBOL_RE)
        if quoted:
            return quoted.group(1), True
        unquoted = self.match(_UNQUOTED_SYMBOL_RE)
        if unquoted:
            return unquoted.group(), False
        return None, False

    def scan_symbol(self) -> Token | None:
        start = self.pos
        symbol, quoted = self._symbol()
        if symbol is None:
            return None
        return self.token(TokenKind.SYMBOL, start, symbol)

    def scan_amount(self) -> Token | None:
        """Scan an amount literal, or leave the cursor alone and return None."""
        start = self.pos
        negative = False
        if self.peek() in ("-", "+"):
            negative = self.peek() == "-"
            self.pos += 1

        symbol, quoted = self._symbol()
        if symbol is not None:
            spacing = self.skip_ws() > 0
            if self.peek() in ("-", "+"):
                if negative:
                    raise self.error("Amount has two signs")
                negative = self.peek() == "-"
                self.pos += 1
            number = self.match(self.number_re)
            if number is None:
                self.pos = start
                return None
            literal = AmountLiteral(number.group(), negative, symbol, SymbolPosition.LEFT, spacing, quoted)
            return self.token(TokenKind.AMOUNT, start, literal)

        number = self.match(self.number_re)
        if number is None:
            self.pos = start
            return None

        after_number = self.pos
        spacing = self.skip_ws() > 0
        symbol, quoted = self._symbol()
        if symbol is None:
            self.pos = after_number
            literal = AmountLiteral(number.group(), negative, "", SymbolPosition.RIGHT, True)
        else:
            literal = AmountLiteral(number.group(), negative, symbol, SymbolPosition.RIGHT, spacing, quoted)
        return self.token(TokenKind.AMOUNT, start, literal)

    def scan_date(self) -> Token:
        start = self.pos
        match = self.match(_DATE_RE)
        if match is None:
            raise self.error("Expected a date")
        try:
            value = parse_date(match.group())
        except ValueError as e:
            raise LexError(Position(self.lineno, start + 1), match.group()[0], str(e)) from e
        return self.token(TokenKind.DATE, start, value)

    def finish(self, tokens: list[Token]) -> list[Token]:
        """Accept an optional trailing comment and require end of line."""
        self.skip_ws()
        if self.peek() == ";":
            start = self.pos
            self.pos = len(self.line)
            tokens.append(self.token(TokenKind.COMMENT, start, self.line[start + 1 :].strip()))
        elif not self.at_end():
            raise self.error()
        return tokens


class Scanner:
    """Restartable token stream over ledger text.

    Each iteration starts from the top of the text, so a Scanner can be
    consumed more than once.
    """

    def __init__(self, text: str, options: ScanOptions | None = None) -> None:
        self.text = text.lstrip("\ufeff")
        self.options = options or ScanOptions()
        separators = {".", ",", self.options.decimal_mark, self.options.thousands_separator}
        separator_class = "".join(re.escape(s) for s in sorted(separators) if s and not s.isspace())
        self._number_re = re.compile(rf"\d(?:[\d{separator_class}]*\d)?")

    def __iter__(self) -> Iterator[Token]:
        return self._tokens()

    def _tokens(self) -> Iterator[Token]:
        pending: Token | None = None
        blank_seen = False
        in_block = False

        for lineno, line in enumerate(self.text.splitlines(), start=1):
            stripped = line.strip()
            if not stripped:
                blank_seen = True
                continue
            if stripped.startswith(COMMENT_CHARS):
                continue

            if pending is not None:
                yield Token(TokenKind.END_OF_RECORD, "", pending.position, blank_seen)
            if blank_seen:
                in_block = False
            blank_seen = False

            tokens, opens_block = self._scan_line(line, lineno, in_block)
            if line[0] not in " \t":
                in_block = opens_block
            yield from tokens

            end = line.rstrip()
            pending = Token(TokenKind.END_OF_RECORD, "", Position(lineno, len(end) + 1))

        if pending is not None:
            yield Token(TokenKind.END_OF_RECORD, "", pending.position, True)

    def _scan_line(self, line: str, lineno: int, in_block: bool) -> tuple[list[Token], bool]:
        cursor = _LineScanner(line, lineno, self._number_re)

        if line[0] in " \t":
            cursor.skip_ws()
            if in_block:
                return self._sub_directive(cursor), True
            return self._posting(cursor), False

        if line[0].isdigit():
            return self._header(cursor), False

        word = _WORD_RE.match(line)
        if word and word.group() in DIRECTIVES and (word.end() == len(line) or line[word.end()] in " \t"):
            keyword = word.group()
            return self._directive(cursor, keyword), keyword in BLOCK_DIRECTIVES

        raise cursor.error()

    def _header(self, cursor: _LineScanner) -> list[Token]:
        tokens = [cursor.scan_date()]
        if not cursor.at_end() and cursor.peek() not in " \t":
            raise cursor.error()
        cursor.skip_ws()

        if cursor.peek() in ("*", "!"):
            start = cursor.pos
            cursor.pos += 1
            tokens.append(cursor.token(TokenKind.STATUS, start, Status.from_flag(cursor.line[start])))
            cursor.skip_ws()

        if cursor.peek() == "(":
            start = cursor.pos
            code = cursor.match(_CODE_RE)
            if code is None:
                raise cursor.error("Unterminated transaction code")
            tokens.append(cursor.token(TokenKind.CODE, start, code.group(1).strip()))
            cursor.skip_ws()

        start = cursor.pos
        payee = cursor.match(_PAYEE_RE)
        assert payee is not None
        text = payee.group().rstrip()
        if text:
            tokens.append(Token(TokenKind.PAYEE, text, Position(cursor.lineno, start + 1), text))

        return cursor.finish(tokens)

    def _posting(self, cursor: _LineScanner) -> list[Token]:
        start = cursor.pos
        account = cursor.match(_ACCOUNT_RE)
        if account is None:
            raise cursor.error("Expected an account name")
        cursor.pos = self._account_end(cursor, start, account.group())
        tokens = [cursor.token(TokenKind.ACCOUNT, start, cursor.line[start : cursor.pos])]

        while True:
            cursor.skip_ws()
            if cursor.at_end() or cursor.peek() == ";":
                return cursor.finish(tokens)
            token = cursor.scan_amount() or cursor.scan_symbol()
            if token is None:
                raise cursor.error()
            tokens.append(token)

    def _account_end(self, cursor: _LineScanner, start: int, name: str) -> int:
        """Find where an account name ends.

        Account names may contain single spaces. When the text after one of
        those spaces is exactly an amount (plus an optional comment), the
        account stops there and the amount belongs to the posting.

        Raises:
            LexError: If a number follows a single space but does not form
                the posting's amount.
        """
        for index, char in enumerate(name):
            if char != " ":
                continue
            trial = _LineScanner(cursor.line, cursor.lineno, self._number_re)
            trial.pos = start + index + 1
            try:
                amount = trial.scan_amount()
            except LexError:
                continue
            if amount is None:
                continue
            trial.skip_ws()
            if trial.at_end() or trial.peek() == ";":
                return start + index

        number = _LOOSE_NUMBER_RE.search(name)
        if number:
            cursor.pos = start + number.start() + 1
            raise cursor.error("Amount must follow the account after whitespace and end the posting")
        return start + len(name)

    def _directive(self, cursor: _LineScanner, keyword: str) -> list[Token]:
        cursor.pos = len(keyword)
        tokens = [cursor.token(TokenKind.DIRECTIVE, 0, keyword)]
        cursor.skip_ws()

        if keyword == "P":
            tokens.append(cursor.scan_date())
            cursor.skip_ws()
            start = cursor.pos
            time_match = cursor.match(_TIME_RE)
            if time_match:
                try:
                    value = parse_time(time_match.group())
                except ValueError as e:
                    raise LexError(Position(cursor.lineno, start + 1), time_match.group()[0], str(e)) from e
                tokens.append(cursor.token(TokenKind.TIME, start, value))
                cursor.skip_ws()
            symbol = cursor.scan_symbol()
            if symbol is None:
                raise cursor.error("Expected a commodity symbol")
            tokens.append(symbol)
            cursor.skip_ws()
            amount = cursor.scan_amount()
            if amount is None:
                raise cursor.error("Expected a price amount")
            tokens.append(amount)
            return cursor.finish(tokens)

        if keyword in ("commodity", "D"):
            token = cursor.scan_amount() or cursor.scan_symbol()
            if token is None:
                raise cursor.error("Expected a commodity")
            tokens.append(token)
            return cursor.finish(tokens)

        return self._argument(cursor, tokens)

    def _sub_directive(self, cursor: _LineScanner) -> list[Token]:
        start = cursor.pos
        word = cursor.match(_WORD_RE)
        if word is None:
            raise cursor.error("Expected a sub-directive")
        tokens = [cursor.token(TokenKind.DIRECTIVE, start, word.group())]
        cursor.skip_ws()

        if word.group() == "format":
            amount = cursor.scan_amount()
            if amount is None:
                raise cursor.error("Expected a sample amount")
            tokens.append(amount)
            return cursor.finish(tokens)

        return self._argument(cursor, tokens)

    def _argument(self, cursor: _LineScanner, tokens: list[Token]) -> list[Token]:
        start = cursor.pos
        end = cursor.line.find(";", start)
        rest = cursor.line[start : end if end >= 0 else len(cursor.line)].rstrip()
        cursor.pos = start + len(rest)
        if rest:
            tokens.append(cursor.token(TokenKind.ARGUMENT, start, rest))
        return cursor.finish(tokens)


def scan(text: str, options: ScanOptions | None = None) -> Iterator[Token]:
    """Tokenize ledger text.

    Args:
        text: Raw ledger or price database text.
        options: Default number separators.

    Returns:
        Lazy iterator of tokens.

    Raises:
        LexError: While iterating, when no token shape matches.
    """
    return iter(Scanner(text, options))


def records(tokens: Iterable[Token]) -> Iterator[list[Token]]:
    """Group a token stream into records, each ending with its END_OF_RECORD token."""
    record: list[Token] = []
    for token in tokens:
        record.append(token)
        if token.kind is TokenKind.END_OF_RECORD:
            yield record
            record = []
    if record:
        yield record
