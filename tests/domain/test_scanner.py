"""Tests for ledgerscope.domain.scanner."""

from datetime import date, time

import pytest

from ledgerscope.domain.commodity import SymbolPosition
from ledgerscope.domain.errors import LexError
from ledgerscope.domain.models import Position, Status
from ledgerscope.domain.scanner import ScanOptions, Scanner, TokenKind, records, scan


def kinds(text: str) -> list[TokenKind]:
    return [token.kind for token in scan(text)]


class TestTransactionLines:
    """Tests for transaction headers and postings."""

    def test_header_tokens(self) -> None:
        """Should emit date, status, code, payee and note."""
        tokens = list(scan("2024-01-15 * (1042) Grocery Store ; weekly shop\n"))

        assert [t.kind for t in tokens] == [
            TokenKind.DATE,
            TokenKind.STATUS,
            TokenKind.CODE,
            TokenKind.PAYEE,
            TokenKind.COMMENT,
            TokenKind.END_OF_RECORD,
        ]
        assert tokens[0].value == date(2024, 1, 15)
        assert tokens[1].value is Status.CLEARED
        assert tokens[2].value == "1042"
        assert tokens[3].value == "Grocery Store"
        assert tokens[4].value == "weekly shop"

    def test_pending_status(self) -> None:
        """Should map ! to pending."""
        tokens = list(scan("2024-01-15 ! Rent\n"))
        assert tokens[1].value is Status.PENDING

    def test_posting_with_amount(self) -> None:
        """Should split account from amount on two spaces."""
        tokens = list(scan("2024-01-15 Shop\n    Expenses:Food and Drink  100.00 USD\n"))
        account, amount = tokens[3], tokens[4]

        assert account.kind is TokenKind.ACCOUNT
        assert account.value == "Expenses:Food and Drink"
        assert amount.kind is TokenKind.AMOUNT
        assert amount.value.number == "100.00"
        assert amount.value.symbol == "USD"
        assert amount.value.symbol_position is SymbolPosition.RIGHT
        assert amount.value.negative is False

    def test_left_symbol_negative_amount(self) -> None:
        """Should scan a prefix symbol with a leading sign."""
        tokens = list(scan("2024-01-15 Shop\n    Assets:Cash  -$1,250.00\n"))
        literal = tokens[4].value

        assert literal.symbol == "$"
        assert literal.symbol_position is SymbolPosition.LEFT
        assert literal.spacing is False
        assert literal.negative is True
        assert literal.number == "1,250.00"

    def test_quoted_symbol(self) -> None:
        """Should accept quoted symbols containing spaces."""
        tokens = list(scan('2024-01-15 Buy\n    Assets:Fund  2.5 "VANGUARD 500"\n'))
        assert tokens[4].value.symbol == "VANGUARD 500"
        assert tokens[4].value.quoted is True

    def test_posting_without_amount(self) -> None:
        """Should emit only the account for an autobalance posting."""
        assert kinds("2024-01-15 Shop\n    Assets:Checking\n") == [
            TokenKind.DATE,
            TokenKind.PAYEE,
            TokenKind.END_OF_RECORD,
            TokenKind.ACCOUNT,
            TokenKind.END_OF_RECORD,
        ]

    def test_posting_with_bare_symbol(self) -> None:
        """Should emit a SYMBOL for a posting that names only its commodity."""
        tokens = list(scan("2024-01-15 Buy\n    Assets:Broker  AAPL\n"))
        assert tokens[4].kind is TokenKind.SYMBOL
        assert tokens[4].value == "AAPL"

    def test_bare_number(self) -> None:
        """Should scan a number with no commodity."""
        tokens = list(scan("2024-01-15 Shop\n    Expenses:Misc  42\n"))
        assert tokens[4].value.symbol == ""

    def test_amount_after_single_space(self) -> None:
        """An amount one space after the account should not join the account name."""
        tokens = list(scan("2024-01-15 Food\n    Assets:Checking -100.00 USD ; cash\n"))
        account, amount = tokens[3], tokens[4]

        assert account.value == "Assets:Checking"
        assert account.text == "Assets:Checking"
        assert amount.kind is TokenKind.AMOUNT
        assert amount.value.number == "100.00"
        assert amount.value.negative is True
        assert amount.position == Position(2, 21)
        assert tokens[5].kind is TokenKind.COMMENT

    def test_single_space_amount_after_spaced_account(self) -> None:
        """Words before the amount should stay in the account name."""
        tokens = list(scan("2024-01-15 Dinner\n    Expenses:Dining Out 25 USD\n"))
        assert tokens[3].value == "Expenses:Dining Out"
        assert tokens[4].value.number == "25"


class TestPositions:
    """Tests for source positions."""

    def test_positions_skip_comments_and_blanks(self) -> None:
        """Line numbers should count skipped lines."""
        text = "; header comment\n\n# another\n2024-01-15 Shop\n    Assets:Cash  -5 USD\n"
        tokens = list(scan(text))

        assert tokens[0].position == Position(4, 1)
        account = next(t for t in tokens if t.kind is TokenKind.ACCOUNT)
        assert account.position == Position(5, 5)

    def test_amount_column(self) -> None:
        """Amount position should point at its first character."""
        tokens = list(scan("2024-01-15 Shop\n  A:B  7 USD\n"))
        assert tokens[4].position == Position(2, 8)


class TestEndOfRecord:
    """Tests for END_OF_RECORD paragraph flags."""

    def test_blank_line_marks_paragraph_break(self) -> None:
        """The record before a blank line should carry True."""
        text = "2024-01-15 A\n  X  1 USD\n  Y\n\n2024-01-16 B\n  X  1 USD\n  Y\n"
        flags = [t.value for t in scan(text) if t.kind is TokenKind.END_OF_RECORD]
        assert flags == [False, False, True, False, False, True]

    def test_last_record_ends_input(self) -> None:
        """The final record should carry True even without a newline."""
        flags = [t.value for t in scan("2024-01-15 A") if t.kind is TokenKind.END_OF_RECORD]
        assert flags == [True]

    def test_records_groups_tokens(self) -> None:
        """records() should yield one list per line."""
        grouped = list(records(scan("2024-01-15 A\n  X  1 USD\n")))
        assert len(grouped) == 2
        assert all(record[-1].kind is TokenKind.END_OF_RECORD for record in grouped)


class TestDirectives:
    """Tests for directive lines."""

    def test_price_directive(self) -> None:
        """Should emit date, time, symbol and amount for P lines."""
        tokens = list(scan("P 2024-01-15 14:30 AAPL $185.50\n"))

        assert [t.kind for t in tokens] == [
            TokenKind.DIRECTIVE,
            TokenKind.DATE,
            TokenKind.TIME,
            TokenKind.SYMBOL,
            TokenKind.AMOUNT,
            TokenKind.END_OF_RECORD,
        ]
        assert tokens[2].value == time(14, 30)
        assert tokens[3].value == "AAPL"

    def test_commodity_block(self) -> None:
        """Indented lines after commodity should be sub-directives."""
        tokens = list(scan("commodity EUR\n    format 1.000,00 EUR\n"))
        heads = [t for t in tokens if t.kind is TokenKind.DIRECTIVE]

        assert [t.value for t in heads] == ["commodity", "format"]
        amount = next(t for t in tokens if t.kind is TokenKind.AMOUNT)
        assert amount.value.number == "1.000,00"

    def test_other_directive_argument(self) -> None:
        """Should keep the rest of the line as an argument."""
        tokens = list(scan("include other file.journal\n"))
        assert tokens[1].kind is TokenKind.ARGUMENT
        assert tokens[1].value == "other file.journal"

    def test_directive_argument_drops_comment(self) -> None:
        """A trailing comment should not become part of the argument."""
        tokens = list(scan("include a.journal ; shared\n"))
        assert tokens[1].value == "a.journal"
        assert tokens[1].text == "a.journal"
        assert tokens[2].kind is TokenKind.COMMENT
        assert tokens[2].value == "shared"

    def test_custom_separators_scan(self) -> None:
        """Numbers should use configured separators."""
        tokens = list(scan("2024-01-15 A\n  X  1'000.50 CHF\n", ScanOptions(thousands_separator="'")))
        assert tokens[4].value.number == "1'000.50"


class TestErrors:
    """Tests for lexical errors."""

    def test_unknown_top_level_line(self) -> None:
        """Should reject a line that is neither a date nor a directive."""
        with pytest.raises(LexError) as excinfo:
            list(scan("2024-01-15 A\n  X  1 USD\nbogus line\n"))
        assert excinfo.value.position == Position(3, 1)

    def test_invalid_date(self) -> None:
        """Should reject impossible dates."""
        with pytest.raises(LexError):
            list(scan("2024-13-01 Shop\n"))

    def test_junk_after_amount(self) -> None:
        """Should report the offending character."""
        with pytest.raises(LexError) as excinfo:
            list(scan("2024-01-15 A\n  X  1 USD @ 2 EUR\n"))
        assert excinfo.value.unexpected_char == "@"

    def test_number_inside_account_name(self) -> None:
        """A number after a single space that is not the posting's amount should be rejected."""
        with pytest.raises(LexError) as excinfo:
            list(scan("2024-01-15 A\n    Assets:Checking 100 USD extra\n"))
        assert excinfo.value.unexpected_char == "1"
        assert excinfo.value.position == Position(2, 21)


class TestRestartable:
    """Tests for Scanner iteration."""

    def test_scanner_can_be_iterated_twice(self) -> None:
        """Each iteration should start over."""
        scanner = Scanner("2024-01-15 A\n  X  1 USD\n  Y\n")
        assert list(scanner) == list(scanner)

    def test_byte_order_mark_ignored(self) -> None:
        """A leading BOM should not affect scanning."""
        assert kinds("\ufeff2024-01-15 A\n") == [TokenKind.DATE, TokenKind.PAYEE, TokenKind.END_OF_RECORD]
