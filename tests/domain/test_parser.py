"""Tests for ledgerscope.domain.parser."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from ledgerscope.domain.commodity import Amount, SymbolPosition
from ledgerscope.domain.errors import LexError, ParseError
from ledgerscope.domain.models import CommoditySymbol, Status
from ledgerscope.domain.parser import infer_separators, parse_text
from ledgerscope.domain.scanner import ScanOptions

USD = CommoditySymbol("USD")
EUR = CommoditySymbol("EUR")

GROCERIES = """\
2024-01-15 * (42) Grocery Store ; weekly
    Expenses:Food  100.00 USD ; milk and bread
    Assets:Checking
"""


class TestTransactions:
    """Tests for transaction assembly."""

    def test_header_fields(self) -> None:
        """Should carry date, status, code, payee and note."""
        parsed = parse_text(GROCERIES, "main.journal")
        transaction = parsed.transactions[0]

        assert transaction.date == date(2024, 1, 15)
        assert transaction.status is Status.CLEARED
        assert transaction.code == "42"
        assert transaction.payee == "Grocery Store"
        assert transaction.note == "weekly"
        assert transaction.source_id == "main.journal"
        assert transaction.position.line == 1

    def test_postings(self) -> None:
        """Should keep postings in order with the missing amount as None."""
        postings = parse_text(GROCERIES, "main.journal").transactions[0].postings

        assert [p.account for p in postings] == ["Expenses:Food", "Assets:Checking"]
        assert postings[0].amount == Amount(Decimal("100.00"), USD)
        assert postings[0].note == "milk and bread"
        assert postings[1].missing
        assert postings[1].position.line == 3

    def test_uncleared_by_default(self) -> None:
        """A header without a flag should be uncleared."""
        parsed = parse_text("2024-01-15 Shop\n  A  1 USD\n  B  -1 USD\n", "x")
        assert parsed.transactions[0].status is Status.UNCLEARED

    def test_blank_line_separates_transactions(self) -> None:
        """Consecutive paragraphs should become separate transactions."""
        text = GROCERIES + "\n" + "2024-01-16 Cafe\n    Expenses:Coffee  3.50 USD\n    Assets:Cash\n"
        parsed = parse_text(text, "x")

        assert [t.payee for t in parsed.transactions] == ["Grocery Store", "Cafe"]

    def test_next_header_closes_transaction(self) -> None:
        """A new date line should close the open transaction even without a blank line."""
        text = "2024-01-15 A\n  X  1 USD\n  Y\n2024-01-16 B\n  X  2 USD\n  Y\n"
        assert len(parse_text(text, "x").transactions) == 2

    def test_comment_lines_inside_transaction(self) -> None:
        """Comment lines between postings should be ignored."""
        text = "2024-01-15 A\n  X  1 USD\n  ; aside\n  Y\n"
        assert len(parse_text(text, "x").transactions[0].postings) == 2

    def test_declared_commodity_posting(self) -> None:
        """A posting naming only a symbol should record it as its declared commodity."""
        text = "2024-01-15 Buy\n    Assets:Broker  AAPL\n    Assets:Cash  -1500.00 USD\n"
        posting = parse_text(text, "x").transactions[0].postings[0]

        assert posting.missing
        assert posting.declared_commodity == "AAPL"

    def test_default_commodity_for_bare_numbers(self) -> None:
        """A D directive should apply to bare numbers that follow it."""
        text = "D $1,000.00\n\n2024-01-15 A\n  X  12.50\n  Y\n"
        parsed = parse_text(text, "x")

        assert parsed.default_commodity == "$"
        assert parsed.transactions[0].postings[0].amount == Amount(Decimal("12.50"), CommoditySymbol("$"))


class TestParseErrors:
    """Tests for grammar violations."""

    def test_single_posting(self) -> None:
        """A transaction needs at least two postings."""
        with pytest.raises(ParseError) as excinfo:
            parse_text("2024-01-15 A\n  X  1 USD\n", "x")
        assert excinfo.value.position.line == 1

    def test_missing_payee(self) -> None:
        """A header needs a description."""
        with pytest.raises(ParseError):
            parse_text("2024-01-15 *\n  X  1 USD\n  Y\n", "x")

    def test_posting_outside_transaction(self) -> None:
        """An indented posting with no open transaction is an error."""
        with pytest.raises(ParseError):
            parse_text("  Assets:Cash  1 USD\n", "x")

    def test_two_amounts_on_posting(self) -> None:
        """A posting may carry only one amount."""
        with pytest.raises(ParseError):
            parse_text("2024-01-15 A\n  X  1 USD 2 USD\n  Y\n", "x")

    def test_misplaced_grouping_reports_position(self) -> None:
        """A malformed number should point at the amount."""
        with pytest.raises(ParseError) as excinfo:
            parse_text("2024-01-15 A\n  X  1,00.00 USD\n  Y\n", "main.journal")
        assert excinfo.value.position.line == 2
        assert excinfo.value.source_id == "main.journal"

    def test_lex_error_gets_source(self) -> None:
        """Lexical errors should carry the source label."""
        with pytest.raises(LexError) as excinfo:
            parse_text("2024-01-15 A\n  X  1 USD @\n  Y\n", "main.journal")
        assert excinfo.value.source_id == "main.journal"


class TestCommodities:
    """Tests for commodity styles and declarations."""

    def test_observed_style(self) -> None:
        """The first amount should set the style and precision should widen."""
        text = "2024-01-15 A\n  X  $1.5\n  Y  -$1.50\n  Z  $0.001\n  W\n"
        parsed = parse_text(text, "x")
        dollar = next(c for c in parsed.commodities if c.symbol == "$")

        assert dollar.style.symbol_position is SymbolPosition.LEFT
        assert dollar.style.spacing is False
        assert dollar.style.precision == 3

    def test_format_directive(self) -> None:
        """A commodity format should set separators used for later amounts."""
        text = "commodity EUR\n    format 1.000,00 EUR\n\n2024-01-15 A\n  X  1.234,50 EUR\n  Y\n"
        parsed = parse_text(text, "x")
        euro = next(c for c in parsed.commodities if c.symbol == "EUR")

        assert euro.style.decimal_mark == ","
        assert euro.style.thousands_separator == "."
        assert euro.style.precision == 2
        assert parsed.transactions[0].postings[0].amount == Amount(Decimal("1234.50"), EUR)
        assert EUR in parsed.declared

    def test_inline_commodity_sample(self) -> None:
        """A commodity line with a sample amount should declare its format."""
        parsed = parse_text("commodity 1.000,000 BTC\n", "x")
        assert parsed.commodities[0].style.precision == 3

    def test_format_for_other_symbol(self) -> None:
        """A format sample must match the block's commodity."""
        with pytest.raises(ParseError):
            parse_text("commodity EUR\n    format 1,000.00 USD\n", "x")

    def test_price_lines_collected(self) -> None:
        """P lines inside a ledger should be collected as prices."""
        parsed = parse_text("P 2024-01-15 EUR 1.10 USD\n\n" + GROCERIES, "x")

        assert len(parsed.prices) == 1
        assert parsed.prices[0].timestamp == datetime(2024, 1, 15)
        assert len(parsed.transactions) == 1

    def test_include_not_followed(self) -> None:
        """An include directive should close the open transaction and add nothing."""
        parsed = parse_text(
            "2024-01-15 Shop\n    Expenses:Food  1 USD\n    Assets:Cash\ninclude accounts.journal ; shared\n", "x"
        )
        assert len(parsed.transactions) == 1

    def test_include_without_path(self) -> None:
        """A bare include should be a parse error."""
        with pytest.raises(ParseError, match="file path"):
            parse_text("include\n", "x")


class TestInferSeparators:
    """Tests for infer_separators."""

    @pytest.mark.parametrize(
        ("sample", "expected"),
        [
            ("1,000.00", (".", ",", 2)),
            ("1.000,00", (",", ".", 2)),
            ("1000.000", (".", ",", 3)),
            ("1,000", (".", ",", 0)),
            ("10,5", (",", ".", 1)),
            ("1000", (".", ",", 0)),
        ],
    )
    def test_samples(self, sample: str, expected: tuple[str, str, int]) -> None:
        """Should derive separators and precision from a sample."""
        assert infer_separators(sample, ScanOptions()) == expected

    def test_empty_thousands_separator_kept(self) -> None:
        """A configured empty thousands separator should survive a sample with a decimal mark."""
        options = ScanOptions(thousands_separator="")
        assert infer_separators("1000.50", options) == (".", "", 2)

    def test_empty_thousands_separator_in_commodity_style(self) -> None:
        """Commodities first seen in the ledger should not gain a grouping separator."""
        parsed = parse_text("2024-01-15 A\n  X  1234.50 USD\n  Y\n", "x", ScanOptions(thousands_separator=""))
        style = next(c.style for c in parsed.commodities if c.symbol == USD)
        assert style.thousands_separator == ""
        assert style.precision == 2
