"""Domain models and functions for ledgerscope.

This package contains the functional core:
- Pure functions with no file or network access
- Immutable results that are safe to share between threads
- Errors that carry the source location they refer to
"""

from ledgerscope.domain.balance import Posting, Transaction, balance_transaction, validate_transactions
from ledgerscope.domain.commodity import Amount, Commodity, CommodityFormat
from ledgerscope.domain.errors import (
    BalanceError,
    Diagnostic,
    LedgerError,
    LedgerLoadError,
    LexError,
    MultipleInferredPostings,
    NoConversionPath,
    NoPriceBefore,
    ParseError,
    Unbalanced,
)
from ledgerscope.domain.ledger import Ledger, LedgerSource, LedgerStatistics, parse_ledger, parse_ledger_sources
from ledgerscope.domain.models import AccountPath, CommoditySymbol, Payee, Position, Severity, Status
from ledgerscope.domain.prices import Conversion, Price, PriceDatabase, load_price_database
from ledgerscope.domain.scanner import ScanOptions, Scanner, Token, TokenKind, scan

__all__ = [
    "AccountPath",
    "Amount",
    "BalanceError",
    "Commodity",
    "CommodityFormat",
    "CommoditySymbol",
    "Conversion",
    "Diagnostic",
    "Ledger",
    "LedgerError",
    "LedgerLoadError",
    "LedgerSource",
    "LedgerStatistics",
    "LexError",
    "MultipleInferredPostings",
    "NoConversionPath",
    "NoPriceBefore",
    "ParseError",
    "Payee",
    "Position",
    "Posting",
    "Price",
    "PriceDatabase",
    "ScanOptions",
    "Scanner",
    "Severity",
    "Status",
    "Token",
    "TokenKind",
    "Transaction",
    "Unbalanced",
    "balance_transaction",
    "load_price_database",
    "parse_ledger",
    "parse_ledger_sources",
    "scan",
    "validate_transactions",
]
