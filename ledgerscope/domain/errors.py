"""Error taxonomy and diagnostics for ledger loading.

LexError and ParseError are fatal to the file being read. BalanceError
variants are raised per transaction and collected by the validator as
Diagnostic records, so a single load reports every problem at once.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING

from ledgerscope.domain.models import CommoditySymbol, Position, Severity

if TYPE_CHECKING:
    from ledgerscope.domain.commodity import Amount


class CommodityMismatchError(ValueError):
    """Arithmetic attempted between amounts of different commodities."""

    def __init__(self, left: CommoditySymbol, right: CommoditySymbol) -> None:
        super().__init__(f"Cannot combine amounts in {left!r} and {right!r}")
        self.left = left
        self.right = right


class LedgerError(Exception):
    """Base class for errors that point at a location in ledger text."""

    def __init__(self, message: str, position: Position | None = None, source_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.position = position
        self.source_id = source_id

    def __str__(self) -> str:
        where = []
        if self.source_id:
            where.append(self.source_id)
        if self.position is not None:
            where.append(str(self.position))
        if where:
            return f"{':'.join(where)}: {self.message}"
        return self.message


class LexError(LedgerError):
    """No token shape matches the text at a position."""

    def __init__(
        self,
        position: Position,
        unexpected_char: str,
        reason: str | None = None,
        source_id: str | None = None,
    ) -> None:
        message = reason or f"Unexpected character {unexpected_char!r}"
        super().__init__(message, position, source_id)
        self.unexpected_char = unexpected_char
        self.reason = reason


class ParseError(LedgerError):
    """Tokens are well formed but do not fit the ledger grammar."""

    def __init__(self, position: Position, reason: str, source_id: str | None = None) -> None:
        super().__init__(reason, position, source_id)
        self.reason = reason


class NoPriceBefore(LookupError):
    """No direct or inverse price exists at or before the requested time."""

    def __init__(self, source: CommoditySymbol, target: CommoditySymbol, at: datetime) -> None:
        super().__init__(f"No price for {source} in {target} on or before {at:%Y-%m-%d %H:%M:%S}")
        self.source = source
        self.target = target
        self.at = at


class BalanceError(LedgerError):
    """A transaction could not be balanced."""


class MultipleInferredPostings(BalanceError):
    """More than one posting in a transaction omits its amount."""

    def __init__(self, count: int, position: Position | None = None, source_id: str | None = None) -> None:
        super().__init__(
            f"Transaction has {count} postings without an amount, at most one can be inferred",
            position,
            source_id,
        )
        self.count = count


class NoConversionPath(BalanceError):
    """A commodity in the transaction cannot be priced in the reference commodity."""

    def __init__(
        self,
        commodity: CommoditySymbol,
        target: CommoditySymbol,
        date: date,
        position: Position | None = None,
        source_id: str | None = None,
    ) -> None:
        super().__init__(
            f"Cannot convert {commodity} to {target}: no price on or before {date.isoformat()}",
            position,
            source_id,
        )
        self.commodity = commodity
        self.target = target
        self.date = date


class Unbalanced(BalanceError):
    """Postings do not sum to zero."""

    def __init__(self, amount: "Amount", position: Position | None = None, source_id: str | None = None) -> None:
        super().__init__(f"Transaction does not balance, off by {amount}", position, source_id)
        self.amount = amount


class LedgerLoadError(LedgerError):
    """Loading failed; no Ledger was produced."""

    def __init__(self, diagnostics: list["Diagnostic"]) -> None:
        first = diagnostics[0] if diagnostics else None
        message = str(first) if first else "Ledger could not be loaded"
        if len(diagnostics) > 1:
            message += f" (and {len(diagnostics) - 1} more)"
        super().__init__(message)
        self.diagnostics = diagnostics


@dataclass(frozen=True)
class Diagnostic:
    """A problem report that an editor can jump to."""

    severity: Severity
    message: str
    source_id: str
    line: int
    column: int = 1

    @classmethod
    def from_error(cls, error: LedgerError, severity: Severity = Severity.ERROR) -> "Diagnostic":
        """Build a diagnostic from a located error.

        Args:
            error: Lex, parse or balance error.
            severity: Severity to report.

        Returns:
            Diagnostic carrying the error's message and position.
        """
        position = error.position or Position(0, 0)
        return cls(
            severity=severity,
            message=error.message,
            source_id=error.source_id or "<unknown>",
            line=position.line,
            column=position.column,
        )

    def __str__(self) -> str:
        return f"{self.source_id}:{self.line}:{self.column}: {self.severity.value}: {self.message}"
