"""Domain type definitions for ledgerscope.

These NewTypes provide semantic clarity and help with type checking:
- CommoditySymbol: Currency or ticker symbol, case-sensitive (e.g. "USD", "$", "AAPL")
- AccountPath: Full account name, stored verbatim (e.g. "Assets:Checking")
- Payee: Transaction description text
- SourceId: Identifier of the text a record came from (usually a file path)
"""

from dataclasses import dataclass
from enum import Enum
from typing import NewType

# Commodity symbols are compared exactly, "usd" and "USD" are different commodities
CommoditySymbol = NewType("CommoditySymbol", str)

# Account paths are opaque here; splitting on ":" is a reporting concern
AccountPath = NewType("AccountPath", str)

# Payee or description text from a transaction header
Payee = NewType("Payee", str)

# File path or other label used in diagnostics
SourceId = NewType("SourceId", str)


@dataclass(frozen=True, order=True)
class Position:
    """Location in source text, 1-based."""

    line: int
    column: int = 1

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


class Status(Enum):
    """Transaction clearing status."""

    CLEARED = "*"
    PENDING = "!"
    UNCLEARED = ""

    @classmethod
    def from_flag(cls, flag: str) -> "Status":
        """Map a header flag character to a status.

        Args:
            flag: "*", "!" or empty string.

        Returns:
            Matching status.

        Raises:
            ValueError: If flag is not a status flag.
        """
        return cls(flag)


class Severity(Enum):
    """Diagnostic severity."""

    ERROR = "error"
    WARNING = "warning"
