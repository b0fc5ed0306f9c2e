"""Reading ledger files from disk, with include expansion."""

import glob
from datetime import datetime
from pathlib import Path

from ledgerscope.domain.errors import Diagnostic, LedgerLoadError, ParseError
from ledgerscope.domain.ledger import Ledger, LedgerSource, parse_ledger_sources
from ledgerscope.domain.models import CommoditySymbol, Severity
from ledgerscope.domain.prices import PriceDatabase, load_price_database
from ledgerscope.domain.scanner import ScanOptions, TokenKind, scan
from ledgerscope.logging_setup import get_logger

logger = get_logger(__name__)

_GLOB_CHARS = set("*?[")


def find_includes(text: str) -> list[tuple[int, str]]:
    """List ``include`` directives as (line number, target) pairs.

    Only include lines are scanned, so a file with other errors still has
    its includes found; those errors surface when the file is parsed.
    """
    includes = []
    for lineno, line in enumerate(text.lstrip("\ufeff").splitlines(), start=1):
        if not line.startswith(("include ", "include\t")):
            continue
        argument = next((t for t in scan(line) if t.kind is TokenKind.ARGUMENT), None)
        if argument is not None:
            includes.append((lineno, argument.value))
    return includes


def _include_error(source_id: str, line: int, message: str) -> LedgerLoadError:
    return LedgerLoadError([Diagnostic(Severity.ERROR, message, source_id, line)])


def _resolve(base: Path, target: str, source_id: str, line: int) -> list[Path]:
    pattern = Path(target).expanduser()
    if not pattern.is_absolute():
        pattern = base.parent / pattern

    if _GLOB_CHARS & set(target):
        matches = sorted(Path(p) for p in glob.glob(str(pattern)))
        if not matches:
            logger.warning("%s:%d: include pattern %s matched no files", source_id, line, target)
        return matches

    if not pattern.is_file():
        raise _include_error(source_id, line, f"Included file not found: {target}")
    return [pattern]


def load_sources(path: Path) -> tuple[list[LedgerSource], datetime]:
    """Read a ledger file and every file it includes.

    The including file comes first, followed by its includes depth-first in
    the order they are declared. A file reached twice is read once, at its
    first include. Each source's ``order`` records the include line that
    brought it in, so its transactions merge in at that line.

    Args:
        path: Main ledger file.

    Returns:
        Tuple of (ordered sources, newest modification time across them).

    Raises:
        OSError: If the main file cannot be read.
        LedgerLoadError: If an include is missing or forms a cycle.
    """
    sources: list[LedgerSource] = []
    seen: set[Path] = set()
    newest = datetime.fromtimestamp(path.stat().st_mtime)

    def visit(current: Path, stack: tuple[Path, ...], order: tuple[int, ...]) -> None:
        nonlocal newest
        resolved = current.resolve()
        seen.add(resolved)
        source_id = str(current)
        text = current.read_text(encoding="utf-8")
        newest = max(newest, datetime.fromtimestamp(current.stat().st_mtime))
        sources.append(LedgerSource(source_id, text, order))

        for line, target in find_includes(text):
            for index, included in enumerate(_resolve(current, target, source_id, line)):
                key = included.resolve()
                if key in stack or key == resolved:
                    raise _include_error(source_id, line, f"Include cycle through {included}")
                if key in seen:
                    logger.debug("%s:%d: %s already included", source_id, line, included)
                    continue
                visit(included, (*stack, resolved), (*order, line, index))

    visit(path, (), (0,))
    logger.debug("Read %d ledger files starting at %s", len(sources), path)
    return sources, newest


def load_prices(path: Path, options: ScanOptions | None = None) -> PriceDatabase:
    """Read a price database file.

    Raises:
        OSError: If the file cannot be read.
        LedgerLoadError: If a price line is malformed.
    """
    try:
        return load_price_database(path.read_text(encoding="utf-8"), str(path), options)
    except ParseError as e:
        raise LedgerLoadError([Diagnostic.from_error(e)]) from e


def load_ledger(
    path: Path,
    price_path: Path | None = None,
    options: ScanOptions | None = None,
    default_commodity: CommoditySymbol | None = None,
    max_workers: int | None = None,
) -> Ledger:
    """Load, parse and validate a ledger from disk.

    Args:
        path: Main ledger file.
        price_path: Optional price database file.
        options: Default number separators.
        default_commodity: Commodity for bare numbers.
        max_workers: Thread pool size for parsing and validation.

    Returns:
        Validated Ledger.

    Raises:
        OSError: If a file cannot be read.
        LedgerLoadError: If any file fails to load.
    """
    sources, last_modified = load_sources(path)
    prices = None
    if price_path is not None:
        prices = load_prices(price_path, options)
        last_modified = max(last_modified, datetime.fromtimestamp(price_path.stat().st_mtime))

    return parse_ledger_sources(
        sources,
        prices=prices,
        options=options,
        default_commodity=default_commodity,
        last_modified=last_modified,
        max_workers=max_workers,
    )
