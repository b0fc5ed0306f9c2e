"""Check command and the ledger loading shared by the other commands."""

import sys
import tomllib
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ledgerscope.config import get_default_commodity, get_path, load_config_or_default, scan_options_from_config
from ledgerscope.domain.errors import Diagnostic, LedgerLoadError
from ledgerscope.domain.ledger import Ledger
from ledgerscope.loader import load_ledger

console = Console()


def print_diagnostics(diagnostics: list[Diagnostic] | tuple[Diagnostic, ...]) -> None:
    """Print diagnostics one per line, in ``file:line:column: severity: message`` form."""
    for diagnostic in diagnostics:
        colour = "red" if diagnostic.severity.value == "error" else "yellow"
        console.print(str(diagnostic), style=colour, markup=False, highlight=False, soft_wrap=True)


def open_ledger(
    ledger_file: str | None = None,
    price_file: str | None = None,
    max_workers: int | None = None,
) -> Ledger:
    """Load the ledger named on the command line or in the config.

    Prints the problem and exits with status 1 if the ledger cannot be loaded.
    """
    try:
        config = load_config_or_default()
        options = scan_options_from_config(config)
    except (tomllib.TOMLDecodeError, ValueError) as e:
        console.print(f"[red]Invalid config: {e}[/red]", style="bold")
        sys.exit(1)

    ledger_path = Path(ledger_file).expanduser() if ledger_file else get_path(config, "ledger_file")
    price_path = Path(price_file).expanduser() if price_file else get_path(config, "price_file")
    if ledger_path is None:
        console.print("[red]No ledger file given. Pass --file or set ledger_file in the config.[/red]", style="bold")
        sys.exit(1)

    try:
        return load_ledger(
            ledger_path,
            price_path=price_path,
            options=options,
            default_commodity=get_default_commodity(config),
            max_workers=max_workers,
        )
    except LedgerLoadError as e:
        console.print(f"[red]Could not load {ledger_path}:[/red]", style="bold")
        print_diagnostics(e.diagnostics)
        sys.exit(1)
    except OSError as e:
        console.print(f"[red]Filesystem error: {e}[/red]", style="bold")
        sys.exit(1)


def check_command(
    ledger_file: str | None = None,
    price_file: str | None = None,
    jobs: int | None = None,
    summary: bool = False,
) -> None:
    """Validate a ledger and report every transaction that does not balance."""
    ledger = open_ledger(ledger_file, price_file, jobs)

    if not ledger.diagnostics:
        stats = ledger.statistics()
        console.print(
            f"[green]✓[/green] {stats.transaction_count} transactions balance "
            f"across {len(ledger.source_ids)} file(s)"
        )
        return

    if summary:
        table = Table(title=f"Problems ({len(ledger.diagnostics)})")
        table.add_column("File", style="cyan")
        table.add_column("Line", justify="right")
        table.add_column("Severity", style="magenta")
        table.add_column("Message", style="white")
        for diagnostic in ledger.diagnostics:
            table.add_row(diagnostic.source_id, str(diagnostic.line), diagnostic.severity.value, diagnostic.message)
        console.print(table)
    else:
        print_diagnostics(ledger.diagnostics)

    console.print(
        f"\n[red]{len(ledger.diagnostics)} of "
        f"{len(ledger.diagnostics) + len(ledger.transactions)} transactions failed validation[/red]",
        style="bold",
    )
    sys.exit(1)
