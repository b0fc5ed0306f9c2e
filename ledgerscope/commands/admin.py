"""Admin commands for init and ledger statistics."""

import sys
from decimal import Decimal

from rich.console import Console
from rich.table import Table

from ledgerscope.commands.check import open_ledger
from ledgerscope.config import create_default_config, get_config_path
from ledgerscope.domain.commodity import Amount

console = Console()

EXAMPLE_QUANTITY = Decimal("1234.5")


def init_command(force: bool = False) -> None:
    """Create the ledgerscope configuration file."""
    config_path = get_config_path()

    if config_path.exists() and not force:
        console.print("[red]Initialization failed:[/red]", style="bold")
        console.print(f"  Config already exists: {config_path}")
        console.print("\n[yellow]Use 'ledgerscope init --force' to overwrite[/yellow]")
        sys.exit(1)

    try:
        console.print(f"[cyan]Creating config file at {config_path}...[/cyan]")
        create_default_config(config_path)
    except OSError as e:
        console.print(f"[red]Filesystem error: {e}[/red]", style="bold")
        sys.exit(1)

    console.print("[green]✓[/green] Config file created (permissions: 600)")
    console.print("[dim]Set ledger_file and price_file to point at your journal[/dim]")


def stats_command(ledger_file: str | None = None, price_file: str | None = None) -> None:
    """Show counts and commodities for a ledger."""
    ledger = open_ledger(ledger_file, price_file)
    stats = ledger.statistics()

    table = Table(title="Ledger statistics")
    table.add_column("Item", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Files", str(len(ledger.source_ids)))
    table.add_row("Transactions", str(stats.transaction_count))
    table.add_row("Postings", str(stats.posting_count))
    table.add_row("Prices", str(stats.price_count))
    table.add_row("Commodities", str(len(ledger.commodities)))
    if ledger.diagnostics:
        table.add_row("Unbalanced", f"[red]{len(ledger.diagnostics)}[/red]")
    last_modified = f"{stats.last_modified:%Y-%m-%d %H:%M}" if stats.last_modified else "[dim]-[/dim]"
    table.add_row("Last modified", last_modified)
    console.print(table)

    if ledger.commodities:
        commodities = Table(title="Commodities")
        commodities.add_column("Symbol", style="magenta")
        commodities.add_column("Example", justify="right")
        commodities.add_column("Precision", justify="right")
        for symbol, commodity in sorted(ledger.commodities.items()):
            example = commodity.format(Amount(EXAMPLE_QUANTITY, symbol))
            commodities.add_row(symbol or "[dim](none)[/dim]", example, str(commodity.style.precision))
        console.print(commodities)

