"""CLI entry point for ledgerscope."""

import logging

import typer

from ledgerscope.commands.admin import init_command, stats_command
from ledgerscope.commands.check import check_command
from ledgerscope.commands.prices import quote_command, rate_command
from ledgerscope.logging_setup import configure_logging

app = typer.Typer(
    name="ledgerscope",
    help="ledgerscope - validate plain-text double-entry ledgers",
    add_completion=False,
)


@app.callback()
def main(
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="Log more (-v info, -vv debug)"),
) -> None:
    """ledgerscope - validate plain-text double-entry ledgers."""
    level = {0: None, 1: logging.INFO}.get(verbose, logging.DEBUG)
    configure_logging(level)


@app.command(name="init")
def init(
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing config"),
) -> None:
    """Create the ledgerscope configuration file."""
    init_command(force)


@app.command()
def check(
    file: str = typer.Option(None, "--file", "-f", help="Ledger file (default: ledger_file from config)"),
    prices: str = typer.Option(None, "--prices", "-p", help="Price database file (default: price_file from config)"),
    jobs: int = typer.Option(None, "--jobs", "-j", help="Worker threads for parsing and validation"),
    summary: bool = typer.Option(False, "--summary", help="Show problems as a table"),
) -> None:
    """Check that every transaction in your ledger balances."""
    check_command(file, prices, jobs, summary)


@app.command()
def stats(
    file: str = typer.Option(None, "--file", "-f", help="Ledger file (default: ledger_file from config)"),
    prices: str = typer.Option(None, "--prices", "-p", help="Price database file (default: price_file from config)"),
) -> None:
    """Show counts and commodities for your ledger."""
    stats_command(file, prices)


@app.command()
def rate(
    source: str,
    target: str,
    at: str = typer.Option(None, "--at", help="Date or date-time to price at (default: now)"),
    file: str = typer.Option(None, "--file", "-f", help="Ledger file (default: ledger_file from config)"),
    prices: str = typer.Option(None, "--prices", "-p", help="Price database file (default: price_file from config)"),
    history: bool = typer.Option(False, "--history", help="List every recorded price for the pair"),
) -> None:
    """Show what one unit of SOURCE is worth in TARGET."""
    rate_command(source, target, at, file, prices, history)


@app.command()
def quote(
    source: str,
    target: str = typer.Option(None, "--to", help="Commodity to quote in (default: [quotes] target)"),
) -> None:
    """Fetch a current exchange rate and print it as a price line."""
    quote_command(source, target)


if __name__ == "__main__":
    app()
