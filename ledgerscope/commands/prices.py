"""Rate and quote commands for looking up commodity prices."""

import sys
import tomllib
from datetime import date, datetime
from pathlib import Path

import pandas as pd
import requests
from rich.console import Console
from rich.table import Table

from ledgerscope.commands.check import open_ledger, print_diagnostics
from ledgerscope.config import get_path, load_config_or_default, scan_options_from_config
from ledgerscope.domain.errors import LedgerLoadError, NoPriceBefore
from ledgerscope.domain.models import CommoditySymbol
from ledgerscope.domain.prices import PriceDatabase
from ledgerscope.loader import load_prices
from ledgerscope.quotes import QuoteError, fetch_price

console = Console()


def parse_query_time(value: str | None) -> date | datetime:
    """Normalize a user supplied date or date-time.

    A value without a time of day means the end of that day.

    Args:
        value: Date text such as "2024-01-15", "15/01/2024" or "2024-01-15 14:30", or None for now.

    Returns:
        A date, or a datetime when a time was given.

    Raises:
        ValueError: If the value cannot be parsed.
    """
    if value is None:
        return datetime.now()
    try:
        parsed = pd.to_datetime(value, dayfirst=True)
    except (ValueError, pd.errors.ParserError) as e:
        raise ValueError(f"Invalid date: {value}") from e
    if pd.isna(parsed):
        raise ValueError(f"Invalid date: {value}")
    if ":" not in value:
        return parsed.date()
    return parsed.to_pydatetime()


def _price_database(ledger_file: str | None, price_file: str | None) -> PriceDatabase:
    try:
        config = load_config_or_default()
    except tomllib.TOMLDecodeError as e:
        console.print(f"[red]Invalid config: {e}[/red]", style="bold")
        sys.exit(1)

    ledger_path = get_path(config, "ledger_file")
    if ledger_file or (ledger_path is not None and ledger_path.exists()):
        return open_ledger(ledger_file, price_file).prices

    price_path = Path(price_file).expanduser() if price_file else get_path(config, "price_file")
    if price_path is None:
        console.print("[red]No ledger or price file found[/red]", style="bold")
        sys.exit(1)
    try:
        return load_prices(price_path, scan_options_from_config(config))
    except LedgerLoadError as e:
        print_diagnostics(e.diagnostics)
        sys.exit(1)
    except (OSError, ValueError) as e:
        console.print(f"[red]Could not read prices: {e}[/red]", style="bold")
        sys.exit(1)


def rate_command(
    source: str,
    target: str,
    at: str | None = None,
    ledger_file: str | None = None,
    price_file: str | None = None,
    history: bool = False,
) -> None:
    """Show the value of one unit of ``source`` in ``target``."""
    try:
        when = parse_query_time(at)
    except ValueError as e:
        console.print(f"[red]{e}[/red]", style="bold")
        sys.exit(1)

    prices = _price_database(ledger_file, price_file)
    source_symbol, target_symbol = CommoditySymbol(source), CommoditySymbol(target)

    if history:
        series = prices.history(source_symbol, target_symbol)
        if not series:
            console.print(f"[yellow]No prices recorded for {source} in {target}[/yellow]")
            return
        table = Table(title=f"{source} in {target}")
        table.add_column("Date", style="cyan")
        table.add_column("Rate", justify="right")
        for price in series:
            table.add_row(f"{price.timestamp:%Y-%m-%d %H:%M}", str(price.rate))
        console.print(table)
        return

    try:
        conversion = prices.lookup(source_symbol, target_symbol, when)
    except NoPriceBefore as e:
        console.print(f"[red]{e}[/red]", style="bold")
        sys.exit(1)

    console.print(f"1 {source} = [green]{conversion.as_amount()}[/green]")
    if conversion.price is not None:
        kind = "inverse of" if conversion.inverted else "from"
        console.print(f"[dim]{kind} {conversion.price}[/dim]", highlight=False)


def quote_command(source: str, target: str | None = None) -> None:
    """Fetch a current rate from the configured quote service and print it as a P line."""
    try:
        config = load_config_or_default()
    except tomllib.TOMLDecodeError as e:
        console.print(f"[red]Invalid config: {e}[/red]", style="bold")
        sys.exit(1)

    quotes = config.get("quotes", {})
    target = target or quotes.get("target")
    url = quotes.get("url")
    if not target or not url:
        console.print("[red]Set \\[quotes] url and target in the config, or pass --to[/red]", style="bold")
        sys.exit(1)

    try:
        price = fetch_price(CommoditySymbol(source), CommoditySymbol(target), url)
    except requests.RequestException as e:
        console.print(f"[red]Quote request failed: {e}[/red]", style="bold")
        sys.exit(1)
    except QuoteError as e:
        console.print(f"[red]Unusable quote: {e}[/red]", style="bold")
        sys.exit(1)

    console.print(str(price), markup=False, highlight=False, soft_wrap=True)
