"""Exchange rate quotes over HTTP."""

from datetime import datetime, time
from decimal import Decimal
from typing import Any

import requests

from ledgerscope.dates import parse_date
from ledgerscope.domain.commodity import Amount
from ledgerscope.domain.models import CommoditySymbol
from ledgerscope.domain.prices import Price
from ledgerscope.logging_setup import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 10


class QuoteError(ValueError):
    """The quote service answered, but not with a usable rate."""


def _extract_rate(payload: dict[str, Any], target: str) -> Decimal:
    rates = payload.get("rates")
    if not isinstance(rates, dict) or target not in rates:
        raise QuoteError(f"Response has no rate for {target}")
    rate = rates[target]
    if not isinstance(rate, (Decimal, int)):
        raise QuoteError(f"Rate for {target} is not a number: {rate!r}")
    rate = Decimal(rate)
    if rate <= 0:
        raise QuoteError(f"Rate for {target} must be positive, got {rate}")
    return rate


def fetch_price(
    source: CommoditySymbol,
    target: CommoditySymbol,
    url_template: str,
    timeout: float = DEFAULT_TIMEOUT,
) -> Price:
    """Fetch the current value of one unit of ``source`` in ``target``.

    The service must answer with JSON shaped like
    ``{"date": "2024-01-02", "rates": {"USD": 1.0956}}``.

    Args:
        source: Commodity to price.
        target: Commodity to express the rate in.
        url_template: URL with ``{source}`` and ``{target}`` placeholders.
        timeout: Request timeout in seconds.

    Returns:
        Price stamped with the quote date (midnight), or now if the response has no date.

    Raises:
        requests.RequestException: If the request fails.
        QuoteError: If the response has no usable rate.
    """
    url = url_template.format(source=source, target=target)
    headers = {"Accept": "application/json"}
    logger.debug("Fetching %s in %s from %s", source, target, url)
    response = requests.get(url, headers=headers, timeout=timeout)
    response.raise_for_status()
    payload = response.json(parse_float=Decimal)

    rate = _extract_rate(payload, target)
    timestamp = datetime.now().replace(microsecond=0)
    if payload.get("date"):
        try:
            timestamp = datetime.combine(parse_date(payload["date"]), time())
        except ValueError as e:
            raise QuoteError(f"Response has an invalid date: {payload['date']!r}") from e

    return Price(timestamp=timestamp, source=source, rate=Amount(rate, target))
