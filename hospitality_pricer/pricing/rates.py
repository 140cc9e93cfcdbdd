from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional

import httpx
from loguru import logger
from pydantic import BaseModel, Field, field_serializer

from hospitality_pricer.config.settings import settings

# Approximate USD rates used when the live source is unreachable.
# Close enough for a price table, not for accounting.
FALLBACK_USD_RATES: Dict[str, Decimal] = {
    "USD": Decimal("1"),
    "CAD": Decimal("1.36"),
    "MXN": Decimal("18.5"),
    "EUR": Decimal("0.92"),
    "GBP": Decimal("0.79"),
}


class RateSnapshot(BaseModel):
    """Currency rates against one base currency, fixed for a whole run."""

    base: str
    rates: Dict[str, Decimal]
    source: str = "live"  # "live" or "fallback"
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_fallback(self) -> bool:
        return self.source == "fallback"

    @field_serializer("rates")
    def _serialize_rates(self, rates: Dict[str, Decimal]) -> Dict[str, float]:
        return {code: float(rate) for code, rate in rates.items()}


class RateParseError(ValueError):
    """Raised when the rate payload does not contain usable rates."""


def fallback_rates(base_currency: str) -> RateSnapshot:
    """Builds the approximate fallback snapshot, rebased onto ``base_currency``."""
    base = base_currency.upper()
    divisor = FALLBACK_USD_RATES.get(base, Decimal("1"))
    rates = {code: rate / divisor for code, rate in FALLBACK_USD_RATES.items()}
    rates[base] = Decimal("1")
    return RateSnapshot(base=base, rates=rates, source="fallback")


def parse_rates(payload: object) -> Dict[str, Decimal]:
    """Extracts the ``rates`` mapping from an exchangerate-api style body."""
    if not isinstance(payload, dict) or not isinstance(payload.get("rates"), dict):
        raise RateParseError("Rate payload has no 'rates' object")

    rates: Dict[str, Decimal] = {}
    for code, value in payload["rates"].items():
        try:
            rates[str(code).upper()] = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            logger.warning(f"Ignoring unparseable rate for {code}: {value!r}")
    if not rates:
        raise RateParseError("Rate payload contained no usable rates")
    return rates


async def fetch_rates(
    base_currency: str,
    client: Optional[httpx.AsyncClient] = None,
    rates_url: Optional[str] = None,
) -> RateSnapshot:
    """Fetches current rates for ``base_currency``.

    A single attempt is made. Network or parse failures are logged and the
    approximate fallback snapshot is returned instead, so a rate outage never
    fails the run.
    """
    base = base_currency.upper()
    url = f"{(rates_url or settings.rates_url).rstrip('/')}/{base}"
    owns_client = client is None
    client = client or httpx.AsyncClient(
        timeout=httpx.Timeout(settings.request_timeout_seconds)
    )

    logger.info(f"Fetching exchange rates (base {base}) from {url}")
    try:
        response = await client.get(url)
        response.raise_for_status()
        rates = parse_rates(response.json())
    except (httpx.HTTPError, ValueError) as e:
        # ValueError covers JSON decode errors and RateParseError
        logger.warning(
            f"Failed to fetch exchange rates ({e}). Using approximate fallback rates."
        )
        return fallback_rates(base)
    finally:
        if owns_client:
            await client.aclose()

    rates[base] = Decimal("1")
    snapshot = RateSnapshot(base=base, rates=rates)
    logger.success(
        "Rates fetched: "
        + ", ".join(
            f"1 {base} = {snapshot.rates[code]} {code}"
            for code in ("CAD", "MXN", "USD")
            if code in snapshot.rates and code != base
        )
    )
    return snapshot
