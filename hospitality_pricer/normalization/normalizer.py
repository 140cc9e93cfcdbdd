from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional
import re

from loguru import logger

from hospitality_pricer.models.enums import CurrencyRule, OfferStatus
from hospitality_pricer.models.match import CanonicalMatchRecord, RawMatch
from hospitality_pricer.models.offer import Offer
from hospitality_pricer.models.portal import Portal
from hospitality_pricer.models.team import TBD, Team, Venue

# First digit group, optionally prefixed by a currency symbol: "$12,500" -> "12,500"
PRICE_PATTERN = re.compile(r"[$€£]?\s*([0-9][0-9,]*)")

VENUE_COUNTRY_CURRENCIES: Dict[str, str] = {
    "mexico": "MXN",
    "canada": "CAD",
}
DEFAULT_VENUE_CURRENCY = "USD"


class NormalizationError(Exception):
    """Raised when a portal payload cannot be normalized at all."""

    pass


def parse_price_string(price_string: Optional[str]) -> Decimal:
    """Extracts the numeric amount from a display price such as ``"$12,500"``.

    The first digit group wins and commas are dropped. Text without digits
    yields ``0``, meaning the offer is unpriced.
    """
    match = PRICE_PATTERN.search(price_string or "")
    if not match:
        return Decimal(0)
    return Decimal(match.group(1).replace(",", ""))


def currency_for_venue(country: Optional[str]) -> str:
    """Currency implied by the venue's country name (Mexico/Canada, else USD)."""
    key = (country or "").strip().lower()
    return VENUE_COUNTRY_CURRENCIES.get(key, DEFAULT_VENUE_CURRENCY)


def _text(value: Any) -> str:
    """Free-text field as a string; missing or empty values become ``""``."""
    if value is None or value == "":
        return ""
    return value if isinstance(value, str) else str(value)


class Normalizer:
    """Maps one portal's raw match and price payloads onto canonical records.

    The currency rule is fixed at construction so every record of a run is
    attributed the same way.
    """

    def __init__(self, currency_rule: CurrencyRule = CurrencyRule.PORTAL):
        self.currency_rule = CurrencyRule(currency_rule)
        logger.info(f"Normalizer initialized with currency rule '{self.currency_rule.value}'.")

    def normalize_listing(self, payload: Any, portal: Portal) -> List[Dict[str, Any]]:
        """Validates a top-level match listing and returns its match objects."""
        if not isinstance(payload, list):
            raise NormalizationError(
                f"Match listing from {portal.name} is not a list (got {type(payload).__name__})"
            )
        items = [item for item in payload if isinstance(item, dict)]
        if len(items) != len(payload):
            logger.warning(
                f"Skipping {len(payload) - len(items)} non-object entries in {portal.name} listing."
            )
        return items

    def parse_match(self, raw: Dict[str, Any]) -> Optional[RawMatch]:
        """Parses one portal match object. Returns None when it has no match number."""
        match_number = self._parse_match_number(raw.get("MatchNumber"))
        if match_number is None:
            logger.debug(
                f"Discarding match without a match number (PerformanceId={raw.get('PerformanceId')})"
            )
            return None

        venue = raw.get("Venue")
        if not isinstance(venue, dict):
            venue = {}
        embedded = raw.get("Lounges")
        if embedded is None:
            embedded = raw.get("PriceCategories")
        performance_id = raw.get("PerformanceId")

        return RawMatch(
            match_number=match_number,
            performance_id=str(performance_id) if performance_id is not None else None,
            stage=_text(raw.get("Stage")),
            host_team=self._parse_team(raw.get("HostTeam")),
            opposing_team=self._parse_team(raw.get("OpposingTeam")),
            venue=Venue(
                name=_text(venue.get("Name")),
                code=_text(venue.get("Code")),
                town=_text(venue.get("Town")),
                country=_text(venue.get("Country")),
            ),
            match_date=_text(raw.get("MatchDate")),
            match_time=_text(raw.get("MatchDayTime")),
            country_code=_text(raw.get("CountryCode")),
            embedded_offers=embedded if isinstance(embedded, list) else None,
        )

    def currency_for(self, portal: Portal, venue_country: Optional[str]) -> str:
        if self.currency_rule == CurrencyRule.VENUE_COUNTRY:
            return currency_for_venue(venue_country)
        return portal.currency

    def build_offers(self, raw_offers: Optional[List[Any]], currency: str) -> List[Offer]:
        """Builds offers from either price-listing shape the portals serve.

        Shape (a): ``{title, priceString|comparePrice}`` lounges with a display price.
        Shape (b): ``{name, hasAvailableSeats, priceCategories: [{isAvailable, amount}]}``.
        """
        offers: List[Offer] = []
        if not raw_offers or not isinstance(raw_offers, list):
            return offers

        for raw_offer in raw_offers:
            if not isinstance(raw_offer, dict):
                logger.warning(f"Skipping non-object price entry: {type(raw_offer).__name__}")
                continue
            if "priceCategories" in raw_offer:
                offers.extend(self._offers_from_categories(raw_offer, currency))
            else:
                offers.append(self._offer_from_lounge(raw_offer, currency))
        return offers

    def normalize(
        self, raw_match: RawMatch, raw_offers: Optional[List[Any]], portal: Portal
    ) -> Optional[CanonicalMatchRecord]:
        """Produces the in-progress record for one match on one portal.

        Offers are attached unselected and unconverted; the record's
        ``offer_status`` says whether any of them carry a usable price.
        """
        if raw_match is None or raw_match.match_number is None:
            return None

        currency = self.currency_for(portal, raw_match.venue.country)
        offers = self.build_offers(raw_offers, currency)
        status = (
            OfferStatus.PRICED if any(o.is_priced for o in offers) else OfferStatus.NO_OFFERS
        )

        return CanonicalMatchRecord(
            match_number=raw_match.match_number,
            stage=raw_match.stage,
            host_team=raw_match.host_team,
            opposing_team=raw_match.opposing_team,
            venue=raw_match.venue,
            match_date=raw_match.match_date,
            match_time=raw_match.match_time,
            portal=portal.name,
            portal_code=portal.code,
            currency=currency,
            offers=offers,
            offer_status=status,
        )

    def _offer_from_lounge(self, raw_offer: Dict[str, Any], currency: str) -> Offer:
        price_string = raw_offer.get("priceString")
        if price_string is None:
            price_string = raw_offer.get("comparePrice")
        price_string = str(price_string) if price_string is not None else ""
        return Offer(
            title=str(raw_offer.get("title") or raw_offer.get("name") or ""),
            available=True,
            amount=parse_price_string(price_string),
            currency=currency,
            price_string=price_string,
        )

    def _offers_from_categories(self, raw_offer: Dict[str, Any], currency: str) -> List[Offer]:
        title = str(raw_offer.get("name") or raw_offer.get("title") or "")
        has_seats = raw_offer.get("hasAvailableSeats", True) is not False
        offers: List[Offer] = []
        categories = raw_offer.get("priceCategories")
        if not isinstance(categories, list):
            return offers
        for category in categories:
            if not isinstance(category, dict):
                continue
            amount = self._parse_decimal(category.get("amount"))
            if not has_seats or not category.get("isAvailable") or amount is None or amount <= 0:
                continue
            offers.append(Offer(title=title, available=True, amount=amount, currency=currency))
        return offers

    def _parse_team(self, raw_team: Any) -> Team:
        if not isinstance(raw_team, dict):
            return Team()
        return Team(
            name=_text(raw_team.get("ExternalName")) or TBD, code=_text(raw_team.get("Code"))
        )

    def _parse_match_number(self, value: Any) -> Optional[int]:
        if value is None or value == "" or isinstance(value, bool):
            return None
        try:
            number = int(value)
        except (ValueError, TypeError):
            logger.warning(f"Could not parse match number '{value}'")
            return None
        return number if number > 0 else None

    def _parse_decimal(self, value: Any) -> Optional[Decimal]:
        if value is None:
            return None
        try:
            parsed = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError) as e:
            logger.warning(f"Could not parse value '{value}' as Decimal: {e}")
            return None
        return parsed if parsed.is_finite() else None
