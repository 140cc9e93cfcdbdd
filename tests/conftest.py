from decimal import Decimal
from typing import Any, Dict, List, Optional

import pytest

from hospitality_pricer.models.match import RawMatch
from hospitality_pricer.models.portal import PORTALS, Portal
from hospitality_pricer.portals.base_portal import PortalClient, PortalError
from hospitality_pricer.pricing.rates import RateSnapshot


def raw_match(number: Any, **overrides: Any) -> Dict[str, Any]:
    """A match object shaped like the portal's matches-all listing."""
    payload = {
        "PerformanceId": f"perf-{number}",
        "MatchNumber": number,
        "Stage": "Group Stage",
        "HostTeam": {"ExternalName": "Mexico", "Code": "MEX"},
        "OpposingTeam": {"ExternalName": "South Africa", "Code": "RSA"},
        "Venue": {
            "Name": "Mexico City Stadium",
            "Code": "MEX",
            "Town": "Mexico City",
            "Country": "Mexico",
        },
        "MatchDate": "2026-06-11",
        "MatchDayTime": "13:00",
        "CountryCode": "MX",
    }
    payload.update(overrides)
    return payload


def lounge(title: str, price: str) -> Dict[str, Any]:
    return {"title": title, "comparePrice": price}


class FakePortalClient(PortalClient):
    """In-memory portal: listings and lounge payloads keyed by portal code."""

    def __init__(
        self,
        matches: Dict[str, Any],
        offers: Optional[Dict[str, Dict[int, Any]]] = None,
        failing: Optional[Dict[str, List[int]]] = None,
    ):
        self.matches = matches
        self.offers = offers or {}
        self.failing = failing or {}
        self.calls: List[tuple] = []

    async def list_matches(self, portal: Portal):
        self.calls.append(("list_matches", portal.code))
        listing = self.matches.get(portal.code, [])
        if isinstance(listing, Exception):
            raise listing
        return listing

    async def list_offers(self, portal: Portal, match: RawMatch):
        self.calls.append(("list_offers", portal.code, match.match_number))
        if match.match_number in self.failing.get(portal.code, []):
            raise PortalError(f"lounges request failed for {match.match_number}")
        return self.offers.get(portal.code, {}).get(match.match_number, [])


@pytest.fixture
def us() -> Portal:
    return PORTALS["us"]


@pytest.fixture
def ca() -> Portal:
    return PORTALS["ca"]


@pytest.fixture
def mx() -> Portal:
    return PORTALS["mx"]


@pytest.fixture
def rates() -> RateSnapshot:
    return RateSnapshot(
        base="USD",
        rates={"USD": Decimal("1"), "CAD": Decimal("1.35"), "MXN": Decimal("20.5")},
    )
