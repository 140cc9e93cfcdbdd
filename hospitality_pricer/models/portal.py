# hospitality_pricer/models/portal.py
from typing import Dict, Iterable, List

from pydantic import BaseModel, ConfigDict


class Portal(BaseModel):
    """A national hospitality sales portal."""

    model_config = ConfigDict(frozen=True)

    code: str  # Country tag sent to the portal API, e.g. "us"
    name: str
    currency: str


# All 3 host countries
PORTALS: Dict[str, Portal] = {
    "us": Portal(code="us", name="United States", currency="USD"),
    "ca": Portal(code="ca", name="Canada", currency="CAD"),
    "mx": Portal(code="mx", name="Mexico", currency="MXN"),
}


def resolve_portals(codes: Iterable[str]) -> List[Portal]:
    """Returns the configured portals in visiting order."""
    portals = []
    for code in codes:
        portal = PORTALS.get(code.lower())
        if portal is None:
            raise ValueError(
                f"Unknown portal code '{code}'. Known codes: {', '.join(PORTALS)}"
            )
        if portal not in portals:
            portals.append(portal)
    return portals
