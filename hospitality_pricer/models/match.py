from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field, field_serializer

from hospitality_pricer.models.enums import OfferStatus
from hospitality_pricer.models.offer import Offer
from hospitality_pricer.models.team import Team, Venue
from hospitality_pricer.utils.misc_utils import decimal_to_number


class RawMatch(BaseModel):
    """A match as one portal reports it. Transient, discarded after normalization."""

    match_number: int
    performance_id: Optional[str] = None  # Needed for the per-match price request
    stage: str = ""
    host_team: Team = Field(default_factory=Team)
    opposing_team: Team = Field(default_factory=Team)
    venue: Venue = Field(default_factory=Venue)
    match_date: str = ""
    match_time: str = ""
    country_code: str = ""
    # Some API shapes embed the price listing in the match itself
    embedded_offers: Optional[List[Any]] = None


class CanonicalMatchRecord(BaseModel):
    """The unit of output: one match with its price data and provenance."""

    match_number: int
    stage: str = ""
    host_team: Team = Field(default_factory=Team)
    opposing_team: Team = Field(default_factory=Team)
    venue: Venue = Field(default_factory=Venue)
    match_date: str = ""
    match_time: str = ""

    # Provenance
    portal: str  # Display name of the portal that supplied this record
    portal_code: str
    currency: str  # Native currency attributed for this run's currency rule

    offers: List[Offer] = []
    offer_status: OfferStatus = OfferStatus.NO_OFFERS

    # Representative price, filled in after selection and conversion
    lounge: Optional[str] = None
    price: Optional[Decimal] = None
    base_price: Optional[Decimal] = None
    base_currency: Optional[str] = None

    @computed_field  # type: ignore[misc]
    @property
    def description(self) -> str:
        """A human-readable description of the match."""
        return (
            f"Match {self.match_number}: {self.host_team.name} vs {self.opposing_team.name}"
            f" ({self.venue.town or self.venue.name}, {self.match_date})"
        )

    @property
    def has_price(self) -> bool:
        return self.base_price is not None and any(o.is_priced for o in self.offers)

    @field_serializer("price", "base_price")
    def _serialize_price(self, price: Optional[Decimal]):
        return decimal_to_number(price)
