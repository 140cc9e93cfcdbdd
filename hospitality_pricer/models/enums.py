from enum import Enum


class PriceMode(str, Enum):
    ALL_OFFERS = "all-offers"
    LOWEST_AVAILABLE = "lowest-available"


class CurrencyRule(str, Enum):
    PORTAL = "portal"  # Currency of the portal that served the data
    VENUE_COUNTRY = "venue-country"  # Currency of the country hosting the match


class MergePolicy(str, Enum):
    CONCATENATE = "concatenate"
    LOWEST_PRICE_WINS = "lowest-price-wins"


class StageFilter(str, Enum):
    NONE = "none"
    GROUP_STAGE = "group-stage"


class OfferStatus(str, Enum):
    PRICED = "priced"
    NO_OFFERS = "no_offers"  # Portal answered, nothing available or priced
    FETCH_FAILED = "fetch_failed"  # Price detail request failed
