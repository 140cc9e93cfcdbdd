from typing import Iterable, List, Optional

from loguru import logger

from hospitality_pricer.models.enums import PriceMode
from hospitality_pricer.models.offer import Offer


def priced_offers(offers: Optional[Iterable[object]]) -> List[Offer]:
    """Available offers with a strictly positive amount, in portal order."""
    if not offers:
        return []
    try:
        candidates = list(offers)
    except TypeError:
        logger.warning(f"Offer set is not iterable ({type(offers).__name__}); treating as empty.")
        return []
    return [o for o in candidates if isinstance(o, Offer) and o.is_priced]


def select(offers: Optional[Iterable[Offer]], mode: PriceMode) -> List[Offer]:
    """Selects the representative offer(s) of a match.

    ``ALL_OFFERS`` keeps every priced offer. ``LOWEST_AVAILABLE`` keeps only the
    cheapest one; on equal amounts the first offer in portal order wins. An
    empty result means the match has no price and must not be exported.
    """
    candidates = priced_offers(offers)
    if mode == PriceMode.ALL_OFFERS:
        return candidates

    lowest: Optional[Offer] = None
    for offer in candidates:
        # Strict comparison keeps the first-encountered offer on ties
        if lowest is None or offer.amount < lowest.amount:
            lowest = offer
    return [lowest] if lowest is not None else []
