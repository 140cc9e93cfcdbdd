from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Iterable, List, Mapping, Optional

from loguru import logger

from hospitality_pricer.models.offer import Offer

# Whole currency units for this domain
BASE_QUANTUM = Decimal("1")

# Enough digits that quantizing any parsed portal amount cannot overflow
CONVERSION_PRECISION = 60


def to_base(
    amount: Decimal,
    currency: str,
    rates: Mapping[str, Decimal],
    base_currency: str,
) -> Decimal:
    """Converts ``amount`` in ``currency`` into the base currency.

    ``rates`` maps currency codes to units per one base unit, so the native
    amount is divided by the rate. Results are rounded half-up (ties away from
    zero). Amounts already in the base currency pass through untouched. A
    missing or non-positive rate leaves the amount unconverted.
    """
    amount = Decimal(str(amount))
    if currency.upper() == base_currency.upper():
        return amount

    rate: Optional[Decimal] = rates.get(currency.upper())
    if rate is None or Decimal(str(rate)) <= 0:
        logger.warning(
            f"No usable {currency} rate against {base_currency}; treating amount as {base_currency}."
        )
        rate = Decimal("1")

    divisor = Decimal(str(rate))
    with localcontext() as ctx:
        ctx.prec = max(CONVERSION_PRECISION, amount.adjusted() - divisor.adjusted() + 10)
        return (amount / divisor).quantize(BASE_QUANTUM, rounding=ROUND_HALF_UP)


def convert_offers(
    offers: Iterable[Offer], rates: Mapping[str, Decimal], base_currency: str
) -> List[Offer]:
    """Returns copies of ``offers`` with ``base_amount`` filled in."""
    return [
        offer.model_copy(
            update={"base_amount": to_base(offer.amount, offer.currency, rates, base_currency)}
        )
        for offer in offers
    ]
