from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from hospitality_pricer.utils.misc_utils import decimal_to_number


class Offer(BaseModel):
    """One priced hospitality product (lounge/package) for a match."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(..., description="Lounge or package name as shown on the portal.")
    available: bool = Field(True, description="Whether the portal lists it as bookable.")
    amount: Decimal = Field(
        Decimal(0), ge=0, description="Price in the offer's native currency; 0 if unpriced."
    )
    currency: str = Field(..., description="ISO code the amount is denominated in.")
    price_string: Optional[str] = Field(
        None, description="Raw price text the amount was extracted from, if any."
    )
    base_amount: Optional[Decimal] = Field(
        None, ge=0, description="Amount converted into the run's base currency."
    )

    @property
    def is_priced(self) -> bool:
        return self.available and self.amount > 0

    @field_serializer("amount", "base_amount")
    def _serialize_amount(self, amount: Optional[Decimal]):
        return decimal_to_number(amount)
