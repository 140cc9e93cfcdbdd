from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict

from hospitality_pricer.config.settings import AppSettings
from hospitality_pricer.models.enums import (
    CurrencyRule,
    MergePolicy,
    PriceMode,
    StageFilter,
)

StagePredicate = Callable[[str], bool]


def is_group_stage(stage: str) -> bool:
    return "group" in (stage or "").lower()


STAGE_PREDICATES = {
    StageFilter.NONE: None,
    StageFilter.GROUP_STAGE: is_group_stage,
}


class PipelineConfig(BaseModel):
    """Everything that varies between runs of the pricing pipeline."""

    model_config = ConfigDict(frozen=True)

    price_mode: PriceMode = PriceMode.LOWEST_AVAILABLE
    currency_rule: CurrencyRule = CurrencyRule.PORTAL
    merge_policy: MergePolicy = MergePolicy.LOWEST_PRICE_WINS
    stage_filter: Optional[StagePredicate] = None
    base_currency: str = "USD"

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "PipelineConfig":
        return cls(
            price_mode=settings.price_mode,
            currency_rule=settings.currency_rule,
            merge_policy=settings.merge_policy,
            stage_filter=STAGE_PREDICATES[settings.stage_filter],
            base_currency=settings.base_currency,
        )

    def keeps_stage(self, stage: str) -> bool:
        return self.stage_filter is None or self.stage_filter(stage)
