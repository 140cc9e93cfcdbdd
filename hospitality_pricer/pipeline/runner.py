from typing import Any, Dict, List, Optional, Sequence

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from hospitality_pricer.config.pipeline import PipelineConfig
from hospitality_pricer.models.enums import OfferStatus, PriceMode
from hospitality_pricer.models.match import CanonicalMatchRecord, RawMatch
from hospitality_pricer.models.portal import Portal
from hospitality_pricer.normalization.normalizer import NormalizationError, Normalizer
from hospitality_pricer.portals.base_portal import AuthenticationError, PortalClient, PortalError
from hospitality_pricer.pricing.converter import convert_offers
from hospitality_pricer.pricing.rates import RateSnapshot
from hospitality_pricer.pricing.selector import select
from hospitality_pricer.reconciliation.reconciler import RecordAccumulator


class PipelineError(Exception):
    """A fatal failure, tagged with the portal and stage it happened in."""

    def __init__(self, portal: str, stage: str, message: str):
        super().__init__(f"[{portal} / {stage}] {message}")
        self.portal = portal
        self.stage = stage


class PortalStats(BaseModel):
    """Per-portal counters reported at the end of a run."""

    portal: str
    listed: int = 0
    discarded: int = 0  # No match number, or fields of the wrong shape
    filtered: int = 0  # Removed by the stage filter
    priced: int = 0
    no_offers: int = 0  # Answered, but nothing available or priced
    fetch_failed: int = 0  # Price detail request failed


class PipelineResult(BaseModel):
    records: List[CanonicalMatchRecord] = []
    stats: List[PortalStats] = []
    rates: RateSnapshot
    failed_matches: Dict[str, List[int]] = Field(default_factory=dict)


class PricingPipeline:
    """Visits portals in order and turns their listings into canonical records."""

    def __init__(
        self,
        client: PortalClient,
        config: PipelineConfig,
        portals: Sequence[Portal],
    ):
        self.client = client
        self.config = config
        self.portals = list(portals)
        self.normalizer = Normalizer(config.currency_rule)

    async def run(self, rates: RateSnapshot) -> PipelineResult:
        """Runs the pipeline once with a fixed rate snapshot.

        Portals are visited strictly one after another; the visiting order is
        what breaks ties during reconciliation.
        """
        accumulator = RecordAccumulator()
        all_stats: List[PortalStats] = []
        failed: Dict[str, List[int]] = {}

        for portal in self.portals:
            logger.info(f"Scraping {portal.name} ({portal.code.upper()})...")
            stats, failed_numbers = await self._visit_portal(portal, rates, accumulator)
            all_stats.append(stats)
            if failed_numbers:
                failed[portal.name] = failed_numbers
            logger.success(
                f"{portal.name}: {stats.priced} of {stats.listed} matches have active pricing"
            )

        records = accumulator.reconcile(self.config.merge_policy)
        logger.info(f"TOTAL: {len(records)} canonical rows across {len(self.portals)} portals")
        return PipelineResult(records=records, stats=all_stats, rates=rates, failed_matches=failed)

    async def _visit_portal(
        self, portal: Portal, rates: RateSnapshot, accumulator: RecordAccumulator
    ):
        stats = PortalStats(portal=portal.name)
        failed_numbers: List[int] = []

        try:
            payload = await self.client.list_matches(portal)
        except PortalError as e:
            raise PipelineError(portal.name, "list_matches", str(e)) from e

        try:
            raw_items = self.normalizer.normalize_listing(payload, portal)
        except NormalizationError as e:
            raise PipelineError(portal.name, "normalize", str(e)) from e

        stats.listed = len(raw_items)
        for raw_item in raw_items:
            try:
                raw_match = self.normalizer.parse_match(raw_item)
            except ValidationError as e:
                logger.warning(
                    f"{portal.name}: discarding malformed match {raw_item.get('MatchNumber')}: "
                    f"{e.error_count()} invalid field(s)"
                )
                stats.discarded += 1
                continue
            if raw_match is None:
                stats.discarded += 1
                continue
            if not self.config.keeps_stage(raw_match.stage):
                stats.filtered += 1
                continue

            raw_offers = await self._fetch_offers(portal, raw_match)
            if raw_offers is None:
                stats.fetch_failed += 1
                failed_numbers.append(raw_match.match_number)
                continue

            record = self.build_record(raw_match, raw_offers, portal, rates)
            if record is None:
                stats.no_offers += 1
                continue

            stats.priced += 1
            accumulator.add(portal, record)

        return stats, failed_numbers

    async def _fetch_offers(self, portal: Portal, raw_match: RawMatch) -> Optional[List[Any]]:
        if raw_match.embedded_offers is not None:
            return raw_match.embedded_offers
        try:
            return await self.client.list_offers(portal, raw_match)
        except AuthenticationError as e:
            # Credentials rejected: every later request would fail the same way
            raise PipelineError(portal.name, "list_offers", str(e)) from e
        except PortalError as e:
            # The match is omitted; the run carries on with the next one
            logger.warning(
                f"{portal.name}: price detail for match {raw_match.match_number} failed: {e}"
            )
            return None

    def build_record(
        self,
        raw_match: RawMatch,
        raw_offers: Optional[List[Any]],
        portal: Portal,
        rates: RateSnapshot,
    ) -> Optional[CanonicalMatchRecord]:
        """Normalizes, selects and converts one match. None if it has no price."""
        record = self.normalizer.normalize(raw_match, raw_offers, portal)
        if record is None:
            return None

        selected = select(record.offers, self.config.price_mode)
        if not selected:
            logger.debug(f"{portal.name}: match {record.match_number} has no priced offers")
            return None

        base = self.config.base_currency
        converted = convert_offers(selected, rates.rates, base)
        cheapest = converted[0]
        for offer in converted[1:]:
            if offer.base_amount < cheapest.base_amount:
                cheapest = offer

        return record.model_copy(
            update={
                "offers": converted,
                "offer_status": OfferStatus.PRICED,
                "lounge": cheapest.title if self.config.price_mode == PriceMode.LOWEST_AVAILABLE else None,
                "price": cheapest.amount,
                "base_price": cheapest.base_amount,
                "base_currency": base,
            }
        )
