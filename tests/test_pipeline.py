import asyncio
from decimal import Decimal

import pytest

from conftest import FakePortalClient, lounge, raw_match
from hospitality_pricer.config.pipeline import PipelineConfig, is_group_stage
from hospitality_pricer.config.settings import AppSettings
from hospitality_pricer.models.enums import (
    CurrencyRule,
    MergePolicy,
    PriceMode,
    StageFilter,
)
from hospitality_pricer.models.portal import PORTALS, resolve_portals
from hospitality_pricer.pipeline.runner import PipelineError, PricingPipeline
from hospitality_pricer.portals.base_portal import AuthenticationError, PortalError

ALL_PORTALS = [PORTALS["us"], PORTALS["ca"], PORTALS["mx"]]


def run(client, config, rates, portals=ALL_PORTALS):
    return asyncio.run(PricingPipeline(client, config, portals).run(rates))


def three_portal_client():
    return FakePortalClient(
        matches={code: [raw_match(7)] for code in ("us", "ca", "mx")},
        offers={
            "us": {7: [lounge("VIP", "$400")]},
            "ca": {7: [lounge("VIP", "$550")]},
            "mx": {7: [lounge("VIP", "$8,000")]},
        },
    )


def test_three_portals_lowest_price_wins(rates):
    client = three_portal_client()
    result = run(client, PipelineConfig(), rates)

    assert len(result.records) == 1
    winner = result.records[0]
    assert winner.match_number == 7
    assert winner.portal == "Mexico"
    assert winner.currency == "MXN"
    assert winner.price == Decimal("8000")
    assert winner.base_price == 390
    assert winner.lounge == "VIP"


def test_three_portals_concatenate_converts_each(rates):
    config = PipelineConfig(merge_policy=MergePolicy.CONCATENATE)
    result = run(three_portal_client(), config, rates)

    assert [(r.portal_code, r.base_price) for r in result.records] == [
        ("us", 400),
        ("ca", 407),
        ("mx", 390),
    ]


def test_portals_are_visited_sequentially_in_order(rates):
    client = three_portal_client()
    run(client, PipelineConfig(), rates)
    assert client.calls == [
        ("list_matches", "us"),
        ("list_offers", "us", 7),
        ("list_matches", "ca"),
        ("list_offers", "ca", 7),
        ("list_matches", "mx"),
        ("list_offers", "mx", 7),
    ]


def test_all_offers_mode_exports_every_priced_offer(rates, us):
    client = FakePortalClient(
        matches={"us": [raw_match(1)]},
        offers={"us": {1: [lounge("VIP", "$900"), lounge("Pitchside", "$1,500"), lounge("X", "TBA")]}},
    )
    config = PipelineConfig(price_mode=PriceMode.ALL_OFFERS, merge_policy=MergePolicy.CONCATENATE)
    result = run(client, config, rates, [us])

    record = result.records[0]
    assert [o.title for o in record.offers] == ["VIP", "Pitchside"]
    assert record.lounge is None
    assert record.base_price == 900


def test_unpriced_and_failed_matches_are_omitted(rates, us):
    client = FakePortalClient(
        matches={"us": [raw_match(1), raw_match(2), raw_match(3), raw_match(None)]},
        offers={"us": {1: [lounge("VIP", "$500")], 2: [lounge("VIP", "Sold out")]}},
        failing={"us": [3]},
    )
    result = run(client, PipelineConfig(), rates, [us])

    assert [r.match_number for r in result.records] == [1]
    stats = result.stats[0]
    assert stats.listed == 4
    assert stats.discarded == 1
    assert stats.priced == 1
    assert stats.no_offers == 1
    assert stats.fetch_failed == 1
    assert result.failed_matches == {"United States": [3]}


def test_embedded_price_array_skips_offer_request(rates, us):
    embedded = [
        {
            "name": "Champions Club",
            "hasAvailableSeats": True,
            "priceCategories": [{"isAvailable": True, "amount": 3200}],
        }
    ]
    client = FakePortalClient(matches={"us": [raw_match(9, PriceCategories=embedded)]})
    result = run(client, PipelineConfig(), rates, [us])

    assert result.records[0].lounge == "Champions Club"
    assert ("list_offers", "us", 9) not in client.calls


def test_stage_filter(rates, us):
    client = FakePortalClient(
        matches={"us": [raw_match(1), raw_match(90, Stage="Round of 32")]},
        offers={"us": {1: [lounge("VIP", "$500")], 90: [lounge("VIP", "$700")]}},
    )
    config = PipelineConfig(stage_filter=is_group_stage)
    result = run(client, config, rates, [us])

    assert [r.match_number for r in result.records] == [1]
    assert result.stats[0].filtered == 1


def test_venue_currency_rule_applies_to_every_portal(rates, us, ca):
    client = FakePortalClient(
        matches={"us": [raw_match(7)], "ca": [raw_match(7)]},
        offers={"us": {7: [lounge("VIP", "$8,200")]}, "ca": {7: [lounge("VIP", "$8,000")]}},
    )
    config = PipelineConfig(currency_rule=CurrencyRule.VENUE_COUNTRY)
    result = run(client, config, rates, [us, ca])

    assert result.records[0].currency == "MXN"
    assert result.records[0].portal_code == "ca"
    assert result.records[0].base_price == 390


def test_listing_failure_is_fatal_with_context(rates, us, ca):
    client = FakePortalClient(
        matches={"us": [raw_match(1)], "ca": PortalError("navigation timed out")},
        offers={"us": {1: [lounge("VIP", "$500")]}},
    )
    with pytest.raises(PipelineError) as excinfo:
        run(client, PipelineConfig(), rates, [us, ca])
    assert excinfo.value.portal == "Canada"
    assert excinfo.value.stage == "list_matches"


def test_malformed_listing_is_fatal(rates, us):
    client = FakePortalClient(matches={"us": {"message": "Service unavailable"}})
    with pytest.raises(PipelineError) as excinfo:
        run(client, PipelineConfig(), rates, [us])
    assert excinfo.value.stage == "normalize"


def test_output_has_unique_sorted_match_numbers(rates):
    client = FakePortalClient(
        matches={
            "us": [raw_match(20), raw_match(4)],
            "ca": [raw_match(4), raw_match(11)],
            "mx": [raw_match(20)],
        },
        offers={
            "us": {20: [lounge("A", "$100")], 4: [lounge("A", "$300")]},
            "ca": {4: [lounge("A", "$200")], 11: [lounge("A", "$50")]},
            "mx": {20: [lounge("A", "$1,000")]},
        },
    )
    result = run(client, PipelineConfig(), rates)
    numbers = [r.match_number for r in result.records]
    assert numbers == sorted(set(numbers)) == [4, 11, 20]


def test_config_from_settings():
    settings = AppSettings(
        price_mode="all-offers",
        currency_rule="venue-country",
        merge_policy="concatenate",
        stage_filter="group-stage",
        base_currency="usd",
    )
    config = PipelineConfig.from_settings(settings)
    assert config.price_mode == PriceMode.ALL_OFFERS
    assert config.currency_rule == CurrencyRule.VENUE_COUNTRY
    assert config.merge_policy == MergePolicy.CONCATENATE
    assert config.keeps_stage("Group A") and not config.keeps_stage("Final")
    assert config.base_currency == "USD"
    assert settings.stage_filter == StageFilter.GROUP_STAGE


def test_resolve_portals():
    assert [p.code for p in resolve_portals(["mx", "us", "mx"])] == ["mx", "us"]
    with pytest.raises(ValueError):
        resolve_portals(["br"])


def test_malformed_match_fields_do_not_abort_the_run(rates, us):
    client = FakePortalClient(
        matches={
            "us": [
                raw_match(1, Lounges=["junk", lounge("VIP", "$500")]),
                raw_match(2, Stage=3, Venue="Estadio Azteca"),
                raw_match(3, HostTeam={"ExternalName": 52, "Code": None}),
                raw_match(4, PriceCategories=[{"name": "VIP", "priceCategories": "n/a"}]),
            ]
        },
        offers={"us": {2: [lounge("VIP", "$600")], 3: [lounge("VIP", "$700")]}},
    )
    result = run(client, PipelineConfig(), rates, [us])

    assert [r.match_number for r in result.records] == [1, 2, 3]
    first, second, third = result.records
    assert first.base_price == 500
    assert second.stage == "3"
    assert second.venue.name == ""
    assert third.host_team.name == "52"
    assert result.stats[0].no_offers == 1


def test_rejected_credentials_on_offer_request_are_fatal(rates, us):
    class RejectingClient(FakePortalClient):
        async def list_offers(self, portal, match):
            raise AuthenticationError("403 Forbidden")

    client = RejectingClient(matches={"us": [raw_match(1), raw_match(2)]})
    with pytest.raises(PipelineError) as excinfo:
        run(client, PipelineConfig(), rates, [us])
    assert excinfo.value.portal == "United States"
    assert excinfo.value.stage == "list_offers"
    assert isinstance(excinfo.value.__cause__, AuthenticationError)
