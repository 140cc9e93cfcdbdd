from decimal import Decimal

import pytest

from hospitality_pricer.models.enums import PriceMode
from hospitality_pricer.models.offer import Offer
from hospitality_pricer.pricing.converter import convert_offers, to_base
from hospitality_pricer.pricing.selector import select

RATES = {"USD": Decimal("1"), "CAD": Decimal("1.35"), "MXN": Decimal("20.5")}


def offer(title, amount, available=True, currency="USD"):
    return Offer(title=title, available=available, amount=Decimal(amount), currency=currency)


def test_lowest_available_ignores_unavailable_offers():
    offers = [offer("A", 300), offer("B", 50, available=False), offer("C", 120)]
    selected = select(offers, PriceMode.LOWEST_AVAILABLE)
    assert [(o.title, o.amount) for o in selected] == [("C", Decimal("120"))]


def test_lowest_available_tie_keeps_first_encountered():
    offers = [offer("Zeta", 200), offer("Alpha", 200), offer("Beta", 300)]
    assert select(offers, PriceMode.LOWEST_AVAILABLE)[0].title == "Zeta"


def test_lowest_available_skips_unpriced():
    offers = [offer("Free text", 0), offer("VIP", 950)]
    assert select(offers, PriceMode.LOWEST_AVAILABLE)[0].title == "VIP"


def test_all_offers_passes_priced_offers_in_order():
    offers = [offer("A", 300), offer("B", 0), offer("C", 120), offer("D", 80, available=False)]
    assert [o.title for o in select(offers, PriceMode.ALL_OFFERS)] == ["A", "C"]


@pytest.mark.parametrize("mode", list(PriceMode))
@pytest.mark.parametrize("offers", [[], None, [offer("Sold out", 0)], ["not-an-offer", 3]])
def test_no_price_is_not_an_error(mode, offers):
    assert select(offers, mode) == []


def test_same_currency_is_exact():
    assert to_base(Decimal("400"), "USD", RATES, "USD") == Decimal("400")
    assert to_base(Decimal("450.5"), "usd", RATES, "USD") == Decimal("450.5")


@pytest.mark.parametrize(
    "amount, currency, expected",
    [
        (550, "CAD", 407),
        (8000, "MXN", 390),
        (100, "CAD", 74),
    ],
)
def test_conversion_divides_by_rate_and_rounds(amount, currency, expected):
    assert to_base(Decimal(amount), currency, RATES, "USD") == expected


def test_conversion_rounds_half_up():
    rates = {"CAD": Decimal("2")}
    assert to_base(Decimal("5"), "CAD", rates, "USD") == 3  # 2.5
    assert to_base(Decimal("7"), "CAD", rates, "USD") == 4  # 3.5


def test_very_large_amount_converts_without_overflow():
    assert to_base(Decimal("1e30"), "CAD", {"CAD": Decimal("2")}, "USD") == Decimal("5e29")


def test_missing_rate_defaults_divisor_to_one():
    assert to_base(Decimal("200"), "XYZ", RATES, "USD") == 200


def test_non_positive_rate_defaults_divisor_to_one():
    assert to_base(Decimal("200"), "CAD", {"CAD": Decimal("0")}, "USD") == 200


def test_convert_offers_fills_base_amount():
    converted = convert_offers([offer("VIP", 550, currency="CAD")], RATES, "USD")
    assert converted[0].base_amount == 407
    assert converted[0].amount == 550
