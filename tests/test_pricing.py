from dataclasses import dataclass
from decimal import Decimal

import pytest

from services.order_service import pricing
from shared.errors import PriceMismatch


@dataclass
class FakeProduct:
    id: str
    name: str
    price: Decimal


@pytest.mark.parametrize(
    "bottles, cost",
    [(0, "0"), (1, "6"), (2, "6"), (3, "9"), (6, "9"), (7, "12"), (9, "12"), (10, "15"), (48, "15")],
)
def test_shipping_tiers(bottles, cost):
    assert pricing.shipping_cost_for(bottles) == Decimal(cost)


def test_money_rounds_half_up():
    assert pricing.to_money(Decimal("2.345")) == Decimal("2.35")
    assert pricing.to_money(0.1 + 0.2) == Decimal("0.30")


def test_quote_uses_catalog_prices_and_tiers():
    gin = FakeProduct("p-1", "Gin Luna Piena", Decimal("32.50"))
    tonic = FakeProduct("p-2", "Tonica", Decimal("2.40"))

    quote = pricing.build_quote([(gin, 2), (tonic, 3)])

    assert [line.total for line in quote.lines] == [Decimal("65.00"), Decimal("7.20")]
    assert quote.subtotal == Decimal("72.20")
    assert quote.bottles == 5
    assert quote.shipping_cost == Decimal("9.00")
    assert quote.total == Decimal("81.20")


def test_quote_keeps_explicit_shipping():
    gin = FakeProduct("p-1", "Gin", Decimal("10"))

    quote = pricing.build_quote([(gin, 1)], shipping_cost=Decimal("0"))

    assert quote.shipping_cost == Decimal("0.00")
    assert quote.total == Decimal("10.00")


def test_check_quoted_ignores_missing_values():
    pricing.check_quoted("total", None, Decimal("10.00"))


def test_check_quoted_compares_to_the_cent():
    pricing.check_quoted("total", Decimal("10"), Decimal("10.00"))
    with pytest.raises(PriceMismatch) as exc_info:
        pricing.check_quoted("total", Decimal("10.01"), Decimal("10.00"))
    assert exc_info.value.code == "PRICE_MISMATCH"
    assert exc_info.value.status_code == 422
