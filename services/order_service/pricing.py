"""
Server-side order pricing.

Prices always come from the live product rows read inside the order
transaction; amounts a client quotes are only compared against them.
"""
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from shared.errors import PriceMismatch

CENT = Decimal("0.01")

# (max bottles, cost) in ascending order; anything above the last tier pays LARGE_ORDER_SHIPPING
SHIPPING_TIERS = (
    (0, Decimal("0.00")),
    (2, Decimal("6.00")),
    (6, Decimal("9.00")),
    (9, Decimal("12.00")),
)
LARGE_ORDER_SHIPPING = Decimal("15.00")


def to_money(value) -> Decimal:
    """Round to cents, half up. Floats go through str() to avoid binary noise."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def shipping_cost_for(bottles: int) -> Decimal:
    for max_bottles, cost in SHIPPING_TIERS:
        if bottles <= max_bottles:
            return cost
    return LARGE_ORDER_SHIPPING


@dataclass(frozen=True)
class PricedLine:
    product_id: str
    product_name: str
    quantity: int
    price: Decimal
    total: Decimal


@dataclass(frozen=True)
class Quote:
    lines: tuple
    subtotal: Decimal
    shipping_cost: Decimal
    total: Decimal

    @property
    def bottles(self) -> int:
        return sum(line.quantity for line in self.lines)


def build_quote(lines: Sequence[tuple], shipping_cost: Optional[Decimal] = None) -> Quote:
    """
    Price `(product, quantity)` pairs. `shipping_cost` given by staff is used
    as is; otherwise it comes from the bottle tiers.
    """
    priced = []
    for product, quantity in lines:
        price = to_money(product.price)
        priced.append(PricedLine(
            product_id=product.id,
            product_name=product.name,
            quantity=quantity,
            price=price,
            total=to_money(price * quantity),
        ))

    subtotal = to_money(sum((line.total for line in priced), Decimal("0")))
    bottles = sum(line.quantity for line in priced)
    shipping = to_money(shipping_cost) if shipping_cost is not None else shipping_cost_for(bottles)
    return Quote(
        lines=tuple(priced),
        subtotal=subtotal,
        shipping_cost=shipping,
        total=to_money(subtotal + shipping),
    )


def check_quoted(field: str, quoted, expected: Decimal) -> None:
    """Raise PriceMismatch unless a client-supplied amount equals ours to the cent."""
    if quoted is not None and to_money(quoted) != expected:
        raise PriceMismatch(field, to_money(quoted), expected)
