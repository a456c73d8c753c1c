import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from services.auth_service.models import User
from services.customer_service.models import Customer
from services.order_service.models import Order
from services.order_service.processor import OrderPlacement, OrderTransactionProcessor
from services.order_service.schemas import OrderCreate
from services.product_service.models import Product
from services.product_service.repository import ProductRepository
from shared.config.database import AsyncSessionLocal
from shared.errors import ConflictRetryExhausted, NotFound, OutOfStock, PriceMismatch


def order_for(customer_id, address, *lines, **extra):
    return OrderCreate(
        customer_id=customer_id,
        items=[{"product_id": pid, "quantity": qty} for pid, qty in lines],
        shipping_address=address,
        **extra,
    )


async def count_orders() -> int:
    async with AsyncSessionLocal() as db:
        return await db.scalar(select(func.count()).select_from(Order))


async def place(data, **kwargs) -> OrderPlacement:
    async with AsyncSessionLocal() as db:
        return await OrderTransactionProcessor(db, **kwargs).place_order(data)


@pytest.mark.asyncio
async def test_order_decrements_stock(make_product, make_customer, fetch, address):
    """Stock 5, order 3: the order commits and 2 bottles are left."""
    product = await make_product(stock=5)
    customer = await make_customer()

    placement = await place(order_for(customer.id, address, (product.id, 3)))

    assert placement.replayed is False
    assert (await fetch(Product, product.id)).stock == 2
    order = await fetch(Order, placement.order_id)
    assert order.customer_id == customer.id
    assert [(i.product_id, i.quantity) for i in order.items] == [(product.id, 3)]


@pytest.mark.asyncio
async def test_insufficient_stock_rejects_whole_order(make_product, make_customer, fetch, address):
    product = await make_product(name="Gin Luna Nuova", stock=2)
    customer = await make_customer()

    with pytest.raises(OutOfStock) as exc_info:
        await place(order_for(customer.id, address, (product.id, 3)))

    assert str(exc_info.value) == "Insufficient stock for Gin Luna Nuova: 2 available"
    assert exc_info.value.available == 2
    assert (await fetch(Product, product.id)).stock == 2
    assert await count_orders() == 0
    ledger = await fetch(Customer, customer.id)
    assert ledger.order_ids == []
    assert ledger.total_spent == Decimal("0")


@pytest.mark.asyncio
async def test_concurrent_orders_never_oversell(make_product, make_customer, fetch, address):
    """Two orders of 4 against a stock of 5: one commits, the other is refused."""
    product = await make_product(stock=5)
    customer = await make_customer()
    data = order_for(customer.id, address, (product.id, 4))

    results = await asyncio.gather(place(data), place(data), return_exceptions=True)

    committed = [r for r in results if isinstance(r, OrderPlacement)]
    refused = [r for r in results if isinstance(r, OutOfStock)]
    assert len(committed) == 1
    assert len(refused) == 1
    assert (await fetch(Product, product.id)).stock == 1
    assert await count_orders() == 1
    ledger = await fetch(Customer, customer.id)
    assert ledger.order_ids == [committed[0].order_id]


@pytest.mark.asyncio
async def test_conflicting_write_between_read_and_commit_is_retried(
    make_product, make_customer, fetch, address, monkeypatch
):
    """A competing sale lands after our read; the retry sees it and still sells what is left."""
    product = await make_product(stock=5)
    customer = await make_customer()
    original = ProductRepository.get_product_by_id
    reads = []

    async def read_then_compete(db, product_id):
        found = await original(db, product_id)
        reads.append(found.stock)
        if len(reads) == 1:
            async with AsyncSessionLocal() as other:
                competitor = await original(other, product_id)
                competitor.adjust_stock(-1)
                await other.commit()
        return found

    monkeypatch.setattr(ProductRepository, "get_product_by_id", staticmethod(read_then_compete))

    await place(order_for(customer.id, address, (product.id, 3)))

    assert reads == [5, 4]
    assert (await fetch(Product, product.id)).stock == 1


@pytest.mark.asyncio
async def test_retry_sees_stock_taken_by_competitor(
    make_product, make_customer, fetch, address, monkeypatch
):
    product = await make_product(stock=5)
    customer = await make_customer()
    original = ProductRepository.get_product_by_id
    calls = []

    async def read_then_compete(db, product_id):
        found = await original(db, product_id)
        calls.append(product_id)
        if len(calls) == 1:
            async with AsyncSessionLocal() as other:
                competitor = await original(other, product_id)
                competitor.adjust_stock(-3)
                await other.commit()
        return found

    monkeypatch.setattr(ProductRepository, "get_product_by_id", staticmethod(read_then_compete))

    with pytest.raises(OutOfStock):
        await place(order_for(customer.id, address, (product.id, 4)))

    assert (await fetch(Product, product.id)).stock == 2
    assert await count_orders() == 0


@pytest.mark.asyncio
async def test_sustained_contention_exhausts_retries(
    make_product, make_customer, fetch, address, monkeypatch
):
    product = await make_product(stock=5)
    customer = await make_customer()
    original = ProductRepository.get_product_by_id

    async def always_compete(db, product_id):
        found = await original(db, product_id)
        async with AsyncSessionLocal() as other:
            competitor = await original(other, product_id)
            competitor.adjust_stock(1)
            await other.commit()
        return found

    monkeypatch.setattr(ProductRepository, "get_product_by_id", staticmethod(always_compete))

    with pytest.raises(ConflictRetryExhausted) as exc_info:
        await place(order_for(customer.id, address, (product.id, 1)), max_attempts=3)

    assert exc_info.value.attempts == 3
    # only the competitor's restocks landed
    assert (await fetch(Product, product.id)).stock == 8
    assert await count_orders() == 0
    assert (await fetch(Customer, customer.id)).order_ids == []


@pytest.mark.asyncio
async def test_totals_are_computed_from_catalog_prices(make_product, make_customer, fetch, address):
    """Items 10 x 2 and 5 x 1 with shipping 9: subtotal 25, total 34."""
    gin = await make_product(price=Decimal("10.00"))
    tonic = await make_product(name="Tonica", price=Decimal("5.00"))
    customer = await make_customer()

    placement = await place(order_for(
        customer.id, address, (gin.id, 2), (tonic.id, 1),
        shipping_cost=Decimal("9"), subtotal=Decimal("25"), total=Decimal("34"),
    ))

    order = await fetch(Order, placement.order_id)
    assert order.subtotal == Decimal("25")
    assert order.shipping_cost == Decimal("9")
    assert order.total == Decimal("34")
    assert order.total == order.subtotal + order.shipping_cost
    assert order.subtotal == sum(item.price * item.quantity for item in order.items)
    assert [item.total for item in order.items] == [Decimal("20"), Decimal("5")]


@pytest.mark.asyncio
async def test_shipping_defaults_to_bottle_tiers(make_product, make_customer, fetch, address):
    product = await make_product(stock=20)
    customer = await make_customer()

    placement = await place(order_for(customer.id, address, (product.id, 7)))

    order = await fetch(Order, placement.order_id)
    assert order.shipping_cost == Decimal("12")
    assert order.total == Decimal("82")


@pytest.mark.asyncio
async def test_quick_order_creates_customer_ledger(make_product, fetch, address, session):
    """A first-time customer ordering 40 gets a ledger with that order and that spend."""
    product = await make_product(price=Decimal("34.00"))

    placement = await place(OrderCreate(
        customer_email="Marco.Bianchi@Example.com",
        customer_name="Marco Bianchi",
        items=[{"product_id": product.id, "quantity": 1}],
        shipping_address=address,
    ))

    customer = await session.scalar(select(Customer).where(Customer.email == "marco.bianchi@example.com"))
    assert customer is not None
    assert (customer.first_name, customer.last_name) == ("Marco", "Bianchi")
    assert customer.order_ids == [placement.order_id]
    assert customer.order_count == 1
    assert customer.total_spent == Decimal("40")
    assert customer.last_order_at is not None
    order = await fetch(Order, placement.order_id)
    assert order.customer_id == customer.id
    assert order.billing_address == order.shipping_address


@pytest.mark.asyncio
async def test_ledger_records_each_order_once(make_product, make_customer, fetch, address):
    product = await make_product(stock=10)
    customer = await make_customer(total_spent=Decimal("100.00"))

    first = await place(order_for(customer.id, address, (product.id, 1)))
    second = await place(order_for(customer.id, address, (product.id, 2)))

    ledger = await fetch(Customer, customer.id)
    assert ledger.order_ids == [first.order_id, second.order_id]
    assert ledger.order_count == 2
    # 10 + 6 shipping, then 20 + 6 shipping
    assert ledger.total_spent == Decimal("142")


@pytest.mark.asyncio
async def test_unknown_product_leaves_everything_untouched(make_product, fetch, address, session):
    product = await make_product(stock=5)

    with pytest.raises(NotFound) as exc_info:
        await place(OrderCreate(
            customer_email="nuovo@example.com",
            customer_name="Nuovo Cliente",
            items=[
                {"product_id": product.id, "quantity": 1},
                {"product_id": "does-not-exist", "quantity": 1},
            ],
            shipping_address=address,
        ))

    assert exc_info.value.kind == "product"
    assert (await fetch(Product, product.id)).stock == 5
    assert await count_orders() == 0
    assert await session.scalar(select(func.count()).select_from(Customer)) == 0


@pytest.mark.asyncio
async def test_split_lines_cannot_oversell(make_product, make_customer, fetch, address):
    product = await make_product(stock=5)
    customer = await make_customer()

    with pytest.raises(OutOfStock) as exc_info:
        await place(order_for(customer.id, address, (product.id, 3), (product.id, 3)))

    assert exc_info.value.requested == 6
    assert (await fetch(Product, product.id)).stock == 5


@pytest.mark.asyncio
async def test_repeated_lines_are_merged(make_product, make_customer, fetch, address):
    product = await make_product(stock=5)
    customer = await make_customer()

    placement = await place(order_for(customer.id, address, (product.id, 2), (product.id, 1)))

    order = await fetch(Order, placement.order_id)
    assert [(i.product_id, i.quantity) for i in order.items] == [(product.id, 3)]
    assert (await fetch(Product, product.id)).stock == 2


@pytest.mark.asyncio
async def test_stale_client_price_is_rejected(make_product, make_customer, fetch, address):
    product = await make_product(price=Decimal("32.50"))
    customer = await make_customer()
    data = OrderCreate(
        customer_id=customer.id,
        items=[{"product_id": product.id, "quantity": 1, "price": Decimal("30.00")}],
        shipping_address=address,
    )

    with pytest.raises(PriceMismatch):
        await place(data)

    assert (await fetch(Product, product.id)).stock == 5


@pytest.mark.asyncio
async def test_wrong_client_total_is_rejected(make_product, make_customer, address):
    product = await make_product()
    customer = await make_customer()

    with pytest.raises(PriceMismatch) as exc_info:
        await place(order_for(customer.id, address, (product.id, 1), total=Decimal("10.00")))

    assert exc_info.value.field == "total"
    assert exc_info.value.expected == Decimal("16.00")


@pytest.mark.asyncio
async def test_idempotency_key_replays_without_side_effects(make_product, make_customer, fetch, address):
    product = await make_product(stock=5)
    customer = await make_customer()
    data = order_for(customer.id, address, (product.id, 2), idempotency_key="checkout-42")

    first = await place(data)
    second = await place(data)

    assert first.replayed is False
    assert second.replayed is True
    assert second.order_id == first.order_id
    assert await count_orders() == 1
    assert (await fetch(Product, product.id)).stock == 3
    assert (await fetch(Customer, customer.id)).order_ids == [first.order_id]


@pytest.mark.asyncio
async def test_concurrent_duplicates_with_same_key_create_one_order(make_product, make_customer, fetch, address):
    product = await make_product(stock=10)
    customer = await make_customer()
    data = order_for(customer.id, address, (product.id, 1), idempotency_key="double-click")

    results = await asyncio.gather(place(data), place(data))

    assert {r.order_id for r in results} == {results[0].order_id}
    assert sorted(r.replayed for r in results) == [False, True]
    assert (await fetch(Product, product.id)).stock == 9


@pytest.mark.asyncio
async def test_registered_user_gets_a_ledger_on_first_order(make_product, fetch, address):
    product = await make_product()
    async with AsyncSessionLocal() as db:
        user = User(email="anna@example.com", hashed_password="x", first_name="Anna", last_name="Verdi")
        db.add(user)
        await db.commit()

    placement = await place(order_for(user.id, address, (product.id, 1)))

    ledger = await fetch(Customer, user.id)
    assert ledger.email == "anna@example.com"
    assert ledger.order_ids == [placement.order_id]


@pytest.mark.asyncio
async def test_unknown_customer_id_is_not_found(make_product, fetch, address):
    product = await make_product()

    with pytest.raises(NotFound) as exc_info:
        await place(order_for("ghost", address, (product.id, 1)))

    assert exc_info.value.kind == "customer"
    assert (await fetch(Product, product.id)).stock == 5


@pytest.mark.asyncio
async def test_last_bottle_marks_product_out_of_stock(make_product, make_customer, fetch, address):
    product = await make_product(stock=2)
    customer = await make_customer()

    await place(order_for(customer.id, address, (product.id, 2)))

    sold_out = await fetch(Product, product.id)
    assert sold_out.stock == 0
    assert sold_out.status == "out_of_stock"


@pytest.mark.asyncio
async def test_on_payment_policy_defers_spend(make_product, make_customer, fetch, address):
    product = await make_product()
    customer = await make_customer()

    placement = await place(order_for(customer.id, address, (product.id, 1)), spend_policy="on_payment")

    ledger = await fetch(Customer, customer.id)
    assert ledger.order_ids == [placement.order_id]
    assert ledger.order_count == 1
    assert ledger.total_spent == Decimal("0")


@pytest.mark.asyncio
async def test_on_payment_policy_counts_orders_created_paid(make_product, make_customer, fetch, address):
    product = await make_product()
    customer = await make_customer()

    await place(
        order_for(customer.id, address, (product.id, 1), payment_status="paid"),
        spend_policy="on_payment",
    )

    assert (await fetch(Customer, customer.id)).total_spent == Decimal("16")
