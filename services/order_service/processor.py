"""
Order placement as one atomic unit of work.

A single attempt reads everything it needs (idempotency key, products,
customer ledger), validates and prices the request, and only then writes:
the order row, one stock decrement per product and one ledger update.
Products, customers and orders are versioned, so a concurrent write to
any of them makes the flush fail with StaleDataError and `run_transaction`
replays the attempt from its first read.
"""
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from services.auth_service.repository import UserRepository
from services.customer_service.models import ZERO, Customer
from services.customer_service.repository import CustomerRepository
from services.product_service.repository import ProductRepository
from shared.config import settings
from shared.config.database import new_id, run_transaction, utcnow
from shared.errors import BackofficeError, NotFound, OutOfStock
from shared.observability.metrics import (
    backoffice_order_transaction_seconds,
    backoffice_orders_total,
    backoffice_stock_units_sold_total,
)

from . import pricing
from .models import Order, OrderItem
from .repository import OrderRepository
from .schemas import OrderCreate

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class OrderPlacement:
    order_id: str
    replayed: bool = False
    bottles: int = 0


def merge_lines(data: OrderCreate) -> dict:
    """Sum quantities per product, keeping first-seen order."""
    merged = {}
    for item in data.items:
        merged[item.product_id] = merged.get(item.product_id, 0) + item.quantity
    return merged


def split_name(full_name: str) -> tuple[str, str]:
    first, _, last = full_name.strip().partition(" ")
    return first, last.strip()


class OrderTransactionProcessor:

    def __init__(
        self,
        db: AsyncSession,
        *,
        max_attempts: Optional[int] = None,
        spend_policy: Optional[str] = None,
    ):
        self.db = db
        self.max_attempts = max_attempts or settings.ORDER_TX_MAX_ATTEMPTS
        self.spend_policy = spend_policy or settings.LEDGER_SPEND_POLICY

    async def place_order(self, data: OrderCreate) -> OrderPlacement:
        started = time.perf_counter()
        try:
            placement = await run_transaction(
                self.db,
                lambda session: self._attempt(session, data),
                operation="place_order",
                # IntegrityError: lost a race on the idempotency key or a new customer's email
                retry_on=(StaleDataError, IntegrityError),
                max_attempts=self.max_attempts,
            )
        except BackofficeError as exc:
            backoffice_orders_total.labels(outcome=exc.code.lower()).inc()
            logger.warning("order_rejected", error=exc.code, detail=exc.message)
            raise
        finally:
            backoffice_order_transaction_seconds.observe(time.perf_counter() - started)

        if placement.replayed:
            backoffice_orders_total.labels(outcome="replayed").inc()
            logger.info("order_replayed", order_id=placement.order_id, idempotency_key=data.idempotency_key)
        else:
            backoffice_orders_total.labels(outcome="committed").inc()
            backoffice_stock_units_sold_total.inc(placement.bottles)
            logger.info("order_committed", order_id=placement.order_id, bottles=placement.bottles)
        return placement

    async def _attempt(self, session: AsyncSession, data: OrderCreate) -> OrderPlacement:
        # --- reads ---
        if data.idempotency_key:
            existing = await OrderRepository.get_by_idempotency_key(session, data.idempotency_key)
            if existing:
                return OrderPlacement(order_id=existing.id, replayed=True)

        lines = []
        for product_id, quantity in merge_lines(data).items():
            product = await ProductRepository.get_product_by_id(session, product_id)
            if product is None:
                raise NotFound("product", product_id)
            if product.stock < quantity:
                raise OutOfStock(product.id, product.name, product.stock, quantity)
            lines.append((product, quantity))

        customer, is_new_customer = await self._resolve_customer(session, data)

        # --- validation ---
        quote = pricing.build_quote(lines, data.shipping_cost)
        prices = {line.product_id: line.price for line in quote.lines}
        for item in data.items:
            pricing.check_quoted(f"price of {item.product_id}", item.price, prices[item.product_id])
        pricing.check_quoted("subtotal", data.subtotal, quote.subtotal)
        pricing.check_quoted("total", data.total, quote.total)

        # --- writes ---
        now = utcnow()
        shipping_address = data.shipping_address.model_dump()
        billing_address = data.billing_address.model_dump() if data.billing_address else shipping_address
        order = Order(
            id=new_id(),
            customer_id=customer.id,
            customer_email=customer.email,
            customer_name=customer.full_name,
            subtotal=quote.subtotal,
            shipping_cost=quote.shipping_cost,
            total=quote.total,
            status=data.status,
            payment_status=data.payment_status,
            shipping_address=shipping_address,
            billing_address=billing_address,
            notes=data.notes,
            idempotency_key=data.idempotency_key,
            created_at=now,
            updated_at=now,
            items=[
                OrderItem(
                    position=position,
                    product_id=line.product_id,
                    product_name=line.product_name,
                    quantity=line.quantity,
                    price=line.price,
                    total=line.total,
                )
                for position, line in enumerate(quote.lines)
            ],
        )
        session.add(order)

        for product, quantity in lines:
            product.adjust_stock(-quantity)

        if is_new_customer:
            session.add(customer)
        customer.record_order(order.id, self._counted_spend(data, quote.total), now)

        await session.flush()
        return OrderPlacement(order_id=order.id, bottles=quote.bottles)

    def _counted_spend(self, data: OrderCreate, total: Decimal) -> Decimal:
        if self.spend_policy == "on_create" or data.payment_status == "paid":
            return total
        return ZERO

    async def _resolve_customer(self, session: AsyncSession, data: OrderCreate) -> tuple[Customer, bool]:
        """Find the ledger row for the order, or build one to be inserted with it."""
        if data.customer_id:
            customer = await CustomerRepository.get_by_id(session, data.customer_id)
            if customer:
                return customer, False
            user = await UserRepository.get_by_id(session, data.customer_id)
            if user is None:
                raise NotFound("customer", data.customer_id)
            customer = await CustomerRepository.get_by_email(session, user.email)
            if customer:
                return customer, False
            return self._new_customer(user.email, user.first_name, user.last_name, customer_id=user.id), True

        customer = await CustomerRepository.get_by_email(session, data.customer_email)
        if customer:
            return customer, False
        first_name, last_name = split_name(data.customer_name)
        return self._new_customer(data.customer_email, first_name, last_name), True

    @staticmethod
    def _new_customer(email: str, first_name: str, last_name: str, customer_id: Optional[str] = None) -> Customer:
        now = utcnow()
        return Customer(
            id=customer_id or new_id(),
            email=email.lower(),
            first_name=first_name,
            last_name=last_name,
            phone=None,
            default_address=None,
            notes=None,
            order_ids=[],
            order_count=0,
            total_spent=ZERO,
            created_at=now,
            updated_at=now,
        )
