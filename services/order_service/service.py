from decimal import Decimal
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from services.customer_service.models import ZERO
from services.customer_service.repository import CustomerRepository
from services.product_service.repository import ProductRepository
from shared.config import settings
from shared.config.database import run_transaction, utcnow
from shared.errors import InvalidTransition, NotFound

from .models import Order
from .repository import OrderRepository
from .schemas import (
    BulkDelete,
    BulkDeleteResult,
    BulkStatusResult,
    BulkStatusUpdate,
    OrderFilter,
    OrderUpdate,
)

logger = structlog.get_logger(__name__)

# Forward-only lifecycle; cancelling is possible until the parcel ships
ALLOWED_TRANSITIONS = {
    "pending": {"processing", "cancelled"},
    "processing": {"shipped", "cancelled"},
    "shipped": {"delivered"},
    "delivered": set(),
    "cancelled": set(),
}


def check_transition(current: str, requested: str) -> None:
    if requested != current and requested not in ALLOWED_TRANSITIONS.get(current, set()):
        raise InvalidTransition("status", current, requested)


def counted_spend(order: Order, spend_policy: str) -> Decimal:
    """The part of the order total currently included in the customer's total_spent."""
    if spend_policy == "on_create" or order.payment_status == "paid":
        return order.total
    return ZERO


class OrderService:

    @staticmethod
    async def list_orders(db: AsyncSession, filters: OrderFilter):
        return await OrderRepository.list_orders(db, filters)

    @staticmethod
    async def get_order(db: AsyncSession, order_id: str) -> Order:
        order = await OrderRepository.get_order(db, order_id)
        if not order:
            raise NotFound("order", order_id)
        return order

    @staticmethod
    async def update_order(
        db: AsyncSession,
        order_id: str,
        data: OrderUpdate,
        spend_policy: Optional[str] = None,
    ) -> Order:
        policy = spend_policy or settings.LEDGER_SPEND_POLICY
        changes = data.model_dump(exclude_unset=True, exclude_none=True)

        async def work(session: AsyncSession) -> Order:
            order = await OrderService.get_order(session, order_id)
            if "status" in changes:
                check_transition(order.status, changes["status"])

            spend_delta = ZERO
            new_payment = changes.get("payment_status", order.payment_status)
            if policy == "on_payment" and (order.payment_status == "paid") != (new_payment == "paid"):
                spend_delta = order.total if new_payment == "paid" else -order.total
            customer = None
            if spend_delta:
                customer = await CustomerRepository.get_by_id(session, order.customer_id)

            for field, value in changes.items():
                setattr(order, field, value)
            order.updated_at = utcnow()
            if customer is not None:
                customer.add_spend(spend_delta)
            await session.flush()
            return order

        order = await run_transaction(db, work, operation="update_order")
        logger.info("order_updated", order_id=order_id, fields=sorted(changes), status=order.status)
        return order

    @staticmethod
    async def delete_order(
        db: AsyncSession,
        order_id: str,
        policy: Optional[str] = None,
        spend_policy: Optional[str] = None,
    ) -> None:
        """
        Remove an order. With the `keep` policy stock and the customer
        ledger are left as they are; with `restock` the stock goes back to
        every product that still exists and the ledger forgets the order,
        all in the same transaction as the delete.
        """
        policy = policy or settings.ORDER_DELETE_POLICY
        spend_policy = spend_policy or settings.LEDGER_SPEND_POLICY

        async def work(session: AsyncSession) -> None:
            order = await OrderService.get_order(session, order_id)
            if policy == "restock":
                products = []
                for item in order.items:
                    product = await ProductRepository.get_product_by_id(session, item.product_id)
                    if product is not None:
                        products.append((product, item.quantity))
                customer = await CustomerRepository.get_by_id(session, order.customer_id)

                for product, quantity in products:
                    product.adjust_stock(quantity)
                if customer is not None:
                    customer.forget_order(order.id, counted_spend(order, spend_policy))
            await OrderRepository.delete_order(session, order)

        await run_transaction(db, work, operation="delete_order")
        logger.info("order_deleted", order_id=order_id, policy=policy)

    @staticmethod
    async def bulk_update_status(db: AsyncSession, payload: BulkStatusUpdate) -> BulkStatusResult:
        result = BulkStatusResult()
        update = OrderUpdate(status=payload.status, payment_status=payload.payment_status)
        for order_id in payload.ids:
            try:
                await OrderService.update_order(db, order_id, update)
            except NotFound:
                result.not_found.append(order_id)
            except InvalidTransition:
                result.rejected.append(order_id)
            else:
                result.updated.append(order_id)
        return result

    @staticmethod
    async def bulk_delete(db: AsyncSession, payload: BulkDelete) -> BulkDeleteResult:
        result = BulkDeleteResult()
        for order_id in payload.ids:
            try:
                await OrderService.delete_order(db, order_id)
            except NotFound:
                result.not_found.append(order_id)
            else:
                result.deleted.append(order_id)
        return result
