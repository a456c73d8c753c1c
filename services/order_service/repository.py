from typing import Optional, Sequence

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Order, OrderItem
from .schemas import OrderFilter


class OrderRepository:

    @staticmethod
    async def get_order(db: AsyncSession, order_id: str) -> Optional[Order]:
        result = await db.execute(select(Order).where(Order.id == order_id))
        return result.scalars().first()

    @staticmethod
    async def get_by_idempotency_key(db: AsyncSession, key: str) -> Optional[Order]:
        result = await db.execute(select(Order).where(Order.idempotency_key == key))
        return result.scalars().first()

    @staticmethod
    async def get_orders_by_ids(db: AsyncSession, order_ids: Sequence[str]):
        if not order_ids:
            return []
        result = await db.execute(select(Order).where(Order.id.in_(list(order_ids))))
        return result.scalars().all()

    @staticmethod
    async def list_orders(db: AsyncSession, filters: OrderFilter):
        stmt = select(Order)

        if filters.status:
            stmt = stmt.where(Order.status == filters.status)
        if filters.payment_status:
            stmt = stmt.where(Order.payment_status == filters.payment_status)
        if filters.customer_id:
            stmt = stmt.where(Order.customer_id == filters.customer_id)
        if filters.search:
            term = f"%{filters.search}%"
            stmt = stmt.where(or_(
                Order.customer_email.ilike(term),
                Order.customer_name.ilike(term),
                Order.id.ilike(term),
                Order.items.any(OrderItem.product_name.ilike(term)),
            ))
        if filters.min_total is not None:
            stmt = stmt.where(Order.total >= filters.min_total)
        if filters.max_total is not None:
            stmt = stmt.where(Order.total <= filters.max_total)
        if filters.date_from:
            stmt = stmt.where(Order.created_at >= filters.date_from)
        if filters.date_to:
            stmt = stmt.where(Order.created_at <= filters.date_to)

        stmt = stmt.order_by(Order.created_at.desc()).limit(filters.limit).offset(filters.offset)
        result = await db.execute(stmt)
        return result.scalars().all()

    @staticmethod
    async def delete_order(db: AsyncSession, order: Order):
        await db.delete(order)
        await db.flush()
