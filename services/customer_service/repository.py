from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Customer
from .schemas import CustomerFilter


class CustomerRepository:

    @staticmethod
    async def create(db: AsyncSession, customer: Customer) -> Customer:
        db.add(customer)
        await db.commit()
        await db.refresh(customer)
        return customer

    @staticmethod
    async def get_by_id(db: AsyncSession, customer_id: str) -> Optional[Customer]:
        result = await db.execute(select(Customer).where(Customer.id == customer_id))
        return result.scalars().first()

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> Optional[Customer]:
        result = await db.execute(select(Customer).where(Customer.email == email.lower()))
        return result.scalars().first()

    @staticmethod
    async def list_customers(db: AsyncSession, filters: CustomerFilter):
        stmt = select(Customer)

        if filters.search:
            term = f"%{filters.search}%"
            stmt = stmt.where(or_(
                Customer.email.ilike(term),
                Customer.first_name.ilike(term),
                Customer.last_name.ilike(term),
                Customer.phone.ilike(term),
            ))
        if filters.has_orders is True:
            stmt = stmt.where(Customer.order_count > 0)
        elif filters.has_orders is False:
            stmt = stmt.where(Customer.order_count == 0)
        if filters.min_spent is not None:
            stmt = stmt.where(Customer.total_spent >= filters.min_spent)
        if filters.max_spent is not None:
            stmt = stmt.where(Customer.total_spent <= filters.max_spent)
        if filters.registered_from:
            stmt = stmt.where(Customer.created_at >= filters.registered_from)
        if filters.registered_to:
            stmt = stmt.where(Customer.created_at <= filters.registered_to)

        stmt = stmt.order_by(Customer.created_at.desc()).limit(filters.limit).offset(filters.offset)
        result = await db.execute(stmt)
        return result.scalars().all()

    @staticmethod
    async def delete(db: AsyncSession, customer: Customer):
        await db.delete(customer)
        await db.flush()
