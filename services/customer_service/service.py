import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from services.order_service.repository import OrderRepository
from shared.config.database import run_transaction, utcnow
from shared.errors import AlreadyExists, NotFound

from .models import ZERO, Customer
from .repository import CustomerRepository
from .schemas import CustomerCreate, CustomerFilter, CustomerUpdate

logger = structlog.get_logger(__name__)


class CustomerService:

    @staticmethod
    async def create_customer(db: AsyncSession, data: CustomerCreate) -> Customer:
        email = data.email.lower()
        if await CustomerRepository.get_by_email(db, email):
            raise AlreadyExists(f"A customer with email {email} already exists")
        customer = Customer(
            email=email,
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
            default_address=data.default_address.model_dump() if data.default_address else None,
            notes=data.notes,
            order_ids=[],
            order_count=0,
            total_spent=ZERO,
        )
        customer = await CustomerRepository.create(db, customer)
        logger.info("customer_created", customer_id=customer.id)
        return customer

    @staticmethod
    async def get_customer(db: AsyncSession, customer_id: str) -> Customer:
        customer = await CustomerRepository.get_by_id(db, customer_id)
        if not customer:
            raise NotFound("customer", customer_id)
        return customer

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> Customer:
        customer = await CustomerRepository.get_by_email(db, email)
        if not customer:
            raise NotFound("customer", email)
        return customer

    @staticmethod
    async def list_customers(db: AsyncSession, filters: CustomerFilter):
        return await CustomerRepository.list_customers(db, filters)

    @staticmethod
    async def update_customer(db: AsyncSession, customer_id: str, data: CustomerUpdate) -> Customer:
        changes = data.model_dump(exclude_unset=True)
        if changes.get("email"):
            changes["email"] = changes["email"].lower()

        async def work(session: AsyncSession) -> Customer:
            customer = await CustomerService.get_customer(session, customer_id)
            for field, value in changes.items():
                setattr(customer, field, value)
            customer.updated_at = utcnow()
            await session.flush()
            return customer

        customer = await run_transaction(db, work, operation="update_customer")
        logger.info("customer_updated", customer_id=customer_id, fields=sorted(changes))
        return customer

    @staticmethod
    async def delete_customer(db: AsyncSession, customer_id: str) -> None:
        # Historical orders keep their customer_id and email
        async def work(session: AsyncSession) -> None:
            customer = await CustomerService.get_customer(session, customer_id)
            await CustomerRepository.delete(session, customer)

        await run_transaction(db, work, operation="delete_customer")
        logger.info("customer_deleted", customer_id=customer_id)

    @staticmethod
    async def get_customer_orders(db: AsyncSession, customer_id: str):
        customer = await CustomerService.get_customer(db, customer_id)
        orders = await OrderRepository.get_orders_by_ids(db, customer.order_ids or [])
        by_id = {order.id: order for order in orders}
        return [by_id[oid] for oid in customer.order_ids if oid in by_id]
