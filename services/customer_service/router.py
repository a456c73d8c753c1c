from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from services.order_service.schemas import OrderResponse
from shared.config.database import get_db
from shared.security import require_admin

from .schemas import CustomerCreate, CustomerFilter, CustomerResponse, CustomerUpdate
from .service import CustomerService

# Customer records are staff-only
router = APIRouter(
    prefix="/customers",
    tags=["Customers"],
    dependencies=[Depends(require_admin)],
)


@router.get("", response_model=list[CustomerResponse])
async def list_customers(
    filters: Annotated[CustomerFilter, Query()],
    db: AsyncSession = Depends(get_db)
):
    return await CustomerService.list_customers(db, filters)


@router.get("/lookup", response_model=CustomerResponse)
async def lookup_customer(
    email: str = Query(min_length=3),
    db: AsyncSession = Depends(get_db)
):
    return await CustomerService.get_by_email(db, email)


@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer(customer_id: str, db: AsyncSession = Depends(get_db)):
    return await CustomerService.get_customer(db, customer_id)


@router.get("/{customer_id}/orders", response_model=list[OrderResponse])
async def get_customer_orders(customer_id: str, db: AsyncSession = Depends(get_db)):
    return await CustomerService.get_customer_orders(db, customer_id)


@router.post("", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(payload: CustomerCreate, db: AsyncSession = Depends(get_db)):
    return await CustomerService.create_customer(db, payload)


@router.patch("/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_id: str,
    payload: CustomerUpdate,
    db: AsyncSession = Depends(get_db)
):
    return await CustomerService.update_customer(db, customer_id, payload)


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_customer(customer_id: str, db: AsyncSession = Depends(get_db)):
    await CustomerService.delete_customer(db, customer_id)
