from typing import Annotated, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from services.customer_service.repository import CustomerRepository
from services.notification_service.service import NotificationDispatcher, get_dispatcher
from shared.config import settings
from shared.config.database import get_db
from shared.security import Principal, get_current_user, limiter, require_admin

from .processor import OrderTransactionProcessor
from .schemas import (
    BulkDelete,
    BulkDeleteResult,
    BulkStatusResult,
    BulkStatusUpdate,
    OrderCreate,
    OrderCreated,
    OrderFilter,
    OrderResponse,
    OrderUpdate,
)
from .service import OrderService

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.get("", response_model=list[OrderResponse])
async def list_orders(
    filters: Annotated[OrderFilter, Query()],
    _: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await OrderService.list_orders(db, filters)


@router.post("", response_model=OrderCreated, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.ORDER_RATE_LIMIT)
async def create_order(
    request: Request,                      # slowapi reads the caller key from it
    response: Response,
    payload: OrderCreate,
    background_tasks: BackgroundTasks,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    principal: Principal = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    db: AsyncSession = Depends(get_db)
):
    if idempotency_key and not payload.idempotency_key:
        payload = payload.model_copy(update={"idempotency_key": idempotency_key})

    placement = await OrderTransactionProcessor(db).place_order(payload)
    if placement.replayed:
        response.status_code = status.HTTP_200_OK
        return OrderCreated(id=placement.order_id, message="Order already placed", replayed=True)

    order = await OrderService.get_order(db, placement.order_id)
    customer = await CustomerRepository.get_by_id(db, order.customer_id)
    background_tasks.add_task(dispatcher.dispatch_order_placed, order, customer)
    return OrderCreated(id=order.id, message="Order created successfully")


@router.post("/bulk/status", response_model=BulkStatusResult)
async def bulk_update_status(
    payload: BulkStatusUpdate,
    _: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return await OrderService.bulk_update_status(db, payload)


@router.post("/bulk/delete", response_model=BulkDeleteResult)
async def bulk_delete(
    payload: BulkDelete,
    _: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return await OrderService.bulk_delete(db, payload)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    _: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await OrderService.get_order(db, order_id)


@router.patch("/{order_id}", response_model=OrderResponse)
async def update_order(
    order_id: str,
    payload: OrderUpdate,
    _: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await OrderService.update_order(db, order_id, payload)


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_order(
    order_id: str,
    _: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    await OrderService.delete_order(db, order_id)
