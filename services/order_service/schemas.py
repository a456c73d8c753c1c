from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

from services.customer_service.schemas import Address
from services.product_service.schemas import MAX_STOCK

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
PaymentStatus = Literal["pending", "paid", "failed", "refunded"]


class OrderItemIn(BaseModel):
    product_id: str = Field(min_length=1)
    quantity: int = Field(ge=1, le=MAX_STOCK)
    # Unit price the client saw; checked against the catalog when given
    price: Optional[Decimal] = Field(default=None, ge=0)


class OrderCreate(BaseModel):
    customer_id: Optional[str] = None
    # Quick-order path: the customer is found or created by email
    customer_email: Optional[EmailStr] = None
    customer_name: Optional[str] = Field(default=None, min_length=1, max_length=101)
    items: List[OrderItemIn] = Field(min_length=1)
    shipping_cost: Optional[Decimal] = Field(default=None, ge=0)
    subtotal: Optional[Decimal] = Field(default=None, ge=0)
    total: Optional[Decimal] = Field(default=None, ge=0)
    status: OrderStatus = "pending"
    payment_status: PaymentStatus = "pending"
    shipping_address: Address
    billing_address: Optional[Address] = None
    notes: Optional[str] = Field(default=None, max_length=1000)
    idempotency_key: Optional[str] = Field(default=None, min_length=1, max_length=255)

    @model_validator(mode="after")
    def check_customer_reference(self):
        if not self.customer_id and not (self.customer_email and self.customer_name):
            raise ValueError("customer_id, or customer_email and customer_name, is required")
        return self


class OrderUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    shipping_address: Optional[Address] = None
    billing_address: Optional[Address] = None
    notes: Optional[str] = Field(default=None, max_length=1000)


class OrderFilter(BaseModel):
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    customer_id: Optional[str] = None
    search: Optional[str] = None
    min_total: Optional[Decimal] = Field(default=None, ge=0)
    max_total: Optional[Decimal] = Field(default=None, ge=0)
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    limit: int = Field(default=50, ge=1, le=200)
    offset: int = Field(default=0, ge=0)


class OrderItemResponse(BaseModel):
    product_id: str
    product_name: str
    quantity: int
    price: Decimal
    total: Decimal

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: str
    customer_id: str
    customer_email: str
    customer_name: str
    items: List[OrderItemResponse]
    subtotal: Decimal
    shipping_cost: Decimal
    total: Decimal
    status: str
    payment_status: str
    shipping_address: Address
    billing_address: Address
    notes: Optional[str]
    idempotency_key: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OrderCreated(BaseModel):
    id: str
    message: str
    replayed: bool = False


class BulkStatusUpdate(BaseModel):
    ids: List[str] = Field(min_length=1, max_length=200)
    status: OrderStatus
    payment_status: Optional[PaymentStatus] = None


class BulkStatusResult(BaseModel):
    updated: List[str] = []
    not_found: List[str] = []
    rejected: List[str] = []


class BulkDelete(BaseModel):
    ids: List[str] = Field(min_length=1, max_length=200)


class BulkDeleteResult(BaseModel):
    deleted: List[str] = []
    not_found: List[str] = []
