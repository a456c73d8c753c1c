from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator


class Address(BaseModel):
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    postal_code: str = Field(min_length=5)
    country: str = Field(min_length=1)


class CustomerCreate(BaseModel):
    email: EmailStr
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    phone: Optional[str] = Field(default=None, max_length=20)
    default_address: Optional[Address] = None
    notes: Optional[str] = None


class CustomerUpdate(BaseModel):
    """Contact details only; the ledger fields belong to the order processor."""
    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    phone: Optional[str] = Field(default=None, max_length=20)
    default_address: Optional[Address] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def reject_null_identity(self):
        cleared = sorted(
            f for f in ("email", "first_name", "last_name")
            if f in self.model_fields_set and getattr(self, f) is None
        )
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        return self


class CustomerFilter(BaseModel):
    search: Optional[str] = None
    has_orders: Optional[bool] = None
    min_spent: Optional[Decimal] = Field(default=None, ge=0)
    max_spent: Optional[Decimal] = Field(default=None, ge=0)
    registered_from: Optional[datetime] = None
    registered_to: Optional[datetime] = None
    limit: int = Field(default=50, ge=1, le=200)
    offset: int = Field(default=0, ge=0)


class CustomerResponse(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    phone: Optional[str]
    default_address: Optional[Address]
    notes: Optional[str]
    order_ids: List[str]
    order_count: int
    total_spent: Decimal
    segment: str
    last_order_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
