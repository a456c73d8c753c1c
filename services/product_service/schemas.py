from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

ProductStatus = Literal["active", "inactive", "out_of_stock"]

SKU_PATTERN = r"^[A-Za-z0-9_-]+$"
MAX_PRICE = Decimal("9999.99")
MAX_STOCK = 99999
# Columns an update may change but never clear
REQUIRED_FIELDS = ("name", "description", "sku", "price", "category", "featured", "status")


class ProductCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    description: str = Field(default="", max_length=1000)
    sku: str = Field(min_length=3, max_length=50, pattern=SKU_PATTERN)
    price: Decimal = Field(ge=0, le=MAX_PRICE, decimal_places=2)
    stock: int = Field(ge=0, le=MAX_STOCK)
    category: str = Field(min_length=1, max_length=50)
    featured: bool = False
    status: ProductStatus = "active"
    image_url: Optional[str] = Field(default=None, max_length=500)
    alcohol_content: Optional[float] = Field(default=None, ge=0, le=100)
    bottle_size: Optional[float] = Field(default=None, ge=0.1, le=5)


class ProductUpdate(BaseModel):
    """Catalog edits. Stock is deliberately absent: it only moves through orders and restocks."""
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    sku: Optional[str] = Field(default=None, min_length=3, max_length=50, pattern=SKU_PATTERN)
    price: Optional[Decimal] = Field(default=None, ge=0, le=MAX_PRICE, decimal_places=2)
    category: Optional[str] = Field(default=None, min_length=1, max_length=50)
    featured: Optional[bool] = None
    status: Optional[ProductStatus] = None
    image_url: Optional[str] = Field(default=None, max_length=500)
    alcohol_content: Optional[float] = Field(default=None, ge=0, le=100)
    bottle_size: Optional[float] = Field(default=None, ge=0.1, le=5)

    @model_validator(mode="after")
    def reject_null_required_fields(self):
        cleared = sorted(f for f in REQUIRED_FIELDS if f in self.model_fields_set and getattr(self, f) is None)
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        return self


class StockUpdate(BaseModel):
    quantity: int = Field(ge=1, le=MAX_STOCK)


class ProductFilter(BaseModel):
    status: Optional[ProductStatus] = None
    category: Optional[str] = None
    featured: Optional[bool] = None
    in_stock: Optional[bool] = None
    search: Optional[str] = None
    min_price: Optional[Decimal] = Field(default=None, ge=0)
    max_price: Optional[Decimal] = Field(default=None, ge=0)
    limit: int = Field(default=50, ge=1, le=200)
    offset: int = Field(default=0, ge=0)


class ProductResponse(BaseModel):
    id: str
    name: str
    description: str
    sku: str
    price: Decimal
    stock: int
    status: str
    category: str
    featured: bool
    image_url: Optional[str]
    alcohol_content: Optional[float]
    bottle_size: Optional[float]
    version: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
