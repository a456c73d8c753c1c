from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.security import Principal, require_admin

from .schemas import ProductCreate, ProductFilter, ProductResponse, ProductUpdate, StockUpdate
from .service import ProductService

# Browsing the catalog is public; every mutation needs the admin role
router = APIRouter(prefix="/products", tags=["Products"])


@router.get("", response_model=list[ProductResponse])
async def list_products(
    filters: Annotated[ProductFilter, Query()],
    db: AsyncSession = Depends(get_db)
):
    return await ProductService.list_products(db, filters)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: str, db: AsyncSession = Depends(get_db)):
    return await ProductService.get_product_by_id(db, product_id)


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    product: ProductCreate,
    _: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return await ProductService.create_product(db, product)


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: str,
    payload: ProductUpdate,
    _: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return await ProductService.update_product(db, product_id, payload)


@router.post("/{product_id}/restock", response_model=ProductResponse)
async def restock(
    product_id: str,
    payload: StockUpdate,
    _: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return await ProductService.restock(db, product_id, payload.quantity)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: str,
    _: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    await ProductService.delete_product(db, product_id)
