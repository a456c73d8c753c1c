from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Product
from .schemas import ProductFilter


class ProductRepository:

    @staticmethod
    async def create_product(db: AsyncSession, product: Product):
        db.add(product)
        await db.commit()
        await db.refresh(product)
        return product

    @staticmethod
    async def list_products(db: AsyncSession, filters: ProductFilter):
        stmt = select(Product)

        if filters.status:
            stmt = stmt.where(Product.status == filters.status)
        if filters.category:
            stmt = stmt.where(Product.category == filters.category)
        if filters.featured is not None:
            stmt = stmt.where(Product.featured == filters.featured)
        if filters.in_stock is True:
            stmt = stmt.where(Product.stock > 0)
        elif filters.in_stock is False:
            stmt = stmt.where(Product.stock == 0)
        if filters.min_price is not None:
            stmt = stmt.where(Product.price >= filters.min_price)
        if filters.max_price is not None:
            stmt = stmt.where(Product.price <= filters.max_price)
        if filters.search:
            term = f"%{filters.search}%"
            stmt = stmt.where(or_(
                Product.name.ilike(term),
                Product.description.ilike(term),
                Product.sku.ilike(term),
            ))

        stmt = stmt.order_by(Product.created_at.desc()).limit(filters.limit).offset(filters.offset)
        result = await db.execute(stmt)
        return result.scalars().all()

    @staticmethod
    async def get_product_by_id(db: AsyncSession, product_id: str) -> Optional[Product]:
        result = await db.execute(select(Product).where(Product.id == product_id))
        return result.scalars().first()

    @staticmethod
    async def get_product_by_sku(db: AsyncSession, sku: str) -> Optional[Product]:
        result = await db.execute(select(Product).where(Product.sku == sku))
        return result.scalars().first()

    @staticmethod
    async def delete_product(db: AsyncSession, product: Product):
        await db.delete(product)
        await db.flush()
