import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import run_transaction, utcnow
from shared.errors import AlreadyExists, NotFound

from .models import Product
from .repository import ProductRepository
from .schemas import ProductCreate, ProductFilter, ProductUpdate

logger = structlog.get_logger(__name__)


class ProductService:

    @staticmethod
    async def create_product(db: AsyncSession, data: ProductCreate) -> Product:
        if await ProductRepository.get_product_by_sku(db, data.sku):
            raise AlreadyExists(f"A product with SKU {data.sku} already exists")
        product = Product(**data.model_dump())
        if product.stock == 0 and product.status == "active":
            product.status = "out_of_stock"
        product = await ProductRepository.create_product(db, product)
        logger.info("product_created", product_id=product.id, sku=product.sku)
        return product

    @staticmethod
    async def list_products(db: AsyncSession, filters: ProductFilter):
        return await ProductRepository.list_products(db, filters)

    @staticmethod
    async def get_product_by_id(db: AsyncSession, product_id: str) -> Product:
        product = await ProductRepository.get_product_by_id(db, product_id)
        if not product:
            raise NotFound("product", product_id)
        return product

    @staticmethod
    async def update_product(db: AsyncSession, product_id: str, data: ProductUpdate) -> Product:
        changes = data.model_dump(exclude_unset=True)

        async def work(session: AsyncSession) -> Product:
            product = await ProductService.get_product_by_id(session, product_id)
            for field, value in changes.items():
                setattr(product, field, value)
            product.updated_at = utcnow()
            await session.flush()
            return product

        product = await run_transaction(db, work, operation="update_product")
        logger.info("product_updated", product_id=product_id, fields=sorted(changes))
        return product

    @staticmethod
    async def restock(db: AsyncSession, product_id: str, quantity: int) -> Product:
        async def work(session: AsyncSession) -> Product:
            product = await ProductService.get_product_by_id(session, product_id)
            product.adjust_stock(quantity)
            await session.flush()
            return product

        product = await run_transaction(db, work, operation="restock")
        logger.info("product_restocked", product_id=product_id, quantity=quantity, stock=product.stock)
        return product

    @staticmethod
    async def delete_product(db: AsyncSession, product_id: str) -> None:
        async def work(session: AsyncSession) -> None:
            product = await ProductService.get_product_by_id(session, product_id)
            await ProductRepository.delete_product(session, product)

        await run_transaction(db, work, operation="delete_product")
        logger.info("product_deleted", product_id=product_id)
