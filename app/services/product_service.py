from typing import Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.models.product import Product
from app.schemas.product import ProductCreate


class ProductService:
    """Service for the product master used by receiving and putaway."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_product_by_sku(self, sku: str) -> Optional[Product]:
        """Get product by SKU."""
        stmt = select(Product).where(Product.sku == sku)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def resolve_scanned_code(self, code: str) -> Product:
        """
        Resolve a scanned barcode to a product.

        The code may be the SKU itself or the EAN/UPC printed on the unit;
        an exact SKU match wins.
        """
        code = code.strip()
        stmt = select(Product).where(
            or_(Product.sku == code, Product.ean_upc == code)
        )
        result = await self.db.execute(stmt)
        products = list(result.scalars().all())
        if not products:
            raise NotFoundError(f"Product not found for code {code}", {"code": code})

        for product in products:
            if product.sku == code:
                return product
        return products[0]

    async def create_product(self, data: ProductCreate) -> Product:
        """Create a new product."""
        existing = await self.get_product_by_sku(data.sku)
        if existing:
            raise ValueError(f"Product with SKU {data.sku} already exists")

        if data.ean_upc:
            stmt = select(Product).where(Product.ean_upc == data.ean_upc)
            if (await self.db.execute(stmt)).scalar_one_or_none():
                raise ValueError(f"Product with EAN/UPC {data.ean_upc} already exists")

        product = Product(**data.model_dump())
        self.db.add(product)
        await self.db.commit()
        await self.db.refresh(product)
        return product
