from decimal import Decimal

from fastapi import Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_db
from app.models.asset import Asset
from app.models.category import Category, Subcategory
from app.models.metal_rate import MetalRate
from app.models.product import Product
from app.services.pricing import MetalRateData
from app.services.row_validator import ResolvedRow
from app.services.taxonomy import CategoryRef, SubcategoryRef


def _decimal(value) -> Decimal | None:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class SqlCatalogStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_active_categories(self) -> list[CategoryRef]:
        result = await self.db.execute(
            select(Category).where(Category.is_active.is_(True)).order_by(Category.display_order, Category.name)
        )
        return [CategoryRef(id=str(c.id), name=c.name, slug=c.slug) for c in result.scalars().all()]

    async def list_subcategories(self) -> list[SubcategoryRef]:
        result = await self.db.execute(select(Subcategory).order_by(Subcategory.display_order, Subcategory.name))
        return [
            SubcategoryRef(id=str(s.id), name=s.name, slug=s.slug, category_id=str(s.category_id))
            for s in result.scalars().all()
        ]

    async def metal_rate_for(self, metal_type: str) -> MetalRateData | None:
        result = await self.db.execute(
            select(MetalRate).where(
                func.lower(MetalRate.metal_type) == metal_type.strip().lower(),
                MetalRate.is_active.is_(True),
            )
        )
        rate = result.scalar_one_or_none()
        if not rate:
            return None
        return MetalRateData(
            metal_type=rate.metal_type,
            rate_per_ten_grams=rate.rate_per_ten_grams,
            making_charge_per_gram=rate.making_charge_per_gram,
            gst_percentage=rate.gst_percentage,
        )

    async def insert_product(self, row: ResolvedRow, images: list[str]) -> str:
        # savepoint per row: a failed insert must not poison the rest of the batch
        async with self.db.begin_nested():
            product = Product(
                name=row.name,
                slug=row.slug,
                category_id=int(row.category_id),
                subcategory_id=int(row.subcategory_id),
                description=row.description,
                short_description=row.short_description,
                images=images,
                price=_decimal(row.price),
                compare_at_price=_decimal(row.compare_at_price),
                sku=row.sku,
                stock=row.stock,
                is_active=row.is_active,
                is_featured=row.is_featured,
                display_order=row.display_order,
                filter_values=row.filter_values,
                weight_in_grams=_decimal(row.weight_in_grams),
                metal_type=row.metal_type,
                use_dynamic_pricing=row.use_dynamic_pricing,
            )
            self.db.add(product)
            await self.db.flush()
        return str(product.id)


class SqlAssetLedger:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        url: str,
        key: str,
        mime_type: str,
        size: int,
        original_filename: str,
        ref_type: str | None = None,
        ref_id: str | None = None,
    ) -> str:
        async with self.db.begin_nested():
            asset = Asset(
                url=url,
                key=key,
                mime_type=mime_type,
                size=size,
                original_filename=original_filename,
                ref_type=ref_type,
                ref_id=int(ref_id) if ref_id is not None else None,
            )
            self.db.add(asset)
            await self.db.flush()
        return str(asset.id)


def get_catalog_store(db: AsyncSession = Depends(get_db)) -> SqlCatalogStore:
    return SqlCatalogStore(db)


def get_asset_ledger(db: AsyncSession = Depends(get_db)) -> SqlAssetLedger:
    return SqlAssetLedger(db)
