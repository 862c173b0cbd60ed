import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select, func, delete
from sqlalchemy.ext.asyncio import AsyncSession

from schemehub.core.exceptions import NotFoundError, ValidationError, format_validation_errors
from schemehub.core.filters import FilterField, FilterSet
from schemehub.models.product import Product
from schemehub.schemas.base import BulkItemResult
from schemehub.schemas.product import (
    ProductCreate, ProductUpdate, ProductBulkUpdateItem, ProductResponse,
    BrandStat, PackTypeStat, ProductStats, DuplicateGroup,
)


logger = logging.getLogger(__name__)

PRODUCT_FILTERS = FilterSet(
    fields={
        "item_id": FilterField.string(Product.item_id),
        "item_name": FilterField.string(Product.item_name),
        "brand_name": FilterField.string(Product.brand_name),
        "flavour_type": FilterField.string(Product.flavour_type),
        "pack_type_group_name": FilterField.string(Product.pack_type_group_name),
        "style": FilterField.string(Product.style),
        "pack_type": FilterField.string(Product.pack_type),
        "configuration": FilterField.string(Product.configuration),
        "nob": FilterField.integer(Product.nob),
    },
    sortable={
        "item_id": Product.item_id,
        "item_name": Product.item_name,
        "brand_name": Product.brand_name,
        "pack_type": Product.pack_type,
        "nob": Product.nob,
        "created_at": Product.created_at,
        "updated_at": Product.updated_at,
    },
)


def _parse_id(value: Any) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ValidationError(f"Invalid product id '{value}'")


class ProductService:
    """Service for the product master."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_products(
        self,
        params: Iterable[Tuple[str, str]] = (),
        sort: Optional[str] = None,
    ) -> List[Product]:
        """All products matching the allow-listed filters (no pagination)."""
        stmt = select(Product)
        clauses = PRODUCT_FILTERS.build(params)
        if clauses:
            stmt = stmt.where(*clauses)
        stmt = stmt.order_by(*PRODUCT_FILTERS.order_by(sort, "item_name"), Product.id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_product_by_id(self, product_id: Any) -> Product:
        result = await self.db.execute(select(Product).where(Product.id == _parse_id(product_id)))
        product = result.scalar_one_or_none()
        if not product:
            raise NotFoundError("Product not found")
        return product

    async def create_product(self, data: ProductCreate) -> Product:
        product = Product(**data.model_dump())
        self.db.add(product)
        await self.db.commit()
        await self.db.refresh(product)
        return product

    async def update_product(self, product_id: Any, data: ProductUpdate) -> Product:
        product = await self.get_product_by_id(product_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(product, key, value)
        await self.db.commit()
        await self.db.refresh(product)
        return product

    async def delete_product(self, product_id: Any) -> None:
        product = await self.get_product_by_id(product_id)
        await self.db.delete(product)
        await self.db.commit()

    async def get_stats(self) -> ProductStats:
        """Product counts per brand (with average NOB) and per pack type."""
        brand_rows = await self.db.execute(
            select(
                Product.brand_name,
                func.count(Product.id).label("count"),
                func.avg(Product.nob).label("avg_nob"),
            )
            .group_by(Product.brand_name)
            .order_by(func.count(Product.id).desc(), Product.brand_name)
        )
        pack_rows = await self.db.execute(
            select(Product.pack_type, func.count(Product.id).label("count"))
            .group_by(Product.pack_type)
            .order_by(func.count(Product.id).desc(), Product.pack_type)
        )
        return ProductStats(
            brand_stats=[
                BrandStat(
                    brand_name=row.brand_name,
                    count=row.count,
                    avg_nob=float(row.avg_nob) if row.avg_nob is not None else None,
                )
                for row in brand_rows
            ],
            pack_type_stats=[
                PackTypeStat(pack_type=row.pack_type, count=row.count)
                for row in pack_rows
            ],
        )

    async def bulk_import(self, items: List[ProductCreate]) -> List[Product]:
        """Insert all products in one transaction; nothing is inserted on failure."""
        if not items:
            raise ValidationError("Request body must be a non-empty array of products")
        products = [Product(**item.model_dump()) for item in items]
        self.db.add_all(products)
        await self.db.commit()
        logger.info(f"Imported {len(products)} products")
        return products

    async def bulk_update(self, items: List[Any]) -> List[BulkItemResult]:
        """
        Apply each update independently and report per-item outcomes.

        Items arrive unvalidated so that one malformed entry fails alone.
        """
        results: List[BulkItemResult] = []
        for raw in items:
            raw_id = raw.get("id") if isinstance(raw, dict) else getattr(raw, "id", None)
            item_id = None if raw_id is None else str(raw_id)
            try:
                item = ProductBulkUpdateItem.model_validate(raw)
            except PydanticValidationError as e:
                results.append(BulkItemResult(id=item_id, success=False, error=format_validation_errors(e.errors())))
                continue
            try:
                async with self.db.begin_nested():
                    product = await self.get_product_by_id(item.id)
                    for key, value in item.model_dump(exclude_unset=True, exclude={"id"}).items():
                        setattr(product, key, value)
                    await self.db.flush()
                await self.db.refresh(product)
                results.append(BulkItemResult(
                    id=item.id,
                    success=True,
                    data=ProductResponse.model_validate(product).model_dump(mode="json"),
                ))
            except (NotFoundError, ValidationError) as e:
                results.append(BulkItemResult(id=item.id, success=False, error=e.message))
        await self.db.commit()
        return results

    async def bulk_delete(self, ids: List[Any]) -> List[BulkItemResult]:
        """Delete each id independently and report per-item outcomes."""
        results: List[BulkItemResult] = []
        for raw_id in ids:
            try:
                product = await self.get_product_by_id(raw_id)
                await self.db.delete(product)
                await self.db.flush()
                results.append(BulkItemResult(id=str(raw_id), success=True))
            except (NotFoundError, ValidationError) as e:
                results.append(BulkItemResult(id=str(raw_id), success=False, error=e.message))
        await self.db.commit()
        logger.info(f"Bulk delete: {sum(r.success for r in results)}/{len(results)} products removed")
        return results

    async def find_duplicates(self) -> List[DuplicateGroup]:
        """Groups of products sharing one (item_id, style, configuration) key."""
        result = await self.db.execute(
            select(Product).order_by(
                Product.item_id, Product.style, Product.configuration, Product.updated_at.desc()
            )
        )
        groups: Dict[tuple, List[Product]] = {}
        for product in result.scalars().all():
            groups.setdefault(product.natural_key, []).append(product)

        return [
            DuplicateGroup(
                item_id=key[0],
                style=key[1],
                configuration=key[2],
                count=len(products),
                ids=[p.id for p in products],
            )
            for key, products in groups.items()
            if len(products) > 1
        ]

    async def cleanup_duplicates(self) -> Tuple[int, int]:
        """
        Keep the most recently updated product of each duplicate group.

        Returns:
            (number of groups, number of rows removed)
        """
        groups = await self.find_duplicates()
        remove_ids = [product_id for group in groups for product_id in group.ids[1:]]
        if remove_ids:
            await self.db.execute(delete(Product).where(Product.id.in_(remove_ids)))
        await self.db.commit()
        logger.info(f"Duplicate cleanup: {len(remove_ids)} rows removed across {len(groups)} groups")
        return len(groups), len(remove_ids)
