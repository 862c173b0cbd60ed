"""Product and distributor master data services."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from schemehub.core.exceptions import ConflictError, NotFoundError, ValidationError
from schemehub.models import Distributor, Product
from schemehub.schemas.base import BulkResponse
from schemehub.schemas.distributor import DistributorCreate, DistributorUpdate
from schemehub.schemas.product import ProductBulkUpdateItem, ProductCreate, ProductUpdate
from schemehub.services.distributor_service import DistributorService
from schemehub.services.product_service import ProductService


async def _products(db, count: int) -> list[Product]:
    products = [
        Product(item_id=f"P{i}", item_name=f"Product {i}", brand_name="Brand X" if i % 2 else "Brand Y",
                pack_type="Box", nob=6 * (i + 1))
        for i in range(count)
    ]
    db.add_all(products)
    await db.commit()
    return products


async def test_crud_round_trip(db):
    service = ProductService(db)
    product = await service.create_product(ProductCreate(item_id="P1", item_name="A", nob=6))

    updated = await service.update_product(str(product.id), ProductUpdate(brand_name="Brand Z"))
    assert updated.brand_name == "Brand Z"
    assert updated.item_name == "A"

    await service.delete_product(product.id)
    with pytest.raises(NotFoundError):
        await service.get_product_by_id(product.id)


async def test_get_product_with_malformed_id(db):
    with pytest.raises(ValidationError):
        await ProductService(db).get_product_by_id("not-a-uuid")


async def test_list_filters_and_sorts(db):
    await _products(db, 4)
    service = ProductService(db)

    products = await service.get_products([("brand_name", "Brand X")], sort="-nob")
    assert [p.item_id for p in products] == ["P3", "P1"]

    products = await service.get_products([("nob[lt]", "13")])
    assert {p.item_id for p in products} == {"P0", "P1"}

    products = await service.get_products([("item_name[contains]", "duct 2")])
    assert [p.item_id for p in products] == ["P2"]


async def test_stats_group_by_brand_and_pack(db):
    await _products(db, 4)
    stats = await ProductService(db).get_stats()

    by_brand = {s.brand_name: s for s in stats.brand_stats}
    assert by_brand["Brand X"].count == 2
    assert by_brand["Brand X"].avg_nob == pytest.approx(18.0)
    assert stats.pack_type_stats[0].pack_type == "Box"
    assert stats.pack_type_stats[0].count == 4


async def test_bulk_import_rejects_empty(db):
    with pytest.raises(ValidationError):
        await ProductService(db).bulk_import([])


async def test_bulk_update_isolates_failures(db):
    products = await _products(db, 2)
    results = await ProductService(db).bulk_update([
        ProductBulkUpdateItem(id=str(products[0].id), item_name="Renamed"),
        ProductBulkUpdateItem(id=str(uuid.uuid4()), item_name="Ghost"),
    ])

    response = BulkResponse.from_results(results)
    assert response.status_code == 207
    assert results[0].success and results[0].data["item_name"] == "Renamed"
    assert not results[1].success and results[1].error == "Product not found"


async def test_bulk_delete_with_one_invalid_id(db):
    products = await _products(db, 3)
    ids = [str(products[0].id), "not-a-uuid", str(products[2].id)]

    results = await ProductService(db).bulk_delete(ids)
    response = BulkResponse.from_results(results)

    assert response.success is False
    assert len(response.results) == 3
    assert [r.success for r in results] == [True, False, True]
    assert response.status_code == 207
    assert (await db.execute(select(func.count(Product.id)))).scalar() == 1


async def test_bulk_delete_all_invalid_is_400(db):
    results = await ProductService(db).bulk_delete([str(uuid.uuid4())])
    assert BulkResponse.from_results(results).status_code == 400


async def test_duplicates_keep_most_recent(db):
    now = datetime.now(timezone.utc)
    older = Product(item_id="P1", style="S", configuration="C", item_name="old", updated_at=now - timedelta(days=2))
    newer = Product(item_id="P1", style="S", configuration="C", item_name="new", updated_at=now)
    single = Product(item_id="P2", style="S", configuration="C", item_name="only")
    db.add_all([older, newer, single])
    await db.commit()

    service = ProductService(db)
    groups = await service.find_duplicates()
    assert len(groups) == 1
    assert groups[0].count == 2
    assert groups[0].ids[0] == newer.id

    assert await service.cleanup_duplicates() == (1, 1)
    names = (await db.execute(select(Product.item_name).order_by(Product.item_id))).scalars().all()
    assert names == ["new", "only"]


async def test_distributor_duplicate_account_conflicts(db, distributors):
    service = DistributorService(db)
    with pytest.raises(ConflictError):
        await service.create_distributor(DistributorCreate(customer_account=" ABC001 "))

    with pytest.raises(ConflictError):
        await service.update_distributor(distributors[1].id, DistributorUpdate(customer_account="ABC001"))


async def test_distributor_list_and_groups(db, distributors):
    db.add(Distributor(customer_account="NOG003"))
    await db.commit()
    service = DistributorService(db)

    listed = await service.get_distributors([("address_city", "Delhi")])
    assert [d.customer_account for d in listed] == ["XYZ002"]
    assert await service.get_customer_groups() == ["PREMIUM", "STANDARD"]


async def test_distributor_bulk_delete(db, distributors):
    results = await DistributorService(db).bulk_delete([str(distributors[0].id), str(uuid.uuid4())])
    assert [r.success for r in results] == [True, False]
    assert (await db.execute(select(func.count(Distributor.id)))).scalar() == 1


async def test_contains_filter_matches_wildcards_literally(db):
    db.add_all([
        Product(item_id="W1", item_name="50% off"),
        Product(item_id="W2", item_name="5000 off"),
        Product(item_id="W3", item_name="A_B pack"),
        Product(item_id="W4", item_name="AXB pack"),
    ])
    await db.commit()
    service = ProductService(db)

    products = await service.get_products([("item_name[contains]", "0%")])
    assert [p.item_id for p in products] == ["W1"]

    products = await service.get_products([("item_name[contains]", "a_b")])
    assert [p.item_id for p in products] == ["W3"]


async def test_bulk_update_validates_each_raw_item(db):
    products = await _products(db, 2)
    results = await ProductService(db).bulk_update([
        {"id": str(products[0].id), "nob": -1},
        {"id": str(products[1].id), "brand_name": "Brand Z"},
        "not-an-object",
    ])

    assert [r.success for r in results] == [False, True, False]
    assert results[0].id == str(products[0].id)
    assert results[0].error.startswith("nob:")
    assert results[2].id is None
    await db.refresh(products[0])
    assert products[0].nob == 6
