"""Master data reconciliation against a static external source."""

from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from schemehub.core.exceptions import ConflictError, ExternalSourceError, ValidationError
from schemehub.models import Distributor, Product
from schemehub.services.data_sync_service import (
    DataSyncService,
    MAX_ERROR_DETAILS,
    ProductReconciler,
    clean_int,
    clean_text,
    sync_supervisor,
)
from schemehub.services import external_source
from schemehub.services.external_source import (
    MSSQLSource,
    StaticSource,
    close_external_source,
    distributor_query,
    product_query,
)


async def _count(db, model) -> int:
    return (await db.execute(select(func.count(model.id)))).scalar()


def test_clean_text_trims_and_blanks_to_none():
    assert clean_text("  Brand X ") == "Brand X"
    assert clean_text("   ") is None
    assert clean_text(None) is None
    assert clean_text(12) == "12"


def test_clean_text_rejects_structured_values():
    with pytest.raises(ValidationError):
        clean_text({"name": "x"})


def test_clean_int_accepts_numeric_forms():
    assert clean_int(12) == 12
    assert clean_int(Decimal("6")) == 6
    assert clean_int(" 24 ") == 24
    assert clean_int("n/a") is None
    assert clean_int(None) is None


def test_product_normalize_maps_aliased_columns():
    record = ProductReconciler().normalize({
        "ITEMID": " P1 ", "Style": "S1", "Configuration": "C1", "ITEMNAME": "A ", "NOB": "12",
    })
    assert record["item_id"] == "P1"
    assert record["item_name"] == "A"
    assert record["nob"] == 12
    assert record["brand_name"] is None


def test_fixed_queries_use_configured_tables():
    assert "Ratan_Item" in product_query()
    assert "PRODUCTSTYLEID AS Style" in product_query()
    assert "Ratan_Customer" in distributor_query()
    assert "LINEDISCOUNTCODE AS CUSTOMERGROUPID" in distributor_query()


async def test_first_sync_creates_then_rerun_skips(db, source_factory):
    source = source_factory(products=[
        {"ITEMID": "P1", "Style": "S1", "Configuration": "C1", "ITEMNAME": "A"},
    ])
    service = DataSyncService(db, source)

    first = await service.sync_products()
    assert (first.total_fetched, first.created, first.updated, first.errors) == (1, 1, 0, 0)
    assert first.total_synced == 1

    second = await service.sync_products()
    assert (second.created, second.updated, second.skipped) == (0, 0, 1)
    assert await _count(db, Product) == 1


async def test_changed_field_is_updated(db, source_factory):
    db.add(Product(item_id="P1", style="S1", configuration="C1", item_name="A", brand_name="Old"))
    await db.commit()

    source = source_factory(products=[
        {"ITEMID": "P1", "Style": "S1", "Configuration": "C1", "ITEMNAME": "A", "BRANDNAME": " New "},
    ])
    result = await DataSyncService(db, source).sync_products()

    assert (result.created, result.updated, result.skipped) == (0, 1, 0)
    product = (await db.execute(select(Product))).scalar_one()
    assert product.brand_name == "New"


async def test_key_with_null_parts_matches_existing(db, source_factory):
    db.add(Product(item_id="P9", style=None, configuration=None, item_name="Loose"))
    await db.commit()

    source = source_factory(products=[{"ITEMID": "P9", "Style": "", "ITEMNAME": "Loose"}])
    result = await DataSyncService(db, source).sync_products()

    assert result.skipped == 1
    assert await _count(db, Product) == 1


async def test_empty_item_id_is_excluded_from_counters(db, source_factory):
    source = source_factory(products=[
        {"ITEMID": "  ", "ITEMNAME": "No key"},
        {"ITEMID": "P2", "ITEMNAME": "B"},
    ])
    result = await DataSyncService(db, source).sync_products()

    assert result.total_fetched == 2
    assert result.total_synced == 1
    assert (result.created, result.updated, result.skipped, result.errors) == (1, 0, 0, 0)


async def test_bad_record_does_not_abort_run(db, source_factory):
    source = source_factory(products=[
        {"ITEMID": "P1", "ITEMNAME": "A"},
        {"ITEMID": "P2", "ITEMNAME": {"unexpected": "object"}},
        {"ITEMID": "P3", "ITEMNAME": "C"},
    ])
    result = await DataSyncService(db, source, batch_size=2).sync_products()

    assert result.created == 2
    assert result.errors == 1
    assert len(result.error_details) == 1
    assert result.finished_at is not None
    assert await _count(db, Product) == 2


class FailingAfterWriteReconciler(ProductReconciler):
    """Raises for P2 after its write has been flushed."""

    async def apply(self, db, record):
        outcome = await super().apply(db, record)
        if record["item_id"] == "P2":
            raise RuntimeError("write rejected")
        return outcome


async def test_failed_write_rolls_back_to_savepoint(db, source_factory):
    db.add(Product(item_id="P2", item_name="Old name"))
    await db.commit()
    source = source_factory(products=[
        {"ITEMID": "P1", "ITEMNAME": "A"},
        {"ITEMID": "P2", "ITEMNAME": "New name"},
        {"ITEMID": "P3", "ITEMNAME": "C"},
    ])

    result = await DataSyncService(db, source, batch_size=2).run(FailingAfterWriteReconciler())

    assert (result.created, result.updated, result.errors) == (2, 0, 1)
    db.expire_all()
    rows = (await db.execute(select(Product.item_id, Product.item_name).order_by(Product.item_id))).all()
    assert [tuple(row) for row in rows] == [("P1", "A"), ("P2", "Old name"), ("P3", "C")]


async def test_error_details_are_capped(db, source_factory):
    rows = [{"ITEMID": f"P{i}", "ITEMNAME": ["bad"]} for i in range(MAX_ERROR_DETAILS + 5)]
    result = await DataSyncService(db, source_factory(products=rows)).sync_products()

    assert result.errors == MAX_ERROR_DETAILS + 5
    assert len(result.error_details) == MAX_ERROR_DETAILS


async def test_distributor_sync_reports_same_contract(db, source_factory):
    db.add(Distributor(customer_account="ABC001", organization_name="ABC Distributors",
                       address_city="Pune", sm_code="WEST-01", customer_group_id="PREMIUM"))
    await db.commit()

    result = await DataSyncService(db, source_factory()).sync_distributors()

    assert result.entity == "distributors"
    assert (result.total_fetched, result.created, result.updated, result.skipped) == (2, 1, 1, 0)
    city = (await db.execute(
        select(Distributor.address_city).where(Distributor.customer_account == "ABC001")
    )).scalar_one()
    assert city == "Mumbai"


async def test_sync_all_runs_products_then_distributors(db, static_source):
    results = await DataSyncService(db, static_source).sync_all()

    assert [r.entity for r in results] == ["products", "distributors"]
    assert "Ratan_Item" in static_source.queries[0]
    assert "Ratan_Customer" in static_source.queries[1]


async def test_unreachable_source_aborts_run(db):
    with pytest.raises(ExternalSourceError):
        await DataSyncService(db, StaticSource({})).sync_products()
    assert await _count(db, Product) == 0


async def test_supervisor_records_last_results(db, static_source):
    results = await sync_supervisor.run("products", db, static_source)

    assert [r.entity for r in results] == ["products"]
    assert sync_supervisor.last_run_at is not None
    assert sync_supervisor.last_results["products"].created == 2
    assert not sync_supervisor.running


async def test_supervisor_refuses_overlapping_run(db, static_source):
    async with sync_supervisor._lock:  # noqa: SLF001
        assert sync_supervisor.running
        with pytest.raises(ConflictError):
            await sync_supervisor.run("all", db, static_source)
    assert static_source.queries == []


async def test_supervisor_rejects_unknown_target(db, static_source):
    with pytest.raises(ValidationError):
        await sync_supervisor.run("customers", db, static_source)


async def test_close_external_source_disposes_engine(monkeypatch):
    disposed = []

    class FakeEngine:
        async def dispose(self):
            disposed.append(True)

    source = MSSQLSource(url="mssql+aioodbc://user:pw@server/db")
    source._engine = FakeEngine()  # noqa: SLF001
    monkeypatch.setattr(external_source, "_default_source", source)

    await close_external_source()

    assert disposed == [True]
    assert external_source._default_source is None  # noqa: SLF001
