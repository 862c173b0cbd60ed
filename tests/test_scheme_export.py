"""Export row contract and workbook output."""

from __future__ import annotations

from datetime import date
from io import BytesIO

import pytest
from openpyxl import load_workbook

from schemehub.core.exceptions import NotFoundError, NotImplementedFeatureError, ValidationError
from schemehub.core.permissions import Principal
from schemehub.models import Distributor, Scheme
from schemehub.schemas.scheme import SchemeCreate
from schemehub.services.scheme_export_service import (
    EXPORT_COLUMNS,
    SchemeExportService,
    build_export_rows,
    check_export_format,
    rows_to_workbook,
)
from schemehub.services.scheme_service import SchemeService


LINES = [
    {"item_id": "P001", "item_name": "Product A", "style": "Standard", "configuration": "120",
     "discount_price": 5.5, "custom_fields": {}},
    {"item_id": "P002", "item_name": "Product B", "style": "Premium", "configuration": "180",
     "discount_price": 0, "custom_fields": {}},
]


def _scheme(distributor_type: str, distributors: list[str]) -> Scheme:
    return Scheme(
        scheme_code="SCH-20260401-1234",
        start_date=date(2026, 4, 1),
        end_date=date(2026, 4, 30),
        distributor_type=distributor_type,
        distributors=distributors,
        products=LINES,
    )


def test_individual_rows_use_customer_account():
    distributor = Distributor(customer_account="ABC001", organization_name="ABC Distributors")
    scheme = _scheme("individual", ["d-1", "missing"])

    rows = build_export_rows(scheme, {"d-1": distributor})

    assert len(rows) == 2
    first = rows[0]
    assert first["schemeCode"] == "SCH-20260401-1234"
    assert first["startingDate"] == "01-04-2026"
    assert first["endingDate"] == "30-04-2026"
    assert first["salesCode"] == "ABC001"
    assert first["salesDescription"] == "ABC Distributors"
    assert first["code"] == "P001"
    assert first["configId"] == "120"
    assert first["lineDiscount"] == 5.5
    assert first["taxChargeCode"] == "DIS_PRI_VL"
    assert first["company"] == "brly"
    assert (first["salesType"], first["type"]) == (0, 0)


def test_group_rows_use_group_code():
    rows = build_export_rows(_scheme("group", ["PREMIUM", "STANDARD"]), {})

    assert len(rows) == 4
    assert [r["salesCode"] for r in rows] == ["PREMIUM", "PREMIUM", "STANDARD", "STANDARD"]
    assert all(r["salesDescription"] == "" for r in rows)


def test_workbook_has_header_and_rows():
    rows = build_export_rows(_scheme("group", ["PREMIUM"]), {})
    workbook = load_workbook(BytesIO(rows_to_workbook(rows)))
    sheet = workbook.active

    assert sheet.title == "Scheme Data"
    assert [c.value for c in sheet[1]] == [header for header, _ in EXPORT_COLUMNS]
    assert sheet[1][0].font.bold
    assert sheet.max_row == 3
    assert sheet.cell(row=2, column=9).value == "Product A"


def test_export_format_checks():
    check_export_format("excel")
    with pytest.raises(NotImplementedFeatureError):
        check_export_format("pdf")
    with pytest.raises(ValidationError):
        check_export_format("csv")


async def test_export_by_date_selects_contained_schemes(db, creator):
    service = SchemeService(db)
    principal = Principal.from_user(creator)
    for code, start, end in [
        ("SCH-IN", "2026-04-05", "2026-04-20"),
        ("SCH-OVERLAP", "2026-03-20", "2026-04-10"),
    ]:
        await service.create(principal, SchemeCreate.model_validate({
            "schemeCode": code,
            "startDate": start,
            "endDate": end,
            "distributorType": "group",
            "distributors": ["PREMIUM"],
            "products": [{"itemCode": "P001"}],
        }))

    exporter = SchemeExportService(db)
    # create shifts dates by one day: SCH-IN covers 04-06..04-21
    schemes = await exporter.get_schemes_in_range("2026-04-01", "2026-04-30")
    assert [s.scheme_code for s in schemes] == ["SCH-IN"]

    content = await exporter.export_by_date("2026-04-01", "2026-04-30")
    sheet = load_workbook(BytesIO(content)).active
    assert sheet.title == "Schemes"
    assert sheet.max_row == 2

    with pytest.raises(NotFoundError):
        await exporter.export_by_date("2025-01-01", "2025-01-31")
    with pytest.raises(ValidationError):
        await exporter.export_by_date(None, "2026-04-30")
