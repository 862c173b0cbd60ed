"""
Scheme export.

Flattens schemes into the price-discount import sheet of the ERP: one row
per (distributor x product line), fixed columns in a fixed order.
"""
from datetime import date
from io import BytesIO
from typing import Any, Dict, List

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schemehub.config import settings
from schemehub.core.exceptions import NotFoundError, ValidationError, NotImplementedFeatureError
from schemehub.models.distributor import Distributor
from schemehub.models.scheme import Scheme
from schemehub.services.scheme_service import SchemeService, parse_calendar_date


XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
EXPORT_FORMATS = ("excel", "pdf")

# (header, column width)
EXPORT_COLUMNS = [
    ("schemeCode", 15),
    ("startingDate", 15),
    ("endingDate", 15),
    ("salesType", 10),
    ("salesCode", 15),
    ("salesDescription", 20),
    ("type", 10),
    ("code", 15),
    ("itemName", 30),
    ("itemCombinationGroup", 20),
    ("configId", 15),
    ("size", 10),
    ("color", 10),
    ("style", 10),
    ("taxChargeCode", 15),
    ("minimumQuantity", 15),
    ("lineDiscount", 15),
    ("company", 15),
]


def format_export_date(value: date) -> str:
    return value.strftime("%d-%m-%Y")


def build_export_rows(scheme: Scheme, distributor_map: Dict[str, Distributor]) -> List[Dict[str, Any]]:
    """
    Rows for one scheme.

    Individual schemes emit one block per resolvable distributor (sales code
    is the customer account); group schemes emit one block per group code.
    """
    targets = []
    if scheme.is_individual:
        for value in scheme.distributors or []:
            distributor = distributor_map.get(str(value))
            if distributor is not None:
                targets.append((distributor.customer_account, distributor.organization_name or ""))
    else:
        targets = [(str(code), "") for code in scheme.distributors or []]

    rows = []
    for sales_code, sales_description in targets:
        for line in scheme.products or []:
            rows.append({
                "schemeCode": scheme.scheme_code,
                "startingDate": format_export_date(scheme.start_date),
                "endingDate": format_export_date(scheme.end_date),
                "salesType": 0,
                "salesCode": sales_code,
                "salesDescription": sales_description,
                "type": 0,
                "code": line.get("item_id"),
                "itemName": line.get("item_name"),
                "itemCombinationGroup": "",
                "configId": line.get("configuration"),
                "size": "",
                "color": "",
                "style": line.get("style"),
                "taxChargeCode": settings.EXPORT_TAX_CHARGE_CODE,
                "minimumQuantity": "",
                "lineDiscount": line.get("discount_price") or 0,
                "company": settings.EXPORT_COMPANY_CODE,
            })
    return rows


def rows_to_workbook(rows: List[Dict[str, Any]], sheet_title: str = "Scheme Data") -> bytes:
    """Write rows to an .xlsx workbook with a bold header row."""
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_title

    sheet.append([header for header, _ in EXPORT_COLUMNS])
    for cell in sheet[1]:
        cell.font = Font(bold=True)
    for index, (_, width) in enumerate(EXPORT_COLUMNS, start=1):
        sheet.column_dimensions[get_column_letter(index)].width = width

    for row in rows:
        sheet.append([row.get(header) for header, _ in EXPORT_COLUMNS])

    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def check_export_format(export_format: str) -> None:
    """
    Raises:
        ValidationError: unknown format
        NotImplementedFeatureError: pdf
    """
    if export_format not in EXPORT_FORMATS:
        raise ValidationError("Invalid export format")
    if export_format == "pdf":
        raise NotImplementedFeatureError("PDF export not yet implemented")


class SchemeExportService:
    """Builds export workbooks for one scheme or a date range."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.schemes = SchemeService(db)

    async def export_scheme(self, scheme_code: str, export_format: str = "excel") -> bytes:
        check_export_format(export_format)
        scheme = await self.schemes.get_by_code(scheme_code)
        distributor_map = await self.schemes.resolve_distributors([scheme])
        return rows_to_workbook(build_export_rows(scheme, distributor_map))

    async def get_schemes_in_range(self, start: Any, end: Any) -> List[Scheme]:
        """Schemes whose whole validity lies within [start, end]."""
        if not start or not end:
            raise ValidationError("Please provide start and end date")
        start_date = parse_calendar_date(start, "startDate")
        end_date = parse_calendar_date(end, "endDate")

        result = await self.db.execute(
            select(Scheme)
            .where(Scheme.start_date >= start_date, Scheme.end_date <= end_date)
            .order_by(Scheme.start_date, Scheme.scheme_code)
        )
        return list(result.scalars().all())

    async def export_by_date(self, start: Any, end: Any, export_format: str = "excel") -> bytes:
        """
        Raises:
            ValidationError: missing dates or bad format
            NotImplementedFeatureError: pdf
            NotFoundError: no scheme lies within the range
        """
        check_export_format(export_format)
        schemes = await self.get_schemes_in_range(start, end)
        if not schemes:
            raise NotFoundError("No schemes found for the given date range")

        distributor_map = await self.schemes.resolve_distributors(schemes)
        rows: List[Dict[str, Any]] = []
        for scheme in schemes:
            rows.extend(build_export_rows(scheme, distributor_map))
        return rows_to_workbook(rows, sheet_title="Schemes")
