"""
Master Data Sync Service.

One-way reconciliation of products and distributors from the external
system of record into the primary store.

Per run:
1. Fetch every row with one fixed query over one scoped connection
2. Normalize each row (trimmed strings, NOB as int or None)
3. Look the record up by its natural key and decide create / update / skip
4. Apply each decision inside its own savepoint so one bad record
   never aborts the rest; commit after every chunk of SYNC_BATCH_SIZE

Both entity types report the same ReconciliationResult.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schemehub.config import settings
from schemehub.core.exceptions import ConflictError, ValidationError
from schemehub.models.distributor import Distributor
from schemehub.models.product import Product
from schemehub.services.external_source import (
    ExternalSource, get_external_source, product_query, distributor_query,
)


logger = logging.getLogger(__name__)

MAX_ERROR_DETAILS = 50

CREATED = "created"
UPDATED = "updated"
SKIPPED = "skipped"


@dataclass
class ReconciliationResult:
    """Outcome of one reconciliation run for one entity type."""
    entity: str
    total_fetched: int = 0
    total_synced: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    error_details: List[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    def record(self, outcome: str) -> None:
        setattr(self, outcome, getattr(self, outcome) + 1)
        self.total_synced += 1

    def record_error(self, key: Any, error: Exception) -> None:
        self.errors += 1
        if len(self.error_details) < MAX_ERROR_DETAILS:
            self.error_details.append(f"{key}: {error}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def clean_text(value: Any) -> Optional[str]:
    """Trimmed string, or None for null/blank values."""
    if value is None:
        return None
    if isinstance(value, (dict, list, tuple, set, bytes)):
        raise ValidationError(f"Unsupported value {value!r}")
    text = str(value).strip()
    return text or None


def clean_int(value: Any) -> Optional[int]:
    """Whole number from an int, Decimal or numeric string; None otherwise."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError):
        return None


class Reconciler(ABC):
    """Diff/apply rules for one master-data entity."""

    entity: str
    model: Any
    compare_fields: Tuple[str, ...] = ()

    @abstractmethod
    def query(self) -> str:
        pass

    @abstractmethod
    def normalize(self, row: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        """Map a source row onto model fields; None when the natural key is empty."""
        pass

    @abstractmethod
    def key_of(self, record: Mapping[str, Any]) -> Tuple:
        pass

    @abstractmethod
    async def find_existing(self, db: AsyncSession, record: Mapping[str, Any]):
        pass

    async def apply(self, db: AsyncSession, record: Dict[str, Any]) -> str:
        """Create, update or skip one normalized record."""
        existing = await self.find_existing(db, record)
        if existing is None:
            db.add(self.model(**record))
            await db.flush()
            return CREATED

        changed = [name for name in self.compare_fields if getattr(existing, name) != record.get(name)]
        if not changed:
            return SKIPPED

        for name in changed:
            setattr(existing, name, record.get(name))
        await db.flush()
        return UPDATED


class ProductReconciler(Reconciler):
    """Products keyed on (ITEMID, Style, Configuration)."""

    entity = "products"
    model = Product
    compare_fields = (
        "item_name",
        "brand_name",
        "pack_type_group_name",
        "pack_type",
        "nob",
        "flavour_type",
    )

    def query(self) -> str:
        return product_query()

    def normalize(self, row: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        item_id = clean_text(row.get("ITEMID"))
        if item_id is None:
            return None
        return {
            "item_id": item_id,
            "style": clean_text(row.get("Style", row.get("PRODUCTSTYLEID"))),
            "configuration": clean_text(row.get("Configuration", row.get("PRODUCTCONFIGURATIONID"))),
            "item_name": clean_text(row.get("ITEMNAME")),
            "brand_name": clean_text(row.get("BRANDNAME")),
            "pack_type_group_name": clean_text(row.get("PACKTYPEGROUPNAME")),
            "pack_type": clean_text(row.get("PACKTYPE")),
            "nob": clean_int(row.get("NOB")),
            "flavour_type": clean_text(row.get("FLAVOURTYPE", row.get("PRODUCTSEGMENTNAME"))),
        }

    def key_of(self, record: Mapping[str, Any]) -> Tuple:
        return (record.get("item_id"), record.get("style"), record.get("configuration"))

    async def find_existing(self, db: AsyncSession, record: Mapping[str, Any]) -> Optional[Product]:
        clauses = []
        for column, value in zip(
            (Product.item_id, Product.style, Product.configuration), self.key_of(record)
        ):
            clauses.append(column.is_(None) if value is None else column == value)

        # Duplicates may exist until cleaned up; refresh the newest one
        result = await db.execute(
            select(Product).where(*clauses).order_by(Product.updated_at.desc()).limit(1)
        )
        return result.scalars().first()


class DistributorReconciler(Reconciler):
    """Distributors keyed on CUSTOMERACCOUNT alone."""

    entity = "distributors"
    model = Distributor
    compare_fields = (
        "sm_code",
        "organization_name",
        "address_city",
        "customer_group_id",
    )

    def query(self) -> str:
        return distributor_query()

    def normalize(self, row: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        customer_account = clean_text(row.get("CUSTOMERACCOUNT"))
        if customer_account is None:
            return None
        return {
            "customer_account": customer_account,
            "sm_code": clean_text(row.get("SMCODE", row.get("SALESHIERARCHYCODE"))),
            "organization_name": clean_text(row.get("ORGANIZATIONNAME")),
            "address_city": clean_text(row.get("ADDRESSCITY")),
            "customer_group_id": clean_text(row.get("CUSTOMERGROUPID", row.get("LINEDISCOUNTCODE"))),
        }

    def key_of(self, record: Mapping[str, Any]) -> Tuple:
        return (record.get("customer_account"),)

    async def find_existing(self, db: AsyncSession, record: Mapping[str, Any]) -> Optional[Distributor]:
        result = await db.execute(
            select(Distributor).where(Distributor.customer_account == record["customer_account"])
        )
        return result.scalar_one_or_none()


class DataSyncService:
    """Runs reconciliations against one database session."""

    def __init__(
        self,
        db: AsyncSession,
        source: Optional[ExternalSource] = None,
        batch_size: Optional[int] = None,
    ):
        self.db = db
        self.source = source or get_external_source()
        self.batch_size = batch_size or settings.SYNC_BATCH_SIZE

    async def _fetch(self, reconciler: Reconciler) -> List[Dict[str, Any]]:
        async with self.source.connect() as conn:
            return await self.source.execute_query(conn, reconciler.query())

    async def _sync_row(
        self,
        reconciler: Reconciler,
        row: Mapping[str, Any],
        position: int,
        result: ReconciliationResult,
    ) -> None:
        key: Any = f"row {position}"
        try:
            record = reconciler.normalize(row)
            if record is None:
                logger.warning(f"[{reconciler.entity}] Skipping row {position}: natural key is empty")
                return
            key = reconciler.key_of(record)
            async with self.db.begin_nested():
                outcome = await reconciler.apply(self.db, record)
        except Exception as e:
            logger.error(f"[{reconciler.entity}] Failed to sync {key}: {e}")
            result.record_error(key, e)
            return
        result.record(outcome)

    async def run(self, reconciler: Reconciler) -> ReconciliationResult:
        """
        Reconcile one entity type.

        Raises:
            ExternalSourceError: the source could not be reached or queried
                (the whole run aborts; nothing is written)
        """
        result = ReconciliationResult(entity=reconciler.entity)
        logger.info(f"[{reconciler.entity}] Sync started")

        rows = await self._fetch(reconciler)
        result.total_fetched = len(rows)
        logger.info(f"[{reconciler.entity}] {len(rows)} rows fetched from {self.source.name}")

        for start in range(0, len(rows), self.batch_size):
            chunk = rows[start:start + self.batch_size]
            for offset, row in enumerate(chunk, start=start + 1):
                await self._sync_row(reconciler, row, offset, result)
            await self.db.commit()
            logger.info(
                f"[{reconciler.entity}] Processed {min(start + self.batch_size, len(rows))}/{len(rows)}"
            )

        result.finished_at = datetime.now(timezone.utc)
        logger.info(
            f"[{reconciler.entity}] Sync finished: fetched={result.total_fetched} "
            f"synced={result.total_synced} created={result.created} updated={result.updated} "
            f"skipped={result.skipped} errors={result.errors}"
        )
        return result

    async def sync_products(self) -> ReconciliationResult:
        return await self.run(ProductReconciler())

    async def sync_distributors(self) -> ReconciliationResult:
        return await self.run(DistributorReconciler())

    async def sync_all(self) -> List[ReconciliationResult]:
        """Products then distributors, one external connection at a time."""
        return [
            await self.sync_products(),
            await self.sync_distributors(),
        ]


SYNC_TARGETS = ("all", "products", "distributors")


class SyncSupervisor:
    """
    Process-wide guard around sync runs.

    At most one run (scheduled or manual) is in flight; a second request
    while one is running gets a ConflictError instead of starting in parallel.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self.last_run_at: Optional[datetime] = None
        self.last_results: Dict[str, ReconciliationResult] = {}

    @property
    def running(self) -> bool:
        return self._lock.locked()

    async def run(
        self,
        target: str,
        db: AsyncSession,
        source: Optional[ExternalSource] = None,
    ) -> List[ReconciliationResult]:
        """
        Run a sync for target ('all', 'products' or 'distributors').

        Raises:
            ValidationError: unknown target
            ConflictError: another sync is in progress
            ExternalSourceError: source unreachable
        """
        if target not in SYNC_TARGETS:
            raise ValidationError(f"Unknown sync target '{target}'")
        if self._lock.locked():
            raise ConflictError("A data sync is already in progress")

        async with self._lock:
            service = DataSyncService(db, source)
            if target == "products":
                results = [await service.sync_products()]
            elif target == "distributors":
                results = [await service.sync_distributors()]
            else:
                results = await service.sync_all()

            self.last_run_at = datetime.now(timezone.utc)
            for result in results:
                self.last_results[result.entity] = result
            return results


sync_supervisor = SyncSupervisor()
