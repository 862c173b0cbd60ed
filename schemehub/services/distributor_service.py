import logging
import uuid
from typing import Any, Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schemehub.core.exceptions import ConflictError, NotFoundError, ValidationError
from schemehub.core.filters import FilterField, FilterSet
from schemehub.models.distributor import Distributor
from schemehub.schemas.base import BulkItemResult
from schemehub.schemas.distributor import DistributorCreate, DistributorUpdate


logger = logging.getLogger(__name__)

DISTRIBUTOR_FILTERS = FilterSet(
    fields={
        "customer_account": FilterField.string(Distributor.customer_account),
        "organization_name": FilterField.string(Distributor.organization_name),
        "address_city": FilterField.string(Distributor.address_city),
        "sm_code": FilterField.string(Distributor.sm_code),
        "customer_group_id": FilterField.string(Distributor.customer_group_id),
    },
    sortable={
        "customer_account": Distributor.customer_account,
        "organization_name": Distributor.organization_name,
        "address_city": Distributor.address_city,
        "created_at": Distributor.created_at,
    },
)


class DistributorService:
    """Service for the distributor master."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_distributors(
        self,
        params: Iterable[Tuple[str, str]] = (),
        sort: Optional[str] = None,
    ) -> List[Distributor]:
        stmt = select(Distributor)
        clauses = DISTRIBUTOR_FILTERS.build(params)
        if clauses:
            stmt = stmt.where(*clauses)
        stmt = stmt.order_by(*DISTRIBUTOR_FILTERS.order_by(sort, "organization_name"), Distributor.id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_distributor_by_id(self, distributor_id: Any) -> Distributor:
        try:
            distributor_id = uuid.UUID(str(distributor_id))
        except ValueError:
            raise ValidationError(f"Invalid distributor id '{distributor_id}'")
        result = await self.db.execute(select(Distributor).where(Distributor.id == distributor_id))
        distributor = result.scalar_one_or_none()
        if not distributor:
            raise NotFoundError("Distributor not found")
        return distributor

    async def _ensure_account_free(self, customer_account: str, exclude_id: Optional[uuid.UUID] = None) -> None:
        stmt = select(Distributor.id).where(Distributor.customer_account == customer_account)
        if exclude_id is not None:
            stmt = stmt.where(Distributor.id != exclude_id)
        if (await self.db.execute(stmt)).scalar_one_or_none() is not None:
            raise ConflictError(f"Distributor with customer account '{customer_account}' already exists")

    async def create_distributor(self, data: DistributorCreate) -> Distributor:
        """
        Raises:
            ConflictError: customer_account already exists
        """
        values = data.model_dump()
        values["customer_account"] = values["customer_account"].strip()
        await self._ensure_account_free(values["customer_account"])

        distributor = Distributor(**values)
        self.db.add(distributor)
        await self.db.commit()
        await self.db.refresh(distributor)
        return distributor

    async def update_distributor(self, distributor_id: Any, data: DistributorUpdate) -> Distributor:
        distributor = await self.get_distributor_by_id(distributor_id)
        values = data.model_dump(exclude_unset=True)
        if values.get("customer_account"):
            values["customer_account"] = values["customer_account"].strip()
            await self._ensure_account_free(values["customer_account"], exclude_id=distributor.id)
        elif "customer_account" in values:
            values.pop("customer_account")

        for key, value in values.items():
            setattr(distributor, key, value)
        await self.db.commit()
        await self.db.refresh(distributor)
        return distributor

    async def delete_distributor(self, distributor_id: Any) -> None:
        distributor = await self.get_distributor_by_id(distributor_id)
        await self.db.delete(distributor)
        await self.db.commit()

    async def bulk_delete(self, ids: List[Any]) -> List[BulkItemResult]:
        results: List[BulkItemResult] = []
        for raw_id in ids:
            try:
                distributor = await self.get_distributor_by_id(raw_id)
                await self.db.delete(distributor)
                await self.db.flush()
                results.append(BulkItemResult(id=str(raw_id), success=True))
            except (NotFoundError, ValidationError) as e:
                results.append(BulkItemResult(id=str(raw_id), success=False, error=e.message))
        await self.db.commit()
        logger.info(f"Bulk delete: {sum(r.success for r in results)}/{len(results)} distributors removed")
        return results

    async def get_customer_groups(self) -> List[str]:
        """Distinct customer group ids, the codes a group scheme targets."""
        result = await self.db.execute(
            select(Distributor.customer_group_id)
            .where(Distributor.customer_group_id.is_not(None))
            .distinct()
            .order_by(Distributor.customer_group_id)
        )
        return [value for value in result.scalars().all() if value]
