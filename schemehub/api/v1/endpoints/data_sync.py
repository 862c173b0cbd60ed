from fastapi import APIRouter, Depends

from schemehub.api.deps import DB, Source, require_roles
from schemehub.core.permissions import ADMIN_ROLES
from schemehub.jobs.scheduler import get_next_sync_time
from schemehub.schemas.data_sync import (
    ReconciliationResultResponse,
    SyncRunResponse,
    SyncStatusResponse,
)
from schemehub.services.data_sync_service import sync_supervisor

router = APIRouter(tags=["Data Sync"], dependencies=[Depends(require_roles(*ADMIN_ROLES))])


async def _run(target: str, db, source, message: str) -> SyncRunResponse:
    results = await sync_supervisor.run(target, db, source)
    return SyncRunResponse(
        message=message,
        results=[ReconciliationResultResponse.model_validate(r) for r in results],
    )


@router.post("/all", response_model=SyncRunResponse)
async def sync_all(db: DB, source: Source):
    """Reconcile products then distributors from the external source."""
    return await _run("all", db, source, "All data synced successfully")


@router.post("/products", response_model=SyncRunResponse)
async def sync_products(db: DB, source: Source):
    return await _run("products", db, source, "Product data synced successfully")


@router.post("/distributors", response_model=SyncRunResponse)
async def sync_distributors(db: DB, source: Source):
    return await _run("distributors", db, source, "Distributor data synced successfully")


@router.get("/status", response_model=SyncStatusResponse)
async def sync_status():
    """Whether a sync is running, the last results and the next scheduled run."""
    return SyncStatusResponse(
        running=sync_supervisor.running,
        last_run_at=sync_supervisor.last_run_at,
        last_results={
            entity: ReconciliationResultResponse.model_validate(result)
            for entity, result in sync_supervisor.last_results.items()
        },
        next_run_time=get_next_sync_time(),
    )
