from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse

from schemehub.api.deps import DB, CurrentUser, require_roles
from schemehub.core.filters import query_pairs
from schemehub.core.permissions import ADMIN_ROLES
from schemehub.schemas.base import BulkResponse, DataResponse, ListResponse, MessageResponse
from schemehub.schemas.distributor import DistributorCreate, DistributorUpdate, DistributorResponse
from schemehub.schemas.product import BulkIdsRequest
from schemehub.services.distributor_service import DistributorService

router = APIRouter(tags=["Distributors"])

admin_only = [Depends(require_roles(*ADMIN_ROLES))]


@router.get("", response_model=ListResponse[DistributorResponse])
async def list_distributors(
    request: Request,
    db: DB,
    sort: Optional[str] = Query(None),
):
    distributors = await DistributorService(db).get_distributors(
        query_pairs(request.query_params), sort=sort
    )
    return ListResponse(
        count=len(distributors),
        data=[DistributorResponse.model_validate(d) for d in distributors],
    )


@router.get("/customer-groups", response_model=ListResponse[str])
async def list_customer_groups(db: DB, current_user: CurrentUser):
    """Codes a group-type scheme can target."""
    groups = await DistributorService(db).get_customer_groups()
    return ListResponse(count=len(groups), data=groups)


@router.post("/bulk-delete", response_model=BulkResponse, dependencies=admin_only)
async def bulk_delete_distributors(data: BulkIdsRequest, db: DB):
    results = await DistributorService(db).bulk_delete(data.ids)
    response = BulkResponse.from_results(results)
    return JSONResponse(status_code=response.status_code, content=response.model_dump(mode="json"))


@router.get("/{distributor_id}", response_model=DataResponse[DistributorResponse])
async def get_distributor(distributor_id: str, db: DB, current_user: CurrentUser):
    distributor = await DistributorService(db).get_distributor_by_id(distributor_id)
    return DataResponse(data=DistributorResponse.model_validate(distributor))


@router.post(
    "",
    response_model=DataResponse[DistributorResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=admin_only,
)
async def create_distributor(data: DistributorCreate, db: DB):
    distributor = await DistributorService(db).create_distributor(data)
    return DataResponse(data=DistributorResponse.model_validate(distributor))


@router.put("/{distributor_id}", response_model=DataResponse[DistributorResponse], dependencies=admin_only)
async def update_distributor(distributor_id: str, data: DistributorUpdate, db: DB):
    distributor = await DistributorService(db).update_distributor(distributor_id, data)
    return DataResponse(data=DistributorResponse.model_validate(distributor))


@router.delete("/{distributor_id}", response_model=MessageResponse, dependencies=admin_only)
async def delete_distributor(distributor_id: str, db: DB):
    await DistributorService(db).delete_distributor(distributor_id)
    return MessageResponse(message="Distributor deleted")
