from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, status
from fastapi.responses import JSONResponse

from schemehub.api.deps import DB, CurrentUser, require_roles
from schemehub.core.filters import query_pairs
from schemehub.core.permissions import ADMIN_ROLES
from schemehub.schemas.base import BulkResponse, DataResponse, ListResponse, MessageResponse
from schemehub.schemas.product import (
    ProductCreate,
    ProductUpdate,
    BulkIdsRequest,
    ProductResponse,
    ProductStats,
    DuplicateGroup,
    DuplicateCleanupResult,
)
from schemehub.services.product_service import ProductService

router = APIRouter(tags=["Products"])

admin_only = [Depends(require_roles(*ADMIN_ROLES))]


def _bulk_response(response: BulkResponse) -> JSONResponse:
    return JSONResponse(status_code=response.status_code, content=response.model_dump(mode="json"))


@router.get("", response_model=ListResponse[ProductResponse])
async def list_products(
    request: Request,
    db: DB,
    sort: Optional[str] = Query(None, description="Comma-separated fields, '-' for descending"),
):
    """
    List products.
    Filters: field=value or field[op]=value (eq, gt, gte, lt, lte, in, contains).
    """
    products = await ProductService(db).get_products(query_pairs(request.query_params), sort=sort)
    return ListResponse(count=len(products), data=[ProductResponse.model_validate(p) for p in products])


@router.get("/stats", response_model=DataResponse[ProductStats])
async def product_stats(db: DB, current_user: CurrentUser):
    """Product counts per brand and per pack type."""
    return DataResponse(data=await ProductService(db).get_stats())


@router.get("/duplicates", response_model=ListResponse[DuplicateGroup])
async def list_duplicates(db: DB, current_user: CurrentUser):
    """Products sharing one (item_id, style, configuration) key."""
    groups = await ProductService(db).find_duplicates()
    return ListResponse(count=len(groups), data=groups)


@router.post("/duplicates/cleanup", response_model=DuplicateCleanupResult, dependencies=admin_only)
async def cleanup_duplicates(db: DB):
    """Keep the most recently updated product of each duplicate group."""
    groups, removed = await ProductService(db).cleanup_duplicates()
    return DuplicateCleanupResult(groups=groups, removed=removed)


@router.post(
    "/import",
    response_model=ListResponse[ProductResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=admin_only,
)
async def bulk_import_products(items: List[ProductCreate], db: DB):
    """Insert a list of products in one transaction."""
    products = await ProductService(db).bulk_import(items)
    return ListResponse(count=len(products), data=[ProductResponse.model_validate(p) for p in products])


@router.put("/bulk-update", response_model=BulkResponse, dependencies=admin_only)
async def bulk_update_products(db: DB, items: List[Any] = Body(...)):
    """
    Update several products; each item succeeds or fails on its own.
    Body: [{"id": ..., <fields to change>}, ...]
    """
    results = await ProductService(db).bulk_update(items)
    return _bulk_response(BulkResponse.from_results(results))


@router.post("/bulk-delete", response_model=BulkResponse, dependencies=admin_only)
async def bulk_delete_products(data: BulkIdsRequest, db: DB):
    """Delete several products; each id succeeds or fails on its own."""
    results = await ProductService(db).bulk_delete(data.ids)
    return _bulk_response(BulkResponse.from_results(results))


@router.get("/{product_id}", response_model=DataResponse[ProductResponse])
async def get_product(product_id: str, db: DB, current_user: CurrentUser):
    product = await ProductService(db).get_product_by_id(product_id)
    return DataResponse(data=ProductResponse.model_validate(product))


@router.post(
    "",
    response_model=DataResponse[ProductResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=admin_only,
)
async def create_product(data: ProductCreate, db: DB):
    product = await ProductService(db).create_product(data)
    return DataResponse(data=ProductResponse.model_validate(product))


@router.put("/{product_id}", response_model=DataResponse[ProductResponse], dependencies=admin_only)
async def update_product(product_id: str, data: ProductUpdate, db: DB):
    product = await ProductService(db).update_product(product_id, data)
    return DataResponse(data=ProductResponse.model_validate(product))


@router.delete("/{product_id}", response_model=MessageResponse, dependencies=admin_only)
async def delete_product(product_id: str, db: DB):
    await ProductService(db).delete_product(product_id)
    return MessageResponse(message="Product deleted")
