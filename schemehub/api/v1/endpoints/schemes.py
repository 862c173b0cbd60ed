from typing import Optional
import uuid

from fastapi import APIRouter, Depends, Query, Request, Response, status

from schemehub.api.deps import DB, CurrentUser, require_roles
from schemehub.core.filters import query_pairs
from schemehub.core.permissions import Principal, SCHEME_CREATE_ROLES, SCHEME_REVIEW_ROLES, ADMIN_ROLES
from schemehub.schemas.base import DataResponse, MessageResponse
from schemehub.schemas.scheme import (
    SchemeCreate,
    SchemeUpdate,
    SchemeReviewRequest,
    SchemeResponse,
    SchemeListResponse,
)
from schemehub.services.scheme_service import SchemeService, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from schemehub.services.scheme_export_service import SchemeExportService, XLSX_MEDIA_TYPE

router = APIRouter(tags=["Schemes"])


async def _scheme_response(service: SchemeService, scheme) -> DataResponse[SchemeResponse]:
    distributor_map = await service.resolve_distributors([scheme])
    return DataResponse(data=service.to_response(scheme, distributor_map))


def _xlsx(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("", response_model=SchemeListResponse)
async def list_schemes(
    request: Request,
    db: DB,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    sort: Optional[str] = Query(None, description="Comma-separated fields, '-' for descending"),
):
    """
    Get paginated list of schemes.
    Filters: field=value or field[op]=value on scheme_code, status,
    distributor_type, start_date, end_date, created_by, verified_by.
    """
    service = SchemeService(db)
    schemes, total, pagination = await service.get_schemes(
        query_pairs(request.query_params), page=page, limit=limit, sort=sort
    )
    distributor_map = await service.resolve_distributors(schemes)
    return SchemeListResponse(
        count=len(schemes),
        total=total,
        pagination=pagination,
        data=[service.to_response(s, distributor_map) for s in schemes],
    )


@router.get("/export-by-date")
async def export_schemes_by_date(
    db: DB,
    current_user: CurrentUser,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    format: str = Query("excel"),
):
    """Export every scheme whose validity lies within [startDate, endDate]."""
    content = await SchemeExportService(db).export_by_date(start_date, end_date, format)
    return _xlsx(content, f"Schemes_{start_date}_to_{end_date}.xlsx")


@router.post("", response_model=DataResponse[SchemeResponse], status_code=status.HTTP_201_CREATED)
async def create_scheme(
    data: SchemeCreate,
    db: DB,
    principal: Principal = Depends(require_roles(*SCHEME_CREATE_ROLES)),
):
    """
    Create a scheme in Pending Verification.
    Requires: creator or admin
    """
    service = SchemeService(db)
    scheme = await service.create(principal, data)
    return await _scheme_response(service, scheme)


@router.get("/{scheme_code}", response_model=DataResponse[SchemeResponse])
async def get_scheme(scheme_code: str, db: DB, current_user: CurrentUser):
    """Get a scheme by code with distributors resolved and its history."""
    service = SchemeService(db)
    scheme = await service.get_by_code(scheme_code)
    return await _scheme_response(service, scheme)


@router.put("/{scheme_id}", response_model=DataResponse[SchemeResponse])
async def update_scheme(
    scheme_id: uuid.UUID,
    data: SchemeUpdate,
    db: DB,
    principal: Principal = Depends(require_roles(*SCHEME_CREATE_ROLES)),
):
    """
    Update a scheme.
    Requires: the scheme's creator, or an admin
    """
    service = SchemeService(db)
    scheme = await service.update(scheme_id, principal, data)
    return await _scheme_response(service, scheme)


@router.put("/{scheme_code}/verify", response_model=DataResponse[SchemeResponse])
async def verify_scheme(
    scheme_code: str,
    db: DB,
    data: Optional[SchemeReviewRequest] = None,
    principal: Principal = Depends(require_roles(*SCHEME_REVIEW_ROLES)),
):
    """
    Mark a scheme Verified.
    Requires: verifier or admin
    """
    service = SchemeService(db)
    scheme = await service.verify(scheme_code, principal, data.notes if data else None)
    return await _scheme_response(service, scheme)


@router.put("/{scheme_code}/reject", response_model=DataResponse[SchemeResponse])
async def reject_scheme(
    scheme_code: str,
    db: DB,
    data: Optional[SchemeReviewRequest] = None,
    principal: Principal = Depends(require_roles(*SCHEME_REVIEW_ROLES)),
):
    """
    Mark a scheme Rejected.
    Requires: verifier or admin
    """
    service = SchemeService(db)
    scheme = await service.reject(scheme_code, principal, data.notes if data else None)
    return await _scheme_response(service, scheme)


@router.delete("/{scheme_code}", response_model=MessageResponse)
async def delete_scheme(
    scheme_code: str,
    db: DB,
    principal: Principal = Depends(require_roles(*ADMIN_ROLES)),
):
    """Delete a scheme and its history (admin)."""
    await SchemeService(db).delete(scheme_code, principal)
    return MessageResponse(message="Scheme deleted")


@router.get("/{scheme_code}/export")
async def export_scheme(
    scheme_code: str,
    db: DB,
    current_user: CurrentUser,
    format: str = Query("excel"),
):
    """Export one scheme as the ERP price-discount sheet."""
    content = await SchemeExportService(db).export_scheme(scheme_code, format)
    return _xlsx(content, f"Scheme_{scheme_code}.xlsx")
