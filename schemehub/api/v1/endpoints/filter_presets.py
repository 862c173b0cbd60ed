import uuid

from fastapi import APIRouter, status

from schemehub.api.deps import DB, CurrentUser
from schemehub.schemas.base import DataResponse, ListResponse, MessageResponse
from schemehub.schemas.filter_preset import FilterPresetCreate, FilterPresetResponse
from schemehub.services.filter_preset_service import FilterPresetService

router = APIRouter(tags=["Filter Presets"])


@router.get("", response_model=ListResponse[FilterPresetResponse])
async def list_filter_presets(db: DB, current_user: CurrentUser):
    """The current user's saved filters."""
    presets = await FilterPresetService(db).list_for_user(current_user.id)
    return ListResponse(count=len(presets), data=[FilterPresetResponse.model_validate(p) for p in presets])


@router.post("", response_model=DataResponse[FilterPresetResponse], status_code=status.HTTP_201_CREATED)
async def create_filter_preset(data: FilterPresetCreate, db: DB, current_user: CurrentUser):
    preset = await FilterPresetService(db).create(current_user.id, data)
    return DataResponse(data=FilterPresetResponse.model_validate(preset))


@router.delete("/{preset_id}", response_model=MessageResponse)
async def delete_filter_preset(preset_id: uuid.UUID, db: DB, current_user: CurrentUser):
    await FilterPresetService(db).delete(preset_id, current_user.id)
    return MessageResponse(message="Filter preset deleted")
