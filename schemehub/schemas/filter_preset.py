from pydantic import Field
from typing import Any, Dict
from datetime import datetime
import uuid

from schemehub.schemas.base import BaseResponseSchema, BaseCreateSchema


class FilterPresetCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=50)
    filters: Dict[str, Any] = Field(default_factory=dict)


class FilterPresetResponse(BaseResponseSchema):
    id: uuid.UUID
    name: str
    filters: Dict[str, Any]
    user_id: uuid.UUID
    created_at: datetime
