from pydantic import BaseModel, Field
from typing import Any, Optional, List
from datetime import datetime
import uuid

from schemehub.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


class ProductBase(BaseCreateSchema):
    """Base product schema."""
    item_id: Optional[str] = Field(None, max_length=50)
    item_name: Optional[str] = Field(None, max_length=255)
    brand_name: Optional[str] = Field(None, max_length=100)
    flavour_type: Optional[str] = Field(None, max_length=100)
    pack_type_group_name: Optional[str] = Field(None, max_length=100)
    style: Optional[str] = Field(None, max_length=50)
    pack_type: Optional[str] = Field(None, max_length=100)
    configuration: Optional[str] = Field(None, max_length=50)
    nob: Optional[int] = Field(None, ge=0)


class ProductCreate(ProductBase):
    """Product creation schema."""
    item_id: str = Field(..., min_length=1, max_length=50)


class ProductUpdate(BaseUpdateSchema):
    """Product update schema."""
    item_id: Optional[str] = Field(None, min_length=1, max_length=50)
    item_name: Optional[str] = Field(None, max_length=255)
    brand_name: Optional[str] = Field(None, max_length=100)
    flavour_type: Optional[str] = Field(None, max_length=100)
    pack_type_group_name: Optional[str] = Field(None, max_length=100)
    style: Optional[str] = Field(None, max_length=50)
    pack_type: Optional[str] = Field(None, max_length=100)
    configuration: Optional[str] = Field(None, max_length=50)
    nob: Optional[int] = Field(None, ge=0)


class ProductBulkUpdateItem(ProductUpdate):
    """One entry of a bulk update: the target id plus the fields to change."""
    id: str


class BulkIdsRequest(BaseModel):
    """Ids are checked one by one by the bulk services."""
    ids: List[Any] = Field(..., min_length=1)


class ProductResponse(BaseResponseSchema):
    """Product response schema."""
    id: uuid.UUID
    item_id: Optional[str] = None
    item_name: Optional[str] = None
    brand_name: Optional[str] = None
    flavour_type: Optional[str] = None
    pack_type_group_name: Optional[str] = None
    style: Optional[str] = None
    pack_type: Optional[str] = None
    configuration: Optional[str] = None
    nob: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class BrandStat(BaseModel):
    brand_name: Optional[str] = None
    count: int
    avg_nob: Optional[float] = None


class PackTypeStat(BaseModel):
    pack_type: Optional[str] = None
    count: int


class ProductStats(BaseModel):
    brand_stats: List[BrandStat]
    pack_type_stats: List[PackTypeStat]


class DuplicateGroup(BaseModel):
    """Products sharing one natural key."""
    item_id: Optional[str] = None
    style: Optional[str] = None
    configuration: Optional[str] = None
    count: int
    ids: List[uuid.UUID]


class DuplicateCleanupResult(BaseModel):
    success: bool = True
    groups: int
    removed: int
