from pydantic import Field
from typing import Optional
from datetime import datetime
import uuid

from schemehub.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


class DistributorCreate(BaseCreateSchema):
    """Distributor creation schema."""
    customer_account: str = Field(..., min_length=1, max_length=50)
    sm_code: Optional[str] = Field(None, max_length=50)
    organization_name: Optional[str] = Field(None, max_length=255)
    address_city: Optional[str] = Field(None, max_length=100)
    customer_group_id: Optional[str] = Field(None, max_length=50)


class DistributorUpdate(BaseUpdateSchema):
    """Distributor update schema."""
    customer_account: Optional[str] = Field(None, min_length=1, max_length=50)
    sm_code: Optional[str] = Field(None, max_length=50)
    organization_name: Optional[str] = Field(None, max_length=255)
    address_city: Optional[str] = Field(None, max_length=100)
    customer_group_id: Optional[str] = Field(None, max_length=50)


class DistributorResponse(BaseResponseSchema):
    """Distributor response schema."""
    id: uuid.UUID
    customer_account: str
    sm_code: Optional[str] = None
    organization_name: Optional[str] = None
    address_city: Optional[str] = None
    customer_group_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class DistributorBrief(BaseResponseSchema):
    """Display fields of a distributor referenced by a scheme."""
    id: uuid.UUID
    customer_account: str
    sm_code: Optional[str] = None
    organization_name: Optional[str] = None
    address_city: Optional[str] = None
    customer_group_id: Optional[str] = None
