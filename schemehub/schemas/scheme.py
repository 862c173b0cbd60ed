from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional, Union
from datetime import date, datetime
import uuid

from schemehub.models.scheme import SchemeStatus, DistributorType
from schemehub.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema
from schemehub.schemas.distributor import DistributorBrief
from schemehub.schemas.user import UserBrief


class SchemeCreate(BaseCreateSchema):
    """
    Scheme creation schema.

    Dates are accepted as ISO strings and normalized by the lifecycle
    service. Product lines are accepted in any of the known field
    spellings (see schemehub.services.product_aliases).
    """
    scheme_code: Optional[str] = Field(None, alias="schemeCode", max_length=40)
    start_date: Optional[Union[datetime, date, str]] = Field(None, alias="startDate")
    end_date: Optional[Union[datetime, date, str]] = Field(None, alias="endDate")
    distributor_type: DistributorType = Field(DistributorType.INDIVIDUAL, alias="distributorType")
    distributors: List[str] = Field(default_factory=list)
    products: Optional[List[Any]] = None


class SchemeUpdate(BaseUpdateSchema):
    """
    Scheme update schema.
    History cannot be supplied; every update appends one 'modified' entry.
    """
    start_date: Optional[Union[datetime, date, str]] = Field(None, alias="startDate")
    end_date: Optional[Union[datetime, date, str]] = Field(None, alias="endDate")
    distributor_type: Optional[DistributorType] = Field(None, alias="distributorType")
    distributors: Optional[List[str]] = None
    products: Optional[List[Any]] = None
    status: Optional[SchemeStatus] = None
    notes: Optional[str] = None


class SchemeReviewRequest(BaseModel):
    """Body of verify/reject."""
    notes: Optional[str] = None


class ProductLine(BaseModel):
    """Product snapshot embedded in a scheme."""
    item_id: Optional[Any] = None
    item_name: Optional[Any] = None
    flavour_type: Optional[Any] = None
    brand_name: Optional[Any] = None
    pack_type: Optional[Any] = None
    pack_type_group_name: Optional[Any] = None
    style: Optional[Any] = None
    nob: Optional[Any] = None
    configuration: Optional[Any] = None
    discount_price: float = 0
    custom_fields: Dict[str, Any] = Field(default_factory=dict)


class SchemeHistoryResponse(BaseResponseSchema):
    action: str
    user_id: Optional[uuid.UUID] = None
    user_name: Optional[str] = None
    notes: Optional[str] = None
    timestamp: datetime


class SchemeResponse(BaseModel):
    """Scheme with distributors resolved according to distributor_type."""
    id: uuid.UUID
    scheme_code: str
    start_date: date
    end_date: date
    distributor_type: str
    distributors: List[Union[DistributorBrief, str]]
    products: List[ProductLine]
    status: str
    created_by: uuid.UUID
    creator: Optional[UserBrief] = None
    verified_by: Optional[uuid.UUID] = None
    verifier: Optional[UserBrief] = None
    created_date: datetime
    updated_at: datetime
    history: List[SchemeHistoryResponse] = Field(default_factory=list)


class PageRef(BaseModel):
    page: int
    limit: int


class Pagination(BaseModel):
    next: Optional[PageRef] = None
    prev: Optional[PageRef] = None


class SchemeListResponse(BaseModel):
    success: bool = True
    count: int
    total: int
    pagination: Pagination
    data: List[SchemeResponse]
