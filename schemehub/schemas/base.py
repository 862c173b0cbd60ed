"""
Base Schema Classes for Pydantic Models

RULE: All response schemas that use `from_attributes=True` MUST inherit from BaseResponseSchema.
Every JSON body the API returns carries a `success` flag; the envelopes
at the bottom of this module provide it.
"""

from typing import Any, Generic, List, Optional, TypeVar
from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class BaseResponseSchema(BaseModel):
    """
    Base class for all response schemas that read from ORM models.

    Usage:
        class ProductResponse(BaseResponseSchema):
            id: UUID
            item_id: Optional[str] = None
    """
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.
    Unknown fields are ignored (forward compatibility).
    """
    model_config = ConfigDict(
        extra='ignore',
        populate_by_name=True,
    )


class BaseUpdateSchema(BaseModel):
    """
    Base class for update/patch schemas.
    All fields are optional by default for partial updates.
    """
    model_config = ConfigDict(
        extra='ignore',
        populate_by_name=True,
    )


class DataResponse(BaseModel, Generic[T]):
    """Single-object envelope."""
    success: bool = True
    data: T


class ListResponse(BaseModel, Generic[T]):
    """List envelope."""
    success: bool = True
    count: int
    data: List[T]


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class BulkItemResult(BaseModel):
    """Outcome of one item in a bulk request."""
    id: Optional[str] = None
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None


class BulkResponse(BaseModel):
    """
    Bulk request outcome.
    success is True only when every item succeeded.
    """
    success: bool
    succeeded: int
    failed: int
    results: List[BulkItemResult]

    @classmethod
    def from_results(cls, results: List[BulkItemResult]) -> "BulkResponse":
        failed = sum(1 for r in results if not r.success)
        return cls(
            success=failed == 0,
            succeeded=len(results) - failed,
            failed=failed,
            results=results,
        )

    @property
    def status_code(self) -> int:
        """200 all succeeded, 207 mixed outcome, 400 nothing succeeded."""
        if self.failed == 0:
            return 200
        if self.succeeded > 0:
            return 207
        return 400
