from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime

from schemehub.schemas.base import BaseResponseSchema


class ReconciliationResultResponse(BaseResponseSchema):
    """Summary of one reconciliation run for one entity type."""
    entity: str
    total_fetched: int
    total_synced: int
    created: int
    updated: int
    skipped: int
    errors: int
    error_details: List[str] = Field(default_factory=list)
    started_at: datetime
    finished_at: Optional[datetime] = None


class SyncRunResponse(BaseModel):
    success: bool = True
    message: str
    results: List[ReconciliationResultResponse]


class SyncStatusResponse(BaseModel):
    success: bool = True
    running: bool
    last_run_at: Optional[datetime] = None
    last_results: Dict[str, ReconciliationResultResponse] = Field(default_factory=dict)
    next_run_time: Optional[str] = None
