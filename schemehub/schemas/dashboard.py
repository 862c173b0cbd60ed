from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class DashboardStats(BaseModel):
    total: int
    verified: int
    pending: int
    active_today: int


class ActivityItem(BaseModel):
    """One history entry rendered for the activity feed."""
    type: str
    user: str
    scheme_id: str
    notes: Optional[str] = None
    timestamp: datetime
