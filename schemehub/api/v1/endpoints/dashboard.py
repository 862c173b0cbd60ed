from fastapi import APIRouter

from schemehub.api.deps import DB, CurrentUser
from schemehub.schemas.base import DataResponse
from schemehub.schemas.dashboard import DashboardStats, ActivityItem
from schemehub.services.dashboard_service import DashboardService

router = APIRouter(tags=["Dashboard"])


@router.get("/stats", response_model=DataResponse[DashboardStats])
async def get_dashboard_stats(db: DB, current_user: CurrentUser):
    """Scheme totals by status and the number active today."""
    return DataResponse(data=await DashboardService(db).get_stats())


@router.get("/activities", response_model=DataResponse[list[ActivityItem]])
async def get_recent_activities(db: DB, current_user: CurrentUser):
    """The 10 most recent scheme history entries."""
    return DataResponse(data=await DashboardService(db).get_recent_activities())
