from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from schemehub.models.scheme import Scheme, SchemeHistory, SchemeStatus, HistoryAction
from schemehub.schemas.dashboard import DashboardStats, ActivityItem


# History action -> activity feed type
ACTIVITY_TYPES = {
    HistoryAction.CREATED.value: "create",
    HistoryAction.VERIFIED.value: "verify",
    HistoryAction.REJECTED.value: "reject",
    HistoryAction.MODIFIED.value: "update",
}

RECENT_ACTIVITY_LIMIT = 10


class DashboardService:
    """Headline counts and the recent activity feed."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _count(self, *clauses) -> int:
        stmt = select(func.count(Scheme.id))
        if clauses:
            stmt = stmt.where(*clauses)
        return (await self.db.execute(stmt)).scalar() or 0

    async def get_stats(self, today: Optional[date] = None) -> DashboardStats:
        """
        Scheme counts. A scheme is active today when it is Verified and
        today's UTC date falls within its validity.
        """
        today = today or datetime.now(timezone.utc).date()
        return DashboardStats(
            total=await self._count(),
            verified=await self._count(Scheme.status == SchemeStatus.VERIFIED.value),
            pending=await self._count(Scheme.status == SchemeStatus.PENDING_VERIFICATION.value),
            active_today=await self._count(
                Scheme.status == SchemeStatus.VERIFIED.value,
                Scheme.start_date <= today,
                Scheme.end_date >= today,
            ),
        )

    async def get_recent_activities(self, limit: int = RECENT_ACTIVITY_LIMIT) -> List[ActivityItem]:
        result = await self.db.execute(
            select(SchemeHistory)
            .options(selectinload(SchemeHistory.scheme), selectinload(SchemeHistory.user))
            .order_by(SchemeHistory.timestamp.desc(), SchemeHistory.id.desc())
            .limit(limit)
        )
        return [
            ActivityItem(
                type=ACTIVITY_TYPES.get(entry.action, entry.action),
                user=(entry.user.name or entry.user.username) if entry.user else "Unknown User",
                scheme_id=entry.scheme.scheme_code,
                notes=entry.notes,
                timestamp=entry.timestamp,
            )
            for entry in result.scalars().all()
        ]
