import uuid
from typing import Any, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schemehub.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from schemehub.models.filter_preset import FilterPreset
from schemehub.schemas.filter_preset import FilterPresetCreate


class FilterPresetService:
    """Saved filters, each visible only to its owner."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_for_user(self, user_id: uuid.UUID) -> List[FilterPreset]:
        result = await self.db.execute(
            select(FilterPreset)
            .where(FilterPreset.user_id == user_id)
            .order_by(FilterPreset.created_at.desc())
        )
        return list(result.scalars().all())

    async def create(self, user_id: uuid.UUID, data: FilterPresetCreate) -> FilterPreset:
        preset = FilterPreset(name=data.name.strip(), filters=data.filters, user_id=user_id)
        self.db.add(preset)
        await self.db.commit()
        await self.db.refresh(preset)
        return preset

    async def delete(self, preset_id: Any, user_id: uuid.UUID) -> None:
        """
        Raises:
            NotFoundError: unknown preset
            ForbiddenError: preset belongs to another user
        """
        try:
            preset_id = uuid.UUID(str(preset_id))
        except ValueError:
            raise ValidationError(f"Invalid filter preset id '{preset_id}'")

        result = await self.db.execute(select(FilterPreset).where(FilterPreset.id == preset_id))
        preset = result.scalar_one_or_none()
        if preset is None:
            raise NotFoundError("Filter preset not found")
        if preset.user_id != user_id:
            raise ForbiddenError("Not authorized to delete this filter preset")

        await self.db.delete(preset)
        await self.db.commit()
