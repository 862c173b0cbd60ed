from typing import List
import uuid

from fastapi import APIRouter, Depends, status

from schemehub.api.deps import DB, CurrentUser, require_roles
from schemehub.core.permissions import ADMIN_ROLES
from schemehub.schemas.base import DataResponse, ListResponse, MessageResponse
from schemehub.schemas.user import (
    UserCreate,
    UserUpdate,
    UserResponse,
    AdminResetPasswordRequest,
)
from schemehub.services.auth_service import AuthService

router = APIRouter(tags=["Users"], dependencies=[Depends(require_roles(*ADMIN_ROLES))])


@router.get("", response_model=ListResponse[UserResponse])
async def list_users(db: DB):
    users = await AuthService(db).list_users()
    return ListResponse(count=len(users), data=[UserResponse.model_validate(u) for u in users])


@router.post("", response_model=DataResponse[UserResponse], status_code=status.HTTP_201_CREATED)
async def create_user(data: UserCreate, db: DB):
    user = await AuthService(db).create_user(data)
    return DataResponse(data=UserResponse.model_validate(user))


@router.put("/{user_id}", response_model=DataResponse[UserResponse])
async def update_user(user_id: uuid.UUID, data: UserUpdate, db: DB):
    user = await AuthService(db).update_user(user_id, data)
    return DataResponse(data=UserResponse.model_validate(user))


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(user_id: uuid.UUID, db: DB, current_user: CurrentUser):
    await AuthService(db).delete_user(user_id, acting_user_id=current_user.id)
    return MessageResponse(message="User deleted")


@router.post("/{user_id}/reset-password", response_model=MessageResponse)
async def reset_password(user_id: uuid.UUID, data: AdminResetPasswordRequest, db: DB):
    """Set a new password for a user (admin)."""
    await AuthService(db).reset_password(user_id, data.new_password)
    return MessageResponse(message="Password reset successfully")
