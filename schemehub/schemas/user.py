from pydantic import BaseModel, Field, EmailStr
from typing import Optional
from datetime import datetime
import uuid

from schemehub.models.user import UserRole
from schemehub.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


class UserCreate(BaseCreateSchema):
    """User creation schema (admin)."""
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    username: Optional[str] = Field(None, max_length=50)
    password: str = Field(..., min_length=6, max_length=72)
    role: UserRole = UserRole.VIEWER
    department: Optional[str] = Field(None, max_length=100)


class UserUpdate(BaseUpdateSchema):
    """User update schema (admin)."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    department: Optional[str] = Field(None, max_length=100)
    is_active: Optional[bool] = None


class AdminResetPasswordRequest(BaseModel):
    new_password: str = Field(..., min_length=6, max_length=72)


class UserResponse(BaseResponseSchema):
    """User response schema."""
    id: uuid.UUID
    name: str
    email: str
    username: Optional[str] = None
    role: str
    department: Optional[str] = None
    is_active: bool
    created_at: datetime
    last_login_at: Optional[datetime] = None


class UserBrief(BaseResponseSchema):
    """User reference embedded in other resources."""
    id: uuid.UUID
    name: str
    email: str
    role: str
