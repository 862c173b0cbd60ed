from pydantic import BaseModel, Field, EmailStr
from typing import Optional

from schemehub.models.user import UserRole
from schemehub.schemas.user import UserResponse


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)
    confirm_password: str = Field(..., alias="confirmPassword")
    role: UserRole = UserRole.VIEWER
    department: Optional[str] = Field(None, max_length=100)

    model_config = {"populate_by_name": True}


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class CheckEmailRequest(BaseModel):
    email: EmailStr


class CheckEmailResponse(BaseModel):
    success: bool = True
    exists: bool


class TokenResponse(BaseModel):
    """Login/register response: bearer token plus the user."""
    success: bool = True
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse
