from fastapi import APIRouter, status

from schemehub.api.deps import DB, CurrentUser
from schemehub.schemas.auth import (
    RegisterRequest,
    LoginRequest,
    CheckEmailRequest,
    CheckEmailResponse,
    TokenResponse,
)
from schemehub.schemas.base import DataResponse, MessageResponse
from schemehub.schemas.user import UserResponse
from schemehub.services.auth_service import AuthService

router = APIRouter(tags=["Authentication"])


def _token_response(service: AuthService, user) -> TokenResponse:
    token, expires_in = service.create_token(user)
    return TokenResponse(
        token=token,
        expires_in=expires_in,
        user=UserResponse.model_validate(user),
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(data: RegisterRequest, db: DB):
    """Create an account and return a token for it."""
    service = AuthService(db)
    user = await service.register_user(data)
    return _token_response(service, user)


@router.post("/login", response_model=TokenResponse)
async def login(data: LoginRequest, db: DB):
    """Authenticate user and return an access token."""
    service = AuthService(db)
    user = await service.authenticate_user(data.email, data.password)
    return _token_response(service, user)


@router.post("/check-email", response_model=CheckEmailResponse)
async def check_email(data: CheckEmailRequest, db: DB):
    """Whether an account already uses this email."""
    exists = await AuthService(db).email_exists(data.email)
    return CheckEmailResponse(exists=exists)


@router.post("/logout", response_model=MessageResponse)
async def logout():
    """Tokens are stateless; the client discards its copy."""
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=DataResponse[UserResponse])
async def get_me(current_user: CurrentUser):
    """Get current user."""
    return DataResponse(data=UserResponse.model_validate(current_user))
