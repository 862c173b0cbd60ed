from typing import Annotated, Optional
import uuid
import logging

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schemehub.database import get_db
from schemehub.core.exceptions import AuthError
from schemehub.core.security import verify_access_token
from schemehub.core.permissions import Principal, PermissionChecker
from schemehub.models.user import User
from schemehub.services.external_source import ExternalSource, get_external_source


logger = logging.getLogger(__name__)

# HTTP Bearer security scheme; missing headers are reported as 401 below
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Dependency to get the current authenticated user.
    Validates the JWT token and returns the user object.
    """
    if credentials is None:
        raise AuthError("Not authorized to access this route")

    user_id = verify_access_token(credentials.credentials)
    if user_id is None:
        logger.warning("Token verification failed - invalid or expired token")
        raise AuthError("Not authorized to access this route")

    try:
        user_uuid = uuid.UUID(user_id)
    except ValueError:
        logger.warning(f"Invalid user_id in token: {user_id}")
        raise AuthError("Not authorized to access this route")

    result = await db.execute(select(User).where(User.id == user_uuid))
    user = result.scalar_one_or_none()

    if user is None:
        logger.warning(f"User {user_id} from token no longer exists")
        raise AuthError("Not authorized to access this route")

    if not user.is_active:
        raise AuthError("User account is deactivated")

    return user


async def get_current_principal(
    user: Annotated[User, Depends(get_current_user)],
) -> Principal:
    return Principal.from_user(user)


def require_roles(*roles: str):
    """
    Dependency factory to require one of the given roles.

    Usage:
        @router.post("/", dependencies=[Depends(require_roles("admin"))])
        async def create_product():
            ...
    """
    async def role_dependency(
        principal: Annotated[Principal, Depends(get_current_principal)],
    ) -> Principal:
        PermissionChecker(principal).require_roles(roles)
        return principal

    return role_dependency


def get_source() -> ExternalSource:
    """External system of record used by manual sync runs."""
    return get_external_source()


# Type aliases for cleaner endpoint signatures
DB = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_current_user)]
Source = Annotated[ExternalSource, Depends(get_source)]
