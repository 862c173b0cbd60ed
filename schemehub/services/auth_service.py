from datetime import datetime, timezone
from typing import List, Optional, Tuple
import logging
import uuid

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from schemehub.config import settings
from schemehub.core.exceptions import AuthError, ConflictError, NotFoundError, ValidationError
from schemehub.core.security import verify_password, get_password_hash, create_access_token
from schemehub.models.scheme import Scheme
from schemehub.models.user import User, UserRole
from schemehub.schemas.auth import RegisterRequest
from schemehub.schemas.user import UserCreate, UserUpdate


logger = logging.getLogger(__name__)


class AuthService:
    """Authentication and user administration."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: uuid.UUID | str) -> Optional[User]:
        try:
            user_id = uuid.UUID(str(user_id))
        except ValueError:
            return None
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def email_exists(self, email: str) -> bool:
        return await self.get_user_by_email(email) is not None

    def create_token(self, user: User) -> Tuple[str, int]:
        """
        Issue an access token for a user.

        Returns:
            Tuple of (access_token, expires_in_seconds)
        """
        token = create_access_token(subject=user.id, additional_claims={"role": user.role})
        return token, settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    async def authenticate_user(self, email: str, password: str) -> User:
        """
        Authenticate a user by email and password.

        Raises:
            AuthError: unknown email, wrong password or deactivated account
        """
        user = await self.get_user_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            raise AuthError("Invalid credentials")
        if not user.is_active:
            raise AuthError("Account is deactivated")

        user.last_login_at = datetime.now(timezone.utc)
        await self.db.commit()
        return user

    async def _create(
        self,
        name: str,
        email: str,
        password: str,
        role: UserRole,
        department: Optional[str] = None,
        username: Optional[str] = None,
    ) -> User:
        if await self.email_exists(email):
            raise ConflictError("Email is already registered")

        user = User(
            name=name.strip(),
            email=email.lower(),
            username=username,
            password_hash=get_password_hash(password),
            role=UserRole(role).value,
            department=department,
        )
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        logger.info(f"User {user.email} created with role {user.role}")
        return user

    async def register_user(self, data: RegisterRequest) -> User:
        """
        Self-service registration.

        Raises:
            ValidationError: password and confirmation differ
            ConflictError: email already registered
        """
        if data.password != data.confirm_password:
            raise ValidationError("Passwords do not match")
        return await self._create(data.name, data.email, data.password, data.role, data.department)

    # ==================== ADMIN ====================

    async def list_users(self) -> List[User]:
        result = await self.db.execute(select(User).order_by(User.created_at.desc()))
        return list(result.scalars().all())

    async def create_user(self, data: UserCreate) -> User:
        return await self._create(
            data.name, data.email, data.password, data.role, data.department, data.username
        )

    async def _require_user(self, user_id: uuid.UUID | str) -> User:
        user = await self.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def update_user(self, user_id: uuid.UUID | str, data: UserUpdate) -> User:
        user = await self._require_user(user_id)
        values = data.model_dump(exclude_unset=True)

        if values.get("email"):
            email = values["email"].lower()
            existing = await self.get_user_by_email(email)
            if existing is not None and existing.id != user.id:
                raise ConflictError("Email is already registered")
            values["email"] = email
        if values.get("role") is not None:
            values["role"] = UserRole(values["role"]).value

        for key, value in values.items():
            if value is not None:
                setattr(user, key, value)
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def delete_user(self, user_id: uuid.UUID | str, acting_user_id: uuid.UUID) -> None:
        user = await self._require_user(user_id)
        if user.id == acting_user_id:
            raise ValidationError("You cannot delete your own account")
        if user.is_admin:
            admins = (await self.db.execute(
                select(func.count(User.id)).where(User.role == UserRole.ADMIN.value)
            )).scalar()
            if admins <= 1:
                raise ValidationError("Cannot delete the last admin")
        owned = (await self.db.execute(
            select(func.count(Scheme.id)).where(Scheme.created_by == user.id)
        )).scalar()
        if owned:
            raise ConflictError(f"User owns {owned} scheme(s); deactivate the account instead")
        await self.db.delete(user)
        await self.db.commit()
        logger.info(f"User {user.email} deleted by {acting_user_id}")

    async def reset_password(self, user_id: uuid.UUID | str, new_password: str) -> User:
        user = await self._require_user(user_id)
        user.password_hash = get_password_hash(new_password)
        await self.db.commit()
        logger.info(f"Password reset for {user.email}")
        return user
