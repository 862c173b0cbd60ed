from dataclasses import dataclass
from typing import Iterable, Optional
import uuid

from schemehub.core.exceptions import ForbiddenError
from schemehub.models.user import User, UserRole


# Roles allowed per scheme operation
SCHEME_CREATE_ROLES = (UserRole.CREATOR.value, UserRole.ADMIN.value)
SCHEME_REVIEW_ROLES = (UserRole.VERIFIER.value, UserRole.ADMIN.value)
ADMIN_ROLES = (UserRole.ADMIN.value,)


@dataclass(frozen=True)
class Principal:
    """The authenticated actor behind a request or job."""
    id: uuid.UUID
    role: str
    name: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "Principal":
        return cls(id=user.id, role=user.role, name=user.name)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


class PermissionChecker:
    """
    Role checks for the current principal.
    Authorization is decided purely on the id and role handed in.
    """

    def __init__(self, principal: Principal):
        self.principal = principal

    def has_role(self, roles: Iterable[str]) -> bool:
        """Check if the principal holds any of the given roles."""
        return self.principal.role in set(roles)

    def can_modify_scheme(self, created_by: Optional[uuid.UUID]) -> bool:
        """Only the scheme's creator or an admin may edit it."""
        if self.principal.is_admin:
            return True
        return created_by is not None and created_by == self.principal.id

    def require_roles(self, roles: Iterable[str]) -> None:
        roles = tuple(roles)
        if not self.has_role(roles):
            raise ForbiddenError(
                f"User role '{self.principal.role}' is not authorized. Required: {', '.join(roles)}"
            )

    def require_scheme_owner(self, created_by: Optional[uuid.UUID]) -> None:
        if not self.can_modify_scheme(created_by):
            raise ForbiddenError("Not authorized to update this scheme")
