from typing import Callable

from fastapi import Depends

from carmarket.auth.auth_bearer import get_current_user
from carmarket.models.user import User, UserRole
from carmarket.services.exceptions import PermissionDeniedError

# Roles allowed on each guarded area of the API
ADMIN_ONLY = (UserRole.ADMIN,)
DEALER_OR_ADMIN = (UserRole.DEALER, UserRole.ADMIN)


def require_roles(*roles: UserRole) -> Callable:
    """Dependency factory: the authenticated user must hold one of the given roles."""
    allowed = set(roles)

    async def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise PermissionDeniedError(
                f"Access denied - requires role {' or '.join(sorted(r.value for r in allowed))}"
            )
        return user

    return checker
