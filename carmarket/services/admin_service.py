import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Literal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.core.metrics import track_performance
from carmarket.models.car import Car
from carmarket.models.dealer import Dealer
from carmarket.models.favorite import Favorite
from carmarket.models.user import User, UserRole
from carmarket.schemas.admin import AdminStats
from carmarket.schemas.common import Page
from carmarket.schemas.user import UserResponse
from carmarket.services.exceptions import NotFoundError
from carmarket.services.validators import BusinessRules

logger = logging.getLogger(__name__)

UserSortField = Literal["created_at", "updated_at", "email", "role"]

USER_SORT_COLUMNS = {
    "created_at": User.created_at,
    "updated_at": User.updated_at,
    "email": User.email,
    "role": User.role,
}


class AdminService:
    """User moderation and platform-wide statistics."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_user(self, user_id: uuid.UUID) -> User:
        user = await self.db.get(User, user_id)
        if not user:
            raise NotFoundError(f"User not found with id: {user_id}", "USER_NOT_FOUND")
        return user

    async def _count(self, stmt) -> int:
        return (await self.db.execute(stmt)).scalar_one()

    async def list_users(self, page: int = 0, size: int = 20, sort_by: str = "created_at",
                         sort_direction: str = "desc") -> Page[UserResponse]:
        total = await self._count(select(func.count(User.id)))

        column = USER_SORT_COLUMNS[sort_by]
        ordering = (column.asc(), User.id.asc()) if sort_direction == "asc" else (column.desc(), User.id.desc())
        users = (
            await self.db.execute(select(User).order_by(*ordering).offset(page * size).limit(size))
        ).scalars().all()

        return Page[UserResponse].build([UserResponse.model_validate(u) for u in users], page, size, total)

    async def get_user(self, user_id: uuid.UUID) -> UserResponse:
        return UserResponse.model_validate(await self._get_user(user_id))

    @track_performance(service_name="AdminService")
    async def update_user_status(self, user_id: uuid.UUID, is_active: bool, actor: User) -> UserResponse:
        if not is_active:
            BusinessRules.ensure_not_self(actor, user_id, "deactivate")

        user = await self._get_user(user_id)
        user.is_active = is_active
        await self.db.commit()

        logger.info(f"User {user_id} {'activated' if is_active else 'deactivated'} by admin {actor.id}")
        return UserResponse.model_validate(user)

    async def delete_user(self, user_id: uuid.UUID, actor: User) -> None:
        """Users are never removed, only deactivated."""
        BusinessRules.ensure_not_self(actor, user_id, "delete")
        await self.update_user_status(user_id, False, actor)

    @track_performance(service_name="AdminService")
    async def get_stats(self) -> AdminStats:
        total_users = await self._count(select(func.count(User.id)))
        active_users = await self._count(select(func.count(User.id)).where(User.is_active.is_(True)))
        total_dealers = await self._count(select(func.count(Dealer.id)))
        active_dealers = await self._count(
            select(func.count(Dealer.id)).join(User, User.id == Dealer.user_id).where(User.is_active.is_(True))
        )
        total_cars = await self._count(select(func.count(Car.id)))
        active_cars = await self._count(select(func.count(Car.id)).where(Car.is_active.is_(True)))
        total_favorites = await self._count(select(func.count(Favorite.id)))

        average = Decimal(total_cars) / Decimal(total_dealers) if total_dealers else Decimal(0)

        return AdminStats(
            total_users=total_users,
            active_users=active_users,
            total_dealers=total_dealers,
            active_dealers=active_dealers,
            total_cars=total_cars,
            active_cars=active_cars,
            total_favorites=total_favorites,
            average_cars_per_dealer=average.quantize(Decimal("0.01")),
            last_updated=datetime.now(timezone.utc),
        )

    async def search_users_by_email(self, pattern: str) -> List[UserResponse]:
        stmt = (
            select(User)
            .where(func.lower(User.email).contains(pattern.lower(), autoescape=True))
            .order_by(User.email)
        )
        return [UserResponse.model_validate(u) for u in (await self.db.execute(stmt)).scalars().all()]

    async def get_users_by_role(self, role: UserRole) -> List[UserResponse]:
        stmt = select(User).where(User.role == role).order_by(User.created_at.desc(), User.id.desc())
        return [UserResponse.model_validate(u) for u in (await self.db.execute(stmt)).scalars().all()]
