import logging
import uuid
from typing import List

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.core.metrics import track_performance
from carmarket.models.car import Car
from carmarket.models.favorite import Favorite
from carmarket.models.user import User
from carmarket.schemas.favorite import FavoriteResponse, FavoriteToggleResponse, PopularCar
from carmarket.services.exceptions import DuplicateFavoriteError, NotFoundError
from carmarket.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class FavoritesService:
    def __init__(self, db: AsyncSession, notifier: NotificationService = None):
        self.db = db
        self.notifier = notifier or NotificationService()

    async def _find(self, user_id: uuid.UUID, car_id: uuid.UUID) -> Favorite | None:
        stmt = select(Favorite).where(Favorite.user_id == user_id, Favorite.car_id == car_id)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def _active_car(self, car_id: uuid.UUID) -> Car:
        car = (
            await self.db.execute(select(Car).where(Car.id == car_id, Car.is_active.is_(True)))
        ).scalar_one_or_none()
        if not car:
            raise NotFoundError(f"Car not found with id: {car_id}", "CAR_NOT_FOUND")
        return car

    @track_performance(service_name="FavoritesService")
    async def add_to_favorites(self, user: User, car_id: uuid.UUID) -> FavoriteResponse:
        car = await self._active_car(car_id)

        if await self._find(user.id, car_id):
            raise DuplicateFavoriteError("Car is already in favorites", "DUPLICATE_FAVORITE")

        favorite = Favorite(id=uuid.uuid4(), user_id=user.id, car_id=car_id)
        favorite.car = car
        self.db.add(favorite)

        try:
            await self.db.commit()
        except IntegrityError:
            # Unique (user_id, car_id) constraint lost a race with a concurrent add
            await self.db.rollback()
            raise DuplicateFavoriteError("Car is already in favorites", "DUPLICATE_FAVORITE")

        logger.info(f"User {user.id} favorited car {car_id}")
        self.notifier.notify_dealer_of_car_favorited(car, user.email)
        return FavoriteResponse.from_favorite(favorite)

    @track_performance(service_name="FavoritesService")
    async def remove_from_favorites(self, user_id: uuid.UUID, car_id: uuid.UUID) -> None:
        favorite = await self._find(user_id, car_id)
        if not favorite:
            raise NotFoundError("Car is not in favorites", "FAVORITE_NOT_FOUND")

        await self.db.delete(favorite)
        await self.db.commit()
        logger.info(f"User {user_id} removed car {car_id} from favorites")

    async def toggle_favorite(self, user: User, car_id: uuid.UUID) -> FavoriteToggleResponse:
        if await self._find(user.id, car_id):
            await self.remove_from_favorites(user.id, car_id)
            return FavoriteToggleResponse(favorited=False)

        favorite = await self.add_to_favorites(user, car_id)
        return FavoriteToggleResponse(favorited=True, favorite=favorite)

    async def is_in_favorites(self, user_id: uuid.UUID, car_id: uuid.UUID) -> bool:
        return await self._find(user_id, car_id) is not None

    async def get_user_favorites(self, user_id: uuid.UUID, limit: int = None) -> List[FavoriteResponse]:
        stmt = (
            select(Favorite)
            .where(Favorite.user_id == user_id)
            .order_by(Favorite.created_at.desc(), Favorite.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        favorites = (await self.db.execute(stmt)).scalars().all()
        return [FavoriteResponse.from_favorite(f) for f in favorites]

    async def get_recent_favorites(self, user_id: uuid.UUID, limit: int = 10) -> List[FavoriteResponse]:
        return await self.get_user_favorites(user_id, limit=limit)

    async def count_user_favorites(self, user_id: uuid.UUID) -> int:
        stmt = select(func.count(Favorite.id)).where(Favorite.user_id == user_id)
        return (await self.db.execute(stmt)).scalar_one()

    async def count_car_favorites(self, car_id: uuid.UUID) -> int:
        stmt = select(func.count(Favorite.id)).where(Favorite.car_id == car_id)
        return (await self.db.execute(stmt)).scalar_one()

    @track_performance(service_name="FavoritesService")
    async def get_popular_cars(self, limit: int = 10) -> List[PopularCar]:
        """Active cars ranked by how many users favorited them."""
        favorites = func.count(Favorite.id).label("favorites")
        stmt = (
            select(Favorite.car_id, favorites)
            .join(Car, Car.id == Favorite.car_id)
            .where(Car.is_active.is_(True))
            .group_by(Favorite.car_id)
            .order_by(favorites.desc(), Favorite.car_id)
            .limit(limit)
        )
        rows = (await self.db.execute(stmt)).all()
        return [PopularCar(car_id=car_id, favorites=count) for car_id, count in rows]
