from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.core import config
from carmarket.core.cache import CacheService, get_cache
from carmarket.core.db import get_db
from carmarket.services.admin_service import AdminService
from carmarket.services.car_service import CarService
from carmarket.services.dealer_service import DealerService
from carmarket.services.favorites_service import FavoritesService
from carmarket.services.image_service import ImageService
from carmarket.services.notification_service import NotificationService, get_notification_service
from carmarket.services.user_service import UserService


def get_user_service(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db)


def get_car_service(
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    notifier: NotificationService = Depends(get_notification_service),
) -> CarService:
    return CarService(db, cache, notifier)


def get_dealer_service(
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    notifier: NotificationService = Depends(get_notification_service),
) -> DealerService:
    return DealerService(db, cache, notifier)


def get_favorites_service(
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
) -> FavoritesService:
    return FavoritesService(db, notifier)


def get_admin_service(db: AsyncSession = Depends(get_db)) -> AdminService:
    return AdminService(db)


def get_image_service(db: AsyncSession = Depends(get_db)) -> ImageService:
    # Read at call time so the storage location can be reconfigured without a restart
    return ImageService(db, config.IMAGE_STORAGE_DIR, config.IMAGE_BASE_URL)
