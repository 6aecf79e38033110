import logging
import uuid
from decimal import Decimal
from typing import List

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.core.cache import CAR_DETAILS_CACHE, DEALER_DETAILS_CACHE, CacheService
from carmarket.core.metrics import track_performance
from carmarket.models.car import Car
from carmarket.models.dealer import Dealer
from carmarket.models.user import UserRole
from carmarket.schemas.dealer import (
    DealerRegisterRequest,
    DealerResponse,
    DealerStatistics,
    DealerUpdateRequest,
)
from carmarket.services.exceptions import DuplicateEmailError, NotFoundError
from carmarket.services.notification_service import NotificationService
from carmarket.services.user_service import UserService

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def to_money(value) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(CENTS)


class DealerService:
    def __init__(self, db: AsyncSession, cache: CacheService, notifier: NotificationService = None):
        self.db = db
        self.cache = cache
        self.notifier = notifier or NotificationService()

    async def _get_dealer(self, dealer_id: uuid.UUID) -> Dealer:
        dealer = await self.db.get(Dealer, dealer_id)
        if not dealer:
            raise NotFoundError(f"Dealer not found with id: {dealer_id}", "DEALER_NOT_FOUND")
        return dealer

    async def get_dealer_for_user(self, user_id: uuid.UUID) -> Dealer:
        dealer = (await self.db.execute(select(Dealer).where(Dealer.user_id == user_id))).scalar_one_or_none()
        if not dealer:
            raise NotFoundError("Dealer profile not found for current user", "DEALER_NOT_FOUND")
        return dealer

    @track_performance(service_name="DealerService")
    async def register_dealer(self, request: DealerRegisterRequest) -> DealerResponse:
        """Create the DEALER user and its dealer profile in one transaction."""
        user = await UserService(self.db).create_user(request.email, request.password, UserRole.DEALER)
        dealer = Dealer(
            id=uuid.uuid4(),
            user_id=user.id,
            name=request.name,
            address=request.address,
            phone=request.phone,
            website=request.website,
        )
        dealer.user = user
        self.db.add(dealer)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateEmailError(f"Email already registered: {request.email}", "DUPLICATE_EMAIL")

        logger.info(f"Dealer registered: {dealer.name} <{user.email}>")
        self.notifier.send_dealer_welcome_email(dealer.name, user.email)
        return DealerResponse.from_dealer(dealer)

    async def get_dealer_profile(self, user_id: uuid.UUID) -> DealerResponse:
        return DealerResponse.from_dealer(await self.get_dealer_for_user(user_id))

    @track_performance(service_name="DealerService")
    async def get_dealer_profile_by_id(self, dealer_id: uuid.UUID) -> DealerResponse:
        cached = await self.cache.get(DEALER_DETAILS_CACHE, str(dealer_id))
        if cached is not None:
            return DealerResponse.model_validate(cached)

        response = DealerResponse.from_dealer(await self._get_dealer(dealer_id))
        await self.cache.put(DEALER_DETAILS_CACHE, str(dealer_id), response.model_dump(mode="json"))
        return response

    @track_performance(service_name="DealerService")
    async def update_dealer_profile(self, user_id: uuid.UUID, request: DealerUpdateRequest) -> DealerResponse:
        dealer = await self.get_dealer_for_user(user_id)
        old_name = dealer.name

        for field, value in request.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(dealer, field, value)

        await self.db.commit()
        await self.cache.evict(DEALER_DETAILS_CACHE, str(dealer.id))
        if dealer.name != old_name:
            await self._invalidate_dealer_car_caches(dealer.id)
        logger.info(f"Dealer profile updated: {dealer.id}")
        return DealerResponse.from_dealer(dealer)

    async def _invalidate_dealer_car_caches(self, dealer_id: uuid.UUID) -> None:
        # Cached car entries embed the dealer name
        car_ids = (await self.db.execute(select(Car.id).where(Car.dealer_id == dealer_id))).scalars().all()
        for car_id in car_ids:
            await self.cache.evict(CAR_DETAILS_CACHE, str(car_id))
        await self.cache.invalidate_listing_caches()

    @track_performance(service_name="DealerService")
    async def get_dealer_statistics(self, dealer_id: uuid.UUID) -> DealerStatistics:
        dealer = await self._get_dealer(dealer_id)

        active = Car.is_active.is_(True)
        stmt = select(
            func.coalesce(func.sum(case((active, 1), else_=0)), 0),
            func.coalesce(func.sum(case((active, 0), else_=1)), 0),
            func.coalesce(func.sum(case((active & Car.is_featured.is_(True), 1), else_=0)), 0),
            func.sum(case((active, Car.price), else_=None)),
            func.avg(case((active, Car.price), else_=None)),
        ).where(Car.dealer_id == dealer_id)

        active_cars, inactive_cars, featured_cars, total_value, average_price = (await self.db.execute(stmt)).one()

        return DealerStatistics(
            dealer_id=dealer.id,
            dealer_name=dealer.name,
            active_cars=int(active_cars),
            inactive_cars=int(inactive_cars),
            featured_cars=int(featured_cars),
            total_inventory_value=to_money(total_value),
            average_price=to_money(average_price),
        )

    async def search_dealers_by_name(self, pattern: str) -> List[DealerResponse]:
        stmt = (
            select(Dealer)
            .where(func.lower(Dealer.name).contains(pattern.lower(), autoescape=True))
            .order_by(Dealer.name, Dealer.id)
        )
        dealers = (await self.db.execute(stmt)).scalars().all()
        return [DealerResponse.from_dealer(d) for d in dealers]

    async def get_recent_dealers(self, limit: int = 10) -> List[DealerResponse]:
        stmt = select(Dealer).order_by(Dealer.created_at.desc(), Dealer.id.desc()).limit(limit)
        dealers = (await self.db.execute(stmt)).scalars().all()
        return [DealerResponse.from_dealer(d) for d in dealers]
