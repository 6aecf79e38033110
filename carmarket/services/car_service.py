import logging
import uuid
from typing import List

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.core.cache import (
    CAR_DETAILS_CACHE,
    CAR_SEARCH_CACHE,
    FEATURED_CARS_CACHE,
    CacheService,
)
from carmarket.core.metrics import track_performance
from carmarket.models.car import Car, CarFeatures, CarImage, FuelType
from carmarket.models.dealer import Dealer
from carmarket.models.user import User
from carmarket.schemas.car import (
    CarCreateRequest,
    CarResponse,
    CarSearchRequest,
    CarUpdateRequest,
)
from carmarket.schemas.common import Page
from carmarket.services.exceptions import NotFoundError
from carmarket.services.notification_service import NotificationService
from carmarket.services.validators import BusinessRules

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "created_at": Car.created_at,
    "updated_at": Car.updated_at,
    "price": Car.price,
    "year": Car.year,
    "mileage": Car.mileage,
    "make": Car.make,
    "model": Car.model,
}

FEATURED_KEY = "all"


def car_not_found(car_id) -> NotFoundError:
    return NotFoundError(f"Car not found with id: {car_id}", "CAR_NOT_FOUND")


def active_cars() -> Select:
    return select(Car).where(Car.is_active.is_(True))


class CarService:
    """
    Car listings: search and filtering, similar-car matching, text search
    and the dealer-side create/update/delete lifecycle.

    Every read path only ever returns active cars. Mutations commit their own
    unit of work and then drop the cache entries derived from the listing.
    """

    def __init__(self, db: AsyncSession, cache: CacheService, notifier: NotificationService = None):
        self.db = db
        self.cache = cache
        self.notifier = notifier or NotificationService()

    # ---------------------------------------------------------------- queries

    @staticmethod
    def build_search_query(request: CarSearchRequest) -> Select:
        """AND of every supplied filter on top of the active-only base query."""
        stmt = active_cars()

        if request.make:
            stmt = stmt.where(func.lower(Car.make).contains(request.make.lower(), autoescape=True))
        if request.model:
            stmt = stmt.where(func.lower(Car.model).contains(request.model.lower(), autoescape=True))
        if request.fuel_type:
            stmt = stmt.where(Car.fuel_type == request.fuel_type)
        if request.transmission:
            stmt = stmt.where(Car.transmission == request.transmission)
        if request.vehicle_type:
            stmt = stmt.where(Car.vehicle_type == request.vehicle_type)
        if request.condition:
            stmt = stmt.where(Car.condition == request.condition)
        if request.min_price is not None:
            stmt = stmt.where(Car.price >= request.min_price)
        if request.max_price is not None:
            stmt = stmt.where(Car.price <= request.max_price)
        if request.min_year is not None:
            stmt = stmt.where(Car.year >= request.min_year)
        if request.max_year is not None:
            stmt = stmt.where(Car.year <= request.max_year)
        if request.max_mileage is not None:
            # Unknown mileage never satisfies a mileage bound
            stmt = stmt.where(Car.mileage.is_not(None), Car.mileage <= request.max_mileage)
        if request.featured_only:
            stmt = stmt.where(Car.is_featured.is_(True))

        return stmt

    async def _paginate(self, stmt: Select, page: int, size: int, sort_by: str, sort_direction: str) -> Page[CarResponse]:
        total = (
            await self.db.execute(select(func.count()).select_from(stmt.order_by(None).subquery()))
        ).scalar_one()

        column = SORT_COLUMNS[sort_by]
        if sort_direction == "asc":
            ordering = (column.asc(), Car.id.asc())
        else:
            ordering = (column.desc(), Car.id.desc())

        cars = (
            await self.db.execute(stmt.order_by(*ordering).offset(page * size).limit(size))
        ).scalars().all()

        return Page[CarResponse].build([CarResponse.from_car(car) for car in cars], page, size, total)

    async def _list(self, stmt: Select) -> List[CarResponse]:
        cars = (await self.db.execute(stmt)).scalars().all()
        return [CarResponse.from_car(car) for car in cars]

    async def _load_car(self, car_id: uuid.UUID) -> Car:
        """Fresh copy of a car (active or not) with its relationships reloaded."""
        stmt = select(Car).where(Car.id == car_id).execution_options(populate_existing=True)
        car = (await self.db.execute(stmt)).scalar_one_or_none()
        if not car:
            raise car_not_found(car_id)
        return car

    async def get_active_car(self, car_id: uuid.UUID) -> Car:
        car = (await self.db.execute(active_cars().where(Car.id == car_id))).scalar_one_or_none()
        if not car:
            raise car_not_found(car_id)
        return car

    async def _ensure_dealer_exists(self, dealer_id: uuid.UUID) -> Dealer:
        dealer = await self.db.get(Dealer, dealer_id)
        if not dealer:
            raise NotFoundError(f"Dealer not found with id: {dealer_id}", "DEALER_NOT_FOUND")
        return dealer

    # ---------------------------------------------------------------- search

    @track_performance(service_name="CarService")
    async def search_cars(self, request: CarSearchRequest) -> Page[CarResponse]:
        cache_key = request.cache_key()
        cached = await self.cache.get(CAR_SEARCH_CACHE, cache_key)
        if cached is not None:
            return Page[CarResponse].model_validate(cached)

        page = await self._paginate(
            self.build_search_query(request),
            request.page,
            request.size,
            request.sort_by,
            request.sort_direction,
        )
        await self.cache.put(CAR_SEARCH_CACHE, cache_key, page.model_dump(mode="json"))
        return page

    async def list_active_cars(
        self, page: int = 0, size: int = 20, sort_by: str = "created_at", sort_direction: str = "desc"
    ) -> Page[CarResponse]:
        return await self._paginate(active_cars(), page, size, sort_by, sort_direction)

    @track_performance(service_name="CarService")
    async def find_similar_cars(self, car_id: uuid.UUID, limit: int = 5) -> List[CarResponse]:
        """
        Active cars of the same make priced within 20% and built within two years
        of the reference car, closest price first. The reference itself is excluded.
        """
        reference = await self.db.get(Car, car_id)
        if not reference:
            raise car_not_found(car_id)

        min_price, max_price = BusinessRules.similar_price_band(reference.price)
        min_year, max_year = BusinessRules.similar_year_band(reference.year)

        stmt = (
            active_cars()
            .where(
                Car.id != reference.id,
                func.lower(Car.make) == reference.make.lower(),
                Car.price.between(min_price, max_price),
                Car.year.between(min_year, max_year),
            )
            .order_by(func.abs(Car.price - reference.price), Car.id)
            .limit(limit)
        )
        return await self._list(stmt)

    @track_performance(service_name="CarService")
    async def search_cars_by_text(self, query: str, limit: int = 20) -> List[CarResponse]:
        term = query.strip().lower()
        stmt = (
            active_cars()
            .where(
                or_(
                    func.lower(Car.make).contains(term, autoescape=True),
                    func.lower(Car.model).contains(term, autoescape=True),
                    func.lower(func.coalesce(Car.description, "")).contains(term, autoescape=True),
                )
            )
            .order_by(Car.created_at.desc(), Car.id.desc())
            .limit(limit)
        )
        return await self._list(stmt)

    async def get_featured_cars(self) -> List[CarResponse]:
        cached = await self.cache.get(FEATURED_CARS_CACHE, FEATURED_KEY)
        if cached is not None:
            return [CarResponse.model_validate(item) for item in cached]

        cars = await self._list(
            active_cars()
            .where(Car.is_featured.is_(True))
            .order_by(Car.created_at.desc(), Car.id.desc())
        )
        await self.cache.put(FEATURED_CARS_CACHE, FEATURED_KEY, [car.model_dump(mode="json") for car in cars])
        return cars

    async def get_recent_cars(self, limit: int = 10) -> List[CarResponse]:
        return await self._list(active_cars().order_by(Car.created_at.desc(), Car.id.desc()).limit(limit))

    async def get_cars_by_dealer(self, dealer_id: uuid.UUID) -> List[CarResponse]:
        await self._ensure_dealer_exists(dealer_id)
        return await self._list(
            active_cars().where(Car.dealer_id == dealer_id).order_by(Car.created_at.desc(), Car.id.desc())
        )

    async def count_cars_by_dealer(self, dealer_id: uuid.UUID) -> int:
        await self._ensure_dealer_exists(dealer_id)
        stmt = select(func.count(Car.id)).where(Car.dealer_id == dealer_id, Car.is_active.is_(True))
        return (await self.db.execute(stmt)).scalar_one()

    async def get_cars_by_make(self, make: str) -> List[CarResponse]:
        return await self._list(
            active_cars().where(func.lower(Car.make) == make.lower()).order_by(Car.created_at.desc(), Car.id.desc())
        )

    async def get_cars_by_fuel_type(self, fuel_type: FuelType) -> List[CarResponse]:
        return await self._list(
            active_cars().where(Car.fuel_type == fuel_type).order_by(Car.created_at.desc(), Car.id.desc())
        )

    @track_performance(service_name="CarService")
    async def get_car(self, car_id: uuid.UUID) -> CarResponse:
        cached = await self.cache.get(CAR_DETAILS_CACHE, str(car_id))
        if cached is not None:
            return CarResponse.model_validate(cached)

        response = CarResponse.from_car(await self.get_active_car(car_id))
        await self.cache.put(CAR_DETAILS_CACHE, str(car_id), response.model_dump(mode="json"))
        return response

    # ---------------------------------------------------------------- mutations

    @track_performance(service_name="CarService")
    async def create_car(self, dealer_id: uuid.UUID, request: CarCreateRequest) -> CarResponse:
        await self._ensure_dealer_exists(dealer_id)

        car = Car(
            id=uuid.uuid4(),
            dealer_id=dealer_id,
            is_active=True,
            **request.model_dump(exclude={"features", "image_urls"}),
        )
        if request.features and request.features.any_enabled():
            car.features = CarFeatures(**request.features.model_dump())
        car.images = [
            CarImage(image_url=url, display_order=order)
            for order, url in enumerate(request.image_urls)
        ]

        self.db.add(car)
        await self.db.commit()
        logger.info(f"Car created: {car.id} ({car.make} {car.model}) for dealer {dealer_id}")

        await self.cache.invalidate_listing_caches()
        return CarResponse.from_car(await self._load_car(car.id))

    @track_performance(service_name="CarService")
    async def update_car(self, car_id: uuid.UUID, request: CarUpdateRequest, actor: User) -> CarResponse:
        car = await self._load_car(car_id)
        BusinessRules.ensure_can_modify_car(car, actor)

        was_active = car.is_active
        changes = request.model_dump(
            exclude_unset=True,
            exclude={"features", "image_urls_to_add", "image_ids_to_remove"},
        )
        for field, value in changes.items():
            if value is not None:
                setattr(car, field, value)

        if request.features is not None:
            if car.features:
                for flag, enabled in request.features.model_dump().items():
                    setattr(car.features, flag, enabled)
            else:
                car.features = CarFeatures(**request.features.model_dump())

        if request.image_ids_to_remove:
            remove = set(request.image_ids_to_remove)
            for image in [image for image in car.images if image.id in remove]:
                car.images.remove(image)

        if request.image_urls_to_add:
            next_order = max((image.display_order for image in car.images), default=-1) + 1
            for offset, url in enumerate(request.image_urls_to_add):
                car.images.append(CarImage(image_url=url, display_order=next_order + offset))

        await self.db.commit()
        logger.info(f"Car updated: {car_id} by user {actor.id}")

        await self.cache.invalidate_car_caches(str(car_id))
        car = await self._load_car(car_id)

        if car.is_active != was_active:
            self.notifier.notify_dealer_of_car_status_change(
                car,
                "ACTIVE" if was_active else "INACTIVE",
                "ACTIVE" if car.is_active else "INACTIVE",
            )

        return CarResponse.from_car(car)

    @track_performance(service_name="CarService")
    async def delete_car(self, car_id: uuid.UUID, actor: User) -> None:
        """Soft delete: the row stays, the listing disappears."""
        car = await self._load_car(car_id)
        BusinessRules.ensure_can_modify_car(car, actor)

        car.is_active = False
        await self.db.commit()
        logger.info(f"Car deactivated: {car_id} by user {actor.id}")

        await self.cache.invalidate_car_caches(str(car_id))

    async def register_interest(self, car_id: uuid.UUID, buyer: User, message: str) -> None:
        car = await self.get_active_car(car_id)
        self.notifier.notify_dealer_of_buyer_interest(car, buyer.email, message)
