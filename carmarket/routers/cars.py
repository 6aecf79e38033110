import uuid
from typing import List

from fastapi import APIRouter, Depends, Query, Request, status

from carmarket.auth.auth_bearer import get_current_user
from carmarket.auth.rbac import DEALER_OR_ADMIN, require_roles
from carmarket.exceptions import ValidationError
from carmarket.middleware.rate_limit import SEARCH_LIMIT, limiter
from carmarket.models.car import FuelType
from carmarket.models.user import User
from carmarket.routers.dependencies import get_car_service, get_dealer_service
from carmarket.schemas.car import (
    CarCreateRequest,
    CarResponse,
    CarSearchRequest,
    CarUpdateRequest,
    InterestRequest,
)
from carmarket.schemas.common import MessageResponse, Page
from carmarket.services.car_service import CarService
from carmarket.services.dealer_service import DealerService

router = APIRouter(
    prefix="/api/cars",
    tags=["cars"],
    dependencies=[Depends(get_current_user)],
)

# Static paths are declared before /{car_id} so they are not captured as ids


@router.post("", response_model=CarResponse, status_code=status.HTTP_201_CREATED)
async def create_car(
    payload: CarCreateRequest,
    user: User = Depends(require_roles(*DEALER_OR_ADMIN)),
    cars: CarService = Depends(get_car_service),
    dealers: DealerService = Depends(get_dealer_service),
):
    dealer = await dealers.get_dealer_for_user(user.id)
    return await cars.create_car(dealer.id, payload)


@router.post("/search", response_model=Page[CarResponse])
@limiter.limit(SEARCH_LIMIT)
async def search_cars(request: Request, criteria: CarSearchRequest, cars: CarService = Depends(get_car_service)):
    return await cars.search_cars(criteria)


@router.get("/search-text", response_model=List[CarResponse])
@limiter.limit(SEARCH_LIMIT)
async def search_cars_by_text(
    request: Request,
    query: str = Query(..., max_length=200),
    limit: int = Query(20, ge=1, le=100),
    cars: CarService = Depends(get_car_service),
):
    if not query.strip():
        raise ValidationError("Search query must not be blank", field="query")
    return await cars.search_cars_by_text(query, limit)


@router.get("/featured", response_model=List[CarResponse])
async def get_featured_cars(cars: CarService = Depends(get_car_service)):
    return await cars.get_featured_cars()


@router.get("/recent", response_model=List[CarResponse])
async def get_recent_cars(limit: int = Query(10, ge=1, le=100), cars: CarService = Depends(get_car_service)):
    return await cars.get_recent_cars(limit)


@router.get("/make/{make}", response_model=List[CarResponse])
async def get_cars_by_make(make: str, cars: CarService = Depends(get_car_service)):
    return await cars.get_cars_by_make(make)


@router.get("/fuel-type/{fuel_type}", response_model=List[CarResponse])
async def get_cars_by_fuel_type(fuel_type: FuelType, cars: CarService = Depends(get_car_service)):
    return await cars.get_cars_by_fuel_type(fuel_type)


@router.get("/dealer/{dealer_id}", response_model=List[CarResponse])
async def get_cars_by_dealer(dealer_id: uuid.UUID, cars: CarService = Depends(get_car_service)):
    return await cars.get_cars_by_dealer(dealer_id)


@router.get("/dealer/{dealer_id}/count")
async def count_cars_by_dealer(dealer_id: uuid.UUID, cars: CarService = Depends(get_car_service)):
    return {"dealer_id": dealer_id, "count": await cars.count_cars_by_dealer(dealer_id)}


@router.get("/{car_id}", response_model=CarResponse)
async def get_car(car_id: uuid.UUID, cars: CarService = Depends(get_car_service)):
    return await cars.get_car(car_id)


@router.put("/{car_id}", response_model=CarResponse)
async def update_car(
    car_id: uuid.UUID,
    payload: CarUpdateRequest,
    user: User = Depends(require_roles(*DEALER_OR_ADMIN)),
    cars: CarService = Depends(get_car_service),
):
    return await cars.update_car(car_id, payload, user)


@router.delete("/{car_id}", response_model=MessageResponse)
async def delete_car(
    car_id: uuid.UUID,
    user: User = Depends(require_roles(*DEALER_OR_ADMIN)),
    cars: CarService = Depends(get_car_service),
):
    await cars.delete_car(car_id, user)
    return MessageResponse(message="Car deleted successfully")


@router.get("/{car_id}/similar", response_model=List[CarResponse])
async def get_similar_cars(
    car_id: uuid.UUID,
    limit: int = Query(5, ge=1, le=50),
    cars: CarService = Depends(get_car_service),
):
    return await cars.find_similar_cars(car_id, limit)


@router.post("/{car_id}/interest", response_model=MessageResponse)
async def register_interest(
    car_id: uuid.UUID,
    payload: InterestRequest,
    user: User = Depends(get_current_user),
    cars: CarService = Depends(get_car_service),
):
    """Let the dealer know a buyer is interested in the car."""
    await cars.register_interest(car_id, user, payload.message)
    return MessageResponse(message="The dealer has been notified of your interest")
