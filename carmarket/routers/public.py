import uuid
from typing import Annotated, List

from fastapi import APIRouter, Depends, Query, Request

from carmarket.middleware.rate_limit import PUBLIC_LIMIT, SEARCH_LIMIT, limiter
from carmarket.routers.dependencies import get_car_service, get_dealer_service
from carmarket.schemas.car import CarResponse, CarSearchRequest, SortDirection, SortField
from carmarket.schemas.common import ApiResponse, Page
from carmarket.schemas.dealer import DealerResponse, DealerStatistics
from carmarket.services.car_service import CarService
from carmarket.services.dealer_service import DealerService

router = APIRouter(prefix="/api/public", tags=["public"])


@router.get("/cars", response_model=ApiResponse[Page[CarResponse]])
@limiter.limit(PUBLIC_LIMIT)
async def list_cars(
    request: Request,
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=100),
    sort_by: SortField = "created_at",
    sort_direction: SortDirection = "desc",
    cars: CarService = Depends(get_car_service),
):
    result = await cars.list_active_cars(page, size, sort_by, sort_direction)
    return ApiResponse(message="Cars retrieved successfully", data=result)


@router.get("/cars/search", response_model=ApiResponse[Page[CarResponse]])
@limiter.limit(SEARCH_LIMIT)
async def search_cars(
    request: Request,
    criteria: Annotated[CarSearchRequest, Query()],
    cars: CarService = Depends(get_car_service),
):
    result = await cars.search_cars(criteria)
    return ApiResponse(message=f"Found {result.total_elements} cars", data=result)


@router.get("/cars/featured", response_model=ApiResponse[List[CarResponse]])
@limiter.limit(PUBLIC_LIMIT)
async def featured_cars(request: Request, cars: CarService = Depends(get_car_service)):
    return ApiResponse(message="Featured cars retrieved successfully", data=await cars.get_featured_cars())


@router.get("/cars/recent", response_model=ApiResponse[List[CarResponse]])
@limiter.limit(PUBLIC_LIMIT)
async def recent_cars(
    request: Request,
    limit: int = Query(10, ge=1, le=100),
    cars: CarService = Depends(get_car_service),
):
    return ApiResponse(message="Recent cars retrieved successfully", data=await cars.get_recent_cars(limit))


@router.get("/cars/{car_id}", response_model=ApiResponse[CarResponse])
@limiter.limit(PUBLIC_LIMIT)
async def get_car(request: Request, car_id: uuid.UUID, cars: CarService = Depends(get_car_service)):
    return ApiResponse(message="Car retrieved successfully", data=await cars.get_car(car_id))


@router.get("/cars/{car_id}/similar", response_model=ApiResponse[List[CarResponse]])
@limiter.limit(PUBLIC_LIMIT)
async def similar_cars(
    request: Request,
    car_id: uuid.UUID,
    limit: int = Query(10, ge=1, le=50),
    cars: CarService = Depends(get_car_service),
):
    return ApiResponse(message="Similar cars retrieved successfully", data=await cars.find_similar_cars(car_id, limit))


@router.get("/dealers/search", response_model=ApiResponse[List[DealerResponse]])
@limiter.limit(SEARCH_LIMIT)
async def search_dealers(
    request: Request,
    pattern: str = Query(..., min_length=1, max_length=255),
    dealers: DealerService = Depends(get_dealer_service),
):
    result = await dealers.search_dealers_by_name(pattern)
    return ApiResponse(message=f"Found {len(result)} dealers", data=result)


@router.get("/dealers/{dealer_id}", response_model=ApiResponse[DealerResponse])
@limiter.limit(PUBLIC_LIMIT)
async def get_dealer(request: Request, dealer_id: uuid.UUID, dealers: DealerService = Depends(get_dealer_service)):
    return ApiResponse(message="Dealer retrieved successfully", data=await dealers.get_dealer_profile_by_id(dealer_id))


@router.get("/dealers/{dealer_id}/stats", response_model=ApiResponse[DealerStatistics])
@limiter.limit(PUBLIC_LIMIT)
async def dealer_stats(request: Request, dealer_id: uuid.UUID, dealers: DealerService = Depends(get_dealer_service)):
    return ApiResponse(message="Dealer statistics retrieved successfully", data=await dealers.get_dealer_statistics(dealer_id))


@router.get("/dealers/{dealer_id}/cars", response_model=ApiResponse[List[CarResponse]])
@limiter.limit(PUBLIC_LIMIT)
async def dealer_cars(request: Request, dealer_id: uuid.UUID, cars: CarService = Depends(get_car_service)):
    return ApiResponse(message="Dealer cars retrieved successfully", data=await cars.get_cars_by_dealer(dealer_id))
