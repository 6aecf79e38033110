import uuid
from typing import List

from fastapi import APIRouter, Depends, Query, status

from carmarket.auth.auth_bearer import get_current_user
from carmarket.models.user import User
from carmarket.routers.dependencies import get_favorites_service
from carmarket.schemas.common import MessageResponse
from carmarket.schemas.favorite import (
    FavoriteRequest,
    FavoriteResponse,
    FavoriteToggleResponse,
    PopularCar,
)
from carmarket.services.favorites_service import FavoritesService

router = APIRouter(prefix="/api/favorites", tags=["favorites"])


@router.post("", response_model=FavoriteResponse, status_code=status.HTTP_201_CREATED)
async def add_favorite(
    payload: FavoriteRequest,
    user: User = Depends(get_current_user),
    favorites: FavoritesService = Depends(get_favorites_service),
):
    return await favorites.add_to_favorites(user, payload.car_id)


@router.get("", response_model=List[FavoriteResponse])
async def list_favorites(user: User = Depends(get_current_user), favorites: FavoritesService = Depends(get_favorites_service)):
    return await favorites.get_user_favorites(user.id)


@router.get("/count")
async def count_favorites(user: User = Depends(get_current_user), favorites: FavoritesService = Depends(get_favorites_service)):
    return {"count": await favorites.count_user_favorites(user.id)}


@router.get("/popular", response_model=List[PopularCar])
async def popular_cars(
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user),
    favorites: FavoritesService = Depends(get_favorites_service),
):
    return await favorites.get_popular_cars(limit)


@router.get("/recent", response_model=List[FavoriteResponse])
async def recent_favorites(
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user),
    favorites: FavoritesService = Depends(get_favorites_service),
):
    return await favorites.get_recent_favorites(user.id, limit)


@router.get("/check/{car_id}")
async def check_favorite(
    car_id: uuid.UUID,
    user: User = Depends(get_current_user),
    favorites: FavoritesService = Depends(get_favorites_service),
):
    return {"car_id": car_id, "favorited": await favorites.is_in_favorites(user.id, car_id)}


@router.get("/car/{car_id}/count")
async def count_car_favorites(
    car_id: uuid.UUID,
    user: User = Depends(get_current_user),
    favorites: FavoritesService = Depends(get_favorites_service),
):
    return {"car_id": car_id, "count": await favorites.count_car_favorites(car_id)}


@router.post("/{car_id}/toggle", response_model=FavoriteToggleResponse)
async def toggle_favorite(
    car_id: uuid.UUID,
    user: User = Depends(get_current_user),
    favorites: FavoritesService = Depends(get_favorites_service),
):
    return await favorites.toggle_favorite(user, car_id)


@router.delete("/{car_id}", response_model=MessageResponse)
async def remove_favorite(
    car_id: uuid.UUID,
    user: User = Depends(get_current_user),
    favorites: FavoritesService = Depends(get_favorites_service),
):
    await favorites.remove_from_favorites(user.id, car_id)
    return MessageResponse(message="Car removed from favorites")
