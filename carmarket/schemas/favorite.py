import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from carmarket.schemas.car import CarResponse


class FavoriteRequest(BaseModel):
    car_id: uuid.UUID


class FavoriteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    car_id: uuid.UUID
    created_at: datetime
    car: CarResponse | None = None

    @classmethod
    def from_favorite(cls, favorite) -> "FavoriteResponse":
        return cls(
            id=favorite.id,
            user_id=favorite.user_id,
            car_id=favorite.car_id,
            created_at=favorite.created_at,
            car=CarResponse.from_car(favorite.car) if favorite.car else None,
        )


class FavoriteToggleResponse(BaseModel):
    favorited: bool
    favorite: FavoriteResponse | None = None


class PopularCar(BaseModel):
    car_id: uuid.UUID
    favorites: int
