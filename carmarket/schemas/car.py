import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from carmarket.models.car import Condition, FuelType, Transmission, VehicleType

SortField = Literal["created_at", "updated_at", "price", "year", "mileage", "make", "model"]
SortDirection = Literal["asc", "desc"]

MIN_YEAR = 1886
MAX_YEAR = 2030
MAX_MILEAGE = 1_000_000


def _not_blank(v: Optional[str]) -> Optional[str]:
    if v is not None and not v.strip():
        raise ValueError("must not be blank")
    return v.strip() if v is not None else v


class CarFeaturesSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    airbags: bool = False
    abs_brakes: bool = False
    air_conditioning: bool = False
    power_steering: bool = False
    central_locking: bool = False
    electric_windows: bool = False

    def any_enabled(self) -> bool:
        return any(self.model_dump().values())


class CarCreateRequest(BaseModel):
    make: str = Field(..., max_length=100)
    model: str = Field(..., max_length=100)
    year: int = Field(..., ge=MIN_YEAR, le=MAX_YEAR)
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    mileage: Optional[int] = Field(None, ge=0, le=MAX_MILEAGE)
    fuel_type: FuelType
    transmission: Transmission
    vehicle_type: VehicleType
    condition: Condition
    description: Optional[str] = Field(None, max_length=2000)
    is_featured: bool = False
    features: Optional[CarFeaturesSchema] = None
    image_urls: List[str] = Field(default_factory=list)

    @field_validator("make", "model")
    def make_model_not_blank(cls, v):
        return _not_blank(v)


class CarUpdateRequest(BaseModel):
    """Partial update: only the supplied fields are applied."""
    make: Optional[str] = Field(None, max_length=100)
    model: Optional[str] = Field(None, max_length=100)
    year: Optional[int] = Field(None, ge=MIN_YEAR, le=MAX_YEAR)
    price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    mileage: Optional[int] = Field(None, ge=0, le=MAX_MILEAGE)
    fuel_type: Optional[FuelType] = None
    transmission: Optional[Transmission] = None
    vehicle_type: Optional[VehicleType] = None
    condition: Optional[Condition] = None
    description: Optional[str] = Field(None, max_length=2000)
    is_featured: Optional[bool] = None
    is_active: Optional[bool] = None
    features: Optional[CarFeaturesSchema] = None
    image_urls_to_add: List[str] = Field(default_factory=list)
    image_ids_to_remove: List[uuid.UUID] = Field(default_factory=list)

    @field_validator("make", "model")
    def make_model_not_blank(cls, v):
        return _not_blank(v)


class CarSearchRequest(BaseModel):
    make: Optional[str] = None
    model: Optional[str] = None
    fuel_type: Optional[FuelType] = None
    transmission: Optional[Transmission] = None
    vehicle_type: Optional[VehicleType] = None
    condition: Optional[Condition] = None
    min_price: Optional[Decimal] = Field(None, ge=0)
    max_price: Optional[Decimal] = Field(None, ge=0)
    min_year: Optional[int] = None
    max_year: Optional[int] = None
    max_mileage: Optional[int] = Field(None, ge=0)
    featured_only: bool = False

    page: int = Field(0, ge=0)
    size: int = Field(20, ge=1, le=100)
    sort_by: SortField = "created_at"
    sort_direction: SortDirection = "desc"

    def cache_key(self) -> str:
        return self.model_dump_json()


class CarImageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    image_url: str
    alt_text: Optional[str] = None
    display_order: int


class CarResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    dealer_id: uuid.UUID
    dealer_name: Optional[str] = None
    make: str
    model: str
    year: int
    price: Decimal
    mileage: Optional[int] = None
    fuel_type: FuelType
    transmission: Transmission
    vehicle_type: VehicleType
    condition: Condition
    description: Optional[str] = None
    is_featured: bool
    is_active: bool
    features: Optional[CarFeaturesSchema] = None
    images: List[CarImageResponse] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_car(cls, car) -> "CarResponse":
        response = cls.model_validate(car)
        response.dealer_name = car.dealer.name if car.dealer else None
        return response


class InterestRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)
