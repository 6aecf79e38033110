from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carmarket.core.db import Base
from carmarket.models.user import utcnow

if TYPE_CHECKING:
    from carmarket.models.dealer import Dealer


class FuelType(str, enum.Enum):
    GAS = "GAS"
    HYBRID = "HYBRID"
    DIESEL = "DIESEL"
    ELECTRIC = "ELECTRIC"


class Transmission(str, enum.Enum):
    MANUAL = "MANUAL"
    AUTOMATIC = "AUTOMATIC"
    CVT = "CVT"


class VehicleType(str, enum.Enum):
    VAN = "VAN"
    MOTOR = "MOTOR"
    PASSENGER = "PASSENGER"
    TRUCK = "TRUCK"


class Condition(str, enum.Enum):
    DAMAGED = "DAMAGED"
    USED = "USED"
    ACCIDENTED = "ACCIDENTED"
    DERELICT = "DERELICT"


class Car(Base):
    __tablename__ = "cars"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )

    dealer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("dealers.id"),
        index=True
    )

    make: Mapped[str] = mapped_column(
        String(100),
        index=True
    )

    model: Mapped[str] = mapped_column(
        String(100),
        index=True
    )

    year: Mapped[int] = mapped_column(
        Integer,
        index=True
    )

    price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        index=True
    )

    mileage: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True
    )

    fuel_type: Mapped[FuelType] = mapped_column(
        Enum(FuelType, native_enum=False, length=16)
    )

    transmission: Mapped[Transmission] = mapped_column(
        Enum(Transmission, native_enum=False, length=16)
    )

    vehicle_type: Mapped[VehicleType] = mapped_column(
        Enum(VehicleType, native_enum=False, length=16)
    )

    condition: Mapped[Condition] = mapped_column(
        Enum(Condition, native_enum=False, length=16)
    )

    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True
    )

    is_featured: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        index=True
    )

    # Soft delete flag; inactive rows never show up in listings
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        index=True
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow
    )

    dealer: Mapped[Dealer] = relationship(
        back_populates="cars",
        lazy="selectin"
    )

    features: Mapped[CarFeatures | None] = relationship(
        back_populates="car",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    images: Mapped[List[CarImage]] = relationship(
        back_populates="car",
        cascade="all, delete-orphan",
        order_by="CarImage.display_order",
        lazy="selectin"
    )


class CarFeatures(Base):
    __tablename__ = "car_features"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )

    car_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("cars.id"),
        unique=True
    )

    airbags: Mapped[bool] = mapped_column(Boolean, default=False)
    abs_brakes: Mapped[bool] = mapped_column(Boolean, default=False)
    air_conditioning: Mapped[bool] = mapped_column(Boolean, default=False)
    power_steering: Mapped[bool] = mapped_column(Boolean, default=False)
    central_locking: Mapped[bool] = mapped_column(Boolean, default=False)
    electric_windows: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow
    )

    car: Mapped[Car] = relationship(
        back_populates="features"
    )


class CarImage(Base):
    __tablename__ = "car_images"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )

    car_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("cars.id"),
        index=True
    )

    image_url: Mapped[str] = mapped_column(
        String(1024)
    )

    alt_text: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True
    )

    display_order: Mapped[int] = mapped_column(
        Integer,
        default=0
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow
    )

    car: Mapped[Car] = relationship(
        back_populates="images"
    )
