from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carmarket.core.db import Base
from carmarket.models.user import utcnow

if TYPE_CHECKING:
    from carmarket.models.car import Car


class Favorite(Base):
    __tablename__ = "favorites"
    __table_args__ = (
        UniqueConstraint("user_id", "car_id", name="uq_favorites_user_car"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id"),
        index=True
    )

    car_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("cars.id"),
        index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        index=True
    )

    car: Mapped[Car] = relationship(
        lazy="selectin"
    )
