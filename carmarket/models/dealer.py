from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carmarket.core.db import Base
from carmarket.models.user import utcnow

if TYPE_CHECKING:
    from carmarket.models.car import Car
    from carmarket.models.user import User


class Dealer(Base):
    __tablename__ = "dealers"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id"),
        unique=True,
        index=True
    )

    name: Mapped[str] = mapped_column(
        String(255)
    )

    address: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True
    )

    phone: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True
    )

    website: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True
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

    # The owning user is needed for every profile response (e-mail)
    user: Mapped[User] = relationship(
        back_populates="dealer",
        lazy="selectin"
    )

    cars: Mapped[List[Car]] = relationship(
        back_populates="dealer",
        lazy="raise"
    )
