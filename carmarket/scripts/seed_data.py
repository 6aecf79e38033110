"""Seed an admin, a demo dealer and a handful of listings.

Run with ``python -m carmarket.scripts.seed_data``. Existing data is left alone.
"""
import asyncio
import logging
import uuid
from decimal import Decimal

from sqlalchemy import select

from carmarket.auth.passwords_handler import hash_password_async
from carmarket.core.config import ADMIN_EMAIL, ADMIN_PASSWORD
from carmarket.core.db import AsyncSessionLocal, engine, init_models
from carmarket.core.logging import setup_logging
from carmarket.models import (
    Car,
    CarFeatures,
    Condition,
    Dealer,
    FuelType,
    Transmission,
    User,
    UserRole,
    VehicleType,
)

logger = logging.getLogger("carmarket.scripts.seed_data")

DEALER_EMAIL = "dealer@carmarket.local"
DEALER_PASSWORD = "dealer123"

SAMPLE_CARS = [
    dict(make="Toyota", model="Corolla", year=2018, price=Decimal("6500.00"), mileage=85000,
         fuel_type=FuelType.GAS, transmission=Transmission.AUTOMATIC, vehicle_type=VehicleType.PASSENGER,
         condition=Condition.ACCIDENTED, description="Front-end collision, engine runs fine.", is_featured=True),
    dict(make="Toyota", model="Prius", year=2019, price=Decimal("7200.00"), mileage=64000,
         fuel_type=FuelType.HYBRID, transmission=Transmission.CVT, vehicle_type=VehicleType.PASSENGER,
         condition=Condition.DAMAGED, description="Hail damage on roof and hood."),
    dict(make="Ford", model="Transit", year=2016, price=Decimal("4800.00"), mileage=190000,
         fuel_type=FuelType.DIESEL, transmission=Transmission.MANUAL, vehicle_type=VehicleType.VAN,
         condition=Condition.USED, description="High mileage work van, minor dents."),
    dict(make="Tesla", model="Model 3", year=2021, price=Decimal("18900.00"), mileage=32000,
         fuel_type=FuelType.ELECTRIC, transmission=Transmission.AUTOMATIC, vehicle_type=VehicleType.PASSENGER,
         condition=Condition.ACCIDENTED, description="Side impact, battery verified healthy.", is_featured=True),
    dict(make="Honda", model="CBR600RR", year=2014, price=Decimal("2100.00"), mileage=None,
         fuel_type=FuelType.GAS, transmission=Transmission.MANUAL, vehicle_type=VehicleType.MOTOR,
         condition=Condition.DERELICT, description="Non-runner, sold for parts."),
]


async def seed():
    await init_models()

    async with AsyncSessionLocal() as db:
        existing = (await db.execute(select(User).where(User.email == ADMIN_EMAIL))).scalar_one_or_none()
        if existing:
            logger.info("Seed data already present, nothing to do")
            return

        admin = User(email=ADMIN_EMAIL, password_hash=await hash_password_async(ADMIN_PASSWORD), role=UserRole.ADMIN)
        dealer_user = User(
            id=uuid.uuid4(),
            email=DEALER_EMAIL,
            password_hash=await hash_password_async(DEALER_PASSWORD),
            role=UserRole.DEALER,
        )
        dealer = Dealer(
            id=uuid.uuid4(),
            user_id=dealer_user.id,
            name="Salvage Motors",
            address="12 Breaker Yard Rd",
            phone="+1 555 0100",
            website="https://salvage-motors.example",
        )
        db.add_all([admin, dealer_user, dealer])

        for data in SAMPLE_CARS:
            car = Car(dealer_id=dealer.id, **data)
            car.features = CarFeatures(airbags=True, abs_brakes=True, air_conditioning=data["year"] >= 2016)
            db.add(car)

        await db.commit()
        logger.info(f"Seed data inserted: admin {ADMIN_EMAIL}, dealer {DEALER_EMAIL}, {len(SAMPLE_CARS)} cars")


async def main():
    setup_logging()
    try:
        await seed()
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
