import uuid
from decimal import Decimal

import pytest

from carmarket.services.car_service import CarService
from carmarket.services.exceptions import NotFoundError


@pytest.fixture
def service(db_session, cache):
    return CarService(db_session, cache)


@pytest.fixture
async def reference(dealer, make_car):
    return await make_car(dealer, make="Honda", model="Civic", year=2018, price=Decimal("10000.00"))


async def test_similar_cars_respect_price_and_year_bands(service, dealer, make_car, reference):
    inside = [
        await make_car(dealer, make="Honda", model="Accord", year=2018, price=Decimal("8000.00")),
        await make_car(dealer, make="HONDA", model="Jazz", year=2016, price=Decimal("12000.00")),
        await make_car(dealer, make="honda", model="Civic", year=2020, price=Decimal("10100.00")),
    ]
    outside = [
        await make_car(dealer, make="Honda", model="Accord", year=2018, price=Decimal("7999.99")),
        await make_car(dealer, make="Honda", model="Accord", year=2018, price=Decimal("12000.01")),
        await make_car(dealer, make="Honda", model="Civic", year=2015, price=Decimal("10000.00")),
        await make_car(dealer, make="Honda", model="Civic", year=2021, price=Decimal("10000.00")),
        await make_car(dealer, make="Toyota", model="Corolla", year=2018, price=Decimal("10000.00")),
        await make_car(dealer, make="Honda", model="Civic", year=2018, price=Decimal("10000.00"), is_active=False),
    ]

    similar = await service.find_similar_cars(reference.id, limit=10)
    ids = {car.id for car in similar}

    assert ids == {car.id for car in inside}
    assert not ids & {car.id for car in outside}
    assert reference.id not in ids


async def test_similar_cars_ordered_by_price_distance(service, dealer, make_car, reference):
    far = await make_car(dealer, make="Honda", year=2018, price=Decimal("11900.00"))
    near = await make_car(dealer, make="Honda", year=2018, price=Decimal("9950.00"))
    middle = await make_car(dealer, make="Honda", year=2018, price=Decimal("10500.00"))

    similar = await service.find_similar_cars(reference.id, limit=10)

    assert [car.id for car in similar] == [near.id, middle.id, far.id]


async def test_similar_cars_capped_at_limit(service, dealer, make_car, reference):
    for offset in range(6):
        await make_car(dealer, make="Honda", year=2018, price=Decimal(10000 + offset * 100))

    assert len(await service.find_similar_cars(reference.id, limit=3)) == 3
    assert len(await service.find_similar_cars(reference.id)) == 5


async def test_similar_cars_for_unknown_car(service):
    with pytest.raises(NotFoundError) as exc_info:
        await service.find_similar_cars(uuid.uuid4())

    assert exc_info.value.error_code == "CAR_NOT_FOUND"


async def test_no_similar_cars_is_empty_list(service, reference):
    assert await service.find_similar_cars(reference.id) == []


class TestTextSearch:
    """Case-insensitive substring matching over make, model and description."""

    async def test_matches_make_model_and_description(self, service, dealer, make_car):
        by_make = await make_car(dealer, make="Volkswagen", model="Golf", description=None)
        by_model = await make_car(dealer, make="Seat", model="Ibiza Wagen", description="Clean")
        by_description = await make_car(dealer, make="Skoda", model="Octavia", description="Parts from a VW WAGEN")
        await make_car(dealer, make="Fiat", model="Punto", description="Nothing relevant")

        results = await service.search_cars_by_text("wagen")

        assert {car.id for car in results} == {by_make.id, by_model.id, by_description.id}

    async def test_excludes_inactive_and_respects_limit(self, service, dealer, make_car):
        await make_car(dealer, make="Mazda", model="MX-5", is_active=False)
        for _ in range(3):
            await make_car(dealer, make="Mazda", model="3")

        results = await service.search_cars_by_text("mazda", limit=2)

        assert len(results) == 2
        assert all(car.is_active for car in results)

    async def test_newest_first(self, service, dealer, make_car):
        older = await make_car(dealer, make="Kia", model="Rio")
        newer = await make_car(dealer, make="Kia", model="Ceed")

        results = await service.search_cars_by_text("kia")

        assert [car.id for car in results] == [newer.id, older.id]

    async def test_like_wildcards_are_literal(self, service, dealer, make_car):
        await make_car(dealer, make="Opel", model="Astra")

        assert await service.search_cars_by_text("%") == []
