import uuid
from decimal import Decimal

import pytest
from fastapi import BackgroundTasks

from carmarket.core.cache import CAR_DETAILS_CACHE, CAR_SEARCH_CACHE, DEALER_DETAILS_CACHE, FEATURED_CARS_CACHE
from carmarket.schemas.dealer import DealerRegisterRequest
from carmarket.services.dealer_service import DealerService
from carmarket.services.exceptions import DuplicateEmailError, NotFoundError
from carmarket.services.notification_service import NotificationService

REGISTRATION = {
    "email": "yard@example.com",
    "password": "yardpass",
    "name": "Scrap Yard Ltd",
    "address": "7 Breaker Lane",
    "phone": "555-0199",
    "website": "https://yard.example",
}


async def test_register_dealer(client):
    resp = await client.post("/api/dealers/register", json=REGISTRATION)

    assert resp.status_code == 201
    body = resp.json()
    assert body["name"] == "Scrap Yard Ltd"
    assert body["email"] == "yard@example.com"

    login = await client.post("/api/auth/login", json={"email": "yard@example.com", "password": "yardpass"})
    assert login.status_code == 200
    assert login.json()["role"] == "DEALER"


async def test_register_dealer_duplicate_email(client, buyer):
    resp = await client.post("/api/dealers/register", json={**REGISTRATION, "email": buyer.email})

    assert resp.status_code == 400


async def test_register_dealer_validation(client):
    resp = await client.post("/api/dealers/register", json={**REGISTRATION, "name": "x" * 256, "password": "123"})

    assert resp.status_code == 400
    assert {"name", "password"} <= set(resp.json()["fields"])


async def test_profile_requires_dealer_or_admin(client, buyer, auth_headers):
    resp = await client.get("/api/dealers/profile", headers=auth_headers(buyer))
    assert resp.status_code == 403


async def test_get_and_update_profile(client, dealer, auth_headers, cache):
    headers = auth_headers(dealer.user)
    await cache.put(DEALER_DETAILS_CACHE, str(dealer.id), {"stale": True})

    resp = await client.get("/api/dealers/profile", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["id"] == str(dealer.id)

    resp = await client.put("/api/dealers/profile", json={"phone": "555-9999"}, headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["phone"] == "555-9999"
    assert body["name"] == dealer.name
    assert not await cache.exists(DEALER_DETAILS_CACHE, str(dealer.id))


async def test_rename_refreshes_cached_car_listings(client, dealer, make_car, auth_headers, cache):
    car = await make_car(dealer, is_featured=True)
    headers = auth_headers(dealer.user)

    await client.get(f"/api/public/cars/{car.id}")
    await client.get("/api/public/cars/featured")
    await client.get("/api/public/cars/search", params={"make": "Toyota"})
    assert await cache.exists(CAR_DETAILS_CACHE, str(car.id))

    resp = await client.put("/api/dealers/profile", json={"name": "Renamed Salvage"}, headers=headers)
    assert resp.status_code == 200

    assert not await cache.exists(CAR_DETAILS_CACHE, str(car.id))
    assert not await cache.exists(FEATURED_CARS_CACHE, "all")
    assert await cache.get_cache_keys(CAR_SEARCH_CACHE) == []

    detail = (await client.get(f"/api/public/cars/{car.id}")).json()["data"]
    featured = (await client.get("/api/public/cars/featured")).json()["data"]
    found = (await client.get("/api/public/cars/search", params={"make": "Toyota"})).json()["data"]["content"]
    assert detail["dealer_name"] == "Renamed Salvage"
    assert [c["dealer_name"] for c in featured] == ["Renamed Salvage"]
    assert [c["dealer_name"] for c in found] == ["Renamed Salvage"]


async def test_contact_update_keeps_car_listings_cached(client, dealer, make_car, auth_headers, cache):
    car = await make_car(dealer)
    await client.get(f"/api/public/cars/{car.id}")

    resp = await client.put("/api/dealers/profile", json={"phone": "555-0000"}, headers=auth_headers(dealer.user))
    assert resp.status_code == 200

    assert await cache.exists(CAR_DETAILS_CACHE, str(car.id))


async def test_statistics(client, dealer, make_car, auth_headers):
    await make_car(dealer, price=Decimal("1000.00"), is_featured=True)
    await make_car(dealer, price=Decimal("3000.50"))
    await make_car(dealer, price=Decimal("9999.00"), is_active=False)
    await make_car(dealer, price=Decimal("500.00"), is_active=False, is_featured=True)

    resp = await client.get("/api/dealers/statistics", headers=auth_headers(dealer.user))

    assert resp.status_code == 200
    assert resp.json() == {
        "dealer_id": str(dealer.id),
        "dealer_name": dealer.name,
        "active_cars": 2,
        "inactive_cars": 2,
        "featured_cars": 1,
        "total_inventory_value": "4000.50",
        "average_price": "2000.25",
    }


async def test_statistics_for_dealer_without_cars(client, dealer, admin, auth_headers):
    resp = await client.get(f"/api/dealers/statistics/{dealer.id}", headers=auth_headers(admin))

    assert resp.status_code == 200
    body = resp.json()
    assert body["active_cars"] == 0
    assert body["total_inventory_value"] == "0.00"
    assert body["average_price"] == "0.00"


async def test_search_and_recent(client, make_dealer, auth_headers):
    first = await make_dealer(name="Northern Salvage")
    await make_dealer(name="Southern Wrecks")
    last = await make_dealer(name="NORTH Point Autos")
    headers = auth_headers(first.user)

    found = (await client.get("/api/dealers/search", params={"name": "north"}, headers=headers)).json()
    assert {d["name"] for d in found} == {"Northern Salvage", "NORTH Point Autos"}

    recent = (await client.get("/api/dealers/recent", params={"limit": 1}, headers=headers)).json()
    assert [d["id"] for d in recent] == [str(last.id)]


class TestDealerService:

    async def test_welcome_email_is_queued(self, db_session, cache):
        tasks = BackgroundTasks()
        service = DealerService(db_session, cache, NotificationService(tasks, enabled=True))

        dealer = await service.register_dealer(DealerRegisterRequest(**REGISTRATION))

        assert dealer.email == REGISTRATION["email"]
        assert len(tasks.tasks) == 1
        assert tasks.tasks[0].args[0] == REGISTRATION["email"]

    async def test_duplicate_email(self, db_session, cache, buyer):
        with pytest.raises(DuplicateEmailError):
            await DealerService(db_session, cache).register_dealer(
                DealerRegisterRequest(**{**REGISTRATION, "email": buyer.email})
            )

    async def test_profile_by_id_is_cached(self, db_session, cache, dealer):
        service = DealerService(db_session, cache)

        first = await service.get_dealer_profile_by_id(dealer.id)

        assert await cache.exists(DEALER_DETAILS_CACHE, str(dealer.id))
        assert await service.get_dealer_profile_by_id(dealer.id) == first

    async def test_unknown_dealer(self, db_session, cache):
        with pytest.raises(NotFoundError) as exc_info:
            await DealerService(db_session, cache).get_dealer_statistics(uuid.uuid4())
        assert exc_info.value.error_code == "DEALER_NOT_FOUND"
