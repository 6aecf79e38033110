import uuid

import pytest
from sqlalchemy import select

from carmarket.core.cache import CAR_DETAILS_CACHE, CAR_SEARCH_CACHE, FEATURED_CARS_CACHE
from carmarket.models.car import Car
from carmarket.models.user import UserRole

CAR_PAYLOAD = {
    "make": "Subaru",
    "model": "Impreza",
    "year": 2017,
    "price": "7450.50",
    "mileage": 98000,
    "fuel_type": "GAS",
    "transmission": "MANUAL",
    "vehicle_type": "PASSENGER",
    "condition": "ACCIDENTED",
    "description": "Rear-ended, trunk needs replacing",
    "features": {"airbags": True, "abs_brakes": True},
    "image_urls": ["http://img/1.jpg", "http://img/2.jpg"],
}


@pytest.fixture
async def dealer_headers(dealer, auth_headers):
    return auth_headers(dealer.user)


async def test_dealer_creates_car(client, dealer, dealer_headers):
    resp = await client.post("/api/cars", json=CAR_PAYLOAD, headers=dealer_headers)

    assert resp.status_code == 201
    body = resp.json()
    assert body["dealer_id"] == str(dealer.id)
    assert body["dealer_name"] == dealer.name
    assert body["is_active"] is True
    assert body["is_featured"] is False
    assert body["features"]["airbags"] is True
    assert body["features"]["electric_windows"] is False
    assert [img["display_order"] for img in body["images"]] == [0, 1]
    assert [img["image_url"] for img in body["images"]] == CAR_PAYLOAD["image_urls"]


async def test_features_row_only_created_when_a_flag_is_set(client, dealer_headers):
    payload = {**CAR_PAYLOAD, "features": {"airbags": False}}

    resp = await client.post("/api/cars", json=payload, headers=dealer_headers)

    assert resp.status_code == 201
    assert resp.json()["features"] is None


@pytest.mark.parametrize("field, value", [
    ("year", 1885),
    ("year", 2031),
    ("price", "0"),
    ("price", "123456789.00"),
    ("price", "10.555"),
    ("mileage", -1),
    ("mileage", 1_000_001),
    ("make", "   "),
    ("model", "x" * 101),
    ("description", "x" * 2001),
    ("fuel_type", "STEAM"),
])
async def test_create_car_validation(client, dealer_headers, field, value):
    resp = await client.post("/api/cars", json={**CAR_PAYLOAD, field: value}, headers=dealer_headers)

    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "Validation failed"
    assert field in body["fields"]


async def test_buyer_cannot_create_car(client, buyer, auth_headers):
    resp = await client.post("/api/cars", json=CAR_PAYLOAD, headers=auth_headers(buyer))
    assert resp.status_code == 403


async def test_cars_require_authentication(client, dealer, make_car):
    car = await make_car(dealer)

    resp = await client.get(f"/api/cars/{car.id}")
    assert resp.status_code == 401


async def test_get_car_and_unknown_car(client, dealer, make_car, buyer, auth_headers):
    car = await make_car(dealer)
    headers = auth_headers(buyer)

    resp = await client.get(f"/api/cars/{car.id}", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["id"] == str(car.id)

    resp = await client.get(f"/api/cars/{uuid.uuid4()}", headers=headers)
    assert resp.status_code == 404
    assert "Car not found" in resp.json()["error"]


async def test_partial_update(client, dealer, make_car, dealer_headers):
    car = await make_car(dealer, price="10000.00", mileage=50000)

    resp = await client.put(f"/api/cars/{car.id}", json={"price": "9500.00"}, headers=dealer_headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["price"] == "9500.00"
    assert body["mileage"] == 50000
    assert body["make"] == car.make


async def test_update_images(client, dealer, dealer_headers):
    created = (await client.post("/api/cars", json=CAR_PAYLOAD, headers=dealer_headers)).json()
    first_image = created["images"][0]

    resp = await client.put(
        f"/api/cars/{created['id']}",
        json={"image_ids_to_remove": [first_image["id"]], "image_urls_to_add": ["http://img/3.jpg"]},
        headers=dealer_headers,
    )

    assert resp.status_code == 200
    images = resp.json()["images"]
    assert [img["image_url"] for img in images] == ["http://img/2.jpg", "http://img/3.jpg"]
    assert images[-1]["display_order"] == 2


async def test_dealer_cannot_modify_another_dealers_car(client, make_dealer, make_car, auth_headers):
    owner = await make_dealer(name="Owner Motors")
    intruder = await make_dealer(name="Intruder Motors")
    car = await make_car(owner)

    headers = auth_headers(intruder.user)
    assert (await client.put(f"/api/cars/{car.id}", json={"price": "1.00"}, headers=headers)).status_code == 403
    assert (await client.delete(f"/api/cars/{car.id}", headers=headers)).status_code == 403


async def test_admin_can_modify_any_car(client, dealer, make_car, admin, auth_headers):
    car = await make_car(dealer)

    resp = await client.put(f"/api/cars/{car.id}", json={"is_featured": True}, headers=auth_headers(admin))

    assert resp.status_code == 200
    assert resp.json()["is_featured"] is True


async def test_soft_delete(client, dealer, make_car, dealer_headers, db_session, cache):
    car = await make_car(dealer, is_featured=True)

    async def public_listings():
        featured = (await client.get("/api/public/cars/featured")).json()["data"]
        found = (await client.get("/api/public/cars/search", params={"make": "Toyota"})).json()["data"]["content"]
        return {c["id"] for c in featured}, {c["id"] for c in found}

    # Warm the featured and search caches before deleting
    assert await public_listings() == ({str(car.id)}, {str(car.id)})
    assert await cache.exists(FEATURED_CARS_CACHE, "all")
    assert await cache.get_cache_keys(CAR_SEARCH_CACHE)

    resp = await client.delete(f"/api/cars/{car.id}", headers=dealer_headers)
    assert resp.status_code == 200
    assert resp.json()["message"] == "Car deleted successfully"

    assert (await client.get(f"/api/cars/{car.id}", headers=dealer_headers)).status_code == 404

    row = (await db_session.execute(select(Car).where(Car.id == car.id))).scalar_one()
    assert row.is_active is False

    recent = (await client.get("/api/cars/recent", headers=dealer_headers)).json()
    assert str(car.id) not in {c["id"] for c in recent}
    assert await public_listings() == (set(), set())


async def test_update_invalidates_caches(client, dealer, make_car, dealer_headers, cache):
    car = await make_car(dealer, is_featured=True)

    await client.get(f"/api/cars/{car.id}", headers=dealer_headers)
    await client.post("/api/cars/search", json={"make": "Toyota"}, headers=dealer_headers)
    await client.get("/api/cars/featured", headers=dealer_headers)
    assert await cache.exists(CAR_DETAILS_CACHE, str(car.id))
    assert await cache.get_cache_keys(CAR_SEARCH_CACHE)
    assert await cache.exists(FEATURED_CARS_CACHE, "all")

    resp = await client.put(f"/api/cars/{car.id}", json={"price": "1234.00"}, headers=dealer_headers)
    assert resp.status_code == 200

    assert not await cache.exists(CAR_DETAILS_CACHE, str(car.id))
    assert await cache.get_cache_keys(CAR_SEARCH_CACHE) == []
    assert not await cache.exists(FEATURED_CARS_CACHE, "all")

    fresh = (await client.get(f"/api/cars/{car.id}", headers=dealer_headers)).json()
    assert fresh["price"] == "1234.00"


async def test_static_routes_are_not_captured_as_ids(client, dealer, make_car, dealer_headers):
    await make_car(dealer, make="Mini", fuel_type="ELECTRIC", is_featured=True)

    for path in ("/api/cars/featured", "/api/cars/recent", "/api/cars/make/mini",
                 "/api/cars/fuel-type/ELECTRIC", f"/api/cars/dealer/{dealer.id}"):
        resp = await client.get(path, headers=dealer_headers)
        assert resp.status_code == 200, path
        assert len(resp.json()) == 1, path

    resp = await client.get("/api/cars/search-text", params={"query": "min"}, headers=dealer_headers)
    assert resp.status_code == 200
    assert len(resp.json()) == 1


async def test_blank_text_search_is_rejected(client, dealer_headers):
    resp = await client.get("/api/cars/search-text", params={"query": "  "}, headers=dealer_headers)

    assert resp.status_code == 400
    assert "query" in resp.json()["fields"]


async def test_cars_by_unknown_dealer(client, dealer_headers):
    resp = await client.get(f"/api/cars/dealer/{uuid.uuid4()}", headers=dealer_headers)
    assert resp.status_code == 404


async def test_count_cars_by_dealer(client, dealer, make_car, dealer_headers):
    await make_car(dealer)
    await make_car(dealer)
    await make_car(dealer, is_active=False)

    resp = await client.get(f"/api/cars/dealer/{dealer.id}/count", headers=dealer_headers)

    assert resp.status_code == 200
    assert resp.json()["count"] == 2


async def test_similar_cars_default_limit(client, dealer, make_car, dealer_headers):
    reference = await make_car(dealer)
    for _ in range(7):
        await make_car(dealer)

    resp = await client.get(f"/api/cars/{reference.id}/similar", headers=dealer_headers)

    assert resp.status_code == 200
    assert len(resp.json()) == 5


async def test_search_endpoint(client, dealer, make_car, dealer_headers):
    await make_car(dealer, make="Volvo", model="V70")
    await make_car(dealer, make="Volvo", model="XC90", is_active=False)

    resp = await client.post("/api/cars/search", json={"make": "volvo"}, headers=dealer_headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["total_elements"] == 1
    assert body["page"] == 0
    assert body["size"] == 20
    assert body["content"][0]["model"] == "V70"


async def test_register_interest(client, dealer, make_car, buyer, auth_headers):
    car = await make_car(dealer)

    resp = await client.post(
        f"/api/cars/{car.id}/interest",
        json={"message": "Is the engine OK?"},
        headers=auth_headers(buyer),
    )

    assert resp.status_code == 200
    assert "notified" in resp.json()["message"]


async def test_dealer_without_profile_cannot_list(client, make_user, auth_headers):
    user = await make_user(role=UserRole.DEALER)

    resp = await client.post("/api/cars", json=CAR_PAYLOAD, headers=auth_headers(user))
    assert resp.status_code == 404
