async def test_health_endpoint_returns_ok(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": "ok"}


async def test_prometheus_endpoint_exposes_service_metrics(client):
    # Any tracked service call registers the counters
    await client.get("/api/public/cars/search")

    response = await client.get("/metrics/prometheus")

    assert response.status_code == 200
    assert "carmarket_service_calls_total" in response.text
    assert "carmarket_info" in response.text
