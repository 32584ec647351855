import pytest
from fastapi.testclient import TestClient

from showcase.api.v1 import routes
from showcase.main import app


@pytest.fixture
def client() -> TestClient:
    test_client = TestClient(app)
    yield test_client
    test_client.close()


def test_healthcheck(client: TestClient) -> None:
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_readiness(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    async def _healthy() -> bool:
        return True

    monkeypatch.setattr(routes, "is_healthy", _healthy)
    response = client.get("/api/v1/health/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ready"}


def test_readiness_reports_store_outage(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    async def _unhealthy() -> bool:
        return False

    monkeypatch.setattr(routes, "is_healthy", _unhealthy)
    response = client.get("/api/v1/health/ready")
    assert response.status_code == 503
    assert response.json() == {"detail": "Store unavailable", "code": "store_unavailable"}


def test_request_id_header(client: TestClient) -> None:
    response = client.get("/api/v1/health")
    assert response.headers.get("X-Request-ID")


def test_request_id_header_is_propagated(client: TestClient) -> None:
    response = client.get("/api/v1/health", headers={"X-Request-ID": "trace-123"})
    assert response.headers.get("X-Request-ID") == "trace-123"


def test_malformed_request_id_is_replaced(client: TestClient) -> None:
    response = client.get("/api/v1/health", headers={"X-Request-ID": "not a valid id"})
    request_id = response.headers.get("X-Request-ID")
    assert request_id
    assert request_id != "not a valid id"
    assert " " not in request_id
