from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from app.api.routers.system import reset_ready_cache
from app.config import settings
from app.main import app
from app.version import APP_VERSION


@pytest.fixture(autouse=True)
def isolated_database(tmp_path: Path) -> None:
    settings.database_url = f"sqlite:///{tmp_path}/test.db"
    reset_ready_cache()


def test_root_endpoint_reports_version() -> None:
    with TestClient(app) as client:
        response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"service": "prdforge-backend", "status": "running", "version": APP_VERSION}


def test_health_endpoint() -> None:
    with TestClient(app) as client:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


def test_ready_endpoint() -> None:
    with TestClient(app) as client:
        response = client.get("/ready")
        assert response.status_code == 200
        payload = response.json()
        assert payload["status"] == "ready"
        assert payload["checks"]["db"] == {"ok": True, "backend": "sqlite"}


def test_ready_endpoint_reports_unsupported_database() -> None:
    with TestClient(app) as client:
        settings.database_url = "postgresql://localhost/prdforge"
        response = client.get("/ready")
    assert response.status_code == 503
    payload = response.json()
    assert payload["status"] == "not_ready"
    assert payload["checks"]["db"]["ok"] is False
    assert payload["checks"]["db"]["backend"] == "unknown"
