from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from subtrack.core.config import get_settings
from subtrack.core.database import Base, get_db
from subtrack.main import app


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_metrics_disabled_returns_404(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("METRICS_ENABLED", "false")
    get_settings.cache_clear()

    response = client.get("/metrics")

    assert response.status_code == 404
    get_settings.cache_clear()


def test_metrics_expose_http_and_store_counters(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("METRICS_ENABLED", "true")
    get_settings.cache_clear()

    created = client.post(
        "/api/subscriptions",
        json={
            "service_name": "Kinopoisk",
            "price": 299,
            "user_id": "60601fee-2bf1-4721-ae6f-7636e79a0cba",
            "start_date": "01-2025",
        },
    )
    assert created.status_code == 201
    assert client.get(f"/api/subscriptions/{created.json()['sub_id']}").status_code == 200

    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    body = response.text
    assert 'subscription_store_operations_total{operation="create",outcome="ok"}' in body
    assert 'http_requests_total{method="GET",path="/api/subscriptions/{id}",status="200"}' in body
    get_settings.cache_clear()
