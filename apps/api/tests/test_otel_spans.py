from __future__ import annotations

import uuid
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from subtrack.core.config import get_settings
from subtrack.core.database import Base, get_db
from subtrack.main import app
from subtrack.otel import install_inmemory_exporter


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
def span_exporter() -> InMemorySpanExporter:
    exporter = install_inmemory_exporter("subtrack")
    exporter.clear()
    return exporter


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    get_settings.cache_clear()
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_request_span_contains_correlation_id(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    response = client.get("/api/subscriptions/list", headers={"X-Correlation-Id": "otel-corr-1"})
    assert response.status_code == 200

    spans = span_exporter.get_finished_spans()
    assert spans
    assert any(span.attributes.get("correlation_id") == "otel-corr-1" for span in spans)


def test_store_span_contains_subscription_id(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    response = client.post(
        "/api/subscriptions",
        json={
            "service_name": "Yandex Plus",
            "price": 400,
            "user_id": str(uuid.uuid4()),
            "start_date": "07-2025",
        },
        headers={"X-Correlation-Id": "otel-store-1"},
    )
    assert response.status_code == 201

    store_spans = [span for span in span_exporter.get_finished_spans() if span.name == "subscription.create"]
    assert store_spans
    assert any(
        span.attributes.get("subscription_id") == response.json()["sub_id"]
        and span.attributes.get("correlation_id") == "otel-store-1"
        for span in store_spans
    )
