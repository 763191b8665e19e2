from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from subtrack.core.config import get_settings
from subtrack.core.database import Base, get_db
from subtrack.logging import JsonLogFormatter
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

    get_settings.cache_clear()
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_logs_include_correlation_id_for_http(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    response = client.get(f"/api/subscriptions/{uuid.uuid4()}", headers={"X-Correlation-Id": "abc-123"})
    assert response.status_code == 404

    records = [
        record for record in caplog.records if record.name == "subtrack.request" and record.getMessage() == "http.request"
    ]
    assert records
    assert any(
        getattr(record, "correlation_id", None) == "abc-123"
        and getattr(record, "method", None) == "GET"
        and getattr(record, "path", None) == "/api/subscriptions/{id}"
        and getattr(record, "status_code", None) == 404
        and isinstance(getattr(record, "duration_ms", None), float)
        for record in records
    )


def test_store_logs_carry_operation_and_correlation_id(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    response = client.post(
        "/api/subscriptions",
        json={
            "service_name": "Yandex Plus",
            "price": 400,
            "user_id": str(uuid.uuid4()),
            "start_date": "07-2025",
        },
        headers={"X-Correlation-Id": "store-corr-1"},
    )
    assert response.status_code == 201

    records = [record for record in caplog.records if record.name == "subtrack.subscriptions"]
    assert any(
        record.getMessage() == "subscription.created"
        and getattr(record, "operation", None) == "create"
        and getattr(record, "subscription_id", None) == response.json()["sub_id"]
        and getattr(record, "correlation_id", None) == "store-corr-1"
        for record in records
    )


def test_json_formatter_keeps_known_fields_only() -> None:
    record = logging.makeLogRecord(
        {
            "name": "subtrack.subscriptions",
            "levelname": "ERROR",
            "levelno": logging.ERROR,
            "msg": "subscription.storage_failure",
            "correlation_id": "fmt-1",
            "operation": "update",
            "subscription_id": "abc",
            "error": "x" * 900,
            "password": "hunter2",
        }
    )

    payload = json.loads(JsonLogFormatter().format(record))

    assert payload["level"] == "ERROR"
    assert payload["logger"] == "subtrack.subscriptions"
    assert payload["msg"] == "subscription.storage_failure"
    assert payload["correlation_id"] == "fmt-1"
    assert payload["fields"]["operation"] == "update"
    assert payload["fields"]["subscription_id"] == "abc"
    assert len(payload["fields"]["error"]) == 500
    assert "password" not in payload["fields"]
