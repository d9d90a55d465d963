"""Shared fixtures: in-memory SQLite database and an authenticated client."""

import os

# Configuration must be in place before backend.app is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["APP_PASSWORD"] = "s3cret"
os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "false"

from datetime import date

import pytest
from fastapi.testclient import TestClient

from backend.app.db import models
from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.main import app


@pytest.fixture(autouse=True)
def _schema():
    """Fresh schema for every test."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def anon_client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def client(anon_client):
    resp = anon_client.post("/api/auth/login", json={"password": "s3cret"})
    assert resp.status_code == 200
    anon_client.headers["Authorization"] = f"Bearer {resp.json()['access_token']}"
    return anon_client


# ── Builders ──


@pytest.fixture
def make_fund(client):
    def _make(name="Disponible", initial_balance=1000, start_date="2024-01-01"):
        resp = client.post(
            "/api/funds",
            json={"name": name, "initial_balance": initial_balance, "start_date": start_date},
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _make


@pytest.fixture
def make_period(client):
    def _make(month=0, year=2024, is_open=True, name=None):
        resp = client.post(
            "/api/periods",
            json={"name": name or f"{month + 1}/{year}", "month": month, "year": year, "is_open": is_open},
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _make


@pytest.fixture
def make_category(client):
    def _make(name="Mercado", **extra):
        resp = client.post("/api/categories", json={"name": name, **extra})
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _make


@pytest.fixture
def unrestricted_category(db):
    """Category with neither relationships nor legacy fund."""

    def _make(name="Varios"):
        category = models.Category(name=name, tipo_gasto="V")
        db.add(category)
        db.commit()
        db.refresh(category)
        return category.id

    return _make


@pytest.fixture
def make_expense(client):
    def _make(category_id, period_id, source_fund_id, amount=100, **extra):
        body = {
            "category_id": category_id,
            "period_id": period_id,
            "date": extra.pop("date", date(2024, 1, 15).isoformat()),
            "payment_method": extra.pop("payment_method", "cash"),
            "amount": amount,
            "source_fund_id": source_fund_id,
            **extra,
        }
        resp = client.post("/api/expenses", json=body)
        assert resp.status_code == 201, resp.text
        return resp.json()["expense"]

    return _make
