"""API tests: authentication, health, periods and funds."""

from datetime import datetime, timedelta, timezone

from jose import jwt

from backend.app.core.config import settings
from backend.app.db import models


# ── Auth ──


class TestAuth:
    def test_login_wrong_password(self, anon_client):
        resp = anon_client.post("/api/auth/login", json={"password": "nope"})
        assert resp.status_code == 401

    def test_login_returns_bearer_token(self, anon_client):
        resp = anon_client.post("/api/auth/login", json={"password": "s3cret"})
        body = resp.json()
        assert body["token_type"] == "Bearer"
        assert body["expires_in"] == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    def test_endpoints_require_token(self, anon_client):
        assert anon_client.get("/api/periods").status_code == 401
        assert anon_client.get("/api/auth/me").status_code == 401

    def test_invalid_and_expired_tokens(self, anon_client):
        resp = anon_client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Token inválido"

        expired = jwt.encode(
            {"sub": "owner", "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
            settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
        )
        resp = anon_client.get("/api/auth/me", headers={"Authorization": f"Bearer {expired}"})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "token_expired"

    def test_me(self, client):
        assert client.get("/api/auth/me").json() == {"user": "owner", "authenticated": True}


def test_health_endpoints(anon_client):
    assert anon_client.get("/health").json() == {"status": "ok"}
    assert anon_client.get("/ready").json()["db"] == "reachable"
    assert anon_client.get("/api/health").json()["status"] == "ok"


# ── Periods ──


class TestPeriods:
    def test_only_one_open_period(self, client, make_period):
        first = make_period(month=0)
        second = make_period(month=1)
        periods = {p["id"]: p for p in client.get("/api/periods").json()}
        assert periods[first["id"]]["is_open"] is False
        assert periods[second["id"]]["is_open"] is True
        assert client.get("/api/periods/active").json()["id"] == second["id"]

    def test_open_closes_the_rest(self, client, make_period):
        first = make_period(month=0)
        second = make_period(month=1)
        resp = client.post(f"/api/periods/{first['id']}/open")
        assert resp.json()["is_open"] is True
        assert client.get(f"/api/periods/{second['id']}").json()["is_open"] is False

    def test_close_twice(self, client, make_period):
        period = make_period()
        assert client.post(f"/api/periods/close/{period['id']}").json()["is_open"] is False
        resp = client.post(f"/api/periods/close/{period['id']}")
        assert resp.status_code == 409
        assert resp.json()["detail"] == "PERIOD_ALREADY_INACTIVE"
        assert client.get("/api/periods/active").status_code == 404

    def test_listing_is_newest_first(self, client, make_period):
        make_period(month=5, year=2023, is_open=False)
        make_period(month=2, year=2024, is_open=False)
        make_period(month=11, year=2023, is_open=False)
        listed = [(p["year"], p["month"]) for p in client.get("/api/periods").json()]
        assert listed == [(2024, 2), (2023, 11), (2023, 5)]

    def test_update_and_delete(self, client, make_period):
        period = make_period()
        assert client.put(f"/api/periods/{period['id']}", json={}).status_code == 400
        resp = client.put(f"/api/periods/{period['id']}", json={"name": "Enero"})
        assert resp.json()["name"] == "Enero"
        assert client.delete(f"/api/periods/{period['id']}").json()["success"] is True
        assert client.get(f"/api/periods/{period['id']}").status_code == 404

    def test_month_out_of_range(self, client):
        resp = client.post("/api/periods", json={"name": "x", "month": 12, "year": 2024})
        assert resp.status_code == 422


# ── Funds ──


class TestFunds:
    def test_create_sets_current_to_initial(self, make_fund):
        fund = make_fund(initial_balance=250.5)
        assert fund["current_balance"] == 250.5
        assert fund["initial_balance"] == 250.5

    def test_duplicate_name_case_insensitive(self, client, make_fund):
        make_fund(name="Ahorro")
        resp = client.post("/api/funds", json={"name": "ahorro", "start_date": "2024-01-01"})
        assert resp.status_code == 409

    def test_initial_balance_change_shifts_current(self, client, make_fund):
        fund = make_fund(initial_balance=1000)
        resp = client.put(f"/api/funds/{fund['id']}", json={"initial_balance": 1200})
        assert resp.json()["current_balance"] == 1200

    def test_default_fund_cannot_be_deleted(self, client, make_fund):
        default = make_fund(name="Disponible")
        other = make_fund(name="Viajes")
        assert client.delete(f"/api/funds/{default['id']}").status_code == 409
        assert client.delete(f"/api/funds/{other['id']}").status_code == 200

    def test_fund_in_use_reports_usage(self, client, make_fund, make_period, unrestricted_category, make_expense):
        make_fund(name="Disponible")
        other = make_fund(name="Viajes")
        period = make_period()
        make_expense(unrestricted_category(), period["id"], other["id"])
        resp = client.delete(f"/api/funds/{other['id']}")
        assert resp.status_code == 409
        assert resp.json()["detail"]["usage"]["expenses"] == 1

    def test_recalculate_repairs_drift(self, client, db, make_fund, make_period, unrestricted_category, make_expense):
        fund = make_fund(initial_balance=1000)
        period = make_period()
        make_expense(unrestricted_category(), period["id"], fund["id"], amount=150)

        db.get(models.Fund, fund["id"]).current_balance = 1
        db.commit()

        out = client.post(f"/api/funds/{fund['id']}/recalculate").json()
        assert out["old_balance"] == 1
        assert out["new_balance"] == 850
        assert out["calculation_details"]["total_expenses"] == 150
        assert client.get(f"/api/funds/{fund['id']}").json()["current_balance"] == 850

    def test_trend_series(self, client, make_fund):
        fund = make_fund()
        out = client.get(f"/api/funds/{fund['id']}/trend", params={"days": 7}).json()
        assert out["days"] == 7
        assert len(out["series"]) >= 7
