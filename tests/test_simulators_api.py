"""API tests: loan, investment and interest-rate simulators."""

import pytest


# ── Fixtures ──


@pytest.fixture
def loan(client):
    resp = client.post(
        "/api/loan-scenarios",
        json={"name": " Carro ", "principal": 10000, "interest_rate": 12, "term_months": 12, "start_date": "2024-01-31"},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.fixture
def invest(client):
    resp = client.post(
        "/api/invest-scenarios",
        json={"name": "CDT", "initial_amount": 1000, "monthly_contribution": 100, "term_months": 12, "annual_rate": 10},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


# ── Loans ──


class TestLoanScenarios:
    def test_create_includes_summary(self, loan):
        assert loan["name"] == "Carro"
        assert loan["currency"] == "USD"
        assert loan["monthly_payment"] == pytest.approx(885.62, abs=0.01)
        assert loan["payoff_date"] == "2025-01-31"

    def test_rejects_invalid_inputs(self, client):
        base = {"name": "x", "principal": 1000, "interest_rate": 10, "term_months": 12, "start_date": "2024-01-01"}
        for bad in ({"principal": 0}, {"interest_rate": 0}, {"term_months": 0}, {"currency": "BTC"}):
            assert client.post("/api/loan-scenarios", json={**base, **bad}).status_code == 422

    def test_update_recomputes(self, client, loan):
        resp = client.put(f"/api/loan-scenarios/{loan['id']}", json={"term_months": 24})
        assert resp.json()["monthly_payment"] < loan["monthly_payment"]
        assert client.put(f"/api/loan-scenarios/{loan['id']}", json={}).status_code == 400

    def test_schedule_with_extra_payment(self, client, loan):
        base = client.get(f"/api/loan-scenarios/{loan['id']}/schedule").json()
        assert len(base["payments"]) == 12
        assert base["months_saved"] == 0

        resp = client.post(f"/api/loan-scenarios/{loan['id']}/extra-payments", json={"payment_number": 2, "amount": 4000})
        assert resp.status_code == 201

        out = client.get(f"/api/loan-scenarios/{loan['id']}/schedule").json()
        assert out["months_saved"] > 0
        assert out["interest_saved"] > 0
        assert out["payments"][1]["is_extra_payment"] is True
        assert len(out["extra_payments"]) == 1

    def test_extra_payment_number_in_range(self, client, loan):
        resp = client.post(f"/api/loan-scenarios/{loan['id']}/extra-payments", json={"payment_number": 13, "amount": 10})
        assert resp.status_code == 400

    def test_extra_payment_update_and_delete(self, client, loan):
        extra = client.post(
            f"/api/loan-scenarios/{loan['id']}/extra-payments", json={"payment_number": 3, "amount": 100}
        ).json()
        url = f"/api/loan-scenarios/{loan['id']}/extra-payments/{extra['id']}"
        assert client.put(url, json={"amount": 250}).json()["amount"] == 250
        assert client.delete(url).json()["success"] is True
        assert client.delete(url).status_code == 404

    def test_comparisons(self, client, loan):
        out = client.get(f"/api/loan-scenarios/{loan['id']}/comparisons", params={"rates": "10, 12,15"}).json()
        assert [r["interest_rate"] for r in out["comparisons"]] == [10, 12, 15]
        assert client.get(f"/api/loan-scenarios/{loan['id']}/comparisons", params={"rates": "abc"}).status_code == 400
        assert client.get(f"/api/loan-scenarios/{loan['id']}/comparisons", params={"rates": "150"}).status_code == 400

    def test_range_summary(self, client, loan):
        out = client.get(f"/api/loan-scenarios/{loan['id']}/range-summary", params={"start": 1, "end": 6}).json()
        assert out["payment_count"] == 6
        assert 0 < out["principal_paid_percentage"] < 100
        bad = client.get(f"/api/loan-scenarios/{loan['id']}/range-summary", params={"start": 6, "end": 2})
        assert bad.status_code == 400

    def test_delete_cascades_extra_payments(self, client, loan):
        client.post(f"/api/loan-scenarios/{loan['id']}/extra-payments", json={"payment_number": 1, "amount": 10})
        assert client.delete(f"/api/loan-scenarios/{loan['id']}").status_code == 200
        assert client.get(f"/api/loan-scenarios/{loan['id']}").status_code == 404


# ── Investments ──


class TestInvestScenarios:
    def test_projection_monthly(self, client, invest):
        out = client.get(f"/api/invest-scenarios/{invest['id']}/projection").json()
        assert out["mode"] == "monthly"
        assert len(out["schedule"]) == 12
        assert out["summary"]["total_contributions"] == 2200
        assert [c["is_base_rate"] for c in out["comparisons"]] == [True]

    def test_projection_full_daily(self, client, invest):
        client.put(f"/api/invest-scenarios/{invest['id']}", json={"compounding_frequency": "daily", "term_months": 2})
        out = client.get(f"/api/invest-scenarios/{invest['id']}/projection", params={"mode": "full"}).json()
        assert len(out["schedule"]) == 60

    def test_saved_rate_comparisons(self, client, invest):
        url = f"/api/invest-scenarios/{invest['id']}/rate-comparisons"
        created = client.post(url, json={"rate": 12, "label": "Banco B"})
        assert created.status_code == 201
        assert client.post(url, json={"rate": 12}).status_code == 409

        out = client.get(f"/api/invest-scenarios/{invest['id']}/projection").json()
        other = [c for c in out["comparisons"] if not c["is_base_rate"]]
        assert other[0]["label"] == "Banco B"
        assert other[0]["difference_from_base"] > 0

        assert client.delete(f"{url}/{created.json()['id']}").status_code == 200
        assert client.get(url).json() == []

    def test_rate_range(self, client, invest):
        url = f"/api/invest-scenarios/{invest['id']}/rate-range"
        out = client.get(url, params={"min_rate": 8, "max_rate": 12, "step": 2}).json()
        assert [c["rate"] for c in out["comparisons"]] == [8, 10, 12]
        assert client.get(url, params={"min_rate": 12, "max_rate": 8}).status_code == 400
        assert client.get(url, params={"min_rate": 0, "max_rate": 100, "step": 0.1}).status_code == 400

    def test_target(self, client, invest):
        out = client.get(f"/api/invest-scenarios/{invest['id']}/target", params={"amount": 500}).json()
        assert out["months_to_target"] == 0
        assert out["reachable"] is True
        assert out["required_monthly_contribution"] == 0

        out = client.get(f"/api/invest-scenarios/{invest['id']}/target", params={"amount": 5000}).json()
        assert out["months_to_target"] > 12
        assert out["required_monthly_contribution"] > 100


# ── Interest rates ──


class TestInterestRates:
    def test_convert(self, client):
        out = client.post("/api/interest-rate-scenarios/convert", json={"rate": 0.12, "rate_type": "EA"}).json()
        assert out["conversions"]["ea"] == 0.12
        assert len(out["display"]) == 5

    def test_convert_rejects_out_of_range(self, client):
        resp = client.post("/api/interest-rate-scenarios/convert", json={"rate": -0.1, "rate_type": "EA"})
        assert resp.status_code == 400
        resp = client.post("/api/interest-rate-scenarios/convert", json={"rate": 0.1, "rate_type": "XX"})
        assert resp.status_code == 422

    def test_scenario_crud_carries_conversions(self, client):
        resp = client.post(
            "/api/interest-rate-scenarios", json={"name": "Tarjeta", "input_rate": 0.02, "input_rate_type": "NM"}
        )
        assert resp.status_code == 201
        scenario = resp.json()
        assert scenario["conversions"]["nm"] == pytest.approx(0.02, abs=1e-6)
        assert scenario["conversions"]["na"] == pytest.approx(0.24, abs=1e-6)

        updated = client.put(f"/api/interest-rate-scenarios/{scenario['id']}", json={"input_rate_type": "EA"}).json()
        assert updated["conversions"]["ea"] == 0.02

        assert client.delete(f"/api/interest-rate-scenarios/{scenario['id']}").status_code == 200
        assert client.get("/api/interest-rate-scenarios").json() == []
