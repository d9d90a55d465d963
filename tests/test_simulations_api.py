"""API tests: budget simulations, subgroups and subgroup templates."""

from io import BytesIO

import openpyxl
import pytest


# ── Fixtures ──


@pytest.fixture
def categories(make_fund, unrestricted_category):
    make_fund(initial_balance=5000)
    return {"food": unrestricted_category("Mercado"), "fun": unrestricted_category("Salidas")}


@pytest.fixture
def simulation(client):
    resp = client.post("/api/simulations", json={"name": " Plan 2025 ", "description": "Escenario base"})
    assert resp.status_code == 201, resp.text
    return resp.json()


def _url(simulation, suffix=""):
    return f"/api/simulations/{simulation['id']}{suffix}"


def _budgets(client, simulation, *items):
    resp = client.put(_url(simulation, "/budgets"), json={"budgets": list(items)})
    assert resp.status_code == 200, resp.text
    return resp.json()


# ── Simulations ──


class TestSimulations:
    def test_create_and_update(self, client, simulation):
        assert simulation["name"] == "Plan 2025"
        assert client.put(_url(simulation), json={}).status_code == 400
        resp = client.put(_url(simulation), json={"description": None})
        assert resp.json()["description"] is None
        assert [s["id"] for s in client.get("/api/simulations").json()] == [simulation["id"]]

    def test_delete(self, client, simulation):
        assert client.delete(_url(simulation)).json()["success"] is True
        assert client.get(_url(simulation)).status_code == 404

    def test_copy_duplicates_contents(self, client, simulation, categories):
        client.post(_url(simulation, "/incomes"), json={"description": "Salario", "amount": 3000})
        _budgets(client, simulation, {"category_id": categories["food"], "efectivo_amount": 400})
        client.post(_url(simulation, "/subgroups"), json={"name": "Básicos", "category_ids": [categories["food"]]})

        resp = client.post(_url(simulation, "/copy"), json={})
        assert resp.status_code == 201
        copy = resp.json()
        assert copy["name"] == "Plan 2025 (Copia)"
        assert copy["id"] != simulation["id"]

        assert [i["amount"] for i in client.get(_url(copy, "/incomes")).json()] == [3000]
        assert [b["efectivo_amount"] for b in client.get(_url(copy, "/budgets")).json()] == [400]
        assert [s["name"] for s in client.get(_url(copy, "/subgroups")).json()] == ["Básicos"]

    def test_copy_with_name(self, client, simulation):
        copy = client.post(_url(simulation, "/copy"), json={"name": "Plan B"}).json()
        assert copy["name"] == "Plan B"


class TestSimulationIncomes:
    def test_crud(self, client, simulation):
        income = client.post(_url(simulation, "/incomes"), json={"description": " Bono ", "amount": 500}).json()
        assert income["description"] == "Bono"

        url = _url(simulation, f"/incomes/{income['id']}")
        assert client.put(url, json={}).status_code == 400
        assert client.put(url, json={"amount": 650}).json()["amount"] == 650
        assert client.delete(url).json()["success"] is True
        assert client.delete(url).status_code == 404

    def test_amount_must_be_positive(self, client, simulation):
        resp = client.post(_url(simulation, "/incomes"), json={"description": "x", "amount": 0})
        assert resp.status_code == 422


class TestSimulationBudgets:
    def test_upsert_keeps_unlisted_categories(self, client, simulation, categories):
        _budgets(
            client,
            simulation,
            {"category_id": categories["food"], "efectivo_amount": 400, "credito_amount": 100},
            {"category_id": categories["fun"], "efectivo_amount": 50},
        )
        rows = _budgets(client, simulation, {"category_id": categories["fun"], "credito_amount": 70})

        by_name = {r["category_name"]: r for r in rows}
        assert list(by_name) == ["Mercado", "Salidas"]
        assert by_name["Mercado"]["efectivo_amount"] == 400
        assert by_name["Salidas"]["efectivo_amount"] == 0
        assert by_name["Salidas"]["credito_amount"] == 70

    def test_repeated_category(self, client, simulation, categories):
        item = {"category_id": categories["food"], "efectivo_amount": 1}
        resp = client.put(_url(simulation, "/budgets"), json={"budgets": [item, item]})
        assert resp.status_code == 400

    def test_unknown_category(self, client, simulation):
        resp = client.put(_url(simulation, "/budgets"), json={"budgets": [{"category_id": "nope"}]})
        assert resp.status_code == 400


# ── Copy from period ──


class TestCopyFromPeriod:
    def test_maps_payment_methods(self, client, simulation, categories, make_period):
        period = make_period(name="Enero 2024")["id"]
        for method, amount in (("cash", 100), ("debit", 40), ("credit", 60)):
            client.post(
                "/api/budgets",
                json={
                    "category_id": categories["food"],
                    "period_id": period,
                    "expected_amount": amount,
                    "payment_method": method,
                },
            )
        client.post("/api/incomes", json={"date": "2024-01-01", "description": "Salario", "amount": 2000})
        _budgets(client, simulation, {"category_id": categories["fun"], "efectivo_amount": 999})

        out = client.post(_url(simulation, "/copy-from-period"), json={"period_id": period}).json()
        assert out["budgets_copied"] == 1
        assert out["incomes_copied"] == 1
        assert out["period_name"] == "Enero 2024"

        (row,) = client.get(_url(simulation, "/budgets")).json()
        assert row["category_name"] == "Mercado"
        assert row["efectivo_amount"] == 140
        assert row["credito_amount"] == 60
        assert [i["description"] for i in client.get(_url(simulation, "/incomes")).json()] == ["Salario"]

    def test_without_incomes_keeps_existing(self, client, simulation, categories, make_period):
        period = make_period()["id"]
        client.post("/api/budgets", json={"category_id": categories["food"], "period_id": period, "expected_amount": 5})
        client.post(_url(simulation, "/incomes"), json={"description": "Propio", "amount": 10})

        out = client.post(
            _url(simulation, "/copy-from-period"), json={"period_id": period, "include_incomes": False}
        ).json()
        assert out["incomes_copied"] == 0
        assert [i["description"] for i in client.get(_url(simulation, "/incomes")).json()] == ["Propio"]

    def test_empty_period(self, client, simulation, categories, make_period):
        period = make_period()["id"]
        resp = client.post(_url(simulation, "/copy-from-period"), json={"period_id": period})
        assert resp.status_code == 400
        assert resp.json()["detail"]["code"] == "EMPTY_PERIOD"

    def test_unknown_period(self, client, simulation):
        resp = client.post(_url(simulation, "/copy-from-period"), json={"period_id": "nope"})
        assert resp.status_code == 404


# ── Analytics and export ──


class TestAnalytics:
    @pytest.fixture
    def history(self, client, simulation, categories, make_period, make_expense):
        fund = client.get("/api/funds").json()[0]["id"]
        closed = make_period(month=0, is_open=False, name="Enero 2024")["id"]
        make_expense(categories["food"], closed, fund, amount=100, payment_method="cash")
        make_expense(categories["food"], closed, fund, amount=50, payment_method="credit")

        grouper = client.post("/api/groupers", json={"name": "Hogar"}).json()
        client.post(f"/api/groupers/{grouper['id']}/categories", json={"category_ids": [categories["food"]]})

        client.post(_url(simulation, "/incomes"), json={"description": "Salario", "amount": 1000})
        _budgets(client, simulation, {"category_id": categories["food"], "efectivo_amount": 120, "credito_amount": 60})
        return {"grouper": grouper["id"], "period": closed}

    def test_summary_and_comparison(self, client, simulation, history):
        out = client.get(_url(simulation, "/analytics")).json()
        assert out["summary"]["total_budget"] == 180
        assert out["summary"]["balance"] == 820
        assert out["comparison_periods"] == [history["period"]]

        (metric,) = out["comparison_metrics"]
        assert metric["avg_historical"] == 150
        assert metric["simulation_amount"] == 180
        assert metric["variance_percentage"] == 20
        assert metric["trend"] == "increase"

    def test_payment_method_filter(self, client, simulation, history):
        out = client.get(_url(simulation, "/analytics"), params={"payment_methods": "efectivo"}).json()
        (metric,) = out["comparison_metrics"]
        assert metric["avg_historical"] == 100
        assert metric["simulation_amount"] == 120
        assert metric["trend"] == "increase"

    def test_invalid_payment_method(self, client, simulation):
        resp = client.get(_url(simulation, "/analytics"), params={"payment_methods": "cash"})
        assert resp.status_code == 400

    def test_subgroup_totals(self, client, simulation, categories, history):
        client.post(_url(simulation, "/subgroups"), json={"name": "Básicos", "category_ids": [categories["food"]]})
        (row,) = client.get(_url(simulation, "/analytics")).json()["subgroups"]
        assert row["total_amount"] == 180
        assert row["category_count"] == 1

    def test_export_csv(self, client, simulation, categories):
        _budgets(client, simulation, {"category_id": categories["food"], "efectivo_amount": 120})
        resp = client.get(_url(simulation, "/export"))
        assert resp.headers["content-type"].startswith("text/csv")
        lines = resp.text.split("\n")
        assert lines[0].startswith('"Categoría"')
        assert lines[-1].startswith('"TOTAL"')

    def test_export_xlsx(self, client, simulation, categories):
        _budgets(client, simulation, {"category_id": categories["food"], "efectivo_amount": 120})
        resp = client.get(_url(simulation, "/export"), params={"format": "xlsx"})
        ws = openpyxl.load_workbook(BytesIO(resp.content))["Simulación"]
        assert ws.max_row == 3
        assert ws.cell(row=3, column=1).value == "TOTAL"


# ── Subgroups and templates ──


class TestSubgroups:
    def test_crud(self, client, simulation, categories):
        first = client.post(_url(simulation, "/subgroups"), json={"name": "A"}).json()
        second = client.post(
            _url(simulation, "/subgroups"),
            json={"name": "B", "category_ids": [categories["fun"], categories["fun"]]},
        ).json()
        assert first["display_order"] == 0
        assert second["display_order"] == 1
        assert second["category_ids"] == [categories["fun"]]

        url = _url(simulation, f"/subgroups/{first['id']}")
        assert client.put(url, json={}).status_code == 400
        assert client.put(url, json={"category_ids": ["nope"]}).status_code == 400
        assert client.put(url, json={"name": "Hogar"}).json()["name"] == "Hogar"
        assert client.delete(url).json()["success"] is True
        assert client.delete(url).status_code == 404


class TestTemplates:
    def test_save_requires_subgroups(self, client, simulation):
        resp = client.post(_url(simulation, "/save-as-template"), json={"name": "Base"})
        assert resp.status_code == 400

    def test_save_then_apply(self, client, simulation, categories):
        client.post(_url(simulation, "/subgroups"), json={"name": "Básicos", "category_ids": [categories["food"]]})
        template = client.post(_url(simulation, "/save-as-template"), json={"name": "Base"}).json()
        assert [s["name"] for s in template["subgroups"]] == ["Básicos"]
        assert client.post(_url(simulation, "/save-as-template"), json={"name": "base"}).status_code == 409

        other = client.post("/api/simulations", json={"name": "Otro"}).json()
        client.post(_url(other, "/subgroups"), json={"name": "Viejo"})
        applied = client.post(_url(other, "/apply-template"), json={"template_id": template["id"]}).json()
        assert [s["name"] for s in applied] == ["Básicos"]
        assert applied[0]["template_subgroup_id"] == template["subgroups"][0]["id"]

        out = client.get(_url(other, "/applied-template")).json()
        assert out["template_name"] == "Base"

        assert client.delete(_url(other, "/applied-template")).json()["success"] is True
        assert client.get(_url(other, "/applied-template")).json()["template_id"] is None
        assert len(client.get(_url(other, "/subgroups")).json()) == 1

    def test_apply_empty_or_unknown(self, client, simulation):
        empty = client.post("/api/subgroup-templates", json={"name": "Vacía"}).json()
        assert client.post(_url(simulation, "/apply-template"), json={"template_id": empty["id"]}).status_code == 400
        assert client.post(_url(simulation, "/apply-template"), json={"template_id": "nope"}).status_code == 404

    def test_template_crud(self, client, simulation, categories):
        resp = client.post(
            "/api/subgroup-templates",
            json={"name": "Mensual", "subgroups": [{"name": "Fijos", "category_ids": [categories["food"]]}]},
        )
        assert resp.status_code == 201
        template = resp.json()
        assert template["subgroups"][0]["display_order"] == 0

        bad = client.post(
            "/api/subgroup-templates",
            json={"name": "X", "subgroups": [{"name": "Y", "category_ids": ["nope"]}]},
        )
        assert bad.status_code == 400

        client.post(_url(simulation, "/apply-template"), json={"template_id": template["id"]})

        url = f"/api/subgroup-templates/{template['id']}"
        assert client.put(url, json={}).status_code == 400
        updated = client.put(url, json={"subgroups": [{"name": "Variables"}, {"name": "Ahorro"}]}).json()
        assert [s["name"] for s in updated["subgroups"]] == ["Variables", "Ahorro"]
        # the simulation keeps its subgroups but loses the link
        assert client.get(_url(simulation, "/applied-template")).json()["template_id"] is None

        assert client.delete(url).json()["success"] is True
        assert client.get("/api/subgroup-templates").json() == []
        assert [s["name"] for s in client.get(_url(simulation, "/subgroups")).json()] == ["Fijos"]

    def test_duplicate_name_on_update(self, client):
        client.post("/api/subgroup-templates", json={"name": "A"})
        b = client.post("/api/subgroup-templates", json={"name": "B"}).json()
        assert client.put(f"/api/subgroup-templates/{b['id']}", json={"name": "a"}).status_code == 409
