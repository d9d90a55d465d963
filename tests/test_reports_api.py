"""API tests: groupers, estudios, dashboard, overspend and exports."""

from io import BytesIO

import openpyxl
import pytest


# ── Fixtures ──


@pytest.fixture
def ledger(client, make_fund, make_period, unrestricted_category, make_expense):
    """One period with two categories, budgets and mixed-method expenses."""
    fund = make_fund(initial_balance=5000)["id"]
    period = make_period(name="Enero 2024")["id"]
    food = unrestricted_category("Mercado")
    fun = unrestricted_category("Salidas")

    make_expense(food, period, fund, amount=100, payment_method="cash")
    make_expense(food, period, fund, amount=50, payment_method="credit")
    make_expense(fun, period, fund, amount=80, payment_method="debit")

    client.post("/api/budgets", json={"category_id": food, "period_id": period, "expected_amount": 120})
    client.post("/api/budgets", json={"category_id": fun, "period_id": period, "expected_amount": 100})
    client.post("/api/incomes", json={"date": "2024-01-01", "description": "Salario", "amount": 1000})
    return {"fund": fund, "period": period, "food": food, "fun": fun}


def _grouper(client, name, category_ids):
    grouper = client.post("/api/groupers", json={"name": name}).json()
    client.post(f"/api/groupers/{grouper['id']}/categories", json={"category_ids": category_ids})
    return grouper["id"]


# ── Groupers ──


class TestGroupers:
    def test_categories_are_added_once(self, client, ledger):
        gid = _grouper(client, "Hogar", [ledger["food"]])
        resp = client.post(f"/api/groupers/{gid}/categories", json={"category_ids": [ledger["food"], ledger["fun"]]})
        assert resp.json() == {"added": [ledger["fun"]], "skipped": [ledger["food"]]}
        listed = client.get(f"/api/groupers/{gid}/categories").json()
        assert [c["name"] for c in listed["categories"]] == ["Mercado", "Salidas"]
        assert client.get(f"/api/groupers/{gid}").json()["category_count"] == 2

    def test_unknown_category(self, client, ledger):
        gid = _grouper(client, "Hogar", [ledger["food"]])
        resp = client.post(f"/api/groupers/{gid}/categories", json={"category_ids": ["nope"]})
        assert resp.status_code == 400

    def test_remove_category(self, client, ledger):
        gid = _grouper(client, "Hogar", [ledger["food"]])
        assert client.delete(f"/api/groupers/{gid}/categories/{ledger['food']}").status_code == 200
        assert client.delete(f"/api/groupers/{gid}/categories/{ledger['food']}").status_code == 404

    @pytest.mark.parametrize("raw", ["abc", "0", "-3"])
    def test_invalid_ids(self, client, raw):
        resp = client.get(f"/api/groupers/{raw}")
        assert resp.status_code == 400
        assert "inválido" in resp.json()["detail"]

    def test_blank_name(self, client):
        assert client.post("/api/groupers", json={"name": "   "}).status_code == 400


# ── Estudios ──


class TestEstudios:
    def test_assign_and_configure(self, client, ledger):
        hogar = _grouper(client, "Hogar", [ledger["food"]])
        ocio = _grouper(client, "Ocio", [ledger["fun"]])
        estudio = client.post("/api/estudios", json={"name": "Mensual"}).json()

        resp = client.post(f"/api/estudios/{estudio['id']}/groupers", json={"grouper_ids": [hogar, hogar]})
        assert resp.json() == {"added": [hogar], "skipped": []}

        listed = client.get(f"/api/estudios/{estudio['id']}/groupers").json()
        assert [g["id"] for g in listed["assigned_groupers"]] == [hogar]
        assert [g["id"] for g in listed["available_groupers"]] == [ocio]

        resp = client.put(
            f"/api/estudios/{estudio['id']}/groupers/{hogar}",
            json={"percentage": 50, "payment_methods": ["cash"]},
        )
        assert resp.json()["percentage"] == 50
        assert resp.json()["payment_methods"] == ["cash"]

    @pytest.mark.parametrize(
        "methods",
        [[], ["bitcoin"], ["cash", "cash"]],
    )
    def test_invalid_payment_methods(self, client, ledger, methods):
        hogar = _grouper(client, "Hogar", [ledger["food"]])
        estudio = client.post("/api/estudios", json={"name": "Mensual"}).json()
        client.post(f"/api/estudios/{estudio['id']}/groupers", json={"grouper_ids": [hogar]})
        resp = client.put(f"/api/estudios/{estudio['id']}/groupers/{hogar}", json={"payment_methods": methods})
        assert resp.status_code == 400

    def test_percentage_out_of_range(self, client, ledger):
        hogar = _grouper(client, "Hogar", [ledger["food"]])
        estudio = client.post("/api/estudios", json={"name": "Mensual"}).json()
        client.post(f"/api/estudios/{estudio['id']}/groupers", json={"grouper_ids": [hogar]})
        resp = client.put(f"/api/estudios/{estudio['id']}/groupers/{hogar}", json={"percentage": 150})
        assert resp.status_code == 422

    def test_grouper_not_in_estudio(self, client, ledger):
        hogar = _grouper(client, "Hogar", [ledger["food"]])
        estudio = client.post("/api/estudios", json={"name": "Mensual"}).json()
        resp = client.delete(f"/api/estudios/{estudio['id']}/groupers/{hogar}")
        assert resp.status_code == 404


# ── Dashboard ──


class TestDashboard:
    def test_period_summary(self, client, ledger):
        out = client.get("/api/dashboard").json()
        assert out["period_id"] == ledger["period"]
        assert out["total_income"] == 1000
        assert out["total_expenses"] == 230
        assert out["total_expected"] == 220
        assert out["balance"] == 770

        rows = {r["category_name"]: r for r in out["budget_summary"]}
        assert rows["Mercado"]["cash_amount"] == 100
        assert rows["Mercado"]["credit_amount"] == 50
        assert rows["Mercado"]["remaining"] == -30
        assert rows["Salidas"]["debit_amount"] == 80

    def test_no_periods(self, client):
        assert client.get("/api/dashboard").status_code == 400

    def test_grouper_totals(self, client, ledger):
        hogar = _grouper(client, "Hogar", [ledger["food"]])
        _grouper(client, "Ocio", [ledger["fun"]])

        out = client.get("/api/dashboard/groupers", params={"include_budgets": True}).json()
        rows = {r["grouper_name"]: r for r in out["groupers"]}
        assert rows["Hogar"]["total_amount"] == 150
        assert rows["Hogar"]["budget_amount"] == 120
        assert rows["Ocio"]["total_amount"] == 80
        assert out["total_amount"] == 230

        only_credit = client.get(
            "/api/dashboard/groupers", params={"payment_method": "credit", "grouper_ids": str(hogar)}
        ).json()
        assert [r["total_amount"] for r in only_credit["groupers"]] == [50]

    def test_grouper_totals_with_estudio(self, client, ledger):
        hogar = _grouper(client, "Hogar", [ledger["food"]])
        _grouper(client, "Ocio", [ledger["fun"]])
        estudio = client.post("/api/estudios", json={"name": "Mensual"}).json()
        client.post(f"/api/estudios/{estudio['id']}/groupers", json={"grouper_ids": [hogar]})
        client.put(
            f"/api/estudios/{estudio['id']}/groupers/{hogar}",
            json={"percentage": 50, "payment_methods": ["cash"]},
        )

        out = client.get("/api/dashboard/groupers", params={"estudio_id": estudio["id"]}).json()
        assert [(r["grouper_name"], r["total_amount"]) for r in out["groupers"]] == [("Hogar", 50)]

        assert client.get("/api/dashboard/groupers", params={"estudio_id": "999"}).status_code == 404

    def test_fund_balances(self, client, ledger):
        out = client.get("/api/dashboard/funds/balances", params={"period_id": ledger["period"]}).json()
        (row,) = out["funds"]
        assert row["total_expenses"] == 230
        assert row["total_income"] == 1000
        assert row["current_balance"] == 5770
        assert out["total_balance"] == 5770


class TestOverspend:
    def test_all_periods(self, client, ledger):
        out = client.get("/api/overspend/all-periods").json()
        by_name = {c["category_name"]: c for c in out["overspend_by_category"]}
        assert by_name["Mercado"]["total_overspend"] == 30
        assert by_name["Salidas"]["total_overspend"] == 0
        assert out["totals"]["total_planeado"] == 220

    def test_cash_includes_debit(self, client, ledger):
        out = client.get("/api/overspend/all-periods", params={"payment_method": "cash"}).json()
        by_name = {c["category_name"]: c for c in out["overspend_by_category"]}
        assert by_name["Mercado"]["total_actual"] == 100
        assert by_name["Salidas"]["total_actual"] == 80

    def test_excluded_categories(self, client, ledger):
        out = client.get("/api/overspend/all-periods", params={"excluded_category_ids": ledger["food"]}).json()
        assert [c["category_name"] for c in out["overspend_by_category"]] == ["Salidas"]


# ── Export ──


class TestExport:
    def test_budget_summary_csv(self, client, ledger):
        resp = client.get("/api/export/budget-summary")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert "presupuesto_enero_2024.csv" in resp.headers["content-disposition"]
        lines = resp.text.split("\n")
        assert lines[0].startswith('"Categoría"')
        assert lines[-1].startswith('"TOTAL"')

    def test_expenses_xlsx(self, client, ledger):
        resp = client.get("/api/export/expenses", params={"period_id": ledger["period"], "format": "xlsx"})
        ws = openpyxl.load_workbook(BytesIO(resp.content))["Gastos"]
        assert ws.max_row == 4
        methods = {ws.cell(row=r, column=5).value for r in range(2, 5)}
        assert methods == {"Efectivo", "Crédito", "Débito"}

    def test_unknown_period(self, client, ledger):
        assert client.get("/api/export/expenses", params={"period_id": "nope"}).status_code == 404
        assert client.get("/api/export/expenses", params={"format": "pdf"}).status_code == 422


# ── Budget execution ──


class TestBudgetExecution:
    @pytest.fixture
    def dated_budget(self, client, ledger):
        client.post(
            "/api/budgets",
            json={
                "category_id": ledger["food"],
                "period_id": ledger["period"],
                "expected_amount": 30,
                "payment_method": "credit",
                "expected_date": "2024-01-15",
            },
        )
        return ledger

    def test_daily(self, client, dated_budget):
        out = client.get(f"/api/budget-execution/{dated_budget['period']}").json()
        assert out["view_mode"] == "daily"
        # sin fecha esperada cuentan en el día 1
        assert [(d["date"], d["amount"]) for d in out["data"]] == [("2024-01-01", 220), ("2024-01-15", 30)]
        assert out["data"][0]["day_of_week"] == 1
        assert out["summary"] == {
            "total_budget": 250,
            "average_per_day": 125,
            "peak_date": "2024-01-01",
            "peak_amount": 220,
        }

    def test_weekly(self, client, dated_budget):
        out = client.get(
            f"/api/budget-execution/{dated_budget['period']}", params={"view_mode": "weekly"}
        ).json()
        assert [(d["week_number"], d["amount"]) for d in out["data"]] == [(1, 220), (3, 30)]
        assert out["data"][1]["week_start"] == "2024-01-15"
        assert out["data"][1]["week_end"] == "2024-01-21"

    def test_empty_period(self, client, make_period):
        period = make_period(month=1)["id"]
        out = client.get(f"/api/budget-execution/{period}").json()
        assert out["data"] == []
        assert out["summary"]["peak_date"] == ""

    def test_errors(self, client, ledger):
        assert client.get("/api/budget-execution/nope").status_code == 404
        resp = client.get(f"/api/budget-execution/{ledger['period']}", params={"view_mode": "monthly"})
        assert resp.status_code == 422


# ── Remaining budget ──


class TestRemainder:
    def test_only_categories_with_budget_left(self, client, ledger):
        out = client.get("/api/dashboard/remainder").json()
        assert out["active_period"]["name"] == "Enero 2024"
        (row,) = out["categories"]
        assert row["category_name"] == "Salidas"
        assert row["original_planned_budget"] == 100
        assert row["current_expenses"] == 80
        assert row["remainder_planned_budget"] == 20
        assert out["totals"]["categories_count"] == 1

    def test_grouper_filter(self, client, ledger):
        hogar = _grouper(client, "Hogar", [ledger["food"]])
        ocio = _grouper(client, "Ocio", [ledger["fun"]])
        assert client.get("/api/dashboard/remainder", params={"agrupador_ids": str(hogar)}).json()["categories"] == []

        out = client.get("/api/dashboard/remainder", params={"agrupador_ids": f"{hogar},{ocio}"}).json()
        assert [c["category_name"] for c in out["categories"]] == ["Salidas"]
        assert out["applied_filters"]["agrupador_names"] == ["Hogar", "Ocio"]

    def test_fund_filter(self, client, ledger):
        out = client.get("/api/dashboard/remainder", params={"fund_id": ledger["fund"]}).json()
        assert out["applied_filters"]["fund_name"] == "Disponible"
        assert len(out["categories"]) == 1
        assert client.get("/api/dashboard/remainder", params={"fund_id": "nope"}).status_code == 404

    def test_without_open_period(self, client, make_period):
        make_period(is_open=False)
        out = client.get("/api/dashboard/remainder").json()
        assert out["active_period"] is None
        assert out["totals"]["categories_count"] == 0


# ── Grouper reports ──


class TestGrouperReports:
    def test_period_comparison(self, client, ledger, make_period):
        _grouper(client, "Hogar", [ledger["food"]])
        _grouper(client, "Ocio", [ledger["fun"]])
        make_period(month=1, is_open=False, name="Febrero 2024")

        out = client.get("/api/dashboard/groupers/period-comparison").json()
        assert [p["period_name"] for p in out] == ["Enero 2024", "Febrero 2024"]
        assert [(g["grouper_name"], g["total_amount"]) for g in out[0]["grouper_data"]] == [
            ("Hogar", 150),
            ("Ocio", 80),
        ]
        assert [g["total_amount"] for g in out[1]["grouper_data"]] == [0, 0]

        credit = client.get(
            "/api/dashboard/groupers/period-comparison", params={"payment_method": "credit"}
        ).json()
        assert [g["total_amount"] for g in credit[0]["grouper_data"]] == [50, 0]

    def test_weekly_categories(self, client, ledger):
        hogar = _grouper(client, "Hogar", [ledger["food"]])
        _grouper(client, "Ocio", [ledger["fun"]])
        week = {"period_id": ledger["period"], "week_start": "2024-01-14", "week_end": "2024-01-20"}

        out = client.get("/api/dashboard/groupers/weekly-categories", params=week).json()
        assert [(r["category_name"], r["total_amount"], r["percentage"]) for r in out] == [
            ("Mercado", 150, 65.22),
            ("Salidas", 80, 34.78),
        ]

        only_hogar = client.get(
            "/api/dashboard/groupers/weekly-categories", params={**week, "grouper_ids": str(hogar)}
        ).json()
        assert [(r["category_name"], r["percentage"]) for r in only_hogar] == [("Mercado", 100)]

        cash_like = client.get(
            "/api/dashboard/groupers/weekly-categories", params={**week, "expense_payment_methods": "cash,debit"}
        ).json()
        assert [r["total_amount"] for r in cash_like] == [100, 80]

    def test_weekly_categories_outside_week(self, client, ledger):
        _grouper(client, "Hogar", [ledger["food"]])
        params = {"period_id": ledger["period"], "week_start": "2024-01-01", "week_end": "2024-01-07"}
        assert client.get("/api/dashboard/groupers/weekly-categories", params=params).json() == []

    def test_weekly_categories_need_a_grouper(self, client, ledger):
        params = {"period_id": ledger["period"], "week_start": "2024-01-14", "week_end": "2024-01-20"}
        assert client.get("/api/dashboard/groupers/weekly-categories", params=params).json() == []

    def test_weekly_categories_validation(self, client, ledger):
        base = {"period_id": ledger["period"], "week_start": "2024-01-14", "week_end": "2024-01-20"}
        resp = client.get(
            "/api/dashboard/groupers/weekly-categories", params={**base, "expense_payment_methods": "bitcoin"}
        )
        assert resp.status_code == 400
        resp = client.get("/api/dashboard/groupers/weekly-categories", params={**base, "week_end": "2024-01-01"})
        assert resp.status_code == 400
        resp = client.get("/api/dashboard/groupers/weekly-categories", params={"period_id": ledger["period"]})
        assert resp.status_code == 422

    def test_weekly_cumulative(self, client, ledger):
        _grouper(client, "Hogar", [ledger["food"]])
        out = client.get("/api/dashboard/groupers/weekly-cumulative", params={"period_id": ledger["period"]}).json()

        # semanas de domingo a sábado; la primera contiene el 1 de enero
        assert [w["week_start"] for w in out] == ["2023-12-31", "2024-01-07", "2024-01-14", "2024-01-21", "2024-01-28"]
        assert out[0]["week_label"] == "Semana del 31/12 - 06/01"
        assert [w["grouper_data"][0]["cumulative_amount"] for w in out] == [0, 0, 150, 150, 150]


# ── Transfers ──


class TestFundTransfers:
    @pytest.fixture
    def transfer(self, ledger, make_fund, make_expense):
        savings = make_fund(name="Ahorro", initial_balance=0)["id"]
        make_expense(
            ledger["food"], ledger["period"], ledger["fund"], amount=200, date="2024-01-20", destination_fund_id=savings
        )
        return {**ledger, "savings": savings}

    def test_all_transfers(self, client, transfer):
        out = client.get("/api/dashboard/funds/transfers").json()
        (row,) = out["transfers"]
        assert row["transfer_type"] == "transfer"
        assert row["source_fund_name"] == "Disponible"
        assert row["destination_fund_name"] == "Ahorro"
        assert out["statistics"] == {
            "total_transfers": 1,
            "total_transfer_amount": 200,
            "transfer_days": 1,
            "average_transfer_amount": 200,
        }

    def test_by_fund(self, client, transfer):
        incoming = client.get("/api/dashboard/funds/transfers", params={"fund_id": transfer["savings"]}).json()
        assert [t["transfer_type"] for t in incoming["transfers"]] == ["incoming"]
        assert incoming["statistics"]["net_transfer_amount"] == 200

        outgoing = client.get("/api/dashboard/funds/transfers", params={"fund_id": transfer["fund"]}).json()
        assert [t["transfer_type"] for t in outgoing["transfers"]] == ["outgoing"]
        assert outgoing["statistics"]["outgoing_total"] == 200
        assert outgoing["statistics"]["net_transfer_amount"] == -200

    def test_pagination_and_unknown_fund(self, client, transfer):
        page = client.get("/api/dashboard/funds/transfers", params={"limit": 1, "offset": 1}).json()
        assert page["transfers"] == []
        assert page["pagination"]["total"] == 1
        assert client.get("/api/dashboard/funds/transfers", params={"fund_id": "nope"}).status_code == 404


# ── Period data ──


class TestPeriodData:
    def test_incomes_and_budgets_for_copy(self, client, ledger):
        client.post(
            "/api/budgets",
            json={"category_id": ledger["food"], "period_id": ledger["period"], "expected_amount": 30, "payment_method": "credit"},
        )
        out = client.get(f"/api/periods/{ledger['period']}/data").json()
        assert out["period"]["name"] == "Enero 2024"
        assert out["incomes"] == [{"description": "Salario", "total_amount": 1000, "count": 1}]
        assert [(b["category_name"], b["efectivo_amount"], b["credito_amount"]) for b in out["budgets"]] == [
            ("Mercado", 120, 30),
            ("Salidas", 100, 0),
        ]
        assert out["totals"] == {
            "total_income": 1000,
            "total_budget_efectivo": 220,
            "total_budget_credito": 30,
            "total_budget": 250,
        }
        assert out["counts"] == {"income_entries": 1, "budget_categories": 2}

    def test_unknown_period(self, client):
        assert client.get("/api/periods/nope/data").status_code == 404
