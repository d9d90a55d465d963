"""API tests: categories and their fund relationships."""

import pytest


# ── Fixtures ──


@pytest.fixture
def funds(make_fund):
    return {
        "disp": make_fund(name="Disponible")["id"],
        "ahorro": make_fund(name="Ahorro")["id"],
        "viajes": make_fund(name="Viajes")["id"],
    }


# ── CRUD ──


class TestCreateCategory:
    def test_without_funds_uses_default_as_legacy(self, client, funds, make_category):
        category = make_category("Mercado")
        assert category["fund_id"] == funds["disp"]
        assert category["fund_name"] == "Disponible"
        assert category["associated_funds"] == []

        out = client.get(f"/api/categories/{category['id']}/available-funds").json()
        assert out["source"] == "legacy"
        assert out["has_restrictions"] is True
        assert [f["id"] for f in out["funds"]] == [funds["disp"]]

    def test_with_fund_ids(self, client, funds, make_category):
        category = make_category("Viaje", fund_ids=[funds["viajes"], funds["ahorro"], funds["viajes"]])
        assert [f["name"] for f in category["associated_funds"]] == ["Ahorro", "Viajes"]
        assert category["fund_id"] is None

        out = client.get(f"/api/categories/{category['id']}/funds").json()
        assert out["source"] == "relationships"
        assert out["migration"]["needs_migration"] is False

    def test_unknown_fund(self, client, funds):
        resp = client.post("/api/categories", json={"name": "X", "fund_ids": ["nope"]})
        assert resp.status_code == 400

    def test_invalid_tipo_gasto(self, client, funds):
        resp = client.post("/api/categories", json={"name": "X", "tipo_gasto": "Z"})
        assert resp.status_code == 422

    def test_update(self, client, funds, make_category):
        category = make_category("Mercado")
        assert client.put(f"/api/categories/{category['id']}", json={}).status_code == 400
        resp = client.put(
            f"/api/categories/{category['id']}",
            json={"name": "Supermercado", "tipo_gasto": "V", "fund_ids": [funds["ahorro"]]},
        )
        body = resp.json()
        assert body["name"] == "Supermercado"
        assert body["tipo_gasto"] == "V"
        assert [f["id"] for f in body["associated_funds"]] == [funds["ahorro"]]

    def test_list_filtered_by_fund(self, client, funds, make_category, unrestricted_category):
        make_category("Viaje", fund_ids=[funds["viajes"]])
        make_category("Ahorro programado", fund_ids=[funds["ahorro"]])
        unrestricted_category("Varios")
        names = [c["name"] for c in client.get("/api/categories", params={"fund_id": funds["viajes"]}).json()]
        assert names == ["Varios", "Viaje"]


class TestDeleteCategory:
    def test_with_expenses_needs_force(self, client, funds, make_category, make_period, make_expense):
        category = make_category("Viaje", fund_ids=[funds["viajes"]])
        period = make_period()
        make_expense(category["id"], period["id"], funds["viajes"])

        resp = client.delete(f"/api/categories/{category['id']}")
        assert resp.status_code == 409
        assert resp.json()["detail"]["can_force"] is True

        resp = client.delete(f"/api/categories/{category['id']}", params={"force": True})
        assert resp.json()["deleted_expenses"] == 1
        assert client.get(f"/api/expenses?period_id={period['id']}").json() == []

    def test_without_expenses(self, client, funds, make_category):
        category = make_category()
        assert client.delete(f"/api/categories/{category['id']}").json()["success"] is True
        assert client.get(f"/api/categories/{category['id']}").status_code == 404


# ── Fund relationships ──


class TestCategoryFunds:
    def test_replace_without_expenses_only_warns_on_additions(self, client, funds, make_category):
        category = make_category("Viaje", fund_ids=[funds["viajes"]])
        resp = client.post(f"/api/categories/{category['id']}/funds", json={"fund_ids": [funds["ahorro"]]})
        assert resp.status_code == 409
        assert resp.json()["detail"]["can_force"] is True

        resp = client.post(
            f"/api/categories/{category['id']}/funds",
            params={"force": True},
            json={"fund_ids": [funds["ahorro"]]},
        )
        assert resp.status_code == 200
        assert resp.json()["changes"] == {"added_fund_ids": [funds["ahorro"]], "removed_fund_ids": [funds["viajes"]]}

    def test_same_set_needs_no_confirmation(self, client, funds, make_category):
        category = make_category("Viaje", fund_ids=[funds["viajes"]])
        resp = client.post(f"/api/categories/{category['id']}/funds", json={"fund_ids": [funds["viajes"]]})
        assert resp.status_code == 200
        assert resp.json()["warnings"] == []

    def test_missing_fund_is_an_error(self, client, funds, make_category):
        category = make_category("Viaje", fund_ids=[funds["viajes"]])
        resp = client.post(
            f"/api/categories/{category['id']}/funds", params={"force": True}, json={"fund_ids": ["nope"]}
        )
        assert resp.status_code == 400

    def test_remove_last_fund_with_expenses(self, client, funds, make_category, make_period, make_expense):
        category = make_category("Viaje", fund_ids=[funds["viajes"]])
        make_expense(category["id"], make_period()["id"], funds["viajes"])

        url = f"/api/categories/{category['id']}/funds/{funds['viajes']}"
        resp = client.delete(url)
        assert resp.status_code == 409
        assert resp.json()["detail"]["validation_data"]["remaining_fund_relationships"] == 0

        assert client.delete(url, params={"force": True}).json()["success"] is True
        funds_out = client.get(f"/api/categories/{category['id']}/funds").json()
        assert funds_out["funds"] == []

    def test_remove_missing_relationship(self, client, funds, make_category):
        category = make_category("Viaje", fund_ids=[funds["viajes"]])
        resp = client.delete(f"/api/categories/{category['id']}/funds/{funds['ahorro']}")
        assert resp.status_code == 400
        assert client.delete(f"/api/categories/nope/funds/{funds['ahorro']}").status_code == 404

    def test_migrate_legacy_fund(self, client, funds, make_category):
        category = make_category("Mercado")
        resp = client.post(f"/api/categories/{category['id']}/migrate-funds").json()
        assert resp["migrated_relationships"] == 1
        assert [f["id"] for f in resp["category"]["associated_funds"]] == [funds["disp"]]

        again = client.post(f"/api/categories/{category['id']}/migrate-funds").json()
        assert again["migrated_relationships"] == 0

    def test_clearing_fund_ids_lifts_restrictions(
        self, client, funds, make_category, make_period, make_expense
    ):
        category = make_category("Viaje", fund_ids=[funds["disp"], funds["ahorro"]])
        resp = client.post(
            f"/api/categories/{category['id']}/funds",
            params={"force": True},
            json={"fund_ids": []},
        )
        assert resp.status_code == 200
        assert resp.json()["category"]["fund_id"] is None

        out = client.get(f"/api/categories/{category['id']}/available-funds").json()
        assert out["has_restrictions"] is False
        assert out["source"] == "all"
        assert {f["id"] for f in out["funds"]} == set(funds.values())

        expense = make_expense(category["id"], make_period()["id"], funds["viajes"])
        assert expense["source_fund_id"] == funds["viajes"]
