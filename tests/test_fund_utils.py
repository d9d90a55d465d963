"""Tests for category -> fund resolution and default-fund selection.

Works on unsaved model instances; no database involved.
"""

import pytest

from backend.app.db import models
from backend.app.utils.category_fund_validation import (
    INVALID_FUND_FOR_CATEGORY,
    SOURCE_FUND_REQUIRED,
    validate_source_fund_selection,
)
from backend.app.utils.fund_utils import (
    SOURCE_ALL,
    SOURCE_LEGACY,
    SOURCE_RELATIONSHIPS,
    category_has_fund_restrictions,
    default_fund_for_category,
    filter_categories_by_fund,
    pick_default_fund,
    prepare_category_for_multi_fund,
    resolve_funds_for,
)


# ── Fixtures ──


@pytest.fixture
def funds():
    return [
        models.Fund(id="f-ahorro", name="Ahorro"),
        models.Fund(id="f-disp", name="Disponible"),
        models.Fund(id="f-viajes", name="Viajes"),
    ]


def _category(cid, fund_id=None, linked=()):
    category = models.Category(id=cid, name=cid.title(), fund_id=fund_id)
    for fund in linked:
        category.fund_links.append(models.CategoryFundRelationship(fund_id=fund.id, fund=fund))
    return category


# ── Resolution ──


class TestResolveFundsFor:
    def test_relationships_win_over_legacy(self, funds):
        category = _category("mercado", fund_id="f-disp", linked=[funds[2], funds[0]])
        out = resolve_funds_for(category, funds)
        assert out.source == SOURCE_RELATIONSHIPS
        assert out.fund_ids == ["f-ahorro", "f-viajes"]
        assert out.has_restrictions

    def test_legacy_fund(self, funds):
        out = resolve_funds_for(_category("mercado", fund_id="f-viajes"), funds)
        assert out.source == SOURCE_LEGACY
        assert out.fund_ids == ["f-viajes"]

    def test_missing_legacy_fund_means_unrestricted(self, funds):
        out = resolve_funds_for(_category("mercado", fund_id="f-borrado"), funds)
        assert out.source == SOURCE_ALL
        assert not out.has_restrictions
        assert out.allows("cualquiera")

    def test_unrestricted_lists_all_by_name(self, funds):
        out = resolve_funds_for(_category("mercado"), list(reversed(funds)))
        assert [f.name for f in out.funds] == ["Ahorro", "Disponible", "Viajes"]

    def test_helpers_over_lists(self, funds):
        restricted = _category("viaje", linked=[funds[2]])
        free = _category("otros")
        categories = [restricted, free]
        assert category_has_fund_restrictions("viaje", categories, funds)
        assert not category_has_fund_restrictions("otros", categories, funds)
        assert not category_has_fund_restrictions("nope", categories, funds)
        assert filter_categories_by_fund(categories, funds[0], funds) == [free]
        assert filter_categories_by_fund(categories, None, funds) == categories


# ── Default fund ──


class TestPickDefaultFund:
    def test_empty(self):
        assert pick_default_fund([]) is None

    def test_configured_id_first(self, funds):
        assert pick_default_fund(funds, "f-viajes").id == "f-viajes"

    def test_exact_name_ignoring_accents_and_case(self):
        funds = [models.Fund(id="1", name="Otro"), models.Fund(id="2", name="  DISPONÍBLE ")]
        assert pick_default_fund(funds, default_name="Disponible").id == "2"

    def test_contains_name_then_default_then_first(self):
        contains = [models.Fund(id="1", name="Otro"), models.Fund(id="2", name="Disponible Banco")]
        assert pick_default_fund(contains, default_name="Disponible").id == "2"
        fallback = [models.Fund(id="1", name="Otro"), models.Fund(id="2", name="Default")]
        assert pick_default_fund(fallback, default_name="Disponible").id == "2"
        first = [models.Fund(id="1", name="Otro"), models.Fund(id="2", name="Más")]
        assert pick_default_fund(first, default_name="Disponible").id == "1"

    def test_suggestion_for_category(self, funds):
        category = _category("viaje", linked=[funds[2]])
        assert default_fund_for_category("viaje", [category], funds).id == "f-viajes"
        free = _category("otros")
        assert default_fund_for_category("otros", [free], funds).id == "f-disp"
        assert default_fund_for_category("otros", [free], funds, fund_filter="f-ahorro").id == "f-ahorro"


class TestMultiFundMigrationCheck:
    def test_legacy_without_links_needs_migration(self):
        out = prepare_category_for_multi_fund(_category("mercado", fund_id="f-disp"))
        assert out["needs_migration"] is True
        assert out["suggested_fund_ids"] == ["f-disp"]

    def test_conflicting_legacy(self, funds):
        out = prepare_category_for_multi_fund(_category("mercado", fund_id="f-disp", linked=[funds[0]]))
        assert out["needs_migration"] is False
        assert len(out["warnings"]) == 1


# ── Selector validation ──


class TestSourceFundSelection:
    def test_required(self):
        out = validate_source_fund_selection(None, [])
        assert not out.is_valid
        assert out.errors == [SOURCE_FUND_REQUIRED]
        assert validate_source_fund_selection(None, [], required=False).is_valid

    def test_unrestricted_category_accepts_any_fund(self):
        assert validate_source_fund_selection("x", []).is_valid

    def test_fund_outside_category(self):
        out = validate_source_fund_selection("x", ["a", "b"])
        assert out.errors == [INVALID_FUND_FOR_CATEGORY]
        assert validate_source_fund_selection("a", ["a", "b"]).is_valid
