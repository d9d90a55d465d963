"""Tests for interest-rate conversions (EA, EM, ED, NM, NA)."""

import pytest

from backend.app.utils.interest_rate_utils import (
    are_rates_equivalent,
    compare_rates,
    convert_rate,
    get_conversion_display,
    get_rate_validation_error,
    is_valid_rate,
    to_ea,
)


class TestConvertRate:
    def test_from_effective_annual(self):
        out = convert_rate(0.12, "EA")
        assert out["ea"] == 0.12
        assert out["em"] == pytest.approx(0.009489, abs=1e-6)
        assert out["nm"] == out["em"]
        assert out["na"] == pytest.approx(out["em"] * 12, abs=1e-5)

    def test_from_monthly(self):
        out = convert_rate(0.01, "EM")
        assert out["ea"] == pytest.approx(0.126825, abs=1e-6)
        assert out["em"] == pytest.approx(0.01, abs=1e-6)

    def test_negative_rate_is_zero_everywhere(self):
        assert convert_rate(-0.05, "EA") == {"ea": 0.0, "em": 0.0, "ed": 0.0, "nm": 0.0, "na": 0.0}

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            to_ea(0.1, "XX")


class TestDisplay:
    def test_one_row_per_type_with_input_marked(self):
        rows = get_conversion_display(0.02, "NM")
        assert [r["rate_type"] for r in rows] == ["EA", "EM", "ED", "NM", "NA"]
        inputs = [r for r in rows if r["is_input"]]
        assert len(inputs) == 1
        assert inputs[0]["rate_type"] == "NM"
        assert inputs[0]["formula"] == "Valor ingresado"
        assert rows[0]["formula"] == "EA = (1 + NM)^12 - 1"


class TestValidation:
    @pytest.mark.parametrize("rate,valid", [(0, True), (0.5, True), (10, True), (-0.01, False), (10.5, False)])
    def test_is_valid_rate(self, rate, valid):
        assert is_valid_rate(rate) is valid

    def test_validation_messages(self):
        assert get_rate_validation_error(0.1) is None
        assert "negativa" in get_rate_validation_error(-1)
        assert "1000%" in get_rate_validation_error(11)


class TestComparison:
    def test_nominal_monthly_equals_nominal_annual_over_twelve(self):
        assert are_rates_equivalent(0.01, "NM", 0.12, "NA")

    def test_difference_in_effective_annual(self):
        assert compare_rates(0.15, "EA", 0.12, "EA") == pytest.approx(0.03, abs=1e-6)
        assert not are_rates_equivalent(0.15, "EA", 0.12, "EA")
