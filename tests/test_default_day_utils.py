"""Tests for preferred-day date resolution."""

from datetime import date
from types import SimpleNamespace

import pytest

from backend.app.utils.default_day_utils import (
    calculate_default_date,
    default_date_for_period,
    get_days_in_month,
    period_bounds,
)


def test_days_in_month_handles_leap_years():
    assert get_days_in_month(2024, 2) == 29
    assert get_days_in_month(2023, 2) == 28
    assert get_days_in_month(2024, 12) == 31


@pytest.mark.parametrize("month", [0, 13])
def test_days_in_month_rejects_invalid_month(month):
    with pytest.raises(ValueError):
        get_days_in_month(2024, month)


def test_period_bounds_use_zero_based_month():
    assert period_bounds(2024, 1) == (date(2024, 2, 1), date(2024, 2, 29))


def test_default_date_clamps_to_month_end():
    assert calculate_default_date(31, date(2024, 2, 29)) == date(2024, 2, 29)
    assert calculate_default_date(15, date(2024, 2, 29)) == date(2024, 2, 15)


def test_no_preferred_day():
    assert calculate_default_date(None, date(2024, 2, 29)) is None


@pytest.mark.parametrize("day", [0, 32, True, "5"])
def test_invalid_day(day):
    with pytest.raises(ValueError):
        calculate_default_date(day, date(2024, 2, 29))


def test_default_date_for_period():
    period = SimpleNamespace(year=2023, month=3)  # abril
    assert default_date_for_period(31, period) == date(2023, 4, 30)
