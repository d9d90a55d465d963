"""Tests for the loan calculator.

Tests cover:
  - Month arithmetic with end-of-month clamping
  - Fixed monthly payment and input validation
  - Amortization schedule shape and early payoff with extra payments
  - Rate comparisons without duplicates
"""

from dataclasses import dataclass
from datetime import date

import pytest

from backend.app.utils.loan_utils import (
    LoanParams,
    add_months,
    calculate_extra_payment_impact,
    calculate_loan_summary,
    calculate_monthly_payment,
    calculate_principal_paid_percentage,
    generate_amortization_schedule,
    generate_loan_comparisons,
    get_payment_range_summary,
)


@dataclass
class _Extra:
    payment_number: int
    amount: float


def _loan(principal=10000, rate=12, term=12):
    return LoanParams(principal=principal, interest_rate=rate, term_months=term, start_date=date(2024, 1, 31))


class TestAddMonths:
    def test_plain(self):
        assert add_months(date(2024, 3, 10), 2) == date(2024, 5, 10)

    def test_clamps_to_month_end(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)

    def test_crosses_year(self):
        assert add_months(date(2024, 11, 15), 3) == date(2025, 2, 15)


class TestMonthlyPayment:
    def test_known_value(self):
        assert calculate_monthly_payment(10000, 12, 12) == pytest.approx(885.62, abs=0.01)

    @pytest.mark.parametrize("principal,rate,term", [(0, 12, 12), (1000, 0, 12), (1000, 12, 0), (-5, 12, 12)])
    def test_rejects_non_positive_inputs(self, principal, rate, term):
        with pytest.raises(ValueError):
            calculate_monthly_payment(principal, rate, term)

    def test_summary_totals(self):
        summary = calculate_loan_summary(10000, 12, 12, date(2024, 1, 31))
        assert summary["total_payment"] == pytest.approx(summary["monthly_payment"] * 12, abs=0.01)
        assert summary["total_interest"] == pytest.approx(summary["total_payment"] - 10000, abs=0.01)
        assert summary["payoff_date"] == date(2025, 1, 31)


class TestAmortizationSchedule:
    def test_one_row_per_month(self):
        schedule = generate_amortization_schedule(_loan())
        assert len(schedule) == 12
        assert schedule[0]["date"] == date(2024, 1, 31)
        assert schedule[1]["date"] == date(2024, 2, 29)

    def test_balance_decreases_to_near_zero(self):
        schedule = generate_amortization_schedule(_loan())
        balances = [row["remaining_balance"] for row in schedule]
        assert balances == sorted(balances, reverse=True)
        assert balances[-1] < 1

    def test_first_interest_uses_monthly_rate(self):
        first = generate_amortization_schedule(_loan())[0]
        assert first["interest_portion"] == pytest.approx(94.89, abs=0.01)
        assert first["is_extra_payment"] is False
        assert first["extra_amount"] is None

    def test_extra_payment_shortens_loan(self):
        schedule = generate_amortization_schedule(_loan(), [_Extra(1, 5000)])
        assert schedule[0]["is_extra_payment"] is True
        assert schedule[0]["extra_amount"] == 5000
        assert len(schedule) < 12
        assert schedule[-1]["remaining_balance"] == 0

    def test_principal_never_exceeds_balance(self):
        schedule = generate_amortization_schedule(_loan(), [_Extra(2, 50000)])
        assert len(schedule) == 2
        assert schedule[-1]["remaining_balance"] == 0

    def test_last_payment_covers_only_what_is_left(self):
        schedule = generate_amortization_schedule(_loan(), [_Extra(1, 3000)])
        last = schedule[-1]
        assert last["payment_amount"] < 885.62
        assert last["payment_amount"] == pytest.approx(last["principal_portion"] + last["interest_portion"], abs=0.01)
        assert sum(p["principal_portion"] for p in schedule) == pytest.approx(10000, abs=0.01)


class TestExtraPaymentImpact:
    def test_saves_months_and_interest(self):
        impact = calculate_extra_payment_impact(_loan(), [_Extra(1, 3000)])
        assert impact["months_saved"] > 0
        assert impact["interest_saved"] > 200
        new = impact["new_summary"]
        assert new["total_payment"] == pytest.approx(10000 + new["total_interest"], abs=0.01)
        assert new["total_interest"] < impact["original_summary"]["total_interest"]
        assert impact["new_summary"]["term_months"] < impact["original_summary"]["term_months"]

    def test_no_extras_saves_nothing(self):
        impact = calculate_extra_payment_impact(_loan(), [])
        assert impact["months_saved"] == 0
        assert impact["interest_saved"] == 0


class TestComparisons:
    def test_scenario_rate_included_once(self):
        rows = generate_loan_comparisons(_loan(), [10, 12, 14])
        assert [r["interest_rate"] for r in rows] == [10, 12, 14]

    def test_higher_rate_costs_more(self):
        low, high = generate_loan_comparisons(_loan(), [20])
        assert high["total_interest"] > low["total_interest"]


class TestScheduleReaders:
    def test_principal_paid_percentage_bounds(self):
        loan = _loan()
        assert calculate_principal_paid_percentage(loan, 0) == 0.0
        assert calculate_principal_paid_percentage(loan, 12) == 100.0
        assert 0 < calculate_principal_paid_percentage(loan, 6) < 100

    def test_payment_range_summary(self):
        out = get_payment_range_summary(_loan(), 1, 3)
        assert out["payment_count"] == 3
        assert out["total_paid"] == pytest.approx(out["total_principal"] + out["total_interest"], abs=0.01)
