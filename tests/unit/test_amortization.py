"""Unit tests for the amortization engine"""

import pytest
from datetime import date
from decimal import Decimal

import numpy_financial as npf

from checkout_ledger.domain.amortization import (
    calculate_periodic_installment,
    compute_schedule,
    quote_installment_options,
)
from checkout_ledger.domain.exceptions import InvalidTenureError, ValidationError
from checkout_ledger.utils.date_utils import add_months

START = date(2026, 1, 15)


def test_zero_rate_splits_principal_evenly():
    """1200 at 0% over 3 months is three installments of exactly 400.00"""
    schedule = compute_schedule(Decimal("1200"), Decimal("0"), 3, START)

    assert [inst.amount for inst in schedule.installments] == [Decimal("400.00")] * 3
    assert all(inst.interest_portion == 0 for inst in schedule.installments)
    assert schedule.periodic_installment == Decimal("400.00")
    assert schedule.total_amount == Decimal("1200.00")
    assert schedule.total_interest == 0


def test_zero_rate_residue_lands_in_final_installment():
    schedule = compute_schedule(Decimal("1000"), Decimal("0"), 3, START)

    assert [inst.amount for inst in schedule.installments] == [
        Decimal("333.33"),
        Decimal("333.33"),
        Decimal("333.34"),
    ]
    assert schedule.total_amount == Decimal("1000.00")


def test_interest_bearing_installment_matches_reference_formula():
    """10000 at 12% over 12 months against numpy-financial's pmt"""
    reference = -npf.pmt(0.12 / 12, 12, 10000)

    installment = calculate_periodic_installment(Decimal("10000"), Decimal("12"), 12)

    assert installment == Decimal("888.49")
    assert abs(float(installment) - reference) <= 0.01


def test_interest_bearing_schedule_tracks_reference_balance():
    schedule = compute_schedule(Decimal("10000"), Decimal("12"), 12, START)

    first = schedule.installments[0]
    assert first.interest_portion == Decimal("100.00")
    assert first.principal_portion == Decimal("788.49")

    for period, inst in enumerate(schedule.installments[:-1], start=1):
        reference_interest = -npf.ipmt(0.01, period, 12, 10000)
        assert abs(float(inst.interest_portion) - reference_interest) <= 0.02

    reference_total_interest = sum(-npf.ipmt(0.01, period, 12, 10000) for period in range(1, 13))
    assert abs(float(schedule.total_interest) - reference_total_interest) <= 0.05


@pytest.mark.parametrize(
    "principal,rate,tenure",
    [
        ("900.00", "0", 6),
        ("999.99", "2", 3),
        ("10000", "12", 12),
        ("12345.67", "5", 9),
        ("49.99", "18", 12),
        ("250000", "24", 12),
        ("73.21", "100", 6),
    ],
)
def test_schedule_is_complete(principal, rate, tenure):
    """Amounts add up to total_amount and principal portions to the principal, to the cent"""
    schedule = compute_schedule(Decimal(principal), Decimal(rate), tenure, START)

    assert len(schedule.installments) == tenure
    assert sum(inst.amount for inst in schedule.installments) == schedule.total_amount
    assert sum(inst.principal_portion for inst in schedule.installments) == Decimal(principal)
    assert schedule.total_interest == schedule.total_amount - Decimal(principal)
    assert all(inst.interest_portion >= 0 for inst in schedule.installments)
    assert [inst.sequence_number for inst in schedule.installments] == list(range(1, tenure + 1))


def test_rate_is_rounded_to_two_decimals_before_scheduling():
    schedule = compute_schedule(Decimal("10000"), Decimal("12.345"), 12, START)

    assert schedule.annual_interest_rate == Decimal("12.35")
    assert schedule.periodic_installment == calculate_periodic_installment(Decimal("10000"), Decimal("12.35"), 12)
    assert schedule.installments[0].interest_portion == Decimal("102.92")


def test_due_dates_are_monthly_and_clamped_to_month_end():
    schedule = compute_schedule(Decimal("600"), Decimal("0"), 3, date(2026, 1, 31))

    assert [inst.due_date for inst in schedule.installments] == [
        date(2026, 2, 28),
        date(2026, 3, 31),
        date(2026, 4, 30),
    ]


def test_add_months_handles_leap_years_and_year_end():
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2026, 11, 30), 3) == date(2027, 2, 28)


@pytest.mark.parametrize("tenure", [0, 1, 4, 24])
def test_rejects_unoffered_tenure(tenure):
    with pytest.raises(InvalidTenureError):
        compute_schedule(Decimal("1000"), Decimal("0"), tenure, START)


def test_invalid_tenure_is_a_validation_error():
    with pytest.raises(ValidationError):
        calculate_periodic_installment(Decimal("1000"), Decimal("5"), 5)


@pytest.mark.parametrize("principal", ["0", "-10"])
def test_rejects_non_positive_principal(principal):
    with pytest.raises(ValidationError):
        compute_schedule(Decimal(principal), Decimal("0"), 3, START)


@pytest.mark.parametrize("rate", ["-1", "100.01"])
def test_rejects_rate_out_of_range(rate):
    with pytest.raises(ValidationError):
        compute_schedule(Decimal("1000"), Decimal(rate), 3, START)


def test_quote_offers_every_tenure():
    rates = {3: Decimal("0"), 6: Decimal("2"), 9: Decimal("3"), 12: Decimal("5")}

    quotes = quote_installment_options(Decimal("900"), rates, START)

    assert [q.tenure for q in quotes] == [3, 6, 9, 12]
    three_months = quotes[0]
    assert three_months.periodic_installment == Decimal("300.00")
    assert three_months.total_amount == Decimal("900.00")
    assert three_months.total_interest == 0
    assert all(q.total_interest > 0 for q in quotes[1:])
    assert quotes[3].annual_interest_rate == Decimal("5")


def test_quote_treats_missing_rate_as_interest_free():
    quotes = quote_installment_options(Decimal("1200"), {}, START)

    assert all(q.total_interest == 0 for q in quotes)
    assert quotes[1].periodic_installment == Decimal("200.00")
