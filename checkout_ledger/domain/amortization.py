"""Amortization engine for installment (EMI) repayment plans"""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from checkout_ledger.domain.exceptions import InvalidTenureError, ValidationError
from checkout_ledger.domain.models import (
    ALLOWED_TENURES,
    AmortizationSchedule,
    InstallmentQuote,
    ScheduledInstallment,
)
from checkout_ledger.utils.date_utils import monthly_due_dates
from checkout_ledger.utils.money import ZERO, Number, to_decimal, to_money


def _validate(principal: Decimal, annual_rate: Decimal, tenure: int) -> None:
    if principal <= 0:
        raise ValidationError("Principal amount must be greater than 0")
    if annual_rate < 0 or annual_rate > 100:
        raise ValidationError("Annual interest rate must be between 0 and 100")
    if tenure not in ALLOWED_TENURES:
        raise InvalidTenureError(f"Tenure must be one of {', '.join(map(str, ALLOWED_TENURES))} months")


def monthly_rate(annual_rate_percent: Decimal) -> Decimal:
    return annual_rate_percent / Decimal(12) / Decimal(100)


def calculate_periodic_installment(principal: Number, annual_rate_percent: Number, tenure: int) -> Decimal:
    """
    Equated periodic installment, rounded to the currency minor unit.

    Formula: P x r x (1+r)^n / ((1+r)^n - 1), with r = annual rate / 12 / 100.
    A zero rate degenerates to P / n.
    """
    principal = to_decimal(principal)
    annual_rate = to_decimal(annual_rate_percent)
    _validate(principal, annual_rate, tenure)

    if annual_rate == 0:
        return to_money(principal / Decimal(tenure))

    r = monthly_rate(annual_rate)
    growth = (1 + r) ** tenure
    return to_money(principal * r * growth / (growth - 1))


def compute_schedule(
    principal: Number,
    annual_rate_percent: Number,
    tenure: int,
    start_date: date,
) -> AmortizationSchedule:
    """
    Generate the full installment schedule with principal/interest breakdown.

    Requirements:
    - One installment per month, the first due one month after start_date
    - Every figure rounded to cents as it is computed, never carried as a float
    - The final period pays off the whole remaining principal, so the principal
      portions sum to exactly the principal and the amounts sum to exactly
      total_amount

    Example (zero rate):
        1000.00 over 3 months -> [333.33, 333.33, 333.34]
    """
    principal = to_money(principal)
    # Plans persist the rate to two decimals; build the schedule from that same figure
    annual_rate = to_money(annual_rate_percent)
    installment = calculate_periodic_installment(principal, annual_rate, tenure)
    r = monthly_rate(annual_rate)
    due_dates = monthly_due_dates(start_date, tenure)

    installments: List[ScheduledInstallment] = []
    remaining = principal

    for sequence, due_date in enumerate(due_dates, start=1):
        if annual_rate == 0:
            interest = ZERO
            principal_portion = remaining if sequence == tenure else min(installment, remaining)
        elif sequence < tenure:
            interest = to_money(remaining * r)
            principal_portion = min(installment - interest, remaining)
        else:
            # Last period settles the balance; interest absorbs rounding drift
            principal_portion = remaining
            interest = installment - principal_portion
            if interest < 0:
                interest = ZERO

        remaining -= principal_portion
        installments.append(
            ScheduledInstallment(
                sequence_number=sequence,
                due_date=due_date,
                amount=principal_portion + interest,
                principal_portion=principal_portion,
                interest_portion=interest,
            )
        )

    total_amount = sum((inst.amount for inst in installments), ZERO)

    return AmortizationSchedule(
        principal=principal,
        annual_interest_rate=annual_rate,
        tenure=tenure,
        periodic_installment=installment,
        total_amount=total_amount,
        total_interest=total_amount - principal,
        installments=installments,
    )


def quote_installment_options(
    amount: Number,
    rates: Dict[int, Decimal],
    start_date: Optional[date] = None,
) -> List[InstallmentQuote]:
    """Quote every offered tenure at its annual rate; tenures missing from rates are interest-free"""
    start_date = start_date or date.today()
    quotes = []
    for tenure in ALLOWED_TENURES:
        rate = to_decimal(rates.get(tenure, ZERO))
        schedule = compute_schedule(amount, rate, tenure, start_date)
        quotes.append(
            InstallmentQuote(
                tenure=tenure,
                annual_interest_rate=rate,
                periodic_installment=schedule.periodic_installment,
                total_amount=schedule.total_amount,
                total_interest=schedule.total_interest,
            )
        )
    return quotes
