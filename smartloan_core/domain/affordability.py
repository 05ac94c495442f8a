"""Affordability calculator - amortization and debt service ratio math"""

from typing import Dict, Iterable, List, Mapping

from smartloan_core.domain.models import AffordabilityResult, IncomeRecord

# Returned by dsr() when there is no income to measure against
INFINITE_DSR = float("inf")

DEFAULT_MAX_DSR_PERCENT = 50.0


def _growth_factor(monthly_rate: float, months: int) -> float:
    return (1 + monthly_rate) ** months


def monthly_payment(principal: float, annual_rate: float, months: int) -> float:
    """
    Fixed monthly payment of an amortizing loan.

    Requirements:
    - Standard annuity formula P * r * (1+r)^n / ((1+r)^n - 1), r = annual_rate / 12
    - Zero (or negative) rate is interest-free: principal / months exactly
    - Total: non-positive principal or months yields 0.0

    Example:
        300000 at 15% over 12 months -> ~27,077 per month
    """
    if principal <= 0 or months <= 0:
        return 0.0

    if annual_rate <= 0:
        return principal / months

    r = annual_rate / 12
    try:
        factor = _growth_factor(r, months)
    except OverflowError:
        # (1+r)^n dominates: payment tends to the interest-only amount
        return principal * r

    if factor <= 1.0:
        return principal / months

    return principal * r * factor / (factor - 1)


def principal_from_payment(payment: float, annual_rate: float, months: int) -> float:
    """
    Inverse of monthly_payment(): the principal a monthly budget can service.

    Returns 0.0 for a non-positive payment or term.
    """
    if payment <= 0 or months <= 0:
        return 0.0

    if annual_rate <= 0:
        return payment * months

    r = annual_rate / 12
    try:
        factor = _growth_factor(r, months)
    except OverflowError:
        return payment / r

    if factor <= 1.0:
        return payment * months

    return payment * (factor - 1) / (r * factor)


def dsr(gross_salary: float, existing_deductions: Mapping[str, float], proposed_payment: float) -> float:
    """
    Debt service ratio as a percentage of gross salary.

    Returns INFINITE_DSR when gross_salary <= 0 instead of dividing by zero.
    """
    if gross_salary <= 0:
        return INFINITE_DSR

    total_obligations = sum(existing_deductions.values()) + proposed_payment
    return total_obligations / gross_salary * 100


def max_loan_amount(
    gross_salary: float,
    existing_deductions: Mapping[str, float],
    max_dsr_percent: float,
    annual_rate: float,
    months: int,
) -> float:
    """
    Largest principal whose payment keeps DSR at or under the ceiling.

    Args:
        gross_salary: Average monthly gross salary
        existing_deductions: Monthly obligations already on the payslip
        max_dsr_percent: DSR ceiling as a percentage (50.0, not 0.5)
        annual_rate: Annual interest rate as a fraction
        months: Repayment term

    Returns:
        0.0 when nothing of the monthly budget remains
    """
    if gross_salary <= 0:
        return 0.0

    max_monthly_obligation = gross_salary * max_dsr_percent / 100
    available = max_monthly_obligation - sum(existing_deductions.values())
    if available <= 0:
        return 0.0

    return principal_from_payment(available, annual_rate, months)


def average_deductions(income_records: Iterable[IncomeRecord]) -> Dict[str, float]:
    """
    Average each deduction type over the records that report it.

    A record that omits a deduction type does not count as a zero for it.
    """
    amounts: Dict[str, List[float]] = {}
    for record in income_records:
        for name, amount in record.deductions.items():
            amounts.setdefault(name, []).append(amount)

    return {name: sum(values) / len(values) for name, values in amounts.items()}


def average_gross_salary(income_records: Iterable[IncomeRecord]) -> float:
    salaries = [r.gross_salary for r in income_records]
    return sum(salaries) / len(salaries) if salaries else 0.0


def total_interest(principal: float, annual_rate: float, months: int) -> float:
    """Interest paid over the full term"""
    if principal <= 0 or months <= 0:
        return 0.0
    return max(0.0, monthly_payment(principal, annual_rate, months) * months - principal)


def early_payment_savings(
    principal: float,
    annual_rate: float,
    original_months: int,
    actual_months: int,
) -> float:
    """Interest saved by taking the loan over actual_months instead of original_months"""
    return total_interest(principal, annual_rate, original_months) - total_interest(
        principal, annual_rate, actual_months
    )


def assess_affordability(
    gross_salary: float,
    existing_deductions: Mapping[str, float],
    proposed_amount: float,
    annual_rate: float,
    months: int,
    max_dsr_percent: float = DEFAULT_MAX_DSR_PERCENT,
) -> AffordabilityResult:
    """Check one proposed amount against the DSR ceiling"""
    payment = monthly_payment(proposed_amount, annual_rate, months)
    ratio = dsr(gross_salary, existing_deductions, payment)
    max_affordable = max_loan_amount(gross_salary, existing_deductions, max_dsr_percent, annual_rate, months)

    return AffordabilityResult(
        is_affordable=ratio <= max_dsr_percent,
        dsr=ratio,
        monthly_payment=payment,
        max_affordable_amount=max_affordable,
        excess_amount=max(0.0, proposed_amount - max_affordable),
    )
