"""
Transparent quote calculator.
Prices a loan at the lender base rate (no markup) with itemised flat fees, and
compares it with a typical broker deal, where the commission is hidden in a
higher rate instead of a platform fee.
Repayments use the annuity (PMT) formula with the balloon discounted to present value.
"""
from __future__ import annotations

import math

from schemas.quote import QuoteResult

PLATFORM_FEE = 800.00
LENDER_ESTABLISHMENT_FEE = 500.00
PPSR_FEE = 7.40
BROKER_MARGIN = 2.00

MIN_LOAN_AMOUNT = 5_000
MAX_LOAN_AMOUNT = 500_000
MIN_TERM_MONTHS = 12
MAX_TERM_MONTHS = 84
MAX_BALLOON_PERCENTAGE = 50

# Annual base rates (percent) by asset type and condition band
BASE_RATES: dict[str, dict[str, float]] = {
    "vehicle": {"new": 6.29, "demo": 6.29, "used_0_3": 6.49, "used_4_7": 6.99, "used_8_plus": 7.49},
    "truck": {"new": 6.49, "demo": 6.49, "used_0_3": 6.79, "used_4_7": 7.29, "used_8_plus": 7.99},
    "equipment": {"new": 6.49, "demo": 6.79, "used_0_3": 6.99, "used_4_7": 7.49, "used_8_plus": 8.29},
    "technology": {"new": 7.49, "demo": 7.99, "used_0_3": 8.29, "used_4_7": 9.49, "used_8_plus": 10.99},
}

# Lender cap on balloon by term in whole years (5 years and longer share the last cap)
MAX_BALLOON_BY_TERM_YEARS = {1: 65, 2: 60, 3: 50, 4: 40, 5: 30}


class QuoteError(ValueError):
    """Quote inputs outside the priced range."""


def round_money(value: float) -> float:
    """Round to cents, halves away from zero."""
    return math.copysign(math.floor(abs(value) * 100 + 0.5), value) / 100


def get_base_rate(asset_type: str, asset_condition: str) -> float:
    try:
        return BASE_RATES[asset_type][asset_condition]
    except KeyError:
        raise QuoteError(f"No base rate for {asset_type}/{asset_condition}") from None


def max_balloon_for_term(term_months: int) -> int:
    years = max(1, math.ceil(term_months / 12))
    return MAX_BALLOON_BY_TERM_YEARS.get(years, MAX_BALLOON_BY_TERM_YEARS[5])


def monthly_repayment(principal: float, annual_rate: float, term_months: int, balloon_amount: float) -> float:
    """Level monthly payment (in arrears) that leaves balloon_amount owing at the end."""
    r = annual_rate / 100 / 12
    if r == 0:
        return (principal - balloon_amount) / term_months
    growth = (1 + r) ** term_months
    adjusted_principal = principal - balloon_amount / growth
    return adjusted_principal * r * growth / (growth - 1)


def _validate(loan_amount: float, term_months: int, balloon_percentage: float) -> None:
    if not (MIN_LOAN_AMOUNT <= loan_amount <= MAX_LOAN_AMOUNT):
        raise QuoteError(f"Loan amount must be between ${MIN_LOAN_AMOUNT:,} and ${MAX_LOAN_AMOUNT:,}")
    if not (MIN_TERM_MONTHS <= term_months <= MAX_TERM_MONTHS):
        raise QuoteError(f"Loan term must be between {MIN_TERM_MONTHS} and {MAX_TERM_MONTHS} months")
    if not (0 <= balloon_percentage <= MAX_BALLOON_PERCENTAGE):
        raise QuoteError(f"Balloon must be between 0% and {MAX_BALLOON_PERCENTAGE}%")


def calculate_quote(
    asset_type: str,
    asset_condition: str,
    loan_amount: float,
    term_months: int,
    balloon_percentage: float,
) -> QuoteResult:
    """
    Price a loan. Raises QuoteError when the amount, term or balloon is out of range
    or the asset type/condition has no tabulated rate.
    """
    _validate(loan_amount, term_months, balloon_percentage)
    rate = get_base_rate(asset_type, asset_condition)

    balloon_amount = loan_amount * balloon_percentage / 100
    monthly = monthly_repayment(loan_amount, rate, term_months, balloon_amount)
    total_repayments = monthly * term_months + balloon_amount
    total_fees = PLATFORM_FEE + LENDER_ESTABLISHMENT_FEE + PPSR_FEE
    total_cost = total_repayments + total_fees

    # Broker deal: same lender fees, no platform fee, margin baked into the rate
    broker_rate = rate + BROKER_MARGIN
    broker_monthly = monthly_repayment(loan_amount, broker_rate, term_months, balloon_amount)
    broker_total_cost = broker_monthly * term_months + balloon_amount + LENDER_ESTABLISHMENT_FEE + PPSR_FEE

    return QuoteResult(
        indicative_rate=round_money(rate),
        monthly_repayment=round_money(monthly),
        weekly_repayment=round_money(monthly * 12 / 52),
        fortnightly_repayment=round_money(monthly * 12 / 26),
        balloon_amount=round_money(balloon_amount),
        total_repayments=round_money(total_repayments),
        total_interest=round_money(total_repayments - loan_amount),
        platform_fee=PLATFORM_FEE,
        lender_establishment_fee=LENDER_ESTABLISHMENT_FEE,
        ppsr_fee=PPSR_FEE,
        total_fees=round_money(total_fees),
        total_cost=round_money(total_cost),
        broker_comparison_rate=round_money(broker_rate),
        broker_monthly_repayment=round_money(broker_monthly),
        broker_comparison_total_cost=round_money(broker_total_cost),
        estimated_saving=round_money(broker_total_cost - total_cost),
    )
