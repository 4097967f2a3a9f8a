"""
Pre-eligibility gate for AssetMX Express.
Hard checks decline the application with a plain-English reason; soft checks
(business use) are reported but never decline.
"""
from __future__ import annotations

import math
from datetime import date
from typing import Optional

from schemas.application import DEFAULT_TERM_MONTHS, ApplicationRecord, RegistryLookup
from schemas.eligibility import EligibilityCheckSchema, EligibilityResultSchema
from services.quote_calculator import (
    MAX_BALLOON_PERCENTAGE,
    MAX_LOAN_AMOUNT,
    MAX_TERM_MONTHS,
    MIN_LOAN_AMOUNT,
    MIN_TERM_MONTHS,
)
from utils.parsing import months_between

MIN_ABN_AGE_MONTHS = 24
MIN_GST_AGE_MONTHS = 24
MIN_BUSINESS_USE_PERCENTAGE = 50
MAX_ASSET_AGE_AT_TERM_END = 15


def registration_age_months(registered: Optional[date], as_of: Optional[date] = None) -> Optional[int]:
    """Whole months since registration, or None when the date is unknown."""
    if registered is None:
        return None
    return months_between(registered, as_of or date.today())


def business_gate(lookup: Optional[RegistryLookup], as_of: Optional[date] = None) -> str:
    """
    Classify a register lookup for the chat flow:
    "not_found", "abn_too_young", "no_gst", "gst_too_young" or "pass".
    A missing registration date skips that age check.
    """
    if lookup is None:
        return "not_found"
    abn_age = registration_age_months(lookup.abn_registered_date, as_of)
    if abn_age is not None and abn_age < MIN_ABN_AGE_MONTHS:
        return "abn_too_young"
    if not lookup.gst_registered:
        return "no_gst"
    gst_age = registration_age_months(lookup.gst_registered_date, as_of)
    if gst_age is not None and gst_age < MIN_GST_AGE_MONTHS:
        return "gst_too_young"
    return "pass"


def evaluate_eligibility(record: ApplicationRecord, as_of: Optional[date] = None) -> EligibilityResultSchema:
    """Run every gate check against the record and collect the fail reasons."""
    as_of = as_of or date.today()
    checks: list[EligibilityCheckSchema] = []
    fail_reasons: list[str] = []
    lookup = record.registry_lookup
    business = record.business
    loan = record.loan

    registered = business.abn_registered_date or (lookup.abn_registered_date if lookup else None)
    abn_age = registration_age_months(registered, as_of) or 0
    abn_age_ok = abn_age >= MIN_ABN_AGE_MONTHS
    checks.append(EligibilityCheckSchema(
        name="ABN Age",
        passed=abn_age_ok,
        message=f"ABN registered {abn_age} months" if abn_age_ok else f"ABN must be at least {MIN_ABN_AGE_MONTHS} months old",
        expected=f">= {MIN_ABN_AGE_MONTHS} months",
        actual=str(abn_age),
    ))
    if not abn_age_ok:
        fail_reasons.append(
            f"Your ABN was registered {abn_age} months ago. We require at least {MIN_ABN_AGE_MONTHS} months trading history."
        )

    gst = business.gst_registered if business.gst_registered is not None else bool(lookup and lookup.gst_registered)
    checks.append(EligibilityCheckSchema(
        name="GST Registration",
        passed=gst,
        message="GST registered" if gst else "Business must be GST registered",
    ))
    if not gst:
        fail_reasons.append("Your business must be registered for GST. This is a requirement for our lender panel.")

    status = lookup.abn_status if lookup else "Unknown"
    status_ok = status == "Active"
    checks.append(EligibilityCheckSchema(
        name="ABN Status",
        passed=status_ok,
        message="ABN is active" if status_ok else "ABN must be active",
        expected="Active",
        actual=status,
    ))
    if not status_ok and lookup is not None:
        fail_reasons.append(f'Your ABN status is "{status}". Only active ABNs are eligible.')

    amount = loan.loan_amount
    amount_ok = MIN_LOAN_AMOUNT <= amount <= MAX_LOAN_AMOUNT
    checks.append(EligibilityCheckSchema(
        name="Loan Amount",
        passed=amount_ok,
        message=f"Loan amount ${amount:,.0f} is within range" if amount_ok else "Loan amount must be between $5,000 and $500,000",
        expected=f"${MIN_LOAN_AMOUNT:,} - ${MAX_LOAN_AMOUNT:,}",
        actual=f"{amount:.2f}",
    ))
    if amount < MIN_LOAN_AMOUNT:
        fail_reasons.append(f"Minimum loan amount is ${MIN_LOAN_AMOUNT:,}. You've requested ${amount:,.0f}.")
    elif amount > MAX_LOAN_AMOUNT:
        fail_reasons.append(f"Maximum loan amount is ${MAX_LOAN_AMOUNT:,}. You've requested ${amount:,.0f}.")

    term = loan.term_months or DEFAULT_TERM_MONTHS
    term_ok = MIN_TERM_MONTHS <= term <= MAX_TERM_MONTHS
    checks.append(EligibilityCheckSchema(
        name="Loan Term",
        passed=term_ok,
        message=f"Term of {term} months is acceptable" if term_ok else "Term must be between 12 and 84 months",
    ))
    if not term_ok:
        fail_reasons.append(f"Loan term must be between 12 and 84 months. You've selected {term} months.")

    balloon = loan.balloon_percentage
    balloon_ok = 0 <= balloon <= MAX_BALLOON_PERCENTAGE
    checks.append(EligibilityCheckSchema(
        name="Balloon/Residual",
        passed=balloon_ok,
        message=f"Balloon of {balloon:g}% is acceptable" if balloon_ok else "Balloon/residual must be between 0% and 50%",
    ))
    if not balloon_ok:
        fail_reasons.append(f"Maximum balloon/residual is {MAX_BALLOON_PERCENTAGE}%. You've selected {balloon:g}%.")

    directors = len(record.directors)
    directors_ok = directors >= 1 or record.is_sole_trader
    checks.append(EligibilityCheckSchema(
        name="Director Details",
        passed=directors_ok,
        message=f"{directors} director(s) provided" if directors else "At least one director/guarantor is required",
    ))
    if not directors_ok:
        fail_reasons.append("At least one director or guarantor must be provided.")

    business_use = loan.business_use_percentage
    checks.append(EligibilityCheckSchema(
        name="Business Use",
        passed=business_use >= MIN_BUSINESS_USE_PERCENTAGE,
        hard=False,
        message=(
            f"{business_use:g}% business use qualifies for best rates"
            if business_use >= MIN_BUSINESS_USE_PERCENTAGE
            else "Business use under 50% may affect available rates"
        ),
    ))

    asset = record.asset
    if asset.asset_year and asset.asset_condition and asset.asset_condition.startswith("used"):
        age_at_end = (as_of.year - asset.asset_year) + math.ceil(term / 12)
        age_ok = age_at_end <= MAX_ASSET_AGE_AT_TERM_END
        checks.append(EligibilityCheckSchema(
            name="Asset Age",
            passed=age_ok,
            message=f"Asset will be {age_at_end} years old at term end",
            expected=f"<= {MAX_ASSET_AGE_AT_TERM_END} years",
            actual=str(age_at_end),
        ))
        if not age_ok:
            fail_reasons.append(
                f"The asset will be {age_at_end} years old at the end of the loan term. "
                f"Maximum asset age at term end is {MAX_ASSET_AGE_AT_TERM_END} years. Consider a shorter term."
            )

    passed = all(c.passed for c in checks if c.hard)
    return EligibilityResultSchema(passed=passed, checks=checks, fail_reasons=fail_reasons)


def explain_eligibility(result: EligibilityResultSchema) -> str:
    if result.passed:
        return "Based on the information provided, you meet our initial eligibility criteria."
    reasons = "\n".join(f"{i}. {r}" for i, r in enumerate(result.fail_reasons, start=1))
    return (
        "Unfortunately, we're unable to proceed with your application at this time.\n\n"
        f"{reasons}\n\n"
        "If you believe this is an error or your circumstances have changed, please contact us."
    )
