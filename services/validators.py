"""
Input validators for chat steps.
Each takes the raw answer and the current record and returns a user-facing
error message, or None when the answer is acceptable. Validators never mutate.
"""
from __future__ import annotations

import re
from datetime import date
from typing import Callable, Optional

from schemas.application import MIN_DIRECTOR_AGE, ApplicationRecord
from services.quote_calculator import MAX_LOAN_AMOUNT, MIN_LOAN_AMOUNT
from utils.abn import clean_abn, is_valid_abn
from utils.parsing import parse_amount, parse_date, years_between

Validator = Callable[[str, ApplicationRecord], Optional[str]]

_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

AMOUNT_NOT_A_NUMBER = "Enter amount as a number (e.g. 75000)."
AMOUNT_NOT_POSITIVE = "Amount needs to be more than $0."
AMOUNT_BELOW_MINIMUM = "Minimum finance amount: $5,000."
AMOUNT_ABOVE_MAXIMUM = "For amounts over $500k, contact us directly."


def validate_business_name(raw: str, record: ApplicationRecord) -> Optional[str]:
    if not raw or len(raw.strip()) < 2:
        return "Just need at least a couple of characters to search."
    return None


def validate_abn(raw: str, record: ApplicationRecord) -> Optional[str]:
    if not is_valid_abn(clean_abn(raw)):
        return "That ABN doesn't look quite right. It should be 11 digits - have another crack?"
    return None


def validate_name(raw: str, record: ApplicationRecord) -> Optional[str]:
    if not raw or len(raw.strip()) < 2:
        return "Please enter a name."
    return None


def validate_email(raw: str, record: ApplicationRecord) -> Optional[str]:
    if not _EMAIL.match((raw or "").strip()):
        return "Invalid email format. Please re-enter."
    return None


def validate_phone(raw: str, record: ApplicationRecord) -> Optional[str]:
    if len(re.sub(r"\D", "", raw or "")) < 10:
        return "Phone number must be 10 digits."
    return None


def validate_amount(raw: str, record: ApplicationRecord) -> Optional[str]:
    """Finance amounts: numeric, positive and within the lending range."""
    try:
        amount = parse_amount(raw)
    except ValueError:
        return AMOUNT_NOT_A_NUMBER
    if amount <= 0:
        return AMOUNT_NOT_POSITIVE
    if amount < MIN_LOAN_AMOUNT:
        return AMOUNT_BELOW_MINIMUM
    if amount > MAX_LOAN_AMOUNT:
        return AMOUNT_ABOVE_MAXIMUM
    return None


def validate_non_negative_amount(raw: str, record: ApplicationRecord) -> Optional[str]:
    """Balances and incomes, where 0 means none."""
    try:
        amount = parse_amount(raw)
    except ValueError:
        return AMOUNT_NOT_A_NUMBER
    if amount < 0:
        return "Amount can't be negative. Enter 0 if none."
    return None


def validate_deposit(raw: str, record: ApplicationRecord) -> Optional[str]:
    error = validate_non_negative_amount(raw, record)
    if error:
        return error
    price = record.asset.asset_price_inc_gst
    if price is not None and parse_amount(raw) + record.loan.trade_in_amount >= price:
        return "Deposit needs to be less than the asset price."
    return None


def validate_date_of_birth(raw: str, record: ApplicationRecord) -> Optional[str]:
    dob = parse_date(raw)
    if dob is None:
        return "Enter date of birth as DD/MM/YYYY."
    today = date.today()
    if dob > today:
        return "Date of birth can't be in the future."
    if years_between(dob, today) < MIN_DIRECTOR_AGE:
        return f"Directors must be at least {MIN_DIRECTOR_AGE} years old."
    return None
