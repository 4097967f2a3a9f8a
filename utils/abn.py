"""
ABN (Australian Business Number) helpers.
An ABN is valid when, after subtracting 1 from the first digit, the weighted
digit sum is divisible by 89.
"""
import re

ABN_WEIGHTS = (10, 1, 3, 5, 7, 9, 11, 13, 15, 17, 19)
_NON_DIGIT = re.compile(r"\D")


def clean_abn(raw: str) -> str:
    """Strip spaces and any other non-digit characters."""
    return _NON_DIGIT.sub("", raw or "")


def is_valid_abn(raw: str) -> bool:
    digits = clean_abn(raw)
    if len(digits) != 11:
        return False
    values = [int(d) for d in digits]
    values[0] -= 1
    return sum(w * d for w, d in zip(ABN_WEIGHTS, values)) % 89 == 0


def format_abn(raw: str) -> str:
    """Format as "XX XXX XXX XXX"; input that is not 11 digits is returned unchanged."""
    digits = clean_abn(raw)
    if len(digits) != 11:
        return raw
    return f"{digits[:2]} {digits[2:5]} {digits[5:8]} {digits[8:]}"
