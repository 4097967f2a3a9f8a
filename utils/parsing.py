"""
Parsing helpers for free-text chat answers: money amounts and dates.
"""
from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Optional

_CURRENCY = re.compile(r"^(?:aud|au\$|a\$)|aud$")
_AMOUNT_STRIP = re.compile(r"[,$\s]")
_DDMMYYYY = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_YYYYMMDD = re.compile(r"^\d{8}$")


def parse_amount(raw: str) -> float:
    """
    Parse a natural money answer: "75k" -> 75000, "$1,250.00" -> 1250, "2m" -> 2000000,
    "A$75k" or "75,000 AUD" -> 75000.
    Raises ValueError when the text is not a finite number.
    """
    cleaned = _CURRENCY.sub("", str(raw).strip().lower())
    cleaned = _AMOUNT_STRIP.sub("", cleaned)
    multiplier = 1
    if cleaned.endswith("k"):
        cleaned, multiplier = cleaned[:-1], 1_000
    elif cleaned.endswith("m"):
        cleaned, multiplier = cleaned[:-1], 1_000_000
    if not cleaned:
        raise ValueError(f"Not an amount: {raw!r}")
    value = float(cleaned) * multiplier
    if not math.isfinite(value):
        raise ValueError(f"Not an amount: {raw!r}")
    return value


def parse_date(raw: Optional[str]) -> Optional[date]:
    """Accepts YYYY-MM-DD (optionally with a time part), YYYYMMDD and DD/MM/YYYY."""
    if not raw:
        return None
    text = str(raw).strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        if _YYYYMMDD.match(text):
            return date(int(text[:4]), int(text[4:6]), int(text[6:8]))
        match = _DDMMYYYY.match(text)
        if match:
            day, month, year = (int(g) for g in match.groups())
            return date(year, month, day)
    except ValueError:
        return None
    return None


def months_between(start: date, end: date) -> int:
    """Whole calendar months from start to end (negative when end is earlier)."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return months


def years_between(start: date, end: date) -> int:
    return months_between(start, end) // 12
