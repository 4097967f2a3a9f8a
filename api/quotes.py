from __future__ import annotations

from fastapi import APIRouter, HTTPException

from schemas.quote import QuoteRequest
from services.quote_calculator import (
    BASE_RATES,
    BROKER_MARGIN,
    LENDER_ESTABLISHMENT_FEE,
    MAX_BALLOON_BY_TERM_YEARS,
    PLATFORM_FEE,
    PPSR_FEE,
    QuoteError,
    calculate_quote,
)
from utils.case import camel_payload

router = APIRouter(prefix="/api/quotes", tags=["quotes"])


@router.post("")
async def create_quote(body: QuoteRequest):
    try:
        result = calculate_quote(
            body.asset_type,
            body.asset_condition,
            body.loan_amount,
            body.term_months,
            body.balloon_percentage,
        )
    except QuoteError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return camel_payload(result)


@router.get("/rates")
async def get_rates():
    """Rate card keyed by asset type then condition band (band keys kept as-is)."""
    return {
        "baseRates": BASE_RATES,
        "platformFee": PLATFORM_FEE,
        "lenderEstablishmentFee": LENDER_ESTABLISHMENT_FEE,
        "ppsrFee": PPSR_FEE,
        "brokerMargin": BROKER_MARGIN,
        "maxBalloonByTermYears": {str(k): v for k, v in MAX_BALLOON_BY_TERM_YEARS.items()},
    }
