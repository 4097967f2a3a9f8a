"""
Quote calculator inputs and outputs.
QuoteRequest accepts camelCase (frontend) or snake_case; QuoteResult is internal snake_case.
"""
from typing import Literal

from pydantic import BaseModel, Field

AssetType = Literal["vehicle", "truck", "equipment", "technology"]
AssetCondition = Literal["new", "demo", "used_0_3", "used_4_7", "used_8_plus"]


class QuoteRequest(BaseModel):
    asset_type: AssetType = Field("vehicle", alias="assetType")
    asset_condition: AssetCondition = Field("new", alias="assetCondition")
    loan_amount: float = Field(..., alias="loanAmount")
    term_months: int = Field(60, alias="termMonths")
    balloon_percentage: float = Field(0, alias="balloonPercentage")

    model_config = {"populate_by_name": True}


class QuoteResult(BaseModel):
    """Pricing outputs; all money values rounded to cents."""
    indicative_rate: float = Field(..., description="Base annual rate, percent, no markup")
    monthly_repayment: float
    weekly_repayment: float
    fortnightly_repayment: float
    balloon_amount: float
    total_repayments: float
    total_interest: float
    platform_fee: float
    lender_establishment_fee: float
    ppsr_fee: float
    total_fees: float
    total_cost: float
    broker_comparison_rate: float
    broker_monthly_repayment: float
    broker_comparison_total_cost: float
    estimated_saving: float
