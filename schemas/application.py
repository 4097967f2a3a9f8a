"""
ApplicationRecord: the nested record built up across a chat session.
Stored and dumped snake_case; derived fields (loan amount, balloon amount, GST split)
are recomputed by the model validator every time the record is validated, so a
record can never hold a stale derivation.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from schemas.quote import AssetCondition, AssetType, QuoteRequest, QuoteResult
from utils.parsing import years_between
from utils.paths import assign_path

EntityType = Literal["company", "trust", "sole_trader", "partnership"]

ALLOWED_TERM_MONTHS = (12, 24, 36, 48, 60, 72, 84)
GST_RATE = 0.10
MIN_DIRECTOR_AGE = 18
DEFAULT_TERM_MONTHS = 60


class BusinessDetails(BaseModel):
    abn: Optional[str] = None
    business_name: Optional[str] = Field(None, description="Free text the applicant searched with")
    entity_name: Optional[str] = None
    entity_type: Optional[EntityType] = None
    gst_registered: Optional[bool] = None
    gst_registered_date: Optional[date] = None
    abn_registered_date: Optional[date] = None
    trading_name: Optional[str] = None
    business_address: Optional[str] = None
    business_state: Optional[str] = None
    business_postcode: Optional[str] = None


class AssetDetails(BaseModel):
    asset_type: Optional[AssetType] = None
    asset_condition: Optional[AssetCondition] = None
    ev_use_type: Optional[Literal["business", "novated"]] = None
    asset_price_inc_gst: Optional[float] = Field(None, ge=0)
    asset_price_ex_gst: Optional[float] = None
    asset_gst: Optional[float] = None
    asset_year: Optional[int] = Field(None, ge=1900, le=2100)
    asset_description: Optional[str] = None
    supplier_name: Optional[str] = None
    supplier_abn: Optional[str] = None


class LoanDetails(BaseModel):
    loan_amount: float = Field(0, description="Derived: price inc GST - deposit - trade-in, floored at 0")
    deposit_amount: float = Field(0, ge=0)
    trade_in_amount: float = Field(0, ge=0)
    term_months: Optional[int] = None
    balloon_percentage: float = Field(0, ge=0, le=50)
    balloon_amount: float = Field(0, description="Derived: loan amount x balloon percentage")
    business_use_percentage: float = Field(100, ge=0, le=100)

    @field_validator("term_months")
    @classmethod
    def _term_in_allowed_set(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v not in ALLOWED_TERM_MONTHS:
            raise ValueError(f"Term must be one of {', '.join(str(t) for t in ALLOWED_TERM_MONTHS)} months")
        return v


class Director(BaseModel):
    """Guarantor profile plus the personal financial position collected in chat."""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[date] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    residential_address: Optional[str] = None
    licence_number: Optional[str] = None
    licence_state: Optional[str] = None

    owns_property: Optional[bool] = None
    property_value: Optional[float] = Field(None, ge=0)
    mortgage_balance: Optional[float] = Field(None, ge=0)
    has_investment_property: Optional[bool] = None
    investment_property_value: Optional[float] = Field(None, ge=0)
    investment_mortgage_balance: Optional[float] = Field(None, ge=0)
    vehicles_value: Optional[float] = Field(None, ge=0)
    vehicle_loan_balance: Optional[float] = Field(None, ge=0)
    credit_card_limit: Optional[float] = Field(None, ge=0)
    credit_card_outstanding: Optional[float] = Field(None, ge=0)
    monthly_mortgage_payment: Optional[float] = Field(None, ge=0)
    monthly_vehicle_loan_payment: Optional[float] = Field(None, ge=0)
    monthly_credit_card_payment: Optional[float] = Field(None, ge=0)
    annual_salary: Optional[float] = Field(None, ge=0)
    other_income: Optional[float] = Field(None, ge=0)
    monthly_living_expenses: Optional[float] = Field(None, ge=0)

    @field_validator("date_of_birth")
    @classmethod
    def _adult(cls, v: Optional[date]) -> Optional[date]:
        if v is not None and years_between(v, date.today()) < MIN_DIRECTOR_AGE:
            raise ValueError(f"Directors must be at least {MIN_DIRECTOR_AGE} years old")
        return v

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)

    @property
    def total_assets(self) -> float:
        return (self.property_value or 0) + (self.investment_property_value or 0) + (self.vehicles_value or 0)

    @property
    def total_liabilities(self) -> float:
        return (
            (self.mortgage_balance or 0)
            + (self.investment_mortgage_balance or 0)
            + (self.vehicle_loan_balance or 0)
            + (self.credit_card_limit or 0)
        )

    @property
    def net_position(self) -> float:
        return self.total_assets - self.total_liabilities

    @property
    def monthly_income(self) -> float:
        return ((self.annual_salary or 0) + (self.other_income or 0)) / 12

    @property
    def monthly_commitments(self) -> float:
        return (
            (self.monthly_mortgage_payment or 0)
            + (self.monthly_vehicle_loan_payment or 0)
            + (self.monthly_credit_card_payment or 0)
            + (self.monthly_living_expenses or 0)
        )


class RegistryLookup(BaseModel):
    """Business register snapshot; replaced only by another lookup."""
    abn: str
    abn_status: str = "Active"
    abn_registered_date: Optional[date] = None
    gst_registered: bool = False
    gst_registered_date: Optional[date] = None
    entity_name: str = ""
    entity_type: Optional[EntityType] = None
    state: Optional[str] = None
    postcode: Optional[str] = None
    business_address: Optional[str] = None

    model_config = {"frozen": True}


class RegistrySearchResult(BaseModel):
    abn: str
    entity_name: str
    entity_type: str = ""
    state: str = ""
    postcode: str = ""
    score: int = 0

    @property
    def option_label(self) -> str:
        return f"{self.entity_name} ({self.state}) - ABN: {self.abn}"


class QuoteSnapshot(BaseModel):
    """Last computed quote plus the inputs it was computed from."""
    inputs: QuoteRequest
    result: QuoteResult
    calculated_at: datetime


class Lead(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    reason: Optional[str] = None
    consent_to_share: Optional[bool] = None


class EligibilityAnswers(BaseModel):
    owns_property: Optional[bool] = None
    can_deposit_20: Optional[bool] = None
    loan_band: Optional[str] = None
    asset_under_3_years: Optional[bool] = None
    clear_credit: Optional[bool] = None


class SubmissionReceipt(BaseModel):
    reference: Optional[str] = None
    status: str
    submitted_at: datetime


def _plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


class ApplicationRecord(BaseModel):
    business: BusinessDetails = Field(default_factory=BusinessDetails)
    asset: AssetDetails = Field(default_factory=AssetDetails)
    loan: LoanDetails = Field(default_factory=LoanDetails)
    directors: list[Director] = Field(default_factory=list)
    primary_contact_index: int = Field(0, ge=0)

    registry_lookup: Optional[RegistryLookup] = None
    registry_search_results: list[RegistrySearchResult] = Field(default_factory=list)
    business_name_search: Optional[str] = None

    quote: Optional[QuoteSnapshot] = None

    lead: Optional[Lead] = None
    eligibility: Optional[EligibilityAnswers] = None
    eligibility_passed: Optional[bool] = None
    eligibility_messages: list[str] = Field(default_factory=list)

    documents_uploaded: bool = False
    submission: Optional[SubmissionReceipt] = None

    @model_validator(mode="after")
    def _derive(self) -> "ApplicationRecord":
        price = self.asset.asset_price_inc_gst
        if price is None:
            self.asset.asset_price_ex_gst = None
            self.asset.asset_gst = None
        else:
            ex_gst = round(price / (1 + GST_RATE), 2)
            self.asset.asset_price_ex_gst = ex_gst
            self.asset.asset_gst = round(price - ex_gst, 2)

        principal = (price or 0) - self.loan.deposit_amount - self.loan.trade_in_amount
        self.loan.loan_amount = max(0.0, principal)
        self.loan.balloon_amount = self.loan.loan_amount * self.loan.balloon_percentage / 100

        if self.directors and self.primary_contact_index >= len(self.directors):
            raise ValueError("primary_contact_index must reference an existing director")
        if not self.directors and self.primary_contact_index != 0:
            raise ValueError("primary_contact_index must be 0 when no directors are recorded")
        return self

    def with_value(self, path: str, value: Any) -> "ApplicationRecord":
        """
        Return a new record with value written at a dot path (e.g. "directors.1.email").
        Missing lists/maps along the path are created. Raises pydantic.ValidationError
        (a ValueError) when the result breaks a field constraint or invariant.
        """
        return ApplicationRecord.model_validate(assign_path(self.model_dump(), path, value))

    def set_director_field(self, index: int, field: str, value: Any) -> "ApplicationRecord":
        if field not in Director.model_fields:
            raise KeyError(f"Unknown director field: {field}")
        return self.with_value(f"directors.{index}.{field}", value)

    def replace(self, **changes: Any) -> "ApplicationRecord":
        """Copy with top-level fields replaced, re-running derivations and invariants."""
        data = self.model_dump()
        for key, value in changes.items():
            data[key] = _plain(value)
        return ApplicationRecord.model_validate(data)

    @property
    def primary_director(self) -> Optional[Director]:
        if not self.directors:
            return None
        return self.directors[self.primary_contact_index]

    @property
    def entity_type(self) -> Optional[str]:
        if self.registry_lookup and self.registry_lookup.entity_type:
            return self.registry_lookup.entity_type
        return self.business.entity_type

    @property
    def is_sole_trader(self) -> bool:
        return self.entity_type == "sole_trader"

    def quote_inputs(self) -> QuoteRequest:
        """Calculator inputs as they stand now; missing choices take the quote defaults."""
        return QuoteRequest(
            asset_type=self.asset.asset_type or "vehicle",
            asset_condition=self.asset.asset_condition or "new",
            loan_amount=self.loan.loan_amount,
            term_months=self.loan.term_months or DEFAULT_TERM_MONTHS,
            balloon_percentage=self.loan.balloon_percentage,
        )

    @property
    def quote_is_stale(self) -> bool:
        return self.quote is None or self.quote.inputs != self.quote_inputs()
