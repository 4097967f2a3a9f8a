"""
The AssetMX Express conversation: every step of the chat application, in order.

Phases: business lookup, pre-qualification, lead capture (non-qualifying branches),
asset and estimate, director details and financial position, additional directors,
loan structure, review and submission, terminal states.
"""
from __future__ import annotations

import re
from typing import Any, Optional

from schemas.application import ApplicationRecord, Director
from schemas.eligibility import EligibilityResultSchema
from services.eligibility import business_gate, explain_eligibility, registration_age_months
from services.quote_calculator import MAX_BALLOON_PERCENTAGE, QuoteError, calculate_quote, max_balloon_for_term
from services.step_graph import InputKind, Outcome, Step, StepGraph
from services.validators import (
    validate_abn,
    validate_amount,
    validate_business_name,
    validate_date_of_birth,
    validate_deposit,
    validate_email,
    validate_name,
    validate_non_negative_amount,
    validate_phone,
)
from utils.parsing import parse_amount

ENTRY_STEP_ID = "greeting"

YES_DETAILS = "Yes, take my details"
NO_THANKS = "No thanks"
DECLINE_OPTIONS = (YES_DETAILS, NO_THANKS)
NO_BALLOON = "No balloon - own it outright"
WHATS_A_BALLOON = "What's a balloon?"
MANUAL_ENTRY_FALLBACK = "None of these - enter ABN manually"

ABN_IN_LABEL = re.compile(r"ABN:\s*([\d\s]+)")

# Labels that only steer the conversation and leave the field untouched
NO_VALUE = object()

# Select label (lower case) -> stored value, keyed by field path with list indices as "*"
OPTION_VALUES: dict[str, dict[str, Any]] = {
    "asset.asset_type": {
        "vehicle (ute, van, car)": "vehicle",
        "electric vehicle (ev)": "vehicle",
        "truck or trailer": "truck",
        "construction equipment (excavator, loader, etc.)": "equipment",
        "other mobile equipment": "equipment",
        "fixed/installed equipment": "equipment",
    },
    "asset.ev_use_type": {
        "business use (company vehicle)": "business",
        "novated lease (personal/salary sacrifice)": "novated",
    },
    "asset.asset_condition": {
        "brand new": "new",
        "demo": "demo",
        "used (0-3 years)": "used_0_3",
        "used (4-7 years)": "used_4_7",
        "older (8+ years)": "used_8_plus",
    },
    "loan.term_months": {"3 years": 36, "4 years": 48, "5 years": 60},
    "loan.balloon_percentage": {
        "no balloon - own it outright": 0,
        "20% balloon": 20,
        "30% balloon": 30,
        "40% balloon": 40,
        "lower payments with balloon": 20,
        "what's a balloon?": NO_VALUE,
    },
    "eligibility.asset_under_3_years": {"yes, under 3 years": True, "no, it's older": False},
    "eligibility.owns_property": {"yes, i own property": True, "no property": False},
    "eligibility.can_deposit_20": {"yes, 20% or more": True, "less than 20%": False},
    "eligibility.clear_credit": {"no, all clear": True, "yes, there's something": False},
    "lead.consent_to_share": {"yes": True, "no, contact me directly": False},
    "directors.*.owns_property": {"yes": True, "no": False},
    "directors.*.has_investment_property": {"yes": True, "no": False},
    "documents_uploaded": {"documents uploaded": True, "i'll email them later": False},
}


def _field_key(field_path: str) -> str:
    return ".".join("*" if part.isdigit() else part for part in field_path.split("."))


def map_option_to_value(answer: str, field_path: str) -> Any:
    """Canonical value for a select label; unmatched labels are returned as typed."""
    table = OPTION_VALUES.get(_field_key(field_path), {})
    return table.get(answer.strip().lower(), answer.strip())


def extract_abn(label: str) -> Optional[str]:
    match = ABN_IN_LABEL.search(label or "")
    return match.group(1) if match else None


def _says(answer: str, *needles: str) -> bool:
    lowered = (answer or "").lower()
    return any(n in lowered for n in needles)


def _money(amount: float) -> str:
    return f"${amount:,.0f}"


def _amount_or_zero(answer: str) -> float:
    try:
        return parse_amount(answer)
    except ValueError:
        return 0.0


def _director(record: ApplicationRecord, index: int) -> Director:
    return record.directors[index] if len(record.directors) > index else Director()


def _decline_next(answer: str, record: ApplicationRecord) -> str:
    return "end_ineligible" if _says(answer, "no thanks") else "lead_capture_name"


def _term_years(record: ApplicationRecord) -> int:
    return -(-(record.loan.term_months or 60) // 12)


def _max_balloon(record: ApplicationRecord) -> int:
    return min(MAX_BALLOON_PERCENTAGE, max_balloon_for_term(record.loan.term_months or 60))


# ---- business lookup ----

def _search_results_prompts(record: ApplicationRecord) -> list[str]:
    if not record.registry_search_results:
        return [
            "Hmm, I couldn't find any businesses with that name.",
            "No worries - you can enter your ABN directly if you have it handy.",
        ]
    return ["Found some matches! Is your business one of these?"]


def _search_results_options(record: ApplicationRecord) -> list[str]:
    if not record.registry_search_results:
        return ["Enter ABN manually", "Try a different name"]
    return [r.option_label for r in record.registry_search_results[:3]] + [MANUAL_ENTRY_FALLBACK]


def _search_results_next(answer: str, record: ApplicationRecord) -> str:
    if _says(answer, "different name"):
        return "business_name_retry"
    if extract_abn(answer):
        return "abn_confirm_lookup"
    return "abn_manual_entry"


def _lookup_result_prompts(record: ApplicationRecord) -> list[str]:
    lookup = record.registry_lookup
    if lookup is None:
        return [
            "Hmm, I couldn't find that ABN in the register.",
            "Double-check the number and try again?",
        ]
    months = registration_age_months(lookup.abn_registered_date)
    if lookup.abn_registered_date and months and months >= 12:
        years = months // 12
        trading = f"Trading since {lookup.abn_registered_date.strftime('%B %Y')} ({years} year{'s' if years != 1 else ''})"
    elif lookup.abn_registered_date:
        trading = f"Trading since {lookup.abn_registered_date.strftime('%B %Y')}"
    else:
        trading = f"ABN {lookup.abn_status}"
    gst = "GST registered" if lookup.gst_registered else "Not GST registered"
    return [f"Found it!\n\n{lookup.entity_name}\n{trading}\n{gst}", "Is this your business?"]


def _lookup_result_options(record: ApplicationRecord) -> list[str]:
    if record.registry_lookup is None:
        return ["Re-enter ABN", "Search by name again"]
    return ["Yep that's me", "Nah, wrong one"]


def _lookup_result_next(answer: str, record: ApplicationRecord) -> str:
    if record.registry_lookup is None:
        return "business_name_retry" if _says(answer, "name", "search") else "abn_manual_entry"
    if _says(answer, "nah", "wrong"):
        return "abn_retry"
    return {
        "abn_too_young": "abn_too_young",
        "no_gst": "no_gst_warning",
        "gst_too_young": "gst_too_young",
        "pass": "eligibility_pass",
    }[business_gate(record.registry_lookup)]


def _abn_too_young_prompts(record: ApplicationRecord) -> list[str]:
    lookup = record.registry_lookup
    months = registration_age_months(lookup.abn_registered_date) if lookup else None
    return [
        f"Your ABN is {months or 0} months old.",
        "AssetMX Express requires 2+ years ABN registration.",
        "You don't qualify for this product, but our team may have other options. Leave your details?",
    ]


def _gst_too_young_prompts(record: ApplicationRecord) -> list[str]:
    lookup = record.registry_lookup
    months = registration_age_months(lookup.gst_registered_date) if lookup else None
    return [
        f"GST registration: {months or 0} months.",
        "AssetMX Express requires 2+ years GST registration.",
        "You don't qualify for this product. Leave details for manual review?",
    ]


# ---- pre-qualification ----

def _asset_type_next(answer: str, record: ApplicationRecord) -> str:
    if _says(answer, "fixed", "installed"):
        return "eligibility_fixed_asset"
    if _says(answer, "electric", "(ev)"):
        return "ev_use_type"
    return "eligibility_asset_age"


def _asset_type_label(record: ApplicationRecord) -> str:
    return {"vehicle": "Vehicle", "truck": "Truck"}.get(record.asset.asset_type or "vehicle", "Asset")


# ---- estimate ----

def _estimate_prompts(record: ApplicationRecord) -> list[str]:
    price = record.asset.asset_price_inc_gst or 0
    if record.quote is None:
        return [f"Price: {_money(price)}", "I couldn't price that one automatically, but we can still continue."]
    result = record.quote.result
    years = -(-record.quote.inputs.term_months // 12)
    return [
        f"Price: {_money(price)}",
        f"Indicative repayment: ~{_money(result.monthly_repayment)}/month over {years} years "
        f"(~{_money(result.weekly_repayment)}/week) at {result.indicative_rate:.2f}% p.a.",
        "Continue to full application?",
    ]


# ---- financial position ----

def _no_credit_card(record: ApplicationRecord) -> bool:
    return not _director(record, 0).credit_card_limit


def _no_mortgage(record: ApplicationRecord) -> bool:
    d = _director(record, 0)
    return not d.owns_property or not d.mortgage_balance


def _no_vehicle_loan(record: ApplicationRecord) -> bool:
    return not _director(record, 0).vehicle_loan_balance


def _net_position_prompts(record: ApplicationRecord) -> list[str]:
    d = _director(record, 0)
    return [
        f"Assets: {_money(d.total_assets)} | Liabilities: {_money(d.total_liabilities)}",
        f"Net position: {_money(d.net_position)}",
        f"Monthly income: {_money(d.monthly_income)} | Monthly expenses: {_money(d.monthly_commitments)}",
    ]


def _is_sole_trader(record: ApplicationRecord) -> bool:
    return record.is_sole_trader


# ---- loan structure ----

def _balloon_prompts(record: ApplicationRecord) -> list[str]:
    return [
        "Do you want a balloon payment at the end?",
        f"(For a {_term_years(record)} year term, max balloon is {max_balloon_for_term(record.loan.term_months or 60)}%)",
    ]


def _balloon_options(record: ApplicationRecord) -> list[str]:
    allowed = [f"{p}% balloon" for p in (20, 30, 40) if p <= _max_balloon(record)]
    return [NO_BALLOON, *allowed, WHATS_A_BALLOON]


def validate_balloon_choice(raw: str, record: ApplicationRecord) -> Optional[str]:
    value = map_option_to_value(raw, "loan.balloon_percentage")
    if value is NO_VALUE:
        return None
    if not isinstance(value, (int, float)):
        return "Please choose one of the balloon options."
    if value > _max_balloon(record):
        return f"For a {_term_years(record)} year term, max balloon is {_max_balloon(record)}%."
    return None


def _balloon_explain_prompts(record: ApplicationRecord) -> list[str]:
    return [
        "Good question!",
        "A balloon is a lump sum you pay at the end of the loan.",
        "- No balloon = higher monthly payments, but you own it at the end",
        f"- Up to {_max_balloon(record)}% balloon = lower monthly payments, but you'll owe that amount at the end "
        "(can refinance, pay cash, or trade in)",
        "What suits you better?",
    ]


# ---- review ----

def summary_lines(record: ApplicationRecord) -> list[str]:
    """Plain-text application summary shown at review."""
    business = record.business
    lookup = record.registry_lookup
    loan = record.loan
    lines = [
        f"Business: {(lookup.entity_name if lookup else None) or business.entity_name or business.business_name or '-'}",
        f"ABN: {business.abn or '-'}",
        f"Asset: {record.asset.asset_type or 'vehicle'} ({record.asset.asset_condition or 'new'}), "
        f"{_money(record.asset.asset_price_inc_gst or 0)} inc GST",
    ]
    if loan.deposit_amount or loan.trade_in_amount:
        lines.append(f"Deposit/trade-in: {_money(loan.deposit_amount + loan.trade_in_amount)}")
    lines.append(f"Loan amount: {_money(loan.loan_amount)} over {loan.term_months or 60} months")
    if loan.balloon_percentage:
        lines.append(f"Balloon: {loan.balloon_percentage:g}% ({_money(loan.balloon_amount)})")
    inputs = record.quote_inputs()
    try:
        quote = calculate_quote(
            inputs.asset_type, inputs.asset_condition, inputs.loan_amount, inputs.term_months, inputs.balloon_percentage
        )
    except QuoteError:
        lines.append("Repayments: to be confirmed")
    else:
        lines.append(
            f"Repayments: {_money(quote.monthly_repayment)}/month at {quote.indicative_rate:.2f}% p.a. "
            f"(estimated saving vs broker {_money(quote.estimated_saving)})"
        )
    names = [d.full_name or d.email or "Director" for d in record.directors]
    lines.append(f"Directors: {', '.join(names) if names else '-'}")
    return lines


def _review_prompts(record: ApplicationRecord) -> list[str]:
    return ["Application summary:", "\n".join(summary_lines(record)), "Review and confirm."]


def _edit_next(answer: str, record: ApplicationRecord) -> str:
    if _says(answer, "business"):
        return "business_name_retry"
    if _says(answer, "asset"):
        return "asset_condition"
    if _says(answer, "personal"):
        return "director_intro"
    if _says(answer, "loan"):
        return "loan_term"
    return "final_review"


def _submitted_next(answer: str, record: ApplicationRecord) -> str:
    if record.eligibility_passed is False:
        return "submission_ineligible"
    if record.submission is not None and record.submission.status == "submitted":
        return "submission_complete"
    return "submission_failed"


def _ineligible_prompts(record: ApplicationRecord) -> list[str]:
    result = EligibilityResultSchema(passed=False, fail_reasons=record.eligibility_messages)
    return [explain_eligibility(result), "Our team may have other options. Leave your details?"]


def _lead_complete_prompts(record: ApplicationRecord) -> list[str]:
    if record.lead and record.lead.consent_to_share:
        return ["Details saved. Our team or a partner will contact you within 24 hours."]
    return ["Details saved. Our team will contact you within 24 hours."]


def _save_or(target: str):
    def _next(answer: str, record: ApplicationRecord) -> str:
        return "save_for_later" if _says(answer, "later", "save") else target
    return _next


def _yes_or(yes_target: str, no_target: str):
    def _next(answer: str, record: ApplicationRecord) -> str:
        return yes_target if (answer or "").strip().lower() == "yes" else no_target
    return _next


CHAT_FLOW: list[Step] = [
    # ========== BUSINESS LOOKUP ==========
    Step(
        id="greeting",
        prompts=(
            "I'm the AssetMX Express Assistant.",
            "I'll check your eligibility and guide you through the application.",
            "Because I handle the heavy lifting, we can offer faster approvals and lower fees.",
            "Let's start - what's your business name?",
        ),
        input_kind=InputKind.TEXT,
        field_path="business.business_name",
        placeholder="e.g. Smith Plumbing, ABC Transport",
        validate=validate_business_name,
        action="registry_search",
        next_step="abn_search_results",
    ),
    Step(
        id="business_name_retry",
        prompts=("No problem. What business name should I search for?",),
        input_kind=InputKind.TEXT,
        field_path="business.business_name",
        placeholder="e.g. Smith Plumbing, ABC Transport",
        validate=validate_business_name,
        action="registry_search",
        next_step="abn_search_results",
    ),
    Step(
        id="abn_search_results",
        prompts=_search_results_prompts,
        input_kind=InputKind.DISAMBIGUATION_SELECT,
        options=_search_results_options,
        next_step=_search_results_next,
    ),
    Step(
        id="abn_confirm_lookup",
        prompts=("Great choice! Let me grab the full details...",),
        input_kind=InputKind.CONFIRM,
        action="registry_lookup",
        next_step="abn_result",
    ),
    Step(
        id="abn_manual_entry",
        prompts=("No worries! What's your ABN?",),
        input_kind=InputKind.TEXT,
        field_path="business.abn",
        placeholder="Enter your 11-digit ABN",
        validate=validate_abn,
        action="registry_lookup",
        next_step="abn_result",
    ),
    Step(
        id="abn_result",
        prompts=_lookup_result_prompts,
        input_kind=InputKind.SELECT,
        options=_lookup_result_options,
        next_step=_lookup_result_next,
    ),
    Step(
        id="abn_retry",
        prompts=("No worries! How would you like to find your business?",),
        input_kind=InputKind.SELECT,
        options=("Search by name again", "Enter ABN manually"),
        next_step=lambda answer, record: "business_name_retry" if _says(answer, "name", "search") else "abn_manual_entry",
    ),
    Step(
        id="abn_too_young",
        prompts=_abn_too_young_prompts,
        input_kind=InputKind.SELECT,
        options=DECLINE_OPTIONS,
        next_step=_decline_next,
    ),
    Step(
        id="gst_too_young",
        prompts=_gst_too_young_prompts,
        input_kind=InputKind.SELECT,
        options=DECLINE_OPTIONS,
        next_step=_decline_next,
    ),
    Step(
        id="no_gst_warning",
        prompts=(
            "GST registration not found.",
            "AssetMX Express requires GST registration.",
            "If this is incorrect, re-enter your ABN. Otherwise, leave details for manual review.",
        ),
        input_kind=InputKind.SELECT,
        options=("Re-enter ABN", "I'm not GST registered"),
        next_step=lambda answer, record: "abn_retry" if _says(answer, "re-enter") else "lead_capture_name",
    ),
    Step(
        id="eligibility_pass",
        prompts=(
            "ABN check: Passed",
            "GST check: Passed",
            "You meet AssetMX Express business requirements. Now let's check the asset.",
        ),
        input_kind=InputKind.CONFIRM,
        options=("Continue",),
        next_step="eligibility_asset_type",
    ),

    # ========== PRE-QUALIFICATION ==========
    Step(
        id="eligibility_asset_type",
        prompts=("What type of asset are you looking to finance?",),
        input_kind=InputKind.SELECT,
        options=(
            "Vehicle (ute, van, car)",
            "Electric Vehicle (EV)",
            "Truck or trailer",
            "Construction equipment (excavator, loader, etc.)",
            "Other mobile equipment",
            "Fixed/installed equipment",
        ),
        field_path="asset.asset_type",
        next_step=_asset_type_next,
    ),
    Step(
        id="ev_use_type",
        prompts=(
            "Switching to an EV for your business vehicle has real benefits too.",
            "- Business use: green discounts, GST credits, depreciation - same $800 flat fee",
            "- Personal use: novated leasing through our sister company millarX",
            "Which applies to you?",
        ),
        input_kind=InputKind.SELECT,
        options=("Business use (company vehicle)", "Novated lease (personal/salary sacrifice)"),
        field_path="asset.ev_use_type",
        next_step=lambda answer, record: (
            "ev_novated_capture" if _says(answer, "novated", "personal", "salary") else "eligibility_asset_age"
        ),
    ),
    Step(
        id="ev_novated_capture",
        prompts=(
            "Novated leasing is handled by millarX, our sister company.",
            "They handle everything - employer setup, salary packaging, running costs, FBT exemptions.",
            "I'll pass your details to the millarX team. What's your name?",
        ),
        input_kind=InputKind.TEXT,
        field_path="lead.name",
        placeholder="Your name",
        validate=validate_name,
        next_step="ev_novated_phone",
    ),
    Step(
        id="ev_novated_phone",
        prompts=("Best phone number?",),
        input_kind=InputKind.PHONE,
        field_path="lead.phone",
        placeholder="04XX XXX XXX",
        validate=validate_phone,
        next_step="ev_novated_email",
    ),
    Step(
        id="ev_novated_email",
        prompts=("And your email?",),
        input_kind=InputKind.EMAIL,
        field_path="lead.email",
        placeholder="your@email.com",
        validate=validate_email,
        next_step="ev_novated_complete",
    ),
    Step(
        id="ev_novated_complete",
        prompts=(
            "Details captured.",
            "The millarX team will be in touch within 24 hours to discuss your novated lease options.",
        ),
        input_kind=InputKind.CONFIRM,
        options=("Done",),
        action="save_novated_lead",
        next_step="end_lead_captured",
    ),
    Step(
        id="eligibility_fixed_asset",
        prompts=(
            "Fixed/installed equipment doesn't qualify for AssetMX Express.",
            "This requires manual assessment. Leave your details?",
        ),
        input_kind=InputKind.SELECT,
        options=DECLINE_OPTIONS,
        next_step=_decline_next,
    ),
    Step(
        id="eligibility_asset_age",
        prompts=("AssetMX Express finances assets up to 3 years old only.", "Is your asset under 3 years old?"),
        input_kind=InputKind.SELECT,
        options=("Yes, under 3 years", "No, it's older"),
        field_path="eligibility.asset_under_3_years",
        next_step=lambda answer, record: "eligibility_older_asset" if _says(answer, "older") else "eligibility_property",
    ),
    Step(
        id="eligibility_older_asset",
        prompts=("Assets over 3 years old don't qualify for AssetMX Express.", "Leave your details for manual review?"),
        input_kind=InputKind.SELECT,
        options=DECLINE_OPTIONS,
        next_step=_decline_next,
    ),
    Step(
        id="eligibility_property",
        prompts=(
            "AssetMX Express has two tracks:",
            "- Property owners: No deposit required",
            "- Non-property owners: 20% deposit required",
            "Do you own property in Australia?",
        ),
        input_kind=InputKind.SELECT,
        options=("Yes, I own property", "No property"),
        field_path="eligibility.owns_property",
        next_step=lambda answer, record: "eligibility_deposit" if _says(answer, "no property") else "eligibility_loan_amount",
    ),
    Step(
        id="eligibility_deposit",
        prompts=("Without property, AssetMX Express requires 20% deposit.", "Can you provide 20% deposit?"),
        input_kind=InputKind.SELECT,
        options=("Yes, 20% or more", "Less than 20%"),
        field_path="eligibility.can_deposit_20",
        next_step=lambda answer, record: "eligibility_no_security" if _says(answer, "less") else "eligibility_loan_amount",
    ),
    Step(
        id="eligibility_no_security",
        prompts=(
            "AssetMX Express requires either property ownership OR 20% deposit.",
            "You don't meet these requirements. Leave details for other options?",
        ),
        input_kind=InputKind.SELECT,
        options=DECLINE_OPTIONS,
        next_step=_decline_next,
    ),
    Step(
        id="eligibility_loan_amount",
        prompts=("AssetMX Express covers loans from $10,000 to $150,000.", "What's your loan amount?"),
        input_kind=InputKind.SELECT,
        options=("$10k - $50k", "$50k - $100k", "$100k - $150k", "Over $150k"),
        field_path="eligibility.loan_band",
        next_step=lambda answer, record: "eligibility_over_150k" if _says(answer, "over") else "eligibility_credit_check",
    ),
    Step(
        id="eligibility_over_150k",
        prompts=("Loans over $150,000 don't qualify for AssetMX Express.", "Leave details for manual assessment?"),
        input_kind=InputKind.SELECT,
        options=DECLINE_OPTIONS,
        next_step=_decline_next,
    ),
    Step(
        id="eligibility_credit_check",
        prompts=("AssetMX Express requires clear credit.", "Any bankruptcies, defaults, or judgments in the last 5 years?"),
        input_kind=InputKind.SELECT,
        options=("No, all clear", "Yes, there's something"),
        field_path="eligibility.clear_credit",
        next_step=lambda answer, record: (
            "eligibility_credit_issues" if _says(answer, "yes", "something") else "eligibility_qualified"
        ),
    ),
    Step(
        id="eligibility_credit_issues",
        prompts=("Credit issues exclude you from AssetMX Express.", "Leave details for specialist options?"),
        input_kind=InputKind.SELECT,
        options=DECLINE_OPTIONS,
        next_step=_decline_next,
    ),
    Step(
        id="eligibility_qualified",
        prompts=("All eligibility checks passed.", "You qualify for AssetMX Express. Proceeding to application."),
        input_kind=InputKind.CONFIRM,
        options=("Continue",),
        next_step="asset_type_confirmed",
    ),

    # ========== LEAD CAPTURE ==========
    Step(
        id="lead_capture_name",
        prompts=("What's your name?",),
        input_kind=InputKind.TEXT,
        field_path="lead.name",
        placeholder="Your name",
        validate=validate_name,
        next_step="lead_capture_phone",
    ),
    Step(
        id="lead_capture_phone",
        prompts=("And the best number to reach you?",),
        input_kind=InputKind.PHONE,
        field_path="lead.phone",
        placeholder="04XX XXX XXX",
        validate=validate_phone,
        next_step="lead_capture_email",
    ),
    Step(
        id="lead_capture_email",
        prompts=("And your email address?",),
        input_kind=InputKind.EMAIL,
        field_path="lead.email",
        placeholder="your@email.com",
        validate=validate_email,
        next_step="lead_capture_consent",
    ),
    Step(
        id="lead_capture_consent",
        prompts=("Can we share your details with a partner who handles cases outside AssetMX Express?",),
        input_kind=InputKind.SELECT,
        options=("Yes", "No, contact me directly"),
        field_path="lead.consent_to_share",
        next_step="lead_capture_complete",
    ),
    Step(
        id="lead_capture_complete",
        prompts=_lead_complete_prompts,
        input_kind=InputKind.CONFIRM,
        options=("Done",),
        action="save_lead",
        next_step="end_lead_captured",
    ),

    # ========== ASSET ==========
    Step(
        id="asset_type_confirmed",
        prompts=lambda record: [f"{_asset_type_label(record)} selected. New or used?"],
        input_kind=InputKind.SELECT,
        options=("Brand new", "Demo", "Used (0-3 years)"),
        field_path="asset.asset_condition",
        next_step="asset_price",
    ),
    Step(
        id="asset_condition",
        prompts=lambda record: [f"Is the {_asset_type_label(record).lower()} new or used?"],
        input_kind=InputKind.SELECT,
        options=("Brand new", "Demo", "Used (0-3 years)", "Used (4-7 years)", "Older (8+ years)"),
        field_path="asset.asset_condition",
        next_step="asset_price",
    ),
    Step(
        id="asset_price",
        prompts=("Asset price (approximate)?",),
        input_kind=InputKind.NUMBER,
        field_path="asset.asset_price_inc_gst",
        placeholder="e.g. 75000 or 75k",
        validate=validate_amount,
        action="calculate_quote",
        next_step="show_estimate",
    ),
    Step(
        id="show_estimate",
        prompts=_estimate_prompts,
        input_kind=InputKind.SELECT,
        options=("Continue", "Save for later"),
        next_step=_save_or("director_intro"),
    ),
    Step(
        id="save_for_later",
        prompts=("Progress saved. Return anytime to continue.",),
        input_kind=InputKind.CONFIRM,
        options=("Done",),
        next_step="end_saved",
        persist=False,
    ),

    # ========== DIRECTOR ==========
    Step(
        id="director_intro",
        prompts=("Asset confirmed. Next: your details.", "Email address?"),
        input_kind=InputKind.EMAIL,
        field_path="directors.0.email",
        placeholder="your@email.com",
        validate=validate_email,
        next_step="director_phone",
    ),
    Step(
        id="director_phone",
        prompts=("Mobile number?",),
        input_kind=InputKind.PHONE,
        field_path="directors.0.phone",
        placeholder="04XX XXX XXX",
        validate=validate_phone,
        next_step="director_first_name",
    ),
    Step(
        id="director_first_name",
        prompts=("First name (as on your driver's licence)?",),
        input_kind=InputKind.TEXT,
        field_path="directors.0.first_name",
        validate=validate_name,
        next_step="director_last_name",
    ),
    Step(
        id="director_last_name",
        prompts=("Last name?",),
        input_kind=InputKind.TEXT,
        field_path="directors.0.last_name",
        validate=validate_name,
        next_step="director_dob",
    ),
    Step(
        id="director_dob",
        prompts=("Date of birth?",),
        input_kind=InputKind.DATE,
        field_path="directors.0.date_of_birth",
        placeholder="DD/MM/YYYY",
        validate=validate_date_of_birth,
        next_step="director_assets",
    ),
    Step(
        id="director_assets",
        prompts=("Financial position check.", "I'll ask about your assets and any loans against them."),
        input_kind=InputKind.SELECT,
        options=("Continue",),
        next_step="asset_property",
    ),
    Step(
        id="asset_property",
        prompts=("Do you own your home?",),
        input_kind=InputKind.SELECT,
        options=("Yes", "No"),
        field_path="directors.0.owns_property",
        next_step=_yes_or("asset_property_value", "asset_investment_property"),
    ),
    Step(
        id="asset_property_value",
        prompts=("Estimated home value?",),
        input_kind=InputKind.NUMBER,
        field_path="directors.0.property_value",
        placeholder="e.g. 800000",
        validate=validate_non_negative_amount,
        next_step="asset_property_mortgage",
    ),
    Step(
        id="asset_property_mortgage",
        prompts=("Outstanding mortgage balance?",),
        input_kind=InputKind.NUMBER,
        field_path="directors.0.mortgage_balance",
        placeholder="e.g. 400000 (enter 0 if paid off)",
        validate=validate_non_negative_amount,
        next_step="asset_investment_property",
    ),
    Step(
        id="asset_investment_property",
        prompts=("Any investment properties?",),
        input_kind=InputKind.SELECT,
        options=("Yes", "No"),
        field_path="directors.0.has_investment_property",
        next_step=_yes_or("asset_investment_value", "asset_vehicles"),
    ),
    Step(
        id="asset_investment_value",
        prompts=("Total investment property value?",),
        input_kind=InputKind.NUMBER,
        field_path="directors.0.investment_property_value",
        placeholder="e.g. 600000",
        validate=validate_non_negative_amount,
        next_step="asset_investment_mortgage",
    ),
    Step(
        id="asset_investment_mortgage",
        prompts=("Outstanding investment mortgage balance?",),
        input_kind=InputKind.NUMBER,
        field_path="directors.0.investment_mortgage_balance",
        placeholder="e.g. 450000 (enter 0 if paid off)",
        validate=validate_non_negative_amount,
        next_step="asset_vehicles",
    ),
    Step(
        id="asset_vehicles",
        prompts=("Total value of vehicles you own?",),
        input_kind=InputKind.NUMBER,
        field_path="directors.0.vehicles_value",
        placeholder="e.g. 45000 (enter 0 if none)",
        validate=validate_non_negative_amount,
        next_step=lambda answer, record: "asset_vehicles_loan" if _amount_or_zero(answer) > 0 else "liability_credit_cards",
    ),
    Step(
        id="asset_vehicles_loan",
        prompts=("Outstanding car loan balance?",),
        input_kind=InputKind.NUMBER,
        field_path="directors.0.vehicle_loan_balance",
        placeholder="e.g. 20000 (enter 0 if paid off)",
        validate=validate_non_negative_amount,
        next_step="liability_credit_cards",
    ),
    Step(
        id="liability_credit_cards",
        prompts=("Total credit card limit? (all cards combined)",),
        input_kind=InputKind.NUMBER,
        field_path="directors.0.credit_card_limit",
        placeholder="e.g. 15000 (enter 0 if none)",
        validate=validate_non_negative_amount,
        next_step="credit_card_outstanding",
    ),
    Step(
        id="credit_card_outstanding",
        prompts=("How much is currently outstanding on your credit cards?",),
        input_kind=InputKind.NUMBER,
        field_path="directors.0.credit_card_outstanding",
        placeholder="e.g. 5000 (enter 0 if fully paid)",
        validate=validate_non_negative_amount,
        skip_if=_no_credit_card,
        next_step="monthly_mortgage_payment",
    ),
    Step(
        id="monthly_mortgage_payment",
        prompts=("What's your monthly mortgage payment?",),
        input_kind=InputKind.NUMBER,
        field_path="directors.0.monthly_mortgage_payment",
        placeholder="e.g. 2500",
        validate=validate_non_negative_amount,
        skip_if=_no_mortgage,
        next_step="monthly_vehicle_payment",
    ),
    Step(
        id="monthly_vehicle_payment",
        prompts=("What's your monthly vehicle loan payment?",),
        input_kind=InputKind.NUMBER,
        field_path="directors.0.monthly_vehicle_loan_payment",
        placeholder="e.g. 600",
        validate=validate_non_negative_amount,
        skip_if=_no_vehicle_loan,
        next_step="monthly_credit_card_payment",
    ),
    Step(
        id="monthly_credit_card_payment",
        prompts=("What's your typical monthly credit card payment?",),
        input_kind=InputKind.NUMBER,
        field_path="directors.0.monthly_credit_card_payment",
        placeholder="e.g. 500 (minimum payment)",
        validate=validate_non_negative_amount,
        skip_if=_no_credit_card,
        next_step="income_salary",
    ),
    Step(
        id="income_salary",
        prompts=("Now for income. What's your annual salary/wages? (before tax)",),
        input_kind=InputKind.NUMBER,
        field_path="directors.0.annual_salary",
        placeholder="e.g. 85000",
        validate=validate_non_negative_amount,
        next_step="income_other",
    ),
    Step(
        id="income_other",
        prompts=("Any other regular income? (dividends, rental, etc.)",),
        input_kind=InputKind.NUMBER,
        field_path="directors.0.other_income",
        placeholder="e.g. 10000 per year (enter 0 if none)",
        validate=validate_non_negative_amount,
        next_step="living_expenses",
    ),
    Step(
        id="living_expenses",
        prompts=("Estimate your monthly living expenses (food, utilities, insurance, etc.)",),
        input_kind=InputKind.NUMBER,
        field_path="directors.0.monthly_living_expenses",
        placeholder="e.g. 3000",
        validate=validate_non_negative_amount,
        next_step="director_net_position",
    ),
    Step(
        id="director_net_position",
        prompts=_net_position_prompts,
        input_kind=InputKind.SELECT,
        options=("Continue now", "Save and return later"),
        next_step=_save_or("more_directors"),
    ),

    # ========== ADDITIONAL DIRECTORS ==========
    Step(
        id="more_directors",
        prompts=("Additional directors or guarantors?",),
        input_kind=InputKind.SELECT,
        options=("Just me", "Add another"),
        skip_if=_is_sole_trader,
        next_step=lambda answer, record: "additional_director_email" if _says(answer, "another", "add") else "loan_term",
    ),
    Step(
        id="additional_director_email",
        prompts=("Additional director email?",),
        input_kind=InputKind.EMAIL,
        field_path="directors.1.email",
        placeholder="their@email.com",
        validate=validate_email,
        action="send_director_form",
        next_step="additional_director_first_name",
    ),
    Step(
        id="additional_director_first_name",
        prompts=("Their first name?",),
        input_kind=InputKind.TEXT,
        field_path="directors.1.first_name",
        validate=validate_name,
        next_step="additional_director_last_name",
    ),
    Step(
        id="additional_director_last_name",
        prompts=("Their last name?",),
        input_kind=InputKind.TEXT,
        field_path="directors.1.last_name",
        validate=validate_name,
        next_step="additional_director_assets",
    ),
    Step(
        id="additional_director_assets",
        prompts=("Do they own their home?",),
        input_kind=InputKind.SELECT,
        options=("Yes", "No"),
        field_path="directors.1.owns_property",
        next_step=_yes_or("additional_director_property_value", "additional_director_vehicles"),
    ),
    Step(
        id="additional_director_property_value",
        prompts=("Their home value?",),
        input_kind=InputKind.NUMBER,
        field_path="directors.1.property_value",
        placeholder="e.g. 600000",
        validate=validate_non_negative_amount,
        next_step="additional_director_mortgage",
    ),
    Step(
        id="additional_director_mortgage",
        prompts=("Their mortgage balance?",),
        input_kind=InputKind.NUMBER,
        field_path="directors.1.mortgage_balance",
        placeholder="e.g. 300000 (enter 0 if paid off)",
        validate=validate_non_negative_amount,
        next_step="additional_director_vehicles",
    ),
    Step(
        id="additional_director_vehicles",
        prompts=("Their vehicle value?",),
        input_kind=InputKind.NUMBER,
        field_path="directors.1.vehicles_value",
        placeholder="e.g. 30000 (enter 0 if none)",
        validate=validate_non_negative_amount,
        next_step=lambda answer, record: (
            "additional_director_vehicle_loan" if _amount_or_zero(answer) > 0 else "additional_director_credit_cards"
        ),
    ),
    Step(
        id="additional_director_vehicle_loan",
        prompts=("Their car loan balance?",),
        input_kind=InputKind.NUMBER,
        field_path="directors.1.vehicle_loan_balance",
        placeholder="e.g. 15000 (enter 0 if paid off)",
        validate=validate_non_negative_amount,
        next_step="additional_director_credit_cards",
    ),
    Step(
        id="additional_director_credit_cards",
        prompts=("Their total credit card limit?",),
        input_kind=InputKind.NUMBER,
        field_path="directors.1.credit_card_limit",
        placeholder="e.g. 10000 (enter 0 if none)",
        validate=validate_non_negative_amount,
        next_step="loan_term",
    ),

    # ========== LOAN STRUCTURE ==========
    Step(
        id="loan_term",
        prompts=("Details collected. Final step: loan structure.", "Loan term?"),
        input_kind=InputKind.SELECT,
        options=("3 years", "4 years", "5 years"),
        field_path="loan.term_months",
        next_step="balloon_preference",
    ),
    Step(
        id="balloon_preference",
        prompts=_balloon_prompts,
        input_kind=InputKind.SELECT,
        options=_balloon_options,
        field_path="loan.balloon_percentage",
        validate=validate_balloon_choice,
        next_step=lambda answer, record: "balloon_explain" if _says(answer, "what's") else "deposit_question",
    ),
    Step(
        id="balloon_explain",
        prompts=_balloon_explain_prompts,
        input_kind=InputKind.SELECT,
        options=(NO_BALLOON, "Lower payments with balloon"),
        field_path="loan.balloon_percentage",
        validate=validate_balloon_choice,
        next_step="deposit_question",
    ),
    Step(
        id="deposit_question",
        prompts=("Will you have any deposit or trade-in?",),
        input_kind=InputKind.SELECT,
        options=("No deposit", "Yes, I'll put some down"),
        next_step=lambda answer, record: "deposit_amount" if _says(answer, "yes", "i'll put") else "final_review",
    ),
    Step(
        id="deposit_amount",
        prompts=("How much deposit or trade-in value?",),
        input_kind=InputKind.NUMBER,
        field_path="loan.deposit_amount",
        placeholder="e.g. 10000",
        validate=validate_deposit,
        next_step="final_review",
    ),

    # ========== REVIEW & SUBMIT ==========
    Step(
        id="final_review",
        prompts=_review_prompts,
        input_kind=InputKind.SELECT,
        options=("Confirm and submit", "Edit details"),
        action="calculate_quote",
        next_step=lambda answer, record: "edit_choice" if _says(answer, "edit") else "privacy_consent",
    ),
    Step(
        id="edit_choice",
        prompts=("Select section to edit:",),
        input_kind=InputKind.SELECT,
        options=("Business details", "Asset details", "Personal details", "Loan setup"),
        next_step=_edit_next,
    ),
    Step(
        id="privacy_consent",
        prompts=(
            "Before submitting, you'll sign a privacy consent form.",
            "This authorises:\n- Credit check\n- Identity verification",
            "The form will be sent to your email.",
            "Ready to proceed?",
        ),
        input_kind=InputKind.SELECT,
        options=("Proceed", "Save for later"),
        next_step=_save_or("document_upload"),
    ),
    Step(
        id="document_upload",
        prompts=(
            "Final step: document verification.",
            "Upload your driver's licence and latest bank statements, then let me know.",
        ),
        input_kind=InputKind.SELECT,
        options=("Documents uploaded", "I'll email them later"),
        field_path="documents_uploaded",
        next_step="affordability_notice",
    ),
    Step(
        id="affordability_notice",
        prompts=(
            "Almost done!",
            "After you submit, the lender will email you an affordability declaration to sign electronically.",
            "This confirms you can comfortably afford the proposed repayments.",
            "Please check your email and complete it promptly to avoid delays.",
        ),
        input_kind=InputKind.SELECT,
        options=("I understand, submit my application",),
        next_step="submitting",
    ),
    Step(
        id="submitting",
        prompts=("Submitting your application...",),
        input_kind=InputKind.CONFIRM,
        action="submit_application",
        next_step=_submitted_next,
    ),
    Step(
        id="submission_complete",
        prompts=(
            "Application submitted successfully!",
            "What happens next:",
            "1. Affordability declaration sent to your email - please sign",
            "2. We'll review your application",
            "3. Response within 15 minutes (business hours)",
            "You'll receive updates via email and SMS.",
        ),
        input_kind=InputKind.CONFIRM,
        options=("Done",),
        next_step="end_complete",
    ),
    Step(
        id="submission_failed",
        prompts=(
            "Sorry, I couldn't submit your application just now.",
            "Your answers are safe. Want me to try again?",
        ),
        input_kind=InputKind.SELECT,
        options=("Try again", "Save for later"),
        next_step=_save_or("submitting"),
    ),
    Step(
        id="submission_ineligible",
        prompts=_ineligible_prompts,
        input_kind=InputKind.SELECT,
        options=DECLINE_OPTIONS,
        next_step=_decline_next,
    ),

    # ========== END STATES ==========
    Step(id="end_complete", input_kind=InputKind.CONFIRM, outcome=Outcome.COMPLETE),
    Step(id="end_lead_captured", input_kind=InputKind.CONFIRM, outcome=Outcome.LEAD_CAPTURED),
    Step(id="end_saved", input_kind=InputKind.CONFIRM, outcome=Outcome.SAVED, persist=False),
    Step(
        id="end_ineligible",
        prompts=("Thanks for your time. If your circumstances change, we'd love to hear from you.",),
        input_kind=InputKind.CONFIRM,
        outcome=Outcome.INELIGIBLE,
    ),
]


PROGRESS_TOTAL = 24

# Rough position of each step on the progress bar
PROGRESS_MAP: dict[str, int] = {
    "greeting": 1, "business_name_retry": 1,
    "abn_search_results": 2, "abn_confirm_lookup": 2, "abn_manual_entry": 2,
    "abn_result": 3, "abn_retry": 3, "abn_too_young": 3, "gst_too_young": 3, "no_gst_warning": 3,
    "eligibility_pass": 4, "eligibility_asset_type": 4, "eligibility_fixed_asset": 4, "ev_use_type": 4,
    "ev_novated_capture": 4, "ev_novated_phone": 4, "ev_novated_email": 4, "ev_novated_complete": 4,
    "eligibility_asset_age": 5, "eligibility_older_asset": 5, "eligibility_property": 5,
    "eligibility_deposit": 5, "eligibility_no_security": 5,
    "eligibility_loan_amount": 6, "eligibility_over_150k": 6,
    "eligibility_credit_check": 6, "eligibility_credit_issues": 6,
    "eligibility_qualified": 7,
    "lead_capture_name": 4, "lead_capture_phone": 4, "lead_capture_email": 4,
    "lead_capture_consent": 4, "lead_capture_complete": 4, "end_lead_captured": 4,
    "asset_type_confirmed": 8, "asset_condition": 8, "asset_price": 9, "show_estimate": 10,
    "director_intro": 11, "director_phone": 12, "director_first_name": 12, "director_last_name": 12,
    "director_dob": 12, "director_assets": 13, "asset_property": 13, "asset_property_value": 13,
    "asset_property_mortgage": 13, "asset_investment_property": 14, "asset_investment_value": 14,
    "asset_investment_mortgage": 14, "asset_vehicles": 14, "asset_vehicles_loan": 14,
    "liability_credit_cards": 15, "credit_card_outstanding": 15, "monthly_mortgage_payment": 15,
    "monthly_vehicle_payment": 15, "monthly_credit_card_payment": 15, "income_salary": 15,
    "income_other": 15, "living_expenses": 15, "director_net_position": 15, "more_directors": 15,
    "additional_director_email": 16, "additional_director_first_name": 16,
    "additional_director_last_name": 16, "additional_director_assets": 16,
    "additional_director_property_value": 16, "additional_director_mortgage": 16,
    "additional_director_vehicles": 17, "additional_director_vehicle_loan": 17,
    "additional_director_credit_cards": 17,
    "loan_term": 18, "balloon_preference": 19, "balloon_explain": 19,
    "deposit_question": 20, "deposit_amount": 20,
    "final_review": 21, "edit_choice": 21, "privacy_consent": 22, "document_upload": 23,
    "affordability_notice": 23, "submitting": 24, "submission_complete": 24, "submission_failed": 24,
    "submission_ineligible": 24, "end_complete": 24,
    "save_for_later": 10, "end_saved": 10, "end_ineligible": 3,
}


def progress_for(step_id: str) -> tuple[int, int]:
    return PROGRESS_MAP.get(step_id, 1), PROGRESS_TOTAL


def build_default_graph() -> StepGraph:
    return StepGraph(CHAT_FLOW, entry_step_id=ENTRY_STEP_ID)
