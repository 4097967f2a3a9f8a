"""
Named side-effecting operations a step can trigger.
Every action takes the current record and returns a new one. Failures are logged
and degrade to "no enrichment": the action's own output is cleared and the rest of
the record is returned untouched, so a turn is never aborted by an action.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from config import settings
from schemas.application import ApplicationRecord, Lead, QuoteSnapshot
from services.eligibility import evaluate_eligibility
from services.quote_calculator import QuoteError, calculate_quote
from services.registry import BusinessRegistry
from services.repository import ApplicationRepository, LoggingNotifier, Notifier
from utils.abn import is_valid_abn

logger = logging.getLogger(__name__)

Action = Callable[[ApplicationRecord, Optional[str]], Awaitable[ApplicationRecord]]

DEFAULT_LEAD_REASON = "Did not qualify via chat"
NOVATED_LEAD_REASON = "Novated lease enquiry (EV)"

# Fields an action owns; cleared when the action fails
_FAILURE_RESETS: dict[str, dict[str, Any]] = {
    "registry_search": {"registry_search_results": []},
    "registry_lookup": {"registry_lookup": None},
    "calculate_quote": {"quote": None},
}


class UnknownActionError(KeyError):
    """A step names an action the executor does not have; a flow configuration error."""


class ActionExecutor:
    def __init__(
        self,
        registry: BusinessRegistry,
        repository: ApplicationRepository,
        notifier: Optional[Notifier] = None,
        search_max_results: Optional[int] = None,
    ):
        self.registry = registry
        self.repository = repository
        self.notifier = notifier or LoggingNotifier()
        self.search_max_results = search_max_results or settings.search_max_results
        self._actions: dict[str, Action] = {
            "registry_search": self.registry_search,
            "registry_lookup": self.registry_lookup,
            "calculate_quote": self.calculate_quote,
            "submit_application": self.submit_application,
            "save_lead": self.save_lead,
            "save_novated_lead": self.save_novated_lead,
            "send_director_form": self.send_director_form,
        }

    def __contains__(self, name: str) -> bool:
        return name in self._actions

    async def run(self, name: str, record: ApplicationRecord, session_key: Optional[str] = None) -> ApplicationRecord:
        action = self._actions.get(name)
        if action is None:
            raise UnknownActionError(name)
        try:
            return await action(record, session_key)
        except Exception:
            logger.warning("Action %s failed for session %s", name, session_key, exc_info=True)
            resets = _FAILURE_RESETS.get(name)
            return record.replace(**resets) if resets else record

    async def registry_search(self, record: ApplicationRecord, session_key: Optional[str] = None) -> ApplicationRecord:
        name = (record.business.business_name or "").strip()
        results = await self.registry.search_by_name(name, self.search_max_results)
        logger.info("Registry search %r returned %d result(s)", name, len(results))
        return record.replace(registry_search_results=results, business_name_search=name)

    async def registry_lookup(self, record: ApplicationRecord, session_key: Optional[str] = None) -> ApplicationRecord:
        abn = record.business.abn or ""
        if not is_valid_abn(abn):
            logger.info("Skipping registry lookup for invalid ABN %r", abn)
            return record.replace(registry_lookup=None)
        lookup = await self.registry.lookup(abn)
        if lookup is None:
            return record.replace(registry_lookup=None)
        business = record.business.model_copy(update={
            "abn": lookup.abn,
            "entity_name": lookup.entity_name,
            "entity_type": lookup.entity_type,
            "gst_registered": lookup.gst_registered,
            "gst_registered_date": lookup.gst_registered_date,
            "abn_registered_date": lookup.abn_registered_date,
            "business_address": lookup.business_address,
            "business_state": lookup.state,
            "business_postcode": lookup.postcode,
        })
        return record.replace(registry_lookup=lookup, business=business)

    async def calculate_quote(self, record: ApplicationRecord, session_key: Optional[str] = None) -> ApplicationRecord:
        inputs = record.quote_inputs()
        try:
            result = calculate_quote(
                inputs.asset_type,
                inputs.asset_condition,
                inputs.loan_amount,
                inputs.term_months,
                inputs.balloon_percentage,
            )
        except QuoteError as e:
            logger.info("Quote omitted: %s", e)
            return record.replace(quote=None)
        snapshot = QuoteSnapshot(inputs=inputs, result=result, calculated_at=datetime.now(timezone.utc))
        return record.replace(quote=snapshot)

    async def submit_application(self, record: ApplicationRecord, session_key: Optional[str] = None) -> ApplicationRecord:
        if record.quote_is_stale:
            record = await self.calculate_quote(record, session_key)
        eligibility = evaluate_eligibility(record)
        if not eligibility.passed:
            logger.info("Submission declined for session %s: %s", session_key, eligibility.fail_reasons)
            return record.replace(eligibility_passed=False, eligibility_messages=eligibility.fail_reasons)

        record = record.replace(eligibility_passed=True, eligibility_messages=[])
        receipt = await self.repository.submit(record, record.quote, session_key)
        record = record.replace(submission=receipt)
        await self._notify("application_submitted", {
            "reference": receipt.reference,
            "entity_name": record.business.entity_name,
            "loan_amount": record.loan.loan_amount,
        })
        return record

    async def save_lead(self, record: ApplicationRecord, session_key: Optional[str] = None) -> ApplicationRecord:
        return await self._capture_lead(record, "manual_review", DEFAULT_LEAD_REASON)

    async def save_novated_lead(self, record: ApplicationRecord, session_key: Optional[str] = None) -> ApplicationRecord:
        return await self._capture_lead(record, "novated", NOVATED_LEAD_REASON)

    async def send_director_form(self, record: ApplicationRecord, session_key: Optional[str] = None) -> ApplicationRecord:
        """Ask the additional director (directors[1]) to complete their own details."""
        director = record.directors[1] if len(record.directors) > 1 else None
        if director is None or not director.email:
            logger.info("No additional director email for session %s", session_key)
            return record
        primary = record.directors[0]
        business_name = record.business.entity_name or (record.registry_lookup.entity_name if record.registry_lookup else "")
        await self._notify("director_form_request", {
            "director_email": director.email,
            "business_name": business_name or "",
            "primary_contact_name": primary.full_name or "The applicant",
            "primary_contact_email": primary.email or "",
        })
        return record

    async def _capture_lead(self, record: ApplicationRecord, source: str, default_reason: str) -> ApplicationRecord:
        lead = record.lead or Lead()
        if not lead.reason:
            lead = lead.model_copy(update={"reason": default_reason})
        saved = await self.repository.save_lead(lead, source=source, business=record.business)
        if not saved:
            logger.warning("Lead for %s was not saved", lead.email or lead.phone)
        else:
            await self._notify("lead_captured", {"source": source, "name": lead.name, "email": lead.email})
        return record.replace(lead=lead)

    async def _notify(self, event: str, payload: dict[str, Any]) -> None:
        try:
            await self.notifier.notify(event, payload)
        except Exception:
            logger.warning("Notifier failed for %s", event, exc_info=True)
