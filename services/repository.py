"""
Where finished applications and captured leads go.
SqlApplicationRepository writes loan_applications / leads rows; the notifier is a
hook for downstream delivery (email, CRM) and by default only logs.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models import Lead as LeadRow
from models import LoanApplication
from schemas.application import ApplicationRecord, BusinessDetails, Lead, QuoteSnapshot, SubmissionReceipt

logger = logging.getLogger(__name__)


class ApplicationRepository(Protocol):
    async def submit(
        self,
        record: ApplicationRecord,
        quote: Optional[QuoteSnapshot],
        session_key: Optional[str] = None,
    ) -> SubmissionReceipt:
        ...

    async def save_lead(
        self,
        lead: Lead,
        source: str = "manual_review",
        business: Optional[BusinessDetails] = None,
    ) -> bool:
        ...


class Notifier(Protocol):
    async def notify(self, event: str, payload: dict[str, Any]) -> None:
        ...


class LoggingNotifier:
    async def notify(self, event: str, payload: dict[str, Any]) -> None:
        logger.info("Notification %s: %s", event, payload)


def new_reference() -> str:
    return f"AMX-{uuid.uuid4().hex[:8].upper()}"


class SqlApplicationRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def submit(
        self,
        record: ApplicationRecord,
        quote: Optional[QuoteSnapshot],
        session_key: Optional[str] = None,
    ) -> SubmissionReceipt:
        now = datetime.now(timezone.utc)
        data = record.model_dump(mode="json")
        app = LoanApplication(
            id=f"app-{uuid.uuid4().hex[:12]}",
            reference=new_reference(),
            status="submitted",
            session_key=session_key,
            business=data["business"],
            asset=data["asset"],
            loan=data["loan"],
            directors=data["directors"],
            registry_lookup=data["registry_lookup"],
            quote=quote.model_dump(mode="json") if quote else None,
            eligibility={"passed": record.eligibility_passed, "messages": record.eligibility_messages},
            submitted_at=now,
            created_at=now,
            updated_at=now,
        )
        async with self._session_factory() as session:
            session.add(app)
            await session.commit()
        logger.info("Application %s submitted (%s)", app.id, app.reference)
        return SubmissionReceipt(reference=app.reference, status="submitted", submitted_at=now)

    async def save_lead(
        self,
        lead: Lead,
        source: str = "manual_review",
        business: Optional[BusinessDetails] = None,
    ) -> bool:
        row = LeadRow(
            id=f"lead-{uuid.uuid4().hex[:12]}",
            source=source,
            name=lead.name,
            phone=lead.phone,
            email=lead.email,
            reason=lead.reason,
            consent_to_share=bool(lead.consent_to_share),
            business=business.model_dump(mode="json") if business else None,
            created_at=datetime.now(timezone.utc),
        )
        async with self._session_factory() as session:
            session.add(row)
            await session.commit()
        logger.info("Lead %s saved (%s)", row.id, source)
        return True
