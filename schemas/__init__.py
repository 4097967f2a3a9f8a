from schemas.application import (
    ApplicationRecord,
    AssetDetails,
    BusinessDetails,
    Director,
    EligibilityAnswers,
    Lead,
    LoanDetails,
    QuoteSnapshot,
    RegistryLookup,
    RegistrySearchResult,
    SubmissionReceipt,
)
from schemas.chat import AnswerRequest, ChatMessage, ChatSnapshot, Progress, StartSessionRequest, Turn
from schemas.quote import QuoteRequest, QuoteResult

__all__ = [
    "ApplicationRecord",
    "AssetDetails",
    "BusinessDetails",
    "Director",
    "EligibilityAnswers",
    "Lead",
    "LoanDetails",
    "QuoteSnapshot",
    "RegistryLookup",
    "RegistrySearchResult",
    "SubmissionReceipt",
    "AnswerRequest",
    "ChatMessage",
    "ChatSnapshot",
    "Progress",
    "StartSessionRequest",
    "Turn",
    "QuoteRequest",
    "QuoteResult",
]
