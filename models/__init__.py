from models.application import LoanApplication
from models.chat_session import ChatSession
from models.lead import Lead

__all__ = [
    "ChatSession",
    "Lead",
    "LoanApplication",
]
