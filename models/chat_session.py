from sqlalchemy import Column, DateTime, String, func
from sqlalchemy import JSON

from database import Base


class ChatSession(Base):
    """Resume point of one chat session: the step awaiting input and the record."""
    __tablename__ = "chat_sessions"

    session_key = Column(String(128), primary_key=True)
    step_id = Column(String(64), nullable=False)
    record = Column(JSON, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
