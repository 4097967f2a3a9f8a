from sqlalchemy import Boolean, Column, DateTime, String, Text, func
from sqlalchemy import JSON

from database import Base


class Lead(Base):
    __tablename__ = "leads"

    id = Column(String(64), primary_key=True, index=True)
    # "manual_review" for declined applicants, "novated" for millarX referrals
    source = Column(String(32), nullable=False, default="manual_review", index=True)
    name = Column(String(256), nullable=True)
    phone = Column(String(64), nullable=True)
    email = Column(String(256), nullable=True)
    reason = Column(Text, nullable=True)
    consent_to_share = Column(Boolean, nullable=False, default=False)
    business = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
