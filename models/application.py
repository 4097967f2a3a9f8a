from sqlalchemy import Column, DateTime, String, func
from sqlalchemy import JSON

from database import Base


class LoanApplication(Base):
    __tablename__ = "loan_applications"

    id = Column(String(64), primary_key=True, index=True)
    reference = Column(String(32), unique=True, nullable=False, index=True)
    status = Column(String(32), nullable=False, default="submitted", index=True)
    session_key = Column(String(128), nullable=True, index=True)
    # Record sections, snake_case
    business = Column(JSON, nullable=False)
    asset = Column(JSON, nullable=False)
    loan = Column(JSON, nullable=False)
    directors = Column(JSON, nullable=False)
    registry_lookup = Column(JSON, nullable=True)
    # Quote snapshot (inputs + result) the applicant saw when submitting
    quote = Column(JSON, nullable=True)
    eligibility = Column(JSON, nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
