from typing import Optional

from pydantic import BaseModel, Field


class EligibilityCheckSchema(BaseModel):
    name: str
    passed: bool
    message: str
    hard: bool = True
    expected: Optional[str] = None
    actual: Optional[str] = None


class EligibilityResultSchema(BaseModel):
    passed: bool
    checks: list[EligibilityCheckSchema] = Field(default_factory=list)
    fail_reasons: list[str] = Field(default_factory=list)
