from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from schemas.application import ApplicationRecord


class ChatSnapshot(BaseModel):
    """Persisted resume point: the step awaiting input and the record at that moment."""
    step_id: str
    record: ApplicationRecord


class ChatMessage(BaseModel):
    id: str
    role: Literal["bot", "user"]
    content: str
    created_at: datetime


class Progress(BaseModel):
    current: int
    total: int


class Turn(BaseModel):
    """Everything the client needs to render after one engine call."""
    session_key: str
    step_id: Optional[str] = None
    state: str
    messages: list[ChatMessage] = Field(default_factory=list)
    input_kind: Optional[str] = None
    options: list[str] = Field(default_factory=list)
    placeholder: Optional[str] = None
    progress: Optional[Progress] = None
    outcome: Optional[str] = None
    is_complete: bool = False
    is_lead_captured: bool = False


class StartSessionRequest(BaseModel):
    session_key: Optional[str] = Field(None, alias="sessionKey")

    model_config = {"populate_by_name": True}


class AnswerRequest(BaseModel):
    answer: str = Field(..., min_length=1)

    model_config = {"populate_by_name": True}
