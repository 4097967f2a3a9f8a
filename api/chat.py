from __future__ import annotations

import uuid
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException

from database import AsyncSessionLocal
from schemas.chat import AnswerRequest, StartSessionRequest, Turn
from services.actions import ActionExecutor, UnknownActionError
from services.chat_flow import build_default_graph
from services.dialogue import DialogueEngine, UnknownSessionError
from services.persistence import SqlSnapshotStore
from services.registry import build_registry
from services.repository import LoggingNotifier, SqlApplicationRepository
from services.step_graph import UnknownStepError
from utils.case import camel_payload

router = APIRouter(prefix="/api/chat", tags=["chat"])

_engine: Optional[DialogueEngine] = None


def build_engine() -> DialogueEngine:
    actions = ActionExecutor(
        registry=build_registry(),
        repository=SqlApplicationRepository(AsyncSessionLocal),
        notifier=LoggingNotifier(),
    )
    return DialogueEngine(build_default_graph(), actions, SqlSnapshotStore(AsyncSessionLocal))


def get_engine() -> DialogueEngine:
    """One engine per process; sessions live in it keyed by session key."""
    global _engine
    if _engine is None:
        _engine = build_engine()
    return _engine


def _turn_to_response(turn: Turn) -> dict[str, Any]:
    return camel_payload(turn)


@router.post("/sessions")
async def start_session(body: Optional[StartSessionRequest] = None, engine: DialogueEngine = Depends(get_engine)):
    session_key = (body.session_key if body else None) or f"chat-{uuid.uuid4().hex[:12]}"
    return _turn_to_response(await engine.start(session_key))


@router.post("/sessions/{session_key}/messages")
async def send_message(session_key: str, body: AnswerRequest, engine: DialogueEngine = Depends(get_engine)):
    try:
        turn = await engine.answer(session_key, body.answer)
    except UnknownSessionError:
        raise HTTPException(status_code=404, detail="Chat session not found")
    except (UnknownStepError, UnknownActionError):
        raise HTTPException(status_code=500, detail="Conversation halted")
    return _turn_to_response(turn)


@router.post("/sessions/{session_key}/reset")
async def reset_session(session_key: str, engine: DialogueEngine = Depends(get_engine)):
    return _turn_to_response(await engine.reset(session_key))


@router.get("/sessions/{session_key}")
async def get_session(session_key: str, engine: DialogueEngine = Depends(get_engine)):
    try:
        turn = engine.current(session_key)
        record = engine.record(session_key)
    except UnknownSessionError:
        raise HTTPException(status_code=404, detail="Chat session not found")
    return {**_turn_to_response(turn), "record": camel_payload(record)}
