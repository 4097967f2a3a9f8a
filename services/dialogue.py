"""
Dialogue engine: drives one chat session through the step graph.

A turn is either start (possibly offering to resume a saved snapshot), answer
(validate, assign, run the step action, transition) or reset. Moving to a step skips
it when its skip rule holds, emits its prompts with typing pacing, and either runs it
straight through (auto-progress) or waits for the applicant. Every session is keyed
explicitly; turns of one session are serialized with a per-session lock. A session
that reaches a terminal step or halts is dropped from the engine once its turn returns.
"""
from __future__ import annotations

import asyncio
import enum
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from pydantic import ValidationError

from config import settings
from schemas.application import ApplicationRecord
from schemas.chat import ChatMessage, ChatSnapshot, Progress, Turn
from services.actions import ActionExecutor, UnknownActionError
from services.chat_flow import NO_VALUE, extract_abn, map_option_to_value, progress_for
from services.persistence import SnapshotStore
from services.step_graph import SUCCESS_OUTCOMES, InputKind, Outcome, Step, StepGraph, UnknownStepError
from services.validators import AMOUNT_NOT_A_NUMBER
from utils.parsing import parse_amount, parse_date

logger = logging.getLogger(__name__)

RESUME_PROMPT = "Welcome back! Want to continue where you left off?"
RESUME_OPTIONS = ["Yes, continue", "No, start fresh"]
SELECT_MISMATCH = "Please choose one of the options."
INVALID_DATE = "Enter the date as DD/MM/YYYY."

Sleep = Callable[[float], Awaitable[None]]
MessageCallback = Callable[[str, ChatMessage], Awaitable[None]]


class SessionState(str, enum.Enum):
    IDLE = "idle"
    AWAITING_RESUME = "awaiting_resume"
    PROMPTING = "prompting"
    AWAITING_INPUT = "awaiting_input"
    VALIDATING = "validating"
    ACTING = "acting"
    TRANSITIONING = "transitioning"
    TERMINAL = "terminal"
    HALTED = "halted"


class UnknownSessionError(KeyError):
    """No session with that key has been started in this engine."""


@dataclass
class SessionContext:
    key: str
    record: ApplicationRecord = field(default_factory=ApplicationRecord)
    step_id: Optional[str] = None
    state: SessionState = SessionState.IDLE
    pending_resume: Optional[ChatSnapshot] = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


def _message(role: str, content: str) -> ChatMessage:
    return ChatMessage(
        id=f"msg-{uuid.uuid4().hex[:12]}",
        role=role,
        content=content,
        created_at=datetime.now(timezone.utc),
    )


def _first_error(e: ValidationError) -> str:
    errors = e.errors()
    if not errors:
        return SELECT_MISMATCH
    return str(errors[0].get("msg", SELECT_MISMATCH)).removeprefix("Value error, ")


class DialogueEngine:
    def __init__(
        self,
        graph: StepGraph,
        actions: ActionExecutor,
        store: SnapshotStore,
        typing_delay: Optional[float] = None,
        sleep: Sleep = asyncio.sleep,
        on_message: Optional[MessageCallback] = None,
    ):
        self.graph = graph
        self.actions = actions
        self.store = store
        self.typing_delay = settings.typing_delay_seconds if typing_delay is None else typing_delay
        self._sleep = sleep
        self._on_message = on_message
        self._sessions: dict[str, SessionContext] = {}

    # ---- public operations ----

    async def start(self, session_key: str) -> Turn:
        """Open a session; offers to resume when a non-terminal snapshot is saved."""
        session = self._sessions.setdefault(session_key, SessionContext(key=session_key))
        async with session.lock:
            try:
                out: list[ChatMessage] = []
                session.pending_resume = None
                snapshot = await self._load(session_key)
                if snapshot is not None and snapshot.step_id in self.graph and not self.graph.is_terminal(snapshot.step_id):
                    session.pending_resume = snapshot
                    session.step_id = None
                    session.state = SessionState.AWAITING_RESUME
                    await self._say(session, out, RESUME_PROMPT)
                    return self._turn(session, out)
                if snapshot is not None:
                    logger.info("Discarding finished snapshot at %s for %s", snapshot.step_id, session_key)
                    await self._clear(session_key)
                await self._move_to_step(session, self.graph.entry_step_id, out, ApplicationRecord())
                return self._turn(session, out)
            finally:
                self._release(session)

    async def answer(self, session_key: str, raw: str) -> Turn:
        """Apply one answer. Finished or halted sessions are dropped afterwards."""
        session = self._get(session_key)
        async with session.lock:
            try:
                out: list[ChatMessage] = []
                if session.state == SessionState.AWAITING_RESUME:
                    out.append(_message("user", raw.strip()))
                    await self._handle_resume(session, raw, out)
                elif session.state == SessionState.AWAITING_INPUT:
                    out.append(_message("user", raw.strip()))
                    await self._handle_answer(session, raw, out)
                else:
                    logger.info("Ignoring answer for %s in state %s", session_key, session.state.value)
                return self._turn(session, out)
            finally:
                self._release(session)

    async def reset(self, session_key: str) -> Turn:
        """Discard the saved snapshot and the record and start over at the entry step."""
        session = self._sessions.setdefault(session_key, SessionContext(key=session_key))
        async with session.lock:
            try:
                out: list[ChatMessage] = []
                session.pending_resume = None
                await self._clear(session_key)
                await self._move_to_step(session, self.graph.entry_step_id, out, ApplicationRecord())
                return self._turn(session, out)
            finally:
                self._release(session)

    async def move_to_step(self, session_key: str, step_id: str, record: Optional[ApplicationRecord] = None) -> Turn:
        session = self._sessions.setdefault(session_key, SessionContext(key=session_key))
        async with session.lock:
            try:
                out: list[ChatMessage] = []
                session.pending_resume = None
                await self._move_to_step(session, step_id, out, record)
                return self._turn(session, out)
            finally:
                self._release(session)

    def current(self, session_key: str) -> Turn:
        return self._turn(self._get(session_key), [])

    def record(self, session_key: str) -> ApplicationRecord:
        return self._get(session_key).record

    def __contains__(self, session_key: str) -> bool:
        return session_key in self._sessions

    # ---- turn handling ----

    def _get(self, session_key: str) -> SessionContext:
        try:
            return self._sessions[session_key]
        except KeyError:
            raise UnknownSessionError(session_key) from None

    def _release(self, session: SessionContext) -> None:
        # A finished or halted session takes no more answers; its snapshot (if any) stays in the store
        if session.state not in (SessionState.TERMINAL, SessionState.HALTED):
            return
        if self._sessions.get(session.key) is session:
            del self._sessions[session.key]
            logger.debug("Released session %s (%s)", session.key, session.state.value)

    async def _handle_resume(self, session: SessionContext, raw: str, out: list[ChatMessage]) -> None:
        snapshot = session.pending_resume
        session.pending_resume = None
        lowered = raw.strip().lower()
        if snapshot is not None and (lowered.startswith("yes") or "continue" in lowered):
            logger.info("Resuming %s at %s", session.key, snapshot.step_id)
            await self._move_to_step(session, snapshot.step_id, out, snapshot.record)
            return
        await self._clear(session.key)
        await self._move_to_step(session, self.graph.entry_step_id, out, ApplicationRecord())

    async def _handle_answer(self, session: SessionContext, raw: str, out: list[ChatMessage]) -> None:
        step = self._step(session, session.step_id)
        answer = raw.strip()
        session.state = SessionState.VALIDATING

        error = step.validate(answer, session.record) if step.validate else None
        record = session.record
        if error is None:
            try:
                record = self._assign(step, answer, record)
            except ValidationError as e:
                error = _first_error(e) if step.input_kind not in (InputKind.SELECT, InputKind.CONFIRM) else SELECT_MISMATCH
            except ValueError:
                error = INVALID_DATE if step.input_kind == InputKind.DATE else AMOUNT_NOT_A_NUMBER
        if error is not None:
            logger.info("Validation failed at %s for %s: %s", step.id, session.key, error)
            session.state = SessionState.AWAITING_INPUT
            await self._say(session, out, error)
            return

        if step.action:
            session.state = SessionState.ACTING
            record = await self._run_action(session, step.action, record)
        session.record = record
        await self._move_to_step(session, step.resolve_next(answer, record), out)

    def _assign(self, step: Step, answer: str, record: ApplicationRecord) -> ApplicationRecord:
        if step.input_kind == InputKind.DISAMBIGUATION_SELECT:
            abn = extract_abn(answer)
            if abn:
                record = record.with_value("business.abn", abn.strip())
        if not step.field_path:
            return record
        value = self._coerce(step, answer)
        if value is NO_VALUE:
            return record
        return record.with_value(step.field_path, value)

    @staticmethod
    def _coerce(step: Step, answer: str):
        if step.input_kind in (InputKind.SELECT, InputKind.CONFIRM, InputKind.DISAMBIGUATION_SELECT):
            return map_option_to_value(answer, step.field_path)
        if step.input_kind == InputKind.NUMBER:
            return parse_amount(answer)
        if step.input_kind == InputKind.DATE:
            parsed = parse_date(answer)
            if parsed is None:
                raise ValueError(f"Not a date: {answer!r}")
            return parsed
        return answer

    async def _move_to_step(
        self,
        session: SessionContext,
        step_id: Optional[str],
        out: list[ChatMessage],
        record: Optional[ApplicationRecord] = None,
    ) -> None:
        if record is not None:
            session.record = record
        while True:
            session.state = SessionState.TRANSITIONING
            step = self._step(session, step_id)
            if step.should_skip(session.record):
                logger.info("Skipping step %s for %s", step.id, session.key)
                step_id = step.resolve_next("", session.record)
                continue

            logger.debug("Session %s -> %s", session.key, step.id)
            session.step_id = step.id
            session.state = SessionState.PROMPTING
            for prompt in step.resolve_prompts(session.record):
                await self._say(session, out, prompt)

            options = step.resolve_options(session.record)
            if step.auto_progresses(options):
                session.state = SessionState.ACTING
                session.record = await self._run_action(session, step.action, session.record)
                step_id = step.resolve_next("", session.record)
                continue

            success = step.outcome in SUCCESS_OUTCOMES
            if step.persist and not success:
                await self._save(session)
            if step.is_terminal:
                session.state = SessionState.TERMINAL
                if success:
                    await self._clear(session.key)
                logger.info("Session %s finished: %s", session.key, step.outcome.value)
                return
            session.state = SessionState.AWAITING_INPUT
            return

    def _step(self, session: SessionContext, step_id: Optional[str]) -> Step:
        try:
            return self.graph.get(step_id)
        except UnknownStepError:
            logger.error("Unknown step %r in session %s, halting", step_id, session.key)
            session.state = SessionState.HALTED
            raise

    async def _run_action(self, session: SessionContext, name: str, record: ApplicationRecord) -> ApplicationRecord:
        try:
            return await self.actions.run(name, record, session.key)
        except UnknownActionError:
            logger.error("Unknown action %r in session %s, halting", name, session.key)
            session.state = SessionState.HALTED
            raise

    async def _say(self, session: SessionContext, out: list[ChatMessage], content: str) -> None:
        await self._sleep(self.typing_delay)
        message = _message("bot", content)
        out.append(message)
        if self._on_message is not None:
            await self._on_message(session.key, message)

    # ---- persistence, never fatal ----

    async def _save(self, session: SessionContext) -> None:
        try:
            await self.store.save(session.key, ChatSnapshot(step_id=session.step_id, record=session.record))
        except Exception:
            logger.warning("Could not save snapshot for %s", session.key, exc_info=True)

    async def _load(self, session_key: str) -> Optional[ChatSnapshot]:
        try:
            return await self.store.load(session_key)
        except Exception:
            logger.warning("Could not load snapshot for %s", session_key, exc_info=True)
            return None

    async def _clear(self, session_key: str) -> None:
        try:
            await self.store.clear(session_key)
        except Exception:
            logger.warning("Could not clear snapshot for %s", session_key, exc_info=True)

    # ---- rendering ----

    def _turn(self, session: SessionContext, messages: list[ChatMessage]) -> Turn:
        if session.state == SessionState.AWAITING_RESUME:
            return Turn(
                session_key=session.key,
                state=session.state.value,
                messages=messages,
                input_kind=InputKind.SELECT.value,
                options=list(RESUME_OPTIONS),
            )
        step = self.graph.get(session.step_id) if session.step_id in self.graph else None
        if step is None:
            return Turn(session_key=session.key, step_id=session.step_id, state=session.state.value, messages=messages)
        current, total = progress_for(step.id)
        awaiting = session.state == SessionState.AWAITING_INPUT
        outcome = step.outcome if session.state == SessionState.TERMINAL else None
        return Turn(
            session_key=session.key,
            step_id=step.id,
            state=session.state.value,
            messages=messages,
            input_kind=step.input_kind.value if awaiting else None,
            options=step.resolve_options(session.record) if awaiting else [],
            placeholder=step.placeholder if awaiting else None,
            progress=Progress(current=current, total=total),
            outcome=outcome.value if outcome else None,
            is_complete=outcome == Outcome.COMPLETE,
            is_lead_captured=outcome == Outcome.LEAD_CAPTURED,
        )
