"""
Snapshot stores for resumable chat sessions, keyed strictly by session key.
Snapshots are stored as JSON ({"step_id", "record"}); loading re-validates the record.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models import ChatSession
from schemas.chat import ChatSnapshot

logger = logging.getLogger(__name__)


class SnapshotStore(Protocol):
    async def save(self, session_key: str, snapshot: ChatSnapshot) -> None:
        ...

    async def load(self, session_key: str) -> Optional[ChatSnapshot]:
        ...

    async def clear(self, session_key: str) -> None:
        ...


class InMemorySnapshotStore:
    def __init__(self):
        self._snapshots: dict[str, dict[str, Any]] = {}

    async def save(self, session_key: str, snapshot: ChatSnapshot) -> None:
        self._snapshots[session_key] = snapshot.model_dump(mode="json")

    async def load(self, session_key: str) -> Optional[ChatSnapshot]:
        data = self._snapshots.get(session_key)
        if data is None:
            return None
        return ChatSnapshot.model_validate(data)

    async def clear(self, session_key: str) -> None:
        self._snapshots.pop(session_key, None)

    def __contains__(self, session_key: str) -> bool:
        return session_key in self._snapshots


class SqlSnapshotStore:
    """chat_sessions table, one row per session key."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def save(self, session_key: str, snapshot: ChatSnapshot) -> None:
        data = snapshot.model_dump(mode="json")
        async with self._session_factory() as session:
            row = await session.get(ChatSession, session_key)
            if row is None:
                row = ChatSession(session_key=session_key)
                session.add(row)
            row.step_id = data["step_id"]
            row.record = data["record"]
            row.updated_at = datetime.now(timezone.utc)
            await session.commit()

    async def load(self, session_key: str) -> Optional[ChatSnapshot]:
        async with self._session_factory() as session:
            row = await session.get(ChatSession, session_key)
            if row is None:
                return None
            return ChatSnapshot.model_validate({"step_id": row.step_id, "record": row.record})

    async def clear(self, session_key: str) -> None:
        async with self._session_factory() as session:
            row = await session.get(ChatSession, session_key)
            if row is not None:
                await session.delete(row)
                await session.commit()
        logger.debug("Cleared snapshot for %s", session_key)
