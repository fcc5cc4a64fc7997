from __future__ import annotations

import logging
import uuid
from collections import OrderedDict

from fastapi import Request

from soapscribe.sessions.editing import EditingSession

logger = logging.getLogger("soapscribe.sessions")


class EditingSessionRegistry:
    """
    In-process store of live editing sessions, oldest evicted first past `limit`.

    Sessions hold unsaved note text and are never persisted; the caller saves the note it
    gets back from an approval.
    """

    def __init__(self, *, limit: int):
        self._limit = limit
        self._sessions: OrderedDict[uuid.UUID, EditingSession] = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, session_id: uuid.UUID) -> EditingSession | None:
        return self._sessions.get(session_id)

    async def add(self, session: EditingSession) -> None:
        self._sessions[session.id] = session
        while len(self._sessions) > self._limit:
            _, evicted = self._sessions.popitem(last=False)
            await evicted.close()
            logger.info("Editing session evicted", extra={"session_id": str(evicted.id)})

    async def remove(self, session_id: uuid.UUID) -> bool:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        await session.close()
        return True

    async def close_all(self) -> None:
        while self._sessions:
            _, session = self._sessions.popitem(last=False)
            await session.close()


def get_session_registry(request: Request) -> EditingSessionRegistry:
    return request.app.state.editing_sessions
