"""Engine-side session storage: the model-facing message log per session."""

import asyncio
import time
from dataclasses import dataclass, field


class SessionNotFoundError(LookupError):
    pass


class SessionExistsError(Exception):
    pass


@dataclass
class EngineSession:
    id: str
    user_id: str
    app_name: str
    created_at: float = field(default_factory=time.time)
    messages: list[dict] = field(default_factory=list)


class InMemorySessionService:
    def __init__(self, app_name: str):
        self.app_name = app_name
        self._sessions: dict[str, EngineSession] = {}
        self._lock = asyncio.Lock()

    async def get(self, session_id: str) -> EngineSession:
        async with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"session {session_id} not found")
        return session

    async def create(self, session_id: str, user_id: str) -> EngineSession:
        async with self._lock:
            if session_id in self._sessions:
                raise SessionExistsError(f"session {session_id} already exists")
            session = EngineSession(id=session_id, user_id=user_id, app_name=self.app_name)
            self._sessions[session_id] = session
            return session
