"""Test configuration and fixtures."""
import asyncio
from collections import defaultdict

import pytest

from agent_engine.runner import RunEvent
from agent_engine.session_service import SessionExistsError, SessionNotFoundError
from api.config import Settings


class FakeCollaborator:
    """Scriptable stand-in for the agent runner."""

    def __init__(self, fragments=("Hello", " there"), delay=0.0, error=None, raise_exc=None, create_exc=None):
        self.fragments = list(fragments)
        self.delay = delay
        self.error = error
        self.raise_exc = raise_exc
        self.create_exc = create_exc
        self.engine_sessions: set[str] = set()
        self.created: list[str] = []
        self.events: list[tuple[str, str, str]] = []
        self.active: dict[str, int] = defaultdict(int)
        self.max_active: dict[str, int] = defaultdict(int)
        self.max_total = 0
        self._total = 0

    async def get_session(self, session_id):
        if session_id not in self.engine_sessions:
            raise SessionNotFoundError(session_id)
        return session_id

    async def create_session(self, session_id, user_id):
        self.created.append(session_id)
        if self.create_exc is not None:
            raise self.create_exc
        if session_id in self.engine_sessions:
            raise SessionExistsError(session_id)
        self.engine_sessions.add(session_id)
        return session_id

    async def run(self, user_id, session_id, message):
        self.events.append(("start", session_id, message))
        self.active[session_id] += 1
        self._total += 1
        self.max_active[session_id] = max(self.max_active[session_id], self.active[session_id])
        self.max_total = max(self.max_total, self._total)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.raise_exc is not None:
                raise self.raise_exc
            for fragment in self.fragments:
                yield RunEvent(text=fragment)
            if self.error:
                yield RunEvent(error=self.error)
                yield RunEvent(text="never seen")
        finally:
            self.active[session_id] -= 1
            self._total -= 1
            self.events.append(("end", session_id, message))


@pytest.fixture
def settings():
    return Settings(mcp_endpoint="http://tools.local/mcp", turn_timeout=5.0, shutdown_timeout=1.0)


@pytest.fixture
def collaborator():
    return FakeCollaborator()
