"""In-memory session registry for multi-turn conversations."""

import asyncio
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable


@dataclass
class Message:
    role: str
    content: str


@dataclass
class Session:
    id: str
    created_at: float = field(default_factory=time.time)
    history: list[Message] = field(default_factory=list)
    # Held for a whole turn; history is only mutated under it.
    turn_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)


def _new_session_id() -> str:
    return uuid.uuid4().hex


class SessionStore:
    """Owns the id -> Session mapping.

    The internal lock guards the map only and is never held while an agent
    runs. Sessions live for the lifetime of the process.
    """

    def __init__(self, id_factory: Callable[[], str] = _new_session_id):
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()
        self._id_factory = id_factory

    def get_or_create(self, session_id: str | None = None) -> Session:
        with self._lock:
            if session_id:
                session = self._sessions.get(session_id)
                if session is not None:
                    return session
            else:
                session_id = self._id_factory()
                # Re-check under the lock so a coarse generator can't collide
                while session_id in self._sessions:
                    session_id = self._id_factory()

            session = Session(id=session_id)
            self._sessions[session_id] = session
            return session

    def get(self, session_id: str) -> Session | None:
        with self._lock:
            return self._sessions.get(session_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
