"""
Chat gateway: runs one conversational turn against the agent engine.

Turns on the same session are serialized by the session's turn lock and
execute in lock-acquisition order. Turns on different sessions only share
the registry's short map lock.
"""

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import AsyncIterator, Protocol

from agent_engine.runner import RunEvent
from agent_engine.session_service import SessionExistsError, SessionNotFoundError

from .errors import (
    ExecutionError,
    SessionBootstrapError,
    TurnAbortedError,
    TurnTimeoutError,
    ValidationError,
)
from .lifecycle import ShutdownSignal
from .session_store import Message, Session, SessionStore

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "The agent processed the message but did not return a response."


class ExecutionCollaborator(Protocol):
    async def get_session(self, session_id: str): ...

    async def create_session(self, session_id: str, user_id: str): ...

    def run(self, user_id: str, session_id: str, message: str) -> AsyncIterator[RunEvent]: ...


@dataclass
class TurnResult:
    reply: str
    session_id: str


class ChatGateway:
    def __init__(
        self,
        registry: SessionStore,
        collaborator: ExecutionCollaborator,
        shutdown: ShutdownSignal | None = None,
        turn_timeout: float = 60.0,
        user_id: str = "default-user",
    ):
        self.registry = registry
        self.collaborator = collaborator
        self.shutdown = shutdown or ShutdownSignal()
        self.turn_timeout = turn_timeout
        self.user_id = user_id

    async def handle_turn(self, message: str, session_id: str | None = None) -> TurnResult:
        if not message:
            raise ValidationError("Message is required")

        session = self.registry.get_or_create(session_id)
        await self._acquire(session)
        try:
            logger.info("Processing message in session %s: %r", session.id, message[:200])
            reply = await self._run_turn(session.id, message) or FALLBACK_REPLY
            session.history.append(Message(role="user", content=message))
            session.history.append(Message(role="assistant", content=reply))
            logger.info("Agent replied in session %s (%d chars)", session.id, len(reply))
            return TurnResult(reply=reply, session_id=session.id)
        finally:
            session.turn_lock.release()

    async def _acquire(self, session: Session) -> None:
        """Wait for the session's turn lock, giving up if shutdown starts first."""
        if self.shutdown.stopping.is_set():
            raise TurnAbortedError("Server is shutting down", session.id)

        acquire = asyncio.ensure_future(session.turn_lock.acquire())
        stopping = asyncio.ensure_future(self.shutdown.stopping.wait())
        try:
            await asyncio.wait({acquire, stopping}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            stopping.cancel()
            await self._abandon_acquire(session, acquire)
            raise
        stopping.cancel()

        if acquire.done() and not self.shutdown.stopping.is_set():
            return
        await self._abandon_acquire(session, acquire)
        raise TurnAbortedError("Server is shutting down", session.id)

    @staticmethod
    async def _abandon_acquire(session: Session, acquire: asyncio.Future) -> None:
        if not acquire.done():
            acquire.cancel()
        try:
            await asyncio.shield(acquire)
        except asyncio.CancelledError:
            return
        session.turn_lock.release()

    async def _ensure_engine_session(self, session_id: str) -> None:
        try:
            await self.collaborator.get_session(session_id)
            return
        except SessionNotFoundError:
            pass
        except Exception as e:
            logger.warning("Engine session lookup failed for %s: %s", session_id, e)

        try:
            await self.collaborator.create_session(session_id, self.user_id)
        except SessionExistsError:
            logger.debug("Engine session %s already exists", session_id)
        except Exception as e:
            logger.error("Error creating session in engine: %s", e)
            raise SessionBootstrapError(f"Failed to create session: {e}", session_id) from e

    async def _run_turn(self, session_id: str, message: str) -> str:
        stream = asyncio.ensure_future(self._execute(session_id, message))
        aborted = asyncio.ensure_future(self.shutdown.aborted.wait())
        try:
            done, _ = await asyncio.wait(
                {stream, aborted}, timeout=self.turn_timeout, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            stream.cancel()
            aborted.cancel()
            await asyncio.gather(stream, return_exceptions=True)
            raise
        aborted.cancel()

        if stream in done:
            return stream.result()

        stream.cancel()
        await asyncio.gather(stream, return_exceptions=True)
        if aborted in done:
            logger.warning("Turn in session %s aborted by shutdown", session_id)
            raise TurnAbortedError("Failed to process message: server is shutting down", session_id)
        logger.warning("Turn in session %s timed out after %.1fs", session_id, self.turn_timeout)
        raise TurnTimeoutError(
            f"Failed to process message: agent did not respond within {self.turn_timeout:g}s", session_id
        )

    async def _execute(self, session_id: str, message: str) -> str:
        await self._ensure_engine_session(session_id)
        return await self._collect_reply(session_id, message)

    async def _collect_reply(self, session_id: str, message: str) -> str:
        parts: list[str] = []
        try:
            async with aclosing(self.collaborator.run(self.user_id, session_id, message)) as events:
                async for event in events:
                    if event.error:
                        logger.error("Error running agent in session %s: %s", session_id, event.error)
                        raise ExecutionError(f"Failed to process message: {event.error}", session_id)
                    if event.text:
                        parts.append(event.text)
        except ExecutionError:
            raise
        except Exception as e:
            logger.exception("Agent raised in session %s", session_id)
            raise ExecutionError(f"Failed to process message: {e}", session_id) from e
        return "".join(parts)
