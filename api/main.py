"""FastAPI application for the agent chat gateway."""

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from openai import OpenAIError

from agent_engine.runner import AgentRunner
from agent_engine.session_service import InMemorySessionService
from agent_engine.tool_backend import ToolBackendClient

from .config import Settings
from .errors import ConfigError
from .gateway import ChatGateway, ExecutionCollaborator
from .lifecycle import ShutdownSignal
from .routes import router
from .session_store import SessionStore

logger = logging.getLogger(__name__)


def build_runner(settings: Settings) -> AgentRunner:
    """Construct the real agent runner. Raises ConfigError on missing credentials."""
    tools = ToolBackendClient(
        settings.mcp_endpoint,
        token=settings.mcp_auth_token,
        auth_header=settings.mcp_auth_header,
    )
    logger.info("Tool backend endpoint: %s", settings.mcp_endpoint)
    try:
        return AgentRunner(
            sessions=InMemorySessionService(settings.app_name),
            tools=tools,
            model=settings.model,
            api_key=settings.openai_api_key,
        )
    except OpenAIError as e:
        raise ConfigError(f"cannot create model client: {e}") from e


def create_app(
    settings: Settings,
    collaborator: ExecutionCollaborator | None = None,
    shutdown: ShutdownSignal | None = None,
) -> FastAPI:
    # Built before the listener starts so credential problems fail fast
    runner = build_runner(settings) if collaborator is None else None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        registry = SessionStore()
        app.state.registry = registry
        app.state.gateway = ChatGateway(
            registry,
            collaborator or runner,
            shutdown=shutdown,
            turn_timeout=settings.turn_timeout,
            user_id=settings.user_id,
        )
        logger.info("Ready, agent gateway using model %s", settings.model)
        try:
            yield
        finally:
            if runner is not None:
                await runner.tools.close()

    app = FastAPI(title="Agent Chat Gateway", lifespan=lifespan)
    app.state.settings = settings

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
        t0 = time.perf_counter()
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        logger.info(
            "%s %s -> %d in %.0fms [%s]",
            request.method, request.url.path, response.status_code,
            (time.perf_counter() - t0) * 1000, request_id,
        )
        return response

    app.include_router(router)
    return app
