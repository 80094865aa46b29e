"""API routes wrapping the chat gateway."""

import json
import logging

import pydantic
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from agent_engine.runner import AGENT_DESCRIPTION, AGENT_NAME

from .errors import GatewayError
from .models import ChatRequest, ChatResponse, HistoryMessage, SessionResponse, ToolsResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def _reply(body: ChatResponse) -> JSONResponse:
    return JSONResponse(body.model_dump(exclude_none=True))


@router.get("/")
def root(request: Request):
    base = str(request.base_url).rstrip("/")
    return {
        "service": "Agent chat gateway with MCP tools",
        "endpoints": {
            "chat": {
                "url": f"{base}/api/chat",
                "method": "POST",
                "description": "Send a message to the agent",
                "example": {
                    "message": "Hello, how can you help me?",
                    "session_id": "optional-session-id",
                },
            },
            "health": {
                "url": f"{base}/health",
                "method": "GET",
                "description": "Health check endpoint",
            },
            "tools": {
                "url": f"{base}/api/tools",
                "method": "GET",
                "description": "List available MCP tools",
            },
            "session": {
                "url": f"{base}/api/sessions/{{session_id}}",
                "method": "GET",
                "description": "Conversation history of a session",
            },
        },
        "agent": {"name": AGENT_NAME, "description": AGENT_DESCRIPTION},
    }


@router.get("/health", response_class=PlainTextResponse)
def health():
    return "OK"


@router.post("/api/chat")
async def chat(request: Request):
    try:
        payload = json.loads(await request.body())
        req = ChatRequest.model_validate(payload)
    except (ValueError, pydantic.ValidationError) as e:
        logger.info("Error parsing JSON: %s", e)
        return _reply(ChatResponse(error="Invalid JSON format"))

    gateway = request.app.state.gateway
    try:
        result = await gateway.handle_turn(req.message or "", req.session_id)
    except GatewayError as e:
        return _reply(ChatResponse(error=e.message, session_id=e.session_id))

    return _reply(ChatResponse(response=result.reply, session_id=result.session_id))


@router.get("/api/tools", response_model=ToolsResponse)
def tools(request: Request):
    return ToolsResponse(
        message="MCP tools are available through the agent",
        note="To see available tools, ask the agent 'What tools do you have available?' in a chat message",
        mcp_endpoint=request.app.state.settings.mcp_endpoint,
    )


@router.get("/api/sessions/{session_id}", response_model=SessionResponse)
def get_session(session_id: str, request: Request):
    session = request.app.state.registry.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="unknown session")
    return SessionResponse(
        session_id=session.id,
        created_at=session.created_at,
        history=[HistoryMessage(role=m.role, content=m.content) for m in list(session.history)],
    )
