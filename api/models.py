"""Pydantic request/response schemas for the chat API."""

from pydantic import BaseModel, ConfigDict


# ── Requests ───────────────────────────────────────────────────────────────

class ChatRequest(BaseModel):
    model_config = ConfigDict(strict=True)

    message: str | None = None
    session_id: str | None = None


# ── Responses ──────────────────────────────────────────────────────────────

class ChatResponse(BaseModel):
    response: str | None = None
    session_id: str | None = None
    error: str | None = None


class HistoryMessage(BaseModel):
    role: str
    content: str


class SessionResponse(BaseModel):
    session_id: str
    created_at: float
    history: list[HistoryMessage]


class ToolsResponse(BaseModel):
    message: str
    note: str
    mcp_endpoint: str
