"""
Tool backend client: JSON-RPC 2.0 over streamable HTTP (MCP).

The backend may answer either with a plain JSON body or with a
server-sent event stream carrying the JSON-RPC response.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2025-03-26"
CLIENT_INFO = {"name": "agent-chat-gateway", "version": "1.0.0"}
SESSION_HEADER = "Mcp-Session-Id"


class ToolBackendError(Exception):
    pass


@dataclass
class ToolDefinition:
    name: str
    description: str = ""
    input_schema: dict = field(default_factory=lambda: {"type": "object", "properties": {}})

    def as_openai_tool(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema,
            },
        }


def _parse_event_stream(text: str, request_id: int) -> dict:
    """Pick the JSON-RPC response for request_id out of an SSE body."""
    data_lines: list[str] = []
    events: list[str] = []
    for line in text.splitlines():
        if line.startswith("data:"):
            data_lines.append(line[5:].lstrip())
        elif not line.strip() and data_lines:
            events.append("\n".join(data_lines))
            data_lines = []
    if data_lines:
        events.append("\n".join(data_lines))

    for raw in events:
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            continue
        if isinstance(message, dict) and message.get("id") == request_id:
            return message
    raise ToolBackendError(f"no response for request {request_id} in event stream")


class ToolBackendClient:
    def __init__(
        self,
        endpoint: str,
        token: str | None = None,
        auth_header: str = "Authorization",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.endpoint = endpoint
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
        }
        if token:
            if auth_header.lower() == "authorization":
                headers[auth_header] = f"Bearer {token}"
            else:
                headers[auth_header] = token
        self._http = httpx.AsyncClient(headers=headers, timeout=timeout, transport=transport)
        self._request_id = 0
        self._session_id: str | None = None
        self._started = False
        self._start_lock = asyncio.Lock()
        self._tools: list[ToolDefinition] | None = None

    async def start(self) -> None:
        async with self._start_lock:
            if self._started:
                return
            result = await self._request("initialize", {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": CLIENT_INFO,
            })
            await self._notify("notifications/initialized", {})
            self._started = True
            server = (result or {}).get("serverInfo", {})
            logger.info("Connected to tool backend %s (%s)", self.endpoint, server.get("name", "unknown"))

    async def list_tools(self, refresh: bool = False) -> list[ToolDefinition]:
        if self._tools is not None and not refresh:
            return self._tools
        await self.start()
        result = await self._request("tools/list", {})
        self._tools = [
            ToolDefinition(
                name=t["name"],
                description=t.get("description", ""),
                input_schema=t.get("inputSchema") or {"type": "object", "properties": {}},
            )
            for t in result.get("tools", [])
        ]
        return self._tools

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> str:
        await self.start()
        result = await self._request("tools/call", {"name": name, "arguments": arguments})
        parts = []
        for block in result.get("content", []):
            if block.get("type") == "text":
                parts.append(block.get("text", ""))
            else:
                parts.append(json.dumps(block))
        text = "\n".join(parts)
        if result.get("isError"):
            return f"Tool error: {text}"
        return text

    async def close(self) -> None:
        await self._http.aclose()
        self._started = False

    # ── JSON-RPC plumbing ──────────────────────────────────────────────────

    def _headers(self) -> dict[str, str]:
        return {SESSION_HEADER: self._session_id} if self._session_id else {}

    async def _post(self, payload: dict) -> httpx.Response:
        logger.debug("Tool backend request: %s %s", payload.get("method"), self.endpoint)
        try:
            resp = await self._http.post(self.endpoint, json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            raise ToolBackendError(f"tool backend unreachable: {e}") from e
        if resp.status_code >= 400:
            raise ToolBackendError(f"tool backend returned HTTP {resp.status_code}")
        session_id = resp.headers.get(SESSION_HEADER)
        if session_id:
            self._session_id = session_id
        return resp

    async def _notify(self, method: str, params: dict) -> None:
        await self._post({"jsonrpc": "2.0", "method": method, "params": params})

    async def _request(self, method: str, params: dict) -> dict:
        self._request_id += 1
        request_id = self._request_id
        resp = await self._post({"jsonrpc": "2.0", "id": request_id, "method": method, "params": params})

        if resp.headers.get("content-type", "").startswith("text/event-stream"):
            message = _parse_event_stream(resp.text, request_id)
        else:
            try:
                message = resp.json()
            except ValueError as e:
                raise ToolBackendError(f"invalid JSON from tool backend: {e}") from e

        if "error" in message:
            error = message["error"] or {}
            raise ToolBackendError(error.get("message", "unknown error"))
        return message.get("result") or {}
