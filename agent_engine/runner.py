"""
Agent runner: turns a user message into a stream of reply fragments.

Uses OpenAI chat completions (streamed) with the tool backend's tools
exposed as functions. Each run yields RunEvent elements in order and
stops after the first error element.
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import AsyncIterator

from openai import AsyncOpenAI, OpenAIError

from .session_service import EngineSession, InMemorySessionService
from .tool_backend import ToolBackendClient, ToolBackendError

logger = logging.getLogger(__name__)

AGENT_NAME = "helper_agent"
AGENT_DESCRIPTION = "Helper agent with MCP tools."
INSTRUCTION = "You are a helpful assistant that helps users with various tasks using MCP tools."
MODEL = "gpt-4o-mini"
MAX_TOOL_ROUNDS = 8


@dataclass
class RunEvent:
    text: str = ""
    error: str | None = None


class AgentRunner:
    def __init__(
        self,
        sessions: InMemorySessionService,
        tools: ToolBackendClient,
        model: str = MODEL,
        api_key: str | None = None,
        client: AsyncOpenAI | None = None,
        instruction: str = INSTRUCTION,
    ):
        self.sessions = sessions
        self.tools = tools
        self.model = model
        self.instruction = instruction
        self._client = client or AsyncOpenAI(api_key=api_key or os.environ.get("OPENAI_API_KEY"))

    async def get_session(self, session_id: str) -> EngineSession:
        return await self.sessions.get(session_id)

    async def create_session(self, session_id: str, user_id: str) -> EngineSession:
        return await self.sessions.create(session_id, user_id)

    async def run(self, user_id: str, session_id: str, message: str) -> AsyncIterator[RunEvent]:
        try:
            session = await self.sessions.get(session_id)
            tool_defs = await self.tools.list_tools()
        except (LookupError, ToolBackendError) as e:
            yield RunEvent(error=str(e))
            return

        openai_tools = [t.as_openai_tool() for t in tool_defs]
        new_messages: list[dict] = [{"role": "user", "content": message}]

        for _ in range(MAX_TOOL_ROUNDS):
            messages = [{"role": "system", "content": self.instruction}] + session.messages + new_messages
            text_parts: list[str] = []
            calls: dict[int, dict] = {}

            try:
                kwargs = {"model": self.model, "messages": messages, "stream": True, "user": user_id}
                if openai_tools:
                    kwargs["tools"] = openai_tools
                stream = await self._client.chat.completions.create(**kwargs)
                async for chunk in stream:
                    if not chunk.choices:
                        continue
                    delta = chunk.choices[0].delta
                    if delta.content:
                        text_parts.append(delta.content)
                        yield RunEvent(text=delta.content)
                    for tc in delta.tool_calls or []:
                        call = calls.setdefault(tc.index, {"id": "", "name": "", "arguments": ""})
                        if tc.id:
                            call["id"] = tc.id
                        if tc.function and tc.function.name:
                            call["name"] += tc.function.name
                        if tc.function and tc.function.arguments:
                            call["arguments"] += tc.function.arguments
            except OpenAIError as e:
                logger.error("Model call failed in session %s: %s", session_id, e)
                yield RunEvent(error=str(e))
                return

            assistant: dict = {"role": "assistant", "content": "".join(text_parts) or None}
            if not calls:
                new_messages.append(assistant)
                session.messages.extend(new_messages)
                return

            ordered = [calls[i] for i in sorted(calls)]
            assistant["tool_calls"] = [
                {"id": c["id"], "type": "function", "function": {"name": c["name"], "arguments": c["arguments"]}}
                for c in ordered
            ]
            new_messages.append(assistant)

            for call in ordered:
                try:
                    arguments = json.loads(call["arguments"] or "{}")
                    result = await self.tools.call_tool(call["name"], arguments)
                except json.JSONDecodeError as e:
                    result = f"Invalid tool arguments: {e}"
                except ToolBackendError as e:
                    yield RunEvent(error=f"tool {call['name']} failed: {e}")
                    return
                logger.info("Tool %s called in session %s", call["name"], session_id)
                new_messages.append({"role": "tool", "tool_call_id": call["id"], "content": result})

        yield RunEvent(error=f"agent exceeded {MAX_TOOL_ROUNDS} tool rounds")
