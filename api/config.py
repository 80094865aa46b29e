"""Environment-driven settings for the gateway process."""

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
APP_NAME = "agent-chat-gateway"


@dataclass(frozen=True)
class Settings:
    mcp_endpoint: str
    mcp_auth_token: str | None = None
    mcp_auth_header: str = "Authorization"
    openai_api_key: str | None = None
    model: str = DEFAULT_MODEL
    turn_timeout: float = 60.0
    shutdown_timeout: float = 5.0
    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: list[str] = field(default_factory=list)
    app_name: str = APP_NAME
    user_id: str = "default-user"


def _number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}")
    return value


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from the environment. Raises ConfigError on bad input."""
    env = os.environ if env is None else env

    endpoint = (env.get("MCP_ENDPOINT") or "").strip()
    if not endpoint:
        raise ConfigError("MCP_ENDPOINT is not set")

    api_key = (env.get("OPENAI_API_KEY") or "").strip()
    if not api_key:
        raise ConfigError("OPENAI_API_KEY is not set")

    token = env.get("MCP_AUTH_TOKEN") or None
    if token is None:
        logger.warning("MCP_AUTH_TOKEN is not set - tool backend requests may be rejected")

    origins = [o.strip() for o in (env.get("CORS_ORIGINS") or "").split(",") if o.strip()]

    return Settings(
        mcp_endpoint=endpoint,
        mcp_auth_token=token,
        mcp_auth_header=env.get("MCP_AUTH_HEADER") or "Authorization",
        openai_api_key=api_key,
        model=env.get("AGENT_MODEL") or DEFAULT_MODEL,
        turn_timeout=_number(env, "TURN_TIMEOUT_S", 60.0, float),
        shutdown_timeout=_number(env, "SHUTDOWN_TIMEOUT_S", 5.0, float),
        host=env.get("HOST") or "0.0.0.0",
        port=_number(env, "PORT", 8080, int),
        cors_origins=origins,
    )
