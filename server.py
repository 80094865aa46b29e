#!/usr/bin/env python3
"""
HTTP server for the agent chat gateway.

Usage:
    python server.py                          # listen on $HOST:$PORT (default 0.0.0.0:8080)
    python server.py --port 3000              # custom port
    python server.py --shutdown-timeout 10    # longer drain window on Ctrl+C
"""

import argparse
import logging
import sys

from dotenv import load_dotenv

load_dotenv()

from api.config import load_settings
from api.errors import ConfigError
from api.lifecycle import LifecycleController, ShutdownSignal
from api.main import create_app

logger = logging.getLogger("server")


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        settings = load_settings()
    except ConfigError as e:
        logger.error("Failed to create server: %s", e)
        return 1

    parser = argparse.ArgumentParser()
    parser.add_argument("--port", type=int, default=settings.port)
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--shutdown-timeout", type=float, default=settings.shutdown_timeout)
    args = parser.parse_args(argv)

    shutdown = ShutdownSignal()
    try:
        app = create_app(settings, shutdown=shutdown)
    except ConfigError as e:
        logger.error("Failed to create server: %s", e)
        return 1

    logger.info("Agent chat gateway listening on %s:%d", args.host, args.port)
    logger.info("  Info:   GET  /")
    logger.info("  Health: GET  /health")
    logger.info("  Chat:   POST /api/chat  {\"message\": \"Hello, what can you do?\"}")
    logger.info("  Tools:  GET  /api/tools")
    logger.info("Press Ctrl+C to stop the server")

    LifecycleController(
        app,
        host=args.host,
        port=args.port,
        shutdown_timeout=args.shutdown_timeout,
        shutdown=shutdown,
    ).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
