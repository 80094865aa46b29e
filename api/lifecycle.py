"""
Process lifecycle: run the HTTP listener until interrupted, then drain.

The first SIGINT/SIGTERM stops the listener from accepting connections and
marks the ShutdownSignal as stopping. In-flight requests get up to
shutdown_timeout seconds to finish; after that the signal is aborted,
running turns bail out and uvicorn cancels whatever is left.
"""

import asyncio
import logging

import uvicorn

from .errors import ShutdownTimeoutError

logger = logging.getLogger(__name__)


class ShutdownSignal:
    """Cancellation token shared by the lifecycle controller and the gateway."""

    def __init__(self):
        self.stopping = asyncio.Event()
        self.aborted = asyncio.Event()

    def stop(self) -> None:
        self.stopping.set()

    def abort(self) -> None:
        self.stopping.set()
        self.aborted.set()


class _Server(uvicorn.Server):
    """uvicorn server whose signal handling is delegated to the controller."""

    def __init__(self, config: uvicorn.Config, controller: "LifecycleController"):
        super().__init__(config)
        self._controller = controller

    def handle_exit(self, sig, frame) -> None:
        # May run inside a signal handler; hop onto the loop.
        self._controller.request_stop_threadsafe()


class LifecycleController:
    def __init__(
        self,
        app,
        host: str = "0.0.0.0",
        port: int = 8080,
        shutdown_timeout: float = 5.0,
        shutdown: ShutdownSignal | None = None,
    ):
        self.app = app
        self.host = host
        self.port = port
        self.shutdown_timeout = shutdown_timeout
        self.shutdown = shutdown or ShutdownSignal()
        self.drain_timed_out = False
        self._server: _Server | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._stop_requested = False

    @property
    def started(self) -> bool:
        return self._server is not None and self._server.started

    def run(self) -> None:
        asyncio.run(self.serve())

    def request_stop_threadsafe(self) -> None:
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self.request_stop)

    def request_stop(self) -> None:
        """Begin shutdown. Only the first call has any effect."""
        if self._stop_requested:
            logger.info("Shutdown already in progress")
            return
        self._stop_requested = True
        logger.info("Shutting down server...")
        self.shutdown.stop()
        if self._server is not None:
            self._server.should_exit = True

    async def serve(self) -> None:
        self._loop = asyncio.get_running_loop()
        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_config=None,
            timeout_graceful_shutdown=self.shutdown_timeout,
        )
        self._server = _Server(config, self)
        if self._stop_requested:
            self._server.should_exit = True

        listener = asyncio.create_task(self._server.serve(), name="http-listener")
        stopping = asyncio.create_task(self.shutdown.stopping.wait())
        await asyncio.wait({listener, stopping}, return_when=asyncio.FIRST_COMPLETED)
        stopping.cancel()

        if not listener.done():
            try:
                await asyncio.wait_for(asyncio.shield(listener), timeout=self.shutdown_timeout)
            except asyncio.TimeoutError:
                self.drain_timed_out = True
                err = ShutdownTimeoutError(
                    f"in-flight requests still running after {self.shutdown_timeout:g}s; abandoning them"
                )
                logger.warning("Server shutdown error: %s", err)
                self.shutdown.abort()
                await listener

        listener.result()
        logger.info("Server stopped gracefully" if not self.drain_timed_out else "Server stopped")
