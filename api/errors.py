"""Error taxonomy for chat turns and the process lifecycle."""


class GatewayError(Exception):
    """Base for per-turn failures. Carries the resolved session id, if any."""

    def __init__(self, message: str, session_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.session_id = session_id


class ValidationError(GatewayError):
    """Bad or missing input. Raised before any session state is touched."""


class SessionBootstrapError(GatewayError):
    """The engine session could not be created."""


class ExecutionError(GatewayError):
    """The agent failed while producing its reply."""


class TurnTimeoutError(ExecutionError):
    pass


class TurnAbortedError(ExecutionError):
    """The turn was cancelled because the server is shutting down."""


class ShutdownTimeoutError(Exception):
    """In-flight requests outlived the drain window. Logged, never raised."""


class ConfigError(Exception):
    pass
