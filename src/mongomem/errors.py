"""Error handling module for mongomem.

Every failure the controller surfaces is a MongoMemoryError carrying an
ErrorCode and the diagnostic message. Start-up failures share the
StartupError base so callers can catch them in one place.

Usage:
    from mongomem.errors import StartupError

    try:
        await server.start()
    except StartupError as exc:
        print(exc.code, exc.message)
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Error codes."""

    BINARY_NOT_FOUND = "BINARY_NOT_FOUND"
    PORT_CONFLICT = "PORT_CONFLICT"
    FATAL_STARTUP = "FATAL_STARTUP"
    ENSURE_FAILED = "ENSURE_FAILED"
    STOP_TIMEOUT = "STOP_TIMEOUT"
    NOT_RUNNING = "NOT_RUNNING"


class MongoMemoryError(Exception):
    """Base exception for mongomem.

    Attributes:
        code: The error code from ErrorCode enum
        message: Human-readable error message
    """

    def __init__(self, code: ErrorCode, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


class StartupError(MongoMemoryError):
    """Base for failures raised by start()."""


class BinaryNotFoundError(StartupError):
    """No usable mongod binary for the requested version/platform."""

    def __init__(self, message: str = "No mongod binary found") -> None:
        super().__init__(ErrorCode.BINARY_NOT_FOUND, message)


class PortConflictError(StartupError):
    """mongod could not bind its port.

    Recovered by the retry policy; callers only see it re-raised as
    FatalStartupError once retries are exhausted.
    """

    def __init__(self, port: int, message: str | None = None, output: str = "") -> None:
        self.port = port
        self.output = output
        super().__init__(ErrorCode.PORT_CONFLICT, message or f"Port {port} already in use")


class FatalStartupError(StartupError):
    """mongod failed to start and retrying will not help.

    The message is the offending output line (or a short description when
    there is none); `output` holds everything captured from the process.
    """

    def __init__(self, message: str, output: str = "", attempts: int = 1) -> None:
        self.output = output
        self.attempts = attempts
        super().__init__(ErrorCode.FATAL_STARTUP, message)


class EnsureFailedError(MongoMemoryError):
    """start() reported success but no instance data is present."""

    def __init__(self, message: str = "Ensure-Instance failed to start an instance!") -> None:
        super().__init__(ErrorCode.ENSURE_FAILED, message)


class StopTimeoutError(MongoMemoryError):
    """The process did not exit even after SIGKILL."""

    def __init__(self, pid: int | None, timeout: float) -> None:
        self.pid = pid
        self.timeout = timeout
        super().__init__(
            ErrorCode.STOP_TIMEOUT,
            f"mongod (pid {pid}) did not exit within {timeout:.1f}s",
        )


class InstanceNotRunningError(MongoMemoryError):
    """Operation needs a running instance."""

    def __init__(self, message: str = "No running mongod instance") -> None:
        super().__init__(ErrorCode.NOT_RUNNING, message)


def classify_error(exc: Exception) -> str:
    """Classify error as 'retryable' or 'permanent'.

    Only port conflicts are transient. Everything else, including unknown
    errors, is permanent: relaunching a broken binary or config yields the
    same result.
    """
    if isinstance(exc, PortConflictError):
        return "retryable"
    return "permanent"
