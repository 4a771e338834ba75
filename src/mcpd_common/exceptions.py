"""Exception hierarchy for the mcpd client.

Every failure raised by the client derives from McpdError so callers
can catch broadly or narrowly. Each class carries a closed ErrorKind,
which is what the health cache consults to decide whether a failure
may be remembered.
"""

from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from mcpd_common.models import ErrorModel


PIPELINE_FLOW_REQUEST = "request"
PIPELINE_FLOW_RESPONSE = "response"


class ErrorKind(str, Enum):
    """Kinds of failure the client can report."""
    GENERIC = "generic"
    CONNECTION = "connection"
    AUTHENTICATION = "authentication"
    TIMEOUT = "timeout"
    DAEMON = "daemon"
    PIPELINE = "pipeline"
    SERVER_NOT_FOUND = "server_not_found"
    SERVER_UNHEALTHY = "server_unhealthy"
    TOOL_NOT_FOUND = "tool_not_found"
    TOOL_EXECUTION = "tool_execution"
    VALIDATION = "validation"


# Kinds whose failures are stored in the health cache until the TTL lapses
CACHEABLE_ERROR_KINDS = frozenset({
    ErrorKind.SERVER_NOT_FOUND,
    ErrorKind.SERVER_UNHEALTHY,
    ErrorKind.AUTHENTICATION,
})


class McpdError(Exception):
    """Base exception for mcpd client errors."""
    kind = ErrorKind.GENERIC

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause


class McpdConnectionError(McpdError):
    """Connection to the mcpd daemon failed."""
    kind = ErrorKind.CONNECTION


class McpdAuthError(McpdError):
    """Authentication with the mcpd daemon failed."""
    kind = ErrorKind.AUTHENTICATION


class McpdTimeoutError(McpdError):
    """A request to the mcpd daemon exceeded its deadline."""
    kind = ErrorKind.TIMEOUT

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        timeout: Optional[float] = None,
        cause: Optional[BaseException] = None
    ) -> None:
        super().__init__(message, cause)
        self.operation = operation
        self.timeout = timeout


class DaemonError(McpdError):
    """The daemon answered with a non-success status."""
    kind = ErrorKind.DAEMON

    def __init__(
        self,
        message: str,
        status_code: int,
        error_model: Optional["ErrorModel"] = None,
        cause: Optional[BaseException] = None
    ) -> None:
        super().__init__(message, cause)
        self.status_code = status_code
        self.error_model = error_model


class PipelineError(McpdError):
    """
    A required processing step inside the daemon failed.

    With a "response" flow the upstream call was made but its result
    cannot be delivered; with a "request" flow the request was rejected
    before it reached the upstream server.
    """
    kind = ErrorKind.PIPELINE

    def __init__(
        self,
        message: str,
        server_name: Optional[str] = None,
        operation: Optional[str] = None,
        pipeline_flow: Optional[str] = None,
        cause: Optional[BaseException] = None
    ) -> None:
        super().__init__(message, cause)
        self.server_name = server_name
        self.operation = operation
        self.pipeline_flow = pipeline_flow


class ServerNotFoundError(McpdError):
    """The named server is not configured in the daemon."""
    kind = ErrorKind.SERVER_NOT_FOUND

    def __init__(
        self,
        message: str,
        server_name: Optional[str] = None,
        cause: Optional[BaseException] = None
    ) -> None:
        super().__init__(message, cause)
        self.server_name = server_name


class ServerUnhealthyError(McpdError):
    """The named server exists but its health status is not ok."""
    kind = ErrorKind.SERVER_UNHEALTHY

    def __init__(
        self,
        message: str,
        server_name: str,
        health_status: str,
        cause: Optional[BaseException] = None
    ) -> None:
        super().__init__(message, cause)
        self.server_name = server_name
        self.health_status = health_status


class ToolNotFoundError(McpdError):
    """Exact-name lookup for a tool (or prompt) failed on a healthy server."""
    kind = ErrorKind.TOOL_NOT_FOUND

    def __init__(
        self,
        message: str,
        server_name: Optional[str] = None,
        tool_name: Optional[str] = None,
        cause: Optional[BaseException] = None
    ) -> None:
        super().__init__(message, cause)
        self.server_name = server_name
        self.tool_name = tool_name


class ToolExecutionError(McpdError):
    """The tool was dispatched but the upstream call failed."""
    kind = ErrorKind.TOOL_EXECUTION

    def __init__(
        self,
        message: str,
        server_name: Optional[str] = None,
        tool_name: Optional[str] = None,
        error_model: Optional["ErrorModel"] = None,
        cause: Optional[BaseException] = None
    ) -> None:
        super().__init__(message, cause)
        self.server_name = server_name
        self.tool_name = tool_name
        self.error_model = error_model


class ParameterValidationError(McpdError):
    """One or more tool parameters are missing or have the wrong type."""
    kind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str,
        validation_errors: Optional[list[str]] = None,
        cause: Optional[BaseException] = None
    ) -> None:
        super().__init__(message, cause)
        self.validation_errors = list(validation_errors or [])


def is_cacheable(error: BaseException) -> bool:
    """Return True if a failure may be stored in the health cache."""
    return getattr(error, "kind", None) in CACHEABLE_ERROR_KINDS
