"""Shared models, schema handling, errors and utilities for the mcpd client."""

from mcpd_common.cache import LRUCache
from mcpd_common.config import ClientSettings, get_settings
from mcpd_common.exceptions import (
    ErrorKind,
    McpdError,
    McpdAuthError,
    McpdConnectionError,
    McpdTimeoutError,
    DaemonError,
    PipelineError,
    ServerNotFoundError,
    ServerUnhealthyError,
    ToolNotFoundError,
    ToolExecutionError,
    ParameterValidationError,
)
from mcpd_common.logging import create_logger
from mcpd_common.models import (
    AgentToolsFormat,
    HealthStatus,
    Prompt,
    Resource,
    ResourceContent,
    ResourceTemplate,
    ServerHealth,
    Tool,
)

__all__ = [
    "LRUCache",
    "ClientSettings",
    "get_settings",
    "ErrorKind",
    "McpdError",
    "McpdAuthError",
    "McpdConnectionError",
    "McpdTimeoutError",
    "DaemonError",
    "PipelineError",
    "ServerNotFoundError",
    "ServerUnhealthyError",
    "ToolNotFoundError",
    "ToolExecutionError",
    "ParameterValidationError",
    "create_logger",
    "AgentToolsFormat",
    "HealthStatus",
    "Prompt",
    "Resource",
    "ResourceContent",
    "ResourceTemplate",
    "ServerHealth",
    "Tool",
]
