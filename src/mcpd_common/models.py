"""Data models for the mcpd client.

Wire payloads from the daemon use camelCase keys; every model accepts
those aliases as well as the Python field names, and keeps unknown keys
so newer daemon versions do not break parsing.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


TOOL_SEPARATOR = "__"


class HealthStatus(str, Enum):
    """Health status the daemon reports for a server."""
    OK = "ok"
    TIMEOUT = "timeout"
    UNREACHABLE = "unreachable"
    UNKNOWN = "unknown"

    @staticmethod
    def is_healthy(status: str) -> bool:
        return status == HealthStatus.OK.value

    @staticmethod
    def is_transient(status: str) -> bool:
        """Timeout and unknown may clear up on their own; unreachable will not."""
        return status in (HealthStatus.TIMEOUT.value, HealthStatus.UNKNOWN.value)


class WireModel(BaseModel):
    """Base for models parsed from daemon responses."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_wire(self) -> dict[str, Any]:
        """Dump using the daemon's key names."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ErrorDetail(WireModel):
    """A single entry of an RFC 7807 error response."""
    message: str
    location: Optional[str] = None
    value: Any = None


class ErrorModel(WireModel):
    """RFC 7807 problem details returned by the daemon for failed requests."""
    status: int
    title: str = ""
    detail: str = ""
    type: str = "about:blank"
    instance: Optional[str] = None
    errors: list[ErrorDetail] = Field(default_factory=list)


class ToolAnnotations(WireModel):
    """Hints about tool behaviour."""
    title: Optional[str] = None
    destructive_hint: Optional[bool] = Field(default=None, alias="destructiveHint")
    idempotent_hint: Optional[bool] = Field(default=None, alias="idempotentHint")
    open_world_hint: Optional[bool] = Field(default=None, alias="openWorldHint")
    read_only_hint: Optional[bool] = Field(default=None, alias="readOnlyHint")


class Tool(WireModel):
    """
    MCP tool definition as published by a server.

    Identified by the pair (server name, tool name); never mutated after
    it has been fetched.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    name: str = Field(..., description="Tool name, unique within its server")
    title: Optional[str] = None
    description: Optional[str] = None
    input_schema: dict[str, Any] = Field(
        default_factory=dict,
        alias="inputSchema",
        description="JSON Schema for the tool arguments"
    )
    output_schema: Optional[dict[str, Any]] = Field(default=None, alias="outputSchema")
    annotations: Optional[ToolAnnotations] = None
    meta: Optional[dict[str, Any]] = Field(default=None, alias="_meta")

    def namespaced(self, server_name: str) -> "Tool":
        """Return a copy named "<server>__<tool>"."""
        return self.model_copy(update={"name": f"{server_name}{TOOL_SEPARATOR}{self.name}"})


class ServerHealth(WireModel):
    """Health information for one server."""
    name: str = ""
    status: str = HealthStatus.UNKNOWN.value
    last_checked: Optional[str] = Field(default=None, alias="lastChecked")
    last_successful: Optional[str] = Field(default=None, alias="lastSuccessful")
    latency: Optional[str] = None

    @property
    def is_healthy(self) -> bool:
        return HealthStatus.is_healthy(self.status)

    @property
    def is_transient(self) -> bool:
        return HealthStatus.is_transient(self.status)


class PromptArgument(WireModel):
    name: str
    description: Optional[str] = None
    required: bool = False


class Prompt(WireModel):
    """MCP prompt template."""
    name: str
    description: Optional[str] = None
    arguments: list[PromptArgument] = Field(default_factory=list)
    meta: Optional[dict[str, Any]] = Field(default=None, alias="_meta")

    def namespaced(self, server_name: str) -> "Prompt":
        return self.model_copy(update={"name": f"{server_name}{TOOL_SEPARATOR}{self.name}"})


class PromptMessage(WireModel):
    role: str
    content: Any = None


class GeneratePromptResponse(WireModel):
    """A prompt rendered from a template."""
    description: Optional[str] = None
    messages: list[PromptMessage] = Field(default_factory=list)


class Resource(WireModel):
    """MCP resource."""
    uri: str
    name: str
    description: Optional[str] = None
    mime_type: Optional[str] = Field(default=None, alias="mimeType")
    meta: Optional[dict[str, Any]] = Field(default=None, alias="_meta")

    def namespaced(self, server_name: str) -> "Resource":
        return self.model_copy(update={"name": f"{server_name}{TOOL_SEPARATOR}{self.name}"})


class ResourceTemplate(WireModel):
    """MCP resource template."""
    uri_template: str = Field(..., alias="uriTemplate")
    name: str
    description: Optional[str] = None
    mime_type: Optional[str] = Field(default=None, alias="mimeType")
    meta: Optional[dict[str, Any]] = Field(default=None, alias="_meta")

    def namespaced(self, server_name: str) -> "ResourceTemplate":
        return self.model_copy(update={"name": f"{server_name}{TOOL_SEPARATOR}{self.name}"})


class ResourceContent(WireModel):
    """Content read from a resource; exactly one of text or blob is set."""
    uri: str
    text: Optional[str] = None
    blob: Optional[str] = None
    mime_type: Optional[str] = Field(default=None, alias="mimeType")
    meta: Optional[dict[str, Any]] = Field(default=None, alias="_meta")


class AgentToolsFormat(str, Enum):
    """
    Output shape for generated agent tools.

    ARRAY returns a list, OBJECT an attribute namespace keyed by qualified
    name, MAP a dict keyed by qualified name.
    """
    ARRAY = "array"
    OBJECT = "object"
    MAP = "map"
