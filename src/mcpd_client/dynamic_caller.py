"""Dynamic tool invocation for the mcpd client.

Provides attribute and index access to servers, tools and prompts:

    await client.servers.time.tools.get_current_time(timezone="UTC")
    await client.servers["time"].tools["get_current_time"]({"timezone": "UTC"})
    await client.servers.time.call_tool("get_current_time", {"timezone": "UTC"})

All three forms go through ServerProxy.call_tool, which looks the tool
up by exact name on every call before dispatching it.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from mcpd_common.exceptions import McpdError, ToolNotFoundError
from mcpd_common.models import (
    GeneratePromptResponse,
    Prompt,
    Resource,
    ResourceContent,
    ResourceTemplate,
    Tool,
)


@dataclass(frozen=True)
class ServerOperations:
    """Client operations the dynamic layer routes to."""
    perform_call: Callable[[str, str, dict[str, Any]], Awaitable[Any]]
    get_tools: Callable[[str], Awaitable[list[Tool]]]
    get_prompts: Callable[[str], Awaitable[list[Prompt]]]
    generate_prompt: Callable[[str, str, dict[str, str]], Awaitable[GeneratePromptResponse]]
    get_resources: Callable[[str], Awaitable[list[Resource]]]
    get_resource_templates: Callable[[str], Awaitable[list[ResourceTemplate]]]
    read_resource: Callable[[str, str], Awaitable[list[ResourceContent]]]


def _merge_arguments(arguments: Optional[Mapping[str, Any]], kwargs: dict[str, Any]) -> dict[str, Any]:
    merged = dict(arguments or {})
    merged.update(kwargs)
    return merged


class ServersNamespace:
    """
    The ``client.servers`` namespace.

    Any attribute or key yields a ServerProxy for that server name; the
    server is not contacted until a method on the proxy is awaited.
    Attribute names starting with "_" are not routed; use indexing.
    """

    def __init__(self, operations: ServerOperations) -> None:
        self._operations = operations

    def __getattr__(self, server_name: str) -> "ServerProxy":
        if server_name.startswith("_"):
            raise AttributeError(server_name)
        return ServerProxy(self._operations, server_name)

    def __getitem__(self, server_name: str) -> "ServerProxy":
        return ServerProxy(self._operations, server_name)


class ServerProxy:
    """A single MCP server: its tools, prompts and resources."""

    def __init__(self, operations: ServerOperations, server_name: str) -> None:
        self._operations = operations
        self._server_name = server_name

    @property
    def server_name(self) -> str:
        return self._server_name

    @property
    def tools(self) -> "ToolsProxy":
        return ToolsProxy(self)

    @property
    def prompts(self) -> "PromptsProxy":
        return PromptsProxy(self)

    async def list_tools(self) -> list[Tool]:
        """
        List all tools on this server.

        Raises:
            ServerNotFoundError: If the server doesn't exist
            ServerUnhealthyError: If the server is unhealthy
        """
        return await self._operations.get_tools(self._server_name)

    async def call_tool(
        self,
        tool_name: str,
        arguments: Optional[Mapping[str, Any]] = None,
        **kwargs: Any
    ) -> Any:
        """
        Call a tool by exact name.

        Args:
            tool_name: Tool name exactly as the server reports it
            arguments: Tool arguments
            **kwargs: Additional arguments, merged over ``arguments``

        Returns:
            The tool result

        Raises:
            ToolNotFoundError: If no tool has exactly this name
        """
        tools = await self._operations.get_tools(self._server_name)
        if not any(tool.name == tool_name for tool in tools):
            raise ToolNotFoundError(
                f"Tool '{tool_name}' not found on server '{self._server_name}'. "
                f"Use client.servers.{self._server_name}.list_tools() to see available tools.",
                self._server_name,
                tool_name
            )

        return await self._operations.perform_call(
            self._server_name, tool_name, _merge_arguments(arguments, kwargs)
        )

    async def has_tool(self, tool_name: str) -> bool:
        """Return True if a tool with exactly this name exists; False on any lookup failure."""
        try:
            tools = await self._operations.get_tools(self._server_name)
        except McpdError:
            return False
        return any(tool.name == tool_name for tool in tools)

    async def get_prompts(self) -> list[Prompt]:
        return await self._operations.get_prompts(self._server_name)

    async def generate_prompt(
        self,
        prompt_name: str,
        arguments: Optional[Mapping[str, str]] = None,
        **kwargs: str
    ) -> GeneratePromptResponse:
        """
        Render a prompt template by exact name.

        Raises:
            ToolNotFoundError: If no prompt has exactly this name
        """
        prompts = await self._operations.get_prompts(self._server_name)
        if not any(prompt.name == prompt_name for prompt in prompts):
            raise ToolNotFoundError(
                f"Prompt '{prompt_name}' not found on server '{self._server_name}'. "
                f"Use client.servers.{self._server_name}.get_prompts() to see available prompts.",
                self._server_name,
                prompt_name
            )

        return await self._operations.generate_prompt(
            self._server_name, prompt_name, _merge_arguments(arguments, kwargs)
        )

    async def has_prompt(self, prompt_name: str) -> bool:
        try:
            prompts = await self._operations.get_prompts(self._server_name)
        except McpdError:
            return False
        return any(prompt.name == prompt_name for prompt in prompts)

    async def get_resources(self) -> list[Resource]:
        return await self._operations.get_resources(self._server_name)

    async def get_resource_templates(self) -> list[ResourceTemplate]:
        return await self._operations.get_resource_templates(self._server_name)

    async def read_resource(self, uri: str) -> list[ResourceContent]:
        return await self._operations.read_resource(self._server_name, uri)

    async def has_resource(self, uri: str) -> bool:
        try:
            resources = await self._operations.get_resources(self._server_name)
        except McpdError:
            return False
        return any(resource.uri == uri for resource in resources)

    def __repr__(self) -> str:
        return f"ServerProxy({self._server_name!r})"


class BoundTool:
    """A tool name bound to a server; awaiting it calls the tool."""

    def __init__(self, server: ServerProxy, tool_name: str) -> None:
        self._server = server
        self.tool_name = tool_name

    async def __call__(self, arguments: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Any:
        return await self._server.call_tool(self.tool_name, arguments, **kwargs)

    def __repr__(self) -> str:
        return f"BoundTool({self._server.server_name!r}, {self.tool_name!r})"


class ToolsProxy:
    """``client.servers.<name>.tools``: every attribute or key is a tool."""

    def __init__(self, server: ServerProxy) -> None:
        self._server = server

    def __getattr__(self, tool_name: str) -> BoundTool:
        if tool_name.startswith("_"):
            raise AttributeError(tool_name)
        return BoundTool(self._server, tool_name)

    def __getitem__(self, tool_name: str) -> BoundTool:
        return BoundTool(self._server, tool_name)


class BoundPrompt:
    """A prompt name bound to a server; awaiting it renders the prompt."""

    def __init__(self, server: ServerProxy, prompt_name: str) -> None:
        self._server = server
        self.prompt_name = prompt_name

    async def __call__(
        self,
        arguments: Optional[Mapping[str, str]] = None,
        **kwargs: str
    ) -> GeneratePromptResponse:
        return await self._server.generate_prompt(self.prompt_name, arguments, **kwargs)


class PromptsProxy:
    """``client.servers.<name>.prompts``: every attribute or key is a prompt."""

    def __init__(self, server: ServerProxy) -> None:
        self._server = server

    def __getattr__(self, prompt_name: str) -> BoundPrompt:
        if prompt_name.startswith("_"):
            raise AttributeError(prompt_name)
        return BoundPrompt(self._server, prompt_name)

    def __getitem__(self, prompt_name: str) -> BoundPrompt:
        return BoundPrompt(self._server, prompt_name)
