"""Client for the mcpd daemon.

Provides a single entry point for discovering servers, checking their
health, calling tools, rendering prompts, reading resources, and
generating agent-ready functions from tool schemas.
"""

import json
from collections.abc import Collection, Mapping, Sequence
from types import SimpleNamespace
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

import httpx
from pydantic import BaseModel, ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from mcpd_client import api_paths
from mcpd_client.discovery import ServerDiscovery, matches_name_filter
from mcpd_client.dynamic_caller import ServerOperations, ServersNamespace
from mcpd_client.function_builder import AgentFunction, FunctionBuilder
from mcpd_common.cache import LRUCache
from mcpd_common.config import ClientSettings, get_settings
from mcpd_common.exceptions import (
    PIPELINE_FLOW_REQUEST,
    PIPELINE_FLOW_RESPONSE,
    DaemonError,
    McpdAuthError,
    McpdConnectionError,
    McpdError,
    McpdTimeoutError,
    PipelineError,
    ServerNotFoundError,
    ServerUnhealthyError,
    ToolExecutionError,
    is_cacheable,
)
from mcpd_common.logging import create_logger
from mcpd_common.models import (
    AgentToolsFormat,
    ErrorModel,
    GeneratePromptResponse,
    Prompt,
    Resource,
    ResourceContent,
    ResourceTemplate,
    ServerHealth,
    Tool,
)

M = TypeVar("M", bound=BaseModel)

ERROR_TYPE_HEADER = "Mcpd-Error-Type"

_PIPELINE_FLOWS = {
    "request-pipeline-failure": PIPELINE_FLOW_REQUEST,
    "response-pipeline-failure": PIPELINE_FLOW_RESPONSE,
}

AgentTools = Union[list[AgentFunction], dict[str, AgentFunction], SimpleNamespace]


def _parse_models(model: type[M], items: Any, what: str) -> list[M]:
    if not isinstance(items, list):
        raise McpdError(f"Invalid {what} in daemon response: expected a list")
    try:
        return [model.model_validate(item) for item in items]
    except ValidationError as e:
        raise McpdError(f"Invalid {what} in daemon response: {e}", e) from e


def _parse_error_model(response: httpx.Response) -> Optional[ErrorModel]:
    """Parse an RFC 7807 body, or None if the body is not one."""
    try:
        data = response.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    try:
        return ErrorModel.model_validate({"status": response.status_code, **data})
    except ValidationError:
        return None


class McpdClient:
    """
    Client for the mcpd daemon.

    Provides methods for:
    - Listing servers and checking their health (cached with a TTL)
    - Listing and calling tools, prompts and resources
    - Generating validated agent functions from tool schemas
    - Dynamic calls via ``client.servers.<server>.tools.<tool>(...)``

    Use as an async context manager, or call close() when done.
    """

    def __init__(
        self,
        api_endpoint: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        health_cache_ttl: Optional[float] = None,
        logger: Any = None,
        settings: Optional[ClientSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> None:
        """
        Initialize the client.

        Args:
            api_endpoint: mcpd daemon base URL
            api_key: Optional bearer token
            timeout: Request timeout in seconds
            health_cache_ttl: Seconds a health result (or cacheable error) is reused
            logger: Full or partial logger override
            settings: Settings to fall back on; defaults to get_settings()
            transport: Optional httpx transport, mainly for tests
        """
        settings = settings or get_settings()

        self.api_endpoint = (api_endpoint or settings.api_endpoint).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.timeout
        self._api_key = api_key if api_key is not None else settings.api_key
        self._retry_attempts = settings.retry_attempts
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._logger = create_logger(logger)

        ttl = health_cache_ttl if health_cache_ttl is not None else settings.health_cache_ttl
        self._health_cache: LRUCache[str, Union[ServerHealth, McpdError]] = LRUCache(
            max_size=settings.health_cache_max,
            ttl_seconds=ttl
        )

        self._function_builder = FunctionBuilder(
            self._perform_call,
            max_size=settings.function_cache_max,
            logger=self._logger
        )
        # Tool names each server contributed to the last agent-tools fetch
        self._server_tools: dict[str, list[str]] = {}

        self._discovery = ServerDiscovery(
            self.list_servers,
            self.get_server_health,
            logger=self._logger
        )
        self._servers = ServersNamespace(ServerOperations(
            perform_call=self._perform_call,
            get_tools=self.get_tools,
            get_prompts=self.get_prompts,
            generate_prompt=self.generate_prompt,
            get_resources=self.get_resources,
            get_resource_templates=self.get_resource_templates,
            read_resource=self.read_resource,
        ))

    def _get_headers(self) -> dict[str, str]:
        """Get request headers including authentication."""
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.api_endpoint,
                timeout=self.timeout,
                headers=self._get_headers(),
                transport=self._transport
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "McpdClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def servers(self) -> ServersNamespace:
        """Dynamic access: ``client.servers.time.tools.get_current_time(...)``."""
        return self._servers

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        body: Optional[Any] = None
    ) -> Any:
        """
        Send a request and decode its JSON body.

        GET requests are retried on connection failures and timeouts;
        other methods are sent exactly once.

        Raises:
            McpdConnectionError: If the daemon is unreachable
            McpdTimeoutError: If the request exceeds the timeout
            McpdAuthError: On 401 or 403
            PipelineError: If a daemon pipeline step failed
            DaemonError: On any other non-success status
            McpdError: If the body is not valid JSON
        """
        if method != "GET":
            return await self._send(method, path, body)

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
            retry=retry_if_exception_type((McpdConnectionError, McpdTimeoutError)),
            reraise=True
        ):
            with attempt:
                return await self._send(method, path, body)

    async def _send(self, method: str, path: str, body: Optional[Any] = None) -> Any:
        self._logger.trace("%s %s", method, path)
        client = await self._get_client()

        try:
            response = await client.request(method, path, json=body)
        except httpx.TimeoutException as e:
            raise McpdTimeoutError(
                f"Request timed out after {self.timeout} seconds",
                operation=f"{method} {path}",
                timeout=self.timeout,
                cause=e
            ) from e
        except httpx.ConnectError as e:
            raise McpdConnectionError(
                f"Cannot connect to mcpd daemon at {self.api_endpoint}: {e}", e
            ) from e
        except httpx.HTTPError as e:
            raise McpdError(f"Request to mcpd daemon failed: {e}", e) from e

        if response.status_code == 401:
            raise McpdAuthError("Authentication required")
        if response.status_code == 403:
            raise McpdAuthError("Access denied")
        if not response.is_success:
            raise self._status_error(response)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise McpdError(f"Invalid JSON response from {path}: {e}", e) from e

    def _status_error(self, response: httpx.Response) -> McpdError:
        error_model = _parse_error_model(response)
        detail = ""
        if error_model is not None:
            detail = error_model.detail or error_model.title
        detail = detail or response.text or response.reason_phrase

        error_type = response.headers.get(ERROR_TYPE_HEADER, "").strip().lower()
        if response.status_code == 500 and error_type in _PIPELINE_FLOWS:
            return PipelineError(detail, pipeline_flow=_PIPELINE_FLOWS[error_type])

        return DaemonError(
            f"Daemon returned {response.status_code}: {detail}",
            response.status_code,
            error_model
        )

    # ------------------------------------------------------------------
    # Servers and health
    # ------------------------------------------------------------------

    async def list_servers(self) -> list[str]:
        """List the names of all servers configured in the daemon."""
        data = await self._request("GET", api_paths.SERVERS)
        if not isinstance(data, list):
            raise McpdError("Invalid server list in daemon response: expected a list")
        return [str(name) for name in data]

    @staticmethod
    def _health_key(server_name: str) -> str:
        return f"health:{server_name}"

    async def get_server_health(
        self,
        server_name: Optional[str] = None
    ) -> Union[ServerHealth, dict[str, ServerHealth]]:
        """
        Get health for one server, or for all servers.

        Without a name, one request fetches every server's health; the
        result refreshes each server's cache entry and is returned keyed
        by server name. With a name, a live cache entry is reused, and
        a cached failure is raised again.

        Raises:
            ServerNotFoundError: If the named server doesn't exist
        """
        if server_name is None:
            return await self._fetch_all_health()

        key = self._health_key(server_name)
        cached = self._health_cache.get(key)
        if isinstance(cached, McpdError):
            raise cached
        if cached is not None:
            return cached

        try:
            data = await self._request("GET", api_paths.health_server(server_name))
        except DaemonError as e:
            if e.status_code != 404:
                raise
            error = ServerNotFoundError(f"Server '{server_name}' not found", server_name, e)
            self._health_cache.set(key, error)
            raise error from e
        except McpdError as e:
            if is_cacheable(e):
                self._health_cache.set(key, e)
            raise

        if not isinstance(data, dict):
            raise McpdError(f"Invalid health response for server '{server_name}'")
        health = _parse_models(ServerHealth, [{"name": server_name, **data}], "health")[0]
        self._health_cache.set(key, health)
        return health

    async def _fetch_all_health(self) -> dict[str, ServerHealth]:
        data = await self._request("GET", api_paths.HEALTH_ALL)
        entries = data.get("servers", []) if isinstance(data, dict) else data
        snapshot: dict[str, ServerHealth] = {}

        for health in _parse_models(ServerHealth, entries or [], "health"):
            if not health.name:
                continue
            snapshot[health.name] = health
            self._health_cache.set(self._health_key(health.name), health)

        return snapshot

    async def is_server_healthy(self, server_name: str) -> bool:
        """Return True if the server reports ok; False if it is unknown to the daemon."""
        try:
            health = await self.get_server_health(server_name)
        except ServerNotFoundError:
            return False
        return health.is_healthy

    async def _ensure_server_healthy(self, server_name: str) -> None:
        health = await self.get_server_health(server_name)
        if not health.is_healthy:
            raise ServerUnhealthyError(
                f"Server '{server_name}' is not healthy (status: {health.status})",
                server_name,
                health.status
            )

    def clear_server_health_cache(self) -> None:
        self._health_cache.clear()

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    async def _fetch_tools(self, server_name: str) -> list[Tool]:
        try:
            data = await self._request("GET", api_paths.server_tools(server_name))
        except DaemonError as e:
            if e.status_code == 404:
                raise ServerNotFoundError(
                    f"Server '{server_name}' not found", server_name, e
                ) from e
            raise

        items = data.get("tools", []) if isinstance(data, dict) else data
        return _parse_models(Tool, items or [], "tools")

    async def get_tools(
        self,
        server_name: Optional[str] = None
    ) -> Union[list[Tool], dict[str, list[Tool]]]:
        """
        Get tool definitions.

        Args:
            server_name: Server to query; omit to query every healthy server

        Returns:
            The server's tools, or a dict of tools keyed by server name

        Raises:
            ServerNotFoundError: If the named server doesn't exist
            ServerUnhealthyError: If the named server is unhealthy
        """
        if server_name is not None:
            await self._ensure_server_healthy(server_name)
            return await self._fetch_tools(server_name)

        return await self._discovery.gather(self._fetch_tools, capability="tools")

    async def has_tool(self, server_name: str, tool_name: str) -> bool:
        """Return True if the server exposes a tool with exactly this name."""
        try:
            tools = await self.get_tools(server_name)
        except McpdError:
            return False
        return any(tool.name == tool_name for tool in tools)

    async def get_tool_schemas(
        self,
        servers: Optional[Sequence[str]] = None,
        tools: Optional[Collection[str]] = None
    ) -> list[Tool]:
        """
        Get tool definitions from healthy servers, named "<server>__<tool>".

        Args:
            servers: Servers to include; omit for all
            tools: Tool names to include, bare or "<server>__<tool>"
        """
        results = await self._discovery.gather(self._fetch_tools, servers, "tools")
        return [
            tool.namespaced(server)
            for server, server_tools in results.items()
            for tool in server_tools
            if matches_name_filter(server, tool.name, tools)
        ]

    async def _perform_call(
        self,
        server_name: str,
        tool_name: str,
        arguments: dict[str, Any]
    ) -> Any:
        """
        Call a tool on the daemon after confirming its server is healthy.

        Raises:
            ServerNotFoundError: If the server doesn't exist
            ServerUnhealthyError: If the server is unhealthy
            ToolExecutionError: If the daemon reports a failed call
            PipelineError: If a daemon pipeline step failed
        """
        await self._ensure_server_healthy(server_name)
        self._logger.debug("Calling tool %s on server %s", tool_name, server_name)

        try:
            result = await self._request(
                "POST", api_paths.tool_call(server_name, tool_name), arguments
            )
        except PipelineError as e:
            e.server_name = server_name
            e.operation = f"{server_name}.{tool_name}"
            raise
        except DaemonError as e:
            raise ToolExecutionError(
                f"Error calling tool '{tool_name}' on server '{server_name}': {e.message}",
                server_name,
                tool_name,
                e.error_model,
                e
            ) from e

        if isinstance(result, dict) and "error" in result:
            raise ToolExecutionError(
                f"Tool '{tool_name}' on server '{server_name}' failed: {result['error']}",
                server_name,
                tool_name
            )

        if isinstance(result, str):
            # The daemon may return a JSON document encoded as a string
            try:
                return json.loads(result)
            except ValueError:
                return result
        return result

    # ------------------------------------------------------------------
    # Prompts and resources
    # ------------------------------------------------------------------

    async def _fetch_paginated(
        self,
        server_name: str,
        path_for: Callable[[str, Optional[str]], str],
        key: str,
        model: type[M]
    ) -> list[M]:
        """Fetch every page of a listing; 501 means the server lacks the capability."""
        items: list[Any] = []
        cursor: Optional[str] = None
        seen: set[str] = set()

        while True:
            try:
                data = await self._request("GET", path_for(server_name, cursor))
            except DaemonError as e:
                if e.status_code == 501:
                    return []
                if e.status_code == 404:
                    raise ServerNotFoundError(
                        f"Server '{server_name}' not found", server_name, e
                    ) from e
                raise

            if isinstance(data, list):
                items.extend(data)
                break

            data = data or {}
            items.extend(data.get(key) or [])
            cursor = data.get("nextCursor")
            if not cursor or cursor in seen:
                break
            seen.add(cursor)

        return _parse_models(model, items, key)

    async def _fetch_prompts(self, server_name: str) -> list[Prompt]:
        return await self._fetch_paginated(
            server_name, api_paths.server_prompts, "prompts", Prompt
        )

    async def _fetch_resources(self, server_name: str) -> list[Resource]:
        return await self._fetch_paginated(
            server_name, api_paths.server_resources, "resources", Resource
        )

    async def _fetch_resource_templates(self, server_name: str) -> list[ResourceTemplate]:
        return await self._fetch_paginated(
            server_name, api_paths.server_resource_templates, "templates", ResourceTemplate
        )

    async def _single_or_aggregate(
        self,
        fetch: Callable[[str], Awaitable[list[Any]]],
        capability: str,
        server_name: Optional[str],
        servers: Optional[Sequence[str]]
    ) -> list[Any]:
        if server_name is not None:
            await self._ensure_server_healthy(server_name)
            return await fetch(server_name)

        results = await self._discovery.gather(fetch, servers, capability)
        return [
            item.namespaced(server)
            for server, items in results.items()
            for item in items
        ]

    async def get_prompts(
        self,
        server_name: Optional[str] = None,
        servers: Optional[Sequence[str]] = None
    ) -> list[Prompt]:
        """
        Get prompt templates.

        With a server name, returns that server's prompts unchanged.
        Otherwise returns prompts from every healthy server (or those in
        ``servers``), named "<server>__<prompt>".
        """
        return await self._single_or_aggregate(
            self._fetch_prompts, "prompts", server_name, servers
        )

    async def generate_prompt(
        self,
        server_name: str,
        prompt_name: str,
        arguments: Optional[Mapping[str, str]] = None
    ) -> GeneratePromptResponse:
        """
        Render a prompt template on a server.

        Args:
            server_name: Server hosting the prompt
            prompt_name: Prompt name as the server reports it
            arguments: Template arguments

        Returns:
            The rendered description and messages
        """
        await self._ensure_server_healthy(server_name)

        try:
            data = await self._request(
                "POST",
                api_paths.prompt_generate(server_name, prompt_name),
                {"arguments": dict(arguments or {})}
            )
        except PipelineError as e:
            e.server_name = server_name
            e.operation = f"{server_name}.{prompt_name}"
            raise

        return _parse_models(GeneratePromptResponse, [data or {}], "prompt")[0]

    async def get_resources(
        self,
        server_name: Optional[str] = None,
        servers: Optional[Sequence[str]] = None
    ) -> list[Resource]:
        """Get resources from one server, or namespaced from every healthy server."""
        return await self._single_or_aggregate(
            self._fetch_resources, "resources", server_name, servers
        )

    async def get_resource_templates(
        self,
        server_name: Optional[str] = None,
        servers: Optional[Sequence[str]] = None
    ) -> list[ResourceTemplate]:
        return await self._single_or_aggregate(
            self._fetch_resource_templates, "resource templates", server_name, servers
        )

    async def read_resource(self, server_name: str, uri: str) -> list[ResourceContent]:
        """Read the contents of a resource by URI."""
        await self._ensure_server_healthy(server_name)
        data = await self._request("GET", api_paths.resource_content(server_name, uri))
        items = data.get("contents", []) if isinstance(data, dict) else data
        return _parse_models(ResourceContent, items or [], "resource contents")

    # ------------------------------------------------------------------
    # Agent tools
    # ------------------------------------------------------------------

    async def get_agent_tools(
        self,
        servers: Optional[Sequence[str]] = None,
        tools: Optional[Collection[str]] = None,
        refresh_cache: bool = False,
        format: Union[AgentToolsFormat, str] = AgentToolsFormat.ARRAY
    ) -> AgentTools:
        """
        Generate callable agent functions for tools on healthy servers.

        Every request resolves the candidate servers and takes one health
        snapshot. Functions are cached per (server, tool): a healthy server
        whose tools were fetched before is answered from the cache, and
        only the remaining healthy servers are asked for their schemas.
        A server whose schemas cannot be fetched or built is skipped with
        a warning.

        Args:
            servers: Servers to include; omit for all
            tools: Tool names to include, bare or "<server>__<tool>"
            refresh_cache: Drop cached functions and fetch schemas again
            format: "array" (list), "object" (namespace) or "map" (dict)

        Returns:
            Agent functions in the requested shape
        """
        output_format = AgentToolsFormat(format)

        if tools is not None and len(tools) == 0:
            return self._format_agent_tools([], output_format)

        if refresh_cache:
            self.clear_agent_tools_cache()

        healthy = await self._discovery.healthy_servers(servers)
        by_server: dict[str, list[AgentFunction]] = {}
        uncached = []

        for server in healthy:
            cached = self._cached_server_functions(server)
            if cached is None:
                uncached.append(server)
            else:
                by_server[server] = cached

        if uncached:
            self._logger.debug("Fetching tools from %d server(s)", len(uncached))
            results = await self._discovery.fetch_all(uncached, self._fetch_tools, "tools")
            for server, server_tools in results.items():
                built = self._build_server_functions(server, server_tools)
                if built is not None:
                    by_server[server] = built

        functions = [
            function
            for server in healthy
            for function in by_server.get(server, [])
            if matches_name_filter(server, function.tool_name, tools)
        ]
        return self._format_agent_tools(functions, output_format)

    def _cached_server_functions(self, server_name: str) -> Optional[list[AgentFunction]]:
        """Cached functions for a server, or None if any of them is unknown or evicted."""
        tool_names = self._server_tools.get(server_name)
        if tool_names is None:
            return None

        functions = []
        for tool_name in tool_names:
            function = self._function_builder.get_cached(server_name, tool_name)
            if function is None:
                return None
            functions.append(function)
        return functions

    def _build_server_functions(
        self,
        server_name: str,
        server_tools: list[Tool]
    ) -> Optional[list[AgentFunction]]:
        try:
            functions = [
                self._function_builder.create_function_from_schema(tool, server_name)
                for tool in server_tools
            ]
        except McpdError as e:
            self._server_tools.pop(server_name, None)
            self._logger.warn("Failed to get tools for server '%s': %s", server_name, e)
            return None

        self._server_tools[server_name] = [tool.name for tool in server_tools]
        return functions

    @staticmethod
    def _format_agent_tools(
        functions: list[AgentFunction],
        output_format: AgentToolsFormat
    ) -> AgentTools:
        if output_format is AgentToolsFormat.ARRAY:
            return functions
        by_name = {function.name: function for function in functions}
        if output_format is AgentToolsFormat.MAP:
            return by_name
        return SimpleNamespace(**by_name)

    def clear_agent_tools_cache(self) -> None:
        """Drop every generated function; the next request fetches schemas again."""
        self._function_builder.clear_cache()
        self._server_tools.clear()
