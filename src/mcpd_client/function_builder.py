"""Agent function generation from MCP tool schemas.

Turns a tool's JSON Schema into a validated, awaitable callable that
AI agent frameworks can use directly. Generated functions are cached
per (server, tool) so every caller shares one object per tool.
"""

import re
from collections.abc import Mapping
from functools import cached_property
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, create_model

from mcpd_common.cache import LRUCache
from mcpd_common.exceptions import McpdError
from mcpd_common.logging import SDKLogger, create_logger
from mcpd_common.models import TOOL_SEPARATOR, Tool
from mcpd_common.schema import describe_type, primary_type, validate_parameters


PerformCallFn = Callable[[str, str, dict[str, Any]], Awaitable[Any]]

NO_DESCRIPTION = "No description provided"

_PYTHON_TYPES: dict[str, Any] = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
    "array": list,
    "object": dict,
}


def safe_name(name: str) -> str:
    """Replace non-word characters, and prefix a leading digit, to form an identifier."""
    return re.sub(r"\W|^(?=\d)", "_", name)


def qualified_name(server_name: str, tool_name: str) -> str:
    return f"{safe_name(server_name)}{TOOL_SEPARATOR}{safe_name(tool_name)}"


class AgentFunction:
    """
    Callable wrapper around one MCP tool.

    Two entry points share one validated call path:
    - ``await fn.invoke({"a": 1})`` passes named arguments
    - ``await fn(1, b=2)`` maps positional values onto the schema's
      properties in declared order (extras are dropped); keyword
      arguments are merged over them

    Calling the function directly never unpacks a mapping: ``fn({"a": 1})``
    binds the dict to the first property. Frameworks that hand over an
    argument mapping must use ``invoke``.

    Missing required parameters and type mismatches are each reported
    in full. None-valued arguments are removed before dispatch.
    """

    def __init__(
        self,
        schema: Tool,
        server_name: str,
        perform_call: PerformCallFn,
        docstring: str
    ) -> None:
        self._schema = schema
        self._server_name = server_name
        self._perform_call = perform_call

        input_schema = schema.input_schema or {}
        self._input_schema: dict[str, Any] = dict(input_schema)
        self._property_names = list((input_schema.get("properties") or {}).keys())

        self.__name__ = qualified_name(server_name, schema.name)
        self.__qualname__ = self.__name__
        self.__doc__ = docstring

    @property
    def name(self) -> str:
        """Qualified name, "<safe server>__<safe tool>"."""
        return self.__name__

    @property
    def description(self) -> str:
        return (
            self._schema.description
            or self._schema.title
            or (self._schema.annotations.title if self._schema.annotations else None)
            or NO_DESCRIPTION
        )

    @property
    def schema(self) -> Tool:
        return self._schema

    @property
    def input_schema(self) -> dict[str, Any]:
        return self._input_schema

    @property
    def server_name(self) -> str:
        return self._server_name

    @property
    def tool_name(self) -> str:
        return self._schema.name

    @property
    def property_names(self) -> list[str]:
        return list(self._property_names)

    async def invoke(self, arguments: Optional[Mapping[str, Any]] = None) -> Any:
        """
        Call the tool with named arguments.

        Args:
            arguments: Mapping of parameter name to value

        Returns:
            The tool result as returned by the daemon

        Raises:
            ParameterValidationError: If parameters are missing or invalid
            McpdError: If the call fails
        """
        params = dict(arguments or {})
        validate_parameters(params, self._input_schema)

        clean_params = {key: value for key, value in params.items() if value is not None}
        return await self._perform_call(self._server_name, self._schema.name, clean_params)

    async def __call__(self, *args: Any, **kwargs: Any) -> Any:
        params = dict(zip(self._property_names, args))
        params.update(kwargs)
        return await self.invoke(params)

    def to_openai_tool(self) -> dict[str, Any]:
        """Tool definition in OpenAI function-calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self._input_schema or {
                    "type": "object",
                    "properties": {},
                    "required": []
                }
            }
        }

    @cached_property
    def args_model(self) -> type[BaseModel]:
        """Pydantic model mirroring the top level of the input schema."""
        properties = self._input_schema.get("properties") or {}
        required = set(self._input_schema.get("required") or [])
        fields: dict[str, Any] = {}

        for index, (param_name, node) in enumerate(properties.items()):
            field_name = safe_name(param_name).lstrip("_") or f"param_{index}"
            python_type = _PYTHON_TYPES.get(primary_type(node), Any)
            description = node.get("description")
            if param_name in required:
                fields[field_name] = (
                    python_type,
                    Field(..., alias=param_name, description=description)
                )
            else:
                fields[field_name] = (
                    Optional[python_type],
                    Field(default=None, alias=param_name, description=description)
                )

        return create_model(
            self.name,
            __config__=ConfigDict(populate_by_name=True, protected_namespaces=()),
            **fields
        )

    def __repr__(self) -> str:
        return f"AgentFunction(name={self.name!r}, server={self._server_name!r}, tool={self.tool_name!r})"


class FunctionBuilder:
    """
    Builds and caches AgentFunction objects from tool schemas.

    The cache is keyed by "<server>__<tool>" and is the single owner of
    generated functions; callers receive shared references. Entries are
    replaced only after clear_cache().
    """

    def __init__(
        self,
        perform_call: PerformCallFn,
        max_size: int = 1000,
        logger: Optional[SDKLogger] = None
    ) -> None:
        """
        Initialize the builder.

        Args:
            perform_call: Coroutine function executing (server, tool, args)
            max_size: Maximum number of cached functions
            logger: SDK logger
        """
        self._perform_call = perform_call
        self._cache: LRUCache[str, AgentFunction] = LRUCache(max_size=max_size)
        self._logger = logger or create_logger()

    @staticmethod
    def cache_key(server_name: str, tool_name: str) -> str:
        return f"{server_name}{TOOL_SEPARATOR}{tool_name}"

    def create_function_from_schema(
        self,
        schema: Union[Tool, Mapping[str, Any]],
        server_name: str
    ) -> AgentFunction:
        """
        Get the agent function for a tool, building it on first request.

        Args:
            schema: Tool definition
            server_name: Server hosting the tool

        Returns:
            The cached AgentFunction for (server_name, schema name)

        Raises:
            McpdError: If the schema cannot be turned into a function
        """
        raw_name = schema.name if isinstance(schema, Tool) else schema.get("name")
        key = self.cache_key(server_name, str(raw_name))

        cached = self._cache.get(key)
        if cached is not None:
            return cached

        try:
            tool = schema if isinstance(schema, Tool) else Tool.model_validate(schema)
            function = self._build_function(tool, server_name)
        except Exception as e:
            raise McpdError(f"Error creating function {key}: {e}", e) from e

        self._cache.set(key, function)
        self._logger.trace("Built agent function %s", function.name)
        return function

    def get_cached(self, server_name: str, tool_name: str) -> Optional[AgentFunction]:
        return self._cache.get(self.cache_key(server_name, tool_name))

    def _build_function(self, schema: Tool, server_name: str) -> AgentFunction:
        input_schema = schema.input_schema or {}
        properties = input_schema.get("properties") or {}
        required = input_schema.get("required") or []

        if not isinstance(properties, Mapping):
            raise TypeError("inputSchema.properties must be an object")
        if not isinstance(required, list):
            raise TypeError("inputSchema.required must be an array")

        docstring = self._create_docstring(schema)
        return AgentFunction(schema, server_name, self._perform_call, docstring)

    def _create_docstring(self, schema: Tool) -> str:
        """Build a docstring with description, parameters, return value and errors."""
        input_schema = schema.input_schema or {}
        properties = input_schema.get("properties") or {}
        required = set(input_schema.get("required") or [])

        parts = [schema.description or NO_DESCRIPTION]

        if properties:
            parts.append("")
            parts.append("Args:")
            for param_name, param_info in properties.items():
                param_type = describe_type(param_info)
                param_desc = param_info.get("description") or NO_DESCRIPTION
                optional = "" if param_name in required else " (optional)"
                parts.append(f"    {param_name} ({param_type}): {param_desc}{optional}")

        parts.extend([
            "",
            "Returns:",
            "    Any: Tool execution result",
            "",
            "Raises:",
            "    ParameterValidationError: If required parameters are missing or invalid",
            "    McpdError: If the API call fails",
        ])

        return "\n".join(parts)

    def clear_cache(self) -> None:
        """Drop every cached function; the next request rebuilds it."""
        self._cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self._cache)
