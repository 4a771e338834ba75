"""Tests for agent function generation."""

import pytest
from unittest.mock import AsyncMock

from mcpd_common.exceptions import McpdError, ParameterValidationError
from mcpd_common.models import Tool


def make_tool(name="echo", properties=None, required=None, description="Echo a message"):
    schema = {"type": "object", "properties": properties or {}}
    if required is not None:
        schema["required"] = required
    return Tool(name=name, description=description, inputSchema=schema)


MESSAGE_TOOL = make_tool(
    properties={
        "message": {"type": "string", "description": "Text to echo"},
        "count": {"type": "integer"},
        "optional": {"type": "string"},
    },
    required=["message"],
)


class TestFunctionBuilder:
    """Tests for FunctionBuilder caching and naming."""

    def test_cached_function_is_reused(self):
        """Test that consecutive builds return the identical object."""
        from mcpd_client.function_builder import FunctionBuilder

        builder = FunctionBuilder(AsyncMock())

        first = builder.create_function_from_schema(MESSAGE_TOOL, "test-server")
        second = builder.create_function_from_schema(MESSAGE_TOOL, "test-server")

        assert first is second
        assert builder.cache_size == 1

    def test_clear_cache_rebuilds(self):
        """Test that clearing the cache yields a new object with the same name."""
        from mcpd_client.function_builder import FunctionBuilder

        builder = FunctionBuilder(AsyncMock())

        first = builder.create_function_from_schema(MESSAGE_TOOL, "test-server")
        builder.clear_cache()
        second = builder.create_function_from_schema(MESSAGE_TOOL, "test-server")

        assert first is not second
        assert first.name == second.name

    def test_name_sanitization(self):
        from mcpd_client.function_builder import FunctionBuilder

        builder = FunctionBuilder(AsyncMock())

        function = builder.create_function_from_schema(make_tool("test-tool@123"), "test-server")

        assert function.name == "test_server__test_tool_123"
        assert function.__name__ == "test_server__test_tool_123"
        assert function.tool_name == "test-tool@123"
        assert function.server_name == "test-server"

    def test_leading_digit_prefixed(self):
        from mcpd_client.function_builder import qualified_name

        assert qualified_name("1srv", "2tool") == "_1srv___2tool"

    def test_accepts_raw_mapping(self):
        from mcpd_client.function_builder import FunctionBuilder

        builder = FunctionBuilder(AsyncMock())

        function = builder.create_function_from_schema(
            {"name": "ping", "inputSchema": {"type": "object"}}, "net"
        )

        assert function.name == "net__ping"
        assert builder.get_cached("net", "ping") is function

    def test_malformed_schema_is_wrapped(self):
        """Test that build failures raise McpdError and leave the cache untouched."""
        from mcpd_client.function_builder import FunctionBuilder

        builder = FunctionBuilder(AsyncMock())
        bad = Tool(name="bad", inputSchema={"properties": ["not", "a", "mapping"]})

        with pytest.raises(McpdError) as exc_info:
            builder.create_function_from_schema(bad, "srv")

        assert "Error creating function srv__bad" in str(exc_info.value)
        assert isinstance(exc_info.value.cause, TypeError)
        assert builder.cache_size == 0

    def test_docstring(self):
        from mcpd_client.function_builder import FunctionBuilder

        builder = FunctionBuilder(AsyncMock())

        function = builder.create_function_from_schema(MESSAGE_TOOL, "srv")

        assert function.__doc__.startswith("Echo a message")
        assert "message (string): Text to echo" in function.__doc__
        assert "count (number): No description provided (optional)" in function.__doc__
        assert "ParameterValidationError" in function.__doc__


class TestAgentFunction:
    """Tests for invoking generated functions."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("arguments", [{}, {"message": None}])
    async def test_missing_required(self, arguments):
        from mcpd_client.function_builder import FunctionBuilder

        perform_call = AsyncMock()
        function = FunctionBuilder(perform_call).create_function_from_schema(MESSAGE_TOOL, "srv")

        with pytest.raises(ParameterValidationError) as exc_info:
            await function.invoke(arguments)

        assert exc_info.value.validation_errors == ["message"]
        perform_call.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_required_without_arguments(self):
        from mcpd_client.function_builder import FunctionBuilder

        function = FunctionBuilder(AsyncMock()).create_function_from_schema(MESSAGE_TOOL, "srv")

        with pytest.raises(ParameterValidationError):
            await function()

    @pytest.mark.asyncio
    async def test_type_enforcement(self):
        """Test integer and string checks."""
        from mcpd_client.function_builder import FunctionBuilder

        perform_call = AsyncMock(return_value="ok")
        function = FunctionBuilder(perform_call).create_function_from_schema(MESSAGE_TOOL, "srv")

        with pytest.raises(ParameterValidationError):
            await function.invoke({"message": "hi", "count": 3.14})
        with pytest.raises(ParameterValidationError) as exc_info:
            await function.invoke({"message": 123})

        assert exc_info.value.validation_errors == [
            "Parameter 'message' should be string, got number"
        ]
        assert await function.invoke({"message": "hi", "count": 5}) == "ok"

    @pytest.mark.asyncio
    async def test_enum_enforcement(self):
        from mcpd_client.function_builder import FunctionBuilder

        tool = make_tool(
            properties={"level": {"type": "string", "enum": ["low", "medium", "high"]}},
            required=["level"],
        )
        perform_call = AsyncMock(return_value=None)
        function = FunctionBuilder(perform_call).create_function_from_schema(tool, "srv")

        await function.invoke({"level": "medium"})
        with pytest.raises(ParameterValidationError):
            await function.invoke({"level": "invalid"})

    @pytest.mark.asyncio
    async def test_null_values_are_stripped(self):
        from mcpd_client.function_builder import FunctionBuilder

        perform_call = AsyncMock(return_value=None)
        function = FunctionBuilder(perform_call).create_function_from_schema(MESSAGE_TOOL, "srv")

        await function.invoke({"message": "hello", "optional": None})

        perform_call.assert_awaited_once_with("srv", "echo", {"message": "hello"})

    @pytest.mark.asyncio
    async def test_positional_mapping(self):
        """Test that positional values follow declared property order."""
        from mcpd_client.function_builder import FunctionBuilder

        perform_call = AsyncMock(return_value=None)
        function = FunctionBuilder(perform_call).create_function_from_schema(MESSAGE_TOOL, "srv")

        await function("hello", 3)
        await function.invoke({"message": "hello", "count": 3})

        first, second = perform_call.await_args_list
        assert first == second
        assert first.args == ("srv", "echo", {"message": "hello", "count": 3})

    @pytest.mark.asyncio
    async def test_extra_positional_dropped_and_kwargs_merged(self):
        from mcpd_client.function_builder import FunctionBuilder

        perform_call = AsyncMock(return_value=None)
        function = FunctionBuilder(perform_call).create_function_from_schema(MESSAGE_TOOL, "srv")

        await function("hello", 1, "opt", "extra", count=2)

        perform_call.assert_awaited_once_with(
            "srv", "echo", {"message": "hello", "count": 2, "optional": "opt"}
        )

    @pytest.mark.asyncio
    async def test_executor_errors_propagate(self):
        from mcpd_client.function_builder import FunctionBuilder

        perform_call = AsyncMock(side_effect=McpdError("boom"))
        function = FunctionBuilder(perform_call).create_function_from_schema(MESSAGE_TOOL, "srv")

        with pytest.raises(McpdError, match="boom"):
            await function.invoke({"message": "hi"})

    def test_description_fallbacks(self):
        from mcpd_client.function_builder import FunctionBuilder

        builder = FunctionBuilder(AsyncMock())
        titled = Tool(name="a", title="Titled tool")
        annotated = Tool(name="b", annotations={"title": "Annotated"})
        bare = Tool(name="c")

        assert builder.create_function_from_schema(titled, "s").description == "Titled tool"
        assert builder.create_function_from_schema(annotated, "s").description == "Annotated"
        assert builder.create_function_from_schema(bare, "s").description == "No description provided"

    def test_openai_format(self):
        from mcpd_client.function_builder import FunctionBuilder

        function = FunctionBuilder(AsyncMock()).create_function_from_schema(MESSAGE_TOOL, "srv")

        definition = function.to_openai_tool()

        assert definition["type"] == "function"
        assert definition["function"]["name"] == "srv__echo"
        assert definition["function"]["description"] == "Echo a message"
        assert definition["function"]["parameters"]["required"] == ["message"]

    def test_args_model(self):
        """Test the derived pydantic model."""
        from pydantic import ValidationError
        from mcpd_client.function_builder import FunctionBuilder

        function = FunctionBuilder(AsyncMock()).create_function_from_schema(MESSAGE_TOOL, "srv")
        model = function.args_model

        parsed = model.model_validate({"message": "hi", "count": 2})
        assert parsed.message == "hi"
        assert parsed.count == 2
        assert parsed.optional is None

        with pytest.raises(ValidationError):
            model.model_validate({"count": 2})

    def test_direct_call_documents_invoke_for_mappings(self):
        from mcpd_client.function_builder import AgentFunction

        assert "invoke" in AgentFunction.__doc__


class TestNullableTypes:
    """Tests for schemas whose property types are lists of names."""

    NULLABLE_TOOL = {
        "name": "echo",
        "inputSchema": {
            "type": "object",
            "properties": {"text": {"type": ["string", "null"]}},
        },
    }

    def test_docstring_and_args_model(self):
        from mcpd_client.function_builder import FunctionBuilder

        function = FunctionBuilder(AsyncMock()).create_function_from_schema(self.NULLABLE_TOOL, "s")

        assert "text (string)" in function.__doc__
        assert function.args_model.model_validate({"text": "hi"}).text == "hi"
        assert function.args_model.model_validate({}).text is None

    @pytest.mark.asyncio
    async def test_invoke_dispatches(self):
        from mcpd_client.function_builder import FunctionBuilder

        perform_call = AsyncMock(return_value="hi")
        function = FunctionBuilder(perform_call).create_function_from_schema(self.NULLABLE_TOOL, "s")

        assert await function.invoke({"text": "hi"}) == "hi"
        await function.invoke({"text": None})

        assert perform_call.await_args_list[0].args == ("s", "echo", {"text": "hi"})
        assert perform_call.await_args_list[1].args == ("s", "echo", {})

    @pytest.mark.asyncio
    async def test_invoke_rejects_other_types(self):
        from mcpd_client.function_builder import FunctionBuilder

        perform_call = AsyncMock()
        function = FunctionBuilder(perform_call).create_function_from_schema(self.NULLABLE_TOOL, "s")

        with pytest.raises(ParameterValidationError, match="Parameter 'text' should be string, got number"):
            await function.invoke({"text": 5})
        perform_call.assert_not_awaited()
