# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Tests for tool registration and dispatch."""
import pytest

from pydantic import Field

from agent_engine.src.containers.errors import ContainerNotRunningError
from agent_engine.src.tools import coding_toolkit, publishing_toolkit, review_toolkit, toolkits
from agent_engine.src.tools.base_tool import BaseTool, ToolContext, tool_registry
from agent_engine.src.tools.registry import ToolRegistrationError, ToolRegistry
from agent_engine.src.types.llm_types import ToolCallContent
from agent_engine.src.types.tool_types import ToolResult

from agent_engine.tests.fakes import RecordingEnvironment


def call(tool_name: str, arguments: str = "{}", call_id: str = "call_1") -> ToolCallContent:
    return ToolCallContent(call_id=call_id, tool_name=tool_name, arguments=arguments)


class TestBaseTool:
    def setup_method(self):
        # Save the original registry and clear it for testing
        self.original_registry = dict(tool_registry)
        tool_registry.clear()

    def teardown_method(self):
        tool_registry.clear()
        tool_registry.update(self.original_registry)

    def test_tool_registration(self):
        class EchoTool(BaseTool):
            TOOL_NAME = "echo_tool"
            TOOL_DESCRIPTION = "Echo the text back"

            text: str

            async def run(self) -> ToolResult:
                return ToolResult(tool_name=self.TOOL_NAME, success=True, output=self.text)

        assert tool_registry["echo_tool"] is EchoTool

    def test_schema_from_fields(self):
        class EchoTool(BaseTool):
            TOOL_NAME = "echo_tool"
            TOOL_DESCRIPTION = "  Echo the text back  "

            text: str = Field(..., description="What to echo")
            times: int = 1

            async def run(self) -> ToolResult:
                return ToolResult(tool_name=self.TOOL_NAME, success=True)

        schema = EchoTool.to_schema()

        assert schema.name == "echo_tool"
        assert schema.description == "Echo the text back"
        assert "title" not in schema.parameters
        assert schema.parameters["required"] == ["text"]
        assert schema.parameters["properties"]["text"]["description"] == "What to echo"


class EchoTool(BaseTool):
    TOOL_NAME = "test_echo"
    TOOL_DESCRIPTION = "Echo the text back"

    text: str
    times: int = Field(1, ge=1)

    async def run(self) -> ToolResult:
        return ToolResult(tool_name=self.TOOL_NAME, success=True, output=self.text * self.times)


class ExplodingTool(BaseTool):
    TOOL_NAME = "test_explode"
    TOOL_DESCRIPTION = "Always fails"

    kind: str = "runtime"

    async def run(self) -> ToolResult:
        if self.kind == "container":
            raise ContainerNotRunningError("box", "stopped")
        raise RuntimeError("kaboom")


class TestToolRegistry:
    def setup_method(self):
        self.context = ToolContext(environment=RecordingEnvironment())
        self.registry = ToolRegistry(self.context, [EchoTool, ExplodingTool])

    def test_names_and_schemas(self):
        assert self.registry.names == ["test_echo", "test_explode"]
        assert "test_echo" in self.registry
        assert len(self.registry) == 2
        assert [s.name for s in self.registry.schemas()] == ["test_echo", "test_explode"]

    def test_duplicate_registration(self):
        with pytest.raises(ToolRegistrationError):
            self.registry.register(EchoTool)

    def test_invalid_name(self):
        class BadName(BaseTool):
            TOOL_NAME = "has spaces"
            TOOL_DESCRIPTION = "x"

            async def run(self) -> ToolResult:
                return ToolResult(tool_name=self.TOOL_NAME, success=True)

        try:
            with pytest.raises(ToolRegistrationError):
                self.registry.register(BadName)
        finally:
            tool_registry.pop("has spaces", None)

    def test_missing_description(self):
        class NoDescription(BaseTool):
            TOOL_NAME = "test_no_description"
            TOOL_DESCRIPTION = "   "

            async def run(self) -> ToolResult:
                return ToolResult(tool_name=self.TOOL_NAME, success=True)

        try:
            with pytest.raises(ToolRegistrationError):
                self.registry.register(NoDescription)
        finally:
            tool_registry.pop("test_no_description", None)

    async def test_dispatch_success(self):
        result = await self.registry.dispatch(call("test_echo", '{"text": "ab", "times": 2}'))

        assert result.success
        assert result.output == "abab"
        assert result.duration >= 0

    async def test_dispatch_empty_arguments(self):
        result = await self.registry.dispatch(call("test_explode", ""))
        assert not result.success
        assert result.errors == "Tool runtime error: kaboom"

    async def test_unknown_tool(self):
        result = await self.registry.dispatch(call("nope"))

        assert not result.success
        assert result.errors == "Unknown tool 'nope'. Available tools: test_echo, test_explode"

    async def test_malformed_json(self):
        result = await self.registry.dispatch(call("test_echo", '{"text": '))
        assert not result.success
        assert result.errors.startswith("Could not parse tool arguments as JSON")

    async def test_non_object_arguments(self):
        result = await self.registry.dispatch(call("test_echo", '["a"]'))
        assert not result.success
        assert result.errors == "Tool arguments must be a JSON object"

    @pytest.mark.parametrize(
        "arguments,fragment",
        [
            ("{}", "text"),
            ('{"text": "a", "times": 0}', "times"),
            ('{"text": "a", "unexpected": 1}', "unexpected"),
        ],
    )
    async def test_schema_violations(self, arguments, fragment):
        result = await self.registry.dispatch(call("test_echo", arguments))

        assert not result.success
        assert result.errors.startswith("Invalid arguments:")
        assert fragment in result.errors

    async def test_container_errors_become_results(self):
        result = await self.registry.dispatch(call("test_explode", '{"kind": "container"}'))
        assert not result.success
        assert result.errors == "Container is not running: box (status: stopped)"

    async def test_result_string_format(self):
        result = await self.registry.dispatch(call("test_explode"))
        text = str(result)
        assert text.startswith("test_explode response:\nStatus: FAILURE")
        assert "Errors: Tool runtime error: kaboom" in text


class TestToolkits:
    def test_toolkit_names(self):
        assert set(toolkits) == {"coding", "review", "publishing"}

    def test_review_toolkit_is_read_only(self):
        names = {tool.TOOL_NAME for tool in review_toolkit}
        assert names == {"get_file_content", "list_directory", "search_code", "file_check"}

    def test_every_toolkit_registers_cleanly(self):
        context = ToolContext(environment=RecordingEnvironment())
        registry = ToolRegistry(context, coding_toolkit + publishing_toolkit)
        assert "write_file" in registry
        assert "create_pull_request" in registry
