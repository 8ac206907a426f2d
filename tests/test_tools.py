import json
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from toolpilot.agent.tools import BaseTool, ToolParameter, ToolRegistry, build_tool
from toolpilot.agent.types import ToolResult
from toolpilot.config.tool import ToolConfig
from toolpilot.exceptions import DuplicateToolError, ToolNotFoundError


class EchoTool(BaseTool):
    def __init__(self, prefix: str = ""):
        self.prefix = prefix

    @property
    def name(self) -> str:
        return "echo"

    @property
    def description(self) -> str:
        return "Repeat the given text"

    @property
    def parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(name="text", type="string", description="Text to repeat", required=True),
            ToolParameter(name="times", type="number", description="Repetitions"),
        ]

    async def execute(self, text: str = "", times: int = 1, **params: Any) -> ToolResult:
        return self.result(self.prefix + text * times)


class BrokenTool(BaseTool):
    @property
    def name(self) -> str:
        return "broken"

    async def execute(self, **params: Any) -> ToolResult:
        raise OSError("device not ready")


class TestToolRegistry:
    def test_duplicate_registration(self):
        registry = ToolRegistry([EchoTool()])
        with pytest.raises(DuplicateToolError):
            registry.register(EchoTool())

    def test_get_unknown(self):
        with pytest.raises(ToolNotFoundError, match='Tool "nope" not found'):
            ToolRegistry().get("nope")

    @pytest.mark.asyncio
    async def test_execute(self):
        result = await ToolRegistry([EchoTool()]).execute("echo", {"text": "ab", "times": 2})
        assert result == ToolResult(success=True, output="abab")

    @pytest.mark.asyncio
    async def test_unknown_tool_result(self):
        result = await ToolRegistry().execute("nope", {})
        assert not result.success
        assert result.error == 'Tool "nope" not found'

    @pytest.mark.asyncio
    async def test_tool_exception_becomes_failure(self):
        result = await ToolRegistry([BrokenTool()]).execute("broken", {})
        assert not result.success
        assert result.error == "device not ready"

    @pytest.mark.asyncio
    async def test_external_tools_route_to_bridge(self):
        bridge = AsyncMock()
        bridge.execute_tool = AsyncMock(return_value=ToolResult(success=True, data={"issues": [1, 2]}))
        result = await ToolRegistry(bridge=bridge).execute("github/list_issues", {"repo": "x"})

        bridge.execute_tool.assert_awaited_once_with("github", "list_issues", {"repo": "x"})
        assert result.success
        assert result.output == json.dumps({"issues": [1, 2]}, indent=2)

    @pytest.mark.asyncio
    async def test_external_tool_without_bridge(self):
        result = await ToolRegistry().execute("github/list_issues", {})
        assert result.error == 'Tool "github/list_issues" not found'

    def test_describe_for_prompt(self):
        bridge = AsyncMock()
        bridge.describe_for_prompt = lambda: "## github/list_issues\nList issues"
        registry = ToolRegistry([EchoTool(), BrokenTool()], bridge=bridge)
        assert registry.describe_for_prompt() == (
            "## echo\n"
            "Repeat the given text\n"
            "Parameters:\n"
            "  - text: string (required) - Text to repeat\n"
            "  - times: number (optional) - Repetitions\n"
            "\n"
            "## broken\n"
            "\n"
            "\n"
            "## github/list_issues\n"
            "List issues"
        )

    def test_from_config(self):
        config = {
            "shout": ToolConfig(cls="my_tools.EchoTool", kwargs={"prefix": ">> "}),
            "echo": ToolConfig(name="echo_again", cls="my_tools.EchoTool"),
        }
        with patch("toolpilot.agent.tools.importlib.import_module",
                   return_value=SimpleNamespace(EchoTool=EchoTool)) as import_module:
            registry = ToolRegistry.from_config(config)
        import_module.assert_called_with("my_tools")
        assert registry.names() == ["shout", "echo_again"]
        assert registry.get("shout").prefix == ">> "

    def test_build_tool_uses_key_as_default_name(self):
        with patch("toolpilot.agent.tools.importlib.import_module",
                   return_value=SimpleNamespace(EchoTool=EchoTool)):
            name, tool = build_tool("key", ToolConfig(cls="my_tools.EchoTool"))
        assert name == "key"
        assert isinstance(tool, EchoTool)

    def test_approval_required(self):
        class GuardedTool(EchoTool):
            @property
            def name(self) -> str:
                return "guarded"

            @property
            def requires_approval(self) -> bool:
                return True

        assert ToolRegistry([EchoTool(), GuardedTool()]).approval_required() == ["guarded"]
