import importlib
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, Literal, Protocol

from pydantic import BaseModel, Field
from typing_extensions import Annotated

from toolpilot.agent.types import ToolResult
from toolpilot.config.tool import ToolConfig
from toolpilot.exceptions import DuplicateToolError, ToolNotFoundError

logger = logging.getLogger(__name__)


class ToolParameter(BaseModel):
    name: Annotated[str, Field(description="Parameter name")]
    type: Annotated[Literal['string', 'number', 'boolean', 'array', 'object'], Field(default='string')]
    description: Annotated[str, Field(default="")]
    required: Annotated[bool, Field(default=False)]
    default: Annotated[Any, Field(default=None)]

    def describe(self) -> str:
        presence = "required" if self.required else "optional"
        return f"  - {self.name}: {self.type} ({presence}) - {self.description}"


class BaseTool(ABC):
    """Abstract base class for all tools"""

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of the tool, used for identification"""
        pass

    @property
    def description(self) -> str:
        """Description of what the tool does"""
        return ""

    @property
    def parameters(self) -> list[ToolParameter]:
        return []

    @property
    def requires_approval(self) -> bool:
        """Whether the tool changes something outside the agent"""
        return False

    @abstractmethod
    async def execute(self, **params: Any) -> ToolResult:
        pass

    @staticmethod
    def result(output: str, data: Any = None) -> ToolResult:
        return ToolResult.ok(output, data)

    @staticmethod
    def error(error_message: str) -> ToolResult:
        return ToolResult.fail(error_message)


class ToolCatalog(Protocol):
    """What the execution engine and the planner need from a tool source."""

    async def execute(self, tool_name: str, params: dict[str, Any]) -> ToolResult:
        """Run a tool; failures come back as an unsuccessful result."""
        ...

    def describe_for_prompt(self) -> str:
        ...


class ExternalToolBridge(Protocol):
    """Tools provided by external servers, addressed as ``server/tool``."""

    async def execute_tool(self, server: str, tool: str, params: dict[str, Any]) -> ToolResult:
        ...

    def describe_for_prompt(self) -> str:
        ...


def describe_tool(name: str, tool: BaseTool) -> str:
    lines = [f"## {name}", tool.description]
    if tool.parameters:
        lines.append("Parameters:")
        lines.extend(parameter.describe() for parameter in tool.parameters)
    return '\n'.join(lines)


def build_tool(name: str, tool_config: ToolConfig) -> tuple[str, BaseTool]:
    name = tool_config.name or name
    pkg, cls_name = tool_config.cls.rsplit('.', maxsplit=1)
    module = importlib.import_module(pkg)
    tool_cls = getattr(module, cls_name)
    tool = tool_cls(**tool_config.kwargs)
    return (name, tool)


class ToolRegistry:
    """Local tools by name, plus an optional bridge for ``server/tool`` names."""

    def __init__(self, tools: Iterable[BaseTool] = (), bridge: ExternalToolBridge | None = None):
        self.tools: dict[str, BaseTool] = {}
        self.bridge = bridge
        for tool in tools:
            self.register(tool)

    @classmethod
    def from_config(cls, config: dict[str, ToolConfig], bridge: ExternalToolBridge | None = None) -> 'ToolRegistry':
        registry = cls(bridge=bridge)
        for key, tool_config in config.items():
            name, tool = build_tool(key, tool_config)
            registry.register(tool, name=name)
        return registry

    def register(self, tool: BaseTool, name: str | None = None):
        name = name or tool.name
        if name in self.tools:
            raise DuplicateToolError(name)
        self.tools[name] = tool
        logger.debug(f"Registered tool {name}")

    def get(self, name: str) -> BaseTool:
        try:
            return self.tools[name]
        except KeyError:
            raise ToolNotFoundError(name) from None

    def names(self) -> list[str]:
        return list(self.tools)

    def approval_required(self) -> list[str]:
        return [name for name, tool in self.tools.items() if tool.requires_approval]

    async def execute(self, tool_name: str, params: dict[str, Any]) -> ToolResult:
        if '/' in tool_name:
            return await self._execute_external(tool_name, params)
        try:
            tool = self.get(tool_name)
        except ToolNotFoundError as e:
            logger.warning(str(e))
            return ToolResult.fail(e.msg)
        try:
            result = await tool.execute(**params)
        except Exception as e:
            logger.warning(f"Tool {tool_name} raised: {e}", exc_info=True)
            return ToolResult.fail(str(e) or type(e).__name__)
        if not isinstance(result, ToolResult):
            return ToolResult.fail(f"Tool {tool_name} returned an unexpected result type: {type(result).__name__}")
        return result

    async def _execute_external(self, tool_name: str, params: dict[str, Any]) -> ToolResult:
        server, tool = tool_name.split('/', maxsplit=1)
        if self.bridge is None:
            return ToolResult.fail(f'Tool "{tool_name}" not found')
        try:
            result = await self.bridge.execute_tool(server, tool, params)
        except Exception as e:
            logger.warning(f"External tool {tool_name} raised: {e}", exc_info=True)
            return ToolResult.fail(str(e) or type(e).__name__)
        if result.success and not result.output and result.data is not None:
            result = result.model_copy(update={'output': json.dumps(result.data, indent=2, ensure_ascii=False)})
        return result

    def describe_for_prompt(self) -> str:
        sections = [describe_tool(name, tool) for name, tool in self.tools.items()]
        if self.bridge is not None:
            external = self.bridge.describe_for_prompt()
            if external:
                sections.append(external)
        return '\n\n'.join(sections)
