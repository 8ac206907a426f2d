"""End-to-end tests for the AutonomousAgent façade.

The model is a scripted gateway returning one completion per call; tools
are small in-memory BaseTool implementations registered in a real
ToolRegistry.
"""

import json
import unittest
from typing import Any
from unittest.mock import AsyncMock, MagicMock

from toolpilot.agent.agent import PLANNING_FAILED_MESSAGE, AutonomousAgent
from toolpilot.agent.execution import ExecutionEngine
from toolpilot.agent.planning import PlanCompiler
from toolpilot.agent.summary import Summarizer
from toolpilot.agent.tools import BaseTool, ToolParameter, ToolRegistry
from toolpilot.agent.types import AgentStep, StepStatus, ToolResult
from toolpilot.config.agent import AgentConfig
from toolpilot.config.tool_pilot import ToolPilotConfig
from toolpilot.llm.gateway import Completion


class MockTool(BaseTool):
    """Mock tool for testing purposes."""

    def __init__(self, name: str, output: str = "ok", requires_approval: bool = False):
        self._name = name
        self.output = output
        self._requires_approval = requires_approval
        self.calls: list[dict[str, Any]] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return f"Mock {self._name}"

    @property
    def parameters(self) -> list[ToolParameter]:
        return [ToolParameter(name="path", type="string", description="Target path", required=True)]

    @property
    def requires_approval(self) -> bool:
        return self._requires_approval

    async def execute(self, **params: Any) -> ToolResult:
        self.calls.append(params)
        return self.result(self.output)


class TestAutonomousAgent(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.list_tool = MockTool("list_directory", output="a.txt\nb.txt")
        self.delete_tool = MockTool("delete_file", requires_approval=True)
        self.catalog = ToolRegistry([self.list_tool, self.delete_tool])
        self.gateway = MagicMock()
        self.gateway.complete = AsyncMock()
        self.agent = AutonomousAgent(
            catalog=self.catalog,
            planner=PlanCompiler(self.gateway),
            engine=ExecutionEngine(self.catalog),
            summarizer=Summarizer(self.gateway),
            default_model="gpt-4o",
        )

    def script(self, *contents: str):
        self.gateway.complete.side_effect = [Completion(content=content) for content in contents]

    async def test_list_files(self):
        self.script(json.dumps({
            "goal": "Show the files",
            "steps": [{"id": "1", "description": "List the files in the folder", "tool": "list_directory",
                       "parameters": {"path": "."}, "requiresApproval": False}],
        }))
        events: list[AgentStep] = []

        result = await self.agent.run("list files", on_progress=lambda step, steps: events.append(step))

        self.assertTrue(result.success)
        self.assertEqual(result.final_output, "List the files in the folder")
        self.assertEqual((result.steps_completed, result.steps_failed), (1, 0))
        self.assertEqual(self.list_tool.calls, [{"path": "."}])
        self.assertEqual(self.gateway.complete.await_count, 1)
        self.assertEqual(self.gateway.complete.await_args.args[1], "gpt-4o")
        self.assertEqual([(e.id, e.status) for e in events], [
            ("plan", StepStatus.COMPLETED),
            ("1", StepStatus.EXECUTING),
            ("1", StepStatus.COMPLETED),
        ])

    async def test_delete_denied(self):
        self.script(
            json.dumps({
                "goal": "Remove the temp folder",
                "steps": [{"id": "1", "description": "Delete the temp folder", "tool": "delete_file",
                           "parameters": {"path": "temp"}, "requiresApproval": True}],
            }),
            "I did not delete the temp folder because you declined.",
        )
        approve = AsyncMock(return_value=False)

        result = await self.agent.run("delete the temp folder", on_approval_needed=approve)

        approve.assert_awaited_once()
        self.assertEqual(self.delete_tool.calls, [])
        self.assertFalse(result.success)
        self.assertEqual((result.steps_completed, result.steps_failed), (0, 1))
        self.assertEqual(result.final_output, "I did not delete the temp folder because you declined.")
        self.assertEqual(self.gateway.complete.await_count, 2)

    async def test_approval_denied_without_callback(self):
        self.script(
            json.dumps({"steps": [{"id": "1", "tool": "delete_file", "parameters": {"path": "temp"},
                                   "requiresApproval": True}]}),
            "Nothing was deleted.",
        )
        result = await self.agent.run("delete the temp folder")
        self.assertEqual(self.delete_tool.calls, [])
        self.assertEqual(result.steps_failed, 1)

    async def test_conversation(self):
        self.script("Hi! I can list, read and change files for you.")
        result = await self.agent.run("hello", history=[{"role": "user", "content": "before"}])

        self.assertTrue(result.success)
        self.assertEqual(result.final_output, "Hi! I can list, read and change files for you.")
        self.assertTrue(result.plan.is_conversational)
        self.assertEqual(self.gateway.complete.await_count, 1)

    async def test_model_override(self):
        self.script("Hello.")
        await self.agent.run("hi", model_id="glm-4-flash")
        self.assertEqual(self.gateway.complete.await_args.args[1], "glm-4-flash")

    async def test_unreachable_model(self):
        self.gateway.complete.side_effect = [Completion(content="", error="Unsupported model: nope")]
        result = await self.agent.run("hi", model_id="nope")
        self.assertTrue(result.success)
        self.assertEqual(result.final_output, "I couldn't reach the language model: Unsupported model: nope")

    async def test_planning_crash_is_reported(self):
        self.agent.planner = MagicMock()
        self.agent.planner.create_plan = AsyncMock(side_effect=RuntimeError("boom"))
        result = await self.agent.run("anything")
        self.assertFalse(result.success)
        self.assertEqual(result.final_output, PLANNING_FAILED_MESSAGE)

    async def test_summary_crash_falls_back_to_counts(self):
        self.script(json.dumps({"steps": [{"id": "1", "tool": "list_directory", "parameters": {"path": "."}}]}))
        self.agent.summarizer = MagicMock()
        self.agent.summarizer.summarize = AsyncMock(side_effect=RuntimeError("boom"))
        result = await self.agent.run("list files")
        self.assertTrue(result.success)
        self.assertEqual(result.final_output, "Completed 1 steps, 0 failed")

    async def test_progress_callback_crash_on_plan_is_reported(self):
        self.script("Hello.")

        def on_progress(step, steps):
            raise ValueError("observer broke")

        result = await self.agent.run("hi", on_progress=on_progress)
        self.assertFalse(result.success)
        self.assertEqual(result.final_output, "Something went wrong while running the task: observer broke")

    def test_from_config(self):
        config = ToolPilotConfig(default_model="glm-4-flash", agent=AgentConfig(batch_size=2, serialize_approvals=True))
        agent = AutonomousAgent.from_config(config, self.gateway, self.catalog)
        self.assertEqual(agent.default_model, "glm-4-flash")
        self.assertEqual(agent.engine.batch_size, 2)
        self.assertTrue(agent.engine.serialize_approvals)
        self.assertEqual(agent.summarizer.model_threshold, 3)
        self.assertIs(agent.planner.config, config.agent)

    def test_from_config_adds_registry_approval_tools(self):
        deploy = MockTool("deploy_site", requires_approval=True)
        catalog = ToolRegistry([self.list_tool, deploy])
        config = ToolPilotConfig(default_model="gpt-4o", agent=AgentConfig(readonly_tools=["read_file", "deploy_site"]))
        agent = AutonomousAgent.from_config(config, self.gateway, catalog)

        self.assertIn("deploy_site", agent.planner.config.approval_tools)
        self.assertIn("delete_file", agent.planner.config.approval_tools)
        self.assertEqual(agent.planner.config.readonly_tools, ["read_file"])
        self.assertNotIn("deploy_site", config.agent.approval_tools)
