"""Agent package: plan compilation, batched execution and reporting of tool-driven tasks."""

# Façade
from .agent import AutonomousAgent

# Pipeline stages
from .planning import PlanCompiler, SkillSource
from .execution import ExecutionEngine
from .summary import Summarizer
from .repair import JsonRepairPipeline

# Tools and approval
from .tools import BaseTool, ExternalToolBridge, ToolCatalog, ToolParameter, ToolRegistry
from .approval import ChannelApprovalGate, SerializedApprovalGate
from .channel import AgentChannel, AgentMessageLevel, ShellChannel

# Progress reporting
from .reporting import BackgroundTaskTracker, LoggingTaskReporter, TaskProgress, TaskReporter, TaskStatus

# Data model
from .types import AgentStep, ExecutionOutcome, ExecutionPlan, StepBoard, StepStatus, TaskResult, ToolResult

__all__ = [
    "AutonomousAgent",

    "PlanCompiler",
    "SkillSource",
    "ExecutionEngine",
    "Summarizer",
    "JsonRepairPipeline",

    "BaseTool",
    "ExternalToolBridge",
    "ToolCatalog",
    "ToolParameter",
    "ToolRegistry",
    "ChannelApprovalGate",
    "SerializedApprovalGate",
    "AgentChannel",
    "AgentMessageLevel",
    "ShellChannel",

    "BackgroundTaskTracker",
    "LoggingTaskReporter",
    "TaskProgress",
    "TaskReporter",
    "TaskStatus",

    "AgentStep",
    "ExecutionOutcome",
    "ExecutionPlan",
    "StepBoard",
    "StepStatus",
    "TaskResult",
    "ToolResult",
]
