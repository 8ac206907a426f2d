"""Core step, plan and outcome definitions for plan execution.

Steps are immutable snapshots.  A status change produces a new ``AgentStep``
and the ``StepBoard`` of the running plan swaps it in under the same id, so
anything handed to an observer stays valid after later transitions.
"""

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterable, Iterator

from pydantic import BaseModel, ConfigDict, Field
from typing_extensions import Annotated

from toolpilot.exceptions import ExecutionError, InvalidStepTransitionError, PlanError, UnknownStepError


class StepStatus(str, Enum):
    """Status of a step's execution."""
    PENDING = "pending"
    APPROVED = "approved"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (StepStatus.COMPLETED, StepStatus.FAILED)


_ALLOWED_TRANSITIONS: dict[StepStatus, frozenset[StepStatus]] = {
    StepStatus.PENDING: frozenset({StepStatus.APPROVED, StepStatus.EXECUTING, StepStatus.FAILED}),
    StepStatus.APPROVED: frozenset({StepStatus.EXECUTING, StepStatus.FAILED}),
    StepStatus.EXECUTING: frozenset({StepStatus.COMPLETED, StepStatus.FAILED}),
    StepStatus.COMPLETED: frozenset(),
    StepStatus.FAILED: frozenset(),
}


class ToolResult(BaseModel):
    """Outcome of one tool invocation"""
    model_config = ConfigDict(frozen=True)

    success: Annotated[bool, Field(description="Whether the tool did what was asked")]
    output: Annotated[str, Field(description="Human readable output", default="")]
    error: Annotated[str | None, Field(description="Error message when unsuccessful", default=None)]
    data: Annotated[Any, Field(description="Structured payload, if any", default=None)]

    @classmethod
    def ok(cls, output: str, data: Any = None) -> 'ToolResult':
        return cls(success=True, output=output, data=data)

    @classmethod
    def fail(cls, error: str, output: str = "") -> 'ToolResult':
        return cls(success=False, output=output, error=error)


@dataclass(frozen=True)
class AgentStep:
    """Immutable snapshot of one planned tool invocation."""
    id: str
    description: str
    tool: str
    parameters: dict[str, Any] = field(default_factory=dict)
    status: StepStatus = StepStatus.PENDING
    result: ToolResult | None = None
    error: str | None = None
    dependencies: tuple[str, ...] | None = None
    can_parallel: bool | None = None

    def transition(self, status: StepStatus, *, result: ToolResult | None = None,
                   error: str | None = None) -> 'AgentStep':
        """Return a new snapshot moved to *status*.

        Raises:
            InvalidStepTransitionError: if the state machine does not allow the move,
                or a result is attached a second time.
        """
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidStepTransitionError(self.id, self.status.value, status.value)
        if result is not None and self.result is not None:
            raise InvalidStepTransitionError(self.id, self.status.value, f"{status.value} (result already attached)")
        changes: dict[str, Any] = {"status": status}
        if result is not None:
            changes["result"] = result
        if error is not None:
            changes["error"] = error
        return replace(self, **changes)

    @property
    def succeeded(self) -> bool:
        return self.status == StepStatus.COMPLETED

    def __str__(self) -> str:
        symbol = {
            StepStatus.COMPLETED: "✓",
            StepStatus.FAILED: "✗",
            StepStatus.EXECUTING: "▶",
        }.get(self.status, "○")
        return f"{symbol} [{self.tool}] {self.description}"


class StepBoard:
    """The steps of one plan addressed by id, kept in plan order.

    The board is the only mutable piece of execution state; it holds the
    latest snapshot per id and hands out immutable tuples of them.
    """

    def __init__(self, steps: Iterable[AgentStep]):
        self._steps: dict[str, AgentStep] = {}
        for step in steps:
            if step.id in self._steps:
                raise ExecutionError(f"Duplicate step id '{step.id}'")
            self._steps[step.id] = step

    def __getitem__(self, step_id: str) -> AgentStep:
        try:
            return self._steps[step_id]
        except KeyError:
            raise UnknownStepError(step_id) from None

    def __contains__(self, step_id: object) -> bool:
        return step_id in self._steps

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[AgentStep]:
        return iter(self.snapshot())

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(self._steps)

    def apply(self, step: AgentStep) -> AgentStep:
        """Replace the snapshot stored under ``step.id``."""
        if step.id not in self._steps:
            raise UnknownStepError(step.id)
        self._steps[step.id] = step
        return step

    def transition(self, step_id: str, status: StepStatus, *, result: ToolResult | None = None,
                   error: str | None = None) -> AgentStep:
        return self.apply(self[step_id].transition(status, result=result, error=error))

    def snapshot(self) -> tuple[AgentStep, ...]:
        return tuple(self._steps.values())

    def count(self, status: StepStatus) -> int:
        return sum(1 for step in self._steps.values() if step.status == status)

    def terminal_count(self) -> int:
        return sum(1 for step in self._steps.values() if step.status.terminal)


@dataclass(frozen=True)
class ExecutionPlan:
    """A goal plus ordered steps, or a conversational turn with no steps."""
    goal: str
    steps: tuple[AgentStep, ...] = ()
    requires_approval: tuple[str, ...] = ()
    conversational_response: str | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self):
        step_ids: set[str] = set()
        for step in self.steps:
            if step.id in step_ids:
                raise PlanError(f"Duplicate step id '{step.id}'")
            if step.status != StepStatus.PENDING:
                raise PlanError(f"Step '{step.id}' must start pending, not {step.status.value}")
            step_ids.add(step.id)
        unknown = [step_id for step_id in self.requires_approval if step_id not in step_ids]
        if unknown:
            raise PlanError(f"Approval listed for unknown steps: {', '.join(unknown)}")
        if self.steps and self.conversational_response is not None:
            raise PlanError("A plan with steps can not carry a conversational response")
        if not self.steps and self.conversational_response is None:
            raise PlanError("A plan without steps needs a conversational response")

    @classmethod
    def conversational(cls, response: str, goal: str = "") -> 'ExecutionPlan':
        return cls(goal=goal, conversational_response=response)

    @property
    def estimated_steps(self) -> int:
        return len(self.steps)

    @property
    def is_conversational(self) -> bool:
        return not self.steps

    def needs_approval(self, step_id: str) -> bool:
        return step_id in self.requires_approval

    def __str__(self) -> str:
        if self.is_conversational:
            return f"ExecutionPlan(conversational): {self.goal}"
        lines = [f"ExecutionPlan: {self.goal}"]
        for i, step in enumerate(self.steps, 1):
            gate = " (approval)" if self.needs_approval(step.id) else ""
            lines.append(f"  {i}. {step}{gate}")
        return "\n".join(lines)


@dataclass(frozen=True)
class ExecutionOutcome:
    """What ``execute_task`` reports back."""
    success: bool
    steps_completed: int
    steps_failed: int
    final_output: str
    steps: tuple[AgentStep, ...] = ()
    error: str | None = None


@dataclass(frozen=True)
class TaskResult:
    """Final report for one user request."""
    success: bool
    final_output: str
    steps_completed: int = 0
    steps_failed: int = 0
    plan: ExecutionPlan | None = None
    steps: tuple[AgentStep, ...] = ()
