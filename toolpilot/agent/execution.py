"""Batched, approval-gated execution of an ``ExecutionPlan``.

Steps run in plan-order batches.  Within a batch every step runs
concurrently and the batch is joined all-settled, so one failing step never
stops its siblings or later batches.  Each status change is published as a
fresh snapshot through ``on_progress``.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Callable, Iterator, Sequence

from toolpilot.agent.approval import ApprovalCallback, SerializedApprovalGate, deny_all
from toolpilot.agent.reporting import TaskProgress, TaskReporter, percent_done
from toolpilot.agent.tools import ToolCatalog
from toolpilot.agent.types import AgentStep, ExecutionOutcome, ExecutionPlan, StepBoard, StepStatus, ToolResult
from toolpilot.tracer import SpanKind, get_current_span, trace_stage, trace_step

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[AgentStep, tuple[AgentStep, ...]], None]


def batched(items: Sequence[str], size: int) -> Iterator[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def failure_message(reason: str) -> str:
    return f"Something went wrong while running the task: {reason}"


class ExecutionEngine:
    def __init__(self, catalog: ToolCatalog, batch_size: int = 5, reporter: TaskReporter | None = None,
                 serialize_approvals: bool = False):
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.catalog = catalog
        self.batch_size = batch_size
        self.reporter = reporter
        self.serialize_approvals = serialize_approvals

    @trace_stage(SpanKind.EXECUTION, "execute_task")
    async def execute_task(self, plan: ExecutionPlan, on_progress: ProgressCallback | None = None,
                           on_approval_needed: ApprovalCallback | None = None) -> ExecutionOutcome:
        if plan.is_conversational:
            return ExecutionOutcome(
                success=True,
                steps_completed=0,
                steps_failed=0,
                final_output=plan.conversational_response or "",
            )

        approve = on_approval_needed or deny_all
        if self.serialize_approvals:
            approve = SerializedApprovalGate(approve)

        board: StepBoard | None = None
        try:
            board = StepBoard(plan.steps)
            self._report('start', plan, board.snapshot(), plan.goal)
            batches = list(batched(board.ids, self.batch_size))
            for index, batch in enumerate(batches, 1):
                logger.info(f"Running batch {index}/{len(batches)}: {', '.join(batch)}")
                results = await asyncio.gather(
                    *(self._run_step(step_id, plan, board, on_progress, approve) for step_id in batch),
                    return_exceptions=True,
                )
                for step_id, result in zip(batch, results):
                    if isinstance(result, BaseException):
                        logger.error(f"Step {step_id} crashed: {result}", exc_info=result)
                        self._mark_crashed(board, step_id, result)
                self._report('update', plan, board.snapshot(), board[batch[-1]].description)
        except Exception as e:
            logger.exception(f"Execution of plan {plan.id} stopped unexpectedly")
            reason = str(e) or type(e).__name__
            steps = board.snapshot() if board is not None else plan.steps
            self._report('fail', plan, steps, plan.goal, error=reason)
            return ExecutionOutcome(
                success=False,
                steps_completed=sum(1 for step in steps if step.status == StepStatus.COMPLETED),
                steps_failed=sum(1 for step in steps if step.status == StepStatus.FAILED),
                final_output=failure_message(reason),
                steps=steps,
                error=reason,
            )

        completed = board.count(StepStatus.COMPLETED)
        failed = board.count(StepStatus.FAILED)
        logger.info(f"Plan {plan.id} finished: {completed} completed, {failed} failed")
        self._report('complete', plan, board.snapshot(), plan.goal)

        span = get_current_span()
        if span is not None:
            span.set_attribute("steps_completed", completed)
            span.set_attribute("steps_failed", failed)
        return ExecutionOutcome(
            success=failed == 0,
            steps_completed=completed,
            steps_failed=failed,
            final_output=f"Completed {completed} steps, {failed} failed",
            steps=board.snapshot(),
        )

    @trace_step()
    async def _run_step(self, step_id: str, plan: ExecutionPlan, board: StepBoard,
                        on_progress: ProgressCallback | None, approve: ApprovalCallback) -> AgentStep:
        step = board[step_id]
        if plan.needs_approval(step_id):
            try:
                approved = await approve(step)
                error = None
            except Exception as e:
                logger.warning(f"Approval for step {step_id} failed, treating as denied: {e}", exc_info=True)
                approved, error = False, str(e) or type(e).__name__
            if not approved:
                logger.info(f"Step {step_id} was not approved")
                step = board.transition(step_id, StepStatus.FAILED, error=error)
                self._notify(on_progress, step, board)
                return step
            step = board.transition(step_id, StepStatus.APPROVED)
            self._notify(on_progress, step, board)

        step = board.transition(step_id, StepStatus.EXECUTING)
        self._notify(on_progress, step, board)
        logger.info(f"Executing step {step_id}: {step.tool}")

        try:
            result = await self.catalog.execute(step.tool, dict(step.parameters))
            if not isinstance(result, ToolResult):
                raise TypeError(f"Unexpected tool result type: {type(result).__name__}")
        except Exception as e:
            logger.warning(f"Step {step_id} raised: {e}", exc_info=True)
            step = board.transition(step_id, StepStatus.FAILED, error=str(e) or type(e).__name__)
        else:
            if result.success:
                step = board.transition(step_id, StepStatus.COMPLETED, result=result)
            else:
                logger.info(f"Step {step_id} failed: {result.error}")
                step = board.transition(step_id, StepStatus.FAILED, result=result,
                                        error=result.error or "The tool reported a failure")
        self._notify(on_progress, step, board)
        return step

    @staticmethod
    def _notify(on_progress: ProgressCallback | None, step: AgentStep, board: StepBoard):
        if on_progress is not None:
            on_progress(step, board.snapshot())

    @staticmethod
    def _mark_crashed(board: StepBoard, step_id: str, error: BaseException):
        step = board[step_id]
        reason = str(error) or type(error).__name__
        if not step.status.terminal:
            board.apply(step.transition(StepStatus.FAILED, error=reason))
        elif step.status == StepStatus.COMPLETED and step.result is None:
            # completed without a tool result means the tool never ran
            board.apply(replace(step, status=StepStatus.FAILED, error=reason))

    def _report(self, event: str, plan: ExecutionPlan, steps: tuple[AgentStep, ...], label: str,
                error: str | None = None):
        if self.reporter is None:
            return
        progress = TaskProgress(
            task_id=plan.id,
            total_steps=len(steps),
            current_step_label=label,
            progress_percent=percent_done(steps),
            steps=steps,
        )
        match event:
            case 'start':
                self.reporter.start(progress)
            case 'update':
                self.reporter.update(progress)
            case 'complete':
                self.reporter.complete(progress)
            case 'fail':
                self.reporter.fail(progress, error or "")
