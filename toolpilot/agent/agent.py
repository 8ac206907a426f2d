import logging
from typing import Sequence

from toolpilot.agent.approval import ApprovalCallback
from toolpilot.agent.execution import ExecutionEngine, ProgressCallback, failure_message
from toolpilot.agent.planning import PlanCompiler, SkillSource
from toolpilot.agent.reporting import TaskReporter
from toolpilot.agent.summary import Summarizer
from toolpilot.agent.tools import ToolCatalog, ToolRegistry
from toolpilot.agent.types import AgentStep, ExecutionPlan, StepStatus, TaskResult
from toolpilot.config.tool_pilot import ToolPilotConfig
from toolpilot.llm.gateway import LanguageModelGateway, TokenCallback
from toolpilot.template import TemplateEnvironment
from toolpilot.tracer import get_current_span, trace_task

logger = logging.getLogger(__name__)

PLANNING_FAILED_MESSAGE = "I ran into a problem while planning this task. Please try again."


def plan_step(plan: ExecutionPlan) -> AgentStep:
    """Marker step announcing the plan to progress observers."""
    if plan.is_conversational:
        description = "Answered without running any tools"
    else:
        description = f"Planned {plan.estimated_steps} steps: {plan.goal}"
    return AgentStep(id='plan', description=description, tool='plan', status=StepStatus.COMPLETED)


class AutonomousAgent:
    """Runs one request end to end: plan, execute, summarize.

    ``run`` never raises; every failure is reported as an unsuccessful
    ``TaskResult`` carrying a sentence meant for the user.
    """

    def __init__(self, catalog: ToolCatalog, planner: PlanCompiler, engine: ExecutionEngine,
                 summarizer: Summarizer, default_model: str):
        self.catalog = catalog
        self.planner = planner
        self.engine = engine
        self.summarizer = summarizer
        self.default_model = default_model

    @classmethod
    def from_config(cls, config: ToolPilotConfig, gateway: LanguageModelGateway, catalog: ToolCatalog,
                    reporter: TaskReporter | None = None, skills: SkillSource | None = None) -> 'AutonomousAgent':
        template_env = TemplateEnvironment(default_lang=config.template_lang, override_dir=config.template_dir)
        agent_config = config.agent
        if isinstance(catalog, ToolRegistry):
            extra = [name for name in catalog.approval_required() if name not in agent_config.approval_tools]
            if extra:
                logger.debug(f"Tools flagged for approval by the registry: {', '.join(extra)}")
                agent_config = agent_config.model_copy(update={
                    'approval_tools': [*agent_config.approval_tools, *extra],
                    'readonly_tools': [name for name in agent_config.readonly_tools if name not in extra],
                })
        return cls(
            catalog=catalog,
            planner=PlanCompiler(gateway, template_env, agent_config, skills=skills),
            engine=ExecutionEngine(
                catalog,
                batch_size=agent_config.batch_size,
                reporter=reporter,
                serialize_approvals=agent_config.serialize_approvals,
            ),
            summarizer=Summarizer(gateway, template_env, model_threshold=agent_config.summary_model_threshold),
            default_model=config.resolve_model(),
        )

    @trace_task("run")
    async def run(self, request: str, model_id: str | None = None, on_progress: ProgressCallback | None = None,
                  on_approval_needed: ApprovalCallback | None = None, history: Sequence[dict] = (),
                  on_token: TokenCallback | None = None) -> TaskResult:
        model_id = model_id or self.default_model
        span = get_current_span()
        if span is not None:
            span.set_attribute("request", request)
            span.set_attribute("model", model_id)

        try:
            plan = await self.planner.create_plan(request, self.catalog.describe_for_prompt(), model_id, history)
        except Exception:
            logger.exception("Planning failed")
            return TaskResult(success=False, final_output=PLANNING_FAILED_MESSAGE)

        try:
            return await self._carry_out(request, plan, model_id, on_progress, on_approval_needed, on_token)
        except Exception as e:
            logger.exception(f"Running plan {plan.id} failed")
            return TaskResult(success=False, final_output=failure_message(str(e) or type(e).__name__), plan=plan)

    async def _carry_out(self, request: str, plan: ExecutionPlan, model_id: str,
                         on_progress: ProgressCallback | None, on_approval_needed: ApprovalCallback | None,
                         on_token: TokenCallback | None) -> TaskResult:
        if on_progress is not None:
            marker = plan_step(plan)
            on_progress(marker, (marker, *plan.steps))

        if plan.is_conversational:
            return TaskResult(success=True, final_output=plan.conversational_response or "", plan=plan)

        outcome = await self.engine.execute_task(plan, on_progress, on_approval_needed)
        if outcome.error is not None:
            return TaskResult(
                success=False,
                final_output=outcome.final_output,
                steps_completed=outcome.steps_completed,
                steps_failed=outcome.steps_failed,
                plan=plan,
                steps=outcome.steps,
            )

        try:
            summary = await self.summarizer.summarize(request, outcome.steps, model_id, on_token=on_token)
        except Exception:
            logger.exception("Summarizing failed")
            summary = outcome.final_output

        return TaskResult(
            success=outcome.success,
            final_output=summary,
            steps_completed=outcome.steps_completed,
            steps_failed=outcome.steps_failed,
            plan=plan,
            steps=outcome.steps,
        )
