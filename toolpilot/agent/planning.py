import json
import logging
from typing import Any, Protocol, Sequence

from toolpilot.agent.repair import JsonRepairPipeline, looks_truncated, strip_code_fences
from toolpilot.agent.types import AgentStep, ExecutionPlan
from toolpilot.config.agent import AgentConfig
from toolpilot.exceptions import MalformedPlanError
from toolpilot.llm.gateway import LanguageModelGateway
from toolpilot.llm.mixin import LLMMixin
from toolpilot.template import TemplateEnvironment
from toolpilot.tracer import SpanKind, get_current_span, trace_stage

logger = logging.getLogger(__name__)

ALTERNATE_RESPONSE_FIELDS = ('response', 'message', 'text', 'content', 'answer')

NO_RESPONSE_MESSAGE = "I didn't get a response from the language model. Please try again."

TRUNCATED_PLAN_MESSAGE = (
    "My response was cut off before the plan was complete. "
    "Could you break this task into smaller parts, for example one file at a time?"
)

UNREADABLE_PLAN_MESSAGE = "I couldn't turn that into a plan I can run. Could you rephrase the request?"


def unreachable_model_message(error: str) -> str:
    return f"I couldn't reach the language model: {error}"


def find_json_span(text: str) -> tuple[int, int] | None:
    """Span from the first ``{`` through the last ``}`` after it, if any."""
    start = text.find('{')
    if start == -1:
        return None
    end = text.rfind('}')
    if end < start:
        return None
    return start, end + 1


def sanitize_history(history: Sequence[dict], limit: int | None = None) -> list[dict]:
    """Keep user and assistant turns with non-blank content, most recent *limit* of them."""
    kept = [
        {'role': message['role'], 'content': message['content']}
        for message in history
        if isinstance(message, dict)
        and message.get('role') in ('user', 'assistant')
        and isinstance(message.get('content'), str)
        and message['content'].strip()
    ]
    if limit is not None:
        kept = kept[-limit:] if limit else []
    return kept


def _is_true(flag: Any) -> bool:
    return flag is True or (isinstance(flag, str) and flag.strip().lower() == 'true')


class SkillSource(Protocol):
    """Provides how-to guides relevant to a request for the planning prompt."""

    async def relevant_for(self, request: str, limit: int) -> str:
        """Up to *limit* guides rendered as prompt text, blank when none apply."""
        ...


class PlanCompiler(LLMMixin):
    """Turns a request into an ``ExecutionPlan`` with a single model call.

    The model either answers in free text, which becomes a conversational
    plan, or with a JSON object holding a goal and steps.  Model and JSON
    problems never raise out of ``create_plan``; they end up as a
    conversational plan carrying a plain sentence.
    """
    TEMPLATE_NAME = 'create_plan.jinja2'

    def __init__(self, gateway: LanguageModelGateway, template_env: TemplateEnvironment | None = None,
                 config: AgentConfig | None = None, repair_pipeline: JsonRepairPipeline | None = None,
                 skills: SkillSource | None = None):
        super().__init__(template_env or TemplateEnvironment(), gateway)
        self.config = config or AgentConfig()
        self.repair_pipeline = repair_pipeline or JsonRepairPipeline(self.config.tool_aliases)
        self.skills = skills

    @trace_stage(SpanKind.PLAN, "create_plan")
    async def create_plan(self, request: str, tool_catalog_text: str, model_id: str,
                          history: Sequence[dict] = ()) -> ExecutionPlan:
        completion = await self.call_template(
            self.TEMPLATE_NAME,
            model_id,
            user_question=request,
            history=sanitize_history(history, self.config.history_limit),
            tools=tool_catalog_text,
            approval_tools=self.config.approval_tools,
            readonly_tools=self.config.readonly_tools,
            skills=await self.relevant_skills(request),
        )
        if not completion.content.strip():
            if completion.error:
                plan = ExecutionPlan.conversational(unreachable_model_message(completion.error), goal=request)
            else:
                plan = ExecutionPlan.conversational(NO_RESPONSE_MESSAGE, goal=request)
        else:
            plan = self.compile(completion.content, request, repair=self.config.needs_repair(model_id))

        span = get_current_span()
        if span is not None:
            span.set_attribute("conversational", plan.is_conversational)
            span.set_attribute("estimated_steps", plan.estimated_steps)
        logger.info(f"Plan created:\n{plan}")
        return plan

    async def relevant_skills(self, request: str) -> str:
        if self.skills is None:
            return ''
        try:
            guides = await self.skills.relevant_for(request, self.config.skill_limit)
        except Exception:
            logger.warning("Skill lookup failed, planning without guides", exc_info=True)
            return ''
        return (guides or '').strip()

    def compile(self, text: str, request: str, repair: bool = False) -> ExecutionPlan:
        """Classify a full model response and build the plan from it."""
        span = find_json_span(text)
        if span is None:
            opened = strip_code_fences(text).strip()
            if opened.startswith('{') and looks_truncated(opened):
                logger.warning("Plan JSON was cut off before its first closing brace")
                return ExecutionPlan.conversational(TRUNCATED_PLAN_MESSAGE, goal=request)
            return ExecutionPlan.conversational(text, goal=request)

        start, end = span
        candidate = text[start:end]
        if repair:
            candidate, applied = self.repair_pipeline.run(candidate)
            if applied:
                logger.info(f"Plan JSON repaired with: {', '.join(applied)}")

        parsed: Any = None
        try:
            parsed = json.loads(candidate)
            steps, requires_approval = self.parse_plan_object(parsed)
        except (json.JSONDecodeError, RecursionError) as e:
            logger.warning(f"Plan JSON could not be parsed, answering conversationally: {e}")
            return ExecutionPlan.conversational(self._unparsable_text(text, span), goal=request)
        except MalformedPlanError as e:
            logger.info(f"{e}, answering conversationally")
            return ExecutionPlan.conversational(self._fallback_text(text, span, parsed), goal=request)

        goal = parsed.get('goal')
        if not isinstance(goal, str) or not goal.strip():
            goal = request
        return ExecutionPlan(goal=goal, steps=tuple(steps), requires_approval=tuple(requires_approval))

    def parse_plan_object(self, parsed: Any) -> tuple[list[AgentStep], list[str]]:
        if not isinstance(parsed, dict) or not isinstance(parsed.get('steps'), list):
            raise MalformedPlanError("response JSON carries no step list")
        steps, requires_approval = self.normalize_steps(parsed['steps'])
        if not steps:
            raise MalformedPlanError("plan has no usable steps")
        return steps, requires_approval

    def normalize_steps(self, raw_steps: list) -> tuple[list[AgentStep], list[str]]:
        steps: list[AgentStep] = []
        requires_approval: list[str] = []
        seen: set[str] = set()
        for entry in raw_steps:
            if not isinstance(entry, dict):
                logger.warning(f"Dropping plan step that is not an object: {entry!r}")
                continue
            position = len(steps) + 1
            step_id = self._unique_id(entry.get('id'), position, seen)
            seen.add(step_id)

            tool = entry.get('tool')
            tool = tool.strip() if isinstance(tool, str) else ''
            description = entry.get('description')
            if not isinstance(description, str) or not description.strip():
                description = tool
            parameters = entry.get('parameters')
            if not isinstance(parameters, dict):
                parameters = {}
            dependencies = entry.get('dependencies')
            can_parallel = entry.get('canParallel', entry.get('can_parallel'))

            steps.append(AgentStep(
                id=step_id,
                description=description,
                tool=tool,
                parameters=parameters,
                dependencies=tuple(str(d) for d in dependencies) if isinstance(dependencies, list) else None,
                can_parallel=can_parallel if isinstance(can_parallel, bool) else None,
            ))

            flag = entry.get('requiresApproval', entry.get('requires_approval'))
            if _is_true(flag) or (self.config.enforce_approval_tools and tool in self.config.approval_tools):
                requires_approval.append(step_id)
        return steps, requires_approval

    @staticmethod
    def _unique_id(raw_id: Any, position: int, seen: set[str]) -> str:
        step_id = str(raw_id).strip() if raw_id is not None else ''
        if not step_id:
            step_id = f"step_{position}"
        if step_id not in seen:
            return step_id
        candidate = f"{step_id}_{position}"
        suffix = position
        while candidate in seen:
            suffix += 1
            candidate = f"{step_id}_{suffix}"
        return candidate

    @staticmethod
    def _unparsable_text(text: str, span: tuple[int, int]) -> str:
        start, end = span
        if looks_truncated(text[start:end]):
            return TRUNCATED_PLAN_MESSAGE
        return text[:start].strip() or text[end:].strip() or UNREADABLE_PLAN_MESSAGE

    @staticmethod
    def _fallback_text(text: str, span: tuple[int, int], parsed: Any) -> str:
        start, end = span
        before = text[:start].strip()
        if before:
            return before
        after = text[end:].strip()
        if after:
            return after
        if isinstance(parsed, dict):
            for key in ALTERNATE_RESPONSE_FIELDS:
                value = parsed.get(key)
                if isinstance(value, str) and value.strip():
                    return value.strip()
        return text
