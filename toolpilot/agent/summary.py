import logging
from typing import Sequence

from toolpilot.agent.types import AgentStep
from toolpilot.llm.gateway import LanguageModelGateway, TokenCallback
from toolpilot.llm.mixin import LLMMixin
from toolpilot.template import TemplateEnvironment
from toolpilot.tracer import SpanKind, trace_stage

logger = logging.getLogger(__name__)

NOTHING_RUN_MESSAGE = "No steps were run."


def count_summary(completed: int, failed: int) -> str:
    return f"Completed {completed} steps, {failed} failed"


class Summarizer(LLMMixin):
    """Writes the final plain-language report of an executed plan.

    Short clean runs are summarized from the step descriptions alone; longer
    runs or runs with failures get one model call.
    """
    TEMPLATE_NAME = 'summarize_steps.jinja2'

    def __init__(self, gateway: LanguageModelGateway, template_env: TemplateEnvironment | None = None,
                 model_threshold: int = 3):
        super().__init__(template_env or TemplateEnvironment(), gateway)
        self.model_threshold = model_threshold

    @trace_stage(SpanKind.SUMMARY, "summarize")
    async def summarize(self, request: str, steps: Sequence[AgentStep], model_id: str,
                        on_token: TokenCallback | None = None) -> str:
        finished = [step for step in steps if step.status.terminal]
        if not finished:
            return NOTHING_RUN_MESSAGE
        completed = [step for step in finished if step.succeeded]
        failed = [step for step in finished if not step.succeeded]

        if not failed and len(completed) < self.model_threshold:
            return '. '.join(step.description for step in completed)

        completion = await self.call_template(
            self.TEMPLATE_NAME,
            model_id,
            user_question=request,
            on_token=on_token,
            request=request,
            steps=[{'description': step.description, 'success': step.succeeded} for step in finished],
        )
        summary = completion.content.strip()
        if summary:
            return summary
        logger.warning(f"Summary model returned nothing ({completion.error}), using step counts")
        return count_summary(len(completed), len(failed))
