import logging
from typing import Any, Sequence

from toolpilot.llm.gateway import Completion, LanguageModelGateway, TokenCallback
from toolpilot.template import TemplateEnvironment

logger = logging.getLogger(__name__)


class LLMMixin:
    """Mixin that provides LLM template calling functionality"""

    def __init__(self, template_env: TemplateEnvironment, gateway: LanguageModelGateway):
        self.template_env = template_env
        self.gateway = gateway

    def render_messages(
            self,
            template_name: str,
            user_question: str | None = None,
            history: Sequence[dict] = (),
            **kwargs: Any,
    ) -> list[dict]:
        """Render *template_name* as the system prompt, followed by history and the user turn."""
        template = self.template_env.load_template(template_name)
        prompt = template.render(**kwargs)
        logger.debug('\n' + prompt)
        logger.debug('───────────────────────────────────────────────────────────────────────────────')
        return [
            {'role': 'system', 'content': prompt},
            *history,
            {'role': 'user', 'content': user_question or 'Please answer the question.'},
        ]

    async def call_template(
            self,
            template_name: str,
            model_id: str,
            user_question: str | None = None,
            history: Sequence[dict] = (),
            on_token: TokenCallback | None = None,
            **kwargs: Any,
    ) -> Completion:
        """Call the gateway with a rendered template and return the collected completion."""
        logger.info(f"Calling template: {template_name} with model={model_id} ─────────────────")
        messages = self.render_messages(template_name, user_question, history, **kwargs)
        completion = await self.gateway.complete(messages, model_id, on_token=on_token)
        logger.info(f"Received response from LLM for template {template_name}")
        logger.info('\n' + completion.content)
        logger.info('───────────────────────────────────────────────────────────────────────────────')
        return completion
