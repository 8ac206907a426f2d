import logging

from toolpilot.config.llm import ChatConfig
from toolpilot.config.tool_pilot import ToolPilotConfig
from toolpilot.exceptions import NoChatLLMConfigError
from .gateway import ChatGateway
from .oai import OpenAIChatLLM
from .types import ChatLLM

logger = logging.getLogger(__name__)


def build_chat_llm(config: ChatConfig) -> ChatLLM:
    # every supported provider speaks the OpenAI wire protocol
    return OpenAIChatLLM.from_config(config)


def build_gateway(config: ToolPilotConfig) -> ChatGateway:
    """Build a gateway holding one adapter per configured model id."""
    if not config.chat_llms:
        raise NoChatLLMConfigError()
    models = {model_id: build_chat_llm(chat_config) for model_id, chat_config in config.chat_llms.items()}
    logger.debug(f"Chat models configured: {', '.join(models)}")
    default = models.get(config.default_model) if config.default_model else None
    return ChatGateway(models, default=default)
