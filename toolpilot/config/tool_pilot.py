import logging

from pyaml_env import parse_config as parse_config_with_env
from pydantic import BaseModel, Field, ValidationError
from typing_extensions import Annotated

from toolpilot.config.agent import AgentConfig
from toolpilot.config.llm import ChatConfig
from toolpilot.config.tool import ToolConfig
from toolpilot.exceptions import ConfigError

logger = logging.getLogger(__name__)


class ToolPilotConfig(BaseModel):
    chat_llms: Annotated[dict[str, ChatConfig], Field(
        description="Chat models addressable by model id",
        default_factory=dict,
    )]
    default_model: Annotated[str | None, Field(
        description="Model id used when a request does not name one",
        default=None,
    )]
    agent: Annotated[AgentConfig, Field(default_factory=AgentConfig)]
    tools: Annotated[dict[str, ToolConfig], Field(
        description="Tools registered in the local catalog",
        default_factory=dict,
    )]
    template_lang: Annotated[str | None, Field(default=None)]
    template_dir: Annotated[str | None, Field(
        description="Directory of <lang>/ folders whose prompt templates shadow the packaged ones",
        default=None,
    )]
    trace_dir: Annotated[str | None, Field(
        description="Directory for YAML trace files, tracing is off when unset",
        default=None,
    )]

    def resolve_model(self, model_id: str | None = None) -> str:
        model_id = model_id or self.default_model
        if model_id:
            return model_id
        if len(self.chat_llms) == 1:
            return next(iter(self.chat_llms))
        raise ConfigError("No model id given and no default_model configured")


def load_config(path: str) -> ToolPilotConfig:
    """Load a YAML config file, expanding ``${VAR}`` environment variables in values."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = parse_config_with_env(data=f, tag=None)
    except OSError as e:
        raise ConfigError(f"Can not read config file {path}: {e}") from e
    try:
        config = ToolPilotConfig.model_validate(data or {})
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e
    logger.debug(f"Loaded config: {config}")
    return config
