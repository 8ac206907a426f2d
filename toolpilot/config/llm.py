import os
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, TypeAdapter
from typing_extensions import Annotated, Literal


class ChatLLMType(str, Enum):
    AzureOpenAI = "azure_openai"
    OpenAI = "openai"
    DeepSeek = "deepseek"


class OpenAIChatConfig(BaseModel):
    """A model behind the OpenAI chat completions API or a compatible server.

    Local runtimes such as llama.cpp or vLLM are configured with this type
    and their own ``endpoint``.
    """
    type: Literal[ChatLLMType.OpenAI]
    model: Annotated[str, Field(description="Model name sent with each request")]
    endpoint: Annotated[str | None, Field(
        description="Base URL of a compatible server, the public API when unset",
        default=None,
    )]
    api_key: Annotated[str | None, Field(default_factory=lambda: os.environ.get("OPENAI_API_KEY"))]
    timeout: Annotated[float, Field(description="Seconds before a request is abandoned", default=180.0)]
    max_tokens: Annotated[int | None, Field(default=4096)]
    temperature: Annotated[float | None, Field(default=0.0, ge=0.0, le=2.0)]
    top_p: Annotated[float | None, Field(default=1.0, ge=0.0, le=1.0)]
    extra_params: Annotated[dict[str, Any], Field(
        description="Provider specific request fields, passed through unchanged",
        default_factory=dict,
    )]

    def chat_params(self) -> dict:
        """Request fields for every completion call, unset sampling options left out."""
        params = {
            'max_tokens': self.max_tokens,
            'temperature': self.temperature,
            'top_p': self.top_p,
        }
        return {**{k: v for k, v in params.items() if v is not None}, **self.extra_params}


class AzureOpenAIChatConfig(OpenAIChatConfig):
    type: Literal[ChatLLMType.AzureOpenAI]
    endpoint: Annotated[str, Field(description="Azure resource URL")]
    deployment: Annotated[str, Field(description="Name of the model deployment")]
    api_version: Annotated[str, Field(description="Azure OpenAI REST API version, e.g. 2024-06-01")]


class DeepSeekChatConfig(OpenAIChatConfig):
    type: Literal[ChatLLMType.DeepSeek]
    endpoint: Annotated[str, Field(default="https://api.deepseek.com")]
    api_key: Annotated[str | None, Field(default_factory=lambda: os.environ.get("DEEPSEEK_API_KEY"))]


ChatConfig = Annotated[AzureOpenAIChatConfig | OpenAIChatConfig | DeepSeekChatConfig, Field(discriminator="type")]


def validate_chat_config(data: dict) -> ChatConfig:
    return TypeAdapter(ChatConfig).validate_python(data)
