from typing import AsyncIterator

from openai import AsyncAzureOpenAI, AsyncOpenAI

from toolpilot.config.llm import AzureOpenAIChatConfig, OpenAIChatConfig, DeepSeekChatConfig
from toolpilot.llm.types import AsyncOpenAIClient, ChatLLM


class OpenAIChatLLM(ChatLLM):
    def __init__(
            self,
            client: AsyncOpenAIClient,
            model: str,
            *,
            chat_params: dict | None = None,
    ):
        self.client = client
        self.model = model
        self.chat_params: dict = chat_params or {}

    @classmethod
    def from_config(cls, config: AzureOpenAIChatConfig | OpenAIChatConfig | DeepSeekChatConfig) -> 'OpenAIChatLLM':
        if isinstance(config, AzureOpenAIChatConfig):
            client = AsyncAzureOpenAI(
                azure_endpoint=config.endpoint,
                azure_deployment=config.deployment,
                api_version=config.api_version,
                api_key=config.api_key,
                timeout=config.timeout,
            )
        else:
            client = AsyncOpenAI(
                base_url=config.endpoint,
                api_key=config.api_key,
                timeout=config.timeout,
            )
        return cls(client, config.model, chat_params=config.chat_params())

    async def stream(self, messages: list[dict], **params) -> AsyncIterator[str]:
        """
        Stream a chat completion from an OpenAI compatible endpoint

        Args:
            messages: List of message dictionaries with 'role' and 'content'
            **params: Additional parameters for the chat completion API

        Returns:
            Async iterator over the content deltas
        """
        resp = await self.client.chat.completions.create(
            messages=messages,
            model=self.model,
            stream=True,
            **{**self.chat_params, **params},
        )
        async for chunk in resp:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                yield delta
