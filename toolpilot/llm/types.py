from abc import ABC, abstractmethod
from typing import AsyncIterator

from openai import AsyncAzureOpenAI, AsyncOpenAI

AsyncOpenAIClient = AsyncAzureOpenAI | AsyncOpenAI


class ChatLLM(ABC):
    """A chat model that yields its reply as text chunks."""

    @abstractmethod
    def stream(self, messages: list[dict], **params) -> AsyncIterator[str]:
        """Yield the reply to *messages* chunk by chunk; *params* go to the provider call."""
        ...

    async def chat(self, messages: list[dict], **params) -> str:
        return ''.join([chunk async for chunk in self.stream(messages, **params)])
