import json
from typing import AsyncIterator

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from toolpilot.llm.types import ChatLLM


def to_langchain_messages(messages: list[dict]) -> list[BaseMessage]:
    """Convert role/content dictionaries into LangChain message objects."""
    converted: list[BaseMessage] = []
    for message in messages:
        role = message.get('role')
        content = message.get('content') or ''
        match role:
            case 'system':
                converted.append(SystemMessage(content=content))
            case 'assistant':
                converted.append(AIMessage(content=content))
            case _:
                converted.append(HumanMessage(content=content))
    return converted


class LangChainChatLLM(ChatLLM):
    """Adapts any LangChain chat model to the ``ChatLLM`` interface."""

    def __init__(self, chat_model: BaseChatModel):
        self.chat_model = chat_model

    async def stream(self, messages: list[dict], **params) -> AsyncIterator[str]:
        async for chunk in self.chat_model.astream(to_langchain_messages(messages), **params):
            content = chunk.content if isinstance(chunk.content, str) else json.dumps(chunk.content)
            if content:
                yield content
