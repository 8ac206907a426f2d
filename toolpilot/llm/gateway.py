"""Language model gateway: routes model ids to chat adapters and exposes
completions either as an explicit token stream or as a collected result.

Failures never raise out of the gateway.  A provider error or an unknown
model id ends the stream and is reported on ``Completion.error`` with
whatever content had been delivered so far.
"""

import logging
import time
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Protocol

from toolpilot.exceptions import UnsupportedModelError
from toolpilot.llm.types import ChatLLM
from toolpilot.tracer import get_current_span, trace_llm

logger = logging.getLogger(__name__)

TokenCallback = Callable[[str], None]


@dataclass(frozen=True)
class Completion:
    """Collected result of one model call."""
    content: str
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


class TokenStream:
    """Async iterator over the chunks of one completion.

    Every chunk handed out is also accumulated, so ``content`` always equals
    the concatenation of what the consumer has read.  Iteration stops early
    if the provider raises; the error is kept on ``error``.
    """

    def __init__(self, chunks: AsyncIterator[str] | None, error: str | None = None):
        self._chunks = chunks
        self._parts: list[str] = []
        self._closed = chunks is None
        self.error = error

    def __aiter__(self) -> 'TokenStream':
        return self

    async def __anext__(self) -> str:
        if self._closed:
            raise StopAsyncIteration
        try:
            chunk = await self._chunks.__anext__()
        except StopAsyncIteration:
            self._closed = True
            raise
        except Exception as e:
            logger.warning(f"Model stream failed: {e}", exc_info=True)
            self.error = str(e) or type(e).__name__
            self._closed = True
            raise StopAsyncIteration
        self._parts.append(chunk)
        return chunk

    async def aclose(self) -> None:
        """Stop reading; releases the underlying provider stream."""
        if self._closed:
            return
        self._closed = True
        aclose = getattr(self._chunks, 'aclose', None)
        if aclose is not None:
            await aclose()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def content(self) -> str:
        return ''.join(self._parts)

    def completion(self) -> Completion:
        return Completion(content=self.content, error=self.error)


class LanguageModelGateway(Protocol):
    def stream(self, messages: list[dict], model_id: str) -> TokenStream:
        ...

    async def complete(self, messages: list[dict], model_id: str,
                       on_token: TokenCallback | None = None) -> Completion:
        ...


class ChatGateway:
    """Routes model ids to ``ChatLLM`` adapters.

    Lookup order: exact id, longest registered prefix, then the default
    adapter.
    """

    def __init__(self, models: dict[str, ChatLLM] | None = None, default: ChatLLM | None = None):
        self.models: dict[str, ChatLLM] = dict(models or {})
        self.default = default

    def register(self, model_id: str, llm: ChatLLM):
        self.models[model_id] = llm

    def resolve(self, model_id: str) -> ChatLLM:
        if model_id in self.models:
            return self.models[model_id]
        prefixes = sorted((key for key in self.models if model_id.startswith(key)), key=len, reverse=True)
        if prefixes:
            return self.models[prefixes[0]]
        if self.default is not None:
            return self.default
        raise UnsupportedModelError(model_id)

    def stream(self, messages: list[dict], model_id: str) -> TokenStream:
        try:
            llm = self.resolve(model_id)
        except UnsupportedModelError as e:
            logger.error(str(e))
            return TokenStream(None, error=str(e))
        try:
            chunks = llm.stream(messages)
        except Exception as e:
            logger.warning(f"Model {model_id} could not start streaming: {e}", exc_info=True)
            return TokenStream(None, error=str(e) or type(e).__name__)
        return TokenStream(chunks)

    @trace_llm("chat_completion")
    async def complete(self, messages: list[dict], model_id: str,
                       on_token: TokenCallback | None = None) -> Completion:
        logger.info(f"Calling model {model_id} with {len(messages)} messages")
        start_time = time.time()
        stream = self.stream(messages, model_id)
        async for chunk in stream:
            if on_token is not None:
                on_token(chunk)
        completion = stream.completion()
        duration_ms = int((time.time() - start_time) * 1000)
        if completion.failed:
            logger.warning(f"Model {model_id} failed after {duration_ms}ms: {completion.error}")
        else:
            logger.info(f"Received {len(completion.content)} chars from {model_id} in {duration_ms}ms")
        logger.debug('\n' + completion.content)

        span = get_current_span()
        if span is not None:
            span.set_attribute("model", model_id)
            span.set_attribute("duration_ms", duration_ms)
            span.set_attribute("response_chars", len(completion.content))
            if completion.error:
                span.set_attribute("error", completion.error)
        return completion
