from .factory import build_chat_llm, build_gateway
from .gateway import ChatGateway, Completion, LanguageModelGateway, TokenCallback, TokenStream
from .langchain import LangChainChatLLM
from .mixin import LLMMixin
from .oai import OpenAIChatLLM
from .types import ChatLLM
