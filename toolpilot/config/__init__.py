from .agent import AgentConfig
from .llm import ChatConfig, ChatLLMType, OpenAIChatConfig, AzureOpenAIChatConfig, DeepSeekChatConfig, \
    validate_chat_config
from .tool import ToolConfig
from .tool_pilot import ToolPilotConfig, load_config
