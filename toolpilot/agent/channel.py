from enum import Enum
from logging import Logger
from typing import Protocol


class AgentMessageLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AgentChannel(Protocol):
    async def send_message(self, content: str, level: AgentMessageLevel = AgentMessageLevel.INFO) -> None:
        """Send a message to the user."""
        pass

    async def info(self, content: str):
        return await self.send_message(content, AgentMessageLevel.INFO)

    async def debug(self, content: str):
        return await self.send_message(content, AgentMessageLevel.DEBUG)

    async def warning(self, content: str):
        return await self.send_message(content, AgentMessageLevel.WARNING)

    async def error(self, content: str):
        return await self.send_message(content, AgentMessageLevel.ERROR)

    async def output(self, content: str):
        """Send the final answer of a request to the user."""
        ...

    async def confirm(self, prompt: str) -> bool:
        """Ask the user to confirm an action."""
        ...


class ShellChannel(AgentChannel):
    def __init__(self, logger: Logger) -> None:
        self.logger = logger

    async def send_message(self, content: str, level: AgentMessageLevel = AgentMessageLevel.INFO) -> None:
        match level:
            case AgentMessageLevel.DEBUG:
                self.logger.debug(content)
            case AgentMessageLevel.WARNING:
                self.logger.warning(content)
            case AgentMessageLevel.ERROR:
                self.logger.error(content)
            case _:
                self.logger.info(content)

    async def output(self, content: str):
        print(content)

    async def confirm(self, prompt: str) -> bool:
        result = input(prompt + ' y/N ')
        return result.strip().lower() in ['y', 'yes']
