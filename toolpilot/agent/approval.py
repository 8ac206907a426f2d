import asyncio
import json
import logging
from typing import Awaitable, Callable

from toolpilot.agent.channel import AgentChannel
from toolpilot.agent.types import AgentStep

logger = logging.getLogger(__name__)

ApprovalCallback = Callable[[AgentStep], Awaitable[bool]]


async def deny_all(step: AgentStep) -> bool:
    logger.warning(f"No approval handler available, denying step {step.id}: {step.description}")
    return False


class SerializedApprovalGate:
    """Wraps an approval callback so only one prompt is outstanding at a time.

    ``asyncio.Lock`` wakes waiters in arrival order, so queued requests are
    answered first come, first served.
    """

    def __init__(self, callback: ApprovalCallback):
        self.callback = callback
        self._lock = asyncio.Lock()

    async def __call__(self, step: AgentStep) -> bool:
        async with self._lock:
            return await self.callback(step)


class ChannelApprovalGate:
    """Asks for approval through an ``AgentChannel``."""

    def __init__(self, channel: AgentChannel):
        self.channel = channel

    @staticmethod
    def prompt_for(step: AgentStep) -> str:
        lines = [f"Approve step '{step.description}'?", f"  tool: {step.tool}"]
        if step.parameters:
            lines.append(f"  parameters: {json.dumps(step.parameters, ensure_ascii=False)}")
        return '\n'.join(lines)

    async def __call__(self, step: AgentStep) -> bool:
        return await self.channel.confirm(self.prompt_for(step))
