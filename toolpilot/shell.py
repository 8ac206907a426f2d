import logging

from toolpilot.agent.agent import AutonomousAgent
from toolpilot.agent.approval import ChannelApprovalGate
from toolpilot.agent.channel import AgentChannel
from toolpilot.agent.types import AgentStep
from toolpilot.exceptions import ToolPilotError

logger = logging.getLogger(__name__)

QUIT_COMMANDS = ('quit', 'exit', '/quit')


class AgentShell:
    """Interactive shell that forwards each line to the agent"""

    def __init__(self, agent: AutonomousAgent, channel: AgentChannel, model_id: str | None = None):
        self.agent = agent
        self.channel = channel
        self.model_id = model_id
        self.history: list[dict] = []
        self.approval_gate = ChannelApprovalGate(channel)
        self.running = False

    def on_progress(self, step: AgentStep, steps: tuple[AgentStep, ...]):
        logger.info(str(step))
        if step.error:
            logger.info(f"  {step.error}")

    async def handle_request(self, line: str):
        """Process a single request line"""
        request = line.strip()
        if not request:
            return
        result = await self.agent.run(
            request,
            model_id=self.model_id,
            on_progress=self.on_progress,
            on_approval_needed=self.approval_gate,
            history=self.history,
        )
        await self.channel.output(result.final_output)
        if result.plan is not None and not result.plan.is_conversational:
            await self.channel.info(f"{result.steps_completed} steps completed, {result.steps_failed} failed")
        self.history.append({'role': 'user', 'content': request})
        self.history.append({'role': 'assistant', 'content': result.final_output})

    async def run(self):
        """Start the interactive shell"""
        self.running = True
        print("ToolPilot Shell (type quit or press Ctrl+D to exit)")

        while self.running:
            try:
                line = input("> ")
                if line.strip().lower() in QUIT_COMMANDS:
                    print("\nQuitting...")
                    self.running = False
                    continue
                await self.handle_request(line)
            except ToolPilotError as e:
                print(f"Error: {e.msg}")
                logger.debug(e, exc_info=e)
            except KeyboardInterrupt:
                print("\nExiting...")
                self.running = False
            except EOFError:
                print("\nExiting...")
                self.running = False
            except UnicodeDecodeError:
                print("\nUnicode Error\nExiting...")
                self.running = False
            except Exception as e:
                logger.error(f"Error: {str(e)}", exc_info=e)
