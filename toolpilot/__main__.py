import asyncio
import logging
from argparse import ArgumentParser

from toolpilot.agent.agent import AutonomousAgent
from toolpilot.agent.channel import ShellChannel
from toolpilot.agent.reporting import LoggingTaskReporter
from toolpilot.agent.tools import ToolRegistry
from toolpilot.config.tool_pilot import load_config
from toolpilot.llm.factory import build_gateway
from toolpilot.shell import AgentShell
from toolpilot.tracer import Tracer, YAMLExporter

logger = logging.getLogger(__name__)


async def run(config_path: str, verbosity: int | None, model_id: str | None = None, request: str | None = None):
    if not verbosity:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
        logging.getLogger('httpx').setLevel(logging.WARNING)
    else:
        level = logging.DEBUG
    logging.basicConfig(level=level)

    config = load_config(config_path)
    if config.trace_dir:
        Tracer(YAMLExporter(config.trace_dir)).activate()

    agent = AutonomousAgent.from_config(
        config,
        gateway=build_gateway(config),
        catalog=ToolRegistry.from_config(config.tools),
        reporter=LoggingTaskReporter(),
    )
    shell = AgentShell(agent, ShellChannel(logger), model_id=model_id)
    if request:
        await shell.handle_request(request)
    else:
        await shell.run()


def main():
    parser = ArgumentParser('toolpilot')
    parser.add_argument('--config', required=True, help="Path to the configuration file")
    parser.add_argument('--model', default=None, help="Model id to use instead of the configured default")
    parser.add_argument('-v', action='count', help="Verbosity level. -v for INFO, -vv for DEBUG")
    parser.add_argument('request', nargs='?', help="Optional request to execute")
    ns = parser.parse_args()
    asyncio.run(run(ns.config, ns.v, ns.model, ns.request))


if __name__ == "__main__":
    main()
