"""
命令行入口。

    python -m scriptwright chat --project-id 1
    python -m scriptwright seed-prompts
    python -m scriptwright assets --project-id 1
"""
import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from scriptwright.agents.events import AgentEvent, EventBus, EventType
from scriptwright.agents.narrative import NarrativeStateManager
from scriptwright.config import load_environment
from scriptwright.config.loader import load_config
from scriptwright.logger_config import setup_logging
from scriptwright.prompts.manager import seed_default_prompts
from scriptwright.services.session import create_outline_agent, open_store

logger = logging.getLogger(__name__)

EXIT_COMMANDS = {"exit", "quit", ":q"}


class ConsoleObserver:
    """把流式事件打印到终端"""

    def __init__(self, stream=None):
        self.stream = stream or sys.stdout

    def __call__(self, event: AgentEvent):
        if event.type in (EventType.DATA, EventType.SUB_AGENT_STREAM):
            self.stream.write(event.data["text"])
        elif event.type == EventType.TOOL_CALL:
            self.stream.write(f"\n[{event.data['agent']}] -> {event.data['name']}\n")
        elif event.type == EventType.TRANSFER:
            self.stream.write(f"\n=== {event.data['to']} ===\n")
        elif event.type in (EventType.SUB_AGENT_END, EventType.RESPONSE):
            self.stream.write("\n")
        self.stream.flush()


async def run_chat(args, config: dict) -> int:
    store = open_store(config, args.database_url)
    events = EventBus()
    agent = create_outline_agent(args.project_id, config=config, store=store, events=events)
    unsubscribe = events.subscribe(ConsoleObserver())
    try:
        while True:
            try:
                message = input("\n> ").strip()
            except EOFError:
                break
            if not message:
                continue
            if message in EXIT_COMMANDS:
                break
            try:
                await agent.call(message)
            except Exception as e:
                # 本轮失败，引擎与历史仍可用于下一轮
                logger.error(f"本轮对话失败: {e}", exc_info=True)
    finally:
        unsubscribe()
    return 0


def run_seed_prompts(args, config: dict) -> int:
    store = open_store(config, args.database_url)
    stats = seed_default_prompts(store, args.prompts_file)
    print(f"prompts inserted: {stats['inserted']}, updated: {stats['updated']}")
    return 0


def run_assets(args, config: dict) -> int:
    store = open_store(config, args.database_url)
    stats = NarrativeStateManager(args.project_id, store, EventBus()).generate_assets()
    print(f"assets inserted: {stats.inserted}, updated: {stats.updated}, unchanged: {stats.skipped}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="scriptwright", description="Novel to episode outline agent")
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    parser.add_argument("--database-url", default=None, help="Override database.url from the config")
    sub = parser.add_subparsers(dest="command", required=True)

    chat = sub.add_parser("chat", help="Interactive session with the outline agent")
    chat.add_argument("--project-id", type=int, required=True)

    seed = sub.add_parser("seed-prompts", help="Write default prompt templates to the database")
    seed.add_argument("--prompts-file", default=None, help="YAML file of {code: prompt}")

    assets = sub.add_parser("assets", help="Extract assets from the project's outlines")
    assets.add_argument("--project-id", type=int, required=True)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    load_environment()
    setup_logging()
    config = load_config(args.config)

    if args.command == "chat":
        return asyncio.run(run_chat(args, config))
    if args.command == "seed-prompts":
        return run_seed_prompts(args, config)
    return run_assets(args, config)
