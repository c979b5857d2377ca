#!/usr/bin/env python3
"""
Coachflow command-line driver.

Runs one agent against a JSON context file and prints the outcome as JSON.
Exit status: 0 success, 2 skipped, 1 failed.
"""

import argparse
import json
import logging
import sys
from typing import Optional

from .agents.program_designer import ProgramDesignerAgent, ProgramDesignerContext
from .agents.weekly_analytics import WeeklyAnalyticsAgent, WeeklyAnalyticsContext
from .collaborators import (
    CompletionClient,
    HttpObjectStore,
    HttpRecordStore,
    HttpSemanticSearch,
)
from .config_loader import load_app_config
from .core import ModelGateway, Skipped, Success, outcome_to_dict
from .exceptions import ConfigError
from .models import AppConfig
from .tracing import init_tracing_client, shutdown_tracing

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILED = 1
EXIT_SKIPPED = 2


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging to stderr so stdout stays pure JSON."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def exit_code(outcome) -> int:
    if isinstance(outcome, Success):
        return EXIT_SUCCESS
    if isinstance(outcome, Skipped):
        return EXIT_SKIPPED
    return EXIT_FAILED


def build_agent(command: str, context_data: dict, config: AppConfig, resources: Optional[list] = None):
    """
    Wire collaborators, gateway and context for one agent run.

    Every client that holds a connection is appended to resources so the
    caller can close it whatever happens to the run.
    """
    resources = resources if resources is not None else []
    services = config.collaborators
    records = HttpRecordStore(services.record_store.url, services.record_store.timeout)
    resources.append(records)
    objects = HttpObjectStore(services.object_store.url, services.object_store.timeout)
    resources.append(objects)
    completion = CompletionClient.from_config(config.gateway, config.completion)
    resources.append(completion)
    gateway = ModelGateway.from_config(config.gateway)
    resources.append(gateway)

    if command == "weekly-analytics":
        return WeeklyAnalyticsAgent(
            WeeklyAnalyticsContext.from_dict(context_data),
            gateway,
            records=records,
            objects=objects,
            completion=completion,
            config=config.agent,
        )

    search = HttpSemanticSearch(services.semantic_search.url, services.semantic_search.timeout)
    resources.append(search)
    return ProgramDesignerAgent(
        ProgramDesignerContext.from_dict(context_data),
        gateway,
        records=records,
        objects=objects,
        search=search,
        completion=completion,
        config=config.agent,
    )


def close_resources(resources: list) -> None:
    for resource in reversed(resources):
        try:
            resource.close()
        except Exception as e:
            logger.warning(f"Failed to close {type(resource).__name__}: {e}")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="coachflow",
        description="Run a coaching agent workflow",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s weekly-analytics --context week.json
  %(prog)s program-design --context program.json -v
""",
    )
    parser.add_argument("--config", type=str, default=None, help="Path to config.yaml")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")

    subparsers = parser.add_subparsers(dest="command", required=True)
    for name, help_text in (
        ("weekly-analytics", "Generate and save one week of analytics"),
        ("program-design", "Design and save a multi-phase training program"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--context", type=str, required=True, help="JSON file with the run context")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)

    try:
        config = load_app_config(args.config)
    except (ConfigError, FileNotFoundError) as e:
        setup_logging("INFO")
        logger.error(f"Configuration error: {e}")
        return EXIT_FAILED

    setup_logging("DEBUG" if args.verbose else config.logging.level)

    try:
        with open(args.context) as f:
            context_data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Could not read context file {args.context}: {e}")
        return EXIT_FAILED

    init_tracing_client(config.langfuse)
    resources: list = []
    try:
        try:
            agent = build_agent(args.command, context_data, config, resources=resources)
        except (KeyError, ValueError) as e:
            logger.error(f"Invalid context for {args.command}: {e}")
            return EXIT_FAILED

        outcome = agent.run()
    finally:
        close_resources(resources)
        shutdown_tracing()

    print(json.dumps(outcome_to_dict(outcome), indent=2, default=str))
    return exit_code(outcome)


if __name__ == "__main__":
    sys.exit(main())
