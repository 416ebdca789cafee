"""Command-line interface for yamcs-telemetry."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Mapping, Optional, Sequence

from . import constants
from .adapters.mdb import UpstreamFetchError
from .config import TelemetryClientConfig, load_config
from .core.models import Node, TelemetryPoint
from .logging import configure_logging
from .plugin import YamcsPlugin

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=constants.APP_NAME,
        description="Yamcs telemetry catalog and realtime subscription client",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {constants.DEFAULT_CONFIG_PATH})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser(
        "show-config", help="Print the resolved configuration and exit"
    )

    dictionary_parser = subparsers.add_parser(
        "dictionary", help="Build the telemetry dictionary and print it"
    )
    dictionary_parser.add_argument(
        "--json", action="store_true", help="Print every node as JSON"
    )

    monitor_parser = subparsers.add_parser(
        "monitor", help="Subscribe to parameters and print live samples"
    )
    monitor_parser.add_argument(
        "identifiers", nargs="+", help="Identifiers (e.g. ~Sat~Temp) to subscribe to"
    )
    monitor_parser.add_argument(
        "--count",
        type=int,
        default=0,
        help="Exit after this many samples (default: run until interrupted)",
    )

    return parser


def format_tree(dictionary: Mapping[str, Node], root_identifier: str) -> list[str]:
    lines: list[str] = []

    def _walk(identifier: str, depth: int) -> None:
        node = dictionary.get(identifier)
        if node is None:
            return
        lines.append(f"{'  ' * depth}{node.name} [{node.kind}] {node.identifier}")
        for child in node.composition or ():
            _walk(child, depth + 1)

    _walk(root_identifier, 0)
    return lines


async def _print_dictionary(config: TelemetryClientConfig, *, as_json: bool) -> int:
    plugin = YamcsPlugin(config)
    try:
        dictionary = await plugin.object_provider.get_dictionary()
    except UpstreamFetchError as exc:
        LOGGER.error("Could not build telemetry dictionary: %s", exc)
        return 1
    finally:
        await plugin.mdb_client.aclose()

    if as_json:
        print(json.dumps([node.as_dict() for node in dictionary.values()], indent=2))
    else:
        for line in format_tree(dictionary, plugin.object_provider.root_identifier):
            print(line)
    return 0


async def _monitor(
    config: TelemetryClientConfig, identifiers: Sequence[str], *, count: int
) -> int:
    finished = asyncio.Event()
    received = 0

    def _on_sample(point: TelemetryPoint) -> None:
        nonlocal received
        received += 1
        print(json.dumps(point.as_dict(), default=str))
        if count and received >= count:
            finished.set()

    async with YamcsPlugin(config) as plugin:
        for identifier in identifiers:
            await plugin.telemetry_provider.subscribe(identifier, _on_sample)
        await finished.wait()
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)
    configure_logging(
        config.logging.level,
        log_path=config.logging.path,
        log_network=config.logging.log_network,
    )

    if args.command == "show-config":
        print(f"Configuration loaded from {config.path!s}\n")
        for section in config.raw.sections():
            print(f"[{section}]")
            for key, value in config.raw[section].items():
                print(f"{key} = {value}")
            print()
        return 0

    if args.command == "dictionary":
        return asyncio.run(_print_dictionary(config, as_json=args.json))

    if args.command == "monitor":
        try:
            return asyncio.run(_monitor(config, args.identifiers, count=args.count))
        except KeyboardInterrupt:
            return 0

    LOGGER.error("Unknown command: %s", args.command)
    return 1


if __name__ == "__main__":
    sys.exit(main())
