#!/usr/bin/env python3
"""Command line for checking the wagl plugin outside the host.

Resolves configuration the same way the plugin does (environment and
defaults, after loading a .env file) and runs recall/store through the
same bridge, so a misbehaving setup can be diagnosed without an agent.
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.table import Table

from .plugins.wagl.bridge import WaglBridge, format_d_score
from .plugins.wagl.config import WaglConfig
from .plugins.wagl.errors import ConfigError
from .plugins.wagl.plugin import D_SCORE_MAX, D_SCORE_MIN, NO_MEMORIES_TEXT


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="openclaw-wagl",
        description="Inspect configuration and run wagl recall/store as the plugin would"
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to .env file (default: .env)"
    )
    parser.add_argument(
        "--db",
        metavar="PATH",
        help="Override the wagl database path"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log wagl invocations"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("config", help="Show the resolved plugin configuration")

    recall = commands.add_parser("recall", help="Recall memories matching a query")
    recall.add_argument("query", help="What to recall")

    store = commands.add_parser("store", help="Store a memory")
    store.add_argument("content", help="Memory content to store")
    store.add_argument(
        "--d-score",
        type=float,
        default=0,
        help="Sentiment score -10 to +10 (default: 0)"
    )
    return parser


def show_config(console: Console, config: WaglConfig) -> None:
    table = Table(title="memory-wagl configuration", show_header=True, header_style="bold")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in config.to_dict().items():
        table.add_row(key, "[dim]unset[/dim]" if value is None else str(value))
    console.print(table)


async def run_recall(console: Console, bridge: WaglBridge, query: str) -> int:
    result = await bridge.recall(query)
    if result.error:
        console.print(f"[red]recall failed:[/red] {result.error}")
        return 1
    if result.payload:
        console.print(Markdown(result.payload))
    else:
        console.print(f"[dim]{NO_MEMORIES_TEXT}[/dim]")
    return 0


async def run_store(console: Console, bridge: WaglBridge, content: str, d_score: float) -> int:
    if not D_SCORE_MIN <= d_score <= D_SCORE_MAX:
        console.print(f"[red]invalid d-score:[/red] must be between {D_SCORE_MIN} and {D_SCORE_MAX}")
        return 2
    result = await bridge.store(content, d_score)
    if not result.success:
        console.print(f"[red]store failed:[/red] {result.error}")
        return 1
    message = f"Stored memory (d_score={format_d_score(d_score)})"
    if result.memory_id:
        message += f" id={result.memory_id}"
    console.print(f"[green]{message}[/green]")
    return 0


def main(argv: Optional[List[str]] = None, console: Optional[Console] = None) -> int:
    args = build_parser().parse_args(argv)
    console = console or Console()

    load_dotenv(args.env_file)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)]
        )

    try:
        config = WaglConfig.resolve()
    except ConfigError as exc:
        console.print(f"[red]invalid configuration:[/red] {exc}")
        return 2

    if args.db:
        config = replace(config, db_path=args.db)
    bridge = WaglBridge.from_config(config)

    if args.command == "config":
        show_config(console, config)
        return 0
    if args.command == "recall":
        return asyncio.run(run_recall(console, bridge, args.query))
    return asyncio.run(run_store(console, bridge, args.content, args.d_score))


if __name__ == "__main__":
    sys.exit(main())
