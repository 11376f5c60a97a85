"""
Command-line interface for LoreVault retrieval.

Loads lorebooks into a catalog and exposes the retrieval tools directly
(search, neighbors, get) or through a configured planner (run).
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from ..llm import CancellationToken, create_completion_planner
from ..lore import LorebookLoadError, load_lorebook, normalize_scope
from ..retrieval import run_retrieval_tools
from ..tools import (
    CatalogInput,
    RetrievalToolCatalog,
    ToolExecutionResult,
    create_default_registry,
    create_retrieval_tool_catalog,
)
from .config import (
    get_config_path,
    limits_from_config,
    load_config,
    set_endpoint,
    set_model,
    set_tool_calls_enabled,
)

logger = logging.getLogger(__name__)

# Shared console instance
console = Console()

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NO_PLANNER = 2
EXIT_INTERRUPTED = 130


# -----------------------------------------------------------------------------
# Catalog loading
# -----------------------------------------------------------------------------

def parse_book_arg(value: str) -> tuple[str, Path]:
    """
    Split a ``SCOPE=PATH`` argument.

    Without ``=`` the scope is the file stem.
    """
    scope, sep, path = value.partition("=")
    if not sep:
        return normalize_scope(Path(value).stem), Path(value)
    return normalize_scope(scope), Path(path)


def build_catalog(book_args: list[str]) -> RetrievalToolCatalog:
    """Load every lorebook and build one catalog over them."""
    inputs = []
    for value in book_args:
        scope, path = parse_book_arg(value)
        inputs.append(CatalogInput(scope=scope, entries=load_lorebook(path)))
    return create_retrieval_tool_catalog(inputs)


# -----------------------------------------------------------------------------
# Rendering
# -----------------------------------------------------------------------------

def emit_json(payload: object) -> None:
    sys.stdout.write(json.dumps(payload, ensure_ascii=False, indent=2) + "\n")


def show_error(message: str) -> None:
    console.print(Panel(message, title="Error", border_style="red"))


def show_matches(matches: list[dict]) -> None:
    if not matches:
        console.print("[dim]No matches.[/dim]")
        return

    table = Table(title="Matches")
    table.add_column("Scope", style="cyan")
    table.add_column("UID", justify="right")
    table.add_column("Title", style="bold")
    table.add_column("Score", justify="right")
    table.add_column("Reason", style="dim")
    for match in matches:
        table.add_row(
            match["scope"] or "(all)",
            str(match["uid"]),
            match["title"],
            str(match["score"]),
            match["reason"],
        )
    console.print(table)


def show_neighbors(source: dict, neighbors: list[dict]) -> None:
    table = Table(title=f"Neighbors of {source['title']} ({source['uid']})")
    table.add_column("Dist", justify="right")
    table.add_column("Scope", style="cyan")
    table.add_column("UID", justify="right")
    table.add_column("Title", style="bold")
    table.add_column("Path", style="dim")
    for neighbor in neighbors:
        table.add_row(
            str(neighbor["distance"]),
            neighbor["scope"] or "(all)",
            str(neighbor["uid"]),
            neighbor["title"],
            " > ".join(str(uid) for uid in neighbor["path"]),
        )
    console.print(table)


def show_entry(entry: dict) -> None:
    lines = [
        f"[dim]scope:[/dim] {entry['scope'] or '(all)'}  "
        f"[dim]uid:[/dim] {entry['uid']}  [dim]order:[/dim] {entry['order']}",
    ]
    if entry["keywords"]:
        lines.append(f"[dim]keywords:[/dim] {', '.join(entry['keywords'])}")
    if entry["neighbors"]:
        linked = ", ".join(f"{n['title']} ({n['uid']})" for n in entry["neighbors"])
        lines.append(f"[dim]links:[/dim] {linked}")
    lines.append("")
    lines.append(entry["snippet"])
    console.print(Panel("\n".join(lines), title=entry["title"], border_style="cyan"))


def show_tool_result(name: str, result: ToolExecutionResult) -> None:
    if name == "search_entries":
        show_matches(result.data["matches"])
    elif name == "expand_neighbors":
        show_neighbors(result.data["source"], result.data["neighbors"])
    else:
        show_entry(result.data["entry"])


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------

def tool_arguments(args: argparse.Namespace) -> tuple[str, dict]:
    """Map a direct tool subcommand to a tool name and arguments."""
    arguments: dict = {}
    if args.scope:
        arguments["scope"] = args.scope

    if args.command == "search":
        arguments["query"] = args.query
        if args.limit is not None:
            arguments["limit"] = args.limit
        return "search_entries", arguments

    arguments["uid"] = args.uid
    if args.command == "neighbors":
        arguments["depth"] = args.depth
        if args.limit is not None:
            arguments["limit"] = args.limit
        return "expand_neighbors", arguments

    arguments["contentChars"] = args.chars
    return "get_entry", arguments


def cmd_tool(args: argparse.Namespace, catalog: RetrievalToolCatalog) -> int:
    """Run one retrieval tool directly against every loaded scope."""
    name, arguments = tool_arguments(args)
    registry = create_default_registry()
    result = registry.execute(name, arguments, catalog, set(catalog.keys_by_scope))

    if args.json:
        emit_json(result.to_payload())
    elif result.ok:
        show_tool_result(name, result)
    else:
        show_error(result.error)

    return EXIT_OK if result.ok else EXIT_ERROR


def cmd_run(args: argparse.Namespace, catalog: RetrievalToolCatalog) -> int:
    """Run the planner-driven retrieval loop for a query."""
    config = load_config(args.config_dir)
    if not config["tool_calls"].get("enabled", True):
        console.print("[yellow]Tool retrieval is disabled in config.[/yellow]")
        return EXIT_OK

    planner = create_completion_planner(config)
    if planner is None:
        show_error(
            "No tool-calling planner configured. Set endpoint and model in "
            ".lorevault_config.json or LOREVAULT_ENDPOINT / LOREVAULT_MODEL."
        )
        return EXIT_NO_PLANNER

    budget = args.budget if args.budget is not None else config["context_token_budget"]
    limits = limits_from_config(config)
    if args.max_calls is not None:
        limits = replace(limits, max_calls=args.max_calls).clamped()
    cancellation = CancellationToken()
    try:
        result = asyncio.run(run_retrieval_tools(
            query_text=args.query,
            selected_scopes=args.scope or [],
            context_token_budget=budget,
            catalog=catalog,
            planner=planner,
            limits=limits,
            cancellation=cancellation,
        ))
    except KeyboardInterrupt:
        cancellation.cancel()
        console.print("[yellow]Interrupted.[/yellow]")
        return EXIT_INTERRUPTED

    if args.json:
        emit_json(result.model_dump(mode="json"))
        return EXIT_OK

    if result.markdown:
        console.print(Panel(Markdown(result.markdown), title="Context", border_style="cyan"))
    else:
        console.print("[dim]No context assembled.[/dim]")
    for line in result.trace:
        console.print(f"[dim]{line}[/dim]")
    if result.last_planner_error:
        console.print(f"[red]Planner error:[/red] {result.last_planner_error}")
    return EXIT_OK


def masked_config(config: dict) -> dict:
    """Config safe to print: the API key is reduced to its last four characters."""
    shown = dict(config)
    api_key = shown.get("api_key")
    if api_key:
        shown["api_key"] = "****" + api_key[-4:] if len(api_key) > 4 else "****"
    return shown


def cmd_config(args: argparse.Namespace) -> int:
    """Update planner settings, then show the stored config."""
    if args.endpoint:
        set_endpoint(args.endpoint, args.model, args.config_dir)
    elif args.model:
        set_model(args.model, args.config_dir)
    if args.tools is not None:
        set_tool_calls_enabled(args.tools, args.config_dir)

    config = masked_config(load_config(args.config_dir))
    if args.json:
        emit_json(config)
        return EXIT_OK

    table = Table(title=str(get_config_path(args.config_dir)))
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in config.items():
        if key == "tool_calls":
            for name, limit in value.items():
                table.add_row(f"tool_calls.{name}", str(limit))
        else:
            table.add_row(key, "-" if value is None else str(value))
    console.print(table)
    return EXIT_OK


# -----------------------------------------------------------------------------
# Entry point
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lorevault",
        description="LoreVault - model-driven lorebook retrieval",
    )
    parser.add_argument(
        "--book", "-b",
        action="append",
        default=[],
        metavar="SCOPE=PATH",
        help="Lorebook JSON to load (repeatable, required except for config). "
             "Scope defaults to the file name.",
    )
    parser.add_argument(
        "--config-dir",
        default=".",
        help="Directory holding .lorevault_config.json",
    )
    parser.add_argument("--json", action="store_true", help="Print raw JSON results")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    search = sub.add_parser("search", help="Search entries")
    search.add_argument("query")
    search.add_argument("--scope", "-s")
    search.add_argument("--limit", "-n", type=int)

    neighbors = sub.add_parser("neighbors", help="Expand wikilink neighbors of an entry")
    neighbors.add_argument("uid", type=int)
    neighbors.add_argument("--scope", "-s")
    neighbors.add_argument("--depth", "-d", type=int, default=1)
    neighbors.add_argument("--limit", "-n", type=int)

    get = sub.add_parser("get", help="Show one entry")
    get.add_argument("uid", type=int)
    get.add_argument("--scope", "-s")
    get.add_argument("--chars", type=int, default=1200, help="Content characters to show")

    run = sub.add_parser("run", help="Let the configured planner gather context")
    run.add_argument("query")
    run.add_argument("--scope", "-s", action="append", help="Active scope (repeatable)")
    run.add_argument("--budget", type=int, help="Context token budget")
    run.add_argument("--max-calls", type=int, help="Override max tool calls per run")

    config = sub.add_parser("config", help="Show or update planner settings")
    config.add_argument("--endpoint", help="OpenAI-compatible API root")
    config.add_argument("--model", help="Planner model name")
    toggle = config.add_mutually_exclusive_group()
    toggle.add_argument("--enable-tools", dest="tools", action="store_true", default=None,
                        help="Enable tool retrieval")
    toggle.add_argument("--disable-tools", dest="tools", action="store_false",
                        help="Disable tool retrieval")

    return parser


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if args.command == "config":
        return cmd_config(args)
    if not args.book:
        parser.error("--book is required")

    try:
        catalog = build_catalog(args.book)
    except LorebookLoadError as e:
        logger.debug("Lorebook load failed", exc_info=True)
        show_error(str(e))
        return EXIT_ERROR

    if args.command == "run":
        return cmd_run(args, catalog)
    return cmd_tool(args, catalog)
