"""Command line entry point.

Usage:
    python -m deckr41 tree
    python -m deckr41 commands --file src/app.py
    python -m deckr41 eject
    python -m deckr41 run finish-line --file src/app.py --line 12 --col 4
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from deckr41.app import Deckr41
from deckr41.backend import Failed, StreamCallbacks
from deckr41.config import LoggingConfig, load_settings
from deckr41.context import CommandRef, Position, Range, RunContext
from deckr41.errors import Deckr41Error
from deckr41.logging import setup_logging
from deckr41.rc_nodes import ConfigNode, RCNodes

console = Console()
err_console = Console(stderr=True)


def _node_label(node: ConfigNode) -> str:
    project = node.data.project
    icon = f"{project.icon} " if project.icon else ""
    return (
        f"{escape(icon)}[bold]{escape(project.name)}[/bold] "
        f"({len(node.commands)} commands) [dim]{escape(node.path)}[/dim]"
    )


def cmd_tree(nodes: RCNodes, args: argparse.Namespace) -> int:
    for special in nodes.special_nodes:
        console.print(Tree(_node_label(special) + " [cyan]special[/cyan]"))

    branches: dict[str, Tree] = {}
    top: Tree | None = None
    for node, _depth in nodes.tree.walk():
        parent = node.parent
        if parent is None:
            top = branches[node.path] = Tree(_node_label(node))
        else:
            branches[node.path] = branches[parent.path].add(_node_label(node))

    if top is None:
        console.print("[dim]No node files found under[/dim]", nodes.cwd)
    else:
        console.print(top)
    return 0


def cmd_commands(nodes: RCNodes, args: argparse.Namespace) -> int:
    file_path = str(Path(args.file).absolute()) if args.file else None
    table = Table(title="Commands", show_lines=False)
    table.add_column("id")
    table.add_column("name")
    table.add_column("on accept")
    table.add_column("node", style="dim")
    for resolved in nodes.list_commands(file_path):
        command = resolved.command
        table.add_row(
            escape(command.id),
            escape(command.display_name),
            command.on_accept.value,
            escape(resolved.node.path),
        )
    console.print(table)
    return 0


def cmd_eject(nodes: RCNodes, args: argparse.Namespace) -> int:
    try:
        destination = nodes.eject_defaults(args.dest)
    except FileExistsError as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        return 1
    console.print(f"Built-in commands ejected to [bold]{escape(str(destination))}[/bold]")
    return 0


async def _run_command(args: argparse.Namespace) -> int:
    app = Deckr41(args.cwd)
    app.setup(watch=False)

    selection = None
    if args.select:
        start_row, end_row = args.select
        selection = Range(Position(start_row, 0), Position(end_row, 1 << 30))
    ctx = RunContext.from_file(args.file, row=args.line, col=args.col, selection=selection)

    status = 0

    def on_done(body: str, http_status: int) -> None:
        nonlocal status
        if http_status >= 400:
            err_console.print(f"[red]HTTP {http_status}[/red] {escape(body)}")
            status = 1

    def on_error(event: Failed) -> None:
        nonlocal status
        if not event.cancelled:
            err_console.print(f"[red]{event.reason.value}[/red] {escape(event.message)}")
            status = 1

    handle = app.run_command(
        CommandRef(args.name, args.node),
        ctx,
        StreamCallbacks(
            on_start=lambda s: err_console.print(f"[dim]{args.name} / {s.backend} / {s.model}[/dim]"),
            on_data=lambda text: console.out(text, end="", highlight=False),
            on_done=on_done,
            on_error=on_error,
        ),
    )
    if handle is None:
        err_console.print("[red]A command is already running[/red]")
        app.shutdown()
        return 1
    try:
        await handle.wait()
    finally:
        app.shutdown()
    console.out("")
    return status


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="deckr41", description="Run prompt commands from .d41rc files")
    parser.add_argument("--cwd", default=".", help="project directory (default: .)")
    parser.add_argument("-v", "--verbose", type=int, default=None, help="verbosity 0-4")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("tree", help="print the node tree")

    p_commands = sub.add_parser("commands", help="list commands visible from a file")
    p_commands.add_argument("--file", help="file whose nodes to consult")

    p_eject = sub.add_parser("eject", help="copy the built-in commands into the project")
    p_eject.add_argument("--dest", help="destination directory (default: --cwd)")

    p_run = sub.add_parser("run", help="run a command and stream the reply")
    p_run.add_argument("name", help="command id")
    p_run.add_argument("--file", required=True, help="file providing the context")
    p_run.add_argument("--line", type=int, default=1, help="1-based cursor line")
    p_run.add_argument("--col", type=int, default=0, help="0-based cursor column")
    p_run.add_argument("--select", type=int, nargs=2, metavar=("START", "END"), help="select whole lines")
    p_run.add_argument("--node", help="node file defining the command")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    settings = load_settings(args.cwd)
    if args.verbose is not None:
        settings.logging = LoggingConfig(
            level=settings.logging.level, verbose=args.verbose, file=settings.logging.file
        )
    setup_logging(settings.logging)

    try:
        if args.command == "run":
            return asyncio.run(_run_command(args))

        nodes = RCNodes(args.cwd)
        nodes.load_all()
        handlers = {"tree": cmd_tree, "commands": cmd_commands, "eject": cmd_eject}
        return handlers[args.command](nodes, args)
    except Deckr41Error as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
