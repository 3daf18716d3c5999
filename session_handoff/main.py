#!/usr/bin/env python3
"""Session Handoff - hand a coding session to another AI assistant.

Entry point for the CLI application.
"""

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from .config import PRESETS, get_preset, load_config

console = Console()
err_console = Console(stderr=True)


def _resolve_config(args):
    """``--preset`` wins over config files; otherwise use the file chain."""
    if getattr(args, "preset", None):
        return get_preset(args.preset)
    return load_config(getattr(args, "config", None))


def _find(session_id: str):
    from .providers import find_session

    found = find_session(session_id)
    if found is None:
        err_console.print(f"[red]Session not found:[/red] {session_id}")
        sys.exit(1)
    return found


def cmd_providers(args):
    """List registered providers and whether their data exists."""
    from .providers import get_all_providers

    table = Table(title="Providers", title_justify="left")
    table.add_column("")
    table.add_column("Provider")
    table.add_column("Name", style="dim")
    table.add_column("Path")
    table.add_column("Sessions", justify="right")

    for p in get_all_providers():
        available = p.is_available()
        count = str(len(p.load_sessions())) if available else "-"
        table.add_row(
            "[green]✓[/green]" if available else "[red]✗[/red]",
            f"[{p.color}]{p.display_name}[/{p.color}]",
            p.name,
            str(p.get_sessions_dir()),
            count,
        )
    console.print(table)


def cmd_list(args):
    """List discovered sessions, newest first."""
    from .providers import discover_all_sessions, get_provider

    sessions = discover_all_sessions()
    if args.harness:
        sessions = [s for s in sessions if s.harness == args.harness]
    if not sessions:
        console.print("No sessions found.")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Modified", style="cyan")
    table.add_column("Source")
    table.add_column("ID", style="dim")
    table.add_column("Project")
    table.add_column("Summary")

    for s in sessions[:args.limit]:
        provider = get_provider(s.harness)
        color = provider.color if provider else "white"
        modified = s.modified_time.strftime("%Y-%m-%d %H:%M") if s.modified_time else "??"
        table.add_row(modified, f"[{color}]{s.harness}[/{color}]", s.id[:8], s.project_name, s.summary or "")
    console.print(table)


def cmd_handoff(args):
    """Write the handoff markdown for one session."""
    session, provider = _find(args.session_id)
    config = _resolve_config(args)
    context = provider.extract_context(session, config, mode=args.mode)

    if args.output:
        Path(args.output).write_text(context.markdown)
        err_console.print(f"Wrote handoff for {session.id} to {args.output}")
    else:
        sys.stdout.write(context.markdown)


def cmd_inspect(args):
    """Show what the pipeline extracted from one session."""
    from .inspect import analyze_messages, compute_markdown_stats, render_inspection

    session, provider = _find(args.session_id)
    config = _resolve_config(args)
    context = provider.extract_context(session, config)
    analysis = analyze_messages(provider.load_messages(session, config))
    stats = compute_markdown_stats(context)

    console.print(render_inspection(context, analysis, stats, config.preset))

    if args.write_md:
        Path(args.write_md).write_text(context.markdown)
        console.print(f"Markdown written to {args.write_md}")


def main(argv=None):
    """Main entry point for the session-handoff CLI."""
    parser = argparse.ArgumentParser(
        description="Build handoff documents from AI coding assistant sessions",
        prog="session-handoff",
    )
    parser.add_argument("--version", "-v", action="store_true", help="Show version")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("providers", help="List providers")

    list_parser = subparsers.add_parser("list", help="List sessions")
    list_parser.add_argument("--harness", "-H", help="Filter to specific harness")
    list_parser.add_argument("--limit", "-l", type=int, default=20, help="Max sessions to show")

    handoff_parser = subparsers.add_parser("handoff", help="Generate handoff markdown")
    handoff_parser.add_argument("session_id", help="Session id or unique prefix")
    handoff_parser.add_argument("--preset", "-p", choices=list(PRESETS), help="Verbosity preset")
    handoff_parser.add_argument("--config", "-c", type=Path, help="YAML config file")
    handoff_parser.add_argument("--mode", "-m", choices=["inline", "reference"], default="inline", help="Render mode")
    handoff_parser.add_argument("--output", "-o", help="Write markdown to file instead of stdout")

    inspect_parser = subparsers.add_parser("inspect", help="Inspect extraction statistics")
    inspect_parser.add_argument("session_id", help="Session id or unique prefix")
    inspect_parser.add_argument("--preset", "-p", choices=list(PRESETS), help="Verbosity preset")
    inspect_parser.add_argument("--write-md", help="Also write the markdown to this path")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.version:
        from . import __version__
        print(f"session-handoff {__version__}")
        return

    if args.command == "providers":
        cmd_providers(args)
    elif args.command == "list":
        cmd_list(args)
    elif args.command == "handoff":
        cmd_handoff(args)
    elif args.command == "inspect":
        cmd_inspect(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
