"""CLI entry point for claude-manager."""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.text import Text

from claude_manager.config import ManagerConfig
from claude_manager.errors import CreationError
from claude_manager.pty.tools import ToolCheck, check_tool

app = typer.Typer(
    name="claude-manager",
    help="Run several interactive CLI sessions side by side and track what each one is doing.",
    no_args_is_help=True,
)

STATUS_STYLES = {
    "idle": "green",
    "busy": "yellow",
    "waiting": "bold magenta",
}


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@app.command()
def run(
    paths: list[str] = typer.Argument(help="Project directories, one session each."),
    command: str | None = typer.Option(
        None,
        "--command",
        "-c",
        help="Launch command (default: from config, usually 'claude').",
    ),
    summarize: bool = typer.Option(
        False,
        "--summarize",
        help="Request a summary whenever a session goes from busy to idle.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
    config_file: str | None = typer.Option(
        None, "--config", help="Path to a JSON config file."
    ),
) -> None:
    """Start one session per directory and follow their status until they exit."""
    setup_logging(verbose)
    config = _load_config(config_file)

    for path in paths:
        if not os.path.isdir(os.path.expanduser(path)):
            typer.echo(f"Error: Not a directory: {path}", err=True)
            raise typer.Exit(1)

    try:
        asyncio.run(_run_sessions(paths, command, summarize, config))
    except KeyboardInterrupt:
        typer.echo("\nInterrupted, all sessions were terminated.")


@app.command("config")
def show_config(
    config_file: str | None = typer.Option(
        None, "--config", help="Path to a JSON config file."
    ),
) -> None:
    """Print the effective configuration as JSON."""
    config = _load_config(config_file)
    typer.echo(config.model_dump_json(indent=2))


@app.command()
def check(
    config_file: str | None = typer.Option(
        None, "--config", help="Path to a JSON config file."
    ),
) -> None:
    """Check that the launch command and node run with the session PATH."""
    config = _load_config(config_file)
    console = Console()

    async def _check() -> tuple[ToolCheck, ToolCheck]:
        paths = config.shell.extra_paths
        return (
            await check_tool(config.shell.launch_command, extra_paths=paths),
            await check_tool("node", extra_paths=paths),
        )

    cli, node = asyncio.run(_check())
    for label, result in (("cli", cli), ("node", node)):
        if result.installed:
            console.print(
                f"[green]✓[/green] {label:<5} {escape(result.command)}  "
                f"{escape(result.version or '')}"
            )
        else:
            console.print(
                f"[red]✗[/red] {label:<5} {escape(result.command)}  not installed"
            )

    if not cli.installed:
        raise typer.Exit(1)


def _load_config(config_file: str | None) -> ManagerConfig:
    try:
        return ManagerConfig.load(config_file)
    except ValidationError as e:
        typer.echo(f"Error: Invalid configuration: {e}", err=True)
        raise typer.Exit(1) from e


async def _run_sessions(
    paths: list[str],
    command: str | None,
    summarize: bool,
    config: ManagerConfig,
) -> None:
    """Headless monitor: render wire events until every session is gone."""
    from claude_manager.controller import SessionController
    from claude_manager.session.wire import EventType

    console = Console()
    controller = SessionController(config)
    queue = controller.attach()
    names: dict[str, str] = {}
    statuses: dict[str, str] = {}

    try:
        for path in paths:
            try:
                session = await controller.create_session(path, command)
            except CreationError as e:
                console.print(f"[red]Failed:[/red] {escape(str(e))}")
                continue
            names[session.id] = session.display_name

        if not controller.sessions():
            return

        while True:
            event = await queue.get()
            if event is None:
                break

            d = event.data

            if event.type == EventType.SESSION_CREATED:
                s = d["session"]
                names[s["id"]] = s["display_name"]
                statuses[s["id"]] = s["status"]
                console.print(_line(s["display_name"], "started", s["working_directory"]))

            elif event.type == EventType.SESSION_UPDATED:
                s = d["session"]
                previous = statuses.get(s["id"])
                statuses[s["id"]] = s["status"]
                console.print(
                    _line(s["display_name"], s["status"], s["current_task"], s["status"])
                )
                if summarize and previous == "busy" and s["status"] == "idle":
                    controller.request_summary(s["id"])

            elif event.type == EventType.SUMMARY_UPDATED:
                name = names.get(d["session_id"], d["session_id"][:8])
                console.print(_line(name, "summary", f"{d['title']}: {d['summary']}"))

            elif event.type == EventType.SESSION_DELETED:
                session_id = d["session_id"]
                name = names.get(session_id, session_id[:8])
                code = d.get("exit_code")
                detail = f"{d['reason']} (code={'?' if code is None else code})"
                console.print(_line(name, "ended", detail))
                if not controller.sessions():
                    break
    finally:
        controller.detach(queue)
        await controller.shutdown()


def _line(name: str, label: str, detail: str, status: str | None = None) -> Text:
    text = Text(f"[{datetime.now():%H:%M:%S}] ", style="dim")
    text.append(f"{name:<20} ", style="bold")
    text.append(f"{label:<8} ", style=STATUS_STYLES.get(status or "", "cyan"))
    text.append(detail)
    return text


def main() -> None:
    app()


if __name__ == "__main__":
    main()
