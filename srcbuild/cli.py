"""Thin CLI wrapper for srcbuild.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from srcbuild import __version__
from srcbuild.config import get_settings, print_settings_json
from srcbuild.errors import ConfigurationError, MalformedVersionError
from srcbuild.shell.runner import install_termination_handler

app = typer.Typer(
    name="srcbuild",
    help="srcbuild - build dependencies from their source repositories",
    no_args_is_help=True,
)
console = Console()


def configure_logging(level: str) -> None:
    """Send log records to stderr through rich."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"srcbuild version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """srcbuild - build dependencies from their source repositories."""
    configure_logging(get_settings().log_level)
    install_termination_handler()


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(print_settings_json(settings), markup=False, emoji=False, soft_wrap=True)
    else:
        console.print("[bold]Effective Configuration:[/bold]")
        console.print()
        console.print("[bold]Paths:[/bold]")
        console.print(f"  Sources directory:   {settings.sources_dir}")
        console.print(f"  Config file:         {settings.config_file}")
        console.print()
        console.print("[bold]Operational:[/bold]")
        console.print(f"  Log level:           {settings.log_level}")
        console.print(f"  Git executable:      {settings.git_executable}")
        console.print()
        console.print("[bold]Concurrency:[/bold]")
        console.print(f"  Workspace slots:     {settings.max_workspace_slots}")
        console.print(f"  Create retries:      {settings.directory_create_retries}")
        console.print()
        console.print("[bold]Timeouts (milliseconds):[/bold]")
        console.print(f"  Build timeout:       {settings.build_timeout_ms}")
        console.print(f"  Poll interval:       {settings.poll_interval_ms}")


version_app = typer.Typer(help="Inspect source versions")
app.add_typer(version_app, name="version")


@version_app.command("parse")
def version_parse(
    raw: Annotated[str, typer.Argument(help="Version string, e.g. 1.0-SRC-tag-v1.0")],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Parse a version string and show its elements."""
    from srcbuild.version import SourceVersion

    try:
        src_version = SourceVersion.parse(raw)
    except MalformedVersionError as e:
        if json_output:
            console.print(
                json.dumps({"raw": raw, "error": str(e), "code": e.code}, indent=2),
                markup=False,
                emoji=False,
                soft_wrap=True,
            )
        else:
            console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None

    if json_output:
        output = {
            "raw": raw,
            "is_src_version": src_version is not None,
            "elements": [
                {"type": el.version_type, "version": el.version}
                for el in (src_version.elements if src_version else ())
            ],
        }
        console.print(json.dumps(output, indent=2), markup=False, emoji=False, soft_wrap=True)
        return

    if src_version is None:
        console.print(f"[yellow]{raw} is not a source version[/yellow]")
        return
    console.print(f"[bold]Source version {raw}:[/bold]")
    for el in src_version.elements:
        console.print(f"  {el.version_type}: [green]{el.version}[/green]")


def _parse_dependency(dependency: str) -> tuple[str, str]:
    group_id, _, raw_version = dependency.partition(":")
    if not group_id or not raw_version:
        raise typer.BadParameter(
            f"Expected groupId:version, got '{dependency}'", param_hint="DEP"
        )
    return group_id, raw_version


@app.command("build")
def build_cmd(
    dependencies: Annotated[
        list[str],
        typer.Argument(help="Dependencies as groupId:version"),
    ],
    config_file: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Repository configuration file"),
    ] = None,
    sources_dir: Annotated[
        Path | None,
        typer.Option("--sources-dir", help="Root directory for source workspaces"),
    ] = None,
    mode: Annotated[
        str,
        typer.Option(
            "--mode", "-m", help="Batch mode: fail-fast or best-effort (default)"
        ),
    ] = "best-effort",
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Build dependencies from source.

    Each dependency whose version is a source version (containing -SRC-) is
    checked out from the repository configured for its groupId and built.
    Use --mode=fail-fast to stop on first failure, or --mode=best-effort to
    continue with remaining dependencies after failures.
    """
    from srcbuild.builds.service import build_dependencies
    from srcbuild.repositories.io import load_configuration
    from srcbuild.types import BatchMode

    try:
        batch_mode = BatchMode(mode)
    except ValueError:
        console.print(f"[red]Invalid mode: {mode}[/red]")
        console.print("Valid values: fail-fast, best-effort")
        raise typer.Exit(code=1) from None

    parsed = [_parse_dependency(d) for d in dependencies]

    settings = get_settings()
    if sources_dir is not None:
        settings = settings.model_copy(update={"sources_dir": sources_dir})

    try:
        configuration = load_configuration(config_file or settings.config_file)
    except ConfigurationError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None
    if sources_dir is not None:
        configuration = configuration.model_copy(update={"sources_directory": sources_dir})

    if not json_output:
        console.print("[blue]Starting source builds...[/blue]")

    result = build_dependencies(configuration, parsed, mode=batch_mode, settings=settings)

    if json_output:
        console.print(result.model_dump_json(indent=2), markup=False, emoji=False, soft_wrap=True)
    else:
        console.print()
        console.print("[bold]Build Results:[/bold]")
        console.print(f"  Total dependencies: {result.total}")
        console.print(f"  [green]Succeeded: {result.succeeded}[/green]")
        if result.failed > 0:
            console.print(f"  [red]Failed: {result.failed}[/red]")
        if result.stopped_early:
            console.print("  [yellow]Stopped early (fail-fast mode)[/yellow]")

        console.print()
        for r in result.results:
            dep = f"{r.details['group_id']}:{r.details['version']}"
            if r.success:
                console.print(f"  [green]✓ {dep}[/green]")
                console.print(f"      {escape(r.message)}")
            else:
                console.print(f"  [red]✗ {dep}[/red]")
                console.print(f"      Error: {escape(r.message)}")

    if not result.success:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
