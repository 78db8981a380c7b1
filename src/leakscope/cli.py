"""Command-line interface for leakscope."""

from pathlib import Path
from typing import Annotated

import typer

from leakscope.cli_commands.scan import EXIT_ERROR, engine_version, scan
from leakscope.config import DEFAULT_ENGINE_CONFIG, ENGINE_CONFIG_CANDIDATES
from leakscope.output.rich import console, print_error

app = typer.Typer(
    name="leakscope",
    help="Scope-aware secret scanning with gitleaks.",
    no_args_is_help=True,
)

# Unknown options are collected and forwarded to gitleaks
app.command(
    name="scan",
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)(scan)
app.command(name="engine-version")(engine_version)


@app.command()
def init(
    directory: Annotated[
        Path, typer.Argument(help="Project directory to create .gitleaks.toml in")
    ] = Path("."),
) -> None:
    """Create a default .gitleaks.toml extending the built-in gitleaks rules."""
    target = directory / ENGINE_CONFIG_CANDIDATES[0]
    if target.exists():
        console.print(f"[yellow]{target} already exists[/yellow], leaving it unchanged")
        return

    try:
        target.write_text(DEFAULT_ENGINE_CONFIG, encoding="utf-8")
    except OSError as e:
        print_error(f"Cannot write {target}: {e}")
        raise typer.Exit(code=EXIT_ERROR) from None

    console.print(f"[green]Created[/green] {target}")


@app.command()
def version() -> None:
    """Show leakscope version."""
    from leakscope import __version__

    console.print(f"leakscope [bold green]{__version__}[/bold green]")


if __name__ == "__main__":
    app()
