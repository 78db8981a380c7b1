"""Scan command - run gitleaks on the part of the repository that matters.

Modes:
    staged   only what is staged for the next commit (pre-commit hooks)
    all      staged plus unstaged and untracked working tree changes
    ci       commits in base..head, reporting only lines those commits add
    history  the whole repository history

Configuration can be set in leakscope.toml or [tool.leakscope]:
    scope = "staged"
    redact = true
    engine_args = ["--verbose"]

Any option leakscope does not know is passed to gitleaks unchanged.
``--html-report [PATH]`` is read from those options so it can be given bare,
in which case the report goes to leakscope-report.html.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from leakscope.config import ScanConfig, build_report_targets, load_config, split_engine_args
from leakscope.output.rich import console, err_console, print_error, setup_logging
from leakscope.scanner.base import (
    EngineProcessError,
    LeakscopeError,
    ReportWriteError,
    ScanScope,
)
from leakscope.scanner.engine import ScanEngine
from leakscope.scanner.gitleaks import get_engine_version, resolve_engine_binary

# Exit codes
EXIT_CLEAN = 0
EXIT_LEAKS = 1
EXIT_ERROR = 2


def build_config(
    file_config: ScanConfig,
    engine_args: list[str],
    mode: ScanScope | None = None,
    base: str | None = None,
    head: str | None = None,
    depth: int | None = None,
    rules: Path | None = None,
    engine: Path | None = None,
    report_format: str | None = None,
    report_path: Path | None = None,
    no_redact: bool = False,
    quiet: bool = False,
    debug: bool = False,
) -> ScanConfig:
    """
    Merge file configuration, pass-through flags and CLI options.

    CLI options win over flags found among the engine arguments, which win
    over the configuration file.

    Raises:
        ConfigError: On invalid values.
    """
    consumed, passthrough = split_engine_args(engine_args)
    config = file_config.apply_consumed(consumed)

    targets = list(config.report_targets)
    for target in build_report_targets(report_format, report_path):
        if target not in targets:
            targets.append(target)

    config = replace(
        config,
        scope=mode or config.scope,
        ci_base_ref=base or config.ci_base_ref,
        ci_head_ref=head or config.ci_head_ref,
        depth=depth if depth is not None else config.depth,
        config_path=rules or config.config_path,
        engine_path=engine or config.engine_path,
        redact=False if no_redact else config.redact,
        additional_engine_args=[*config.additional_engine_args, *passthrough],
        report_targets=targets,
        quiet=quiet,
        debug=debug,
    )

    if config.scope is ScanScope.CI:
        config = config.with_ci_environment()
    return config


def scan(
    ctx: typer.Context,
    mode: Annotated[
        ScanScope | None,
        typer.Option(
            "--mode",
            "--diff-mode",
            "-m",
            case_sensitive=False,
            help="What to scan: staged (default), all, ci or history",
        ),
    ] = None,
    base: Annotated[
        str | None,
        typer.Option("--base", help="CI mode: base of the commit range (e.g. origin/main)"),
    ] = None,
    head: Annotated[
        str | None,
        typer.Option("--head", help="CI mode: head of the commit range (e.g. HEAD)"),
    ] = None,
    depth: Annotated[
        int | None,
        typer.Option("--depth", min=1, help="History mode: only the last N commits"),
    ] = None,
    rules: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="gitleaks rules file (default: .gitleaks.toml if present)",
        ),
    ] = None,
    project_config: Annotated[
        Path | None,
        typer.Option(
            "--project-config",
            help="Path to leakscope.toml (auto-detected if not specified)",
        ),
    ] = None,
    engine: Annotated[
        Path | None,
        typer.Option("--engine", help="Path to the gitleaks binary"),
    ] = None,
    report_format: Annotated[
        str | None,
        typer.Option("--report-format", "-f", help="Report format: json, csv, sarif, junit, html"),
    ] = None,
    report_path: Annotated[
        Path | None,
        typer.Option("--report-path", "-r", help="Where to write the report"),
    ] = None,
    no_redact: Annotated[
        bool,
        typer.Option("--no-redact", help="Keep secret values in report files"),
    ] = False,
    ci: Annotated[
        bool,
        typer.Option("--ci", help="CI mode: no colors"),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Do not print findings to the console"),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Verbose logging; keep temporary files"),
    ] = False,
) -> None:
    """Scan for secrets in staged changes, uncommitted changes, a CI range or history.

    \b
    Exit codes:
      0 - No leaks found
      1 - Leaks found
      2 - Scan could not run (configuration, git or gitleaks error)

    \b
    Examples:
      leakscope scan                                   # pre-commit: staged changes
      leakscope scan --mode all                        # everything not yet committed
      leakscope scan --mode ci --base origin/main --head HEAD
      leakscope scan --mode history --depth 50 -f sarif -r leaks.sarif
      leakscope scan --mode all --html-report              # leakscope-report.html
      leakscope scan --verbose --baseline-path base.json  # flags for gitleaks
    """
    setup_logging(debug=debug, no_color=ci)

    try:
        config = build_config(
            load_config(project_config),
            list(ctx.args),
            mode=mode,
            base=base,
            head=head,
            depth=depth,
            rules=rules,
            engine=engine,
            report_format=report_format,
            report_path=report_path,
            no_redact=no_redact,
            quiet=quiet,
            debug=debug,
        )
    except LeakscopeError as e:
        print_error(str(e))
        raise typer.Exit(code=EXIT_ERROR) from None

    output_console = Console(force_terminal=False, no_color=True) if ci else console

    try:
        found = ScanEngine(config, console=output_console).run()
    except ReportWriteError as e:
        print_error(str(e))
        raise typer.Exit(code=EXIT_ERROR) from None
    except EngineProcessError as e:
        print_error(str(e))
        if e.stderr and debug:
            err_console.print(e.stderr, markup=False, highlight=False)
        if e.artifact is not None and debug:
            err_console.print(f"[dim]Engine report: {e.artifact}[/dim]")
        raise typer.Exit(code=EXIT_ERROR) from None
    except LeakscopeError as e:
        print_error(str(e))
        raise typer.Exit(code=EXIT_ERROR) from None

    if found:
        raise typer.Exit(code=EXIT_LEAKS)


def engine_version(
    engine: Annotated[
        Path | None,
        typer.Option("--engine", help="Path to the gitleaks binary"),
    ] = None,
) -> None:
    """Show which gitleaks binary leakscope uses and its version."""
    try:
        binary = resolve_engine_binary(engine)
    except LeakscopeError as e:
        print_error(str(e))
        raise typer.Exit(code=EXIT_ERROR) from None

    version = get_engine_version(binary)
    console.print(f"gitleaks: [bold]{binary}[/bold]")
    console.print(f"version:  [bold green]{version or 'unknown'}[/bold green]")
