"""Configuration loading for leakscope.

Settings come from, in increasing precedence:
- built-in defaults (``DEFAULTS``)
- ``leakscope.toml`` or ``[tool.leakscope]`` in ``pyproject.toml``
- CI environment variables (commit range only)
- command-line options

Example leakscope.toml:
    scope = "staged"
    redact = true
    engine_args = ["--verbose"]

    [[reports]]
    format = "sarif"
    path = "leaks.sarif"
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from pydantic_settings import BaseSettings, SettingsConfigDict

from leakscope.scanner.base import (
    ConfigError,
    ReportFormat,
    ReportTarget,
    ScanScope,
)

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "leakscope.toml"

# Engine rule files picked up when no explicit --config is given
ENGINE_CONFIG_CANDIDATES = (
    ".gitleaks.toml",
    "gitleaks.toml",
    ".gitleaks/config.toml",
)

# Written by `leakscope init`
DEFAULT_ENGINE_CONFIG = r"""title = "gitleaks config"

# Start from the rules that ship with gitleaks
[extend]
useDefault = true

[allowlist]
description = "Project allowlist"
paths = [
    '''(^|/)leakscope-report\.[a-z]+$''',
    '''(^|/)(package-lock\.json|poetry\.lock|uv\.lock)$''',
]
# stopwords = ["example", "changeme"]
"""

DEFAULTS: dict[str, Any] = {
    "scope": ScanScope.STAGED,
    "redact": True,
    "engine_timeout": 1800,
    "include_untracked": True,
    "html_report": "leakscope-report.html",
    "report_basename": "leakscope-report",
}

REPORT_EXTENSIONS: dict[ReportFormat, str] = {
    ReportFormat.JSON: ".json",
    ReportFormat.CSV: ".csv",
    ReportFormat.SARIF: ".sarif",
    ReportFormat.JUNIT: ".xml",
    ReportFormat.HTML: ".html",
}

# Flags the orchestrator owns: consumed, never forwarded to the engine
CONSUMED_WITH_VALUE: dict[str, str] = {
    "--diff-mode": "scope",
    "--depth": "depth",
    "--report-format": "report_format",
    "-f": "report_format",
    "--report-path": "report_path",
    "-r": "report_path",
    "--config": "config_path",
    "-c": "config_path",
    "--gitleaks-version": "engine_version",
}
CONSUMED_OPTIONAL_VALUE: dict[str, str] = {
    "--html-report": "html_report",
}
CONSUMED_FLAGS: dict[str, str] = {
    "--redact": "redact",
    "--engine-version": "engine_info",
}

# Flags that would break the invocation contract: dropped with a warning
RESERVED_WITH_VALUE = frozenset({"--source", "-s", "--log-opts", "--exit-code", "--report-template"})
RESERVED_FLAGS = frozenset({"--no-git", "--pipe"})


class CIEnvironment(BaseSettings):
    """Commit range hints exported by CI systems."""

    model_config = SettingsConfigDict(extra="ignore", env_ignore_empty=True)

    leakscope_base_ref: str | None = None
    leakscope_head_ref: str | None = None
    # GitHub Actions (pull_request events)
    github_base_ref: str | None = None
    github_sha: str | None = None
    # GitLab merge request pipelines
    ci_merge_request_diff_base_sha: str | None = None
    ci_commit_sha: str | None = None

    @property
    def base_ref(self) -> str | None:
        if self.leakscope_base_ref:
            return self.leakscope_base_ref
        if self.github_base_ref:
            return f"origin/{self.github_base_ref}"
        return self.ci_merge_request_diff_base_sha

    @property
    def head_ref(self) -> str | None:
        return self.leakscope_head_ref or self.github_sha or self.ci_commit_sha


def parse_scope(value: str | ScanScope) -> ScanScope:
    """Parse a scope name, raising ConfigError on unknown values."""
    if isinstance(value, ScanScope):
        return value
    try:
        return ScanScope(str(value).strip().lower())
    except ValueError:
        valid = ", ".join(s.value for s in ScanScope)
        raise ConfigError(f"Invalid diff mode '{value}'. Valid options: {valid}") from None


def parse_report_format(value: str) -> ReportFormat:
    try:
        return ReportFormat(value.strip().lower())
    except ValueError:
        valid = ", ".join(f.value for f in ReportFormat)
        raise ConfigError(f"Invalid report format '{value}'. Valid options: {valid}") from None


def build_report_targets(
    report_format: str | None = None,
    report_path: str | Path | None = None,
    html_report: str | Path | None = None,
) -> list[ReportTarget]:
    """
    Turn the report options into targets.

    A format without a path gets ``leakscope-report.<ext>``; a path without a
    format is inferred from its extension and falls back to JSON.
    """
    targets: list[ReportTarget] = []

    if report_format or report_path:
        if report_format:
            fmt = parse_report_format(report_format)
        else:
            suffix = Path(report_path).suffix.lower()  # type: ignore[arg-type]
            fmt = next(
                (f for f, ext in REPORT_EXTENSIONS.items() if ext == suffix),
                ReportFormat.JSON,
            )
        path = Path(report_path) if report_path else Path(
            DEFAULTS["report_basename"] + REPORT_EXTENSIONS[fmt]
        )
        targets.append(ReportTarget(fmt, path))

    if html_report:
        targets.append(ReportTarget(ReportFormat.HTML, Path(html_report)))

    return targets


def _dedupe_targets(targets: list[ReportTarget]) -> list[ReportTarget]:
    # Each target is written once per scan
    return list(dict.fromkeys(targets))


def _anchor(path: Path | None, base_dir: Path | None) -> Path | None:
    if path is None or base_dir is None or path.is_absolute():
        return path
    return base_dir / path


@dataclass
class ScanConfig:
    """Finalised configuration for one scan.

    Attributes:
        scope: Which subset of the repository to scan.
        config_path: Engine rules file (gitleaks ``--config``).
        additional_engine_args: Flags forwarded verbatim to the engine.
        report_targets: Report files to write.
        ci_base_ref: Base of the CI commit range.
        ci_head_ref: Head of the CI commit range.
        debug: Verbose logging; keeps the temporary workspace for inspection.
        depth: History mode only, limit to the last N commits.
        redact: Ask the engine to redact secrets in its output.
        engine_path: Explicit engine binary.
        engine_timeout: Seconds before an engine run is aborted.
        include_untracked: ``all`` mode also scans untracked, non-ignored files.
        quiet: Suppress the console summary.
    """

    scope: ScanScope = DEFAULTS["scope"]
    config_path: Path | None = None
    additional_engine_args: list[str] = field(default_factory=list)
    report_targets: list[ReportTarget] = field(default_factory=list)
    ci_base_ref: str | None = None
    ci_head_ref: str | None = None
    debug: bool = False
    depth: int | None = None
    redact: bool = DEFAULTS["redact"]
    engine_path: Path | None = None
    engine_timeout: int | None = DEFAULTS["engine_timeout"]
    include_untracked: bool = DEFAULTS["include_untracked"]
    quiet: bool = False

    @classmethod
    def from_dict(cls, config: dict[str, Any], base_dir: Path | None = None) -> ScanConfig:
        """Create config from a dictionary (e.g., from leakscope.toml).

        Engine flags listed under ``engine_args`` go through the same
        pass-through filter as command-line flags. Relative rules file and
        engine paths are taken relative to ``base_dir`` when given, so a
        config file means the same thing from any working directory. Report
        paths stay relative to the working directory.

        Raises:
            ConfigError: On values of the wrong type or unknown names.
        """
        engine_args = config.get("engine_args", [])
        if isinstance(engine_args, str):
            engine_args = engine_args.split()
        if not isinstance(engine_args, list):
            raise ConfigError("engine_args must be a list of strings")

        consumed, passthrough = split_engine_args([str(a) for a in engine_args])

        targets: list[ReportTarget] = []
        for entry in config.get("reports", []):
            if not isinstance(entry, dict) or "format" not in entry:
                raise ConfigError("each [[reports]] entry needs a format")
            targets.extend(build_report_targets(entry["format"], entry.get("path")))
        if config.get("html_report"):
            targets.extend(build_report_targets(html_report=config["html_report"]))

        depth = config.get("depth")
        if depth is not None and (not isinstance(depth, int) or depth < 1):
            raise ConfigError(f"depth must be a positive integer, got {depth!r}")

        base = cls(
            scope=parse_scope(config.get("scope", DEFAULTS["scope"])),
            config_path=Path(config["config_path"]) if config.get("config_path") else None,
            additional_engine_args=passthrough,
            report_targets=targets,
            ci_base_ref=config.get("base_ref"),
            ci_head_ref=config.get("head_ref"),
            depth=depth,
            redact=bool(config.get("redact", DEFAULTS["redact"])),
            engine_path=Path(config["engine_path"]) if config.get("engine_path") else None,
            engine_timeout=config.get("engine_timeout", DEFAULTS["engine_timeout"]),
            include_untracked=bool(config.get("include_untracked", DEFAULTS["include_untracked"])),
        )
        loaded = base.apply_consumed(consumed)
        return replace(
            loaded,
            config_path=_anchor(loaded.config_path, base_dir),
            engine_path=_anchor(loaded.engine_path, base_dir),
        )

    def apply_consumed(self, consumed: dict[str, Any]) -> ScanConfig:
        """Return a copy with orchestrator-owned engine flags applied."""
        if not consumed:
            return self

        updates: dict[str, Any] = {}
        if "scope" in consumed:
            updates["scope"] = parse_scope(consumed["scope"])
        if "depth" in consumed:
            try:
                updates["depth"] = int(consumed["depth"])
            except ValueError:
                raise ConfigError(f"--depth requires a number, got {consumed['depth']!r}") from None
        if "config_path" in consumed:
            updates["config_path"] = Path(consumed["config_path"])
        if "redact" in consumed:
            updates["redact"] = True
        if "engine_version" in consumed:
            logger.warning(
                "Ignoring engine version pin %s: leakscope uses the installed gitleaks",
                consumed["engine_version"],
            )
        if "engine_info" in consumed:
            logger.warning("Ignoring --engine-version; run `leakscope engine-version` instead")

        targets = list(self.report_targets)
        targets.extend(
            build_report_targets(
                consumed.get("report_format"),
                consumed.get("report_path"),
                consumed.get("html_report"),
            )
        )
        updates["report_targets"] = _dedupe_targets(targets)
        return replace(self, **updates)

    def with_ci_environment(self, env: CIEnvironment | None = None) -> ScanConfig:
        """Fill in a missing commit range from CI environment variables."""
        if self.ci_base_ref and self.ci_head_ref:
            return self
        env = env or CIEnvironment()
        return replace(
            self,
            ci_base_ref=self.ci_base_ref or env.base_ref,
            ci_head_ref=self.ci_head_ref or env.head_ref,
        )


def split_engine_args(args: list[str]) -> tuple[dict[str, Any], list[str]]:
    """
    Separate orchestrator-owned flags from flags meant for the engine.

    Owned flags are consumed and returned by name; flags that would change
    what or how the engine scans are dropped with a warning; everything else
    is forwarded untouched, in order.

    Parameters:
        args: Raw flags, e.g. from the command line after ``--``.

    Returns:
        Tuple of (consumed settings, pass-through flags).
    """
    consumed: dict[str, Any] = {}
    passthrough: list[str] = []

    def takes_value(index: int) -> bool:
        return index + 1 < len(args) and not args[index + 1].startswith("-")

    i = 0
    while i < len(args):
        arg = args[i]
        name, eq, inline_value = arg.partition("=")

        if name in CONSUMED_WITH_VALUE:
            key = CONSUMED_WITH_VALUE[name]
            if eq:
                consumed[key] = inline_value
            elif takes_value(i):
                consumed[key] = args[i + 1]
                i += 1
            else:
                logger.warning("%s requires a value; ignoring it", name)
        elif name in CONSUMED_OPTIONAL_VALUE:
            key = CONSUMED_OPTIONAL_VALUE[name]
            if eq:
                consumed[key] = inline_value
            elif takes_value(i):
                consumed[key] = args[i + 1]
                i += 1
            else:
                consumed[key] = DEFAULTS[key]
        elif name in CONSUMED_FLAGS:
            consumed[CONSUMED_FLAGS[name]] = True
        elif name in RESERVED_WITH_VALUE:
            logger.warning("Dropping engine flag %s: leakscope controls it", name)
            if not eq and takes_value(i):
                i += 1
        elif name in RESERVED_FLAGS:
            logger.warning("Dropping engine flag %s: leakscope controls it", name)
        else:
            passthrough.append(arg)
        i += 1

    return consumed, passthrough


def find_config(start: Path | None = None) -> Path | None:
    """
    Find the nearest leakscope configuration file.

    Walks from ``start`` (default: cwd) up to the filesystem root looking for
    ``leakscope.toml``, or a ``pyproject.toml`` with a ``[tool.leakscope]``
    table.

    Returns:
        Path to the config file, or None.
    """
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate

        pyproject = directory / "pyproject.toml"
        if pyproject.is_file():
            try:
                data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
            except (tomllib.TOMLDecodeError, OSError):
                continue
            if "leakscope" in data.get("tool", {}):
                return pyproject
    return None


def load_config(path: Path | None = None) -> ScanConfig:
    """
    Load configuration from a TOML file.

    Parameters:
        path: Explicit file; discovered with find_config() when None.

    Returns:
        ScanConfig built from the file, or defaults when there is none.

    Raises:
        ConfigError: If the file is missing, unreadable, or invalid.
    """
    if path is None:
        path = find_config()
        if path is None:
            return ScanConfig()
    elif not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"TOML syntax error in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    if path.name == "pyproject.toml":
        data = data.get("tool", {}).get("leakscope", {})

    logger.debug("Loaded configuration from %s", path)
    return ScanConfig.from_dict(data, base_dir=path.resolve().parent)


def discover_engine_config(root: Path) -> Path | None:
    """Return the first gitleaks rules file present under root."""
    for name in ENGINE_CONFIG_CANDIDATES:
        candidate = root / name
        if candidate.is_file():
            return candidate
    return None
