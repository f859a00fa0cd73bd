"""depscope CLI entry point."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from depscope import __version__

if TYPE_CHECKING:
    from depscope.collaborators import Toolchain

_project_option = click.option(
    "--project",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: current directory).",
)

_plugin_option = click.option(
    "--plugin",
    envvar="DEPSCOPE_PLUGIN",
    required=True,
    help="Toolchain factory as 'package.module:factory' (env: DEPSCOPE_PLUGIN).",
)


@click.group()
@click.version_option(version=__version__, prog_name="depscope")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """depscope - incremental architectural dependency checks over compiled artifacts."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _load_toolchain(spec: str) -> Toolchain:
    from depscope.infrastructure.plugins import PluginError, load_toolchain

    try:
        return load_toolchain(spec)
    except PluginError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)


@main.command()
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["rich", "json", "porcelain"]),
    default=None,
    help="Output format (default: rich if TTY, porcelain if piped).",
)
@click.option(
    "--strict",
    is_flag=True,
    default=False,
    help="Exit 1 if any diagnostic is reported.",
)
@_plugin_option
@_project_option
def build(*, fmt: str | None, strict: bool, plugin: str, project: Path | None) -> None:
    """Run a full dependency check over the project's compiled artifacts.

    Exit codes: 0 = clean or diagnostics without --strict,
    1 = diagnostics with --strict, 2 = plugin or build error.
    """
    from depscope.builder.orchestrator import BuildError, BuildOrchestrator
    from depscope.config.configuration import has_config
    from depscope.infrastructure.diagnostics import FORMATTERS, DiagnosticStore
    from depscope.infrastructure.workspace import FileSystemWorkspace
    from depscope.model import PassKind

    project_root = project or Path.cwd()

    if fmt is None:
        fmt = "rich" if sys.stdout.isatty() else "porcelain"

    if not has_config(project_root):
        click.echo("No depscope configuration found; nothing to check.")
        return

    toolchain = _load_toolchain(plugin)
    store = DiagnosticStore()
    orchestrator = BuildOrchestrator(
        project_root, FileSystemWorkspace(project_root), toolchain, store
    )
    try:
        result = orchestrator.build(PassKind.FULL)
    except BuildError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    diagnostics = store.diagnostics()
    output = FORMATTERS[fmt](result, diagnostics, project_root)
    if output:
        click.echo(output)

    if strict and diagnostics:
        sys.exit(1)


@main.command("watch")
@click.option(
    "--debounce",
    default=500,
    type=int,
    help="Debounce delay in milliseconds (default: 500).",
)
@_plugin_option
@_project_option
def watch_cmd(*, debounce: int, plugin: str, project: Path | None) -> None:
    """Watch files and rebuild on changes.

    Checking starts when a configuration file appears and stops when it is
    removed.  Requires watchfiles: pip install depscope[watch]
    """
    try:
        import watchfiles  # noqa: F401

        from depscope.infrastructure.watcher import WatchSession, watch
    except ImportError:
        click.echo(
            "Error: watch requires 'watchfiles'. Install with: pip install depscope[watch]",
            err=True,
        )
        sys.exit(1)

    from depscope.builder.orchestrator import BuildOrchestrator
    from depscope.infrastructure.diagnostics import DiagnosticStore
    from depscope.infrastructure.workspace import FileSystemWorkspace

    project_root = (project or Path.cwd()).absolute()
    toolchain = _load_toolchain(plugin)
    workspace = FileSystemWorkspace(project_root)
    store = DiagnosticStore()
    orchestrator = BuildOrchestrator(project_root, workspace, toolchain, store)
    watch(WatchSession(project_root, orchestrator, workspace, store), debounce_ms=debounce)


@main.command("config")
@_plugin_option
@_project_option
def config_cmd(*, plugin: str, project: Path | None) -> None:
    """Show the parsed scopes and any configuration errors."""
    from depscope.config.configuration import load_configuration

    project_root = project or Path.cwd()
    toolchain = _load_toolchain(plugin)
    configuration = load_configuration(project_root, toolchain.rule_loader)

    if not configuration.is_active:
        click.echo("No depscope configuration found.")
        return

    click.echo(f"Max errors: {configuration.max_errors}")
    for scope in configuration.scopes:
        click.echo(f"Scope {scope.label}")
        for root in scope.root_paths:
            click.echo(f"  classes:  {root}")
        for rule_set in scope.rule_sets:
            click.echo(f"  ruleset:  {rule_set.name or '(anonymous)'}")
        if not scope.check_classes:
            click.echo("  checking disabled")
        if scope.extract_from_annotations:
            click.echo("  extracts rules from annotations")
    if configuration.errors:
        click.echo("")
        for err in configuration.errors:
            click.echo(f"  [ERR] {err.resource}: {err.message}")
        sys.exit(1)
