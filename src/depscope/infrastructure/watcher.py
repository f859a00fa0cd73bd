"""File watcher: rebuild on file changes while a configuration file is present."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from depscope.builder.orchestrator import BuildError
from depscope.config.configuration import has_config
from depscope.model import CONFIG, CONFIG_NAMES, VIOLATION, PassKind

if TYPE_CHECKING:
    import threading
    from collections.abc import Callable, Iterable

    from depscope.builder.orchestrator import BuildOrchestrator, BuildResult
    from depscope.collaborators import DiagnosticSink
    from depscope.infrastructure.workspace import FileSystemWorkspace

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 500

_TEMP_SUFFIXES = (".tmp", ".swp", ".swx", "~")


def _is_config_file(path_str: str, project_root: Path) -> bool:
    """Check if *path_str* is one of the configuration files in the project root."""
    p = Path(path_str)
    return p.parent == project_root and p.name in CONFIG_NAMES


def _filter_relevant(
    changes: Iterable[tuple[object, str]],
    project_root: Path,
) -> list[tuple[object, str]]:
    """Drop temp files, files in hidden directories, and paths outside the project."""
    result: list[tuple[object, str]] = []

    for change_type, path_str in changes:
        p = Path(path_str)

        if p.name.startswith("~") or p.name.endswith(_TEMP_SUFFIXES):
            continue

        try:
            rel = p.relative_to(project_root)
        except ValueError:
            continue

        if any(part.startswith(".") for part in rel.parts[:-1]):
            continue

        result.append((change_type, path_str))

    return result


def _format_time() -> str:
    """Return current time as ``HH:MM:SS`` string."""
    return datetime.now(tz=timezone.utc).strftime("%H:%M:%S")


@dataclass(frozen=True)
class WatchEvent:
    """A single watch event after filtering and debounce."""

    files_changed: int
    is_config_change: bool
    action: str  # "full" | "incremental" | "activated" | "deactivated" | "failed"
    diagnostics: int = 0


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class WatchSession:
    """Activation state of one watched project.

    The project is active while a configuration file exists.  Activation runs
    a full build; deactivation clears every diagnostic and forgets the parsed
    configuration.  While active, every batch runs an incremental build and
    the orchestrator's fingerprints decide whether to reconfigure.
    """

    def __init__(
        self,
        project_root: Path,
        orchestrator: BuildOrchestrator,
        workspace: FileSystemWorkspace,
        sink: DiagnosticSink,
    ) -> None:
        self.project_root = project_root
        self._orchestrator = orchestrator
        self._workspace = workspace
        self._sink = sink
        self.active = False

    def start(self) -> BuildResult | None:
        """Activate if a configuration file exists; return the initial build."""
        if not has_config(self.project_root):
            return None
        self.active = True
        return self._orchestrator.build(PassKind.FULL)

    def handle(self, relevant: list[tuple[object, str]]) -> WatchEvent | None:
        """Process one filtered batch; ``None`` when the project stays inactive."""
        self._workspace.record_changes(relevant)
        config_changed = any(_is_config_file(p, self.project_root) for _, p in relevant)
        now_active = has_config(self.project_root)

        if not now_active:
            if not self.active:
                return None
            self.active = False
            self._sink.clear_diagnostics(None, kind=VIOLATION)
            self._sink.clear_diagnostics(None, kind=CONFIG)
            self._orchestrator.reset()
            logger.info("Configuration removed; project deactivated")
            return WatchEvent(len(relevant), config_changed, "deactivated")

        kind = PassKind.INCREMENTAL
        action = ""
        if not self.active:
            self.active = True
            kind = PassKind.FULL
            action = "activated"
            logger.info("Configuration found; project activated")

        try:
            result = self._orchestrator.build(kind)
        except BuildError as exc:
            logger.error("Build failed: %s", exc)
            return WatchEvent(len(relevant), config_changed, "failed")
        if result.cancelled:
            return None
        return WatchEvent(
            files_changed=len(relevant),
            is_config_change=config_changed,
            action=action or result.pass_kinds[-1],
            diagnostics=len(result.diagnostics),
        )


def watch(
    session: WatchSession,
    debounce_ms: int = DEFAULT_DEBOUNCE_MS,
    callback: Callable[[WatchEvent], None] | None = None,
    stop_event: threading.Event | None = None,
) -> None:
    """Watch the project and rebuild on changes.

    Requires ``watchfiles`` (optional dependency).
    """
    from rich.console import Console
    from watchfiles import watch as fs_watch

    console = Console()
    project_root = session.project_root

    console.print(f"[bold blue]Watching:[/bold blue] {project_root}")
    console.print(f"[dim]Debounce: {debounce_ms}ms  |  Press Ctrl+C to stop[/dim]")

    initial = session.start()
    if initial is None:
        console.print("[yellow]No configuration file; waiting for one.[/yellow]")
    else:
        console.print(f"[green]full build[/green] ({len(initial.diagnostics)} diagnostics)")
    console.print()

    try:
        for batch in fs_watch(project_root, debounce=debounce_ms, stop_event=stop_event):
            relevant = _filter_relevant(batch, project_root)
            if not relevant:
                continue

            event = session.handle(relevant)
            if event is None:
                continue

            timestamp = _format_time()
            n = event.files_changed
            files = f"{n} file{'s' if n != 1 else ''} changed"
            if event.action == "failed":
                console.print(f"[dim]{timestamp}[/dim] [red]build failed[/red] ({files})")
            elif event.action == "deactivated":
                console.print(f"[dim]{timestamp}[/dim] [yellow]deactivated[/yellow] ({files})")
            else:
                console.print(
                    f"[dim]{timestamp}[/dim] "
                    f"[green]{event.action} build[/green] "
                    f"({files}, {event.diagnostics} diagnostics)"
                )

            if callback is not None:
                callback(event)

    except KeyboardInterrupt:
        console.print("\n[yellow]Watch stopped.[/yellow]")
