"""In-memory diagnostic store and build report formatters."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from depscope.model import CONFIG, VIOLATION

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from depscope.builder.orchestrator import BuildResult
    from depscope.model import Diagnostic

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class DiagnosticStore:
    """A :class:`~depscope.collaborators.DiagnosticSink` keeping diagnostics per resource."""

    def __init__(self) -> None:
        self._by_resource: dict[str, list[Diagnostic]] = {}

    def add_diagnostic(self, diagnostic: Diagnostic) -> None:
        self._by_resource.setdefault(diagnostic.resource, []).append(diagnostic)

    def clear_diagnostics(self, resource: str | None = None, *, kind: str = VIOLATION) -> None:
        resources = list(self._by_resource) if resource is None else [resource]
        for name in resources:
            kept = [d for d in self._by_resource.get(name, ()) if d.kind != kind]
            if kept:
                self._by_resource[name] = kept
            else:
                self._by_resource.pop(name, None)

    def clear_all(self) -> None:
        self._by_resource.clear()

    def diagnostics(self, kind: str | None = None) -> list[Diagnostic]:
        """All diagnostics (optionally of one *kind*), sorted by resource then offset."""
        found = [
            d
            for name in sorted(self._by_resource)
            for d in sorted(self._by_resource[name], key=lambda d: (d.offset, d.length))
            if kind is None or d.kind == kind
        ]
        return found

    @property
    def resources(self) -> list[str]:
        return sorted(self._by_resource)

    def __len__(self) -> int:
        return sum(len(items) for items in self._by_resource.values())


# ---------------------------------------------------------------------------
# Source positions
# ---------------------------------------------------------------------------


def line_number(project_root: Path | None, diagnostic: Diagnostic) -> int | None:
    """1-based line of the diagnostic's offset, or ``None`` when the resource is unreadable."""
    if project_root is None:
        return None
    try:
        text = (project_root / diagnostic.resource).read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None
    return text.count("\n", 0, diagnostic.offset) + 1


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


def format_rich(
    result: BuildResult,
    diagnostics: Sequence[Diagnostic],
    project_root: Path | None = None,
) -> str:
    """Format a build as human-readable text (plain text, no Rich dependency).

    Example output with diagnostics::

        Scopes: 2 run, 14 artifacts checked (full)

        x src/com/example/core/Core.java:7
          Access to com.example.ui.UI denied by scope 'core'.

        1 diagnostic found (1 pass, 0.2s)
    """
    lines: list[str] = []

    lines.append(
        f"Scopes: {result.scopes_run} run, {result.artifacts_checked} artifacts checked"
        f" ({'/'.join(result.pass_kinds) or 'no passes'})"
    )
    lines.append("")

    elapsed_str = f"{result.elapsed_ms / 1000:.1f}s"
    passes = f"{result.iterations} pass{'es' if result.iterations != 1 else ''}"

    for d in diagnostics:
        loc = d.resource
        line = line_number(project_root, d)
        if line is not None:
            loc += f":{line}"
        marker = "config" if d.kind == CONFIG else "✗"
        lines.append(f"{marker} {loc}")
        lines.append(f"  {d.message}")
        lines.append("")

    if result.violations_rejected:
        lines.append(
            f"! {result.violations_rejected} further violations not reported"
            f" (limit {result.max_errors})"
        )
    if not result.converged:
        lines.append("! Rule extraction did not settle; results are from the last pass")

    if diagnostics:
        count = len(diagnostics)
        noun = "diagnostic" if count == 1 else "diagnostics"
        lines.append(f"{count} {noun} found ({passes}, {elapsed_str})")
    else:
        lines.append(f"✓ No violations found ({passes}, {elapsed_str})")

    return "\n".join(lines)


def format_json(
    result: BuildResult,
    diagnostics: Sequence[Diagnostic],
    project_root: Path | None = None,
) -> str:
    """Format a build as structured JSON with ``diagnostics`` and ``summary``."""
    diagnostics_list: list[dict[str, object]] = []
    for d in diagnostics:
        diagnostics_list.append(
            {
                "resource": d.resource,
                "line": line_number(project_root, d),
                "offset": d.offset,
                "length": d.length,
                "severity": d.severity,
                "kind": d.kind,
                "message": d.message,
            }
        )

    output: dict[str, object] = {
        "diagnostics": diagnostics_list,
        "summary": {
            "iterations": result.iterations,
            "pass_kinds": list(result.pass_kinds),
            "scopes_run": result.scopes_run,
            "artifacts_checked": result.artifacts_checked,
            "violations_reported": result.violations_reported,
            "violations_rejected": result.violations_rejected,
            "max_errors": result.max_errors,
            "diagnostics_count": len(diagnostics),
            "converged": result.converged,
            "elapsed_ms": result.elapsed_ms,
        },
    }

    return json.dumps(output, indent=2)


def format_porcelain(
    result: BuildResult,
    diagnostics: Sequence[Diagnostic],
    project_root: Path | None = None,
) -> str:
    """One line per diagnostic: ``kind:resource:line:offset:length:message``.

    An unknown line is an empty field.  Returns an empty string when there
    are no diagnostics.
    """
    if not diagnostics:
        return ""

    lines: list[str] = []
    for d in diagnostics:
        line = line_number(project_root, d)
        line_str = str(line) if line is not None else ""
        lines.append(f"{d.kind}:{d.resource}:{line_str}:{d.offset}:{d.length}:{d.message}")

    return "\n".join(lines)


FORMATTERS = {
    "rich": format_rich,
    "json": format_json,
    "porcelain": format_porcelain,
}
