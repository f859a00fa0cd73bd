"""Tests for depscope.infrastructure.diagnostics (store and formatters)."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from conftest import write

from depscope.builder.orchestrator import BuildResult
from depscope.infrastructure.diagnostics import (
    DiagnosticStore,
    format_json,
    format_porcelain,
    format_rich,
    line_number,
)
from depscope.model import CONFIG, Diagnostic

if TYPE_CHECKING:
    from pathlib import Path


def _result(**kwargs: object) -> BuildResult:
    defaults: dict[str, object] = {
        "iterations": 1,
        "pass_kinds": ["full"],
        "scopes_run": 2,
        "artifacts_checked": 14,
        "elapsed_ms": 200.0,
    }
    defaults.update(kwargs)
    return BuildResult(**defaults)  # type: ignore[arg-type]


_DIAG = Diagnostic("src/Core.java", "Access to app.ui.UI denied.", 27, 2)


class TestDiagnosticStore:
    def test_sorted_by_resource_and_offset(self) -> None:
        store = DiagnosticStore()
        store.add_diagnostic(Diagnostic("b.java", "m", 5, 1))
        store.add_diagnostic(Diagnostic("a.java", "m", 9, 1))
        store.add_diagnostic(Diagnostic("a.java", "m", 3, 1))

        assert [(d.resource, d.offset) for d in store.diagnostics()] == [
            ("a.java", 3),
            ("a.java", 9),
            ("b.java", 5),
        ]
        assert len(store) == 3

    def test_clear_by_kind(self) -> None:
        """Clearing violations leaves configuration diagnostics alone."""
        store = DiagnosticStore()
        store.add_diagnostic(Diagnostic("depscope.conf", "bad", 0, 1, kind=CONFIG))
        store.add_diagnostic(Diagnostic("a.java", "m", 0, 1))
        store.add_diagnostic(Diagnostic("b.java", "m", 0, 1))

        store.clear_diagnostics("a.java")
        assert store.resources == ["b.java", "depscope.conf"]

        store.clear_diagnostics(None)
        assert store.diagnostics() == store.diagnostics(kind=CONFIG)

        store.clear_diagnostics(None, kind=CONFIG)
        assert len(store) == 0


class TestLineNumber:
    def test_line_of_offset(self, tmp_path: Path) -> None:
        write(tmp_path, "src/Core.java", "package app;\n\nclass Core { UI ui; }\n")
        assert line_number(tmp_path, _DIAG) == 3

    def test_unknown_without_file(self, tmp_path: Path) -> None:
        assert line_number(tmp_path, _DIAG) is None
        assert line_number(None, _DIAG) is None


class TestFormatters:
    def test_rich_with_diagnostics(self, tmp_path: Path) -> None:
        write(tmp_path, "src/Core.java", "package app;\n\nclass Core { UI ui; }\n")
        output = format_rich(_result(), [_DIAG], tmp_path)

        assert "Scopes: 2 run, 14 artifacts checked (full)" in output
        assert "src/Core.java:3" in output
        assert "Access to app.ui.UI denied." in output
        assert "1 diagnostic found (1 pass, 0.2s)" in output

    def test_rich_clean(self) -> None:
        output = format_rich(_result(), [])
        assert "No violations found" in output

    def test_rich_reports_cap_and_non_convergence(self) -> None:
        output = format_rich(
            _result(
                violations_reported=40,
                violations_rejected=3,
                max_errors=50,
                converged=False,
            ),
            [],
        )
        assert "3 further violations not reported (limit 50)" in output
        assert "did not settle" in output

    def test_json(self) -> None:
        data = json.loads(format_json(_result(max_errors=20), [_DIAG]))
        assert data["diagnostics"][0]["offset"] == 27
        assert data["diagnostics"][0]["line"] is None
        assert data["summary"]["diagnostics_count"] == 1
        assert data["summary"]["max_errors"] == 20
        assert data["summary"]["converged"] is True

    def test_porcelain(self, tmp_path: Path) -> None:
        write(tmp_path, "src/Core.java", "package app;\n\nclass Core { UI ui; }\n")
        assert format_porcelain(_result(), [_DIAG], tmp_path) == (
            "violation:src/Core.java:3:27:2:Access to app.ui.UI denied."
        )
        assert format_porcelain(_result(), []) == ""
