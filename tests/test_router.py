"""Tests for depscope.builder.router."""

from __future__ import annotations

from depscope.builder.router import ScopeRouter, TreeVisitor
from depscope.config.configuration import ScopeConfig
from depscope.infrastructure.diagnostics import DiagnosticStore
from depscope.model import (
    ADDED,
    ARTIFACT,
    CONTAINER,
    REMOVED,
    SOURCE,
    Change,
    Diagnostic,
    TreeEntry,
)


class _Runner:
    def __init__(self, scope: ScopeConfig) -> None:
        self.scope = scope
        self.artifacts: list[str] = []

    def add_artifact(self, location: str) -> None:
        self.artifacts.append(location)


def _scope(name: str, *roots: str) -> ScopeConfig:
    return ScopeConfig(name=name, root_paths=roots)


def _visitor(*scopes: ScopeConfig) -> tuple[TreeVisitor, dict[str, _Runner], DiagnosticStore]:
    runners: dict[str, _Runner] = {}

    def runner_for(scope: ScopeConfig) -> _Runner:
        return runners.setdefault(scope.label, _Runner(scope))

    store = DiagnosticStore()
    visitor = TreeVisitor(ScopeRouter(scopes), runner_for, store)  # type: ignore[arg-type]
    return visitor, runners, store


def _tree(*paths: str) -> list[TreeEntry]:
    """Pre-order entries; paths ending with ``/`` are containers."""
    entries = []
    for path in paths:
        if path.endswith("/"):
            entries.append(TreeEntry(path.rstrip("/"), CONTAINER))
        elif path.endswith(".java"):
            entries.append(TreeEntry(path, SOURCE))
        else:
            entries.append(TreeEntry(path, ARTIFACT))
    return entries


class TestScopeRouter:
    def test_exact_match_only(self) -> None:
        """A location matches a root iff equal once '/' is appended."""
        scope = _scope("s", "bin")
        router = ScopeRouter([scope])
        assert router.resolve("bin") is scope
        assert router.resolve("bin/") is scope
        assert router.resolve("binary") is None
        assert router.resolve("bin/sub") is None

    def test_longest_root_first(self) -> None:
        outer = _scope("outer", "bin")
        inner = _scope("inner", "bin/gen")
        router = ScopeRouter([outer, inner])
        assert router.roots == ["bin/gen/", "bin/"]
        assert router.has_roots_below("bin/")
        assert not router.has_roots_below("bin/gen/")

    def test_equal_lengths_keep_declaration_order(self) -> None:
        first = _scope("first", "aa")
        second = _scope("second", "aa")
        assert ScopeRouter([first, second]).resolve("aa") is first


class TestTreeVisitor:
    def test_routes_artifacts_to_matching_scope(self) -> None:
        visitor, runners, _ = _visitor(_scope("core", "bin/core"), _scope("ui", "bin/ui"))
        for entry in _tree(
            "bin/",
            "bin/core/",
            "bin/core/Core.class",
            "bin/other/",
            "bin/other/Stray.class",
            "bin/ui/",
            "bin/ui/UI.class",
        ):
            visitor.visit(entry)

        assert runners["core"].artifacts == ["bin/core/Core.class"]
        assert runners["ui"].artifacts == ["bin/ui/UI.class"]
        assert visitor.artifacts_ignored == 1

    def test_nested_scope_then_back_to_outer(self) -> None:
        """Artifacts under a nested root go to the inner scope; siblings after it to the outer."""
        visitor, runners, _ = _visitor(_scope("outer", "bin"), _scope("inner", "bin/gen"))
        for entry in _tree(
            "bin/",
            "bin/A.class",
            "bin/gen/",
            "bin/gen/G.class",
            "bin/gen/deep/",
            "bin/gen/deep/D.class",
            "bin/z/",
            "bin/z/Z.class",
        ):
            visitor.visit(entry)

        assert runners["inner"].artifacts == ["bin/gen/G.class", "bin/gen/deep/D.class"]
        assert runners["outer"].artifacts == ["bin/A.class", "bin/z/Z.class"]

    def test_scopes_created_lazily(self) -> None:
        visitor, runners, _ = _visitor(_scope("core", "bin/core"), _scope("unused", "lib"))
        for entry in _tree("bin/", "bin/core/", "bin/core/C.class"):
            visitor.visit(entry)
        assert list(runners) == ["core"]

    def test_source_entry_clears_its_diagnostics(self) -> None:
        visitor, _, store = _visitor(_scope("s", "bin"))
        store.add_diagnostic(Diagnostic("src/A.java", "old", 0, 1))
        store.add_diagnostic(Diagnostic("src/B.java", "kept", 0, 1))
        visitor.visit(TreeEntry("src/A.java", SOURCE))
        assert [d.resource for d in store.diagnostics()] == ["src/B.java"]

    def test_removed_changes_are_ignored(self) -> None:
        visitor, runners, _ = _visitor(_scope("s", "bin"))
        visitor.visit_change(Change("bin", CONTAINER, "changed"))
        visitor.visit_change(Change("bin/Gone.class", ARTIFACT, REMOVED))
        visitor.visit_change(Change("bin/New.class", ARTIFACT, ADDED))
        assert runners["s"].artifacts == ["bin/New.class"]
