"""Route artifact-tree locations to configured scopes."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from depscope.config.configuration import normalize_root
from depscope.model import ADDED, ARTIFACT, CHANGED, CONTAINER, SOURCE, TreeEntry

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from depscope.builder.runner import ScopeRunner
    from depscope.collaborators import DiagnosticSink
    from depscope.config.configuration import ScopeConfig
    from depscope.model import Change

logger = logging.getLogger(__name__)


class ScopeRouter:
    """Map a container location to the scope that declares it as a root.

    Roots are tested longest-first (ties in declaration order) and a location
    matches a root iff both are equal once a trailing ``/`` is appended.
    """

    def __init__(self, scopes: Sequence[ScopeConfig]) -> None:
        roots = [(root + "/", scope) for scope in scopes for root in scope.root_paths]
        # sort() is stable: equal lengths keep declaration order.
        roots.sort(key=lambda item: len(item[0]), reverse=True)
        self._roots = roots
        self._nesting = {
            outer
            for outer, _ in roots
            for inner, _ in roots
            if inner != outer and inner.startswith(outer)
        }

    @property
    def roots(self) -> list[str]:
        return [root for root, _ in self._roots]

    def resolve(self, location: str) -> ScopeConfig | None:
        candidate = normalize_root(location) + "/"
        for root, scope in self._roots:
            if candidate == root:
                return scope
        return None

    def has_roots_below(self, root: str) -> bool:
        """True if another configured root is nested under *root* (``/``-terminated)."""
        return root in self._nesting


class TreeVisitor:
    """Walk tree entries in pre-order and hand artifacts to scope runners.

    Matched container paths are kept on a stack: entering a container inside
    the innermost matched root is a containment check only, unless a more
    specific root is configured below it.  Leaving a nested root returns to
    the enclosing one.
    """

    def __init__(
        self,
        router: ScopeRouter,
        runner_for: Callable[[ScopeConfig], ScopeRunner],
        sink: DiagnosticSink,
    ) -> None:
        self._router = router
        self._runner_for = runner_for
        self._sink = sink
        self._matched: list[tuple[str, ScopeRunner]] = []
        self.artifacts_routed = 0
        self.artifacts_ignored = 0

    def visit(self, entry: TreeEntry) -> None:
        if entry.kind == CONTAINER:
            self._enter(entry.location)
        elif entry.kind == ARTIFACT:
            self._unwind(entry.location)
            if self._matched:
                self._matched[-1][1].add_artifact(entry.location)
                self.artifacts_routed += 1
            else:
                self.artifacts_ignored += 1
        elif entry.kind == SOURCE:
            # About to be re-evaluated.
            self._sink.clear_diagnostics(entry.location)

    def visit_change(self, change: Change) -> None:
        if change.change_type in (ADDED, CHANGED):
            self.visit(TreeEntry(change.location, change.kind))

    def _unwind(self, location: str) -> None:
        while self._matched and not location.startswith(self._matched[-1][0]):
            self._matched.pop()

    def _enter(self, location: str) -> None:
        self._unwind(location)
        if self._matched and not self._router.has_roots_below(self._matched[-1][0]):
            return
        scope = self._router.resolve(location)
        if scope is None:
            return
        logger.debug("Entering scope %s at %s", scope.label, location)
        self._matched.append((normalize_root(location) + "/", self._runner_for(scope)))
