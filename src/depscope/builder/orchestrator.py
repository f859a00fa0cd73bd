"""Build orchestrator: configuration staleness, traversal, bounded convergence loop."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from depscope.builder.reducer import ViolationReducer
from depscope.builder.router import ScopeRouter, TreeVisitor
from depscope.builder.runner import ArtifactError, BuildCancelled, ErrorBudget, ScopeRunner
from depscope.config.configuration import load_configuration
from depscope.model import CONFIG, DEFAULT_MAX_ERRORS, MAX_ITERATIONS, PassKind

if TYPE_CHECKING:
    import threading
    from pathlib import Path

    from depscope.collaborators import DiagnosticSink, Toolchain, Workspace
    from depscope.config.configuration import Configuration, ScopeConfig
    from depscope.model import Diagnostic

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class BuildError(Exception):
    """A build aborted on an unreadable artifact or a tree error."""


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class BuildResult:
    """Summary of one build.

    Counters describe the final pass.  ``converged`` is False when extraction
    still changed rule files in the last allowed pass; the result of that
    pass is kept regardless.
    """

    iterations: int = 0
    pass_kinds: list[str] = field(default_factory=list)
    scopes_run: int = 0
    artifacts_checked: int = 0
    violations_reported: int = 0
    violations_rejected: int = 0
    max_errors: int = DEFAULT_MAX_ERRORS
    diagnostics: list[Diagnostic] = field(default_factory=list)
    config_errors: list[Diagnostic] = field(default_factory=list)
    reconfigured: bool = False
    active: bool = True
    converged: bool = True
    cancelled: bool = False
    elapsed_ms: float = 0.0


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class BuildOrchestrator:
    """Top-level driver for one watched project.

    Holds the parsed :class:`Configuration` across builds and replaces it
    whenever one of its fingerprints changes.  Everything else is per build.
    """

    def __init__(
        self,
        project_root: Path,
        workspace: Workspace,
        toolchain: Toolchain,
        sink: DiagnosticSink,
        *,
        max_iterations: int = MAX_ITERATIONS,
    ) -> None:
        self.project_root = project_root
        self._workspace = workspace
        self._toolchain = toolchain
        self._sink = sink
        self._max_iterations = max_iterations
        self._configuration: Configuration | None = None
        self._force_full = False

    @property
    def configuration(self) -> Configuration | None:
        return self._configuration

    def reset(self) -> None:
        """Forget the configuration; the next build reparses and runs a full pass."""
        self._configuration = None
        self._force_full = True

    def build(
        self,
        kind: str = PassKind.INCREMENTAL,
        cancel: threading.Event | None = None,
    ) -> BuildResult:
        """Run passes until rule files stop changing (at most ``max_iterations``).

        Parameters
        ----------
        kind:
            ``PassKind.FULL`` or ``PassKind.INCREMENTAL``.  An incremental
            request still runs a full pass when the configuration is new or
            stale, or when the workspace cannot report a change delta.
        cancel:
            Cooperative cancellation signal.  A cancelled build publishes no
            further diagnostics and the next build is forced to be full.

        Returns
        -------
        BuildResult
            Pass summary plus the diagnostics published for the final pass.

        Raises
        ------
        BuildError
            When an artifact or the tree cannot be read.
        """
        start = time.monotonic()
        result = BuildResult()
        if self._force_full:
            kind = PassKind.FULL
            self._force_full = False

        try:
            runners = self._converge(kind, cancel, result)
        except BuildCancelled:
            logger.info("Build cancelled after %d pass(es)", result.iterations)
            self._force_full = True
            result.cancelled = True
            result.elapsed_ms = (time.monotonic() - start) * 1000
            return result
        except (ArtifactError, OSError) as exc:
            self._force_full = True
            raise BuildError(str(exc)) from exc
        except Exception:
            self._force_full = True
            raise

        reducer = ViolationReducer(self._toolchain.source_locator)
        for runner in runners:
            result.diagnostics.extend(reducer.reduce(runner.violations))
        # Re-checked artifacts replace their earlier diagnostics.
        origins = [origin for runner in runners for origin in runner.origins]
        origins.extend(origin for runner in runners for origin in runner.violations)
        for resource in sorted(reducer.source_resources(origins)):
            self._sink.clear_diagnostics(resource)
        for diagnostic in result.diagnostics:
            self._sink.add_diagnostic(diagnostic)

        result.elapsed_ms = (time.monotonic() - start) * 1000
        logger.info(
            "Build finished: %d pass(es) %s, %d artifact(s), %d diagnostic(s) in %.1f ms",
            result.iterations,
            "/".join(result.pass_kinds),
            result.artifacts_checked,
            len(result.diagnostics),
            result.elapsed_ms,
        )
        return result

    # -- states ---------------------------------------------------------------

    def _converge(
        self,
        kind: str,
        cancel: threading.Event | None,
        result: BuildResult,
    ) -> list[ScopeRunner]:
        runners: list[ScopeRunner] = []
        for iteration in range(1, self._max_iterations + 1):
            if cancel is not None and cancel.is_set():
                raise BuildCancelled
            kind, configuration = self._check_configuration(kind, result)
            result.active = configuration.is_active

            budget = ErrorBudget(configuration.max_errors)
            by_scope: dict[ScopeConfig, ScopeRunner] = {}

            def runner_for(scope: ScopeConfig) -> ScopeRunner:
                runner = by_scope.get(scope)
                if runner is None:
                    runner = ScopeRunner(scope, budget, self._toolchain, self._workspace)
                    by_scope[scope] = runner
                return runner

            visitor = TreeVisitor(ScopeRouter(configuration.scopes), runner_for, self._sink)
            kind = self._traverse(kind, visitor, cancel)
            result.iterations = iteration
            result.pass_kinds.append(kind)

            runners = list(by_scope.values())
            rules_changed = False
            for runner in runners:
                rules_changed = runner.run(kind, cancel) or rules_changed

            result.scopes_run = len(runners)
            result.artifacts_checked = sum(len(runner.artifacts) for runner in runners)
            result.violations_reported = budget.accepted
            result.violations_rejected = budget.rejected
            result.max_errors = budget.max_errors
            if budget.rejected:
                logger.warning(
                    "Violation limit of %d reached; %d further violation(s) not reported",
                    budget.max_errors,
                    budget.rejected,
                )

            if not rules_changed:
                return runners
            logger.info("Rule files changed in pass %d; re-running as a full pass", iteration)
            kind = PassKind.FULL

        logger.warning(
            "Rule files still changing after %d passes; keeping the last pass's results",
            self._max_iterations,
        )
        result.converged = False
        return runners

    def _check_configuration(self, kind: str, result: BuildResult) -> tuple[str, Configuration]:
        """Reparse the configuration when needed; a reparse forces a full pass."""
        current = self._configuration
        if kind != PassKind.FULL and current is not None and current.is_up_to_date():
            return kind, current
        if current is not None and kind != PassKind.FULL:
            logger.info(
                "Configuration is stale (%s); reloading",
                ", ".join(str(p) for p in current.fingerprints.stale_paths()),
            )
        self._sink.clear_diagnostics(None, kind=CONFIG)
        configuration = load_configuration(self.project_root, self._toolchain.rule_loader)
        for diagnostic in configuration.errors:
            self._sink.add_diagnostic(diagnostic)
        self._configuration = configuration
        result.reconfigured = True
        result.config_errors = list(configuration.errors)
        return PassKind.FULL, configuration

    def _traverse(
        self,
        kind: str,
        visitor: TreeVisitor,
        cancel: threading.Event | None,
    ) -> str:
        """Visit the change delta, or the whole tree; return the pass kind actually run."""
        if kind == PassKind.INCREMENTAL:
            delta = self._workspace.change_delta()
            if delta is not None:
                for change in delta:
                    if cancel is not None and cancel.is_set():
                        raise BuildCancelled
                    visitor.visit_change(change)
                return PassKind.INCREMENTAL
            logger.info("No change delta available; running a full pass")

        self._sink.clear_diagnostics(None)
        for entry in self._workspace.full_tree():
            if cancel is not None and cancel.is_set():
                raise BuildCancelled
            visitor.visit(entry)
        return PassKind.FULL
