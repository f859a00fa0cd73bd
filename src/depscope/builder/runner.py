"""Per-scope runtime state: accumulate routed artifacts, drive checker and extractor."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from depscope.model import DEFAULT_MAX_ERRORS, PassKind, internal_name

if TYPE_CHECKING:
    import threading
    from collections.abc import Sequence

    from depscope.collaborators import Extractor, RuleChecker, Toolchain, Workspace
    from depscope.config.configuration import ScopeConfig
    from depscope.model import Violation

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class BuildCancelled(Exception):
    """Raised when the cancellation signal is set in the middle of a pass."""


class ArtifactError(Exception):
    """An artifact could not be read or parsed; fatal to the build."""

    def __init__(self, location: str, cause: Exception) -> None:
        super().__init__(f"{location}: {cause}")
        self.location = location
        self.cause = cause


# ---------------------------------------------------------------------------
# Error cap
# ---------------------------------------------------------------------------


class ErrorBudget:
    """Build-wide cap on accepted violations, shared by every scope runner."""

    def __init__(self, max_errors: int = DEFAULT_MAX_ERRORS) -> None:
        self.max_errors = max_errors
        self.reported = 0

    def accept(self) -> bool:
        self.reported += 1
        return self.reported <= self.max_errors

    @property
    def accepted(self) -> int:
        return min(self.reported, self.max_errors)

    @property
    def rejected(self) -> int:
        return max(self.reported - self.max_errors, 0)


# ---------------------------------------------------------------------------
# Artifact naming
# ---------------------------------------------------------------------------


class ArtifactNamer:
    """Strip the longest matching root from artifact locations.

    Artifacts arrive grouped by directory, so the root resolved for the last
    directory is reused until the directory changes.
    """

    def __init__(self, root_paths: Sequence[str]) -> None:
        self._roots = sorted((root + "/" for root in root_paths), key=len, reverse=True)
        self._directory: str | None = None
        self._root = ""

    def root_of(self, directory: str) -> str:
        for root in self._roots:
            if directory.startswith(root):
                return root
        msg = f"'{directory}' is not under any of {self._roots}"
        raise ValueError(msg)

    def __call__(self, location: str) -> str:
        directory = location[: location.rfind("/") + 1]
        if directory != self._directory:
            self._root = self.root_of(directory)
            self._directory = directory
        return location[len(self._root) :]


# ---------------------------------------------------------------------------
# Scope runner
# ---------------------------------------------------------------------------


class ScopeRunner:
    """Runtime state of one scope for one pass.

    Collects the artifacts routed to the scope and, once traversal is done,
    streams them through the rule checker and (when enabled) the extractor.
    Acts as the violation sink of its checker.
    """

    def __init__(
        self,
        scope: ScopeConfig,
        budget: ErrorBudget,
        toolchain: Toolchain,
        workspace: Workspace,
    ) -> None:
        self.scope = scope
        self._budget = budget
        self._toolchain = toolchain
        self._workspace = workspace
        self._artifacts: list[str] = []
        # origin artifact name -> violations in arrival order
        self.violations: dict[str, list[Violation]] = {}
        # internal names of the artifacts handed to the checker, in order
        self.origins: list[str] = []

    @property
    def artifacts(self) -> list[str]:
        return list(self._artifacts)

    def add_artifact(self, location: str) -> None:
        self._artifacts.append(location)

    def report(self, violation: Violation) -> bool:
        if not self._budget.accept():
            return False
        self.violations.setdefault(violation.from_name, []).append(violation)
        return True

    def _extractor(self, full: bool) -> Extractor | None:
        if not self.scope.extract_from_annotations:
            return None
        factory = self._toolchain.extractor_factory
        if factory is None:
            logger.warning(
                "Scope %s enables annotation extraction but the toolchain has no extractor",
                self.scope.label,
            )
            return None
        return factory(self.scope, full)

    def run(self, pass_kind: str, cancel: threading.Event | None = None) -> bool:
        """Check (and extract from) every routed artifact.

        Parameters
        ----------
        pass_kind:
            ``PassKind.FULL`` tells the extractor nothing was scanned before,
            so it re-derives every rule; on incremental passes each artifact
            is announced via ``scanning()`` so stale entries can be pruned.
        cancel:
            Cooperative cancellation signal, checked between artifacts.

        Returns
        -------
        bool
            True if extraction modified any rule file.  The caller must then
            re-run checking with the refreshed rules.

        Raises
        ------
        ArtifactError
            When an artifact cannot be read or parsed.
        BuildCancelled
            When *cancel* is set.
        """
        full = pass_kind == PassKind.FULL
        checker: RuleChecker | None = None
        if self.scope.check_classes:
            checker = self._toolchain.checker_factory(self, self.scope.rule_sets)
        extractor = self._extractor(full)
        if checker is None and extractor is None:
            return False

        logger.debug(
            "Running scope %s over %d artifact(s) (%s pass)",
            self.scope.label,
            len(self._artifacts),
            pass_kind,
        )
        to_name = ArtifactNamer(self.scope.root_paths)
        for location in self._artifacts:
            if cancel is not None and cancel.is_set():
                raise BuildCancelled
            name = to_name(location)
            self.origins.append(internal_name(name))
            try:
                data = self._workspace.read_bytes(location)
                if extractor is not None:
                    if not full:
                        extractor.scanning(name)
                    extractor.extract(name, data)
                if checker is not None:
                    checker.check(name, data)
            except (OSError, ValueError) as exc:
                raise ArtifactError(location, exc) from exc

        if extractor is not None and extractor.finish():
            logger.info("Extraction changed rule files in scope %s", self.scope.label)
            return True
        return False
