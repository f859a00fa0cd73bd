"""Interfaces of the external collaborators driven by the build orchestrator.

The dependency rule language, the checking algorithm, annotation extraction,
and source indexing live outside this package.  A *toolchain* plugin supplies
them through the protocols below; the filesystem workspace and the diagnostic
store in :mod:`depscope.infrastructure` are the default host-side pieces.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from depscope.model import VIOLATION

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable, Iterable, Sequence
    from pathlib import Path

    from depscope.config.configuration import ScopeConfig
    from depscope.model import (
        Change,
        Diagnostic,
        SourceRange,
        SourceReference,
        SourceType,
        TreeEntry,
        Violation,
    )


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class RuleFileError(Exception):
    """Raised by a rule loader when a rule file cannot be parsed.

    *start* and *end* are inclusive character offsets of the offending text.
    """

    def __init__(self, message: str, start: int = 0, end: int = 0) -> None:
        super().__init__(message)
        self.message = message
        self.start = start
        self.end = end


# ---------------------------------------------------------------------------
# Workspace and diagnostics (host side)
# ---------------------------------------------------------------------------


class Workspace(Protocol):
    """Reports the artifact tree and incremental changes to it."""

    def full_tree(self) -> Iterable[TreeEntry]:
        """Every entry of the tree, containers before their contents."""
        ...

    def change_delta(self) -> Sequence[Change] | None:
        """Changed entries since the last pass, or ``None`` when unknown."""
        ...

    def read_bytes(self, location: str) -> bytes: ...


class DiagnosticSink(Protocol):
    def add_diagnostic(self, diagnostic: Diagnostic) -> None: ...

    def clear_diagnostics(self, resource: str | None = None, *, kind: str = VIOLATION) -> None:
        """Drop diagnostics of *kind* for *resource*, or for every resource when ``None``."""
        ...


# ---------------------------------------------------------------------------
# Toolchain (dependency checker side)
# ---------------------------------------------------------------------------


class RuleSet(Protocol):
    """An opaque, parsed rule set.  Only its name is visible to depscope."""

    @property
    def name(self) -> str | None: ...


class RuleLoader(Protocol):
    def load_file(self, path: Path) -> object:
        """Parse one rule file; raise :class:`RuleFileError` on syntax errors."""
        ...

    def build(self, name: str | None, fragments: Sequence[object]) -> RuleSet:
        """Combine parsed rule files into a rule set."""
        ...


class ViolationSink(Protocol):
    def report(self, violation: Violation) -> bool:
        """Record *violation*; ``False`` asks the checker to stop reporting."""
        ...


class RuleChecker(Protocol):
    def check(self, name: str, data: bytes) -> None:
        """Check one artifact, reporting violations to the sink it was built with."""
        ...


class Extractor(Protocol):
    def scanning(self, name: str) -> None:
        """Announce that *name* is re-examined in this (incremental) pass."""
        ...

    def extract(self, name: str, data: bytes) -> None: ...

    def finish(self) -> bool:
        """Flush derived rules; ``True`` if any rule file was modified."""
        ...


class SourceLocator(Protocol):
    def find_type(self, name: str) -> SourceType | None:
        """Look up a type by dotted name."""
        ...

    def find_element(
        self,
        source_type: SourceType,
        member_name: str | None,
        member_descriptor: str | None,
    ) -> Hashable:
        """Return the member element, or an element for the type itself when not found."""
        ...

    def find_references(self, element: Hashable, within: SourceType) -> Iterable[SourceReference]:
        """References to *element* inside the source unit declaring *within*, in source order."""
        ...

    def name_range(self, source_type: SourceType) -> SourceRange | None: ...

    def package_range(self, source_type: SourceType) -> SourceRange | None: ...


@dataclass(frozen=True)
class Toolchain:
    """The external dependency checker stack plugged into a build.

    *checker_factory* is called with the violation sink and the ordered rule
    sets of one scope.  *extractor_factory* is called with the scope and
    whether the pass is a full one; scopes that enable annotation extraction
    are skipped for extraction when it is ``None``.
    """

    rule_loader: RuleLoader
    checker_factory: Callable[[ViolationSink, Sequence[RuleSet]], RuleChecker]
    source_locator: SourceLocator
    extractor_factory: Callable[[ScopeConfig, bool], Extractor] | None = None
