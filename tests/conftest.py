"""Shared test fixtures and fake toolchain collaborators for depscope."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import pytest

from depscope.collaborators import RuleFileError, Toolchain
from depscope.infrastructure.diagnostics import DiagnosticStore
from depscope.model import SourceRange, SourceReference, SourceType

if TYPE_CHECKING:
    from collections.abc import Hashable, Sequence
    from pathlib import Path

    from depscope.collaborators import ViolationSink
    from depscope.config.configuration import ScopeConfig
    from depscope.model import Violation


# ---------------------------------------------------------------------------
# Rule loading
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FakeRuleSet:
    name: str | None
    fragments: tuple[object, ...] = ()


class FakeRuleLoader:
    """Rule files are plain text; a file starting with ``!`` is a syntax error."""

    def __init__(self) -> None:
        self.loaded: list[Path] = []

    def load_file(self, path: Path) -> object:
        self.loaded.append(path)
        text = path.read_text(encoding="utf-8")
        if text.startswith("!"):
            raise RuleFileError("Syntax error in rules", 2, 5)
        return path.name

    def build(self, name: str | None, fragments: Sequence[object]) -> FakeRuleSet:
        return FakeRuleSet(name, tuple(fragments))


# ---------------------------------------------------------------------------
# Checking and extraction
# ---------------------------------------------------------------------------


class FakeChecker:
    def __init__(
        self,
        sink: ViolationSink,
        rule_sets: Sequence[object],
        verdicts: dict[str, list[Violation]],
        checked: list[str],
    ) -> None:
        self.sink = sink
        self.rule_sets = rule_sets
        self._verdicts = verdicts
        self._checked = checked

    def check(self, name: str, data: bytes) -> None:
        self._checked.append(name)
        for violation in self._verdicts.get(name, ()):
            if not self.sink.report(violation):
                break


class FakeExtractor:
    def __init__(self, owner: FakeToolchain, full: bool) -> None:
        self._owner = owner
        self.full = full

    def scanning(self, name: str) -> None:
        self._owner.events.append(("scanning", name))

    def extract(self, name: str, data: bytes) -> None:
        self._owner.events.append(("extract", name))

    def finish(self) -> bool:
        self._owner.events.append(("finish", "full" if self.full else "incremental"))
        if self._owner.rule_changes:
            return self._owner.rule_changes.pop(0)
        return False


# ---------------------------------------------------------------------------
# Source lookup
# ---------------------------------------------------------------------------


class FakeSourceLocator:
    """Types, members and references declared up front by the test."""

    def __init__(self) -> None:
        self.types: dict[str, SourceType] = {}
        self.members: set[tuple[str, str | None, str | None]] = set()
        self.references: dict[tuple[str, str | None, str | None], list[SourceReference]] = {}
        self.name_ranges: dict[str, SourceRange] = {}
        self.package_ranges: dict[str, SourceRange] = {}
        self.searched: list[Hashable] = []

    def add_type(
        self,
        name: str,
        resource: str,
        *,
        name_range: SourceRange | None = None,
        package_range: SourceRange | None = None,
    ) -> SourceType:
        source_type = SourceType(name, resource)
        self.types[name] = source_type
        if name_range is not None:
            self.name_ranges[name] = name_range
        if package_range is not None:
            self.package_ranges[name] = package_range
        return source_type

    def add_reference(
        self,
        element: tuple[str, str | None, str | None],
        offset: int,
        length: int,
        *,
        enclosing_type: str | None = None,
        is_import: bool = False,
    ) -> None:
        if element[1] is not None:
            self.members.add(element)
        self.references.setdefault(element, []).append(
            SourceReference(offset, length, enclosing_type, is_import)
        )

    def find_type(self, name: str) -> SourceType | None:
        return self.types.get(name)

    def find_element(
        self,
        source_type: SourceType,
        member_name: str | None,
        member_descriptor: str | None,
    ) -> Hashable:
        element = (source_type.name, member_name, member_descriptor)
        if element in self.members:
            return element
        return (source_type.name, None, None)

    def find_references(self, element: Hashable, within: SourceType) -> list[SourceReference]:
        self.searched.append(element)
        return list(self.references.get(element, ()))  # type: ignore[call-overload]

    def name_range(self, source_type: SourceType) -> SourceRange | None:
        return self.name_ranges.get(source_type.name)

    def package_range(self, source_type: SourceType) -> SourceRange | None:
        return self.package_ranges.get(source_type.name)


# ---------------------------------------------------------------------------
# Toolchain
# ---------------------------------------------------------------------------


@dataclass
class FakeToolchain:
    """Builds a :class:`Toolchain` from fakes and records what it was asked to do.

    *verdicts* maps artifact names (as handed to the checker) to the
    violations to report; *rule_changes* lists successive ``finish()``
    results of the extractors.
    """

    verdicts: dict[str, list[Violation]] = field(default_factory=dict)
    rule_changes: list[bool] = field(default_factory=list)
    rule_loader: FakeRuleLoader = field(default_factory=FakeRuleLoader)
    locator: FakeSourceLocator = field(default_factory=FakeSourceLocator)
    with_extractor: bool = True
    checked: list[str] = field(default_factory=list)
    events: list[tuple[str, str]] = field(default_factory=list)
    checkers: list[FakeChecker] = field(default_factory=list)

    def _checker(self, sink: ViolationSink, rule_sets: Sequence[object]) -> FakeChecker:
        checker = FakeChecker(sink, rule_sets, self.verdicts, self.checked)
        self.checkers.append(checker)
        return checker

    def _extractor(self, scope: ScopeConfig, full: bool) -> FakeExtractor:
        return FakeExtractor(self, full)

    @property
    def toolchain(self) -> Toolchain:
        return Toolchain(
            rule_loader=self.rule_loader,
            checker_factory=self._checker,
            source_locator=self.locator,
            extractor_factory=self._extractor if self.with_extractor else None,
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def write(root: Path, rel: str, content: str | bytes = "") -> Path:
    """Create ``root/rel`` (and its parents) with *content*."""
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture()
def fake() -> FakeToolchain:
    return FakeToolchain()


@pytest.fixture()
def store() -> DiagnosticStore:
    return DiagnosticStore()


@pytest.fixture()
def tmp_project(tmp_path: Path) -> Path:
    """A project with a UI and a core scope over compiled classes."""
    project = tmp_path / "proj"
    project.mkdir()
    write(
        project,
        "depscope.conf",
        "--scope core\n"
        "--classes bin/core\n"
        "    rules/core.jdep\n"
        "--scope ui\n"
        "--classes bin/ui\n"
        "    rules/ui.jdep\n",
    )
    write(project, "rules/core.jdep", "core may not use ui\n")
    write(project, "rules/ui.jdep", "ui may use core\n")
    write(project, "bin/core/com/example/core/Core.class", b"\xca\xfe\xba\xbe core")
    write(project, "bin/ui/com/example/ui/UI.class", b"\xca\xfe\xba\xbe ui")
    write(project, "src/com/example/core/Core.java", "package com.example.core;\nclass Core {}\n")
    return project
