"""Reduce raw violations to deduplicated, source-located diagnostics."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from depscope.model import (
    ANONYMOUS_RULE_SET,
    NO_LOCATION_SUFFIX,
    Diagnostic,
    SourceRange,
    display_name,
)

if TYPE_CHECKING:
    from collections.abc import Hashable, Iterable, Iterator, Mapping, Sequence

    from depscope.collaborators import SourceLocator
    from depscope.model import SourceType, Violation

logger = logging.getLogger(__name__)

_FIRST_CHARACTER = SourceRange(0, 1)


def build_message(violation: Violation) -> str:
    """Render ``Access to <target>[.<member>] denied[ by scope 'S'][ in ruleset 'R'].``

    The rule set clause reads ``by ruleset`` when there is no scope clause
    and is dropped entirely for anonymous rule sets.
    """
    parts = [f"Access to {display_name(violation.to_name)}"]
    if violation.to_member_name:
        parts.append(f".{violation.to_member_name}")
    parts.append(" denied")
    conjunction = " by"
    if violation.scope_name:
        parts.append(f"{conjunction} scope '{violation.scope_name}'")
        conjunction = " in"
    rule_set = violation.rule_set_name
    if rule_set and rule_set != ANONYMOUS_RULE_SET:
        parts.append(f"{conjunction} ruleset '{rule_set}'")
    parts.append(".")
    return "".join(parts)


class ViolationReducer:
    """Place violations in source.

    Per origin artifact, consecutive violations against the same target
    (type + member) form a group.  Each distinct target element is searched
    once; every reference found becomes a diagnostic at its exact range.  A
    group without any placed reference yields exactly one fallback
    diagnostic on the origin's type name.
    """

    def __init__(self, locator: SourceLocator) -> None:
        self._locator = locator
        self.searches = 0

    def find_type(self, internal_name: str) -> SourceType | None:
        """Find a type by internal name, falling back to the outermost type for nested names."""
        found = self._locator.find_type(display_name(internal_name))
        if found is not None:
            return found
        nested = internal_name.find("$")
        if nested < 0:
            return None
        return self._locator.find_type(display_name(internal_name[:nested]))

    def source_resources(self, origins: Iterable[str]) -> set[str]:
        """Source units declaring the given origin artifacts (unresolved origins are skipped)."""
        resources: set[str] = set()
        for origin in origins:
            source_type = self.find_type(origin)
            if source_type is not None:
                resources.add(source_type.resource)
        return resources

    def reduce(self, violations: Mapping[str, Sequence[Violation]]) -> list[Diagnostic]:
        """Turn ``{origin: [violation, ...]}`` into diagnostics."""
        diagnostics: list[Diagnostic] = []
        for origin, found in violations.items():
            diagnostics.extend(self.reduce_artifact(origin, found))
        return diagnostics

    def reduce_artifact(self, origin: str, violations: Sequence[Violation]) -> list[Diagnostic]:
        source_type = self.find_type(origin)
        if source_type is None:
            logger.debug("No source found for %s; %d violation(s) skipped", origin, len(violations))
            return []

        diagnostics: list[Diagnostic] = []
        searched: set[Hashable] = set()
        # A target counts as placed only through hits of its own search.
        placed: set[tuple[str, str | None, str | None]] = set()
        fallbacks: set[tuple[str, str | None, str | None]] = set()

        current: tuple[str, str | None, str | None] | None = None
        group_message = ""

        def close_group() -> None:
            if current is None or current in placed or current in fallbacks:
                return
            fallbacks.add(current)
            diagnostics.append(self._fallback(source_type, group_message))

        for violation in violations:
            message = build_message(violation)
            if violation.target != current:
                close_group()
                current = violation.target
                group_message = message

            target_type = self.find_type(violation.to_name)
            if target_type is None:
                continue
            element = self._locator.find_element(
                target_type, violation.to_member_name, violation.to_member_descriptor
            )
            if element in searched:
                continue
            searched.add(element)

            for offset, length in self._references(element, source_type, origin):
                diagnostics.append(
                    Diagnostic(
                        resource=source_type.resource,
                        message=message,
                        offset=offset,
                        length=length,
                    )
                )
                placed.add(violation.target)

        close_group()
        return diagnostics

    def _references(
        self, element: Hashable, within: SourceType, origin: str
    ) -> Iterator[tuple[int, int]]:
        """Yield ranges of references to *element* made by the origin type itself."""
        self.searches += 1
        origin_name = display_name(origin)
        for ref in self._locator.find_references(element, within):
            if ref.is_import:
                continue
            if ref.enclosing_type is None or display_name(ref.enclosing_type) == origin_name:
                yield ref.offset, ref.length

    def _fallback(self, source_type: SourceType, message: str) -> Diagnostic:
        """Anchor on the type name, else the package declaration, else the first character."""
        where = (
            self._locator.name_range(source_type)
            or self._locator.package_range(source_type)
            or _FIRST_CHARACTER
        )
        return Diagnostic(
            resource=source_type.resource,
            message=message + NO_LOCATION_SUFFIX,
            offset=where.offset,
            length=where.length,
        )
