"""Core records shared by the configuration, builder, and infrastructure layers."""

from __future__ import annotations

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Recognised configuration file names, looked up in the project root.
CONFIG_NAMES: tuple[str, ...] = ("depscope.conf", ".depscope", "depscope.yml")

DEFAULT_MAX_ERRORS = 500

# Pass 1 may pick up rule changes from an incremental pass, pass 2 those of
# the forced full pass, pass 3 is the final check.
MAX_ITERATIONS = 3

NO_LOCATION_SUFFIX = " (No direct source location found.)"

ANONYMOUS_RULE_SET = "<anonymous ruleset>"

SEVERITY_ERROR = "error"

# Diagnostic kinds
VIOLATION = "violation"
CONFIG = "config"

# Tree entry kinds
CONTAINER = "container"
ARTIFACT = "artifact"
SOURCE = "source"
OTHER = "other"

# Change types
ADDED = "added"
CHANGED = "changed"
REMOVED = "removed"


class PassKind:
    """Traversal kinds for a single build pass."""

    FULL = "full"
    INCREMENTAL = "incremental"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Violation:
    """A denied reference from one artifact to another, as judged by a rule checker.

    Names are internal names: packages separated by ``/`` and nested types
    by ``$`` (``com/example/ui/UI$Inner``).
    """

    from_name: str
    to_name: str
    to_member_name: str | None = None
    to_member_descriptor: str | None = None
    scope_name: str | None = None
    rule_set_name: str | None = None

    @property
    def target(self) -> tuple[str, str | None, str | None]:
        """Identity of the denied target (type + optional member)."""
        return (self.to_name, self.to_member_name, self.to_member_descriptor)


@dataclass(frozen=True)
class Diagnostic:
    """A user-visible, source-anchored report."""

    resource: str
    message: str
    offset: int
    length: int
    severity: str = SEVERITY_ERROR
    kind: str = VIOLATION  # "violation" | "config"

    @property
    def char_start(self) -> int:
        return self.offset

    @property
    def char_end(self) -> int:
        return self.offset + self.length


@dataclass(frozen=True)
class SourceRange:
    """A character range inside a source unit."""

    offset: int
    length: int


@dataclass(frozen=True)
class SourceType:
    """A type declared in a source unit, as found by a source locator."""

    name: str  # dotted, fully qualified
    resource: str  # workspace-relative path of the declaring source unit


@dataclass(frozen=True)
class SourceReference:
    """One textual reference found by a source locator."""

    offset: int
    length: int
    enclosing_type: str | None = None  # dotted name of the referencing type
    is_import: bool = False


@dataclass(frozen=True)
class TreeEntry:
    """A location in the artifact tree (``/``-separated, relative to the project root)."""

    location: str
    kind: str  # "container" | "artifact" | "source" | "other"


@dataclass(frozen=True)
class Change:
    """A tree entry reported by an incremental change delta."""

    location: str
    kind: str
    change_type: str  # "added" | "changed" | "removed"


def display_name(internal_name: str) -> str:
    """Convert an internal name (``a/b/C$D``) into a dotted one (``a.b.C.D``)."""
    return internal_name.replace("/", ".").replace("$", ".")


def internal_name(artifact_name: str) -> str:
    """Drop the file suffix from a root-relative artifact name (``a/b/C$D.class`` -> ``a/b/C$D``)."""
    slash = artifact_name.rfind("/")
    dot = artifact_name.rfind(".")
    return artifact_name[:dot] if dot > slash else artifact_name
