"""Filesystem workspace: artifact tree walks and change deltas from watch events."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from depscope.model import (
    ADDED,
    ARTIFACT,
    CHANGED,
    CONTAINER,
    OTHER,
    REMOVED,
    SOURCE,
    Change,
    TreeEntry,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = logging.getLogger(__name__)

DEFAULT_ARTIFACT_SUFFIXES = (".class",)
DEFAULT_SOURCE_SUFFIXES = (".java",)

# watchfiles.Change values
_CHANGE_TYPES: dict[int, str] = {1: ADDED, 2: CHANGED, 3: REMOVED}


class FileSystemWorkspace:
    """A project directory seen as an artifact tree.

    Locations are ``/``-separated paths relative to *root*.  Hidden entries
    (names starting with ``.``) are never part of the tree.

    Change deltas are only known once a full tree has been read: from then on
    :meth:`record_changes` accumulates watch events until the next
    :meth:`change_delta` or full walk.
    """

    def __init__(
        self,
        root: Path,
        *,
        artifact_suffixes: Iterable[str] = DEFAULT_ARTIFACT_SUFFIXES,
        source_suffixes: Iterable[str] = DEFAULT_SOURCE_SUFFIXES,
    ) -> None:
        self.root = root
        self._artifact_suffixes = frozenset(artifact_suffixes)
        self._source_suffixes = frozenset(source_suffixes)
        self._pending: dict[str, str] | None = None

    # -- classification -------------------------------------------------------

    def _file_kind(self, name: str) -> str:
        suffix = Path(name).suffix
        if suffix in self._artifact_suffixes:
            return ARTIFACT
        if suffix in self._source_suffixes:
            return SOURCE
        return OTHER

    def _location(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    def is_hidden(self, location: str) -> bool:
        return any(part.startswith(".") for part in location.split("/"))

    # -- tree -----------------------------------------------------------------

    def _walk(self, directory: Path) -> Iterator[TreeEntry]:
        for child in sorted(directory.iterdir(), key=lambda p: p.name):
            if child.name.startswith("."):
                continue
            location = self._location(child)
            if child.is_dir():
                yield TreeEntry(location, CONTAINER)
                yield from self._walk(child)
            else:
                yield TreeEntry(location, self._file_kind(child.name))

    def full_tree(self) -> Iterator[TreeEntry]:
        """Walk the whole tree in pre-order; starts change tracking."""
        self._pending = {}
        yield from self._walk(self.root)

    def read_bytes(self, location: str) -> bytes:
        return (self.root / location).read_bytes()

    # -- deltas ---------------------------------------------------------------

    @property
    def tracking(self) -> bool:
        return self._pending is not None

    def record_changes(self, changes: Iterable[tuple[object, str]]) -> int:
        """Accumulate ``(change, path)`` pairs as reported by ``watchfiles``.

        Returns the number of changes recorded; nothing is recorded before
        the first full walk.
        """
        if self._pending is None:
            return 0
        recorded = 0
        for change, path_str in changes:
            try:
                location = self._location(Path(path_str))
            except ValueError:
                continue
            if not location or location == "." or self.is_hidden(location):
                continue
            change_type = change if isinstance(change, str) else _CHANGE_TYPES.get(int(change))  # type: ignore[call-overload]
            if change_type is None:
                continue
            self._pending[location] = change_type
            recorded += 1
        return recorded

    def change_delta(self) -> list[Change] | None:
        """Return pending changes in pre-order, ancestors first; ``None`` before the first walk."""
        if self._pending is None:
            return None
        pending, self._pending = self._pending, {}

        delta: list[Change] = []
        containers: set[str] = set()
        for location in sorted(pending):
            parts = location.split("/")
            for depth in range(1, len(parts)):
                parent = "/".join(parts[:depth])
                if parent not in containers:
                    containers.add(parent)
                    delta.append(Change(parent, CONTAINER, CHANGED))

            change_type = pending[location]
            path = self.root / location
            if change_type != REMOVED and path.is_dir():
                if location not in containers:
                    containers.add(location)
                    delta.append(Change(location, CONTAINER, change_type))
                if change_type == ADDED:
                    # A directory moved in as a whole may be reported alone.
                    for entry in self._walk(path):
                        if entry.kind == CONTAINER:
                            containers.add(entry.location)
                        delta.append(Change(entry.location, entry.kind, ADDED))
            elif change_type == REMOVED or path.is_file():
                delta.append(Change(location, self._file_kind(location), change_type))
        logger.debug("Change delta: %d change(s) -> %d entries", len(pending), len(delta))
        return delta
