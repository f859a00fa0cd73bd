"""Modification signatures for configuration and rule files."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

# Signature of a file that does not exist.
ABSENT: tuple[int, int] | None = None


class _Unreadable:
    """Signature of a file whose metadata could not be read; equal to nothing."""

    def __eq__(self, other: object) -> bool:
        return False

    def __hash__(self) -> int:
        return id(self)

    def __repr__(self) -> str:
        return "<unreadable>"


def read_signature(path: Path) -> object:
    """Return the current modification signature of *path*.

    Missing files map to :data:`ABSENT` so that their later creation is a
    change.  Any other filesystem error yields a fresh unreadable marker,
    which never compares equal and therefore always reads as changed.
    """
    try:
        stat = path.stat()
        return (stat.st_mtime_ns, stat.st_size)
    except FileNotFoundError:
        return ABSENT
    except OSError as exc:
        logger.debug("Cannot stat %s: %s", path, exc)
        return _Unreadable()


@dataclass(frozen=True)
class Fingerprint:
    """A tracked file and its signature at registration time."""

    path: Path
    signature: object

    def is_up_to_date(self) -> bool:
        current = read_signature(self.path)
        return bool(current == self.signature)


class FingerprintStore:
    """The set of files a configuration was derived from.

    A path is registered at most once; the stored signature never changes
    afterwards.  The store is up to date iff no tracked file changed.
    """

    def __init__(self) -> None:
        self._prints: dict[Path, Fingerprint] = {}

    def fingerprint(self, path: Path) -> None:
        """Start tracking *path* (idempotent)."""
        key = path.absolute()
        if key in self._prints:
            return
        self._prints[key] = Fingerprint(key, read_signature(key))

    def is_up_to_date(self) -> bool:
        return all(fp.is_up_to_date() for fp in self._prints.values())

    def stale_paths(self) -> list[Path]:
        """Return the tracked paths whose signature changed."""
        return [fp.path for fp in self._prints.values() if not fp.is_up_to_date()]

    @property
    def paths(self) -> list[Path]:
        return list(self._prints)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, Path) and path.absolute() in self._prints

    def __len__(self) -> int:
        return len(self._prints)
