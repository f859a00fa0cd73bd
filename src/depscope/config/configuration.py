"""Scope configuration: parse configuration files, load rule sets, track staleness.

A :class:`Configuration` is built once per stale detection and replaced
wholesale afterwards.  It owns the :class:`FingerprintStore` covering every
configuration and rule location consulted while parsing, including locations
that did not exist at the time, so that creating them later is a change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from depscope.collaborators import RuleFileError
from depscope.config.fingerprint import FingerprintStore
from depscope.model import CONFIG, CONFIG_NAMES, DEFAULT_MAX_ERRORS, Diagnostic

if TYPE_CHECKING:
    from depscope.collaborators import RuleLoader, RuleSet

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(Exception):
    """A configuration syntax error anchored to a character range."""

    def __init__(self, message: str, offset: int = 0, length: int = 1) -> None:
        super().__init__(message)
        self.message = message
        self.offset = offset
        self.length = max(length, 1)


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class ScopeConfig:
    """One configured scope: artifact roots plus the rules that govern them.

    Compared by identity; a rebuilt configuration yields new scopes.
    """

    name: str | None
    root_paths: tuple[str, ...]
    rule_sets: tuple[RuleSet, ...] = ()
    check_classes: bool = True
    extract_from_annotations: bool = False
    local_rules_dir: Path | None = None
    global_rules_dir: Path | None = None
    source: str = ""  # configuration file that declared the scope

    @property
    def label(self) -> str:
        return self.name or "/".join(self.root_paths)


def normalize_root(path: str) -> str:
    """Strip surrounding whitespace, a leading ``./`` and trailing separators."""
    path = path.strip().replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path.rstrip("/")


@dataclass
class _RuleSetBuilder:
    name: str | None
    fragments: list[object] = field(default_factory=list)


class ScopeBuilder:
    """Mutable scope under construction; frozen into a :class:`ScopeConfig`."""

    def __init__(self, context: ConfigContext, name: str | None, source: str) -> None:
        self._context = context
        self.name = name
        self.source = source
        self.root_paths: list[str] = []
        self.check_classes = True
        self.extract_from_annotations = False
        self.local_rules_dir: Path | None = None
        self.global_rules_dir: Path | None = None
        self._rule_sets: list[_RuleSetBuilder] = []
        self._current: _RuleSetBuilder | None = None

    @property
    def has_rules(self) -> bool:
        return bool(self._rule_sets)

    def add_root(self, path: str) -> None:
        root = normalize_root(path)
        if root and root not in self.root_paths:
            self.root_paths.append(root)

    def start_rule_set(self, name: str | None) -> _RuleSetBuilder:
        self._current = _RuleSetBuilder(name)
        self._rule_sets.append(self._current)
        return self._current

    def _rule_set(self) -> _RuleSetBuilder:
        if self._current is None:
            return self.start_rule_set(None)
        return self._current

    def add_rules_file(self, spec: str) -> None:
        self._context.load_rules_file(self._context.resolve(spec), self._rule_set().fragments)

    def add_rules_dir(self, spec: str) -> None:
        self._context.load_rules_dir(self._context.resolve(spec), self._rule_set().fragments)

    def add_rules_subdirs(self, spec: str) -> None:
        self._context.load_rules_subdirs(self._context.resolve(spec), self._rule_set().fragments)

    def finish(self, rule_loader: RuleLoader) -> ScopeConfig:
        rule_sets = tuple(rule_loader.build(rs.name, rs.fragments) for rs in self._rule_sets)
        return ScopeConfig(
            name=self.name,
            root_paths=tuple(self.root_paths),
            rule_sets=rule_sets,
            check_classes=self.check_classes,
            extract_from_annotations=self.extract_from_annotations,
            local_rules_dir=self.local_rules_dir,
            global_rules_dir=self.global_rules_dir,
            source=self.source,
        )


class ConfigContext:
    """State shared by the configuration parsers while a configuration is built."""

    def __init__(self, project_root: Path, rule_loader: RuleLoader) -> None:
        self.project_root = project_root
        self.rule_loader = rule_loader
        self.fingerprints = FingerprintStore()
        self.errors: list[Diagnostic] = []
        self.max_errors = DEFAULT_MAX_ERRORS
        self._scopes: list[ScopeBuilder] = []

    def new_scope(self, name: str | None, source: str) -> ScopeBuilder:
        scope = ScopeBuilder(self, name, source)
        self._scopes.append(scope)
        return scope

    def resolve(self, spec: str) -> Path:
        path = Path(spec.strip())
        return path if path.is_absolute() else self.project_root / path

    def resource_name(self, path: Path) -> str:
        """Project-relative ``/`` path for diagnostics, absolute when outside the project."""
        try:
            return path.relative_to(self.project_root).as_posix()
        except ValueError:
            return str(path)

    def report(self, resource: str, error: ConfigError) -> None:
        logger.warning("%s: %s", resource, error.message)
        self.errors.append(
            Diagnostic(
                resource=resource,
                message=error.message,
                offset=error.offset,
                length=error.length,
                kind=CONFIG,
            )
        )

    # -- rule locations -----------------------------------------------------

    def load_rules_file(self, path: Path, fragments: list[object]) -> None:
        self.fingerprints.fingerprint(path)
        if not path.is_file():
            logger.debug("Rules file %s does not exist (yet)", path)
            return
        try:
            fragments.append(self.rule_loader.load_file(path))
        except RuleFileError as exc:
            self.report(
                self.resource_name(path),
                ConfigError(exc.message, exc.start, exc.end - exc.start + 1),
            )

    def load_rules_dir(self, path: Path, fragments: list[object]) -> None:
        self.fingerprints.fingerprint(path)
        if not path.is_dir():
            return
        for child in sorted(path.iterdir()):
            if not child.name.startswith(".") and child.is_file():
                self.load_rules_file(child, fragments)

    def load_rules_subdirs(self, path: Path, fragments: list[object]) -> None:
        self.fingerprints.fingerprint(path)
        if not path.is_dir():
            return
        for child in sorted(path.iterdir()):
            if not child.name.startswith(".") and child.is_dir():
                self.load_rules_dir(child, fragments)

    def finish(self, sources: list[str]) -> Configuration:
        scopes: list[ScopeConfig] = []
        for builder in self._scopes:
            if not builder.root_paths:
                logger.warning(
                    "%s: scope %s declares no artifact roots; ignored",
                    builder.source,
                    builder.name or "<unnamed>",
                )
                continue
            scopes.append(builder.finish(self.rule_loader))
        return Configuration(
            project_root=self.project_root,
            scopes=tuple(scopes),
            max_errors=self.max_errors,
            fingerprints=self.fingerprints,
            errors=tuple(self.errors),
            sources=tuple(sources),
        )


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class Configuration:
    """Parsed scopes plus the fingerprints of every file they were derived from."""

    def __init__(
        self,
        *,
        project_root: Path,
        scopes: tuple[ScopeConfig, ...],
        max_errors: int,
        fingerprints: FingerprintStore,
        errors: tuple[Diagnostic, ...] = (),
        sources: tuple[str, ...] = (),
    ) -> None:
        self.project_root = project_root
        self.scopes = scopes
        self.max_errors = max_errors
        self.fingerprints = fingerprints
        self.errors = errors
        self.sources = sources

    @property
    def is_active(self) -> bool:
        """True when at least one recognised configuration file exists."""
        return bool(self.sources)

    def is_up_to_date(self) -> bool:
        return self.fingerprints.is_up_to_date()


def has_config(project_root: Path) -> bool:
    """Return True if *project_root* contains a recognised configuration file."""
    return any((project_root / name).is_file() for name in CONFIG_NAMES)


def load_configuration(project_root: Path, rule_loader: RuleLoader) -> Configuration:
    """Parse every configuration file in *project_root*.

    Parameters
    ----------
    project_root:
        Directory holding ``depscope.conf``, ``.depscope`` and/or
        ``depscope.yml``.  Relative rule paths resolve against it.
    rule_loader:
        Parses individual rule files and assembles rule sets.

    Returns
    -------
    Configuration
        Scopes in declaration order.  Syntax errors in configuration or rule
        files are collected in ``errors`` instead of being raised.
    """
    from depscope.config.options import parse_options
    from depscope.config.yaml_config import parse_yaml_config

    context = ConfigContext(project_root, rule_loader)
    sources: list[str] = []
    for name in CONFIG_NAMES:
        path = project_root / name
        context.fingerprints.fingerprint(path)
        if not path.is_file():
            continue
        sources.append(name)
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            message = f"Cannot decode {name} as UTF-8: {exc.reason}"
            context.report(name, ConfigError(message, exc.start, 1))
            continue
        if path.suffix in (".yml", ".yaml"):
            parse_yaml_config(text, context, resource=name)
        else:
            parse_options(text, context, resource=name)

    configuration = context.finish(sources)
    logger.info(
        "Loaded %d scope(s) from %s (%d file(s) tracked, %d error(s))",
        len(configuration.scopes),
        ", ".join(sources) or "no configuration",
        len(configuration.fingerprints),
        len(configuration.errors),
    )
    return configuration
