"""Options-style configuration files (``depscope.conf``, ``.depscope``).

Example::

    --max-errors 200
    --scope one
    --classes a/binary/path/
    --classes another/binary/path/
        --rules a/rules-file.jdep
        --rules another/rules-file.jdep   # a comment
    # a comment
    --scope two
    --classes a/separate/binary/path/
        --ruleset api
        --rules-dir rules/api/

A bare token on an unindented line is shorthand for ``--classes``; on an
indented line it is shorthand for ``--rules``.  A root declared after the
current scope already received rules starts a new unnamed scope, so the
minimal file is just::

    bin/
      rules.jdep
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from depscope.config.configuration import ConfigError

if TYPE_CHECKING:
    from depscope.config.configuration import ConfigContext, ScopeBuilder

_TOKEN_RE = re.compile(r"\S+")

# Options that take no argument: option -> (attribute, value)
_FLAG_OPTIONS: dict[str, tuple[str, bool]] = {
    "--check-classes": ("check_classes", True),
    "--no-check-classes": ("check_classes", False),
    "--extract-annotations": ("extract_from_annotations", True),
    "--no-extract-annotations": ("extract_from_annotations", False),
}

_ARG_OPTIONS: frozenset[str] = frozenset(
    {
        "--scope",
        "--classes",
        "--ruleset",
        "--rules",
        "--rules-dir",
        "--rules-subdirs",
        "--local-rules",
        "--global-rules",
        "--max-errors",
    }
)


@dataclass(frozen=True)
class _Token:
    value: str
    offset: int
    indented: bool

    def error(self, message: str) -> ConfigError:
        return ConfigError(message, self.offset, len(self.value))


def _tokenize(text: str) -> list[_Token]:
    """Split *text* into tokens with absolute offsets, dropping ``#`` comments."""
    tokens: list[_Token] = []
    offset = 0
    for line in text.splitlines(keepends=True):
        body = line.split("#", 1)[0]
        indented = body[:1] in (" ", "\t")
        for match in _TOKEN_RE.finditer(body):
            tokens.append(_Token(match.group(), offset + match.start(), indented))
        offset += len(line)
    return tokens


class _OptionsParser:
    def __init__(self, context: ConfigContext, resource: str) -> None:
        self._context = context
        self._resource = resource
        self._scope: ScopeBuilder | None = None

    def parse(self, text: str) -> None:
        tokens = _tokenize(text)
        pos = 0
        while pos < len(tokens):
            token = tokens[pos]
            pos += 1
            try:
                if not token.value.startswith("--"):
                    if token.indented:
                        self._require_scope(token).add_rules_file(token.value)
                    else:
                        self._add_classes(token.value)
                elif token.value in _FLAG_OPTIONS:
                    attr, value = _FLAG_OPTIONS[token.value]
                    setattr(self._require_scope(token), attr, value)
                elif token.value in _ARG_OPTIONS:
                    if pos >= len(tokens) or tokens[pos].value.startswith("--"):
                        raise token.error(f"Missing argument for '{token.value}'")
                    arg = tokens[pos]
                    pos += 1
                    self._visit_arg(token, arg)
                else:
                    raise token.error(f"Unknown option '{token.value}'")
            except ConfigError as exc:
                self._context.report(self._resource, exc)

    def _require_scope(self, token: _Token) -> ScopeBuilder:
        if self._scope is None:
            raise token.error(f"'{token.value}' appears before any scope; declare --classes first")
        return self._scope

    def _add_classes(self, path: str) -> None:
        if self._scope is None or self._scope.has_rules:
            self._scope = self._context.new_scope(None, self._resource)
        self._scope.add_root(path)

    def _visit_arg(self, option: _Token, arg: _Token) -> None:
        opt = option.value
        if opt == "--scope":
            self._scope = self._context.new_scope(arg.value, self._resource)
        elif opt == "--classes":
            self._add_classes(arg.value)
        elif opt == "--max-errors":
            try:
                max_errors = int(arg.value)
            except ValueError:
                raise arg.error(f"'--max-errors' expects an integer, got '{arg.value}'") from None
            if max_errors < 0:
                raise arg.error("'--max-errors' must not be negative")
            self._context.max_errors = max_errors
        else:
            scope = self._require_scope(option)
            if opt == "--ruleset":
                scope.start_rule_set(arg.value)
            elif opt == "--rules":
                scope.add_rules_file(arg.value)
            elif opt == "--rules-dir":
                scope.add_rules_dir(arg.value)
            elif opt == "--rules-subdirs":
                scope.add_rules_subdirs(arg.value)
            elif opt == "--local-rules":
                scope.local_rules_dir = self._context.resolve(arg.value)
            else:  # --global-rules
                scope.global_rules_dir = self._context.resolve(arg.value)


def parse_options(text: str, context: ConfigContext, *, resource: str) -> None:
    """Parse an options-style configuration file into *context*.

    Errors are reported to *context* anchored at the offending token and
    parsing resumes with the next token.
    """
    _OptionsParser(context, resource).parse(text)
