"""YAML configuration files (``depscope.yml``).

Example::

    max_errors: 200
    scopes:
      - name: app
        classes: [bin/]
        rules: [rules/app.jdep]
        extract_annotations: true
        local_rules_dir: rules/local
      - name: api
        classes: [api/bin/]
        rule_sets:
          - name: public
            rules_dirs: [rules/api/]

The document is composed (not loaded) so that every error can be anchored to
the range of the offending node.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import yaml

from depscope.config.configuration import ConfigError

if TYPE_CHECKING:
    from depscope.config.configuration import ConfigContext, ScopeBuilder

_TRUE = frozenset({"true", "yes", "on"})
_FALSE = frozenset({"false", "no", "off"})

_RULE_KEYS = ("rules", "rules_dirs", "rules_subdirs")
_SCOPE_KEYS = frozenset(
    {
        "name",
        "classes",
        "rule_sets",
        "check_classes",
        "extract_annotations",
        "local_rules_dir",
        "global_rules_dir",
        *_RULE_KEYS,
    }
)


def _node_error(node: yaml.Node, message: str) -> ConfigError:
    start = node.start_mark.index
    return ConfigError(message, start, node.end_mark.index - start)


def _scalar(node: yaml.Node, context: str) -> str:
    if not isinstance(node, yaml.ScalarNode) or not str(node.value).strip():
        raise _node_error(node, f"{context} must be a non-empty string")
    return str(node.value)


def _bool(node: yaml.Node, context: str) -> bool:
    value = _scalar(node, context).lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise _node_error(node, f"{context} must be a boolean, got '{node.value}'")


def _int(node: yaml.Node, context: str) -> int:
    value = _scalar(node, context)
    try:
        result = int(value)
    except ValueError:
        raise _node_error(node, f"{context} must be an integer, got '{value}'") from None
    if result < 0:
        raise _node_error(node, f"{context} must not be negative")
    return result


def _strings(node: yaml.Node, context: str) -> list[str]:
    """Accept a single string or a list of strings."""
    if isinstance(node, yaml.SequenceNode):
        return [_scalar(item, context) for item in node.value]
    return [_scalar(node, context)]


def _mapping(node: yaml.Node, context: str) -> list[tuple[str, yaml.Node, yaml.Node]]:
    if not isinstance(node, yaml.MappingNode):
        raise _node_error(node, f"{context} must be a mapping")
    return [(_scalar(key, f"{context} key"), key, value) for key, value in node.value]


def _add_rules(scope: ScopeBuilder, key: str, value: yaml.Node, context: str) -> None:
    for spec in _strings(value, f"{context}.{key}"):
        if key == "rules":
            scope.add_rules_file(spec)
        elif key == "rules_dirs":
            scope.add_rules_dir(spec)
        else:
            scope.add_rules_subdirs(spec)


class _YamlParser:
    def __init__(self, context: ConfigContext, resource: str) -> None:
        self._context = context
        self._resource = resource

    def _report(self, error: ConfigError) -> None:
        self._context.report(self._resource, error)

    def parse(self, text: str) -> None:
        try:
            root = yaml.compose(text, Loader=yaml.SafeLoader)
        except yaml.YAMLError as exc:
            mark = getattr(exc, "problem_mark", None)
            problem = getattr(exc, "problem", None) or str(exc)
            self._report(ConfigError(f"Invalid YAML: {problem}", mark.index if mark else 0, 1))
            return
        if root is None:
            return
        try:
            entries = _mapping(root, self._resource)
        except ConfigError as exc:
            self._report(exc)
            return

        for key, key_node, value in entries:
            try:
                if key == "max_errors":
                    self._context.max_errors = _int(value, "max_errors")
                elif key == "scopes":
                    if not isinstance(value, yaml.SequenceNode):
                        raise _node_error(value, "'scopes' must be a list")
                    for idx, item in enumerate(value.value):
                        try:
                            self._parse_scope(item, f"scopes[{idx}]")
                        except ConfigError as exc:
                            self._report(exc)
                else:
                    raise _node_error(key_node, f"Unknown key '{key}'")
            except ConfigError as exc:
                self._report(exc)

    def _parse_scope(self, node: yaml.Node, context: str) -> None:
        entries = _mapping(node, context)
        by_key = {key: value for key, _key_node, value in entries}
        name = _scalar(by_key["name"], f"{context}.name") if "name" in by_key else None
        scope = self._context.new_scope(name, self._resource)

        for key, key_node, value in entries:
            try:
                if key not in _SCOPE_KEYS:
                    raise _node_error(key_node, f"{context}: unknown key '{key}'")
                if key == "classes":
                    for path in _strings(value, f"{context}.classes"):
                        scope.add_root(path)
                elif key in _RULE_KEYS:
                    _add_rules(scope, key, value, context)
                elif key == "rule_sets":
                    self._parse_rule_sets(scope, value, context)
                elif key == "check_classes":
                    scope.check_classes = _bool(value, f"{context}.check_classes")
                elif key == "extract_annotations":
                    scope.extract_from_annotations = _bool(value, f"{context}.extract_annotations")
                elif key == "local_rules_dir":
                    spec = _scalar(value, f"{context}.local_rules_dir")
                    scope.local_rules_dir = self._context.resolve(spec)
                elif key == "global_rules_dir":
                    spec = _scalar(value, f"{context}.global_rules_dir")
                    scope.global_rules_dir = self._context.resolve(spec)
            except ConfigError as exc:
                self._report(exc)

    def _parse_rule_sets(self, scope: ScopeBuilder, node: yaml.Node, context: str) -> None:
        if not isinstance(node, yaml.SequenceNode):
            raise _node_error(node, f"{context}.rule_sets must be a list")
        for idx, item in enumerate(node.value):
            item_context = f"{context}.rule_sets[{idx}]"
            entries = _mapping(item, item_context)
            by_key = {key: value for key, _key_node, value in entries}
            name = _scalar(by_key["name"], f"{item_context}.name") if "name" in by_key else None
            scope.start_rule_set(name)
            for key, key_node, value in entries:
                if key == "name":
                    continue
                if key not in _RULE_KEYS:
                    raise _node_error(key_node, f"{item_context}: unknown key '{key}'")
                _add_rules(scope, key, value, item_context)


def parse_yaml_config(text: str, context: ConfigContext, *, resource: str) -> None:
    """Parse a YAML configuration document into *context*.

    Invalid YAML is reported once and nothing is configured from the file;
    schema errors are reported per node and the remaining scopes are kept.
    """
    _YamlParser(context, resource).parse(text)
