"""Infrastructure domain: filesystem workspace, diagnostic store, watcher, plugin loading."""

from depscope.infrastructure.diagnostics import (
    FORMATTERS,
    DiagnosticStore,
    format_json,
    format_porcelain,
    format_rich,
)
from depscope.infrastructure.plugins import PLUGIN_ENV_VAR, PluginError, load_toolchain
from depscope.infrastructure.workspace import FileSystemWorkspace

__all__ = [
    "FORMATTERS",
    "PLUGIN_ENV_VAR",
    "DiagnosticStore",
    "FileSystemWorkspace",
    "PluginError",
    "format_json",
    "format_porcelain",
    "format_rich",
    "load_toolchain",
]
