"""Load the dependency checker toolchain from a ``module:factory`` plugin spec."""

from __future__ import annotations

import importlib
import logging

from depscope.collaborators import Toolchain

logger = logging.getLogger(__name__)

PLUGIN_ENV_VAR = "DEPSCOPE_PLUGIN"


class PluginError(Exception):
    """The toolchain plugin could not be loaded."""


def load_toolchain(spec: str) -> Toolchain:
    """Import ``package.module:factory`` and call the factory.

    Parameters
    ----------
    spec:
        Dotted module path and the name of a zero-argument callable (or a
        :class:`Toolchain` instance) in it, separated by ``:``.

    Returns
    -------
    Toolchain
        The toolchain returned by the factory.

    Raises
    ------
    PluginError
        On a malformed plugin string, an import failure, a missing attribute, or a
        factory that does not produce a :class:`Toolchain`.
    """
    module_name, sep, attr = spec.partition(":")
    module_name, attr = module_name.strip(), attr.strip()
    if not sep or not module_name or not attr:
        msg = f"Invalid plugin '{spec}': expected 'package.module:factory'"
        raise PluginError(msg)

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        msg = f"Cannot import plugin module '{module_name}': {exc}"
        raise PluginError(msg) from exc

    try:
        target = getattr(module, attr)
    except AttributeError as exc:
        msg = f"Plugin module '{module_name}' has no attribute '{attr}'"
        raise PluginError(msg) from exc

    toolchain = target if isinstance(target, Toolchain) else target()
    if not isinstance(toolchain, Toolchain):
        msg = f"Plugin '{spec}' returned {type(toolchain).__name__}, not a Toolchain"
        raise PluginError(msg)

    logger.debug("Loaded toolchain from %s", spec)
    return toolchain
