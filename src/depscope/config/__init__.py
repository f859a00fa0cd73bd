"""Configuration domain: fingerprints, scope configuration, configuration file formats."""

from depscope.config.configuration import (
    ConfigError,
    Configuration,
    ScopeConfig,
    has_config,
    load_configuration,
    normalize_root,
)
from depscope.config.fingerprint import ABSENT, Fingerprint, FingerprintStore, read_signature

__all__ = [
    "ABSENT",
    "ConfigError",
    "Configuration",
    "Fingerprint",
    "FingerprintStore",
    "ScopeConfig",
    "has_config",
    "load_configuration",
    "normalize_root",
    "read_signature",
]
