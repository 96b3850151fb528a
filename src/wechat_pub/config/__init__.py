"""Configuration management.

Resolve-once, freeze-then-flow: `resolve_config` merges defaults, the home
file, the project file, ``WECHAT_*`` environment variables and programmatic
overrides into a `ResolvedConfig`; ``to_frozen()`` yields the immutable
`FrozenConfig` a client is built from.
"""

from .api import (
    check_environment,
    get_effective_profile,
    list_available_profiles,
    resolve_config,
)
from .audit import SourceTracker, generate_redacted_audit
from .file_loader import ConfigFileError, FileConfigLoader
from .resolver import ConfigResolver
from .schema import WeChatSettings
from .types import ConfigOrigin, FrozenConfig, ResolvedConfig, SourceMap
from .validation import get_config_warnings, validate_app_credentials, validate_config

__all__ = [
    "ConfigFileError",
    "ConfigOrigin",
    "ConfigResolver",
    "FileConfigLoader",
    "FrozenConfig",
    "ResolvedConfig",
    "SourceMap",
    "SourceTracker",
    "WeChatSettings",
    "check_environment",
    "generate_redacted_audit",
    "get_config_warnings",
    "get_effective_profile",
    "list_available_profiles",
    "resolve_config",
    "validate_app_credentials",
    "validate_config",
]
