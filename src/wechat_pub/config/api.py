"""Public entry points for configuration resolution."""

from pathlib import Path
from typing import Any

from .resolver import ConfigResolver
from .types import ResolvedConfig

_resolver = ConfigResolver()


def resolve_config(
    programmatic: dict[str, Any] | None = None,
    *,
    profile: str | None = None,
    use_env_file: str | Path | None = None,
    project_root: Path | None = None,
) -> ResolvedConfig:
    """Resolve configuration from all sources with proper precedence.

    Programmatic > Environment > Project file > Home file > Defaults

    Args:
        programmatic: Programmatic overrides; unknown keys are ignored.
        profile: Profile name to load from configuration files. If None,
            ``WECHAT_PUB_PROFILE`` is used when set.
        use_env_file: Optional ``.env`` file loaded before reading the
            environment.
        project_root: Directory to search for pyproject.toml. If None, the
            current directory and its parents are searched.

    Returns:
        ResolvedConfig with merged values and per-field origins.

    Raises:
        ConfigurationError: If validation fails or a configuration file is
            malformed.

    Example:
        config = resolve_config({"concurrency": 3}, profile="staging")
        client = WeChatClient(config.to_frozen())
    """
    return _resolver.resolve(
        programmatic=programmatic,
        profile=profile,
        use_env_file=use_env_file,
        project_root=project_root,
    )


def list_available_profiles(project_root: Path | None = None) -> dict[str, list[str]]:
    """Profile names available in the project and home files."""
    return _resolver.list_available_profiles(project_root)


def get_effective_profile() -> str | None:
    return _resolver.get_effective_profile()


def check_environment() -> dict[str, str]:
    """Currently set ``WECHAT_*`` variables, with secrets redacted."""
    return _resolver.env_loader.get_env_summary()
