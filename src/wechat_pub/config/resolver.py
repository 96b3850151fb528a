"""Configuration resolution with precedence handling.

Programmatic > Environment > Project file > Home file > Defaults
"""

import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from wechat_pub.exceptions import ConfigurationError

from .audit import SourceTracker
from .env_loader import EnvironmentConfigLoader
from .file_loader import ConfigFileError, FileConfigLoader
from .schema import WeChatSettings
from .types import ResolvedConfig

log = logging.getLogger(__name__)

PROFILE_ENV_VAR = "WECHAT_PUB_PROFILE"


class ConfigResolver:
    """Merges configuration sources in precedence order."""

    def __init__(self) -> None:
        self.file_loader = FileConfigLoader()
        self.env_loader = EnvironmentConfigLoader()

    def resolve(
        self,
        programmatic: dict[str, Any] | None = None,
        *,
        profile: str | None = None,
        use_env_file: str | Path | None = None,
        project_root: Path | None = None,
    ) -> ResolvedConfig:
        """Resolve configuration from all sources.

        Args:
            programmatic: Overrides with the highest precedence.
            profile: Profile name to load from files. Defaults to
                ``WECHAT_PUB_PROFILE``.
            use_env_file: Optional ``.env`` file to load first.
            project_root: Directory to search for pyproject.toml.

        Raises:
            ConfigurationError: If a value is invalid or a file is malformed.
        """
        source_tracker = SourceTracker()
        merged: dict[str, Any] = {}

        if profile is None:
            profile = self.get_effective_profile()

        for field, value in WeChatSettings.defaults().items():
            merged[field] = value
            source_tracker.set_origin(field, "default")

        # A broken home file never blocks resolution.
        try:
            home_config = self.file_loader.load_home_config(profile=profile)
        except ConfigFileError as e:
            log.warning("Ignoring home configuration: %s", e)
            home_config = {}
        self._apply(merged, source_tracker, home_config, "file")

        try:
            project_config = self.file_loader.load_project_config(
                project_root=project_root, profile=profile
            )
        except ConfigFileError:
            if profile is None:
                raise
            log.debug("Profile %r not in project configuration", profile)
            project_config = {}
        self._apply(merged, source_tracker, project_config, "file")

        try:
            env_config = self.env_loader.load_env_config(env_file=use_env_file)
        except (ValueError, FileNotFoundError) as e:
            raise ConfigurationError(f"Environment configuration error: {e}") from e
        self._apply(merged, source_tracker, env_config, "env")

        if programmatic:
            self._apply(merged, source_tracker, programmatic, "programmatic")

        try:
            final = WeChatSettings(**merged).to_dict()
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed: {e}") from e

        return ResolvedConfig(**final, origin=source_tracker.get_source_map())

    def get_effective_profile(self) -> str | None:
        return os.getenv(PROFILE_ENV_VAR) or None

    def list_available_profiles(
        self, project_root: Path | None = None
    ) -> dict[str, list[str]]:
        return self.file_loader.list_available_profiles(project_root)

    @staticmethod
    def _apply(
        merged: dict[str, Any],
        tracker: SourceTracker,
        values: dict[str, Any],
        origin: Any,
    ) -> None:
        for field, value in values.items():
            if field in merged:  # Only known fields
                merged[field] = value
                tracker.set_origin(field, origin)
