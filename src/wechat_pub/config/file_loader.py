"""File-based configuration loading with profile support.

Two TOML sources are read: the ``[tool.wechat_pub]`` table of the nearest
``pyproject.toml`` and the home file ``~/.config/wechat_pub.toml``. Both may
define named profiles under ``profiles.<name>``.

``WECHAT_PUB_PYPROJECT_PATH`` and ``WECHAT_PUB_CONFIG_HOME`` point either
source at an explicit file.
"""

import os
from pathlib import Path
import tomllib
from typing import Any

from wechat_pub.exceptions import ConfigurationError

PYPROJECT_ENV_VAR = "WECHAT_PUB_PYPROJECT_PATH"
HOME_CONFIG_ENV_VAR = "WECHAT_PUB_CONFIG_HOME"
TOOL_TABLE = "wechat_pub"


class ConfigFileError(ConfigurationError):
    """Raised when a configuration file cannot be loaded."""

    def __init__(
        self, file_path: Path, message: str, cause: Exception | None = None
    ) -> None:
        self.file_path = file_path
        self.message = message
        self.cause = cause
        super().__init__(f"Config file error in {file_path}: {message}")


class FileConfigLoader:
    """Loads configuration tables from TOML files."""

    def load_project_config(
        self, project_root: Path | None = None, profile: str | None = None
    ) -> dict[str, Any]:
        """Load ``[tool.wechat_pub]`` (or one of its profiles) from pyproject.toml.

        Args:
            project_root: Directory to search upwards from. Defaults to the
                current directory.
            profile: Optional profile under ``[tool.wechat_pub.profiles]``.

        Returns:
            The configuration table, or an empty dict when there is none.

        Raises:
            ConfigFileError: If the file cannot be parsed or the profile is
                missing.
        """
        pyproject_path = self._find_pyproject_toml(project_root)
        if not pyproject_path:
            return {}
        data = self._read_toml(pyproject_path)
        table = data.get("tool", {}).get(TOOL_TABLE, {})
        if not table:
            return {}
        return self._select_profile(pyproject_path, table, profile)

    def load_home_config(self, profile: str | None = None) -> dict[str, Any]:
        """Load the home configuration file, if it exists.

        Raises:
            ConfigFileError: If the file cannot be parsed or the profile is
                missing.
        """
        home_config_path = self.home_config_path()
        if not home_config_path.exists():
            return {}
        data = self._read_toml(home_config_path)
        return self._select_profile(home_config_path, data, profile)

    def list_available_profiles(
        self, project_root: Path | None = None
    ) -> dict[str, list[str]]:
        """Profile names found in the project and home files."""
        profiles: dict[str, list[str]] = {"project": [], "home": []}

        pyproject_path = self._find_pyproject_toml(project_root)
        if pyproject_path:
            try:
                data = self._read_toml(pyproject_path)
            except ConfigFileError:
                data = {}
            table = data.get("tool", {}).get(TOOL_TABLE, {})
            profiles["project"] = list(table.get("profiles", {}))

        home_config_path = self.home_config_path()
        if home_config_path.exists():
            try:
                data = self._read_toml(home_config_path)
            except ConfigFileError:
                data = {}
            profiles["home"] = list(data.get("profiles", {}))

        return profiles

    def home_config_path(self) -> Path:
        override = os.environ.get(HOME_CONFIG_ENV_VAR)
        if override:
            return Path(override).expanduser()
        return Path.home() / ".config" / "wechat_pub.toml"

    # --- Internal helpers ---

    def _read_toml(self, path: Path) -> dict[str, Any]:
        try:
            with path.open(mode="rb") as f:
                return tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigFileError(path, f"Failed to parse TOML: {e}", cause=e) from e

    def _select_profile(
        self, path: Path, table: dict[str, Any], profile: str | None
    ) -> dict[str, Any]:
        profiles = table.get("profiles", {})
        if profile:
            if profile not in profiles:
                raise ConfigFileError(
                    path,
                    f"Profile '{profile}' not found. Available profiles: {list(profiles)}",
                )
            return dict(profiles[profile])
        config = dict(table)
        config.pop("profiles", None)
        return config

    def _find_pyproject_toml(self, start_dir: Path | None = None) -> Path | None:
        override = os.environ.get(PYPROJECT_ENV_VAR)
        if override:
            path = Path(override).expanduser()
            return path if path.exists() else None

        current = Path(start_dir or Path.cwd()).resolve()
        while True:
            candidate = current / "pyproject.toml"
            if candidate.exists():
                return candidate
            if current == current.parent:
                return None
            current = current.parent
