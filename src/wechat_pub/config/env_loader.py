"""Environment variable configuration loading.

Reads ``WECHAT_*`` variables for the known settings fields and coerces them
through `WeChatSettings`, so invalid values fail with the variable named.
"""

import os
from pathlib import Path
from typing import Any

from .schema import WeChatSettings
from .types import SENSITIVE_FIELDS

ENV_PREFIX = "WECHAT_"


def env_var_names() -> dict[str, str]:
    """Map each environment variable name to its settings field."""
    return {f"{ENV_PREFIX}{name.upper()}": name for name in WeChatSettings.model_fields}


class EnvironmentConfigLoader:
    """Loads configuration from ``WECHAT_*`` environment variables."""

    def load_env_config(self, env_file: str | Path | None = None) -> dict[str, Any]:
        """Return the settings explicitly set in the environment.

        Args:
            env_file: Optional ``.env`` file whose entries are loaded into the
                environment first. Existing variables are not overridden.

        Raises:
            ValueError: If a variable holds an invalid value.
        """
        if env_file:
            self._load_env_file(env_file)

        names = env_var_names()
        env_values = {
            field: os.environ[var] for var, field in names.items() if var in os.environ
        }
        if not env_values:
            return {}

        try:
            settings = WeChatSettings(**env_values)
        except Exception as e:
            shown = [var for var, field in names.items() if field in env_values]
            raise ValueError(
                f"Invalid environment variable values for {', '.join(shown)}: {e}"
            ) from e
        return {field: getattr(settings, field) for field in env_values}

    def get_env_summary(self) -> dict[str, str]:
        """Currently set ``WECHAT_*`` settings variables, secrets redacted."""
        summary = {}
        for var, field in env_var_names().items():
            if var in os.environ:
                summary[var] = (
                    "<redacted>" if field in SENSITIVE_FIELDS else os.environ[var]
                )
        return summary

    def _load_env_file(self, env_file: str | Path) -> None:
        env_path = Path(env_file)
        if not env_path.exists():
            raise FileNotFoundError(f"Environment file not found: {env_path}")

        with env_path.open(encoding="utf-8") as f:
            for line_num, raw in enumerate(f, 1):
                line = raw.strip()
                if not line or line.startswith("#"):
                    continue
                if "=" not in line:
                    raise ValueError(
                        f"Invalid format at line {line_num}: {line}. "
                        "Expected KEY=VALUE format."
                    )
                key, value = (part.strip() for part in line.split("=", 1))
                if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
                    value = value[1:-1]
                os.environ.setdefault(key, value)
