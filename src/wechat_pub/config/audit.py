"""Configuration audit and source tracking."""

from typing import Any

from .types import FIELD_ORDER, SENSITIVE_FIELDS, ConfigOrigin, SourceMap


class SourceTracker:
    """Builds the SourceMap recording where each configuration value came from."""

    def __init__(self) -> None:
        self._origins: dict[str, ConfigOrigin] = {}

    def set_origin(self, field: str, origin: ConfigOrigin) -> None:
        self._origins[field] = origin

    def set_multiple(self, fields: dict[str, Any], origin: ConfigOrigin) -> None:
        for field in fields:
            self._origins[field] = origin

    def get_source_map(self) -> SourceMap:
        """Return a copy of the recorded origins."""
        return dict(self._origins)


def generate_redacted_audit(config_dict: dict[str, Any], source_map: SourceMap) -> str:
    """Generate a report of field origins with secrets redacted.

    Args:
        config_dict: The configuration values
        source_map: The source origins for each field

    Returns:
        One ``field: origin:value`` line per known field.
    """
    lines = []
    for field in FIELD_ORDER:
        if field not in source_map:
            continue
        origin = source_map[field]
        value = config_dict.get(field, "<missing>")
        if field in SENSITIVE_FIELDS:
            if value is None:
                value_display = f"{origin}:None"
            elif origin == "env":
                value_display = f"env:WECHAT_{field.upper()}=[REDACTED]"
            else:
                value_display = f"{origin}:<redacted>"
        elif origin == "env":
            value_display = f"env:WECHAT_{field.upper()}={value}"
        else:
            value_display = f"{origin}:{value}"
        lines.append(f"{field}: {value_display}")
    return "\n".join(lines)
