"""Core configuration data types.

Configuration follows a resolve-once, freeze-then-flow pattern: sources are
merged into a `ResolvedConfig` carrying an origin map, which is then frozen
into the `FrozenConfig` handed to the client.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal, NamedTuple

# --- Source Tracking Types ---

ConfigOrigin = Literal["programmatic", "env", "file", "default"]
SourceMap = Mapping[str, ConfigOrigin]

FIELD_ORDER = (
    "app_id",
    "app_secret",
    "base_url",
    "request_timeout",
    "concurrency",
    "refresh_margin",
    "max_retries",
    "backoff_base",
)
SENSITIVE_FIELDS = frozenset({"app_secret"})


class ResolvedConfig(NamedTuple):
    """Configuration after resolution from all sources, before freezing.

    Logically immutable; ``with_overrides`` returns a new instance.
    """

    app_id: str | None
    app_secret: str | None
    base_url: str
    request_timeout: float
    concurrency: int
    refresh_margin: float
    max_retries: int
    backoff_base: float

    # Audit metadata - tracks where each field value came from
    origin: SourceMap

    def __str__(self) -> str:
        """String representation with redacted secret for safe logging."""
        secret_display = "[REDACTED]" if self.app_secret else None
        return (
            f"ResolvedConfig(app_id={self.app_id!r}, app_secret={secret_display!r}, "
            f"base_url={self.base_url!r}, request_timeout={self.request_timeout!r}, "
            f"concurrency={self.concurrency!r}, refresh_margin={self.refresh_margin!r}, "
            f"max_retries={self.max_retries!r}, backoff_base={self.backoff_base!r}, "
            f"origin={dict(self.origin)!r})"
        )

    def __repr__(self) -> str:
        return self.__str__()

    def to_frozen(self) -> "FrozenConfig":
        """Convert to the immutable configuration used by the client."""
        return FrozenConfig(**{name: getattr(self, name) for name in FIELD_ORDER})

    def with_overrides(self, **overrides: object) -> "ResolvedConfig":
        """Return a copy with programmatic overrides applied.

        Unknown fields are ignored; overridden fields are marked
        ``programmatic`` in the origin map.
        """
        new_values = self._asdict()
        new_origin = dict(self.origin)
        for field, value in overrides.items():
            if field in FIELD_ORDER:
                new_values[field] = value
                new_origin[field] = "programmatic"
        new_values["origin"] = new_origin
        return ResolvedConfig(**new_values)

    def audit(self) -> str:
        """Redacted, human-readable report of where each field came from."""
        from .audit import generate_redacted_audit

        return generate_redacted_audit(self._asdict(), self.origin)


@dataclass(frozen=True)
class FrozenConfig:
    """Immutable configuration consumed by `WeChatClient`."""

    app_id: str | None
    app_secret: str | None
    base_url: str = "https://api.weixin.qq.com"
    request_timeout: float = 30.0
    concurrency: int = 5
    refresh_margin: float = 300.0
    max_retries: int = 2
    backoff_base: float = 0.5

    def __str__(self) -> str:
        """String representation with redacted secret for safe logging."""
        secret_display = "[REDACTED]" if self.app_secret else None
        return (
            f"FrozenConfig(app_id={self.app_id!r}, app_secret={secret_display!r}, "
            f"base_url={self.base_url!r}, request_timeout={self.request_timeout!r}, "
            f"concurrency={self.concurrency!r}, refresh_margin={self.refresh_margin!r}, "
            f"max_retries={self.max_retries!r}, backoff_base={self.backoff_base!r})"
        )

    def __repr__(self) -> str:
        return self.__str__()
