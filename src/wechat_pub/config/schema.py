"""Configuration schema and validation using Pydantic.

This module defines the settings schema that validates and coerces configuration
values from various sources (environment, files, programmatic) into the correct
types with proper defaults.
"""

from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class WeChatSettings(BaseSettings):
    """Pydantic settings schema for the publishing client.

    Handles validation, type coercion and default values for all
    configuration fields. Environment variables use the ``WECHAT_`` prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="WECHAT_",
        env_file=None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Credentials ---

    app_id: str | None = Field(
        default=None,
        description="Official Account AppID",
    )

    app_secret: str | None = Field(
        default=None,
        description="Official Account AppSecret",
    )

    # --- Transport ---

    base_url: str = Field(
        default="https://api.weixin.qq.com",
        description="API origin",
        min_length=1,
    )

    request_timeout: float = Field(
        default=30.0,
        description="Per-request timeout in seconds",
        gt=0,
    )

    # --- Upload pipeline ---

    concurrency: int = Field(
        default=5,
        description="Maximum simultaneous uploads",
        ge=1,
    )

    refresh_margin: float = Field(
        default=300.0,
        description="Seconds before expiry at which the access token is refreshed",
        ge=0,
    )

    max_retries: int = Field(
        default=2,
        description="Retries after the first attempt for transient upload failures",
        ge=0,
    )

    backoff_base: float = Field(
        default=0.5,
        description="Base delay in seconds for exponential backoff",
        ge=0,
    )

    @field_validator("app_id", "app_secret", mode="before")
    @classmethod
    def blank_as_missing(cls, v: Any) -> Any:
        """Treat empty or whitespace-only credentials as unset."""
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("base_url")
    @classmethod
    def require_http_scheme(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"base_url must start with http:// or https://, got {v!r}")
        return v.rstrip("/")

    @classmethod
    def defaults(cls) -> dict[str, Any]:
        """Schema defaults, without consulting the environment."""
        return {name: f.default for name, f in cls.model_fields.items()}

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary suitable for SourceMap annotation."""
        return {name: getattr(self, name) for name in type(self).model_fields}
