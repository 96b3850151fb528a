"""Validation rules beyond the Pydantic schema."""

from wechat_pub.exceptions import ConfigurationError

from .types import FrozenConfig, ResolvedConfig

APP_ID_PREFIX = "wx"
APP_ID_LENGTH = 18
APP_SECRET_LENGTH = 32


def validate_app_credentials(app_id: str | None, app_secret: str | None) -> None:
    """Check the shape of an AppID/AppSecret pair.

    AppIDs are ``wx`` followed by 16 alphanumerics; AppSecrets are 32
    alphanumerics. Only the format is checked here, the platform decides
    whether the pair is actually valid.

    Raises:
        ConfigurationError: If either value is missing or malformed.
    """
    if not app_id:
        raise ConfigurationError(
            "app_id is required. Set WECHAT_APP_ID, provide it in a config file, "
            "or pass it programmatically."
        )
    if not app_secret:
        raise ConfigurationError(
            "app_secret is required. Set WECHAT_APP_SECRET, provide it in a config "
            "file, or pass it programmatically."
        )
    if (
        not app_id.startswith(APP_ID_PREFIX)
        or len(app_id) != APP_ID_LENGTH
        or not app_id.isalnum()
    ):
        raise ConfigurationError(
            f"Invalid app_id {app_id!r}: expected '{APP_ID_PREFIX}' followed by "
            f"{APP_ID_LENGTH - len(APP_ID_PREFIX)} alphanumeric characters"
        )
    if len(app_secret) != APP_SECRET_LENGTH or not app_secret.isalnum():
        raise ConfigurationError(
            f"Invalid app_secret: expected {APP_SECRET_LENGTH} alphanumeric characters"
        )


def validate_config(config: ResolvedConfig | FrozenConfig) -> None:
    """Validate a configuration for use by a client."""
    validate_app_credentials(config.app_id, config.app_secret)


def get_config_warnings(config: ResolvedConfig | FrozenConfig) -> list[str]:
    """Non-fatal observations about a configuration."""
    warnings = []
    if not config.app_id or not config.app_secret:
        warnings.append("No app credentials configured - API calls will fail")
    if not config.base_url.startswith("https://"):
        warnings.append("base_url is not HTTPS - credentials travel in clear text")
    if config.concurrency > 20:
        warnings.append(
            "Concurrency above 20 is likely to trigger platform rate limits"
        )
    if config.refresh_margin >= 7200:
        warnings.append(
            "refresh_margin is at least the usual 7200s token lifetime - "
            "every call will refresh the token"
        )
    return warnings
