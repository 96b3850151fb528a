"""Access token management."""

from wechat_pub.auth.token_cache import DEFAULT_REFRESH_MARGIN, TokenCache

__all__ = ["DEFAULT_REFRESH_MARGIN", "TokenCache"]
