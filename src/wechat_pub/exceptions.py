"""Exception hierarchy for WeChat publishing."""

from __future__ import annotations

from enum import Enum


class FailureKind(str, Enum):
    """Classification of a failed remote call."""

    CREDENTIAL_EXPIRED = "credential_expired"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    MALFORMED_INPUT = "malformed_input"
    TRANSPORT = "transport"
    UNKNOWN = "unknown"

    @property
    def is_transient(self) -> bool:
        """Whether a call failing with this kind may succeed when repeated."""
        return self in (FailureKind.RATE_LIMITED, FailureKind.TRANSPORT)


class WeChatPubError(Exception):
    """Base exception for all wechat_pub errors"""


class ConfigurationError(WeChatPubError):
    """Raised when configuration or app credentials are invalid"""


class FileError(WeChatPubError):
    """Raised when a local resource is missing or unsupported"""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class CredentialError(WeChatPubError):
    """Raised when the access token cannot be issued or refreshed."""

    def __init__(self, message: str, *, errcode: int | None = None) -> None:
        super().__init__(message)
        self.errcode = errcode


class TransportError(WeChatPubError):
    """Base for failures reported by the HTTP transport"""


class UploadError(WeChatPubError):
    """A single upload that could not be resolved to a remote URL.

    ``kind`` is the classification of the last failed attempt and
    ``attempts`` counts the transport calls made for this content.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: FailureKind = FailureKind.UNKNOWN,
        attempts: int = 0,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.attempts = attempts


class TransientUploadError(UploadError):
    """Network or rate-limit failure; retried according to policy"""


class TerminalUploadError(UploadError):
    """Malformed input, unsupported content, or exhausted retries"""


class WeChatAPIError(WeChatPubError):
    """Raised when a non-upload WeChat endpoint returns an error."""

    def __init__(
        self,
        message: str,
        *,
        errcode: int | None = None,
        errmsg: str | None = None,
        kind: FailureKind = FailureKind.UNKNOWN,
    ) -> None:
        super().__init__(message)
        self.errcode = errcode
        self.errmsg = errmsg
        self.kind = kind
