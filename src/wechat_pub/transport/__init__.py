"""HTTP transport and its collaborator protocols."""

from wechat_pub.transport.base import (
    CredentialIssuer,
    IssuedCredential,
    MediaPayload,
    Transport,
    TransportFailure,
)
from wechat_pub.transport.http import (
    DEFAULT_BASE_URL,
    WeChatHttpClient,
    classify_errcode,
    classify_status,
)

__all__ = [
    "DEFAULT_BASE_URL",
    "CredentialIssuer",
    "IssuedCredential",
    "MediaPayload",
    "Transport",
    "TransportFailure",
    "WeChatHttpClient",
    "classify_errcode",
    "classify_status",
]
