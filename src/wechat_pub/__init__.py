"""Async client for publishing to WeChat Official Accounts."""

import importlib.metadata
import logging

from wechat_pub.auth import TokenCache
from wechat_pub.client import ArticleAssets, WeChatClient
from wechat_pub.config import FrozenConfig, ResolvedConfig, resolve_config
from wechat_pub.core import (
    CacheEntry,
    ContentId,
    Credential,
    Failure,
    Result,
    Success,
    TokenInfo,
    UploadOutcome,
    content_id,
)
from wechat_pub.exceptions import (
    ConfigurationError,
    CredentialError,
    FailureKind,
    FileError,
    TerminalUploadError,
    TransientUploadError,
    TransportError,
    UploadError,
    WeChatAPIError,
    WeChatPubError,
)
from wechat_pub.pipeline import (
    RetryPolicy,
    UploadCache,
    UploadScheduler,
    UploadTarget,
    build_mapping,
    build_media_mapping,
    failed_outcomes,
)
from wechat_pub.services import Article, DatacubeClient, DraftInfo, DraftService
from wechat_pub.state import SharedState
from wechat_pub.telemetry import SimpleReporter, TelemetryContext, TelemetryReporter
from wechat_pub.transport import WeChatHttpClient

try:
    __version__ = importlib.metadata.version("wechat-pub")
except importlib.metadata.PackageNotFoundError:
    __version__ = "development"

# Prevents 'No handler found' warnings when the application configures no logging.
logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [  # noqa: RUF022
    # Client
    "WeChatClient",
    "ArticleAssets",
    "SharedState",
    # Configuration
    "FrozenConfig",
    "ResolvedConfig",
    "resolve_config",
    # Credentials
    "TokenCache",
    "Credential",
    "TokenInfo",
    # Upload pipeline
    "UploadScheduler",
    "UploadTarget",
    "RetryPolicy",
    "UploadCache",
    "UploadOutcome",
    "CacheEntry",
    "ContentId",
    "content_id",
    "build_mapping",
    "build_media_mapping",
    "failed_outcomes",
    # Services
    "Article",
    "DraftInfo",
    "DraftService",
    "DatacubeClient",
    # Transport
    "WeChatHttpClient",
    # Result types
    "Result",
    "Success",
    "Failure",
    # Telemetry
    "TelemetryContext",
    "TelemetryReporter",
    "SimpleReporter",
    # Exceptions
    "WeChatPubError",
    "ConfigurationError",
    "FileError",
    "CredentialError",
    "UploadError",
    "TransientUploadError",
    "TerminalUploadError",
    "WeChatAPIError",
    "TransportError",
    "FailureKind",
]
