"""Core value types and content addressing."""

from wechat_pub.core.hashing import content_id
from wechat_pub.core.types import (
    CacheEntry,
    ContentId,
    Credential,
    Failure,
    Result,
    Success,
    TokenInfo,
    UploadOutcome,
    UploadTask,
)

__all__ = [
    "CacheEntry",
    "ContentId",
    "Credential",
    "Failure",
    "Result",
    "Success",
    "TokenInfo",
    "UploadOutcome",
    "UploadTask",
    "content_id",
]
