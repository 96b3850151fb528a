"""Upload pipeline: content registry, scheduler and result mapping."""

from wechat_pub.pipeline.registries import ContentRegistry, UploadCache
from wechat_pub.pipeline.result_mapper import (
    build_mapping,
    build_media_mapping,
    failed_outcomes,
)
from wechat_pub.pipeline.scheduler import (
    DEFAULT_CONCURRENCY,
    RetryPolicy,
    UploadScheduler,
    UploadTarget,
)

__all__ = [
    "DEFAULT_CONCURRENCY",
    "ContentRegistry",
    "RetryPolicy",
    "UploadCache",
    "UploadScheduler",
    "UploadTarget",
    "build_mapping",
    "build_media_mapping",
    "failed_outcomes",
]
