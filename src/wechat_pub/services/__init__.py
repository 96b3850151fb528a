"""JSON endpoint services: drafts and statistics."""

from wechat_pub.services.base import ApiService
from wechat_pub.services.datacube import (
    ArticleReadTotal,
    ArticleShareTotal,
    ArticleSummary,
    ArticleTotalDetail,
    DatacubeClient,
    DatacubeResponse,
)
from wechat_pub.services.drafts import Article, DraftInfo, DraftService, summarize

__all__ = [
    "ApiService",
    "Article",
    "ArticleReadTotal",
    "ArticleShareTotal",
    "ArticleSummary",
    "ArticleTotalDetail",
    "DatacubeClient",
    "DatacubeResponse",
    "DraftInfo",
    "DraftService",
    "summarize",
]
