"""Article statistics from the datacube endpoints.

All endpoints take an inclusive ``begin_date``/``end_date`` range in
``YYYY-MM-DD`` form. The per-article endpoints accept a single day; the
summary accepts up to 30 days.
"""

from __future__ import annotations

from datetime import date
import logging
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from wechat_pub.services.base import ApiService

log = logging.getLogger(__name__)

T = TypeVar("T")


class _Model(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ReadUserSource(_Model):
    user_count: int = 0
    scene_desc: str = ""


class ArticleReadDetail(_Model):
    read_user: int = 0
    read_user_source: list[ReadUserSource] = Field(default_factory=list)


class ArticleReadTotal(_Model):
    ref_date: str
    msgid: str
    detail: ArticleReadDetail


class ArticleShareDetail(_Model):
    share_user: int = 0


class ArticleShareTotal(_Model):
    ref_date: str
    msgid: str
    detail: ArticleShareDetail


class ArticleSummaryDetail(_Model):
    read_user: int = 0
    read_user_source: list[ReadUserSource] = Field(default_factory=list)
    share_user: int = 0
    zaikan_user: int = 0
    like_user: int = 0
    comment_count: int = 0
    collection_user: int = 0
    redirect_ori_page_user: int = 0
    send_page_count: int = 0


class ArticleSummary(_Model):
    ref_date: str
    detail: ArticleSummaryDetail


class ReadJumpPosition(_Model):
    position: int
    rate: float


class ArticleStatDetail(_Model):
    stat_date: str
    read_user: int = 0
    read_user_source: list[ReadUserSource] = Field(default_factory=list)
    share_user: int = 0
    zaikan_user: int = 0
    like_user: int = 0
    comment_count: int = 0
    collection_user: int = 0
    praise_money: int = 0
    read_subscribe_user: int = 0
    read_delivery_rate: float = 0.0
    read_finish_rate: float = 0.0
    read_avg_activetime: float = 0.0
    read_jump_position: list[ReadJumpPosition] = Field(default_factory=list)


class ArticleTotalDetail(_Model):
    ref_date: str
    msgid: str
    publish_type: int = 0
    detail_list: list[ArticleStatDetail] = Field(default_factory=list)


class DatacubeResponse(_Model, Generic[T]):
    """Rows of a datacube query; ``items`` is the wire field ``list``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    items: list[T] = Field(default_factory=list, alias="list")
    is_delay: bool = False


def _date_range(begin: date | str, end: date | str, max_days: int) -> dict[str, str]:
    """Validate an inclusive date range and render it for the request body."""
    begin_d = begin if isinstance(begin, date) else date.fromisoformat(begin)
    end_d = end if isinstance(end, date) else date.fromisoformat(end)
    if begin_d > end_d:
        raise ValueError(f"begin_date {begin_d} is after end_date {end_d}")
    span = (end_d - begin_d).days + 1
    if span > max_days:
        raise ValueError(f"Date range spans {span} days; at most {max_days} allowed")
    return {"begin_date": begin_d.isoformat(), "end_date": end_d.isoformat()}


class DatacubeClient(ApiService):
    """Read-only access to article statistics."""

    async def get_article_read(
        self, begin_date: date | str, end_date: date | str
    ) -> DatacubeResponse[ArticleReadTotal]:
        """Daily read statistics per article (single day)."""
        body = await self._call(
            "/cgi-bin/datacube/getarticleread", _date_range(begin_date, end_date, 1)
        )
        return DatacubeResponse[ArticleReadTotal].model_validate(body)

    async def get_article_share(
        self, begin_date: date | str, end_date: date | str
    ) -> DatacubeResponse[ArticleShareTotal]:
        """Daily share statistics per article (single day)."""
        body = await self._call(
            "/cgi-bin/datacube/getarticleshare", _date_range(begin_date, end_date, 1)
        )
        return DatacubeResponse[ArticleShareTotal].model_validate(body)

    async def get_article_summary(
        self, begin_date: date | str, end_date: date | str
    ) -> DatacubeResponse[ArticleSummary]:
        """Account-level overview (up to 30 days)."""
        body = await self._call(
            "/cgi-bin/datacube/getbizsummary", _date_range(begin_date, end_date, 30)
        )
        return DatacubeResponse[ArticleSummary].model_validate(body)

    async def get_article_total_detail(
        self, begin_date: date | str, end_date: date | str
    ) -> DatacubeResponse[ArticleTotalDetail]:
        """Long-term performance of articles published on one day."""
        log.debug("Fetching article total detail %s..%s", begin_date, end_date)
        body = await self._call(
            "/cgi-bin/datacube/getarticletotaldetail",
            _date_range(begin_date, end_date, 1),
        )
        return DatacubeResponse[ArticleTotalDetail].model_validate(body)
