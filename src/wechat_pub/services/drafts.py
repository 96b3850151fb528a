"""Draft box management: articles waiting to be published."""

from __future__ import annotations

import html
import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from wechat_pub.services.base import ApiService

log = logging.getLogger(__name__)

DIGEST_MAX_CHARS = 120
DEFAULT_TITLE = "Untitled"
DEFAULT_AUTHOR = "Anonymous"
BATCH_MAX_COUNT = 20

_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")


def summarize(content: str, limit: int = DIGEST_MAX_CHARS) -> str:
    """Plain-text summary of HTML article content, at most ``limit`` characters."""
    text = _SPACE_RE.sub(" ", html.unescape(_TAG_RE.sub(" ", content))).strip()
    return text[:limit]


class Article(BaseModel):
    """One article of a draft, in the shape the draft endpoints accept."""

    model_config = ConfigDict(extra="ignore")

    title: str = DEFAULT_TITLE
    author: str = DEFAULT_AUTHOR
    digest: str = ""
    content: str = ""
    content_source_url: str = ""
    thumb_media_id: str | None = None
    show_cover_pic: bool = True
    need_open_comment: bool = False
    only_fans_can_comment: bool = False
    url: str | None = Field(default=None, exclude=True)

    @field_validator("digest", mode="before")
    @classmethod
    def truncate_digest(cls, v: Any) -> Any:
        if isinstance(v, str) and len(v) > DIGEST_MAX_CHARS:
            return v[:DIGEST_MAX_CHARS]
        return v

    @classmethod
    def compose(
        cls,
        content: str,
        *,
        title: str | None = None,
        author: str | None = None,
        digest: str | None = None,
        thumb_media_id: str | None = None,
        show_cover_pic: bool = True,
    ) -> Article:
        """Build an article, filling missing metadata with defaults.

        The digest falls back to a summary of the content.
        """
        return cls(
            title=title or DEFAULT_TITLE,
            author=author or DEFAULT_AUTHOR,
            digest=digest if digest is not None else summarize(content),
            content=content,
            thumb_media_id=thumb_media_id,
            show_cover_pic=show_cover_pic,
        )

    def to_payload(self) -> dict[str, Any]:
        """Request body for this article; flags are sent as 0/1."""
        payload = self.model_dump(exclude_none=True)
        for flag in ("show_cover_pic", "need_open_comment", "only_fans_can_comment"):
            payload[flag] = int(payload[flag])
        return payload


class DraftInfo(BaseModel):
    media_id: str
    articles: list[Article] = Field(default_factory=list)
    update_time: int | None = None

    @property
    def title(self) -> str | None:
        return self.articles[0].title if self.articles else None


class DraftService(ApiService):
    """Create, read, update and delete drafts."""

    async def create_draft(self, articles: list[Article]) -> str:
        """Create a draft and return its media id."""
        if not articles:
            raise ValueError("A draft needs at least one article")
        body = await self._call(
            "/cgi-bin/draft/add",
            {"articles": [a.to_payload() for a in articles]},
        )
        media_id = str(body["media_id"])
        log.info("Created draft %s with %d article(s)", media_id, len(articles))
        return media_id

    async def update_draft(self, media_id: str, article: Article, index: int = 0) -> None:
        """Replace the article at ``index`` of an existing draft."""
        await self._call(
            "/cgi-bin/draft/update",
            {"media_id": media_id, "index": index, "articles": article.to_payload()},
        )
        log.info("Updated draft %s (article %d)", media_id, index)

    async def get_draft(self, media_id: str) -> DraftInfo:
        body = await self._call("/cgi-bin/draft/get", {"media_id": media_id})
        return DraftInfo(
            media_id=media_id,
            articles=body.get("news_item", []),
            update_time=body.get("update_time"),
        )

    async def delete_draft(self, media_id: str) -> None:
        await self._call("/cgi-bin/draft/delete", {"media_id": media_id})
        log.info("Deleted draft %s", media_id)

    async def list_drafts(
        self, offset: int = 0, count: int = BATCH_MAX_COUNT, *, no_content: bool = False
    ) -> list[DraftInfo]:
        """One page of drafts, newest first.

        Args:
            offset: Position of the first draft to return.
            count: Page size, between 1 and 20.
            no_content: Omit article bodies from the response.
        """
        if offset < 0:
            raise ValueError("offset must be >= 0")
        if not 1 <= count <= BATCH_MAX_COUNT:
            raise ValueError(f"count must be between 1 and {BATCH_MAX_COUNT}")
        body = await self._call(
            "/cgi-bin/draft/batchget",
            {"offset": offset, "count": count, "no_content": int(no_content)},
        )
        return [
            DraftInfo(
                media_id=item["media_id"],
                articles=item.get("content", {}).get("news_item", []),
                update_time=item.get("update_time"),
            )
            for item in body.get("item", [])
        ]

    async def count_drafts(self) -> int:
        body = await self._call("/cgi-bin/draft/count", method="GET")
        return int(body.get("total_count", 0))

    async def find_by_title(self, title: str) -> DraftInfo | None:
        """First draft whose first article carries ``title``, if any."""
        offset = 0
        while True:
            page = await self.list_drafts(offset, BATCH_MAX_COUNT, no_content=True)
            for draft in page:
                if draft.title == title:
                    return draft
            if len(page) < BATCH_MAX_COUNT:
                return None
            offset += len(page)
