"""User-facing client tying the credential cache, uploads and services together.

A `WeChatClient` owns every piece of shared state (the access token and the
upload registries) for its lifetime. Build one per app, reuse it for every
article, and close it when done:

    async with WeChatClient.from_credentials(app_id, app_secret) as client:
        assets = await client.prepare_assets(images, "cover.png", base_dir=root)
        ...
        await client.upsert_draft(article)
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
import logging
from pathlib import Path
import time
from typing import TYPE_CHECKING, Any, cast

from wechat_pub.auth.token_cache import TokenCache
from wechat_pub.config import FrozenConfig, resolve_config, validate_app_credentials
from wechat_pub.core.types import CacheEntry, Success, TokenInfo, UploadOutcome
from wechat_pub.exceptions import CredentialError, FileError, TerminalUploadError
from wechat_pub.pipeline.result_mapper import build_mapping, failed_outcomes
from wechat_pub.pipeline.scheduler import RetryPolicy, UploadScheduler, UploadTarget
from wechat_pub.services.datacube import DatacubeClient
from wechat_pub.services.drafts import Article, DraftInfo, DraftService
from wechat_pub.state import SharedState
from wechat_pub.telemetry import TelemetryContextProtocol
from wechat_pub.transport.http import WeChatHttpClient

if TYPE_CHECKING:
    import httpx

    from wechat_pub.transport.base import CredentialIssuer, Transport

log = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp"})


@dataclass(frozen=True, slots=True)
class ArticleAssets:
    """Uploaded resources of one article, ready for content rewriting."""

    outcomes: list[UploadOutcome]
    url_mapping: dict[str, str]
    cover_media_id: str | None = None
    failures: list[UploadOutcome] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failures


class WeChatClient:
    """Async client for one Official Account."""

    def __init__(
        self,
        config: FrozenConfig | None = None,
        *,
        transport: Any = None,
        http_client: httpx.AsyncClient | None = None,
        telemetry: TelemetryContextProtocol | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Build a client from configuration.

        Args:
            config: Frozen configuration. Resolved from the environment and
                configuration files when omitted.
            transport: Object implementing both `Transport` and
                `CredentialIssuer`. Defaults to a `WeChatHttpClient`.
            http_client: httpx client for the default transport; ignored when
                ``transport`` is given.
            telemetry: Telemetry context passed to every component.
            clock: Time source for credential expiry.

        Raises:
            ConfigurationError: If the app credentials are missing or malformed.
        """
        self._config = config or resolve_config().to_frozen()
        validate_app_credentials(self._config.app_id, self._config.app_secret)
        app_id = cast(str, self._config.app_id)
        app_secret = cast(str, self._config.app_secret)

        self._http: WeChatHttpClient | None = None
        if transport is None:
            self._http = WeChatHttpClient(
                base_url=self._config.base_url,
                timeout=self._config.request_timeout,
                client=http_client,
            )
            transport = self._http
        self._transport: Transport = transport
        issuer: CredentialIssuer = transport

        token_cache = TokenCache(
            issuer,
            app_id,
            app_secret,
            refresh_margin=self._config.refresh_margin,
            clock=clock,
            telemetry=telemetry,
        )
        self._state = SharedState(token_cache=token_cache)

        policy = RetryPolicy(
            max_retries=self._config.max_retries,
            backoff_base=self._config.backoff_base,
        )
        slots = asyncio.Semaphore(self._config.concurrency)
        common: dict[str, Any] = {
            "concurrency": self._config.concurrency,
            "policy": policy,
            "telemetry": telemetry,
            "slots": slots,
        }
        self._images = UploadScheduler(
            transport,
            token_cache,
            self._state.image_cache,
            target=UploadTarget.CONTENT_IMAGE,
            **common,
        )
        self._materials = UploadScheduler(
            transport,
            token_cache,
            self._state.material_cache,
            target=UploadTarget.MATERIAL_IMAGE,
            **common,
        )
        self.drafts = DraftService(transport, token_cache, telemetry=telemetry)
        self._datacube = DatacubeClient(transport, token_cache, telemetry=telemetry)
        self._closed = False

    @classmethod
    def from_credentials(
        cls, app_id: str, app_secret: str, **overrides: Any
    ) -> WeChatClient:
        """Build a client for explicit credentials.

        Keyword arguments matching `WeChatClient.__init__` parameters
        (``transport``, ``http_client``, ``telemetry``, ``clock``) are passed
        through; everything else is a configuration override.
        """
        client_kwargs = {
            key: overrides.pop(key)
            for key in ("transport", "http_client", "telemetry", "clock")
            if key in overrides
        }
        resolved = resolve_config({"app_id": app_id, "app_secret": app_secret, **overrides})
        return cls(resolved.to_frozen(), **client_kwargs)

    @property
    def config(self) -> FrozenConfig:
        return self._config

    @property
    def state(self) -> SharedState:
        return self._state

    @property
    def datacube(self) -> DatacubeClient:
        return self._datacube

    # --- Lifecycle ---

    async def aclose(self) -> None:
        """Discard the credential and close the owned HTTP client."""
        if self._closed:
            return
        self._closed = True
        self._state.close()
        if self._http is not None:
            await self._http.aclose()

    async def __aenter__(self) -> WeChatClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # --- Credentials ---

    async def refresh_token(self) -> TokenInfo:
        """Force a new access token and describe it."""
        await self._state.token_cache.force_refresh()
        info = self._state.token_cache.info()
        if info is None:
            raise CredentialError("Access token was discarded while refreshing")
        return info

    def token_info(self) -> TokenInfo | None:
        return self._state.token_cache.info()

    # --- Uploads ---

    async def upload_images(
        self,
        paths: Sequence[str | Path],
        base_dir: str | Path | None = None,
        *,
        timeout: float | None = None,
    ) -> list[UploadOutcome]:
        """Upload article images and return one outcome per path, in order.

        Relative paths are resolved against ``base_dir``. Each outcome's
        ``reference`` is the path as given, so it matches the reference in
        the article source.

        Raises:
            FileError: If a file is missing or not an image. Checked for every
                path before anything is uploaded.
        """
        items = await self._read_files(paths, base_dir)
        return await self._images.upload_all(items, timeout=timeout)

    async def upload_image(self, path: str | Path, base_dir: str | Path | None = None) -> str:
        """Upload one article image and return its URL.

        Raises:
            UploadError: If the upload failed.
        """
        (outcome,) = await self.upload_images([path], base_dir)
        return _unwrap(outcome).remote_url

    async def upload_cover(self, path: str | Path, base_dir: str | Path | None = None) -> str:
        """Upload a cover image as permanent material and return its media id."""
        items = await self._read_files([path], base_dir)
        (outcome,) = await self._materials.upload_all(items)
        entry = _unwrap(outcome)
        if not entry.remote_media_id:
            raise TerminalUploadError(
                f"Cover upload of {path} returned no media_id", attempts=1
            )
        return entry.remote_media_id

    async def prepare_assets(
        self,
        image_paths: Sequence[str | Path],
        cover_path: str | Path | None = None,
        base_dir: str | Path | None = None,
    ) -> ArticleAssets:
        """Upload an article's images and cover.

        Image failures are reported in ``failures`` rather than raised, so the
        caller decides whether a partially rewritten article is acceptable. A
        cover failure raises, since a draft cannot be created without one.
        """
        outcomes = await self.upload_images(image_paths, base_dir)
        cover_media_id = None
        if cover_path is not None:
            cover_media_id = await self.upload_cover(cover_path, base_dir)
        failures = failed_outcomes(outcomes)
        if failures:
            log.warning(
                "%d of %d image(s) failed to upload", len(failures), len(outcomes)
            )
        return ArticleAssets(
            outcomes=outcomes,
            url_mapping=build_mapping(outcomes),
            cover_media_id=cover_media_id,
            failures=failures,
        )

    # --- Drafts ---

    async def create_draft(self, articles: list[Article]) -> str:
        return await self.drafts.create_draft(articles)

    async def update_draft(self, media_id: str, article: Article, index: int = 0) -> None:
        await self.drafts.update_draft(media_id, article, index)

    async def get_draft(self, media_id: str) -> DraftInfo:
        return await self.drafts.get_draft(media_id)

    async def delete_draft(self, media_id: str) -> None:
        await self.drafts.delete_draft(media_id)

    async def list_drafts(self, offset: int = 0, count: int = 20) -> list[DraftInfo]:
        return await self.drafts.list_drafts(offset, count)

    async def upsert_draft(self, article: Article) -> str:
        """Update the draft titled like ``article``, or create a new one.

        Returns:
            The media id of the updated or created draft.
        """
        existing = await self.drafts.find_by_title(article.title)
        if existing is not None:
            log.info("Draft titled %r exists; updating %s", article.title, existing.media_id)
            await self.drafts.update_draft(existing.media_id, article)
            return existing.media_id
        return await self.drafts.create_draft([article])

    # --- Internal helpers ---

    async def _read_files(
        self, paths: Sequence[str | Path], base_dir: str | Path | None
    ) -> list[tuple[str, bytes]]:
        resolved = [(str(p), _resolve_image_path(p, base_dir)) for p in paths]
        contents = await asyncio.gather(
            *(asyncio.to_thread(path.read_bytes) for _, path in resolved)
        )
        return [(ref, data) for (ref, _), data in zip(resolved, contents, strict=True)]


def _resolve_image_path(path: str | Path, base_dir: str | Path | None) -> Path:
    candidate = Path(path)
    if not candidate.is_absolute() and base_dir is not None:
        candidate = Path(base_dir) / candidate
    if not candidate.is_file():
        raise FileError(f"Image file not found: {candidate}", path=str(candidate))
    if candidate.suffix.lower() not in IMAGE_EXTENSIONS:
        raise FileError(f"Not a supported image file: {candidate}", path=str(candidate))
    return candidate


def _unwrap(outcome: UploadOutcome) -> CacheEntry:
    if isinstance(outcome.result, Success):
        return outcome.result.value
    raise outcome.result.error
