"""Bounded-concurrency upload stage.

Runs a batch of ``(reference, bytes)`` items through three phases:

- PARTITION: hash every item, resolve cache hits immediately, and group the
  misses by content so identical bytes are uploaded once per batch
- UPLOAD: upload each distinct content under a fixed pool of slots, with a
  single forced token refresh on credential errors and exponential backoff on
  transient failures
- RESOLVE: fan results back out to every item, in input order

A failed item never aborts its siblings; callers receive one `UploadOutcome`
per input and decide themselves whether any failure is fatal.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
import logging
from pathlib import PurePosixPath
from random import random
from typing import TYPE_CHECKING, Any

from wechat_pub.core.hashing import content_id
from wechat_pub.core.types import (
    CacheEntry,
    ContentId,
    Failure,
    Result,
    Success,
    UploadOutcome,
    UploadTask,
)
from wechat_pub.exceptions import (
    CredentialError,
    FailureKind,
    TerminalUploadError,
    TransientUploadError,
    UploadError,
)
from wechat_pub.telemetry import TelemetryContext, TelemetryContextProtocol
from wechat_pub.transport.base import MediaPayload, Transport

if TYPE_CHECKING:
    from wechat_pub.auth.token_cache import TokenCache
    from wechat_pub.pipeline.registries import ContentRegistry

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 5

_IMAGE_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", ".png"),
    (b"\xff\xd8\xff", ".jpg"),
    (b"GIF87a", ".gif"),
    (b"GIF89a", ".gif"),
)


class UploadTarget(str, Enum):
    """Where uploaded bytes end up on the platform."""

    CONTENT_IMAGE = "content_image"  # Inline article image, yields a URL
    MATERIAL_IMAGE = "material_image"  # Permanent material, yields a media id

    @property
    def endpoint(self) -> str:
        if self is UploadTarget.CONTENT_IMAGE:
            return "/cgi-bin/media/uploadimg"
        return "/cgi-bin/material/add_material"

    @property
    def params(self) -> dict[str, str] | None:
        if self is UploadTarget.MATERIAL_IMAGE:
            return {"type": "image"}
        return None


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Retry bound and backoff curve for transient upload failures.

    ``max_retries`` counts retries after the first attempt, so an upload makes
    at most ``max_retries + 1`` transport calls for transient failures.
    """

    max_retries: int = 2
    backoff_base: float = 0.5
    jitter: float = 0.25

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.backoff_base < 0:
            raise ValueError("backoff_base must be >= 0")

    def delay(self, retry_index: int) -> float:
        """Seconds to wait before retry number ``retry_index`` (0-based)."""
        return self.backoff_base * (2**retry_index) * (1 + self.jitter * random())  # noqa: S311


class UploadScheduler:
    """Uploads batches of resources with deduplication and bounded concurrency."""

    def __init__(
        self,
        transport: Transport,
        token_cache: TokenCache,
        upload_cache: ContentRegistry,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        policy: RetryPolicy | None = None,
        target: UploadTarget = UploadTarget.CONTENT_IMAGE,
        telemetry: TelemetryContextProtocol | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        slots: asyncio.Semaphore | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            slots: Optional slot pool shared with other schedulers, so several
                upload targets stay under one bound. Created from
                ``concurrency`` when omitted.
        """
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._transport = transport
        self._token_cache = token_cache
        self._cache = upload_cache
        self._concurrency = concurrency
        self._slots = slots if slots is not None else asyncio.Semaphore(concurrency)
        self._policy = policy or RetryPolicy()
        self._target = target
        self._telemetry: TelemetryContextProtocol = telemetry or TelemetryContext()
        self._sleep = sleep

    @property
    def target(self) -> UploadTarget:
        return self._target

    @property
    def concurrency(self) -> int:
        return self._concurrency

    async def upload_all(
        self,
        tasks: Sequence[tuple[str, bytes]],
        *,
        timeout: float | None = None,
    ) -> list[UploadOutcome]:
        """Upload every ``(reference, bytes)`` item and return outcomes in input order.

        Args:
            tasks: Items to upload; references are opaque to the scheduler.
            timeout: Optional overall deadline in seconds. When it expires,
                all outstanding uploads are cancelled and `TimeoutError`
                propagates.
        """
        if timeout is None:
            return await self._run(tasks)
        async with asyncio.timeout(timeout):
            return await self._run(tasks)

    # --- Phases ---

    async def _run(self, items: Sequence[tuple[str, bytes]]) -> list[UploadOutcome]:
        tasks = [
            UploadTask(index=i, reference=ref, content_id=content_id(data), data=data)
            for i, (ref, data) in enumerate(items)
        ]
        with self._telemetry("uploads.partition", target=self._target.value):
            outcomes, pending = self._partition(tasks)

        if pending:
            groups = list(pending.values())
            with self._telemetry("uploads.upload", target=self._target.value):
                results = await asyncio.gather(
                    *(self._upload_content(group[0]) for group in groups)
                )
            for group, result in zip(groups, results, strict=True):
                for position, task in enumerate(group):
                    outcomes[task.index] = UploadOutcome(
                        reference=task.reference,
                        content_id=task.content_id,
                        result=result,
                        source="uploaded" if position == 0 else "duplicate",
                    )

        ordered = [outcomes[t.index] for t in tasks]
        failed = sum(1 for o in ordered if not o.ok)
        logger.info(
            "Resolved %d %s upload(s): %d uploaded, %d reused, %d failed",
            len(ordered),
            self._target.value,
            len(pending),
            sum(1 for o in ordered if o.ok and o.source != "uploaded"),
            failed,
        )
        return ordered

    def _partition(
        self, tasks: list[UploadTask]
    ) -> tuple[dict[int, UploadOutcome], dict[ContentId, list[UploadTask]]]:
        """Split tasks into cache hits and misses grouped by content."""
        resolved: dict[int, UploadOutcome] = {}
        pending: dict[ContentId, list[UploadTask]] = {}
        for task in tasks:
            group = pending.get(task.content_id)
            if group is not None:
                group.append(task)
                continue
            cached = self._cache.lookup(task.content_id)
            if cached is not None:
                self._telemetry.count("uploads.cache_hit")
                resolved[task.index] = UploadOutcome(
                    reference=task.reference,
                    content_id=task.content_id,
                    result=Success(cached),
                    source="cache",
                )
            else:
                pending[task.content_id] = [task]
        return resolved, pending

    async def _upload_content(self, task: UploadTask) -> Result[CacheEntry, UploadError]:
        try:
            return await self._upload_with_resilience(task)
        except asyncio.CancelledError:
            raise
        except Exception as e:  # Normalize unexpected transport bugs per task
            logger.exception("Unexpected error uploading %s", task.reference)
            return Failure(
                TerminalUploadError(f"Upload of {task.reference} failed: {e}")
            )

    async def _upload_with_resilience(
        self, task: UploadTask
    ) -> Result[CacheEntry, UploadError]:
        payload = MediaPayload(filename=_upload_filename(task), data=task.data)
        attempts = 0
        retries = 0
        refreshed = False
        force = False
        stale = None

        while True:
            try:
                async with self._slots:
                    if force:
                        force = False
                        credential = await self._token_cache.force_refresh(stale)
                    else:
                        credential = await self._token_cache.get_valid_credential()
                    attempts += 1
                    with self._telemetry(
                        "uploads.attempt", target=self._target.value, attempt=attempts
                    ):
                        result = await self._transport.call(
                            self._target.endpoint,
                            credential,
                            payload,
                            params=self._target.params,
                        )
            except CredentialError as e:
                if refreshed:
                    return Failure(
                        _terminal(task, e, FailureKind.CREDENTIAL_EXPIRED, attempts)
                    )
                refreshed, force, stale = True, True, None
                logger.warning(
                    "Credential unavailable for %s; forcing one refresh", task.reference
                )
                continue

            if isinstance(result, Success):
                return self._store(task, result.value, attempts)

            failure = result.error
            kind = failure.kind
            if kind is FailureKind.CREDENTIAL_EXPIRED and not refreshed:
                refreshed, force, stale = True, True, credential
                logger.info(
                    "Access token rejected while uploading %s; refreshing and retrying",
                    task.reference,
                )
                continue

            if kind.is_transient and retries < self._policy.max_retries:
                delay = self._policy.delay(retries)
                retries += 1
                self._telemetry.count("uploads.retry", kind=kind.value)
                logger.warning(
                    "Transient %s failure uploading %s (attempt %d); retrying in %.2fs",
                    kind.value,
                    task.reference,
                    attempts,
                    delay,
                )
                await self._sleep(delay)
                continue

            if kind.is_transient:
                transient = TransientUploadError(str(failure), kind=kind, attempts=attempts)
                transient.__cause__ = failure
                return Failure(_terminal(task, transient, kind, attempts))
            return Failure(_terminal(task, failure, kind, attempts))

    def _store(
        self, task: UploadTask, body: dict[str, Any], attempts: int
    ) -> Result[CacheEntry, UploadError]:
        media_id = body.get("media_id")
        url = body.get("url")
        if self._target is UploadTarget.MATERIAL_IMAGE:
            if not isinstance(media_id, str) or not media_id:
                return Failure(
                    TerminalUploadError(
                        f"Material upload of {task.reference} returned no media_id",
                        attempts=attempts,
                    )
                )
        elif not isinstance(url, str) or not url:
            return Failure(
                TerminalUploadError(
                    f"Image upload of {task.reference} returned no url",
                    attempts=attempts,
                )
            )
        entry = CacheEntry(
            content_id=task.content_id,
            remote_url=url if isinstance(url, str) else "",
            remote_media_id=media_id if isinstance(media_id, str) else None,
        )
        stored = self._cache.insert_if_absent(task.content_id, entry)
        if stored is not entry:
            logger.debug(
                "Content %s already uploaded concurrently; using the cached entry",
                task.content_id[:12],
            )
        return Success(stored)


def _terminal(
    task: UploadTask, cause: Exception, kind: FailureKind, attempts: int
) -> TerminalUploadError:
    error = TerminalUploadError(
        f"Upload of {task.reference} failed after {attempts} attempt(s): {cause}",
        kind=kind,
        attempts=attempts,
    )
    error.__cause__ = cause
    return error


def _upload_filename(task: UploadTask) -> str:
    """Stable file name for the multipart body, keeping a usable extension."""
    suffix = PurePosixPath(task.reference.replace("\\", "/")).suffix.lower()
    if not suffix:
        suffix = next(
            (ext for magic, ext in _IMAGE_SIGNATURES if task.data.startswith(magic)),
            ".png",
        )
    return f"{task.content_id[:16]}{suffix}"
