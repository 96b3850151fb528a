"""Access token cache with single-flight refresh.

Readers take the current credential without locking. When it is missing or
inside the refresh margin, the first caller starts a refresh task and every
other caller awaits that same task, so one staleness episode costs exactly one
call to the issuing endpoint.

The refresh task belongs to the cache rather than to the caller that started
it. Waiters await it through ``asyncio.shield``: a cancelled waiter (for
example one hitting an overall timeout) leaves the refresh running, and its
result is still installed for everyone else.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import logging
import time

from wechat_pub.core.types import Credential, Failure, TokenInfo
from wechat_pub.exceptions import CredentialError
from wechat_pub.telemetry import TelemetryContext, TelemetryContextProtocol
from wechat_pub.transport.base import CredentialIssuer

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_MARGIN = 300.0


class TokenCache:
    """Holds the process-wide access token for one app."""

    def __init__(
        self,
        issuer: CredentialIssuer,
        app_id: str,
        app_secret: str,
        *,
        refresh_margin: float = DEFAULT_REFRESH_MARGIN,
        clock: Callable[[], float] = time.time,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        if refresh_margin < 0:
            raise ValueError("refresh_margin must be >= 0")
        self._issuer = issuer
        self._app_id = app_id
        self._app_secret = app_secret
        self._margin = float(refresh_margin)
        self._clock = clock
        self._telemetry: TelemetryContextProtocol = telemetry or TelemetryContext()
        self._current: Credential | None = None
        self._inflight: asyncio.Task[Credential] | None = None
        self._refresh_count = 0

    @property
    def current(self) -> Credential | None:
        """The installed credential, fresh or not."""
        return self._current

    @property
    def refresh_margin(self) -> float:
        return self._margin

    @property
    def refresh_count(self) -> int:
        """Number of refresh calls issued so far."""
        return self._refresh_count

    async def get_valid_credential(self) -> Credential:
        """Return a credential valid for at least the refresh margin.

        Raises:
            CredentialError: If the refresh this call depended on failed.
        """
        current = self._current
        if current is not None and current.is_fresh(self._clock(), self._margin):
            return current
        return await self._join_refresh()

    async def force_refresh(self, stale: Credential | None = None) -> Credential:
        """Fetch and install a new credential regardless of expiry.

        Args:
            stale: The credential the caller saw rejected. If a different
                credential has been installed since, it is returned without
                another network call.
        """
        self._telemetry.count("auth.force_refresh")
        current = self._current
        if stale is not None and current is not None and current is not stale:
            return current
        return await self._join_refresh()

    def info(self) -> TokenInfo | None:
        """Debug view of the current credential, if any."""
        current = self._current
        if current is None:
            return None
        now = self._clock()
        return TokenInfo(
            token_prefix=current.value[:8] + "...",
            obtained_at=current.obtained_at,
            expires_at=current.expires_at,
            remaining_seconds=current.remaining(now),
            is_fresh=current.is_fresh(now, self._margin),
        )

    def close(self) -> None:
        """Cancel any in-flight refresh and discard the current credential."""
        task = self._inflight
        if task is not None and not task.done():
            task.cancel()
        self._inflight = None
        self._current = None

    # --- Internal helpers ---

    async def _join_refresh(self) -> Credential:
        task = self._inflight
        if task is None or task.done():
            task = asyncio.get_running_loop().create_task(self._refresh())
            task.add_done_callback(self._on_refresh_done)
            self._inflight = task
        return await asyncio.shield(task)

    def _on_refresh_done(self, task: asyncio.Task[Credential]) -> None:
        if self._inflight is task:
            self._inflight = None
        # Mark the exception retrieved when every waiter was cancelled.
        if not task.cancelled():
            task.exception()

    async def _refresh(self) -> Credential:
        self._refresh_count += 1
        with self._telemetry("auth.refresh"):
            try:
                result = await self._issuer.issue_credential(
                    self._app_id, self._app_secret
                )
            except Exception as e:
                logger.warning("Access token refresh raised %s", type(e).__name__)
                raise CredentialError(f"Failed to obtain access token: {e}") from e
        if isinstance(result, Failure):
            failure = result.error
            logger.warning("Access token refresh failed: %s", failure)
            raise CredentialError(
                f"Failed to obtain access token: {failure}",
                errcode=getattr(failure, "errcode", None),
            ) from failure

        issued = result.value
        credential = Credential.issued(
            issued.value, issued.lifetime_seconds, now=self._clock()
        )
        if issued.lifetime_seconds < self._margin:
            logger.warning(
                "Issued access token lives %.0fs, shorter than the %.0fs refresh margin",
                issued.lifetime_seconds,
                self._margin,
            )
        self._current = credential
        logger.info(
            "Access token refreshed; valid for %.0fs", issued.lifetime_seconds
        )
        return credential
