"""Authorized calls for the non-upload endpoints."""

from __future__ import annotations

from collections.abc import Mapping
import logging
from typing import TYPE_CHECKING, Any

from wechat_pub.core.types import Failure
from wechat_pub.exceptions import FailureKind, WeChatAPIError
from wechat_pub.telemetry import TelemetryContext, TelemetryContextProtocol

if TYPE_CHECKING:
    from wechat_pub.auth.token_cache import TokenCache
    from wechat_pub.transport.base import Payload, Transport

log = logging.getLogger(__name__)


class ApiService:
    """Base for services that call a JSON endpoint with the shared token.

    A call rejected for an expired or invalid token is repeated once with a
    freshly issued token; any other failure is raised as `WeChatAPIError`.
    """

    def __init__(
        self,
        transport: Transport,
        token_cache: TokenCache,
        *,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        self._transport = transport
        self._token_cache = token_cache
        self._telemetry: TelemetryContextProtocol = telemetry or TelemetryContext()

    async def _call(
        self,
        endpoint: str,
        payload: Payload | None = None,
        *,
        method: str = "POST",
        params: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        credential = await self._token_cache.get_valid_credential()
        with self._telemetry("api.call", endpoint=endpoint):
            result = await self._transport.call(
                endpoint, credential, payload, method=method, params=params
            )
            if (
                isinstance(result, Failure)
                and result.error.kind is FailureKind.CREDENTIAL_EXPIRED
            ):
                log.info("Access token rejected by %s; refreshing once", endpoint)
                credential = await self._token_cache.force_refresh(credential)
                result = await self._transport.call(
                    endpoint, credential, payload, method=method, params=params
                )

        if isinstance(result, Failure):
            failure = result.error
            errcode = getattr(failure, "errcode", None)
            raise WeChatAPIError(
                f"{endpoint} failed: {failure}",
                errcode=errcode,
                errmsg=str(failure),
                kind=failure.kind,
            ) from failure
        return result.value
