"""HTTP transport for the WeChat Official Account API.

Wraps an ``httpx.AsyncClient`` and turns every response into a typed
``Success``/``Failure``:

- WeChat reports errors as HTTP 200 with a non-zero ``errcode``; those codes
  are classified into `FailureKind` values.
- HTTP 408, 429 and 5xx, and request errors raised by httpx (connection,
  timeout, decoding, redirects), are transient.
- The access token travels as the ``access_token`` query parameter and is
  never written to logs.

Retries are not performed here; the callers own retry policy.
"""

from __future__ import annotations

from collections.abc import Mapping
import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from wechat_pub.core.types import Failure, Result, Success
from wechat_pub.exceptions import FailureKind
from wechat_pub.transport.base import (
    IssuedCredential,
    MediaPayload,
    Payload,
    TransportFailure,
)

if TYPE_CHECKING:
    from wechat_pub.core.types import Credential

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.weixin.qq.com"
DEFAULT_TIMEOUT = 30.0
TOKEN_ENDPOINT = "/cgi-bin/token"

_CREDENTIAL_ERRCODES = frozenset({40001, 40014, 42001, 42007})
_RATE_LIMIT_ERRCODES = frozenset({-1, 45009, 45011})
_NOT_FOUND_ERRCODES = frozenset({40007, 46001, 53500})
_MALFORMED_ERRCODES = frozenset(
    {40004, 40005, 40006, 40009, 40113, 41005, 44001, 44004, 45001, 45002}
)


def classify_errcode(errcode: int) -> FailureKind:
    """Map a WeChat ``errcode`` to a failure kind."""
    if errcode in _CREDENTIAL_ERRCODES:
        return FailureKind.CREDENTIAL_EXPIRED
    if errcode in _RATE_LIMIT_ERRCODES:
        return FailureKind.RATE_LIMITED
    if errcode in _NOT_FOUND_ERRCODES:
        return FailureKind.NOT_FOUND
    if errcode in _MALFORMED_ERRCODES:
        return FailureKind.MALFORMED_INPUT
    return FailureKind.UNKNOWN


def classify_status(status_code: int) -> FailureKind:
    """Map a non-2xx HTTP status to a failure kind."""
    if status_code == 429:
        return FailureKind.RATE_LIMITED
    if status_code == 408 or status_code >= 500:
        return FailureKind.TRANSPORT
    if status_code == 401:
        return FailureKind.CREDENTIAL_EXPIRED
    if status_code == 404:
        return FailureKind.NOT_FOUND
    return FailureKind.MALFORMED_INPUT


class WeChatHttpClient:
    """Transport and credential issuer backed by httpx."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            base_url: API origin; endpoints are joined onto it.
            timeout: Per-request timeout in seconds.
            client: Optional externally managed client. When omitted, one is
                created and closed by `aclose`.
        """
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> WeChatHttpClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def issue_credential(
        self, app_id: str, app_secret: str
    ) -> Result[IssuedCredential, TransportFailure]:
        """Request an access token with the client-credential grant."""
        params = {
            "grant_type": "client_credential",
            "appid": app_id,
            "secret": app_secret,
        }
        outcome = await self._send("GET", TOKEN_ENDPOINT, params=params)
        if isinstance(outcome, Failure):
            return outcome
        body = outcome.value
        token = body.get("access_token")
        if not isinstance(token, str) or not token:
            return Failure(
                TransportFailure(
                    FailureKind.UNKNOWN, "Token response has no access_token"
                )
            )
        try:
            lifetime = float(body.get("expires_in", 7200))
        except (TypeError, ValueError):
            lifetime = 7200.0
        return Success(IssuedCredential(value=token, lifetime_seconds=lifetime))

    async def call(
        self,
        endpoint: str,
        credential: Credential,
        payload: Payload | None = None,
        *,
        method: str = "POST",
        params: Mapping[str, str] | None = None,
    ) -> Result[dict[str, Any], TransportFailure]:
        """Perform one authorized request against ``endpoint``."""
        query = {"access_token": credential.value, **(params or {})}
        if isinstance(payload, MediaPayload):
            files = {"media": (payload.filename, payload.data, payload.mime_type)}
            return await self._send(method, endpoint, params=query, files=files)
        if payload is not None:
            body = json.dumps(dict(payload), ensure_ascii=False).encode("utf-8")
            return await self._send(method, endpoint, params=query, content=body)
        return await self._send(method, endpoint, params=query)

    # --- Internal helpers ---

    async def _send(
        self,
        method: str,
        endpoint: str,
        *,
        params: Mapping[str, str],
        content: bytes | None = None,
        files: dict[str, tuple[str, bytes, str]] | None = None,
    ) -> Result[dict[str, Any], TransportFailure]:
        headers = (
            {"Content-Type": "application/json; charset=utf-8"}
            if content is not None
            else None
        )
        try:
            response = await self._client.request(
                method,
                self._base_url + endpoint,
                params=params,
                content=content,
                files=files,
                headers=headers,
            )
        except httpx.RequestError as e:
            logger.warning("%s %s failed: %s", method, endpoint, type(e).__name__)
            return Failure(
                TransportFailure(FailureKind.TRANSPORT, f"{type(e).__name__}: {e}")
            )
        return self._process_response(method, endpoint, response)

    def _process_response(
        self, method: str, endpoint: str, response: httpx.Response
    ) -> Result[dict[str, Any], TransportFailure]:
        status = response.status_code
        if status >= 400:
            kind = classify_status(status)
            logger.warning("%s %s returned HTTP %d", method, endpoint, status)
            return Failure(
                TransportFailure(kind, f"HTTP {status}", status_code=status)
            )

        try:
            body = json.loads(response.content.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("%s %s returned an undecodable body", method, endpoint)
            return Failure(
                TransportFailure(
                    FailureKind.UNKNOWN,
                    f"Invalid JSON response: {e}",
                    status_code=status,
                )
            )
        if not isinstance(body, dict):
            return Failure(
                TransportFailure(
                    FailureKind.UNKNOWN, "Response is not a JSON object", status_code=status
                )
            )

        errcode = body.get("errcode", 0)
        if isinstance(errcode, int) and errcode != 0:
            errmsg = str(body.get("errmsg", ""))
            kind = classify_errcode(errcode)
            logger.warning(
                "%s %s returned errcode %d (%s): %s",
                method,
                endpoint,
                errcode,
                kind.value,
                errmsg,
            )
            return Failure(
                TransportFailure(
                    kind,
                    f"WeChat error {errcode}: {errmsg}",
                    errcode=errcode,
                    status_code=status,
                )
            )

        logger.debug("%s %s succeeded", method, endpoint)
        return Success(body)
