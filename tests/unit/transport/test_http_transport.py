"""WeChatHttpClient against an in-process httpx.MockTransport."""

import json
import logging

import httpx
import pytest

from wechat_pub.auth.token_cache import TokenCache
from wechat_pub.core.types import Credential, Failure, Success
from wechat_pub.exceptions import CredentialError, FailureKind
from wechat_pub.transport.base import (
    CredentialIssuer,
    MediaPayload,
    Transport,
)
from wechat_pub.transport.http import (
    WeChatHttpClient,
    classify_errcode,
    classify_status,
)

BASE = "https://api.test"
TOKEN = "ACCESS_TOKEN_VALUE_123456"


def _client(handler) -> tuple[WeChatHttpClient, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def _record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    http = httpx.AsyncClient(transport=httpx.MockTransport(_record))
    return WeChatHttpClient(base_url=BASE + "/", client=http), seen


def _credential() -> Credential:
    return Credential.issued(TOKEN, 7200, now=0)


@pytest.mark.unit
def test_client_satisfies_collaborator_protocols():
    client, _ = _client(lambda r: httpx.Response(200, json={}))
    assert isinstance(client, Transport)
    assert isinstance(client, CredentialIssuer)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_issue_credential_uses_client_credential_grant():
    client, seen = _client(
        lambda r: httpx.Response(200, json={"access_token": "T1", "expires_in": 7000})
    )

    result = await client.issue_credential("wxid", "sekret")

    assert isinstance(result, Success)
    assert result.value.value == "T1"
    assert result.value.lifetime_seconds == 7000
    request = seen[0]
    assert request.method == "GET"
    assert request.url.path == "/cgi-bin/token"
    assert request.url.params["grant_type"] == "client_credential"
    assert request.url.params["appid"] == "wxid"
    assert request.url.params["secret"] == "sekret"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_issue_credential_reports_errcode():
    client, _ = _client(
        lambda r: httpx.Response(200, json={"errcode": 40125, "errmsg": "invalid appsecret"})
    )

    result = await client.issue_credential("wxid", "bad")

    assert isinstance(result, Failure)
    assert result.error.errcode == 40125
    assert result.error.kind is FailureKind.UNKNOWN


@pytest.mark.unit
@pytest.mark.asyncio
async def test_issue_credential_without_token_is_failure():
    client, _ = _client(lambda r: httpx.Response(200, json={"expires_in": 7200}))
    result = await client.issue_credential("wxid", "s")
    assert isinstance(result, Failure)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_media_payload_is_sent_as_multipart_with_token_query():
    client, seen = _client(
        lambda r: httpx.Response(200, json={"url": "http://mmbiz.qpic.cn/x"})
    )

    result = await client.call(
        "/cgi-bin/media/uploadimg",
        _credential(),
        MediaPayload(filename="abc.png", data=b"\x89PNGdata"),
    )

    assert isinstance(result, Success)
    assert result.value["url"] == "http://mmbiz.qpic.cn/x"
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url).startswith(BASE + "/cgi-bin/media/uploadimg?")
    assert request.url.params["access_token"] == TOKEN
    assert request.headers["content-type"].startswith("multipart/form-data")
    body = request.read()
    assert b'name="media"' in body
    assert b'filename="abc.png"' in body
    assert b"image/png" in body


@pytest.mark.unit
@pytest.mark.asyncio
async def test_json_payload_keeps_unicode_and_merges_params():
    client, seen = _client(lambda r: httpx.Response(200, json={"media_id": "M1"}))

    await client.call(
        "/cgi-bin/material/add_material",
        _credential(),
        {"title": "标题"},
        params={"type": "image"},
    )

    request = seen[0]
    assert request.url.params["type"] == "image"
    assert "标题" in request.read().decode("utf-8")
    assert json.loads(request.read()) == {"title": "标题"}
    assert request.headers["content-type"].startswith("application/json")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_without_payload_sends_no_body():
    client, seen = _client(lambda r: httpx.Response(200, json={"total_count": 3}))

    result = await client.call("/cgi-bin/draft/count", _credential(), method="GET")

    assert result == Success({"total_count": 3})
    assert seen[0].method == "GET"
    assert seen[0].read() == b""


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("errcode", "kind"),
    [
        (42001, FailureKind.CREDENTIAL_EXPIRED),
        (40001, FailureKind.CREDENTIAL_EXPIRED),
        (45009, FailureKind.RATE_LIMITED),
        (-1, FailureKind.RATE_LIMITED),
        (40007, FailureKind.NOT_FOUND),
        (40005, FailureKind.MALFORMED_INPUT),
        (99999, FailureKind.UNKNOWN),
    ],
)
async def test_errcode_responses_become_classified_failures(errcode, kind):
    client, _ = _client(
        lambda r: httpx.Response(200, json={"errcode": errcode, "errmsg": "msg"})
    )

    result = await client.call("/cgi-bin/x", _credential(), {})

    assert isinstance(result, Failure)
    assert result.error.kind is kind
    assert result.error.errcode == errcode


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "kind"),
    [
        (429, FailureKind.RATE_LIMITED),
        (408, FailureKind.TRANSPORT),
        (502, FailureKind.TRANSPORT),
        (503, FailureKind.TRANSPORT),
        (401, FailureKind.CREDENTIAL_EXPIRED),
        (404, FailureKind.NOT_FOUND),
        (413, FailureKind.MALFORMED_INPUT),
    ],
)
async def test_http_errors_become_classified_failures(status, kind):
    client, _ = _client(lambda r: httpx.Response(status, text="nope"))

    result = await client.call("/cgi-bin/x", _credential(), {})

    assert isinstance(result, Failure)
    assert result.error.kind is kind
    assert result.error.status_code == status


@pytest.mark.unit
@pytest.mark.asyncio
async def test_network_errors_are_transient_failures():
    def _boom(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client, _ = _client(_boom)

    result = await client.call("/cgi-bin/x", _credential(), {})

    assert isinstance(result, Failure)
    assert result.error.kind is FailureKind.TRANSPORT
    assert result.error.kind.is_transient


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [httpx.DecodingError("bad gzip"), httpx.TooManyRedirects("redirect loop")],
)
async def test_other_request_errors_are_transient_failures(error):
    def _boom(request: httpx.Request) -> httpx.Response:
        raise error

    client, _ = _client(_boom)

    result = await client.call("/cgi-bin/x", _credential(), {})

    assert isinstance(result, Failure)
    assert result.error.kind is FailureKind.TRANSPORT
    assert type(error).__name__ in str(result.error)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_undecodable_token_response_surfaces_as_credential_error():
    def _bad_gzip(request: httpx.Request) -> httpx.Response:
        raise httpx.DecodingError("bad gzip", request=request)

    client, _ = _client(_bad_gzip)
    tokens = TokenCache(client, "wx0123456789abcdef", "secret")

    with pytest.raises(CredentialError, match="DecodingError"):
        await tokens.get_valid_credential()
    assert tokens.current is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_undecodable_body_is_unknown_failure():
    client, _ = _client(lambda r: httpx.Response(200, content=b"<html>gateway</html>"))
    result = await client.call("/cgi-bin/x", _credential(), {})
    assert isinstance(result, Failure)
    assert result.error.kind is FailureKind.UNKNOWN


@pytest.mark.unit
@pytest.mark.asyncio
async def test_access_token_never_logged(caplog):
    client, _ = _client(
        lambda r: httpx.Response(200, json={"errcode": 42001, "errmsg": "access_token expired"})
    )

    with caplog.at_level(logging.DEBUG, logger="wechat_pub"):
        await client.call("/cgi-bin/media/uploadimg", _credential(), {})

    ours = [r.getMessage() for r in caplog.records if r.name.startswith("wechat_pub")]
    assert ours
    assert all(TOKEN not in message for message in ours)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_external_client_is_not_closed():
    http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    async with WeChatHttpClient(client=http):
        pass
    assert not http.is_closed
    await http.aclose()


@pytest.mark.unit
def test_classifiers_cover_unlisted_codes():
    assert classify_errcode(0) is FailureKind.UNKNOWN
    assert classify_errcode(53500) is FailureKind.NOT_FOUND
    assert classify_status(500) is FailureKind.TRANSPORT
    assert classify_status(400) is FailureKind.MALFORMED_INPUT


@pytest.mark.unit
def test_media_payload_mime_type():
    assert MediaPayload("a.jpg", b"").mime_type == "image/jpeg"
    assert MediaPayload("a", b"").mime_type == "application/octet-stream"
    assert MediaPayload("a", b"", content_type="image/gif").mime_type == "image/gif"
    assert "secret-bytes" not in repr(MediaPayload("a.png", b"secret-bytes"))
