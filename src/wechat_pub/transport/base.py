"""Collaborator protocols for the HTTP transport.

The credential cache and the upload pipeline only see these shapes. A
transport performs one request and reports a typed outcome; it never raises
for HTTP or WeChat-level errors and never retries on its own.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
import mimetypes
from typing import TYPE_CHECKING, Any, Protocol, TypeAlias, runtime_checkable

from wechat_pub.exceptions import FailureKind, TransportError

if TYPE_CHECKING:
    from wechat_pub.core.types import Credential, Result


class TransportFailure(TransportError):
    """Typed failure of a single remote call."""

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        *,
        errcode: int | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.errcode = errcode
        self.status_code = status_code

    def __repr__(self) -> str:
        return (
            f"TransportFailure(kind={self.kind.value!r}, errcode={self.errcode!r}, "
            f"message={str(self)!r})"
        )


@dataclass(frozen=True, slots=True)
class IssuedCredential:
    """Raw answer of the credential-issuing endpoint."""

    value: str = field(repr=False)
    lifetime_seconds: float


@dataclass(frozen=True, slots=True)
class MediaPayload:
    """Binary body sent as a multipart ``media`` field."""

    filename: str
    data: bytes = field(repr=False)
    content_type: str | None = None

    @property
    def mime_type(self) -> str:
        if self.content_type:
            return self.content_type
        guessed, _ = mimetypes.guess_type(self.filename)
        return guessed or "application/octet-stream"


Payload: TypeAlias = Mapping[str, Any] | MediaPayload


@runtime_checkable
class Transport(Protocol):
    """Performs authorized calls against the WeChat API."""

    async def call(
        self,
        endpoint: str,
        credential: Credential,
        payload: Payload | None = None,
        *,
        method: str = "POST",
        params: Mapping[str, str] | None = None,
    ) -> Result[dict[str, Any], TransportFailure]:
        """Perform one request and return the decoded JSON body or a failure."""
        ...


@runtime_checkable
class CredentialIssuer(Protocol):
    """Issues access tokens from app credentials."""

    async def issue_credential(
        self, app_id: str, app_secret: str
    ) -> Result[IssuedCredential, TransportFailure]:
        """Request a fresh token and its lifetime in seconds."""
        ...
