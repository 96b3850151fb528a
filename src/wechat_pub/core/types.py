"""Core data types shared by the credential cache and the upload pipeline.

Every value here is immutable once created. A refreshed credential or a newly
uploaded entry is always a new instance installed in place of the old one;
nothing is mutated after it has been published to other tasks.
"""

from __future__ import annotations

import dataclasses
import typing

if typing.TYPE_CHECKING:
    from wechat_pub.exceptions import UploadError

# --- Result Monad for Robust Error Handling ---
# Per-item failures travel as values so a bulk operation can return a mix of
# successes and failures without raising on the first one.

TSuccess = typing.TypeVar("TSuccess")
TFailure = typing.TypeVar("TFailure", bound=Exception)


@dataclasses.dataclass(frozen=True, slots=True)
class Success(typing.Generic[TSuccess]):
    """A successful result."""

    value: TSuccess


@dataclasses.dataclass(frozen=True, slots=True)
class Failure(typing.Generic[TFailure]):
    """A failed result, containing the error."""

    error: TFailure


Result = Success[TSuccess] | Failure[TFailure]

ContentId = typing.NewType("ContentId", str)

OutcomeSource = typing.Literal["uploaded", "cache", "duplicate"]


def _require(*, condition: bool, message: str, field_name: str) -> None:
    if not condition:
        raise ValueError(f"{field_name}: {message}")


@dataclasses.dataclass(frozen=True, slots=True)
class Credential:
    """An access token together with its validity window (epoch seconds)."""

    value: str = dataclasses.field(repr=False)
    obtained_at: float
    expires_at: float

    def __post_init__(self) -> None:
        """Validate invariants for type safety."""
        _require(
            condition=isinstance(self.value, str) and self.value != "",
            message="must be a non-empty str",
            field_name="value",
        )
        _require(
            condition=self.expires_at >= self.obtained_at,
            message="must not precede obtained_at",
            field_name="expires_at",
        )

    @classmethod
    def issued(cls, value: str, lifetime_seconds: float, *, now: float) -> Credential:
        """Build a credential from an issuing call's reported lifetime."""
        return cls(value=value, obtained_at=now, expires_at=now + lifetime_seconds)

    def remaining(self, now: float) -> float:
        """Seconds of validity left at ``now`` (negative once expired)."""
        return self.expires_at - now

    def is_fresh(self, now: float, margin: float) -> bool:
        """True when the credential stays valid for at least ``margin`` seconds."""
        return self.remaining(now) >= margin


@dataclasses.dataclass(frozen=True, slots=True)
class TokenInfo:
    """Debug view of the current credential; never exposes the full token."""

    token_prefix: str
    obtained_at: float
    expires_at: float
    remaining_seconds: float
    is_fresh: bool


@dataclasses.dataclass(frozen=True, slots=True)
class CacheEntry:
    """Remote artifact obtained for one distinct content."""

    content_id: ContentId
    remote_url: str
    remote_media_id: str | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class UploadTask:
    """One caller-submitted resource awaiting resolution."""

    index: int
    reference: str
    content_id: ContentId
    data: bytes = dataclasses.field(repr=False)


@dataclasses.dataclass(frozen=True, slots=True)
class UploadOutcome:
    """Final state of an `UploadTask`.

    ``source`` tells how a success was obtained: ``"uploaded"`` for the task
    that performed the network call, ``"cache"`` for a hit on a previously
    uploaded content, ``"duplicate"`` for a task that shared an upload with an
    earlier task of the same batch.
    """

    reference: str
    content_id: ContentId
    result: Result[CacheEntry, UploadError]
    source: OutcomeSource = "uploaded"

    @property
    def ok(self) -> bool:
        return isinstance(self.result, Success)

    @property
    def url(self) -> str | None:
        if isinstance(self.result, Success):
            return self.result.value.remote_url
        return None

    @property
    def media_id(self) -> str | None:
        if isinstance(self.result, Success):
            return self.result.value.remote_media_id
        return None

    @property
    def error(self) -> UploadError | None:
        if isinstance(self.result, Failure):
            return self.result.error
        return None
