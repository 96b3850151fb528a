"""Process-wide shared state owned by one client instance."""

from __future__ import annotations

from dataclasses import dataclass, field

from wechat_pub.auth.token_cache import TokenCache
from wechat_pub.pipeline.registries import UploadCache


@dataclass(slots=True)
class SharedState:
    """Caches shared by every component built for one client.

    The client constructs this once and passes it to the schedulers and
    services it builds, so nothing here is module-global. Each upload target
    keeps its own registry because the same bytes yield different artifacts
    as an inline image and as permanent material.
    """

    token_cache: TokenCache
    image_cache: UploadCache = field(default_factory=UploadCache)
    material_cache: UploadCache = field(default_factory=UploadCache)

    def close(self) -> None:
        """Release the credential; upload registries are simply dropped."""
        self.token_cache.close()
