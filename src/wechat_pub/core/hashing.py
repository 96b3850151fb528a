"""Content addressing for uploaded resources."""

from __future__ import annotations

import hashlib

from wechat_pub.core.types import ContentId


def content_id(data: bytes) -> ContentId:
    """Return the SHA-256 hex digest of ``data``.

    The identifier depends only on the bytes, never on file name or location,
    so identical images referenced from different paths share one upload.
    """
    return ContentId(hashlib.sha256(data).hexdigest())
