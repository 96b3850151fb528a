"""In-memory registry of uploaded content.

The registry is owned by the client and shared by every upload task it runs.
It is deliberately simple: it never talks to the network and never evicts.
Remote content is append-only, so identical bytes always resolve to the same
remote artifact for the lifetime of the process.
"""

from __future__ import annotations

import threading
from typing import Protocol

from wechat_pub.core.types import CacheEntry, ContentId


class UploadCache:
    """Maps content identifiers to previously obtained remote artifacts.

    Entries are inserted once and then only read. A single coarse lock makes
    ``insert_if_absent`` atomic for callers on other threads; within one event
    loop the operations never suspend.
    """

    def __init__(self) -> None:
        """Initialize an empty process-local mapping."""
        self._entries: dict[ContentId, CacheEntry] = {}
        self._lock = threading.Lock()

    def lookup(self, content_id: ContentId) -> CacheEntry | None:
        """Return the entry for ``content_id``, if one was stored."""
        return self._entries.get(content_id)

    def insert_if_absent(self, content_id: ContentId, entry: CacheEntry) -> CacheEntry:
        """Store ``entry`` unless one already exists; return the stored entry.

        When two uploads of identical content race, the first to complete
        wins and the second caller receives the winner's entry.
        """
        with self._lock:
            existing = self._entries.get(content_id)
            if existing is not None:
                return existing
            self._entries[content_id] = entry
            return entry

    def __contains__(self, content_id: object) -> bool:
        return content_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class ContentRegistry(Protocol):
    """Surface of `UploadCache` used by the scheduler."""

    def lookup(self, content_id: ContentId) -> CacheEntry | None:
        """Return the stored entry, if present."""
        ...

    def insert_if_absent(self, content_id: ContentId, entry: CacheEntry) -> CacheEntry:
        """Store unless present; return the authoritative entry."""
        ...
