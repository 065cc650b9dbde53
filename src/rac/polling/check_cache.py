"""Per-user check cache.

Remembers when each user was last checked and the progress signature seen
at that time, so unchanged users produce no downstream work. Purely
in-memory: a restart means every user is re-checked on the first tick.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class CheckCacheEntry:
    checked_at: datetime
    signature: str


class CheckCache:
    """username → (last check timestamp, last seen progress signature)."""

    def __init__(self) -> None:
        self._entries: dict[str, CheckCacheEntry] = {}
        self._hits = 0
        self._misses = 0

    def get(self, username: str) -> CheckCacheEntry | None:
        return self._entries.get(username.lower())

    def last_checked(self, username: str) -> datetime | None:
        entry = self.get(username)
        return entry.checked_at if entry else None

    def record(self, username: str, now: datetime, signature: str) -> bool:
        """Store the latest check. Returns True if the signature changed."""
        key = username.lower()
        previous = self._entries.get(key)
        self._entries[key] = CheckCacheEntry(checked_at=now, signature=signature)
        if previous is not None and previous.signature == signature:
            self._hits += 1
            return False
        self._misses += 1
        return True

    def forget(self, username: str) -> None:
        """Drop one user so the next tick treats them as unseen."""
        self._entries.pop(username.lower(), None)

    def clear(self) -> None:
        """Forget every user; the next tick treats all of them as unseen."""
        self._entries = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, username: object) -> bool:
        return isinstance(username, str) and username.lower() in self._entries

    @property
    def stats(self) -> dict[str, int]:
        return {
            "tracked": len(self._entries),
            "unchanged_hits": self._hits,
            "changed": self._misses,
        }
