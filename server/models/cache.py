"""Cache entry model shared by the Redis and in-memory cache backends.

Entries carry their own insertion time and TTL so that expiry can be checked
on read independently of the backend's native expiry.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict


def now_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass
class CacheEntry:
    """Generic cached value with a fixed time-to-live.

    Serialized form (Redis):
        {"payload": <any JSON>, "storedAt": <epoch ms>, "ttlMillis": <ms>}
    """

    payload: Any
    ttl_millis: int
    stored_at: int = field(default_factory=now_millis)

    @property
    def expires_at(self) -> int:
        return self.stored_at + self.ttl_millis

    def is_expired(self, now: int) -> bool:
        """An entry is expired from the instant ``stored_at + ttl_millis`` onwards."""
        return now - self.stored_at >= self.ttl_millis

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "payload": self.payload,
            "storedAt": self.stored_at,
            "ttlMillis": self.ttl_millis,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        """Create from dict. Raises KeyError/TypeError on malformed data."""
        return cls(
            payload=data["payload"],
            stored_at=int(data["storedAt"]),
            ttl_millis=int(data["ttlMillis"]),
        )


@dataclass
class CacheStats:
    """Hit/miss accounting for CacheService.get()."""

    hits: int = 0
    misses: int = 0

    def record(self, hit: bool) -> None:
        if hit:
            self.hits += 1
        else:
            self.misses += 1

    @property
    def hit_rate(self) -> float:
        """Hit rate as a percentage (0 when nothing has been read yet)."""
        total = self.hits + self.misses
        return (self.hits / total) * 100 if total else 0.0

    def reset(self) -> None:
        self.hits = 0
        self.misses = 0
