"""
Idempotency cache for settlements
Remembers recently submitted payloads so a retried /settle returns the same hash
"""

import hashlib
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import structlog

logger = structlog.get_logger()

DEFAULT_TTL_SECONDS = 300


@dataclass(frozen=True)
class CacheEntry:
    transaction_hash: str
    submitted_at: float
    network: str
    payer: Optional[str] = None


def fingerprint(transaction_bytes: bytes, signature_bytes: bytes, network: str) -> str:
    """SHA-256 over length-prefixed transaction, signature and network"""
    digest = hashlib.sha256()
    for part in (transaction_bytes, signature_bytes, network.encode("utf-8")):
        digest.update(len(part).to_bytes(8, "big"))
        digest.update(part)
    return digest.hexdigest()


class IdempotencyCache:
    """
    In-memory TTL map of payload fingerprint -> CacheEntry.

    Entries older than ttl_seconds are never returned; sweep() reclaims them.
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def _expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.submitted_at >= self.ttl_seconds

    def get(self, key: str) -> Optional[CacheEntry]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._expired(entry, now):
                del self._entries[key]
                return None
            return entry

    def put(self, key: str, transaction_hash: str, network: str, payer: Optional[str] = None) -> CacheEntry:
        entry = CacheEntry(
            transaction_hash=transaction_hash,
            submitted_at=self._clock(),
            network=network,
            payer=payer,
        )
        with self._lock:
            self._entries[key] = entry
        return entry

    def sweep(self) -> int:
        """Drop expired entries, returning how many were removed"""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if self._expired(entry, now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("idempotency_cache_swept", removed=len(expired), remaining=len(self))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
