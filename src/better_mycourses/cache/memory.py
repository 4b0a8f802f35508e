"""
Response Cache - In-process TTL cache with content fingerprints.
================================================================

Values are stored with an absolute expiry taken from an injectable clock.
Expired entries read as absent; a background sweeper purges them
periodically but correctness never depends on it.

``with_cache`` is the single entry point used by the dashboard service:
it returns the stored value on a hit, or runs the producer on a miss and
stores its result. Producer errors propagate and leave the cache untouched.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterator, Optional, TypeVar

from better_mycourses.cache.keys import CacheKeys, session_namespace
from better_mycourses.shared.logging import get_logger
from better_mycourses.shared.utils import canonical_json, compute_hash

logger = get_logger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]


class CacheTTL:
    """Standard time-to-live values in seconds."""

    SHORT = 60
    MEDIUM = 300
    LONG = 900
    VERY_LONG = 3600


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


@dataclass(frozen=True)
class CachedResult(Generic[T]):
    """Outcome of ``with_cache``."""

    value: T
    fingerprint: str
    was_hit: bool


def fingerprint(value: Any) -> str:
    """Quoted short digest of the canonical JSON form, usable as an ETag."""
    return '"' + compute_hash(canonical_json(value))[:16] + '"'


class ResponseCache:
    """
    Thread-safe in-memory cache keyed by namespaced strings.

    Keys passed in are stored under ``<prefix>:<key>``. All operations take
    the same re-entrant lock, so single get/set/delete calls are atomic.

    Example:
        >>> cache = ResponseCache()
        >>> result = cache.with_cache("user:abc:profile", 900, load_profile)
        >>> result.was_hit
        False
    """

    def __init__(
        self,
        clock: Clock = time.monotonic,
        sweep_interval: float = 300.0,
        prefix: str = "mycourses",
    ):
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._sweep_interval = sweep_interval
        self._timer: Optional[threading.Timer] = None
        self._stopped = threading.Event()
        self.prefix = prefix

    def _full_key(self, key: str) -> str:
        return f"{self.prefix}:{key}" if self.prefix else key

    def _lookup(self, key: str) -> Optional[CacheEntry]:
        full_key = self._full_key(key)
        with self._lock:
            entry = self._entries.get(full_key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[full_key]
                return None
            return entry

    # ─────────────────────────────────────────────────────────────────────────
    # Basic Operations
    # ─────────────────────────────────────────────────────────────────────────

    def get(self, key: str) -> Optional[Any]:
        entry = self._lookup(key)
        return entry.value if entry is not None else None

    def set(self, key: str, value: Any, ttl: float = CacheTTL.MEDIUM) -> None:
        with self._lock:
            self._entries[self._full_key(key)] = CacheEntry(value, self._clock() + ttl)

    def update(self, key: str, transform: Callable[[Any], Any]) -> bool:
        """
        Replace a live entry's value with ``transform(value)``, keeping its expiry.

        Returns False (and does nothing) when the key is absent or expired.
        """
        with self._lock:
            entry = self._lookup(key)
            if entry is None:
                return False
            self._entries[self._full_key(key)] = CacheEntry(transform(entry.value), entry.expires_at)
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(self._full_key(key), None) is not None

    def has(self, key: str) -> bool:
        return self._lookup(key) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> Iterator[str]:
        """Unexpired keys, without the prefix."""
        now = self._clock()
        strip = len(self.prefix) + 1 if self.prefix else 0
        with self._lock:
            snapshot = [k for k, e in self._entries.items() if not e.is_expired(now)]
        return iter(k[strip:] for k in snapshot)

    def delete_prefix(self, key_prefix: str) -> int:
        """Remove every entry whose key starts with ``key_prefix``."""
        full_prefix = self._full_key(key_prefix)
        with self._lock:
            doomed = [k for k in self._entries if k.startswith(full_prefix)]
            for k in doomed:
                del self._entries[k]
        return len(doomed)

    def __len__(self) -> int:
        now = self._clock()
        with self._lock:
            return sum(1 for e in self._entries.values() if not e.is_expired(now))

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def clear_session(self, moodle_session: str, cascade: bool = False) -> int:
        """
        Invalidate one session's entries (used on logout).

        Without ``cascade`` only the profile, course list and validation
        entries go; per-course and per-activity entries expire naturally.
        With ``cascade`` every entry in the session's namespace is removed.
        """
        if cascade:
            removed = sum(self.delete_prefix(p) for p in CacheKeys.namespace_prefixes(moodle_session))
        else:
            removed = sum(1 for key in CacheKeys.session_keys(moodle_session) if self.delete(key))
        logger.info(
            f"Cleared {removed} cache entries for session {session_namespace(moodle_session)}"
            f"{' (cascade)' if cascade else ''}"
        )
        return removed

    # ─────────────────────────────────────────────────────────────────────────
    # Memoization
    # ─────────────────────────────────────────────────────────────────────────

    def with_cache(self, key: str, ttl: float, producer: Callable[[], T]) -> CachedResult[T]:
        """
        Return the cached value for ``key`` or produce and store it.

        Args:
            key: Cache key (without prefix)
            ttl: Seconds the produced value stays valid
            producer: Called only on a miss

        Returns:
            CachedResult with the value, its fingerprint and the hit flag
        """
        entry = self._lookup(key)
        if entry is not None:
            logger.debug(f"Cache hit: {key}")
            return CachedResult(entry.value, fingerprint(entry.value), True)

        logger.debug(f"Cache miss: {key}")
        value = producer()
        self.set(key, value, ttl)
        return CachedResult(value, fingerprint(value), False)

    # ─────────────────────────────────────────────────────────────────────────
    # Expiry
    # ─────────────────────────────────────────────────────────────────────────

    def purge_expired(self) -> int:
        """Drop expired entries; returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for k in expired:
                del self._entries[k]
        if expired:
            logger.debug(f"Purged {len(expired)} expired cache entries")
        return len(expired)

    def _schedule(self) -> None:
        if self._stopped.is_set():
            return
        self._timer = threading.Timer(self._sweep_interval, self._sweep)
        self._timer.daemon = True
        self._timer.start()

    def _sweep(self) -> None:
        try:
            self.purge_expired()
        finally:
            self._schedule()

    def start_sweeper(self) -> None:
        """Start the periodic background purge (idempotent)."""
        with self._lock:
            if self._timer is not None and self._timer.is_alive():
                return
            self._stopped.clear()
            self._schedule()
        logger.debug(f"Cache sweeper started (every {self._sweep_interval}s)")

    def stop(self) -> None:
        """Stop the sweeper. Entries are kept."""
        self._stopped.set()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
