"""
Cache Module - Session-namespaced response cache.
=================================================

- memory: Thread-safe TTL cache with fingerprints and a background sweeper
- keys: Hierarchical key derivation per session and entity
"""

from better_mycourses.cache.keys import CacheKeys, session_namespace
from better_mycourses.cache.memory import (
    CachedResult,
    CacheEntry,
    CacheTTL,
    ResponseCache,
    fingerprint,
)

__all__ = [
    "ResponseCache",
    "CachedResult",
    "CacheEntry",
    "CacheTTL",
    "fingerprint",
    "CacheKeys",
    "session_namespace",
]
