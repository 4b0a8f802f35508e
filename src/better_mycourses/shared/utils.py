"""
Utilities Module - Common helper functions.
==========================================

Provides utility functions for:
- Hashing (SHA256 for cache namespaces and fingerprints)
- JSON conversion of pydantic records (camelCase wire format)
"""

import hashlib
import json
from typing import Any

from pydantic import BaseModel


# ─────────────────────────────────────────────────────────────────────────────
# Hashing Functions
# ─────────────────────────────────────────────────────────────────────────────


def compute_hash(text: str, algorithm: str = "sha256") -> str:
    """
    Compute hash of text content.

    Args:
        text: Text to hash
        algorithm: Hash algorithm (default: sha256)

    Returns:
        Hexadecimal hash string

    Example:
        >>> compute_hash("hello world")
        'b94d27b9934d3e08a52e52d7da7dabfac484efe37a5380ee9088f7ace2efcde9'
    """
    hasher = hashlib.new(algorithm)
    hasher.update(text.encode("utf-8"))
    return hasher.hexdigest()


def short_hash(text: str, length: int = 12) -> str:
    """Truncated SHA256 hex digest."""
    return compute_hash(text)[:length]


# ─────────────────────────────────────────────────────────────────────────────
# JSON Helpers
# ─────────────────────────────────────────────────────────────────────────────


def to_jsonable(value: Any) -> Any:
    """
    Convert records (or containers of records) to plain JSON-compatible data.

    Pydantic models are dumped with their camelCase aliases and without
    ``None`` fields, matching what the dashboard UI expects.
    """
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def canonical_json(value: Any) -> str:
    """Deterministic JSON serialization (sorted keys, compact separators)."""
    return json.dumps(
        to_jsonable(value),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
