"""
Canonical JSON serialization and hashing helpers for Kindly records.

Provides a single canonical JSON policy and SHA-256 helpers so that records
serialize and hash stably across runs and consumers. This module is zero-IO.

Notes:
    - Canonical JSON:
        - sort_keys=True
        - separators=(",", ":")
        - ensure_ascii=False
    - Hashing is performed over the UTF-8 encoded canonical JSON string of the
      wire record (``canonical.to_wire``), so values that ``equals`` considers
      equal hash equal. Distinct values may collide (e.g., a tuple and a list
      payload both serialize as a JSON array).
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

from .canonical import to_wire
from .config import GrammarSettings

__all__ = [
    "json_dumps_canonical",
    "hash_record",
]


def json_dumps_canonical(obj: Any) -> str:
    """
    Serialize an object to a canonical JSON string.

    Args:
        obj (Any): JSON-serializable object.

    Returns:
        str: Canonical JSON string with sort_keys=True, compact separators,
        and ensure_ascii=False.

    Notes:
        This function assumes the input is JSON-serializable and does not perform
        coercion of unsupported types.
    """
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _sha256_hexdigest(s: str) -> str:
    """Compute SHA-256 hex digest of a UTF-8 string."""
    h = hashlib.sha256()
    h.update(s.encode("utf-8"))
    return h.hexdigest()


def hash_record(v: Any, settings: GrammarSettings | None = None) -> str:
    """
    Stable hash of a Kindly value in any representation.

    Args:
        v (Any): Kindly value with a JSON-serializable payload and form.
        settings (GrammarSettings | None): Policy toggles (defaults when None).

    Returns:
        str: SHA-256 hex digest over the canonical JSON of the wire record.

    Raises:
        kindspec.core.errors.GrammarError: If ``v`` is not a Kindly value.
        TypeError: If the payload or form is not JSON-serializable.

    Examples:
        >>> from kindspec.core.annotate import annotate, record
        >>> hash_record(annotate(3, "code")) == hash_record(record(3, "code"))
        True
    """
    return _sha256_hexdigest(json_dumps_canonical(to_wire(v, settings)))
