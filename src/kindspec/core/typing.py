"""
Lightweight typing aliases used across the Kindly grammar modules.

This module contains no runtime logic and is zero-IO.

Examples:
    >>> from kindspec.core.typing import RecordDict
    >>> def minimal() -> RecordDict:
    ...     return {"code": "", "form": None, "value": 3, "kind": "code"}
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

__all__ = [
    "JsonDict",
    "PropsMapping",
    "RecordDict",
]

# Convenient JSON-like mapping alias. Kept intentionally broad for serde boundaries.
JsonDict = dict[str, Any]

# Annotation properties as attached to a value (kind/hideCode/options plus any extras).
PropsMapping = Mapping[str, Any]

# Record form: code/form/value plus inlined annotation properties.
RecordDict = dict[str, Any]
