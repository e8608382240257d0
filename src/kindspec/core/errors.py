"""
Core exception types raised by registry construction, canonicalization, and settings.

Provides typed exceptions for core-domain failures:
- SchemaError for grammar-definition faults detected while a registry is built.
- GrammarError for values handed to an operation that requires a Kindly value.
- ConfigError for settings values outside their allowed domain.

Notes:
    - This module uses only the Python standard library and has no side effects.
    - Validation itself never raises: ``is_annotated_value`` returns a bool and
      ``explain`` returns a mismatch report. Only the operations that are total
      over the grammar (``canonicalize``, ``equals``) raise GrammarError when
      given a value outside it.
    - SchemaError is a programmer error surfaced at import/build time, before
      any value is validated.

Examples:
    Catch a canonicalization failure.

    >>> from kindspec.core.errors import GrammarError
    >>> from kindspec.core.canonical import canonicalize
    >>> try:
    ...     canonicalize(3)
    ... except GrammarError as e:
    ...     msg = str(e)
    >>> "not a Kindly value" in msg
    True
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .grammar import Mismatch

__all__ = [
    "SchemaError",
    "GrammarError",
    "ConfigError",
]


class SchemaError(ValueError):
    """Grammar-definition failure (undefined rule reference, EBNF drift, bad start rule)."""


class GrammarError(ValueError):
    """
    A value does not belong to the Kindly grammar where one is required.

    Attributes:
        mismatches (tuple[Mismatch, ...]): Structured report from ``explain``, if available.
    """

    def __init__(self, message: str, mismatches: tuple[Mismatch, ...] = ()) -> None:
        super().__init__(message)
        self.mismatches = mismatches


class ConfigError(ValueError):
    """Invalid grammar settings (unknown mode, non-positive depth, empty default kind)."""
