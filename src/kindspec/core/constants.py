"""
Kindly grammar defaults and wire keys.

Defines the record/metadata key names, the reserved fragment kind, and the
defaults consumed by ``kindspec.core.config.GrammarSettings``. This module is
zero-IO and uses only the Python standard library.

Notes:
    - Key names are the wire spelling shared by metadata mappings and records.
    - Changing defaults should be done here; GrammarSettings simply consumes them.
"""

from __future__ import annotations

__all__ = [
    "KIND_KEY",
    "HIDE_CODE_KEY",
    "OPTIONS_KEY",
    "HIDE_VALUE_KEY",
    "WRAPPED_KEY",
    "CODE_KEY",
    "FORM_KEY",
    "VALUE_KEY",
    "FRAGMENT_KIND",
    "DEFAULT_KIND",
    "MAX_DEPTH",
]

# Annotation property keys (metadata mappings and inlined record fields).
KIND_KEY: str = "kind"
HIDE_CODE_KEY: str = "hideCode"
OPTIONS_KEY: str = "options"

# Recognized keys under options.
HIDE_VALUE_KEY: str = "hideValue"
WRAPPED_KEY: str = "wrapped"

# Record-only fields.
CODE_KEY: str = "code"
FORM_KEY: str = "form"
VALUE_KEY: str = "value"

# Kind reserved for sequences of Kindly values.
FRAGMENT_KIND: str = "fragment"

# Kind given to plain fragment elements when fragments are lenient.
DEFAULT_KIND: str = "pprint"

# Maximum nesting of Kindly values inside one another.
MAX_DEPTH: int = 1000
