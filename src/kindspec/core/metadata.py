"""
Out-of-band metadata for values, keyed by object identity.

Python values have no general metadata slot, so annotation properties live in a
side-table keyed by ``id(value)``. Entries pin the object they describe so an
id is never reused while its entry exists; call ``detach`` (or ``clear``) to
release them.

Which values can carry metadata
- Immutable value types (None, bool, int, float, complex, str, bytes, tuple,
  frozenset, enum members) cannot: equal instances are interchangeable and
  often shared by the interpreter, so identity says nothing about them. These
  are annotated by wrapping (see kindspec.core.annotate).
- Objects that ``copy.copy`` refuses or returns unchanged (generators,
  locks, open files, functions, modules, classes) cannot either: attaching
  must not touch the caller's object, which needs a fresh copy. They are
  wrapped as well.
- Everything else (lists, dicts, sets, most user objects) can.

Notes:
    Two structurally equal lists are distinct values here and may carry
    different metadata.

Examples:
    >>> from kindspec.core.metadata import get_metadata, supports_metadata, with_metadata
    >>> supports_metadata(3), supports_metadata([3])
    (False, True)
    >>> xs = [1, 2]
    >>> ys = with_metadata(xs, {"kind": "vector"})
    >>> get_metadata(ys), get_metadata(xs)
    ({'kind': 'vector'}, None)
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from enum import Enum
from typing import Any

from .errors import GrammarError
from .typing import PropsMapping

__all__ = [
    "MetadataTable",
    "DEFAULT_TABLE",
    "supports_metadata",
    "get_metadata",
    "set_metadata",
    "with_metadata",
    "detach_metadata",
    "shallow_copy",
]

_VALUE_TYPES: tuple[type, ...] = (
    type(None),
    bool,
    int,
    float,
    complex,
    str,
    bytes,
    tuple,
    frozenset,
    Enum,
)


# Per type: whether copy.copy yields a distinct object. Filled on first sight.
_COPYABLE: dict[type, bool] = {list: True, dict: True, set: True}


def _copyable(value: Any) -> bool:
    cls = type(value)
    known = _COPYABLE.get(cls)
    if known is None:
        try:
            known = copy.copy(value) is not value
        except (TypeError, AttributeError, copy.Error):
            known = False
        _COPYABLE[cls] = known
    return known


def supports_metadata(value: Any) -> bool:
    """Whether ``value`` can carry out-of-band metadata (not a value type, and copyable)."""
    return not isinstance(value, _VALUE_TYPES) and _copyable(value)


def shallow_copy(value: Any) -> Any:
    """
    A new object equal to ``value`` with a fresh identity (and therefore no metadata).

    Lists, dicts, and sets are copied by their constructors (subclasses are
    preserved via ``copy.copy``); other objects use ``copy.copy``.

    Raises:
        GrammarError: If the object refuses to be copied.
    """
    if type(value) is list:
        return list(value)
    if type(value) is dict:
        return dict(value)
    if type(value) is set:
        return set(value)
    try:
        return copy.copy(value)
    except (TypeError, AttributeError, copy.Error) as exc:
        raise GrammarError(f"cannot copy {type(value).__name__} value: {exc}") from exc


class MetadataTable:
    """
    Identity-keyed side-table of metadata mappings.

    Examples:
        >>> t = MetadataTable()
        >>> v = {"a": 1}
        >>> t.set(v, {"kind": "edn"})
        >>> t.get(v)
        {'kind': 'edn'}
        >>> t.get({"a": 1}) is None
        True
    """

    def __init__(self) -> None:
        self._entries: dict[int, tuple[Any, dict[str, Any]]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, value: Any) -> bool:
        entry = self._entries.get(id(value))
        return entry is not None and entry[0] is value

    def get(self, value: Any) -> dict[str, Any] | None:
        entry = self._entries.get(id(value))
        if entry is None or entry[0] is not value:
            return None
        return entry[1]

    def set(self, value: Any, meta: PropsMapping) -> None:
        """
        Attach ``meta`` to ``value`` in place, replacing any previous entry.

        Raises:
            GrammarError: If ``value`` cannot carry metadata or ``meta`` is not a mapping.
        """
        if not supports_metadata(value):
            raise GrammarError(
                f"{type(value).__name__} values cannot carry metadata; wrap them instead"
            )
        if not isinstance(meta, Mapping):
            raise GrammarError(f"metadata must be a mapping, got {type(meta).__name__}")
        self._entries[id(value)] = (value, dict(meta))

    def detach(self, value: Any) -> dict[str, Any] | None:
        """Remove and return the metadata attached to ``value``, if any."""
        if value not in self:
            return None
        return self._entries.pop(id(value))[1]

    def clear(self) -> None:
        self._entries.clear()


DEFAULT_TABLE = MetadataTable()


def _resolve(table: MetadataTable | None) -> MetadataTable:
    return DEFAULT_TABLE if table is None else table


def get_metadata(value: Any, table: MetadataTable | None = None) -> dict[str, Any] | None:
    """Metadata attached to ``value``, or None."""
    return _resolve(table).get(value)


def set_metadata(value: Any, meta: PropsMapping, table: MetadataTable | None = None) -> Any:
    """Attach ``meta`` to ``value`` in place and return ``value``."""
    _resolve(table).set(value, meta)
    return value


def with_metadata(value: Any, meta: PropsMapping, table: MetadataTable | None = None) -> Any:
    """Return a shallow copy of ``value`` carrying ``meta``; ``value`` itself is untouched."""
    if not supports_metadata(value):
        raise GrammarError(
            f"{type(value).__name__} values cannot carry metadata; wrap them instead"
        )
    out = shallow_copy(value)
    _resolve(table).set(out, meta)
    return out


def detach_metadata(value: Any, table: MetadataTable | None = None) -> dict[str, Any] | None:
    """Remove the metadata attached to ``value`` and return it."""
    return _resolve(table).detach(value)
