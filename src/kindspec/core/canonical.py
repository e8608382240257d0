"""
Canonicalization of Kindly values to record form, and equality defined over it.

Record form is the unambiguous representation, so two Kindly values are equal
exactly when their canonical records are. Canonicalization lifts the outermost
annotation properties into the record; annotations nested inside a payload are
left where they are and are compared by their own canonical forms.

Responsibilities
- canonicalize: any valid Kindly value -> record mapping (idempotent).
- as_record: canonical record for a nested value, or None for plain data.
- equals: annotation-aware structural equality over canonical records.

Normalization
- Keys outside code/form/value/kind/hideCode/options are dropped.
- hideCode is omitted when false; options drop default-valued flags and the
  representation-only ``wrapped`` flag, and are omitted when empty.
- code/form of attached and wrapped values come from the metadata when it
  carries them, else "" and None.

Examples:
    >>> from kindspec.core.annotate import annotate
    >>> from kindspec.core.canonical import canonicalize, equals
    >>> canonicalize(annotate(3, "code"))
    {'code': '', 'form': None, 'value': 3, 'kind': 'code'}
    >>> equals(annotate(3, "code"), {"code": "", "form": None, "value": 3, "kind": "code"})
    True
    >>> equals(annotate(3, "code"), annotate([3], "code"))
    False
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from .config import DEFAULT_SETTINGS, GrammarSettings
from .constants import (
    CODE_KEY,
    FORM_KEY,
    FRAGMENT_KIND,
    HIDE_CODE_KEY,
    KIND_KEY,
    OPTIONS_KEY,
    VALUE_KEY,
)
from .errors import GrammarError
from .grammar import recursion_headroom
from .metadata import get_metadata, shallow_copy
from .schema import AnnotationProps
from .typing import RecordDict
from .validate import (
    Form,
    annotated_values,
    explain,
    metadata_props,
    record_props,
    shape_of,
)

__all__ = [
    "canonicalize",
    "as_record",
    "to_wire",
    "equals",
]

logger = logging.getLogger(__name__)

# Payload containers may nest deeper than Kindly values; bound the walk relative to max_depth.
_PAYLOAD_DEPTH_FACTOR = 4


def _resolve(settings: GrammarSettings | None) -> GrammarSettings:
    return settings if settings is not None else DEFAULT_SETTINGS


class _Validity:
    """
    Identity memo of validation results for one public call.

    Validating a fragment also validates its elements, so their results are
    kept and the walk that follows never re-validates a nested fragment.
    Checked values are pinned until the call ends so their ids stay unique.
    """

    def __init__(self, settings: GrammarSettings) -> None:
        self.settings = settings
        self._seen: dict[int, tuple[Any, bool]] = {}

    def check(self, v: Any) -> bool:
        hit = self._seen.get(id(v))
        if hit is not None and hit[0] is v:
            return hit[1]
        if shape_of(v, self.settings) is None:
            return False
        found = annotated_values(v, self.settings)
        if found is None:
            self._seen[id(v)] = (v, False)
            return False
        for key, value in found.items():
            self._seen[key] = (value, True)
        return True


def _require_valid(v: Any, validity: _Validity) -> None:
    if validity.check(v):
        return
    report = explain(v, validity.settings) or []
    detail = f": {report[0]}" if report else ""
    raise GrammarError(f"not a Kindly value{detail}", tuple(report))


def _record(code: str, form: Any, value: Any, props: AnnotationProps) -> RecordDict:
    out: RecordDict = {CODE_KEY: code, FORM_KEY: form, VALUE_KEY: value}
    out.update(props.canonical_dict())
    return out


def _context_code(meta: Mapping[str, Any] | None) -> tuple[str, Any]:
    # Evaluation context captured alongside the annotation, when present.
    if not meta:
        return "", None
    code = meta.get(CODE_KEY)
    return (code if isinstance(code, str) else ""), meta.get(FORM_KEY)


def _canonical_elements(items: list[Any], validity: _Validity) -> list[Any]:
    settings = validity.settings
    out: list[Any] = []
    for item in items:
        if not settings.lenient_fragments or validity.check(item):
            out.append(_canonical(item, validity))
            continue
        logger.debug("coercing plain fragment element to kind %r", settings.default_kind)
        out.append(
            {CODE_KEY: "", FORM_KEY: None, VALUE_KEY: item, KIND_KEY: settings.default_kind}
        )
    return out


def _canonical(v: Any, validity: _Validity) -> RecordDict:
    # Precondition: validity.check(v) holds.
    settings = validity.settings
    form = shape_of(v, settings)

    if isinstance(v, Mapping) and form in (Form.RECORD, Form.FRAGMENT):
        props = record_props(v, settings)
        if props is None:
            raise GrammarError("record properties changed during canonicalization")
        value = v[VALUE_KEY]
        if props.kind == FRAGMENT_KIND:
            value = _canonical_elements(value, validity)
        return _record(v[CODE_KEY], v[FORM_KEY], value, props)

    props = metadata_props(v, settings)
    if props is None:
        raise GrammarError(f"metadata of {type(v).__name__} changed during canonicalization")
    code, source_form = _context_code(get_metadata(v))

    if form is Form.WRAPPED:
        inner = v[0]
        if validity.check(inner):
            inner = _canonical(inner, validity)
        return _record(code, source_form, inner, props)

    if form is Form.FRAGMENT:
        return _record(code, source_form, _canonical_elements(v, validity), props)

    return _record(code, source_form, shallow_copy(v), props)


def _canonicalize(v: Any, validity: _Validity) -> RecordDict:
    _require_valid(v, validity)
    return _canonical(v, validity)


def _as_record(v: Any, validity: _Validity) -> RecordDict | None:
    if not validity.check(v):
        return None
    return _canonical(v, validity)


def canonicalize(v: Any, settings: GrammarSettings | None = None) -> RecordDict:
    """
    Map a Kindly value to its canonical record form.

    Args:
        v (Any): A Kindly value in any representation.
        settings (GrammarSettings | None): Policy toggles (defaults when None).

    Returns:
        RecordDict: Record with code, form, value, kind, and non-default properties.

    Raises:
        GrammarError: If ``v`` is not a Kindly value; ``mismatches`` carries the report.

    Notes:
        - Attached: value is a shallow copy of the payload without its metadata.
        - Wrapped: value is the sole element, canonicalized if it is itself a Kindly value.
        - Record: identity apart from normalization; fragment elements are canonicalized.
        - Fragment: each element canonicalized independently, order preserved.
        - The input is never mutated, and canonicalize(canonicalize(v)) equals canonicalize(v).
    """
    s = _resolve(settings)
    with recursion_headroom(s.max_depth):
        return _canonicalize(v, _Validity(s))


def as_record(v: Any, settings: GrammarSettings | None = None) -> RecordDict | None:
    """Canonical record of ``v`` if it is a Kindly value, else None. Never raises for plain data."""
    s = _resolve(settings)
    with recursion_headroom(s.max_depth):
        return _as_record(v, _Validity(s))


def _is_set(x: Any) -> bool:
    return isinstance(x, (set, frozenset))


class _EqualityWalk:
    """State for one annotation-aware comparison (cycle pairs and depth bound)."""

    def __init__(self, validity: _Validity) -> None:
        self.validity = validity
        self.settings = validity.settings
        self.limit = validity.settings.max_depth * _PAYLOAD_DEPTH_FACTOR
        self._active: set[tuple[int, int]] = set()

    def records(self, ra: RecordDict, rb: RecordDict, depth: int) -> bool:
        if ra.get(KIND_KEY) != rb.get(KIND_KEY):
            return False
        if ra.get(CODE_KEY) != rb.get(CODE_KEY):
            return False
        if bool(ra.get(HIDE_CODE_KEY, False)) != bool(rb.get(HIDE_CODE_KEY, False)):
            return False
        if ra.get(OPTIONS_KEY) != rb.get(OPTIONS_KEY):
            return False
        if not self.payloads(ra.get(FORM_KEY), rb.get(FORM_KEY), depth + 1):
            return False
        va, vb = ra.get(VALUE_KEY), rb.get(VALUE_KEY)
        if ra.get(KIND_KEY) == FRAGMENT_KIND:
            if len(va) != len(vb):
                return False
            for ea, eb in zip(va, vb):
                if not self.records(ea, eb, depth + 1):
                    return False
            return True
        return self.payloads(va, vb, depth + 1)

    def payloads(self, x: Any, y: Any, depth: int) -> bool:
        if depth > self.limit:
            raise GrammarError(f"payload nesting exceeds {self.limit} levels")
        if x is y and shape_of(x, self.settings) is None:
            return True
        rx = _as_record(x, self.validity)
        ry = _as_record(y, self.validity)
        if rx is not None or ry is not None:
            if rx is None or ry is None:
                return False
            return self.records(rx, ry, depth + 1)

        both_maps = isinstance(x, Mapping) and isinstance(y, Mapping)
        both_lists = isinstance(x, list) and isinstance(y, list)
        both_tuples = isinstance(x, tuple) and isinstance(y, tuple)
        both_sets = _is_set(x) and _is_set(y)
        if not (both_maps or both_lists or both_tuples or both_sets):
            return x == y

        pair = (id(x), id(y))
        if pair in self._active:
            return True
        self._active.add(pair)
        try:
            if len(x) != len(y):
                return False
            if both_maps:
                for k in x:
                    if k not in y or not self.payloads(x[k], y[k], depth + 1):
                        return False
                return True
            if both_sets:
                return self._set_members(x, y, depth)
            for ex, ey in zip(x, y):
                if not self.payloads(ex, ey, depth + 1):
                    return False
            return True
        finally:
            self._active.discard(pair)

    def _set_members(self, x: Any, y: Any, depth: int) -> bool:
        # Members may carry metadata that hashing ignores, so pair them up by walk.
        unmatched = list(y)
        for ex in x:
            for i, ey in enumerate(unmatched):
                if self.payloads(ex, ey, depth + 1):
                    del unmatched[i]
                    break
            else:
                return False
        return True


def _wire_payload(x: Any, validity: _Validity, depth: int, limit: int) -> Any:
    if depth > limit:
        raise GrammarError(f"payload nesting exceeds {limit} levels")
    rec = _as_record(x, validity)
    if rec is not None:
        return _wire_record(rec, validity, depth + 1, limit)
    if isinstance(x, Mapping):
        return {k: _wire_payload(v, validity, depth + 1, limit) for k, v in x.items()}
    if isinstance(x, (list, tuple)):
        return [_wire_payload(v, validity, depth + 1, limit) for v in x]
    if _is_set(x):
        return [_wire_payload(v, validity, depth + 1, limit) for v in sorted(x, key=repr)]
    return x


def _wire_record(rec: RecordDict, validity: _Validity, depth: int, limit: int) -> RecordDict:
    out = dict(rec)
    out[FORM_KEY] = _wire_payload(rec[FORM_KEY], validity, depth + 1, limit)
    if rec[KIND_KEY] == FRAGMENT_KIND:
        out[VALUE_KEY] = [_wire_record(e, validity, depth + 1, limit) for e in rec[VALUE_KEY]]
    else:
        out[VALUE_KEY] = _wire_payload(rec[VALUE_KEY], validity, depth + 1, limit)
    return out


def to_wire(v: Any, settings: GrammarSettings | None = None) -> RecordDict:
    """
    Canonical record of ``v`` with every nested Kindly value also in record form.

    Plain containers become JSON-shaped (tuples and sets become lists), so the
    result carries no out-of-band metadata and can be serialized as-is. Values
    that ``equals`` considers equal produce equal wire records.

    Raises:
        GrammarError: If ``v`` is not a Kindly value or its payload nests too deeply (e.g., cycles).
    """
    s = _resolve(settings)
    with recursion_headroom(s.max_depth):
        validity = _Validity(s)
        rec = _canonicalize(v, validity)
        return _wire_record(rec, validity, 0, s.max_depth * _PAYLOAD_DEPTH_FACTOR)


def equals(a: Any, b: Any, settings: GrammarSettings | None = None) -> bool:
    """
    Structural equality of two Kindly values via their canonical records.

    Record properties compare by value; payloads compare structurally, and any
    nested Kindly value is compared by its canonical record (a nested Kindly
    value never equals plain data). Set members are paired up by the same
    comparison, so annotations on them count.

    Raises:
        GrammarError: If either argument is not a Kindly value.
    """
    s = _resolve(settings)
    with recursion_headroom(s.max_depth):
        validity = _Validity(s)
        ra = _canonicalize(a, validity)
        rb = _canonicalize(b, validity)
        return _EqualityWalk(validity).records(ra, rb, 0)
