"""
The Kindly value grammar and its validation entry points.

Builds the rule registry for Kindly values (records, wrapped values, fragments,
and values with attached metadata) on top of the engine in
``kindspec.core.grammar`` and checks it against ``kindly.ebnf`` at import time.

Rules
- annotated_value = record_form | wrapped_form | fragment_form | attached_form
- payload = plain_value | annotated_value (base case first)
- attached_form explicitly excludes record-shaped mappings, so a mapping with
  code/form/value is only ever interpreted as a record.
- wrapped_form requires ``options.wrapped is True``; a flagless singleton list
  with valid metadata is an attached_form value, never a wrapped one.
- Kind "fragment" is reserved for fragment_form: no other alternative accepts
  it, so a wrapped scalar of kind "fragment" is not a Kindly value.
- fragment_element admits plain values only when settings.fragment_mode is
  "lenient".

Validation never raises: ``is_annotated_value`` returns a bool and ``explain``
returns a list of Mismatch (None on success).

Examples:
    >>> from kindspec.core.metadata import with_metadata
    >>> from kindspec.core.validate import classify, is_annotated_value
    >>> is_annotated_value({"code": "3", "form": 3, "value": 3, "kind": "code"})
    True
    >>> is_annotated_value(3)
    False
    >>> classify(with_metadata([3], {"kind": "code"}))
    <Form.ATTACHED: 'attached'>
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any, Final

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
from .grammar import (
    PARSED_GRAMMAR,
    AllOf,
    AnyOf,
    Field,
    MatchContext,
    Mismatch,
    Not,
    Predicate,
    Ref,
    Registry,
    SequenceOf,
    assert_registry_matches_grammar,
    recursion_headroom,
)
from .metadata import get_metadata, supports_metadata
from .schema import AnnotationProps, parse_props, props_errors

__all__ = [
    "Form",
    "KINDLY_REGISTRY",
    "is_annotated_value",
    "annotated_values",
    "explain",
    "classify",
    "shape_of",
    "is_record_form",
    "is_wrapped_form",
    "is_fragment",
    "is_annotation_props",
    "metadata_props",
    "record_props",
    "is_record_shaped",
]

logger = logging.getLogger(__name__)

_PROP_KEYS: Final[tuple[str, ...]] = (KIND_KEY, HIDE_CODE_KEY, OPTIONS_KEY)


class Form(Enum):
    """The representation a Kindly value was recognized in."""

    RECORD = "record"
    WRAPPED = "wrapped"
    FRAGMENT = "fragment"
    ATTACHED = "attached"


# ============================================================================
# Property lookups shared with the canonicalizer
# ============================================================================


def is_record_shaped(v: Any) -> bool:
    """A mapping carrying the record fields code, form, and value."""
    return isinstance(v, Mapping) and CODE_KEY in v and FORM_KEY in v and VALUE_KEY in v


def _inline_props(v: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v[k] for k in _PROP_KEYS if k in v}


def _effective_record_mapping(v: Mapping[str, Any], settings: GrammarSettings) -> dict[str, Any]:
    props = _inline_props(v)
    if settings.metadata_precedence == "metadata":
        meta = get_metadata(v)
        if parse_props(meta, strict_options=settings.strict_options) is not None:
            props.update(_inline_props(meta))  # type: ignore[arg-type]
    return props


def record_props(v: Any, settings: GrammarSettings = DEFAULT_SETTINGS) -> AnnotationProps | None:
    """
    Effective annotation properties of a record-shaped mapping.

    Inline fields are used as-is under "fields" precedence; under "metadata"
    precedence valid attached metadata overrides them key by key.
    """
    if not is_record_shaped(v):
        return None
    return parse_props(
        _effective_record_mapping(v, settings), strict_options=settings.strict_options
    )


def metadata_props(v: Any, settings: GrammarSettings = DEFAULT_SETTINGS) -> AnnotationProps | None:
    """Attached metadata of ``v`` parsed as annotation properties, or None."""
    if not supports_metadata(v):
        return None
    return parse_props(get_metadata(v), strict_options=settings.strict_options)


def is_annotation_props(m: Any, *, strict_options: bool = False) -> bool:
    """Whether ``m`` is a valid mapping of annotation properties."""
    return parse_props(m, strict_options=strict_options) is not None


# ============================================================================
# Predicates
# ============================================================================


def _settings(ctx: MatchContext) -> GrammarSettings:
    return ctx.settings if ctx.settings is not None else DEFAULT_SETTINGS


def _ctx_record_props(v: Any, ctx: MatchContext) -> AnnotationProps | None:
    return ctx.memo("record_props", v, lambda x: record_props(x, _settings(ctx)))


def _ctx_metadata_props(v: Any, ctx: MatchContext) -> AnnotationProps | None:
    return ctx.memo("metadata_props", v, lambda x: metadata_props(x, _settings(ctx)))


def _check_record_shape(v: Any, ctx: MatchContext) -> str | None:
    if is_record_shaped(v):
        return None
    return f"expected a mapping with code/form/value, got {type(v).__name__}"


def _check_record_code(v: Any, ctx: MatchContext) -> str | None:
    code = v[CODE_KEY]
    if isinstance(code, str):
        return None
    return f"code must be a string, got {type(code).__name__}"


def _check_record_props(v: Any, ctx: MatchContext) -> str | None:
    if _ctx_record_props(v, ctx) is not None:
        return None
    if not ctx.explain:
        return "invalid annotation properties"
    settings = _settings(ctx)
    errors = props_errors(
        _effective_record_mapping(v, settings), strict_options=settings.strict_options
    )
    return "invalid annotation properties: " + "; ".join(errors)


def _check_record_fragment_kind(v: Any, ctx: MatchContext) -> str | None:
    props = _ctx_record_props(v, ctx)
    if props is not None and props.kind == FRAGMENT_KIND:
        return None
    return "kind is not 'fragment'"


def _check_record_not_fragment_kind(v: Any, ctx: MatchContext) -> str | None:
    props = _ctx_record_props(v, ctx)
    if props is not None and props.kind != FRAGMENT_KIND:
        return None
    return "records of kind 'fragment' are matched as fragments"


def _check_list(v: Any, ctx: MatchContext) -> str | None:
    if isinstance(v, list):
        return None
    return f"expected a list, got {type(v).__name__}"


def _check_singleton_list(v: Any, ctx: MatchContext) -> str | None:
    if isinstance(v, list) and len(v) == 1:
        return None
    if isinstance(v, list):
        return f"expected a one-element list, got {len(v)} elements"
    return f"expected a one-element list, got {type(v).__name__}"


def _check_supports_metadata(v: Any, ctx: MatchContext) -> str | None:
    if supports_metadata(v):
        return None
    return f"{type(v).__name__} values cannot carry metadata"


def _check_metadata_props(v: Any, ctx: MatchContext) -> str | None:
    if _ctx_metadata_props(v, ctx) is not None:
        return None
    meta = get_metadata(v) if supports_metadata(v) else None
    if meta is None:
        return "no metadata attached"
    if not ctx.explain:
        return "invalid annotation properties in metadata"
    errors = props_errors(meta, strict_options=_settings(ctx).strict_options)
    return "invalid annotation properties in metadata: " + "; ".join(errors)


def _check_wrapped_flag(v: Any, ctx: MatchContext) -> str | None:
    props = _ctx_metadata_props(v, ctx)
    if props is not None and props.is_wrapped:
        return None
    return "options.wrapped is not true"


def _check_metadata_fragment_kind(v: Any, ctx: MatchContext) -> str | None:
    props = _ctx_metadata_props(v, ctx)
    if props is not None and props.kind == FRAGMENT_KIND:
        return None
    return "kind is not 'fragment'"


def _check_metadata_not_fragment_kind(v: Any, ctx: MatchContext) -> str | None:
    props = _ctx_metadata_props(v, ctx)
    if props is not None and props.kind != FRAGMENT_KIND:
        return None
    return "values of kind 'fragment' are matched as fragments"


def _check_plain_value(v: Any, ctx: MatchContext) -> str | None:
    return None


def _check_lenient_plain(v: Any, ctx: MatchContext) -> str | None:
    if _settings(ctx).lenient_fragments:
        return None
    return "plain values are not fragment elements in strict fragment mode"


_RECORD_SHAPE = Predicate("record_shape", _check_record_shape)
_RECORD_CODE = Predicate("record_code", _check_record_code)
_RECORD_PROPS = Predicate("record_props", _check_record_props)
_PLAIN_VALUE = Predicate("plain_value", _check_plain_value)

KINDLY_REGISTRY: Final[Registry] = Registry(
    {
        "annotated_value": AnyOf(
            (
                Ref("record_form"),
                Ref("wrapped_form"),
                Ref("fragment_form"),
                Ref("attached_form"),
            )
        ),
        "record_form": AllOf(
            (
                _RECORD_SHAPE,
                _RECORD_CODE,
                _RECORD_PROPS,
                Predicate("record_not_fragment", _check_record_not_fragment_kind),
                Field(VALUE_KEY, Ref("payload")),
            )
        ),
        "wrapped_form": AllOf(
            (
                Predicate("singleton_list", _check_singleton_list),
                Predicate("metadata_props", _check_metadata_props),
                Predicate("wrapped_flag", _check_wrapped_flag),
                Predicate("metadata_not_fragment", _check_metadata_not_fragment_kind),
                SequenceOf(Ref("payload")),
            )
        ),
        "fragment_form": AnyOf((Ref("fragment_record"), Ref("fragment_attached"))),
        "fragment_record": AllOf(
            (
                _RECORD_SHAPE,
                _RECORD_CODE,
                _RECORD_PROPS,
                Predicate("record_fragment", _check_record_fragment_kind),
                Field(VALUE_KEY, SequenceOf(Ref("fragment_element"))),
            )
        ),
        "fragment_attached": AllOf(
            (
                Predicate("is_list", _check_list),
                Predicate("metadata_props", _check_metadata_props),
                Predicate("metadata_fragment", _check_metadata_fragment_kind),
                SequenceOf(Ref("fragment_element")),
            )
        ),
        "fragment_element": AnyOf(
            (Ref("annotated_value"), Predicate("plain_value", _check_lenient_plain))
        ),
        "attached_form": AllOf(
            (
                Predicate("supports_metadata", _check_supports_metadata),
                Not(_RECORD_SHAPE, "record-shaped mappings are matched as records only"),
                Predicate("metadata_props", _check_metadata_props),
                Predicate("metadata_not_fragment", _check_metadata_not_fragment_kind),
                Ref("payload"),
            )
        ),
        "payload": AnyOf((_PLAIN_VALUE, Ref("annotated_value"))),
    },
    start="annotated_value",
)

assert_registry_matches_grammar(
    KINDLY_REGISTRY,
    PARSED_GRAMMAR,
    ("annotated_value", "fragment_form", "fragment_element", "payload"),
)

_FORM_RULES: Final[tuple[tuple[str, Form], ...]] = (
    ("record_form", Form.RECORD),
    ("wrapped_form", Form.WRAPPED),
    ("fragment_form", Form.FRAGMENT),
    ("attached_form", Form.ATTACHED),
)


# ============================================================================
# Public API
# ============================================================================


def _context(settings: GrammarSettings | None, explain: bool = False) -> MatchContext:
    s = settings if settings is not None else DEFAULT_SETTINGS
    return MatchContext(settings=s, explain=explain, max_depth=s.max_depth)


def _matches(v: Any, settings: GrammarSettings | None, rule: str | None = None) -> bool:
    ctx = _context(settings)
    with recursion_headroom(ctx.max_depth):
        try:
            return KINDLY_REGISTRY.matches(v, ctx, rule)
        except RecursionError:
            logger.debug("recursion limit hit while matching %s", type(v).__name__)
            return False


def is_annotated_value(v: Any, settings: GrammarSettings | None = None) -> bool:
    """
    Decide whether ``v`` is a Kindly value.

    Args:
        v (Any): Candidate value.
        settings (GrammarSettings | None): Policy toggles (defaults when None).

    Returns:
        bool: True if ``v`` matches annotated_value. Never raises.
    """
    return _matches(v, settings)


def annotated_values(v: Any, settings: GrammarSettings | None = None) -> dict[int, Any] | None:
    """
    Every value recognized as a Kindly value while validating ``v``, keyed by id.

    Includes ``v`` itself and every fragment element checked along the way;
    payloads are not descended into. Returns None when ``v`` is not a Kindly
    value. Callers that walk ``v`` afterwards use it to skip re-validating
    nested fragments.
    """
    ctx = _context(settings)
    with recursion_headroom(ctx.max_depth):
        try:
            ok = KINDLY_REGISTRY.matches(v, ctx)
        except RecursionError:
            logger.debug("recursion limit hit while matching %s", type(v).__name__)
            return None
    return ctx.matched if ok else None


def explain(v: Any, settings: GrammarSettings | None = None) -> list[Mismatch] | None:
    """
    Structured mismatch report for ``v``.

    Returns:
        list[Mismatch] | None: None if ``v`` is a Kindly value, otherwise the
        reasons each alternative failed (path, rule, reason). Never raises.

    Examples:
        >>> from kindspec.core.validate import explain
        >>> report = explain({"code": "", "form": None, "value": 1, "kind": ""})
        >>> report[0].rule, report[0].reason.startswith("invalid annotation properties")
        ('record_form', True)
    """
    ctx = _context(settings, explain=True)
    with recursion_headroom(ctx.max_depth):
        try:
            return KINDLY_REGISTRY.explain(v, ctx)
        except RecursionError:
            return [Mismatch((), KINDLY_REGISTRY.start, "recursion limit reached")]


def classify(v: Any, settings: GrammarSettings | None = None) -> Form | None:
    """
    The representation ``v`` was recognized in, or None if it is not a Kindly value.

    Alternatives are tried in grammar order, so a record-shaped mapping is
    always Form.RECORD (or Form.FRAGMENT), never Form.ATTACHED.
    """
    for rule, form in _FORM_RULES:
        if _matches(v, settings, rule):
            return form
    return None


def shape_of(v: Any, settings: GrammarSettings | None = None) -> Form | None:
    """
    Shallow classification of a value already known to be valid.

    Looks only at ``v`` itself (shape and properties), not at nested values, and
    agrees with ``classify`` on every valid Kindly value.
    """
    s = settings if settings is not None else DEFAULT_SETTINGS
    if is_record_shaped(v):
        props = record_props(v, s)
        if props is None or not isinstance(v[CODE_KEY], str):
            return None
        return Form.FRAGMENT if props.kind == FRAGMENT_KIND else Form.RECORD
    props = metadata_props(v, s)
    if props is None:
        return None
    if props.kind == FRAGMENT_KIND:
        return Form.FRAGMENT if isinstance(v, list) else None
    if props.is_wrapped and isinstance(v, list) and len(v) == 1:
        return Form.WRAPPED
    return Form.ATTACHED


def is_record_form(v: Any, settings: GrammarSettings | None = None) -> bool:
    """Record form, including fragment records."""
    return _matches(v, settings, "record_form") or _matches(v, settings, "fragment_record")


def is_wrapped_form(v: Any, settings: GrammarSettings | None = None) -> bool:
    return _matches(v, settings, "wrapped_form")


def is_fragment(v: Any, settings: GrammarSettings | None = None) -> bool:
    return classify(v, settings) is Form.FRAGMENT
