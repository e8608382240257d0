"""
Authoring helpers that produce Kindly values.

``annotate`` is the wrapping mechanism: values that can carry metadata get it
attached to a shallow copy, and values that cannot (numbers, strings, None,
tuples, generators, ...) are wrapped in a one-element list flagged ``options.wrapped``.
It is the only helper that sets that flag, which is what keeps a wrapped
``3`` distinct from an annotated ``[3]``.

Examples:
    >>> from kindspec.core.annotate import annotate, fragment
    >>> from kindspec.core.metadata import get_metadata
    >>> v = annotate(3, "code")
    >>> v, get_metadata(v)
    ([3], {'kind': 'code', 'options': {'wrapped': True}})
    >>> doc = fragment([annotate("# Title", "md"), annotate([1, 2], "vector")])
    >>> get_metadata(doc)["kind"]
    'fragment'
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from .constants import (
    CODE_KEY,
    FORM_KEY,
    HIDE_CODE_KEY,
    HIDE_VALUE_KEY,
    KIND_KEY,
    OPTIONS_KEY,
    VALUE_KEY,
    WRAPPED_KEY,
)
from .grammar import Kind, kind_value
from .metadata import set_metadata, supports_metadata, with_metadata
from .typing import JsonDict, PropsMapping, RecordDict

__all__ = [
    "annotation_props",
    "annotate",
    "wrap",
    "fragment",
    "record",
]


def annotation_props(
    kind: Kind | str,
    *,
    hide_code: bool | None = None,
    hide_value: bool | None = None,
    **options: Any,
) -> JsonDict:
    """
    Build an annotation properties mapping.

    Args:
        kind (Kind | str): Presentation kind.
        hide_code (bool | None): Set hideCode when not None.
        hide_value (bool | None): Set options.hideValue when not None.
        **options (Any): Additional kind-specific options.

    Returns:
        JsonDict: Mapping with kind, and hideCode/options only when given.
    """
    props: JsonDict = {KIND_KEY: kind_value(kind)}
    if hide_code is not None:
        props[HIDE_CODE_KEY] = hide_code
    opts = dict(options)
    if hide_value is not None:
        opts[HIDE_VALUE_KEY] = hide_value
    if opts:
        props[OPTIONS_KEY] = opts
    return props


def annotate(
    value: Any,
    kind: Kind | str,
    *,
    hide_code: bool | None = None,
    hide_value: bool | None = None,
    code: str | None = None,
    form: Any = None,
    **options: Any,
) -> Any:
    """
    Annotate ``value`` with a kind, attaching or wrapping as the value allows.

    Args:
        value (Any): Payload to annotate (not mutated).
        kind (Kind | str): Presentation kind.
        hide_code (bool | None): Set hideCode when not None.
        hide_value (bool | None): Set options.hideValue when not None.
        code (str | None): Source text of the producing form, kept in the metadata.
        form (Any): The producing form, kept in the metadata when not None.
        **options (Any): Additional kind-specific options.

    Returns:
        Any: A shallow copy of ``value`` carrying the metadata, or a flagged
        one-element list when ``value`` cannot carry metadata.

    Notes:
        The metadata lives in ``metadata.DEFAULT_TABLE``, which holds a strong
        reference to the result. The result is never garbage collected while
        annotated; call ``detach_metadata(result)`` once it is no longer needed
        (long-running producers should do so, or the table grows with every
        call).
    """
    props = annotation_props(kind, hide_code=hide_code, hide_value=hide_value, **options)
    if code is not None:
        props[CODE_KEY] = code
    if form is not None:
        props[FORM_KEY] = form
    if supports_metadata(value):
        return with_metadata(value, props)
    opts = dict(props.get(OPTIONS_KEY) or {})
    opts[WRAPPED_KEY] = True
    props[OPTIONS_KEY] = opts
    return set_metadata([value], props)


def wrap(x: Any, props: PropsMapping) -> list[Any]:
    """
    Put ``x`` in a new one-element list carrying ``props`` verbatim.

    Unlike ``annotate`` this never adds the wrapped flag; the result is in
    wrapped form only if ``props`` already has ``options.wrapped`` set to True.
    """
    return set_metadata([x], props)


def fragment(
    items: Iterable[Any],
    *,
    hide_code: bool | None = None,
    code: str | None = None,
    form: Any = None,
) -> list[Any]:
    """A new list of Kindly values annotated with kind "fragment"."""
    return annotate(list(items), Kind.FRAGMENT, hide_code=hide_code, code=code, form=form)


def record(
    value: Any,
    kind: Kind | str,
    *,
    code: str = "",
    form: Any = None,
    hide_code: bool | None = None,
    hide_value: bool | None = None,
    **options: Any,
) -> RecordDict:
    """
    Build a Kindly value in record form.

    Examples:
        >>> record(3, "code", code="(+ 1 2)")
        {'code': '(+ 1 2)', 'form': None, 'value': 3, 'kind': 'code'}
    """
    out: RecordDict = {CODE_KEY: code, FORM_KEY: form, VALUE_KEY: value}
    out.update(annotation_props(kind, hide_code=hide_code, hide_value=hide_value, **options))
    return out
