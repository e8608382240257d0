"""
Pydantic v2 models for Kindly annotation properties and the record wire shape.

Annotation properties are the metadata a Kindly value carries, whether attached
out-of-band, carried by a wrapper list, or inlined into a record. Validators
normalize ``kind`` (accepting ``Kind`` enum members) and keep flags strictly
boolean so that ``hideCode: "yes"`` is a mismatch rather than a coercion.

Responsibilities
- Define AnnotationOptions / AnnotationProps and their strict-options variants.
- Define KindlyRecord, the serialized record shape used by serde.
- Produce the canonical (default-free) property mapping used by canonicalize.

Style
- Zero-IO (stdlib + pydantic only).
- Wire keys are camelCase (``hideCode``, ``hideValue``); Python attributes are lower_snake.
- Top-level property mappings are open (unknown keys ignored); ``options`` is
  open unless strict options are requested, since options are kind-specific.

References
- grammar: src/kindspec/core/grammar.py (Kind enum, rule registry)
- errors: src/kindspec/core/errors.py (GrammarError)
- tests: tests/core/test_schema_props.py
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, StrictBool, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .constants import (
    CODE_KEY,
    FORM_KEY,
    HIDE_CODE_KEY,
    HIDE_VALUE_KEY,
    KIND_KEY,
    OPTIONS_KEY,
    VALUE_KEY,
)
from .errors import GrammarError
from .grammar import kind_value
from .typing import JsonDict

__all__ = [
    "AnnotationOptions",
    "StrictAnnotationOptions",
    "AnnotationProps",
    "StrictAnnotationProps",
    "KindlyRecord",
    "parse_props",
    "props_errors",
]


class AnnotationOptions(BaseModel):
    """
    Rendering options carried under ``options``.

    Attributes:
        hide_value (bool): Suppress the payload value in output (wire ``hideValue``).
        wrapped (bool): The carrier is a synthetic singleton wrapper (wire ``wrapped``).

    Notes:
        Unknown keys are kept as extras; they are kind-specific options.
    """

    model_config = ConfigDict(extra="allow", alias_generator=to_camel)

    hide_value: StrictBool = False
    wrapped: StrictBool = False


class StrictAnnotationOptions(AnnotationOptions):
    """AnnotationOptions that rejects keys beyond ``hideValue`` and ``wrapped``."""

    model_config = ConfigDict(extra="forbid")


class AnnotationProps(BaseModel):
    """
    Annotation properties required of every Kindly value.

    Attributes:
        kind (str): Non-empty presentation tag (e.g., "code", "md", "fragment").
        hide_code (bool): Suppress the source expression (wire ``hideCode``).
        options (AnnotationOptions | None): Optional rendering options.

    Raises:
        pydantic.ValidationError: If kind is missing/empty/non-string, hideCode is
            not a bool, or options is not a mapping of valid options.

    Examples:
        >>> from kindspec.core.schema import AnnotationProps
        >>> p = AnnotationProps.model_validate({"kind": "md", "hideCode": True})
        >>> p.hide_code
        True
        >>> p.canonical_dict()
        {'kind': 'md', 'hideCode': True}
    """

    model_config = ConfigDict(extra="ignore", alias_generator=to_camel)

    kind: str
    hide_code: StrictBool = False
    options: AnnotationOptions | None = None

    @field_validator("kind", mode="before")
    @classmethod
    def _normalize_kind(cls, v: Any) -> str:
        """
        Normalize kind to its string value.

        Args:
            v (Any): Proposed kind (str or Kind member).

        Returns:
            str: The kind tag.

        Raises:
            GrammarError: If the kind is not a non-empty string.
        """
        try:
            return kind_value(v)
        except (TypeError, ValueError) as e:
            raise GrammarError(str(e)) from e

    @property
    def is_wrapped(self) -> bool:
        return self.options is not None and self.options.wrapped

    def canonical_options(self) -> JsonDict | None:
        """
        Options with defaults and the representation-only ``wrapped`` flag removed.

        Returns:
            JsonDict | None: Remaining options, or None when nothing is left.
        """
        if self.options is None:
            return None
        out: JsonDict = {}
        if self.options.hide_value:
            out[HIDE_VALUE_KEY] = True
        out.update(self.options.model_extra or {})
        return out or None

    def canonical_dict(self) -> JsonDict:
        """Wire mapping of these properties with default-valued entries omitted."""
        out: JsonDict = {KIND_KEY: self.kind}
        if self.hide_code:
            out[HIDE_CODE_KEY] = True
        options = self.canonical_options()
        if options is not None:
            out[OPTIONS_KEY] = options
        return out


class StrictAnnotationProps(AnnotationProps):
    """AnnotationProps whose options reject unrecognized keys."""

    options: StrictAnnotationOptions | None = None


class KindlyRecord(AnnotationProps):
    """
    Record form of a Kindly value as it travels over the wire.

    Attributes:
        code (str): Source text of the form that produced the value.
        form (Any): The originating expression (opaque).
        value (Any): The payload.

    Notes:
        Used by serde to validate deserialized records. In-memory grammar matching
        does not go through this model; see ``kindspec.core.validate``.

    Examples:
        >>> from kindspec.core.schema import KindlyRecord
        >>> r = KindlyRecord.model_validate({"code": "(+ 1 2)", "form": None, "value": 3, "kind": "code"})
        >>> r.to_record()
        {'code': '(+ 1 2)', 'form': None, 'value': 3, 'kind': 'code'}
    """

    code: str
    form: Any
    value: Any

    @field_validator("code", mode="before")
    @classmethod
    def _check_code(cls, v: Any) -> str:
        if not isinstance(v, str):
            raise GrammarError(f"code must be a string, got {type(v).__name__}")
        return v

    def to_record(self) -> JsonDict:
        """Canonical record mapping (key order: code, form, value, then properties)."""
        out: JsonDict = {CODE_KEY: self.code, FORM_KEY: self.form, VALUE_KEY: self.value}
        out.update(self.canonical_dict())
        return out


def _props_model(strict_options: bool) -> type[AnnotationProps]:
    return StrictAnnotationProps if strict_options else AnnotationProps


def parse_props(m: Any, *, strict_options: bool = False) -> AnnotationProps | None:
    """
    Validate a mapping as annotation properties.

    Args:
        m (Any): Candidate metadata mapping (or record).
        strict_options (bool): Reject unrecognized keys under ``options``.

    Returns:
        AnnotationProps | None: Parsed properties, or None if ``m`` does not validate.
    """
    if not isinstance(m, Mapping):
        return None
    try:
        return _props_model(strict_options).model_validate(dict(m))
    except ValidationError:
        return None


def props_errors(m: Any, *, strict_options: bool = False) -> list[str]:
    """
    Human-readable reasons a mapping is not valid annotation properties.

    Args:
        m (Any): Candidate metadata mapping (or record).
        strict_options (bool): Reject unrecognized keys under ``options``.

    Returns:
        list[str]: One entry per pydantic error (``loc: msg``); empty when valid.
    """
    if not isinstance(m, Mapping):
        return [f"expected a mapping of annotation properties, got {type(m).__name__}"]
    try:
        _props_model(strict_options).model_validate(dict(m))
    except ValidationError as exc:
        return [
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in exc.errors()
        ]
    return []
