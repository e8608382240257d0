import pytest

from kindspec.core.annotate import annotate, fragment, record, wrap
from kindspec.core.config import GrammarSettings
from kindspec.core.metadata import set_metadata
from kindspec.core.validate import (
    Form,
    annotated_values,
    classify,
    explain,
    is_annotated_value,
    is_annotation_props,
    is_fragment,
    is_record_form,
    is_wrapped_form,
)

LENIENT = GrammarSettings(fragment_mode="lenient")


def test_record_form() -> None:
    r = record(3, "code", code="(+ 1 2)", form=["+", 1, 2])
    assert is_annotated_value(r)
    assert classify(r) is Form.RECORD
    assert is_record_form(r)
    assert not is_wrapped_form(r)


def test_wrapped_form_from_annotate() -> None:
    v = annotate(3, "code")
    assert is_annotated_value(v)
    assert classify(v) is Form.WRAPPED
    assert is_wrapped_form(v)
    assert not is_record_form(v)


def test_attached_form() -> None:
    v = annotate({"a": [1, 2]}, "edn")
    assert classify(v) is Form.ATTACHED


@pytest.mark.parametrize("x", [3, "text", None, 2.5, (1, 2), True])
def test_wrap_is_wrapped_form_only_with_flag(x) -> None:
    flagged = wrap(x, {"kind": "code", "options": {"wrapped": True}})
    flagless = wrap(x, {"kind": "code"})
    unflagged = wrap(x, {"kind": "code", "options": {"wrapped": False}})

    assert is_wrapped_form(flagged)
    assert classify(flagged) is Form.WRAPPED
    for v in (flagless, unflagged):
        # still a list with valid metadata, just not a wrapped one
        assert not is_wrapped_form(v)
        assert classify(v) is Form.ATTACHED


def test_record_shape_is_never_attached_form() -> None:
    # metadata on a record mapping does not make it an attached value
    r = set_metadata(record(3, "code"), {"kind": "md"})
    assert classify(r) is Form.RECORD

    broken = set_metadata({"code": "", "form": None, "value": 3}, {"kind": "md"})
    assert not is_annotated_value(broken)
    report = explain(broken)
    assert report is not None
    assert any(m.rule == "attached_form" and "record-shaped" in m.reason for m in report)


def test_metadata_precedence_lets_metadata_complete_a_record() -> None:
    broken = set_metadata({"code": "", "form": None, "value": 3}, {"kind": "md"})
    assert classify(broken, GrammarSettings(metadata_precedence="metadata")) is Form.RECORD


@pytest.mark.parametrize(
    "value",
    [
        3,
        "text",
        None,
        [1, 2],
        {"a": 1},
        {"code": 1, "form": None, "value": 3, "kind": "code"},
        {"code": "", "form": None, "value": 3, "kind": ""},
        {"code": "", "form": None, "value": 3, "kind": "code", "hideCode": "yes"},
    ],
)
def test_non_kindly_values(value) -> None:
    assert not is_annotated_value(value)
    assert classify(value) is None
    assert explain(value)


def test_explain_lists_each_alternative() -> None:
    report = explain(3)
    assert report is not None
    assert [m.rule for m in report] == [
        "record_form",
        "wrapped_form",
        "fragment_record",
        "fragment_attached",
        "attached_form",
    ]
    assert all(m.path == () for m in report)


def test_explain_is_none_for_valid_values() -> None:
    assert explain(annotate(3, "code")) is None


def test_explain_reports_element_path() -> None:
    doc = record([record(1, "md"), 5], "fragment")
    report = explain(doc)
    assert report is not None
    assert any(m.path == ("value", 1) for m in report)


def test_fragment_record_and_attached_fragment() -> None:
    doc = record([record("# Title", "md"), record([1, 2], "vector")], "fragment")
    assert classify(doc) is Form.FRAGMENT
    assert is_fragment(doc)
    assert is_record_form(doc)

    attached = fragment([annotate("# Title", "md"), annotate([1, 2], "vector")])
    assert classify(attached) is Form.FRAGMENT
    assert not is_record_form(attached)


def test_fragment_of_fragments() -> None:
    inner = fragment([annotate(1, "code")])
    outer = record([inner, record(2, "code")], "fragment")
    assert is_fragment(outer)


def test_empty_fragment_is_valid() -> None:
    assert is_fragment(fragment([]))


@pytest.mark.parametrize(
    "value",
    [
        set_metadata({"a": 1}, {"kind": "fragment"}),
        set_metadata([1, 2], {"kind": "fragment"}),
        {"code": "", "form": None, "value": "not a list", "kind": "fragment"},
    ],
)
def test_malformed_fragments(value) -> None:
    assert not is_annotated_value(value)


def test_lenient_fragments_accept_plain_elements() -> None:
    doc = set_metadata([1, annotate("x", "md")], {"kind": "fragment"})
    assert not is_annotated_value(doc)
    assert is_annotated_value(doc, LENIENT)
    assert classify(doc, LENIENT) is Form.FRAGMENT


def test_strict_options() -> None:
    v = set_metadata([1], {"kind": "vega", "options": {"width": 300}})
    assert is_annotated_value(v)
    assert not is_annotated_value(v, GrammarSettings(strict_options=True))
    assert is_annotation_props({"kind": "vega", "options": {"width": 300}})
    assert not is_annotation_props(
        {"kind": "vega", "options": {"width": 300}}, strict_options=True
    )


def test_nested_annotations_in_payloads_are_allowed() -> None:
    v = record({"chart": annotate({"mark": "bar"}, "vega_lite"), "n": 3}, "edn")
    assert classify(v) is Form.RECORD
    w = annotate({"inner": annotate([1], "vector")}, "pprint")
    assert classify(w) is Form.ATTACHED


def test_wrapped_annotated_value() -> None:
    v = wrap(record(3, "code"), {"kind": "pprint", "options": {"wrapped": True}})
    assert classify(v) is Form.WRAPPED


def test_cyclic_fragment_is_rejected() -> None:
    xs: list = []
    set_metadata(xs, {"kind": "fragment"})
    xs.append(xs)
    assert not is_annotated_value(xs)
    report = explain(xs)
    assert report is not None
    assert any(m.reason == "cyclic reference" for m in report)


def _fragment_chain(levels: int) -> dict:
    v = record("leaf", "md")
    for _ in range(levels - 1):
        v = record([v], "fragment")
    return v


def test_max_depth_bounds_nesting() -> None:
    settings = GrammarSettings(max_depth=5)
    assert is_annotated_value(_fragment_chain(6), settings)
    deep = _fragment_chain(7)
    assert not is_annotated_value(deep, settings)
    report = explain(deep, settings)
    assert report is not None
    assert any("max_depth=5" in m.reason for m in report)


def test_default_depth_accepts_a_thousand_levels() -> None:
    assert is_annotated_value(_fragment_chain(1000))


def test_fragment_kind_is_reserved_for_fragments() -> None:
    scalar = annotate(3, "fragment")
    assert not is_annotated_value(scalar)
    assert not is_wrapped_form(scalar)
    assert classify(scalar) is None
    assert explain(scalar)
    # lenient mode reads it as a fragment with one plain element
    assert classify(scalar, LENIENT) is Form.FRAGMENT

    flagged = set_metadata([annotate(3, "code")], {"kind": "fragment", "options": {"wrapped": True}})
    assert classify(flagged) is Form.FRAGMENT
    assert not is_wrapped_form(flagged)

    bad = wrap([annotate(3, "code")], {"kind": "fragment", "options": {"wrapped": True}})
    assert not is_annotated_value(bad)


def test_annotated_values_collects_fragment_elements() -> None:
    inner = annotate([1], "vector")
    scalar = annotate(3, "code")
    doc = fragment([inner, scalar])
    found = annotated_values(doc)
    assert found is not None
    assert found[id(doc)] is doc
    assert found[id(inner)] is inner
    assert found[id(scalar)] is scalar

    nested = annotate([1], "md")
    r = record({"a": nested}, "edn")
    found = annotated_values(r)
    assert found is not None and id(nested) not in found

    assert annotated_values(3) is None
    assert annotated_values(annotate(3, "fragment")) is None
