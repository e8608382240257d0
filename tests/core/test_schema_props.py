import pytest
from pydantic import ValidationError

from kindspec.core.grammar import Kind
from kindspec.core.schema import (
    AnnotationProps,
    KindlyRecord,
    parse_props,
    props_errors,
)


def test_props_accept_wire_keys_and_kind_enum() -> None:
    p = AnnotationProps.model_validate(
        {"kind": Kind.MD, "hideCode": True, "options": {"hideValue": True}}
    )
    assert p.kind == "md"
    assert p.hide_code is True
    assert p.options is not None and p.options.hide_value is True
    assert not p.is_wrapped


def test_unknown_top_level_keys_are_ignored() -> None:
    p = parse_props({"kind": "md", "code": "(md ...)", "note": 1})
    assert p is not None
    assert p.canonical_dict() == {"kind": "md"}


@pytest.mark.parametrize(
    "props",
    [
        {},
        {"kind": ""},
        {"kind": 3},
        {"kind": "code", "hideCode": "yes"},
        {"kind": "code", "hideCode": 1},
        {"kind": "code", "options": [1]},
        {"kind": "code", "options": {"hideValue": "true"}},
        {"kind": "code", "options": {"wrapped": 1}},
    ],
)
def test_invalid_props_are_rejected(props: dict) -> None:
    assert parse_props(props) is None
    assert props_errors(props)
    with pytest.raises(ValidationError):
        AnnotationProps.model_validate(props)


def test_non_mapping_props() -> None:
    assert parse_props(["kind", "code"]) is None
    assert props_errors("code") == ["expected a mapping of annotation properties, got str"]


def test_props_errors_name_the_wire_key() -> None:
    errors = props_errors({"kind": "code", "hideCode": "yes"})
    assert len(errors) == 1
    assert errors[0].startswith("hideCode: ")


def test_canonical_dict_drops_defaults_and_wrapped_flag() -> None:
    p = AnnotationProps.model_validate(
        {
            "kind": "vega",
            "hideCode": False,
            "options": {"hideValue": False, "wrapped": True, "width": 300},
        }
    )
    assert p.is_wrapped
    assert p.canonical_dict() == {"kind": "vega", "options": {"width": 300}}

    bare = AnnotationProps.model_validate({"kind": "code", "options": {"wrapped": True}})
    assert bare.canonical_dict() == {"kind": "code"}


def test_strict_options_reject_unknown_option_keys() -> None:
    props = {"kind": "vega", "options": {"width": 300}}
    assert parse_props(props) is not None
    assert parse_props(props, strict_options=True) is None
    assert parse_props(
        {"kind": "code", "options": {"hideValue": True, "wrapped": True}}, strict_options=True
    ) is not None


def test_kindly_record_roundtrip_shape() -> None:
    r = KindlyRecord.model_validate(
        {"code": "(+ 1 2)", "form": ["+", 1, 2], "value": 3, "kind": "code", "hideCode": True}
    )
    assert r.to_record() == {
        "code": "(+ 1 2)",
        "form": ["+", 1, 2],
        "value": 3,
        "kind": "code",
        "hideCode": True,
    }


@pytest.mark.parametrize(
    "data",
    [
        {"code": 1, "form": None, "value": 3, "kind": "code"},
        {"code": "", "value": 3, "kind": "code"},
        {"code": "", "form": None, "kind": "code"},
        {"code": "", "form": None, "value": 3},
    ],
)
def test_kindly_record_rejects_incomplete_records(data: dict) -> None:
    with pytest.raises(ValidationError):
        KindlyRecord.model_validate(data)
