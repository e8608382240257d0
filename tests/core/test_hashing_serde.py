import itertools

import pytest

from kindspec.core.annotate import annotate, fragment, record
from kindspec.core.canonical import canonicalize, equals, to_wire
from kindspec.core.errors import GrammarError
from kindspec.core.hashing import hash_record, json_dumps_canonical
from kindspec.core.metadata import set_metadata
from kindspec.core.serde import json_dumps_canonical as serde_dumps
from kindspec.core.serde import json_loads, record_from_json, record_to_json


def test_json_dumps_canonical_sorted_and_ascii_policy() -> None:
    obj1 = {"b": 2, "a": 1, "nested": {"y": 2, "x": 1}, "emoji": "🙂"}
    obj2 = {"nested": {"x": 1, "y": 2}, "a": 1, "emoji": "🙂", "b": 2}
    s1 = json_dumps_canonical(obj1)
    s2 = json_dumps_canonical(obj2)
    assert s1 == s2  # order-insensitive; keys sorted canonically
    # ensure_ascii=False keeps unicode as-is (no escape sequences)
    assert "🙂" in s1
    assert serde_dumps is json_dumps_canonical


def test_record_to_json_is_canonical_record() -> None:
    assert (
        record_to_json(annotate(3, "code", hide_code=True))
        == '{"code":"","form":null,"hideCode":true,"kind":"code","value":3}'
    )


def test_nested_annotations_are_written_as_records() -> None:
    v = record({"chart": annotate({"mark": "bar"}, "vega_lite")}, "edn")
    assert json_loads(record_to_json(v))["value"] == {
        "chart": {"code": "", "form": None, "value": {"mark": "bar"}, "kind": "vega_lite"}
    }


def test_to_wire_makes_payloads_json_shaped() -> None:
    wire = to_wire(record({"t": (1, 2), "s": {3}}, "edn"))
    assert wire["value"] == {"t": [1, 2], "s": [3]}


def test_hash_agrees_with_equals() -> None:
    values = [
        annotate(3, "code"),
        record(3, "code"),
        set_metadata([3], {"kind": "code"}),
        annotate(3, "code", hide_code=True),
        record({"a": annotate(1, "md")}, "edn"),
        record({"a": record(1, "md")}, "edn"),
        record({"a": 1}, "edn"),
        fragment([annotate("x", "md")]),
        record([record("x", "md")], "fragment"),
    ]
    for a, b in itertools.product(values, repeat=2):
        assert (hash_record(a) == hash_record(b)) is equals(a, b)


def test_hash_is_hex_sha256() -> None:
    h = hash_record(record(3, "code"))
    assert len(h) == 64
    int(h, 16)


@pytest.mark.parametrize(
    "v",
    [
        record({"x": [1, 2]}, "edn", code="{:x [1 2]}", form={"x": [1, 2]}),
        annotate([1, 2], "vega", hide_value=True, width=300),
        fragment([annotate("# Title", "md"), annotate(3, "code")]),
    ],
)
def test_record_json_roundtrip(v) -> None:
    back = record_from_json(record_to_json(v))
    assert back == canonicalize(back)
    assert equals(back, v)


@pytest.mark.parametrize(
    "s",
    [
        '{"code": 1, "form": null, "value": 3, "kind": "code"}',
        '{"code": "", "form": null, "value": 3}',
        '{"code": "", "form": null, "value": 3, "kind": "code", "hideCode": "yes"}',
        '{"code": "", "form": null, "value": [1], "kind": "fragment"}',
        "[1, 2]",
    ],
)
def test_record_from_json_rejects_invalid_records(s: str) -> None:
    with pytest.raises(GrammarError, match="invalid record JSON"):
        record_from_json(s)


def test_cyclic_payload_cannot_be_serialized() -> None:
    p: list = [1]
    p.append(p)
    with pytest.raises(GrammarError, match="payload nesting exceeds"):
        hash_record(record(p, "pprint"))
