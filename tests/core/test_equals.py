import itertools
from dataclasses import dataclass

import pytest

from kindspec.core.annotate import annotate, fragment, record, wrap
from kindspec.core.canonical import equals
from kindspec.core.config import GrammarSettings
from kindspec.core.errors import GrammarError
from kindspec.core.metadata import set_metadata


def _values() -> list:
    # (equivalence class, value)
    return [
        ("three", annotate(3, "code")),
        ("three", record(3, "code")),
        ("three", wrap(3, {"kind": "code", "options": {"wrapped": True}})),
        ("three", record(3, "code", hide_code=False)),
        ("list", set_metadata([3], {"kind": "code"})),
        ("list", annotate([3], "code")),
        ("list", record([3], "code")),
        ("md", annotate(3, "md")),
        ("hidden", record(3, "code", hide_code=True)),
        ("hidden", annotate(3, "code", hide_code=True)),
        ("doc", fragment([annotate(3, "code")])),
        ("doc", record([record(3, "code")], "fragment")),
    ]


def test_wrapped_scalar_differs_from_annotated_singleton() -> None:
    wrapped = annotate(3, "code")
    singleton = set_metadata([3], {"kind": "code"})
    assert not equals(wrapped, singleton)
    assert not equals(singleton, wrapped)


def test_equals_partitions_by_canonical_record() -> None:
    values = _values()
    for (ca, a), (cb, b) in itertools.product(values, repeat=2):
        assert equals(a, b) is (ca == cb), (ca, cb)


def test_equals_is_reflexive_symmetric_transitive() -> None:
    values = [v for _, v in _values()]
    for a in values:
        assert equals(a, a)
    for a, b in itertools.product(values, repeat=2):
        assert equals(a, b) == equals(b, a)
    for a, b, c in itertools.product(values, repeat=3):
        if equals(a, b) and equals(b, c):
            assert equals(a, c)


def test_nested_annotations_compare_by_canonical_form() -> None:
    a = record({"chart": annotate(3, "md")}, "edn")
    b = record({"chart": record(3, "md")}, "edn")
    plain = record({"chart": 3}, "edn")
    other = record({"chart": annotate(3, "html")}, "edn")
    assert equals(a, b)
    # an annotated node never equals a plain one
    assert not equals(a, plain)
    assert not equals(plain, b)
    assert not equals(a, other)


@pytest.mark.parametrize(
    "a, b",
    [
        (record(3, "code", code="(+ 1 2)"), record(3, "code", code="(+ 2 1)")),
        (record(3, "code", form=["+", 1, 2]), record(3, "code", form=["+", 2, 1])),
        (record([1], "vega", width=1), record([1], "vega", width=2)),
        (record([1], "table", hide_value=True), record([1], "table")),
        (record((1, 2), "code"), record([1, 2], "code")),
        (record([1, 2], "vector"), record([2, 1], "vector")),
    ],
)
def test_unequal_records(a: dict, b: dict) -> None:
    assert not equals(a, b)


def test_fragments_compare_elementwise_in_order() -> None:
    ab = fragment([annotate("a", "md"), annotate("b", "md")])
    ba = fragment([annotate("b", "md"), annotate("a", "md")])
    short = fragment([annotate("a", "md")])
    assert equals(ab, record([record("a", "md"), record("b", "md")], "fragment"))
    assert not equals(ab, ba)
    assert not equals(ab, short)


def test_precedence_changes_equality_of_records_with_metadata() -> None:
    r = set_metadata(record(3, "code"), {"kind": "md"})
    assert equals(r, record(3, "code"))
    assert equals(r, record(3, "md"), GrammarSettings(metadata_precedence="metadata"))


def test_cyclic_payloads_compare_structurally() -> None:
    p: list = [1]
    p.append(p)
    q: list = [1]
    q.append(q)
    assert equals(record(p, "pprint"), record(q, "pprint"))
    assert not equals(record(p, "pprint"), record([1, [1]], "pprint"))


def test_invalid_arguments_raise() -> None:
    with pytest.raises(GrammarError):
        equals(3, record(3, "code"))
    with pytest.raises(GrammarError):
        equals(record(3, "code"), [3])


def _deep(levels: int, leaf: str):
    v = record(leaf, "md")
    for _ in range(levels - 1):
        v = record([v], "fragment")
    return v


def test_thousand_level_equality() -> None:
    assert equals(_deep(1000, "leaf"), _deep(1000, "leaf"))
    assert not equals(_deep(1000, "leaf"), _deep(1000, "other"))


@dataclass(frozen=True)
class Node:
    x: int


def _set_doc(kind: str | None) -> dict:
    node = Node(1) if kind is None else set_metadata(Node(1), {"kind": kind})
    return record(frozenset({node}), "edn")


def test_set_members_compare_with_their_annotations() -> None:
    assert equals(_set_doc("md"), _set_doc("md"))
    assert not equals(_set_doc("md"), _set_doc("html"))
    assert not equals(_set_doc("md"), _set_doc(None))
    assert equals(_set_doc(None), _set_doc(None))
    assert equals(record({1, 2}, "set"), record({2, 1}, "set"))
    assert not equals(record({1, 2}, "set"), record({1, 3}, "set"))
    assert not equals(record({1}, "set"), record({1, 2}, "set"))


def test_fragment_kind_singletons() -> None:
    flagged = set_metadata([annotate(3, "code")], {"kind": "fragment", "options": {"wrapped": True}})
    assert equals(flagged, flagged)
    assert equals(flagged, fragment([annotate(3, "code")]))
    assert not equals(flagged, annotate(3, "code"))
    with pytest.raises(GrammarError, match="not a Kindly value"):
        equals(annotate(3, "fragment"), annotate(3, "fragment"))
