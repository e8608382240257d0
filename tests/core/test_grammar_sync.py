from pathlib import Path

import pytest

from kindspec.core import grammar
from kindspec.core.errors import SchemaError
from kindspec.core.grammar import (
    EBNF_GRAMMAR,
    PARSED_GRAMMAR,
    AnyOf,
    Kind,
    ParsedGrammar,
    Predicate,
    Ref,
    Registry,
    assert_registry_matches_grammar,
    ensure_all_enum_values_lower_snake,
)
from kindspec.core.validate import KINDLY_REGISTRY


def _ok(v, ctx):
    return None


def _toy_registry() -> Registry:
    return Registry(
        {
            "a": AnyOf((Ref("b"), Ref("c"))),
            "b": Predicate("b", _ok),
            "c": Predicate("c", _ok),
        },
        start="a",
    )


def test_kindly_ebnf_is_exposed_verbatim() -> None:
    file_text = Path(grammar.__file__).with_name("kindly.ebnf").read_text(encoding="utf-8")
    assert EBNF_GRAMMAR == file_text


@pytest.mark.parametrize(
    "name", ["annotated_value", "fragment_form", "fragment_element", "payload"]
)
def test_registry_alternation_matches_ebnf(name: str) -> None:
    assert KINDLY_REGISTRY.alternative_names(name) == (
        PARSED_GRAMMAR.production(name).alternative_names()
    )


def test_annotated_value_tries_record_before_attached() -> None:
    assert KINDLY_REGISTRY.alternative_names("annotated_value") == (
        "record_form",
        "wrapped_form",
        "fragment_form",
        "attached_form",
    )
    # base case first
    assert KINDLY_REGISTRY.alternative_names("payload") == ("plain_value", "annotated_value")


def test_every_registry_rule_has_a_production() -> None:
    assert set(KINDLY_REGISTRY.names) == set(PARSED_GRAMMAR.productions)


def test_all_kind_values_are_lower_snake() -> None:
    ensure_all_enum_values_lower_snake([Kind])


def test_undefined_reference_fails_at_build_time() -> None:
    with pytest.raises(SchemaError, match="undefined rule 'missing'"):
        Registry({"a": AnyOf((Ref("b"), Ref("missing"))), "b": Predicate("b", _ok)}, start="a")


def test_missing_start_rule_fails_at_build_time() -> None:
    with pytest.raises(SchemaError, match="start rule"):
        Registry({"b": Predicate("b", _ok)}, start="a")


def test_registry_in_sync_with_grammar_passes() -> None:
    parsed = ParsedGrammar.from_text("a = b | c ;\nb = 'x' ;\nc = 'y' ;")
    assert_registry_matches_grammar(_toy_registry(), parsed, ["a"])


def test_alternation_drift_raises_schema_error() -> None:
    drifted = ParsedGrammar.from_text("(* reordered *)\na = c | b ;\nb = 'x' ;\nc = 'y' ;")
    with pytest.raises(SchemaError, match="out of sync"):
        assert_registry_matches_grammar(_toy_registry(), drifted, ["a"])


def test_missing_production_raises_schema_error() -> None:
    partial = ParsedGrammar.from_text("a = b | c ;\nb = 'x' ;")
    with pytest.raises(SchemaError, match="without an EBNF production"):
        assert_registry_matches_grammar(_toy_registry(), partial, ["a"])
