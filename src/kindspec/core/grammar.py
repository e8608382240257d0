"""
Kindly grammar engine: kinds, named rules, and a recursive-descent matcher.

Defines the Kind enum, the rule combinators used to write mutually recursive
grammars as a registry of named rules, the build-time reference check, and the
matcher that walks a value against a registry. The concrete Kindly rules live in
``kindspec.core.validate``; the authoritative EBNF sits next to this module in
``kindly.ebnf`` and is parsed here so the registry can be checked against it.

Responsibilities
- Define Kind (common presentation kinds) and kind normalization helpers.
- Provide rule combinators: Ref, Predicate, AnyOf, AllOf, Not, SequenceOf, Field.
- Resolve every Ref once, at Registry construction (SchemaError on failure).
- Match values with ordered alternation, collecting a structured mismatch report.
- Parse the EBNF and compare production alternatives with registry alternatives.

Design principles
-----------------
1) Ordered alternation:
   - AnyOf tries alternatives left to right and stops at the first match.
   - Inside ``payload`` the base case precedes the recursive case, so a plain
     recursive-descent matcher reaches a fixed point without looping.

2) Bounded descent:
   - Each re-entry of the depth rule (a nested Kindly value) counts toward
     ``max_depth``; exceeding it, or revisiting a container already on the
     current path, is a mismatch rather than an exception.

3) Naming:
   - Enum classes: PascalCase; members: UPPER_SNAKE; values: lower_snake.
   - Rule names: lower_snake, identical to EBNF production names.

Examples
--------
>>> from kindspec.core.grammar import AnyOf, Predicate, Ref, Registry, SequenceOf
>>> reg = Registry(
...     {
...         "tree": AnyOf((Ref("leaf"), Ref("branch"))),
...         "leaf": Predicate("leaf", lambda v, ctx: None if isinstance(v, int) else "not an int"),
...         "branch": SequenceOf(Ref("tree")),
...     },
...     start="tree",
... )
>>> reg.matches([1, [2, 3]])
True
>>> reg.matches([1, "x"])
False

Tags
----
grammar, registry, recursive-descent, ebnf, kinds
"""

from __future__ import annotations

import logging
import re
import sys
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Final, Union

from .constants import MAX_DEPTH
from .errors import SchemaError

__all__ = [
    "Kind",
    "kind_value",
    "is_lower_snake",
    "ensure_all_enum_values_lower_snake",
    # rules
    "Ref",
    "Predicate",
    "AnyOf",
    "AllOf",
    "Not",
    "SequenceOf",
    "Field",
    "Rule",
    "Registry",
    "Mismatch",
    "MatchContext",
    "recursion_headroom",
    # ebnf
    "EBNF_GRAMMAR",
    "GrammarProduction",
    "ParsedGrammar",
    "PARSED_GRAMMAR",
    "assert_registry_matches_grammar",
]

logger = logging.getLogger(__name__)

# Canonical grammar file next to this module
_EBNF_PATH = Path(__file__).with_name("kindly.ebnf")


def _load_ebnf_text() -> str:
    # Return the canonical EBNF text (no normalization).
    return _EBNF_PATH.read_text(encoding="utf-8")


EBNF_GRAMMAR: Final[str] = _load_ebnf_text()


# ============================================================================
# KINDS
# ============================================================================


class Kind(Enum):
    """
    Common presentation kinds understood by Kindly-aware renderers.

    Kinds are open: any non-empty string is a valid kind. These members cover
    the tags the authoring helpers produce most often.

    Notes:
      FRAGMENT is reserved: values of kind "fragment" must be sequences of
      Kindly values (see validate.fragment_form).
    """

    CODE = "code"
    MD = "md"
    HICCUP = "hiccup"
    HTML = "html"
    TEX = "tex"
    EDN = "edn"
    PPRINT = "pprint"
    HIDDEN = "hidden"
    IMAGE = "image"
    VIDEO = "video"
    TABLE = "table"
    DATASET = "dataset"
    VEGA = "vega"
    VEGA_LITE = "vega_lite"
    ECHARTS = "echarts"
    PLOTLY = "plotly"
    CYTOSCAPE = "cytoscape"
    MAP = "map"
    VECTOR = "vector"
    SET = "set"
    SEQ = "seq"
    FRAGMENT = "fragment"


def kind_value(kind: Kind | str) -> str:
    """
    Get the serialized tag for a kind.

    Args:
      kind (Kind | str): Kind member or tag string.

    Returns:
      str: The tag (e.g., "code").

    Raises:
      TypeError: If kind is neither a Kind nor a str.
      ValueError: If the tag is empty.

    Examples:
      >>> kind_value(Kind.VEGA_LITE)
      'vega_lite'
      >>> kind_value("md")
      'md'
    """
    if isinstance(kind, Kind):
        return kind.value
    if not isinstance(kind, str):
        raise TypeError(f"kind must be a string, got {type(kind).__name__}")
    if not kind:
        raise ValueError("kind must be a non-empty string")
    return kind


_LOWER_SNAKE_RE: Final[re.Pattern[str]] = re.compile(r"^[a-z0-9]+(?:_[a-z0-9]+)*$")


def is_lower_snake(value: str) -> bool:
    """
    Check whether a string is lower_snake.

    Examples:
      >>> is_lower_snake("vega_lite")
      True
      >>> is_lower_snake("VegaLite")
      False
    """
    return bool(_LOWER_SNAKE_RE.match(value or ""))


def ensure_all_enum_values_lower_snake(enums: Iterable[type[Enum]]) -> None:
    """
    Assert that every enum member's value is lower_snake.

    Raises:
      AssertionError: If any enum member has a non-lower_snake value.
    """
    for E in enums:
        for m in E:
            if not is_lower_snake(m.value):
                raise AssertionError(
                    f"{E.__name__}.{m.name} has non-lower_snake value: {m.value!r}"
                )


# ============================================================================
# RULES
# ============================================================================


@dataclass(slots=True, frozen=True)
class Ref:
    """Reference to a named rule, resolved when the Registry is built."""

    name: str


@dataclass(slots=True, frozen=True)
class Predicate:
    """
    Leaf rule backed by a function.

    The function receives the value and the MatchContext and returns None on
    success or a short reason string on failure.
    """

    name: str
    test: Callable[[Any, MatchContext], str | None] = field(compare=False)


@dataclass(slots=True, frozen=True)
class AnyOf:
    """Ordered alternation; the first matching alternative wins."""

    alternatives: tuple[Rule, ...]


@dataclass(slots=True, frozen=True)
class AllOf:
    """Conjunction; parts are checked in order and the first failure stops."""

    parts: tuple[Rule, ...]


@dataclass(slots=True, frozen=True)
class Not:
    """Negation; matches when ``rule`` does not."""

    rule: Rule
    reason: str


@dataclass(slots=True, frozen=True)
class SequenceOf:
    """Every element of a list matches ``item`` (non-lists are a mismatch)."""

    item: Rule


@dataclass(slots=True, frozen=True)
class Field:
    """The value stored under ``key`` of a mapping matches ``rule``."""

    key: str
    rule: Rule


Rule = Union[Ref, Predicate, AnyOf, AllOf, Not, SequenceOf, Field]


@dataclass(slots=True, frozen=True)
class Mismatch:
    """
    One reason a value failed to match.

    Attributes:
      path (tuple[Any, ...]): Location inside the value (list indices, mapping keys).
      rule (str): Name of the innermost named rule being matched.
      reason (str): Short description of the failed check.
    """

    path: tuple[Any, ...]
    rule: str
    reason: str

    def __str__(self) -> str:
        where = "/".join(str(p) for p in self.path) or "<root>"
        return f"{where} [{self.rule}]: {self.reason}"


@dataclass(slots=True)
class MatchContext:
    """
    Mutable state for one match run.

    Attributes:
      settings (Any): Grammar settings consulted by predicates.
      explain (bool): Whether predicates should compute detailed reasons.
      max_depth (int): Maximum re-entries of the depth rule before matching fails.
      mismatches (list[Mismatch]): Reasons collected so far.
      cache (dict[tuple[str, int], Any]): Per-run memo for predicates (keyed by name and id).
      matched (dict[int, Any]): Values that matched the depth rule during this run, by id.
    """

    settings: Any = None
    explain: bool = False
    max_depth: int = MAX_DEPTH
    mismatches: list[Mismatch] = field(default_factory=list)
    cache: dict[tuple[str, int], Any] = field(default_factory=dict)
    matched: dict[int, Any] = field(default_factory=dict)
    _active: set[int] = field(default_factory=set)

    def memo(self, name: str, value: Any, compute: Callable[[Any], Any]) -> Any:
        """Return ``compute(value)``, computed at most once per value identity in this run."""
        key = (name, id(value))
        try:
            return self.cache[key]
        except KeyError:
            result = compute(value)
            self.cache[key] = result
            return result


class Registry:
    """
    A grammar as a mapping of rule names to rules, plus a start rule.

    All references are resolved at construction time. Nesting depth is the
    number of times ``depth_rule`` (default: the start rule) is re-entered
    through a Ref.

    Args:
      rules (Mapping[str, Rule]): Named rules.
      start (str): Name of the rule ``matches``/``explain`` begin with.
      depth_rule (str | None): Rule whose re-entry counts toward ``max_depth``.

    Raises:
      SchemaError: If ``start``, ``depth_rule``, or any Ref names an undefined rule.
    """

    def __init__(self, rules: Mapping[str, Rule], start: str, depth_rule: str | None = None) -> None:
        self._rules: dict[str, Rule] = dict(rules)
        self.start = start
        self.depth_rule = depth_rule or start
        if start not in self._rules:
            raise SchemaError(f"start rule {start!r} is not defined")
        if self.depth_rule not in self._rules:
            raise SchemaError(f"depth rule {self.depth_rule!r} is not defined")
        for name, rule in self._rules.items():
            for ref in _iter_refs(rule):
                if ref.name not in self._rules:
                    raise SchemaError(f"rule {name!r} references undefined rule {ref.name!r}")
        logger.debug("built grammar registry: start=%s rules=%s", start, sorted(self._rules))

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._rules)

    def rule(self, name: str) -> Rule:
        try:
            return self._rules[name]
        except KeyError as exc:
            raise SchemaError(f"Unknown grammar rule: {name}") from exc

    def alternative_names(self, name: str) -> tuple[str, ...]:
        """
        Names of a rule's top-level alternatives (Ref targets and Predicate names).

        Returns an empty tuple for rules that are not an AnyOf.
        """
        rule = self.rule(name)
        if not isinstance(rule, AnyOf):
            return ()
        return tuple(
            alt.name for alt in rule.alternatives if isinstance(alt, (Ref, Predicate))
        )

    def matches(self, value: Any, ctx: MatchContext | None = None, rule: str | None = None) -> bool:
        """Match ``value`` against ``rule`` (default: the start rule)."""
        ctx = ctx if ctx is not None else MatchContext()
        name = rule or self.start
        ok = self._match(self.rule(name), value, ctx, (), name, 0)
        if ok and name == self.depth_rule:
            ctx.matched[id(value)] = value
        return ok

    def explain(
        self, value: Any, ctx: MatchContext | None = None, rule: str | None = None
    ) -> list[Mismatch] | None:
        """Match with reasons; returns None on success or the collected mismatches."""
        ctx = ctx if ctx is not None else MatchContext(explain=True)
        ctx.explain = True
        if self.matches(value, ctx, rule):
            return None
        return list(ctx.mismatches)

    # Recursion stays in plain Python calls (no builtins calling back into
    # Python) so deep inputs only consume interpreter frames.
    def _match(
        self,
        rule: Rule,
        value: Any,
        ctx: MatchContext,
        path: tuple[Any, ...],
        rule_name: str,
        depth: int,
    ) -> bool:
        if isinstance(rule, Ref):
            if rule.name == self.depth_rule:
                depth += 1
                if depth > ctx.max_depth:
                    logger.debug("max_depth %d exceeded at %s", ctx.max_depth, path)
                    ctx.mismatches.append(
                        Mismatch(path, rule.name, f"nesting exceeds max_depth={ctx.max_depth}")
                    )
                    return False
            ok = self._match(self._rules[rule.name], value, ctx, path, rule.name, depth)
            if ok and rule.name == self.depth_rule:
                ctx.matched[id(value)] = value
            return ok

        if isinstance(rule, Predicate):
            reason = rule.test(value, ctx)
            if reason is None:
                return True
            ctx.mismatches.append(Mismatch(path, rule_name, reason))
            return False

        if isinstance(rule, AnyOf):
            mark = len(ctx.mismatches)
            for alt in rule.alternatives:
                if self._match(alt, value, ctx, path, rule_name, depth):
                    del ctx.mismatches[mark:]
                    return True
            return False

        if isinstance(rule, AllOf):
            for part in rule.parts:
                if not self._match(part, value, ctx, path, rule_name, depth):
                    return False
            return True

        if isinstance(rule, Not):
            mark = len(ctx.mismatches)
            matched = self._match(rule.rule, value, ctx, path, rule_name, depth)
            del ctx.mismatches[mark:]
            if matched:
                ctx.mismatches.append(Mismatch(path, rule_name, rule.reason))
                return False
            return True

        if isinstance(rule, SequenceOf):
            if not isinstance(value, list):
                ctx.mismatches.append(
                    Mismatch(path, rule_name, f"expected a list, got {type(value).__name__}")
                )
                return False
            if not self._enter(value, ctx, path, rule_name):
                return False
            try:
                for i, item in enumerate(value):
                    if not self._match(rule.item, item, ctx, path + (i,), rule_name, depth):
                        return False
                return True
            finally:
                ctx._active.discard(id(value))

        if isinstance(rule, Field):
            if not isinstance(value, Mapping) or rule.key not in value:
                ctx.mismatches.append(Mismatch(path, rule_name, f"missing field {rule.key!r}"))
                return False
            if not self._enter(value, ctx, path, rule_name):
                return False
            try:
                return self._match(
                    rule.rule, value[rule.key], ctx, path + (rule.key,), rule_name, depth
                )
            finally:
                ctx._active.discard(id(value))

        raise SchemaError(f"unsupported rule type {type(rule).__name__}")  # pragma: no cover

    def _enter(
        self, container: Any, ctx: MatchContext, path: tuple[Any, ...], rule_name: str
    ) -> bool:
        if id(container) in ctx._active:
            ctx.mismatches.append(Mismatch(path, rule_name, "cyclic reference"))
            return False
        ctx._active.add(id(container))
        return True


# Interpreter frames consumed per nesting level by the matcher and canonicalizer.
_FRAMES_PER_LEVEL: Final[int] = 16
_BASE_FRAMES: Final[int] = 1000


@contextmanager
def recursion_headroom(max_depth: int) -> Iterator[None]:
    """
    Raise the interpreter recursion limit to fit ``max_depth`` nested levels, restoring it on exit.

    Nested uses are no-ops once the limit is high enough. Not thread-safe: the
    recursion limit is process-wide.
    """
    current = sys.getrecursionlimit()
    needed = max_depth * _FRAMES_PER_LEVEL + _BASE_FRAMES
    if current >= needed:
        yield
        return
    sys.setrecursionlimit(needed)
    try:
        yield
    finally:
        sys.setrecursionlimit(current)


def _iter_refs(rule: Rule) -> Iterable[Ref]:
    stack: list[Rule] = [rule]
    while stack:
        r = stack.pop()
        if isinstance(r, Ref):
            yield r
        elif isinstance(r, AnyOf):
            stack.extend(r.alternatives)
        elif isinstance(r, AllOf):
            stack.extend(r.parts)
        elif isinstance(r, Not):
            stack.append(r.rule)
        elif isinstance(r, SequenceOf):
            stack.append(r.item)
        elif isinstance(r, Field):
            stack.append(r.rule)


# ============================================================================
# EBNF
# ============================================================================


@dataclass(slots=True, frozen=True)
class GrammarProduction:
    """Parsed production with convenient accessors."""

    name: str
    expression: str
    alternatives: tuple[str, ...]

    def alternative_names(self) -> tuple[str, ...]:
        """Leading identifier of each alternative that starts with a bare identifier."""
        names: list[str] = []
        for alt in self.alternatives:
            match = _IDENT_RE.match(alt)
            if match:
                names.append(match.group(0))
        return tuple(names)


@dataclass(slots=True, frozen=True)
class ParsedGrammar:
    """Container for parsed grammar productions."""

    productions: dict[str, GrammarProduction]

    def production(self, name: str) -> GrammarProduction:
        try:
            return self.productions[name]
        except KeyError as exc:
            raise KeyError(f"Unknown grammar production: {name}") from exc

    @classmethod
    def from_text(cls, text: str) -> ParsedGrammar:
        stripped = _strip_ebnf_comments(text)
        productions: dict[str, GrammarProduction] = {}
        for match in _RULE_RE.finditer(stripped):
            rule_name = match.group(1)
            expression = " ".join(match.group(2).split())
            productions[rule_name] = GrammarProduction(
                name=rule_name,
                expression=expression,
                alternatives=_split_alternatives(expression),
            )
        return cls(productions=productions)


_COMMENT_RE = re.compile(r"\(\*.*?\*\)", re.DOTALL)
_RULE_RE = re.compile(r"(?ms)^\s*([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*?)\s*;")
_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*(?=\s|$)")


def _strip_ebnf_comments(text: str) -> str:
    return _COMMENT_RE.sub(" ", text)


def _split_alternatives(expression: str) -> tuple[str, ...]:
    parts: list[str] = []
    buffer: list[str] = []
    depth = 0
    quote: str | None = None
    i = 0
    while i < len(expression):
        ch = expression[i]
        if quote is not None:
            buffer.append(ch)
            if ch == quote:
                quote = None
            elif ch == "\\" and i + 1 < len(expression):
                i += 1
                buffer.append(expression[i])
            i += 1
            continue
        if ch in ('"', "'"):
            quote = ch
            buffer.append(ch)
        elif ch in "([{":
            depth += 1
            buffer.append(ch)
        elif ch in ")]}":
            depth = max(0, depth - 1)
            buffer.append(ch)
        elif ch == "|" and depth == 0:
            part = "".join(buffer).strip()
            if part:
                parts.append(part)
            buffer = []
        else:
            buffer.append(ch)
        i += 1
    tail = "".join(buffer).strip()
    if tail:
        parts.append(tail)
    return tuple(parts)


PARSED_GRAMMAR: Final[ParsedGrammar] = ParsedGrammar.from_text(EBNF_GRAMMAR)


def assert_registry_matches_grammar(
    registry: Registry, grammar: ParsedGrammar, alternations: Sequence[str]
) -> None:
    """
    Check a registry against the EBNF.

    Every registry rule must have a production of the same name, and each rule
    named in ``alternations`` must list the same alternatives in the same order.

    Raises:
      SchemaError: On a missing production or an alternation out of sync.
    """
    missing = [name for name in registry.names if name not in grammar.productions]
    if missing:
        raise SchemaError(f"rules without an EBNF production: {sorted(missing)}")
    for name in alternations:
        actual = list(grammar.production(name).alternative_names())
        expected = list(registry.alternative_names(name))
        if actual != expected:
            raise SchemaError(
                f"Grammar production {name!r} out of sync with registry: "
                f"ebnf={actual} registry={expected}"
            )
