"""
Core package aggregator for Kindly value contracts (grammar, validation, canonical form, serde).

## Contracts (single source of truth)
- Grammar: Kind enum, rule combinators, the registry engine, and the EBNF (`kindly.ebnf`).
- Validate: the Kindly rules (record, wrapped, fragment, attached) and membership checks.
- Canonical: canonicalization to record form and structural equality over it.
- Metadata: the identity-keyed side-table that carries annotations out-of-band.
- Annotate: authoring helpers; `annotate` is the only producer of wrapped values.
- Schema: pydantic models for annotation properties and the record wire shape.
- Hashing/Serde: canonical JSON utilities and record fingerprints.
- Config/Errors: GrammarSettings loaders and the typed error hierarchy.

## Notes
- Zero‑IO policy: stdlib + pydantic only; the only file read is `kindly.ebnf`
  (and TOML config when `GrammarSettings.load` is called explicitly).
- Naming policy: enum `.value` and rule names are lower_snake; wire keys are camelCase.
- Validation never raises; canonicalize/equals raise GrammarError on invalid input.
- A one-element list is a wrapped value only when its metadata has
  `options.wrapped` set; otherwise it is a list carrying attached metadata.

## Examples
```python
from kindspec.core.annotate import annotate, fragment, record
from kindspec.core.canonical import canonicalize, equals
from kindspec.core.validate import classify, is_annotated_value

is_annotated_value(annotate(3, "code"))  # True
classify(annotate(3, "code"))  # Form.WRAPPED
canonicalize(annotate(3, "code"))  # {'code': '', 'form': None, 'value': 3, 'kind': 'code'}
equals(annotate(3, "code"), record(3, "code"))  # True

doc = fragment([annotate("# Title", "md"), record([1, 2], "vector")])
canonicalize(doc)["value"][1]  # {'code': '', 'form': None, 'value': [1, 2], 'kind': 'vector'}
```

## References
- Grammar and engine: [grammar](grammar.md)
- Rules and checks: [validate](validate.md)
- Canonical form/equality: [canonical](canonical.md)
- Metadata/authoring: [metadata](metadata.md), [annotate](annotate.md)
- Schemas: [schema](schema.md)
- Hashing/Serde: [hashing](hashing.md), [serde](serde.md)
- Config/Constants/Errors: [config](config.md), [constants](constants.md), [errors](errors.md)
"""
